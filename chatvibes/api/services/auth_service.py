"""JWT session token service"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

logger = logging.getLogger(__name__)

STREAMER_SCOPE = "streamer"
VIEWER_SCOPE = "viewer"


@dataclass(frozen=True)
class SessionUser:
    """Identity carried by a verified session token."""

    user_id: str
    user_login: str
    display_name: str
    scope: str | None = None

    @property
    def is_viewer(self) -> bool:
        return self.scope == VIEWER_SCOPE

    def to_dict(self) -> dict[str, str]:
        data = {
            "userId": self.user_id,
            "userLogin": self.user_login,
            "displayName": self.display_name,
        }
        if self.scope:
            data["scope"] = self.scope
        return data


class AuthService:
    """Handle session token creation and validation.

    Tokens are HS256-signed with a shared secret and pinned to a fixed issuer
    and audience. Nothing is stored server-side: a token is valid when its
    signature, issuer, audience and expiry check out.
    """

    def __init__(
        self,
        secret_key: str,
        issuer: str = "chatvibes-auth",
        audience: str = "chatvibes-api",
        algorithm: str = "HS256",
        expire_days: int = 7,
    ):
        if not secret_key:
            raise ValueError("JWT secret key cannot be empty")

        self.secret_key = secret_key
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm
        self.expire_days = expire_days

    def create_session_token(
        self,
        user_id: str,
        user_login: str,
        display_name: str,
        scope: str | None = None,
    ) -> str:
        """Create a signed session token for a Twitch user"""
        now = datetime.now(UTC)

        payload = {
            "userId": user_id,
            "userLogin": user_login.lower(),
            "displayName": display_name,
            "iat": now,
            "exp": now + timedelta(days=self.expire_days),
            "iss": self.issuer,
            "aud": self.audience,
        }
        if scope:
            payload["scope"] = scope

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Session token created for {user_login} (scope={scope or 'streamer'})")

        return token

    def verify_token(self, token: str) -> SessionUser | None:
        """Verify a session token and return the identity if valid"""
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={"require": ["exp", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            return None

        user_id = payload.get("userId")
        user_login = payload.get("userLogin")
        if not user_id or not user_login:
            logger.warning("Token missing userId or userLogin")
            return None

        return SessionUser(
            user_id=str(user_id),
            user_login=str(user_login).lower(),
            display_name=str(payload.get("displayName") or user_login),
            scope=payload.get("scope"),
        )
