"""Twitch API client service.

Token types:
- App Access Token: For public lookups (users by login). Auto-fetched and cached.
- User Access Token: For broadcaster actions (moderators). Obtained through the
  OAuth flow, stored in Secret Manager, refreshed by ChannelService.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from urllib.parse import quote, urlencode

import httpx

from chatvibes.api.core.logging import redact_sensitive

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"


@dataclass
class TokenRefreshResult:
    """Result of a token refresh operation."""

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    error: str | None = None


@dataclass
class ModeratorResult:
    """Result of a moderator add/remove call."""

    success: bool
    error: str | None = None


class TwitchAPIClient:
    """Client for interacting with Twitch API.

    Manages a shared httpx client for connection reuse and caches
    the app access token to avoid redundant token requests.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http: httpx.AsyncClient | None = None,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret

        # Shared HTTP client, reuses TCP connections across requests
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=10.0)

        # App token cache
        self._app_token: str | None = None
        self._app_token_expires_at: float = 0.0
        self._app_token_lock = asyncio.Lock()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        try:
            data = response.json()
        except ValueError:
            return response.text or None
        if isinstance(data, dict):
            return data.get("message") or data.get("error")
        return None

    async def _ensure_app_token(self) -> str | None:
        """Return a cached app access token, refreshing only when expired."""
        now = time.monotonic()
        if self._app_token and now < self._app_token_expires_at:
            return self._app_token

        async with self._app_token_lock:
            # Double-check after acquiring lock
            now = time.monotonic()
            if self._app_token and now < self._app_token_expires_at:
                return self._app_token

            try:
                response = await self._http.post(
                    f"{OAUTH_BASE}/token",
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "client_credentials",
                    },
                )
                if response.status_code != 200:
                    logger.error(f"Failed to get app token: {response.status_code}")
                    return None

                data = response.json()
                self._app_token = data.get("access_token")
                # Refresh 5 min early
                expires_in = data.get("expires_in", 0)
                self._app_token_expires_at = now + max(expires_in - 300, 0)
                return self._app_token

            except httpx.HTTPError as e:
                logger.error(f"Error getting app access token: {type(e).__name__}: {e}")
                return None

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    def generate_oauth_url(self, redirect_uri: str, scope: str, state: str) -> str:
        """Generate Twitch OAuth authorization URL."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": scope,
            "state": state,
            "force_verify": "true",
        }
        return f"{OAUTH_BASE}/authorize?{urlencode(params, quote_via=quote)}"

    async def exchange_code_for_token(self, code: str, redirect_uri: str) -> dict | None:
        """Exchange an OAuth code for user tokens.

        Returns the raw token payload (access_token, refresh_token, expires_in,
        scope) or None on failure.
        """
        try:
            response = await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": redirect_uri,
                },
            )
        except httpx.TimeoutException:
            logger.error("Timeout while exchanging code for token")
            return None
        except httpx.HTTPError as e:
            logger.error(f"Error exchanging code: {type(e).__name__}: {e}")
            return None

        if response.status_code != 200:
            logger.error(
                f"Failed to exchange code: {response.status_code} "
                f"{self._error_message(response)}"
            )
            return None

        return response.json()

    async def validate_token(self, access_token: str) -> dict | None:
        """Validate an access token; returns client_id/login/user_id/scopes/expires_in."""
        try:
            response = await self._http.get(
                f"{OAUTH_BASE}/validate",
                headers={"Authorization": f"OAuth {access_token}"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Token validation failed: {e}")
            return None

        if response.status_code != 200:
            logger.warning(f"Token validation rejected: {response.status_code}")
            return None
        return response.json()

    async def refresh_access_token(self, refresh_token: str) -> TokenRefreshResult:
        """Refresh a user's access token using their refresh token.

        Twitch rotates the refresh token as well; callers must persist both.
        """
        try:
            response = await self._http.post(
                f"{OAUTH_BASE}/token",
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
            )
        except httpx.TimeoutException:
            logger.error("Timeout while refreshing token")
            return TokenRefreshResult(success=False, error="timeout")
        except httpx.HTTPError as e:
            logger.error(f"Error refreshing token: {type(e).__name__}: {e}")
            return TokenRefreshResult(success=False, error=str(e))

        if response.status_code != 200:
            error_msg = self._error_message(response) or f"HTTP {response.status_code}"
            logger.error(f"Token refresh failed: {error_msg}")
            return TokenRefreshResult(success=False, error=error_msg)

        data = response.json()
        new_access_token = data.get("access_token")
        if not new_access_token:
            logger.error(f"No access_token in refresh response: {redact_sensitive(data)}")
            return TokenRefreshResult(success=False, error="No access_token in refresh response")

        logger.debug("Successfully refreshed user access token")
        return TokenRefreshResult(
            success=True,
            access_token=new_access_token,
            refresh_token=data.get("refresh_token") or refresh_token,
            expires_in=data.get("expires_in"),
        )

    # ------------------------------------------------------------------
    # User data
    # ------------------------------------------------------------------

    async def get_user(self, access_token: str) -> dict | None:
        """Get the user that owns *access_token* (includes email when scoped)."""
        try:
            response = await self._http.get(
                f"{HELIX_BASE}/users",
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Helix GET /users error: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Failed to fetch token user: {response.status_code}")
            return None

        users = response.json().get("data", [])
        return users[0] if users else None

    async def get_user_id_by_login(self, login: str) -> str | None:
        """Look up a Twitch user id by login name (app token)."""
        token = await self._ensure_app_token()
        if not token:
            return None

        try:
            response = await self._http.get(
                f"{HELIX_BASE}/users",
                params={"login": login.lower()},
                headers=self._headers(token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Error looking up user {login}: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Failed to fetch user {login}: {response.status_code}")
            return None

        users = response.json().get("data", [])
        if not users:
            logger.warning(f"No user found for login: {login}")
            return None
        return users[0].get("id")

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    async def add_moderator(
        self, broadcaster_id: str, user_id: str, access_token: str
    ) -> ModeratorResult:
        """Add *user_id* as a moderator of *broadcaster_id*'s channel."""
        try:
            response = await self._http.post(
                f"{HELIX_BASE}/moderation/moderators",
                params={"broadcaster_id": broadcaster_id, "user_id": user_id},
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Error adding moderator {user_id} to {broadcaster_id}: {e}")
            return ModeratorResult(success=False, error=str(e) or "Unknown error occurred")

        status = response.status_code
        if status == 204:
            logger.info(f"Added moderator {user_id} to broadcaster {broadcaster_id}")
            return ModeratorResult(success=True)

        message = self._error_message(response)

        if status == 401:
            logger.warning("Moderator add rejected - missing channel:manage:moderators scope?")
            return ModeratorResult(
                success=False,
                error="Authentication failed. Missing required scope or invalid token. "
                "Please re-authenticate.",
            )

        if status == 403:
            # Twitch answers 403 when the user is already a moderator
            logger.info(f"User {user_id} is already a moderator of {broadcaster_id}")
            return ModeratorResult(success=True)

        if status == 400:
            logger.warning(f"Cannot add {user_id} as moderator: {message}")
            return ModeratorResult(
                success=False,
                error=message
                or "User cannot be added as moderator (may be banned, VIP, or invalid parameters)",
            )

        logger.error(f"Error adding moderator: {status} {message}")
        return ModeratorResult(success=False, error=message or f"Unexpected status: {status}")

    async def remove_moderator(
        self, broadcaster_id: str, user_id: str, access_token: str
    ) -> ModeratorResult:
        """Remove *user_id* from *broadcaster_id*'s moderators."""
        try:
            response = await self._http.delete(
                f"{HELIX_BASE}/moderation/moderators",
                params={"broadcaster_id": broadcaster_id, "user_id": user_id},
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Error removing moderator {user_id} from {broadcaster_id}: {e}")
            return ModeratorResult(success=False, error=str(e) or "Unknown error occurred")

        status = response.status_code
        if status == 204:
            logger.info(f"Removed moderator {user_id} from broadcaster {broadcaster_id}")
            return ModeratorResult(success=True)

        message = self._error_message(response)
        if status == 400 and message and "not a moderator" in message.lower():
            logger.info(f"User {user_id} was not a moderator of {broadcaster_id}")
            return ModeratorResult(success=True)

        logger.warning(f"Moderator removal failed: {status} {message}")
        return ModeratorResult(success=False, error=message or f"Unexpected status: {status}")

    # ------------------------------------------------------------------
    # Channel points
    # ------------------------------------------------------------------

    async def get_custom_rewards(
        self,
        broadcaster_id: str,
        access_token: str,
        reward_id: str | None = None,
        only_manageable: bool = False,
    ) -> list[dict] | None:
        """List the broadcaster's custom rewards; None when the call fails."""
        params = {"broadcaster_id": broadcaster_id}
        if reward_id:
            params["id"] = reward_id
        if only_manageable:
            params["only_manageable_rewards"] = "true"

        try:
            response = await self._http.get(
                f"{HELIX_BASE}/channel_points/custom_rewards",
                params=params,
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Error listing custom rewards for {broadcaster_id}: {e}")
            return None

        if response.status_code != 200:
            logger.warning(
                f"Failed to list custom rewards: {response.status_code} "
                f"{self._error_message(response)}"
            )
            return None
        return response.json().get("data", [])

    async def create_custom_reward(
        self, broadcaster_id: str, body: dict, access_token: str
    ) -> dict | None:
        """Create a custom reward; returns the created reward or None."""
        try:
            response = await self._http.post(
                f"{HELIX_BASE}/channel_points/custom_rewards",
                params={"broadcaster_id": broadcaster_id},
                json=body,
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Error creating custom reward for {broadcaster_id}: {e}")
            return None

        if response.status_code != 200:
            logger.error(
                f"Failed to create custom reward: {response.status_code} "
                f"{self._error_message(response)}"
            )
            return None

        rewards = response.json().get("data", [])
        return rewards[0] if rewards else None

    async def update_custom_reward(
        self, broadcaster_id: str, reward_id: str, body: dict, access_token: str
    ) -> bool:
        try:
            response = await self._http.patch(
                f"{HELIX_BASE}/channel_points/custom_rewards",
                params={"broadcaster_id": broadcaster_id, "id": reward_id},
                json=body,
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Error updating custom reward {reward_id}: {e}")
            return False

        if response.status_code != 200:
            logger.warning(
                f"Failed to update custom reward {reward_id}: {response.status_code} "
                f"{self._error_message(response)}"
            )
            return False
        return True

    async def delete_custom_reward(
        self, broadcaster_id: str, reward_id: str, access_token: str
    ) -> bool:
        try:
            response = await self._http.delete(
                f"{HELIX_BASE}/channel_points/custom_rewards",
                params={"broadcaster_id": broadcaster_id, "id": reward_id},
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Error deleting custom reward {reward_id}: {e}")
            return False

        if response.status_code != 204:
            logger.warning(
                f"Failed to delete custom reward {reward_id}: {response.status_code} "
                f"{self._error_message(response)}"
            )
            return False
        return True
