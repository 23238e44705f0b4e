"""Channel and Twitch credential service.

Firestore and Secret Manager access is delegated to the shared repositories.
This service adds
token lifecycle handling (expiry buffer, refresh, re-auth marking) and the
channel activation writes used by the bot endpoints.
"""

import logging
from datetime import UTC, datetime, timedelta

from google.cloud import firestore

from chatvibes.shared.models.channel import ANONYMOUS_TIER, ManagedChannel
from chatvibes.shared.repositories import (
    ManagedChannelRepository,
    TTSConfigRepository,
    TwitchTokenRepository,
)
from chatvibes.shared.secrets import SecretStore

from .errors import TwitchTokenError
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

# Tokens closer than this to expiry are refreshed before use
TOKEN_REFRESH_BUFFER = timedelta(minutes=5)

# Twitch user tokens live ~4h; used when a refresh response omits expires_in
DEFAULT_TOKEN_LIFETIME = timedelta(hours=4)


class ChannelService:
    """API-facing managed channel / token operations."""

    def __init__(self, db: firestore.AsyncClient, secrets: SecretStore) -> None:
        self.channels = ManagedChannelRepository(db)
        self.tokens = TwitchTokenRepository(secrets)
        self.tts_configs = TTSConfigRepository(db)

    async def get_channel(self, channel_login: str) -> ManagedChannel | None:
        return await self.channels.get(channel_login)

    # ==================== OAuth ====================

    async def save_authorization(
        self,
        *,
        user_id: str,
        user_login: str,
        display_name: str,
        email: str | None,
        access_token: str,
        refresh_token: str,
        expires_in: int,
        oauth_tier: str,
        granted_scopes: list[str],
    ) -> None:
        """Persist a streamer's fresh OAuth grant and sync the TTS bot mode."""
        login = user_login.lower()
        await self.tokens.save(user_id, access_token, refresh_token)
        await self.channels.upsert(
            login,
            {
                "channelName": login,
                "twitchUserId": user_id,
                "twitchUserLogin": login,
                "twitchDisplayName": display_name,
                "email": email,
                "twitchAccessTokenExpiresAt": datetime.now(UTC) + timedelta(seconds=expires_in),
                "needsTwitchReAuth": False,
                "lastTokenError": None,
                "lastTokenErrorAt": None,
                "oauthTier": oauth_tier,
                "grantedScopes": granted_scopes,
            },
        )

        bot_mode = "anonymous" if oauth_tier == ANONYMOUS_TIER else "authenticated"
        await self.tts_configs.set_bot_mode(login, bot_mode)
        logger.info(f"Stored Twitch authorization for {login} (tier={oauth_tier}, botMode={bot_mode})")

    # ==================== Token ====================

    async def get_valid_token(self, channel_login: str, twitch_api: TwitchAPIClient) -> str:
        """Return a usable user access token, refreshing it when close to expiry.

        Raises:
            TwitchTokenError: no channel, re-auth required, or refresh failed.
                A failed refresh flags the channel with ``needsTwitchReAuth``.
        """
        login = channel_login.lower()
        channel = await self.channels.get(login)

        if channel is None:
            logger.error(f"User {login} not found in managed channels")
            raise TwitchTokenError("User not found in managed channels.")

        if channel.needs_twitch_reauth:
            logger.warning(f"User {login} needs to re-authenticate with Twitch")
            raise TwitchTokenError("User needs to re-authenticate with Twitch.", needs_reauth=True)

        if not channel.twitch_user_id:
            logger.error(f"User {login} missing twitchUserId")
            raise TwitchTokenError("User missing Twitch user ID.")

        now = datetime.now(UTC)
        user_id = channel.twitch_user_id
        expires_at = channel.twitch_access_token_expires_at

        if expires_at and expires_at - now > TOKEN_REFRESH_BUFFER:
            access_token = await self.tokens.get_access_token(user_id)
            if access_token:
                logger.debug(f"Using existing valid token for {login}")
                return access_token
            logger.warning(f"No stored access token for {login}")

        logger.info(f"Token expired or missing for {login}, refreshing...")

        refresh_token = await self.tokens.get_refresh_token(user_id)
        if refresh_token:
            result = await twitch_api.refresh_access_token(refresh_token)
            if result.success and result.access_token:
                lifetime = (
                    timedelta(seconds=result.expires_in)
                    if result.expires_in
                    else DEFAULT_TOKEN_LIFETIME
                )
                await self.tokens.save(
                    user_id,
                    result.access_token,
                    result.refresh_token or refresh_token,
                )
                await self.channels.update(
                    login,
                    {
                        "twitchAccessTokenExpiresAt": now + lifetime,
                        "lastTokenError": None,
                        "lastTokenErrorAt": None,
                    },
                )
                logger.info(f"Successfully refreshed token for {login}")
                return result.access_token
            error = result.error or "Token refresh failed"
        else:
            error = "No refresh token stored"

        logger.error(f"Failed to refresh token for {login}: {error}")
        await self.channels.update(
            login,
            {
                "needsTwitchReAuth": True,
                "lastTokenError": error,
                "lastTokenErrorAt": firestore.SERVER_TIMESTAMP,
            },
        )
        raise TwitchTokenError(
            "Token refresh failed, user needs to re-authenticate", needs_reauth=True
        )

    async def get_token_status(self, channel_login: str) -> tuple[str, bool]:
        """Return ``(twitchTokenStatus, needsTwitchReAuth)`` for the dashboard.

        Status is one of ``not_found``, ``needs_reauth``, ``expired``, ``valid``.
        """
        channel = await self.channels.get(channel_login)
        if channel is None:
            return "not_found", True
        if channel.needs_twitch_reauth:
            return "needs_reauth", True

        expires_at = channel.twitch_access_token_expires_at
        if expires_at and expires_at <= datetime.now(UTC):
            return "expired", False
        return "valid", False

    # ==================== Activation ====================

    async def activate(self, channel_login: str, user_id: str, display_name: str) -> None:
        login = channel_login.lower()
        await self.channels.upsert(
            login,
            {
                "isActive": True,
                "twitchUserId": user_id,
                "twitchUserLogin": login,
                "twitchDisplayName": display_name,
                "channelName": login,
                "addedAt": firestore.SERVER_TIMESTAMP,
            },
        )
        logger.debug(f"Channel {login} activated")

    async def deactivate(self, channel_login: str) -> None:
        login = channel_login.lower()
        await self.channels.update(
            login,
            {
                "isActive": False,
                "removedAt": firestore.SERVER_TIMESTAMP,
            },
        )
        logger.debug(f"Channel {login} deactivated")
