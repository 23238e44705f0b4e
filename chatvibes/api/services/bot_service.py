"""Bot activation service.

Each managed channel is either inactive or active. ``add_bot`` moves it to
active, ``remove_bot`` back to inactive; repeating either is a no-op success.
The moderator grant is a side effect of activation: its failure is reported
to the caller but never rolls the activation back.
"""

import logging
from dataclasses import dataclass

from google.api_core.exceptions import GoogleAPICallError

from chatvibes.shared.models.channel import FULL_TIER, ManagedChannel

from .auth_service import SessionUser
from .channel_service import ChannelService
from .errors import ChannelNotAllowedError, TwitchTokenError
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)


@dataclass
class ModeratorOutcome:
    status: str  # "added", "failed" or "skipped"
    error: str | None = None


class BotService:
    """Toggle the bot's presence in the caller's own channel."""

    def __init__(
        self,
        channel_service: ChannelService,
        twitch_api: TwitchAPIClient,
        bot_username: str = "",
        allowed_channels: list[str] | None = None,
    ) -> None:
        self.channels = channel_service
        self.twitch_api = twitch_api
        self.bot_username = bot_username
        self.allowed_channels = allowed_channels

    def is_allowed(self, channel_login: str) -> bool:
        if self.allowed_channels is None:
            return True
        return channel_login.lower() in self.allowed_channels

    async def get_status(self, user: SessionUser) -> dict:
        login = user.user_login

        # Refresh the token if needed, but report status either way
        try:
            await self.channels.get_valid_token(login, self.twitch_api)
        except (TwitchTokenError, GoogleAPICallError) as e:
            logger.warning(f"Token validation failed for {login}, continuing: {e}")

        channel = await self.channels.get_channel(login)
        if channel and channel.is_active:
            return {
                "success": True,
                "isActive": True,
                "channelName": channel.display_channel_name,
                "needsReAuth": channel.needs_twitch_reauth,
                "oauthTier": channel.oauth_tier,
            }
        return {
            "success": True,
            "isActive": False,
            "channelName": login,
            "needsReAuth": bool(channel and channel.needs_twitch_reauth),
            "oauthTier": channel.oauth_tier if channel else FULL_TIER,
        }

    async def add_bot(self, user: SessionUser) -> dict:
        """Activate the bot for the caller's channel.

        Raises:
            ChannelNotAllowedError: the channel is not on the allow-list.
            TwitchTokenError: no usable Twitch token for the broadcaster.
        """
        login = user.user_login
        if not self.is_allowed(login):
            logger.warning(f"Channel {login} not in allow-list, access denied")
            raise ChannelNotAllowedError(login)

        channel = await self.channels.get_channel(login)
        if channel and channel.is_active:
            logger.info(f"Bot already active in {login}, nothing to do")
            return {
                "success": True,
                "message": "Bot is already active in your channel.",
                "channelName": channel.display_channel_name,
                "alreadyActive": True,
                "oauthTier": channel.oauth_tier,
            }

        access_token = await self.channels.get_valid_token(login, self.twitch_api)

        logger.info(f"Adding bot to channel {login}")
        await self.channels.activate(login, user.user_id, user.display_name)
        logger.info(f"Bot successfully added to channel {login}")

        oauth_tier = channel.oauth_tier if channel else FULL_TIER
        anonymous = channel is not None and channel.is_anonymous_tier
        try:
            outcome = await self._grant_moderator(user.user_id, access_token, anonymous)
        except Exception as e:
            # The channel is already active at this point
            logger.exception(f"Moderator setup failed for {login}: {e}")
            outcome = ModeratorOutcome(status="failed", error=str(e) or type(e).__name__)

        response = {
            "success": True,
            "message": (
                "TTS Service activated in Bot-Free Mode! The bot will not appear in your chat."
                if anonymous
                else "Bot added to your channel successfully!"
            ),
            "channelName": login,
            "moderatorStatus": outcome.status,
            "oauthTier": oauth_tier,
        }
        if outcome.error:
            response["moderatorError"] = outcome.error
        return response

    async def remove_bot(self, user: SessionUser) -> dict:
        """Deactivate the bot for the caller's channel."""
        login = user.user_login
        channel = await self.channels.get_channel(login)

        if channel is None or not channel.is_active:
            logger.info(f"Bot not active in {login}, nothing to remove")
            return {
                "success": True,
                "message": "Bot removed from your channel successfully!",
                "channelName": login,
                "alreadyInactive": True,
            }

        logger.info(f"Removing bot from channel {login}")
        await self._revoke_moderator(channel)
        await self.channels.deactivate(login)
        logger.info(f"Bot successfully removed from channel {login}")

        return {
            "success": True,
            "message": "Bot removed from your channel successfully!",
            "channelName": login,
        }

    async def _resolve_bot_user_id(self) -> str | None:
        if not self.bot_username:
            return None
        return await self.twitch_api.get_user_id_by_login(self.bot_username)

    async def _grant_moderator(
        self, broadcaster_id: str, access_token: str, anonymous: bool
    ) -> ModeratorOutcome:
        if anonymous:
            logger.info("Bot-Free Mode (anonymous tier) - skipping moderator setup")
            return ModeratorOutcome(status="skipped")

        if not self.bot_username:
            logger.warning("TWITCH_BOT_USERNAME not configured, skipping moderator setup")
            return ModeratorOutcome(status="failed", error="Bot username not configured")

        bot_user_id = await self._resolve_bot_user_id()
        if not bot_user_id:
            logger.warning(f"Could not find user ID for bot username {self.bot_username}")
            return ModeratorOutcome(status="failed", error="Bot user not found")

        result = await self.twitch_api.add_moderator(broadcaster_id, bot_user_id, access_token)
        if result.success:
            logger.info(f"Bot added as moderator in channel {broadcaster_id}")
            return ModeratorOutcome(status="added")

        logger.warning(f"Failed to add bot as moderator: {result.error}")
        return ModeratorOutcome(status="failed", error=result.error)

    async def _revoke_moderator(self, channel: ManagedChannel) -> None:
        """Best-effort moderator removal; failures are logged only."""
        if channel.is_anonymous_tier or not self.bot_username or not channel.twitch_user_id:
            return

        try:
            access_token = await self.channels.get_valid_token(
                channel.channel_login, self.twitch_api
            )
        except TwitchTokenError as e:
            logger.warning(f"Skipping moderator removal for {channel.channel_login}: {e}")
            return

        bot_user_id = await self._resolve_bot_user_id()
        if not bot_user_id:
            logger.warning(f"Could not find user ID for bot username {self.bot_username}")
            return

        result = await self.twitch_api.remove_moderator(
            channel.twitch_user_id, bot_user_id, access_token
        )
        if not result.success:
            logger.warning(f"Failed to remove bot as moderator: {result.error}")
