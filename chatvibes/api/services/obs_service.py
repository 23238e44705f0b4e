"""OBS browser-source token service.

The token authenticates the overlay URL a streamer pastes into OBS. Its value
lives in Secret Manager (``obs-token-{channel}``); the channel's TTS config
keeps the version reference in ``obsSocketSecretName``. Older channels carry
the reference as ``obsTokenSecretName`` on the managed channel instead.
"""

import logging
from datetime import UTC, datetime
from secrets import token_hex
from urllib.parse import quote

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore

from chatvibes.shared.repositories import ManagedChannelRepository, TTSConfigRepository
from chatvibes.shared.secrets import SecretStore, obs_token_secret_id

from .channel_service import ChannelService
from .errors import ObsTokenError, TwitchTokenError
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

REAUTH_MESSAGE = "Your Twitch authentication has expired. Please reconnect your account."


class ObsService:
    def __init__(
        self,
        db: firestore.AsyncClient,
        secrets: SecretStore,
        channel_service: ChannelService,
        twitch_api: TwitchAPIClient,
        browser_base_url: str,
    ) -> None:
        self.channels = ManagedChannelRepository(db)
        self.tts_configs = TTSConfigRepository(db)
        self.secrets = secrets
        self.channel_service = channel_service
        self.twitch_api = twitch_api
        self.browser_base_url = browser_base_url.rstrip("/")

    def browser_source_url(self, channel_login: str, token: str) -> str:
        return f"{self.browser_base_url}/?channel={quote(channel_login)}&token={token}"

    def _response(self, channel_login: str, token: str) -> dict:
        return {
            "success": True,
            "token": token,
            "browserSourceUrl": self.browser_source_url(channel_login, token),
        }

    async def _require_twitch_auth(self, channel_login: str) -> None:
        try:
            await self.channel_service.get_valid_token(channel_login, self.twitch_api)
        except TwitchTokenError as e:
            logger.warning(f"OBS token refused for {channel_login}: {e}")
            raise ObsTokenError(REAUTH_MESSAGE, status_code=403, needs_reauth=True) from None

    async def _read_reference(self, channel_login: str, version_name: str | None) -> str | None:
        if not version_name:
            return None
        try:
            return await self.secrets.access_version(version_name)
        except GoogleAPICallError as e:
            logger.warning(f"Failed to read OBS token for {channel_login}: {e}")
            return None

    async def _existing_token(self, channel_login: str) -> str | None:
        config = await self.tts_configs.get_channel_config(channel_login) or {}
        token = await self._read_reference(channel_login, config.get("obsSocketSecretName"))
        if token:
            logger.info(f"Retrieved existing OBS token for {channel_login}")
            return token

        channel = await self.channels.get_document(channel_login) or {}
        token = await self._read_reference(channel_login, channel.get("obsTokenSecretName"))
        if token:
            logger.info(f"Retrieved legacy OBS token for {channel_login}")
        return token

    async def _issue_token(self, channel_login: str) -> str:
        token = token_hex(32)
        try:
            version_name = await self.secrets.put(obs_token_secret_id(channel_login), token)
            await self.tts_configs.merge_channel_config(
                channel_login,
                {"obsSocketSecretName": version_name, "updatedAt": firestore.SERVER_TIMESTAMP},
            )
            await self.channels.upsert(channel_login, {"obsTokenGeneratedAt": datetime.now(UTC)})
        except GoogleAPICallError as e:
            logger.error(f"Failed to store OBS token for {channel_login}: {e}")
            raise ObsTokenError("Failed to generate OBS token. Please try again.") from None

        logger.info(f"Generated new OBS token for {channel_login}")
        return token

    async def get_token(self, channel_login: str) -> dict:
        """Return the channel's OBS token, issuing one on first use."""
        await self._require_twitch_auth(channel_login)
        token = await self._existing_token(channel_login)
        if token is None:
            token = await self._issue_token(channel_login)
        return self._response(channel_login, token)

    async def generate_token(self, channel_login: str) -> dict:
        """Rotate the channel's OBS token; the old browser-source URL stops working."""
        await self._require_twitch_auth(channel_login)
        token = await self._issue_token(channel_login)
        return {**self._response(channel_login, token), "message": "New OBS token generated successfully"}
