"""Viewer preference service.

Viewers keep one global set of voice preferences (``ttsUserPreferences``)
that applies in every channel. Per-channel endpoints read and write the same
global document; the channel only decides whether the request is allowed and
which defaults and ignore flags are reported alongside.
"""

import logging
from typing import Any

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore

from chatvibes.shared.models.tts import VoiceSettings
from chatvibes.shared.repositories import MusicSettingsRepository, TTSConfigRepository

from .errors import ViewerPreferenceError
from .tts_service import (
    normalize_emotion,
    validate_emotion,
    validate_language_boost,
    validate_pitch,
    validate_speed,
)

logger = logging.getLogger(__name__)

CHANNEL_NOT_FOUND = "Channel not found or TTS not enabled"


def build_preference_update(updates: dict[str, Any]) -> dict[str, Any]:
    """Validate dashboard fields and map them to stored field names.

    Only keys present in *updates* are written; an explicit ``None`` clears the
    stored value.

    Raises:
        ViewerPreferenceError: 400 for the first invalid value.
    """
    fields: dict[str, Any] = {}

    if "voiceId" in updates:
        fields["voiceId"] = updates["voiceId"] or None

    if "pitch" in updates:
        pitch = updates["pitch"]
        if pitch is not None and not validate_pitch(pitch):
            raise ViewerPreferenceError(400, "Invalid pitch value")
        fields["pitch"] = pitch

    if "speed" in updates:
        speed = updates["speed"]
        if speed is not None and not validate_speed(speed):
            raise ViewerPreferenceError(400, "Invalid speed value")
        fields["speed"] = speed

    if "emotion" in updates:
        emotion = normalize_emotion(updates["emotion"])
        if emotion is not None and not validate_emotion(emotion):
            raise ViewerPreferenceError(400, "Invalid emotion value")
        fields["emotion"] = emotion

    if "language" in updates:
        language = updates["language"]
        if language is not None and not validate_language_boost(language):
            raise ViewerPreferenceError(400, "Invalid language value")
        fields["languageBoost"] = language

    if "englishNormalization" in updates:
        fields["englishNormalization"] = bool(updates["englishNormalization"])

    return fields


def _channel_defaults(config: dict[str, Any]) -> dict[str, Any]:
    defaults = VoiceSettings.from_document(config).to_ui_dict()
    # Unset and zero-valued channel fields both read as "no default"
    return {
        key: (value if key == "englishNormalization" else value or None)
        for key, value in defaults.items()
    }


class ViewerService:
    def __init__(self, db: firestore.AsyncClient) -> None:
        self.tts_configs = TTSConfigRepository(db)
        self.music = MusicSettingsRepository(db)

    async def _load_preferences(self, user_login: str) -> VoiceSettings:
        try:
            return await self.tts_configs.get_user_preferences(user_login)
        except GoogleAPICallError as e:
            logger.warning(f"Failed to load global preferences for {user_login}: {e}")
            return VoiceSettings()

    async def _require_channel(self, channel: str) -> dict[str, Any]:
        config = await self.tts_configs.get_channel_config(channel)
        if config is None:
            raise ViewerPreferenceError(404, CHANNEL_NOT_FOUND)
        return config

    # ==================== Preferences ====================

    async def get_preferences(self, user_login: str) -> dict[str, Any]:
        prefs = await self._load_preferences(user_login)
        return prefs.to_ui_dict()

    async def update_preferences(self, user_login: str, updates: dict[str, Any]) -> None:
        fields = build_preference_update(updates)
        await self.tts_configs.update_user_preferences(user_login, fields)
        logger.info(f"Global preferences updated for {user_login}: {sorted(fields)}")

    async def get_channel_preferences(self, user_login: str, channel: str) -> dict[str, Any]:
        """Global preferences plus the channel's defaults and ignore flags."""
        login = user_login.lower()
        config = await self._require_channel(channel)
        prefs = await self._load_preferences(login)

        music_ignored = False
        try:
            music = await self.music.get(channel)
            music_ignored = login in ((music or {}).get("ignoredUsers") or [])
        except GoogleAPICallError as e:
            logger.warning(f"Failed to check music ignore status in {channel}: {e}")

        return {
            **prefs.to_ui_dict(),
            "ttsIgnored": login in (config.get("ignoredUsers") or []),
            "musicIgnored": music_ignored,
            "channelExists": True,
            "channelDefaults": _channel_defaults(config),
        }

    async def update_channel_preferences(
        self, user_login: str, channel: str, updates: dict[str, Any]
    ) -> None:
        await self._require_channel(channel)
        fields = build_preference_update(updates)
        await self.tts_configs.update_user_preferences(user_login, fields)
        logger.info(f"Preferences updated for {user_login} from {channel}: {sorted(fields)}")

    # ==================== Ignore lists ====================

    async def toggle_tts_ignore(self, user_login: str, channel: str) -> bool:
        """Flip the viewer's TTS ignore flag in *channel*; returns the new state."""
        login = user_login.lower()
        config = await self.tts_configs.get_channel_config(channel)
        if config is None:
            raise ViewerPreferenceError(404, "Channel not found")

        if login in (config.get("ignoredUsers") or []):
            await self.tts_configs.remove_ignored_user(channel, login)
            logger.info(f"Removed {login} from TTS ignore list for {channel}")
            return False

        await self.tts_configs.add_ignored_user(channel, login)
        logger.info(f"Added {login} to TTS ignore list for {channel}")
        return True

    async def toggle_music_ignore(self, user_login: str, channel: str) -> bool:
        """Flip the viewer's music ignore flag in *channel*; returns the new state."""
        login = user_login.lower()
        music = await self.music.get(channel)

        if music is None:
            await self.music.create(channel, [login])
            logger.info(f"Created music settings for {channel} ignoring {login}")
            return True

        if login in (music.get("ignoredUsers") or []):
            await self.music.remove_ignored_user(channel, login)
            logger.info(f"Removed {login} from music ignore list for {channel}")
            return False

        await self.music.add_ignored_user(channel, login)
        logger.info(f"Added {login} to music ignore list for {channel}")
        return True
