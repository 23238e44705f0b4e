"""Repository for ttsChannelConfigs and ttsUserPreferences documents."""

from __future__ import annotations

from typing import Any

from google.cloud import firestore

from chatvibes.shared.firestore import Collections
from chatvibes.shared.models.tts import VoiceSettings


class TTSConfigRepository:
    """Voice defaults, viewer preferences and per-channel TTS settings."""

    def __init__(self, db: firestore.AsyncClient) -> None:
        self.db = db

    def _channel_ref(self, channel_login: str):
        return self.db.collection(Collections.TTS_CHANNEL_CONFIGS).document(channel_login.lower())

    def _user_ref(self, user_login: str):
        return self.db.collection(Collections.TTS_USER_PREFERENCES).document(user_login.lower())

    # ==================== Viewer preferences ====================

    async def get_user_preferences(self, user_login: str) -> VoiceSettings:
        snapshot = await self._user_ref(user_login).get()
        return VoiceSettings.from_document(snapshot.to_dict() if snapshot.exists else None)

    async def update_user_preferences(self, user_login: str, fields: dict[str, Any]) -> None:
        """Merge *fields* (stored field names) into the viewer's global preferences."""
        await self._user_ref(user_login).set(fields, merge=True)

    # ==================== Channel config ====================

    async def get_channel_config(self, channel_login: str) -> dict[str, Any] | None:
        """Raw channel config document, or None when TTS is not set up for it."""
        snapshot = await self._channel_ref(channel_login).get()
        return snapshot.to_dict() if snapshot.exists else None

    async def get_channel_defaults(self, channel_login: str) -> VoiceSettings:
        return VoiceSettings.from_document(await self.get_channel_config(channel_login))

    async def merge_channel_config(self, channel_login: str, fields: dict[str, Any]) -> None:
        await self._channel_ref(channel_login).set(fields, merge=True)

    async def set_bot_mode(self, channel_login: str, bot_mode: str) -> None:
        await self.merge_channel_config(channel_login, {"botMode": bot_mode})

    async def add_ignored_user(self, channel_login: str, user_login: str) -> None:
        await self._channel_ref(channel_login).update(
            {"ignoredUsers": firestore.ArrayUnion([user_login.lower()])}
        )

    async def remove_ignored_user(self, channel_login: str, user_login: str) -> None:
        await self._channel_ref(channel_login).update(
            {"ignoredUsers": firestore.ArrayRemove([user_login.lower()])}
        )
