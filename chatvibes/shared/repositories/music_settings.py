"""Repository for musicSettings documents."""

from __future__ import annotations

from typing import Any

from google.cloud import firestore

from chatvibes.shared.firestore import Collections


class MusicSettingsRepository:
    """Per-channel music request settings; only the ignore list is managed here."""

    def __init__(self, db: firestore.AsyncClient) -> None:
        self.db = db

    def _ref(self, channel_login: str):
        return self.db.collection(Collections.MUSIC_SETTINGS).document(channel_login.lower())

    async def get(self, channel_login: str) -> dict[str, Any] | None:
        snapshot = await self._ref(channel_login).get()
        return snapshot.to_dict() if snapshot.exists else None

    async def create(self, channel_login: str, ignored_users: list[str]) -> None:
        """Create the document with music requests disabled."""
        await self._ref(channel_login).set({"enabled": False, "ignoredUsers": ignored_users})

    async def add_ignored_user(self, channel_login: str, user_login: str) -> None:
        await self._ref(channel_login).update(
            {"ignoredUsers": firestore.ArrayUnion([user_login.lower()])}
        )

    async def remove_ignored_user(self, channel_login: str, user_login: str) -> None:
        await self._ref(channel_login).update(
            {"ignoredUsers": firestore.ArrayRemove([user_login.lower()])}
        )
