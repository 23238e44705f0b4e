"""Repositories for managed channels and their Twitch credentials."""

from __future__ import annotations

import logging
from typing import Any

from google.cloud import firestore

from chatvibes.shared.firestore import Collections
from chatvibes.shared.models.channel import ManagedChannel
from chatvibes.shared.secrets import (
    SecretStore,
    twitch_access_token_secret_id,
    twitch_refresh_token_secret_id,
)

logger = logging.getLogger(__name__)


class ManagedChannelRepository:
    """Pure Firestore operations for ``managedChannels``."""

    def __init__(self, db: firestore.AsyncClient) -> None:
        self.db = db

    def _ref(self, channel_login: str):
        return self.db.collection(Collections.MANAGED_CHANNELS).document(channel_login.lower())

    async def get(self, channel_login: str) -> ManagedChannel | None:
        snapshot = await self._ref(channel_login).get()
        if not snapshot.exists:
            return None
        return ManagedChannel.from_document(snapshot.id, snapshot.to_dict() or {})

    async def get_document(self, channel_login: str) -> dict[str, Any] | None:
        """Raw document, for fields the model does not carry."""
        snapshot = await self._ref(channel_login).get()
        return snapshot.to_dict() if snapshot.exists else None

    async def upsert(self, channel_login: str, fields: dict[str, Any]) -> None:
        """Merge *fields* into the channel document, creating it if needed."""
        await self._ref(channel_login).set(fields, merge=True)

    async def update(self, channel_login: str, fields: dict[str, Any]) -> None:
        """Update an existing channel document (raises NotFound if missing)."""
        await self._ref(channel_login).update(fields)


class TwitchTokenRepository:
    """Twitch user tokens in Secret Manager, keyed by Twitch user id.

    Each user has two secrets, ``twitch-access-token-{id}`` and
    ``twitch-refresh-token-{id}``. Expiry lives on the channel document.
    """

    def __init__(self, secrets: SecretStore) -> None:
        self.secrets = secrets

    async def get_access_token(self, user_id: str) -> str | None:
        return await self.secrets.access(twitch_access_token_secret_id(user_id))

    async def get_refresh_token(self, user_id: str) -> str | None:
        return await self.secrets.access(twitch_refresh_token_secret_id(user_id))

    async def save(self, user_id: str, access_token: str, refresh_token: str) -> None:
        await self.secrets.put(twitch_access_token_secret_id(user_id), access_token)
        await self.secrets.put(twitch_refresh_token_secret_id(user_id), refresh_token)
        logger.debug(f"Stored Twitch tokens for user {user_id}")
