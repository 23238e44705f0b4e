"""Repository for shortlinks documents."""

from __future__ import annotations

from google.cloud import firestore

from chatvibes.shared.firestore import Collections
from chatvibes.shared.models.shortlink import Shortlink


class ShortlinkRepository:
    """Pure Firestore operations for ``shortlinks``."""

    def __init__(self, db: firestore.AsyncClient) -> None:
        self.db = db

    def _ref(self, slug: str):
        return self.db.collection(Collections.SHORTLINKS).document(slug)

    async def create(self, slug: str, url: str) -> None:
        """Create a new shortlink; raises ``AlreadyExists`` if the slug is taken."""
        await self._ref(slug).create(
            {
                "url": url,
                "clicks": 0,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )

    async def get(self, slug: str) -> Shortlink | None:
        snapshot = await self._ref(slug).get()
        if not snapshot.exists:
            return None
        return Shortlink.from_document(snapshot.id, snapshot.to_dict() or {})

    async def record_click(self, slug: str) -> None:
        """Atomically bump the click counter."""
        await self._ref(slug).update(
            {
                "clicks": firestore.Increment(1),
                "lastClickedAt": firestore.SERVER_TIMESTAMP,
            }
        )
