"""Shortlink document model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class Shortlink:
    """A slug -> URL mapping with a click counter (``shortlinks``)."""

    slug: str
    url: str
    clicks: int = 0
    created_at: datetime | None = None
    last_clicked_at: datetime | None = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> Shortlink:
        return cls(
            slug=doc_id,
            url=data.get("url") or "",
            clicks=int(data.get("clicks") or 0),
            created_at=data.get("createdAt"),
            last_clicked_at=data.get("lastClickedAt"),
        )
