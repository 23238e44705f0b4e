"""Data models for managed channels and their Twitch credentials."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

FULL_TIER = "full"
ANONYMOUS_TIER = "anonymous"


def _as_utc(value: Any) -> datetime | None:
    """Firestore returns tz-aware timestamps; treat naive values as UTC."""
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass
class ManagedChannel:
    """A Twitch channel whose bot presence is tracked (``managedChannels``).

    The document id is the lowercased channel login.
    """

    channel_login: str
    twitch_user_id: str | None = None
    twitch_user_login: str | None = None
    twitch_display_name: str | None = None
    channel_name: str | None = None
    is_active: bool = False
    needs_twitch_reauth: bool = False
    twitch_access_token_expires_at: datetime | None = None
    oauth_tier: str = FULL_TIER
    granted_scopes: list[str] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> ManagedChannel:
        user_id = data.get("twitchUserId")
        return cls(
            channel_login=doc_id,
            twitch_user_id=str(user_id) if user_id else None,
            twitch_user_login=data.get("twitchUserLogin"),
            twitch_display_name=data.get("twitchDisplayName"),
            channel_name=data.get("channelName"),
            is_active=data.get("isActive") is True,
            needs_twitch_reauth=data.get("needsTwitchReAuth") is True,
            twitch_access_token_expires_at=_as_utc(data.get("twitchAccessTokenExpiresAt")),
            oauth_tier=data.get("oauthTier") or FULL_TIER,
            granted_scopes=list(data.get("grantedScopes") or []),
        )

    @property
    def display_channel_name(self) -> str:
        return self.channel_name or self.channel_login

    @property
    def is_anonymous_tier(self) -> bool:
        return self.oauth_tier == ANONYMOUS_TIER

