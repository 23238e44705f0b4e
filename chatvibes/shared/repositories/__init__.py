"""Shared Firestore repository layer."""

from .channel import ManagedChannelRepository, TwitchTokenRepository
from .music_settings import MusicSettingsRepository
from .shortlink import ShortlinkRepository
from .tts_config import TTSConfigRepository

__all__ = [
    "ManagedChannelRepository",
    "MusicSettingsRepository",
    "ShortlinkRepository",
    "TTSConfigRepository",
    "TwitchTokenRepository",
]
