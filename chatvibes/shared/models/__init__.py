"""Shared document models for the ChatVibes backend."""

from .channel import ANONYMOUS_TIER, FULL_TIER, ManagedChannel
from .shortlink import Shortlink
from .tts import VoiceSettings

__all__ = [
    "ANONYMOUS_TIER",
    "FULL_TIER",
    "ManagedChannel",
    "Shortlink",
    "VoiceSettings",
]
