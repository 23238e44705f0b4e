"""Voice settings shared by viewer preferences and channel defaults."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class VoiceSettings:
    """Voice parameters; ``None`` means "not set at this level"."""

    voice_id: str | None = None
    emotion: str | None = None
    pitch: float | None = None
    speed: float | None = None
    language_boost: str | None = None
    english_normalization: bool | None = None

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> VoiceSettings:
        data = data or {}
        return cls(
            voice_id=data.get("voiceId"),
            emotion=data.get("emotion"),
            pitch=data.get("pitch"),
            speed=data.get("speed"),
            language_boost=data.get("languageBoost"),
            english_normalization=data.get("englishNormalization"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def to_ui_dict(self) -> dict[str, Any]:
        """Dashboard field names; ``languageBoost`` is shown as ``language``."""
        return {
            "voiceId": self.voice_id,
            "pitch": self.pitch,
            "speed": self.speed,
            "emotion": self.emotion,
            "language": self.language_boost,
            "englishNormalization": self.english_normalization,
        }
