"""TTS test synthesis through Wavespeed AI.

Parameters resolve per field: request value, then the viewer's saved
preferences, then the channel defaults. Empty strings and nulls are skipped
at every level.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from google.api_core.exceptions import GoogleAPICallError
from google.cloud import firestore

from chatvibes.api.core.logging import redact_sensitive
from chatvibes.shared.models.tts import VoiceSettings
from chatvibes.shared.repositories import TTSConfigRepository

from .errors import TTSProviderError

logger = logging.getLogger(__name__)

WAVESPEED_MODEL = "minimax/speech-02-turbo"
WAVESPEED_URL = f"https://api.wavespeed.ai/api/v3/{WAVESPEED_MODEL}"
WAVESPEED_TIMEOUT = 60.0

DEFAULT_VOICE_ID = "Friendly_Person"

EMOTION_SYNONYMS = {
    "auto": "neutral",
    "fear": "fearful",
    "surprise": "surprised",
    "disgust": "disgusted",
}

VALID_EMOTIONS = {"neutral", "happy", "sad", "angry", "fearful", "disgusted", "surprised"}

VALID_LANGUAGE_BOOSTS = {
    "auto", "English", "Chinese", "Chinese,Yue", "Spanish", "Hindi",
    "Portuguese", "Russian", "Japanese", "Korean", "Vietnamese", "Arabic",
    "French", "German", "Turkish", "Dutch", "Ukrainian", "Indonesian",
    "Italian", "Thai", "Polish", "Romanian", "Greek", "Czech", "Finnish",
}


# ==================== Validation ====================


def normalize_emotion(emotion: str | None) -> str | None:
    """Map synonyms to the provider's canonical emotion tokens."""
    if emotion is None or emotion == "":
        return None
    raw = str(emotion).strip().lower()
    return EMOTION_SYNONYMS.get(raw, raw)


def normalize_language_boost(language_boost: str | None) -> str:
    if not language_boost or language_boost in ("Automatic", "None"):
        return "auto"
    return language_boost


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_speed(speed: Any) -> bool:
    return _is_number(speed) and 0.5 <= speed <= 2.0


def validate_pitch(pitch: Any) -> bool:
    return _is_number(pitch) and -12 <= pitch <= 12


def validate_emotion(emotion: str | None) -> bool:
    if emotion is None:
        return True
    return normalize_emotion(emotion) in VALID_EMOTIONS


def validate_language_boost(language_boost: Any) -> bool:
    return isinstance(language_boost, str) and language_boost in VALID_LANGUAGE_BOOSTS


# ==================== Parameter resolution ====================


def _pick(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def resolve_effective_params(
    request: VoiceSettings,
    user_prefs: VoiceSettings | None = None,
    channel_defaults: VoiceSettings | None = None,
) -> VoiceSettings:
    """Merge the three levels field by field, first non-empty value wins."""
    user_prefs = user_prefs or VoiceSettings()
    channel_defaults = channel_defaults or VoiceSettings()
    return VoiceSettings(
        voice_id=_pick(request.voice_id, user_prefs.voice_id, channel_defaults.voice_id),
        emotion=normalize_emotion(
            _pick(request.emotion, user_prefs.emotion, channel_defaults.emotion)
        ),
        pitch=_pick(request.pitch, user_prefs.pitch, channel_defaults.pitch),
        speed=_pick(request.speed, user_prefs.speed, channel_defaults.speed),
        language_boost=_pick(
            request.language_boost, user_prefs.language_boost, channel_defaults.language_boost
        ),
    )


# ==================== Provider ====================


@dataclass
class SynthesisResult:
    audio_url: str
    provider: str = "wavespeed"
    model: str = WAVESPEED_MODEL

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "audioUrl": self.audio_url,
            "provider": self.provider,
            "model": self.model,
        }


def _voice_error(message: str, voice_id: str | None) -> TTSProviderError | None:
    if "you don't have access to this voice_id" in message:
        return TTSProviderError(
            403,
            f'Voice access denied: The voice "{voice_id}" requires special access '
            "permissions. Please try a different voice.",
        )
    if "voice_id" in message:
        return TTSProviderError(
            400,
            f'Invalid voice: "{voice_id}" is not available. '
            "Please check the voice ID and try again.",
        )
    return None


class WavespeedClient:
    """Minimal client for the Wavespeed sync speech endpoint."""

    def __init__(self, api_key: str, http: httpx.AsyncClient | None) -> None:
        self.api_key = api_key
        self._http = http

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def build_payload(self, text: str, params: VoiceSettings) -> dict[str, Any]:
        return {
            "text": text,
            "voice_id": params.voice_id or DEFAULT_VOICE_ID,
            "speed": params.speed if _is_number(params.speed) else 1.0,
            "volume": 1.0,
            "pitch": params.pitch if _is_number(params.pitch) else 0,
            "emotion": params.emotion or "neutral",
            "language_boost": normalize_language_boost(params.language_boost),
            "english_normalization": False,
            "sample_rate": 32000,
            "bitrate": 128000,
            "channel": "1",
            "format": "mp3",
            "enable_sync_mode": True,
        }

    async def synthesize(self, text: str, params: VoiceSettings) -> SynthesisResult:
        """Generate audio and return its URL.

        Raises:
            TTSProviderError: with the HTTP status the caller should answer with.
        """
        if self._http is None:
            raise TTSProviderError(500, "TTS generation failed")

        try:
            response = await self._http.post(
                WAVESPEED_URL,
                json=self.build_payload(text, params),
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=WAVESPEED_TIMEOUT,
            )
        except httpx.HTTPError as e:
            logger.error(f"Wavespeed AI call failed: {type(e).__name__}: {e}")
            raise TTSProviderError(500, "TTS generation failed") from None

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            logger.error(
                f"Wavespeed AI returned {response.status_code}: "
                f"{redact_sensitive(body) if body is not None else response.text}"
            )
            message = body.get("message") if isinstance(body, dict) else None
            if message:
                raise _voice_error(message, params.voice_id) or TTSProviderError(
                    502, f"TTS generation failed: {message}"
                )
            raise TTSProviderError(500, "TTS generation failed")

        if not isinstance(body, dict):
            logger.warning("Wavespeed AI returned a non-JSON body")
            raise TTSProviderError(502, "No audio URL returned by TTS provider")

        data = body.get("data") or body
        status = data.get("status")
        outputs = data.get("outputs") or []

        if status == "completed" and outputs:
            return SynthesisResult(audio_url=outputs[0])

        if status == "failed":
            error = data.get("error") or ""
            logger.error(f"Wavespeed AI returned failed status: {error}")
            raise _voice_error(error, params.voice_id) or TTSProviderError(
                502, f"TTS generation failed: {error or 'Unknown error'}"
            )

        logger.warning(
            f"Wavespeed AI returned unexpected status or missing outputs: {redact_sensitive(data)}"
        )
        raise TTSProviderError(502, "No audio URL returned by TTS provider")


class TTSService:
    def __init__(self, db: firestore.AsyncClient | None, provider: WavespeedClient) -> None:
        self.configs = TTSConfigRepository(db) if db is not None else None
        self.provider = provider

    @property
    def is_configured(self) -> bool:
        return self.provider.is_configured

    async def load_effective_params(
        self, user_login: str, request: VoiceSettings, channel: str | None = None
    ) -> VoiceSettings:
        """Resolve parameters against stored defaults; storage errors fall back to the request."""
        if self.configs is None:
            return resolve_effective_params(request)

        try:
            user_prefs = await self.configs.get_user_preferences(user_login)
            channel_defaults = (
                await self.configs.get_channel_defaults(channel) if channel else None
            )
        except GoogleAPICallError as e:
            logger.warning(f"Failed to resolve defaults; using request values only: {e}")
            return resolve_effective_params(request)

        effective = resolve_effective_params(request, user_prefs, channel_defaults)
        logger.debug(f"Effective TTS params for {user_login}: {effective.to_dict()}")
        return effective

    async def synthesize(
        self, user_login: str, text: str, request: VoiceSettings, channel: str | None = None
    ) -> SynthesisResult:
        params = await self.load_effective_params(user_login, request, channel)
        return await self.provider.synthesize(text, params)
