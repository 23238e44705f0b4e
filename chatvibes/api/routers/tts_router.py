"""TTS test API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from chatvibes.api.core.dependencies import get_current_user, get_tts_service
from chatvibes.api.services import SessionUser, TTSProviderError, TTSService
from chatvibes.shared.models.tts import VoiceSettings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tts", tags=["tts"])


class TTSTestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str | None = None
    voice_id: str | None = Field(default=None, alias="voiceId")
    emotion: str | None = None
    pitch: float | None = None
    speed: float | None = None
    language_boost: str | None = Field(default=None, alias="languageBoost")
    channel: str | None = None

    def voice_settings(self) -> VoiceSettings:
        return VoiceSettings(
            voice_id=self.voice_id,
            emotion=self.emotion,
            pitch=self.pitch,
            speed=self.speed,
            language_boost=self.language_boost,
        )


@router.post("/test")
async def test_tts(
    body: TTSTestRequest | None = None,
    user: SessionUser = Depends(get_current_user),
    tts_service: TTSService = Depends(get_tts_service),
) -> dict:
    """Synthesize a sample with the caller's effective voice settings"""
    body = body or TTSTestRequest()
    if not body.text:
        raise HTTPException(status_code=400, detail={"error": "Text is required for TTS test"})

    if not tts_service.is_configured:
        logger.warning("TTS test requested but WAVESPEED_API_KEY is not configured")
        raise HTTPException(status_code=501, detail={"error": "TTS provider not configured"})

    logger.info(f"TTS test requested by {user.user_login} ({len(body.text)} chars)")
    try:
        result = await tts_service.synthesize(
            user.user_login, body.text, body.voice_settings(), channel=body.channel
        )
    except TTSProviderError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": e.message}) from None
    except Exception as e:
        logger.exception(f"Error in TTS test for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "TTS test failed", "message": str(e)},
        ) from None

    return result.to_dict()
