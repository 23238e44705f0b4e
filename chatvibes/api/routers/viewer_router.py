"""Viewer preference and ignore-list API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from chatvibes.api.core.dependencies import get_current_user, get_viewer_service
from chatvibes.api.services import SessionUser, ViewerPreferenceError, ViewerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/viewer", tags=["viewer"])


class PreferencesUpdate(BaseModel):
    """Partial update; omitted fields are left alone, ``null`` clears a field."""

    model_config = ConfigDict(populate_by_name=True)

    voice_id: str | None = Field(default=None, alias="voiceId")
    pitch: float | None = None
    speed: float | None = None
    emotion: str | None = None
    language: str | None = None
    english_normalization: bool | None = Field(default=None, alias="englishNormalization")

    def updates(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


# ============================================
# Global preferences
# ============================================


@router.get("/preferences")
async def get_preferences(
    user: SessionUser = Depends(get_current_user),
    viewer_service: ViewerService = Depends(get_viewer_service),
) -> dict:
    """The caller's global voice preferences"""
    try:
        return await viewer_service.get_preferences(user.user_login)
    except Exception as e:
        logger.exception(f"Error loading preferences for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to retrieve global preferences"}
        ) from None


@router.put("/preferences")
async def update_preferences(
    body: PreferencesUpdate,
    user: SessionUser = Depends(get_current_user),
    viewer_service: ViewerService = Depends(get_viewer_service),
) -> dict:
    try:
        await viewer_service.update_preferences(user.user_login, body.updates())
    except ViewerPreferenceError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": e.message}) from None
    except Exception as e:
        logger.exception(f"Error updating preferences for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to update global preferences"}
        ) from None

    return {"success": True, "message": "Global preferences updated successfully"}


# ============================================
# Per-channel view
# ============================================


@router.get("/preferences/{channel}")
async def get_channel_preferences(
    channel: str,
    user: SessionUser = Depends(get_current_user),
    viewer_service: ViewerService = Depends(get_viewer_service),
) -> dict:
    """Global preferences with the channel's defaults and ignore flags"""
    try:
        return await viewer_service.get_channel_preferences(user.user_login, channel)
    except ViewerPreferenceError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": e.message}) from None
    except Exception as e:
        logger.exception(f"Error loading preferences for {user.user_login} in {channel}: {e}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to retrieve preferences"}
        ) from None


@router.put("/preferences/{channel}")
async def update_channel_preferences(
    channel: str,
    body: PreferencesUpdate,
    user: SessionUser = Depends(get_current_user),
    viewer_service: ViewerService = Depends(get_viewer_service),
) -> dict:
    try:
        await viewer_service.update_channel_preferences(user.user_login, channel, body.updates())
    except ViewerPreferenceError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": e.message}) from None
    except Exception as e:
        logger.exception(f"Error updating preferences for {user.user_login} in {channel}: {e}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to update preferences"}
        ) from None

    return {"success": True, "message": "Preferences updated successfully"}


# ============================================
# Ignore lists
# ============================================


@router.post("/ignore/tts/{channel}")
async def toggle_tts_ignore(
    channel: str,
    user: SessionUser = Depends(get_current_user),
    viewer_service: ViewerService = Depends(get_viewer_service),
) -> dict:
    try:
        ignored = await viewer_service.toggle_tts_ignore(user.user_login, channel)
    except ViewerPreferenceError as e:
        raise HTTPException(status_code=e.status_code, detail={"error": e.message}) from None
    except Exception as e:
        logger.exception(f"Error toggling TTS ignore for {user.user_login} in {channel}: {e}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to update ignore status"}
        ) from None

    return {
        "success": True,
        "ignored": ignored,
        "message": "Added to TTS ignore list" if ignored else "Removed from TTS ignore list",
    }


@router.post("/ignore/music/{channel}")
async def toggle_music_ignore(
    channel: str,
    user: SessionUser = Depends(get_current_user),
    viewer_service: ViewerService = Depends(get_viewer_service),
) -> dict:
    try:
        ignored = await viewer_service.toggle_music_ignore(user.user_login, channel)
    except Exception as e:
        logger.exception(f"Error toggling music ignore for {user.user_login} in {channel}: {e}")
        raise HTTPException(
            status_code=500, detail={"error": "Failed to update music ignore status"}
        ) from None

    return {
        "success": True,
        "ignored": ignored,
        "message": "Added to music ignore list" if ignored else "Removed from music ignore list",
    }
