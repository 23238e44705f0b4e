"""Session status API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from chatvibes.api.core.dependencies import (
    get_channel_service,
    get_current_user,
    get_twitch_api,
)
from chatvibes.api.services import (
    ChannelService,
    SessionUser,
    TwitchAPIClient,
    TwitchTokenError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])


@router.get("/status")
async def get_auth_status(
    user: SessionUser = Depends(get_current_user),
    channel_service: ChannelService = Depends(get_channel_service),
) -> dict:
    """Report the caller's identity and the state of their Twitch credentials"""
    try:
        token_status, needs_reauth = await channel_service.get_token_status(user.user_login)
    except Exception as e:
        logger.exception(f"Failed to read token status for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to get auth status", "message": str(e)},
        ) from None

    return {
        "success": True,
        "user": user.to_dict(),
        "twitchTokenStatus": token_status,
        "needsTwitchReAuth": needs_reauth,
    }


@router.post("/refresh")
async def refresh_twitch_token(
    user: SessionUser = Depends(get_current_user),
    channel_service: ChannelService = Depends(get_channel_service),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
) -> dict:
    """Force a Twitch token check/refresh for the caller"""
    try:
        await channel_service.get_valid_token(user.user_login, twitch_api)
    except TwitchTokenError as e:
        logger.warning(f"Token refresh failed for {user.user_login}: {e}")
        raise HTTPException(
            status_code=400,
            detail={"error": str(e), "needsReauth": e.needs_reauth},
        ) from None
    except Exception as e:
        logger.exception(f"Unexpected error refreshing token for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to refresh token", "message": str(e)},
        ) from None

    logger.info(f"Twitch token refreshed for {user.user_login}")
    return {"success": True, "message": "Token refreshed successfully"}
