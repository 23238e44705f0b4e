"""Bot activation API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from chatvibes.api.core.dependencies import get_bot_service, get_current_user
from chatvibes.api.services import (
    BotService,
    ChannelNotAllowedError,
    SessionUser,
    TwitchTokenError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bot", tags=["bot"])


@router.get("/status")
async def get_bot_status(
    user: SessionUser = Depends(get_current_user),
    bot_service: BotService = Depends(get_bot_service),
) -> dict:
    """Whether the bot is active in the caller's channel"""
    try:
        return await bot_service.get_status(user)
    except Exception as e:
        logger.exception(f"Error getting bot status for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to get bot status", "message": str(e)},
        ) from None


@router.post("/add")
async def add_bot(
    user: SessionUser = Depends(get_current_user),
    bot_service: BotService = Depends(get_bot_service),
) -> dict:
    """Activate the bot in the caller's channel"""
    try:
        return await bot_service.add_bot(user)
    except ChannelNotAllowedError:
        raise HTTPException(
            status_code=403,
            detail={
                "message": "Your channel is not authorized to use this bot. "
                "Please contact support if you believe this is an error."
            },
        ) from None
    except TwitchTokenError as e:
        if e.needs_reauth:
            raise HTTPException(
                status_code=401,
                detail={
                    "message": "Please re-authenticate with Twitch to add the bot.",
                    "needsReauth": True,
                },
            ) from None
        logger.error(f"Could not obtain Twitch token for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"message": "Error adding bot to channel.", "error": str(e)},
        ) from None
    except Exception as e:
        logger.exception(f"Error adding bot for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"message": "Error adding bot to channel.", "error": str(e)},
        ) from None


@router.post("/remove")
async def remove_bot(
    user: SessionUser = Depends(get_current_user),
    bot_service: BotService = Depends(get_bot_service),
) -> dict:
    """Deactivate the bot in the caller's channel"""
    try:
        return await bot_service.remove_bot(user)
    except Exception as e:
        logger.exception(f"Error removing bot for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500,
            detail={"message": "Error removing bot from channel.", "error": str(e)},
        ) from None
