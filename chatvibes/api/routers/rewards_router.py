"""Channel point reward API routes"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel

from chatvibes.api.core.dependencies import get_current_user, get_rewards_service
from chatvibes.api.services import RewardError, RewardsService, SessionUser, TwitchTokenError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rewards", tags=["rewards"])

REAUTH_DETAIL = {
    "error": "Authentication required",
    "needsReauth": True,
    "message": "Please re-authenticate with Twitch to manage channel point rewards",
}


class RewardTestMessage(BaseModel):
    text: Any = None


@router.get("/tts")
async def get_tts_reward(
    user: SessionUser = Depends(get_current_user),
    rewards_service: RewardsService = Depends(get_rewards_service),
) -> dict:
    """Stored TTS reward config and its live Twitch state"""
    try:
        return await rewards_service.get_config(user)
    except Exception as e:
        logger.exception(f"Error loading reward config for {user.user_login}: {e}")
        raise HTTPException(status_code=500, detail={"error": "Failed to get configuration"}) from None


@router.post("/tts")
async def save_tts_reward(
    body: dict[str, Any] = Body(...),
    user: SessionUser = Depends(get_current_user),
    rewards_service: RewardsService = Depends(get_rewards_service),
) -> dict:
    try:
        return await rewards_service.save_config(user, body)
    except TwitchTokenError as e:
        if e.needs_reauth:
            raise HTTPException(status_code=401, detail=REAUTH_DETAIL) from None
        logger.error(f"Reward setup for {user.user_login} failed: {e}")
        raise HTTPException(status_code=500, detail={"error": str(e)}) from None
    except RewardError as e:
        logger.error(f"Reward setup for {user.user_login} failed: {e}")
        raise HTTPException(status_code=500, detail={"error": str(e)}) from None
    except Exception as e:
        logger.exception(f"Error saving reward config for {user.user_login}: {e}")
        raise HTTPException(status_code=500, detail={"error": "Failed to save configuration"}) from None


@router.delete("/tts")
async def delete_tts_reward(
    user: SessionUser = Depends(get_current_user),
    rewards_service: RewardsService = Depends(get_rewards_service),
) -> dict:
    try:
        return await rewards_service.delete_reward(user)
    except Exception as e:
        logger.exception(f"Error deleting reward for {user.user_login}: {e}")
        raise HTTPException(status_code=500, detail={"error": "Failed to delete reward"}) from None


async def _check_message(
    body: RewardTestMessage,
    user: SessionUser,
    rewards_service: RewardsService,
) -> dict:
    try:
        reason = await rewards_service.check_test_message(user.user_login, body.text)
    except Exception as e:
        logger.exception(f"Error validating test message for {user.user_login}: {e}")
        raise HTTPException(status_code=500, detail={"error": "Failed to test"}) from None

    if reason:
        raise HTTPException(status_code=400, detail={"error": reason})
    return {"success": True, "message": "TTS test validated"}


@router.post("/tts/test")
async def check_tts_message(
    body: RewardTestMessage,
    user: SessionUser = Depends(get_current_user),
    rewards_service: RewardsService = Depends(get_rewards_service),
) -> dict:
    """Check a message against the channel's content policy"""
    return await _check_message(body, user, rewards_service)


@router.post("/tts:test", include_in_schema=False)
async def check_tts_message_legacy(
    body: RewardTestMessage,
    user: SessionUser = Depends(get_current_user),
    rewards_service: RewardsService = Depends(get_rewards_service),
) -> dict:
    return await _check_message(body, user, rewards_service)
