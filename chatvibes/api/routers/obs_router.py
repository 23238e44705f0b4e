"""OBS browser-source token API routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from chatvibes.api.core.dependencies import get_current_user, get_obs_service
from chatvibes.api.services import ObsService, ObsTokenError, SessionUser

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/obs", tags=["obs"])


def _obs_error(e: ObsTokenError) -> HTTPException:
    detail = {"message": str(e)}
    if e.needs_reauth:
        detail["needsReAuth"] = True
    return HTTPException(status_code=e.status_code, detail=detail)


@router.get("/getToken")
async def get_obs_token(
    user: SessionUser = Depends(get_current_user),
    obs_service: ObsService = Depends(get_obs_service),
) -> dict:
    """The caller's OBS token and browser-source URL (issued on first use)"""
    logger.info(f"OBS token retrieval requested by {user.user_login}")
    try:
        return await obs_service.get_token(user.user_login)
    except ObsTokenError as e:
        raise _obs_error(e) from None
    except Exception as e:
        logger.exception(f"Error retrieving OBS token for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500, detail={"message": "Failed to retrieve OBS token."}
        ) from None


@router.post("/generateToken")
async def generate_obs_token(
    user: SessionUser = Depends(get_current_user),
    obs_service: ObsService = Depends(get_obs_service),
) -> dict:
    """Rotate the caller's OBS token"""
    logger.info(f"OBS token generation requested by {user.user_login}")
    try:
        return await obs_service.generate_token(user.user_login)
    except ObsTokenError as e:
        raise _obs_error(e) from None
    except Exception as e:
        logger.exception(f"Error generating OBS token for {user.user_login}: {e}")
        raise HTTPException(
            status_code=500, detail={"message": "Failed to generate new OBS token."}
        ) from None
