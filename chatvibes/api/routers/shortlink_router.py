"""Shortlink API and public redirect routes"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from pydantic import BaseModel

from chatvibes.api.core.dependencies import get_current_user, get_shortlink_service
from chatvibes.api.services import SessionUser, ShortlinkError, ShortlinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["shortlinks"])
redirect_router = APIRouter(tags=["shortlinks"])


class ShortlinkRequest(BaseModel):
    url: str | None = None


@router.post("/shortlink")
async def create_shortlink(
    body: ShortlinkRequest | None = None,
    user: SessionUser = Depends(get_current_user),
    shortlink_service: ShortlinkService = Depends(get_shortlink_service),
) -> dict:
    """Create a short link for a long URL"""
    url = (body.url or "").strip() if body else ""
    if not url:
        raise HTTPException(status_code=400, detail={"error": "URL is required"})

    try:
        return await shortlink_service.create(url)
    except ShortlinkError as e:
        if e.status_code >= 500:
            logger.error(f"Error creating shortlink for {user.user_login}: {e}")
        raise HTTPException(status_code=e.status_code, detail={"error": str(e)}) from None
    except Exception as e:
        logger.exception(f"Error creating shortlink for {user.user_login}: {e}")
        raise HTTPException(status_code=500, detail={"error": str(e)}) from None


@redirect_router.get("/s/{slug}", response_model=None)
async def follow_shortlink(
    slug: str,
    shortlink_service: ShortlinkService = Depends(get_shortlink_service),
) -> Response:
    """Redirect to the stored URL and count the click"""
    try:
        url = await shortlink_service.resolve(slug)
    except Exception as e:
        logger.exception(f"Error redirecting short link {slug}: {e}")
        return PlainTextResponse("Internal server error", status_code=500)

    if url is None:
        return PlainTextResponse("Short link not found", status_code=404)
    return RedirectResponse(url=url, status_code=301)
