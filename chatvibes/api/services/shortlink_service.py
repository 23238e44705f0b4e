"""Shortlink creation and resolution"""

import logging
import secrets
from urllib.parse import urlparse

from google.api_core.exceptions import AlreadyExists, GoogleAPICallError
from google.cloud import firestore

from chatvibes.shared.repositories import ShortlinkRepository

from .errors import ShortlinkError

logger = logging.getLogger(__name__)

MAX_SLUG_ATTEMPTS = 5


def generate_slug() -> str:
    """12 lowercase hex characters (6 random bytes)."""
    return secrets.token_hex(6)


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class ShortlinkService:
    def __init__(self, db: firestore.AsyncClient, frontend_origin: str = "") -> None:
        self.links = ShortlinkRepository(db)
        self.frontend_origin = frontend_origin

    async def create(self, url: str) -> dict:
        """Store *url* under a fresh slug and return the response payload.

        A slug is never overwritten: ``create()`` fails on an existing key and
        a new slug is drawn, up to ``MAX_SLUG_ATTEMPTS`` times.

        Raises:
            ShortlinkError: the URL is invalid or no free slug was found.
        """
        if not is_valid_url(url):
            raise ShortlinkError("Invalid URL provided")

        for attempt in range(1, MAX_SLUG_ATTEMPTS + 1):
            slug = generate_slug()
            try:
                await self.links.create(slug, url)
            except AlreadyExists:
                logger.warning(f"Slug collision on {slug} (attempt {attempt}/{MAX_SLUG_ATTEMPTS})")
                continue

            logger.info(f"Created short link {slug} -> {url}")
            path = f"/s/{slug}"
            return {
                "success": True,
                "slug": slug,
                "shortUrl": path,
                "absoluteUrl": f"{self.frontend_origin}{path}" if self.frontend_origin else path,
            }

        logger.error(f"Could not allocate a free slug after {MAX_SLUG_ATTEMPTS} attempts")
        raise ShortlinkError("Could not allocate a short link, please try again", status_code=500)

    async def resolve(self, slug: str) -> str | None:
        """Return the target URL for *slug* and count the click, or None if unknown."""
        link = await self.links.get(slug)
        if link is None:
            return None

        try:
            await self.links.record_click(slug)
        except GoogleAPICallError as e:
            logger.warning(f"Failed to update click counter for {slug}: {e}")

        logger.info(f"Redirecting short link {slug} -> {link.url}")
        return link.url
