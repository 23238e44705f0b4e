"""Firestore client construction and collection names.

The client is built once by the application lifespan and handed to the
repositories explicitly; nothing in this package keeps a module-level client.
Set ``FIRESTORE_EMULATOR_HOST`` to point the client at the local emulator.
"""

from __future__ import annotations

import logging
import os

from google.cloud import firestore

logger = logging.getLogger(__name__)


class Collections:
    """Firestore collection names."""

    MANAGED_CHANNELS = "managedChannels"
    SHORTLINKS = "shortlinks"
    TTS_CHANNEL_CONFIGS = "ttsChannelConfigs"
    TTS_USER_PREFERENCES = "ttsUserPreferences"
    MUSIC_SETTINGS = "musicSettings"


def create_firestore_client(project: str | None = None) -> firestore.AsyncClient:
    """Create an async Firestore client for *project* (or the ambient project)."""
    emulator_host = os.getenv("FIRESTORE_EMULATOR_HOST")
    try:
        client = firestore.AsyncClient(project=project or None)
    except Exception as e:
        logger.exception(f"Firestore client initialization failed: {e}")
        raise

    if emulator_host:
        logger.warning(f"Using Firestore emulator at {emulator_host}")
    logger.info(f"Firestore client initialized (project={client.project})")
    return client
