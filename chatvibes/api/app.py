"""FastAPI application factory"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from google.cloud import firestore

from chatvibes import __version__
from chatvibes.api.core.config import Settings, get_settings
from chatvibes.api.core.errors import register_exception_handlers
from chatvibes.api.core.logging import RequestLoggingMiddleware, setup_logging
from chatvibes.api.routers import (
    auth_router,
    bot_router,
    obs_router,
    rewards_router,
    shortlink_router,
    tts_router,
    twitch_oauth_router,
    viewer_router,
)
from chatvibes.api.services import TwitchAPIClient
from chatvibes.shared.firestore import create_firestore_client
from chatvibes.shared.secrets import SecretStore, create_secret_store

logger = logging.getLogger(__name__)

PUBLIC_DIR = Path(__file__).resolve().parents[2] / "public"

SERVICE_NAME = "chatvibes-web-api"


def create_app(
    settings: Settings | None = None,
    *,
    db: firestore.AsyncClient | None = None,
    secrets: SecretStore | None = None,
    twitch_api: TwitchAPIClient | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create and configure FastAPI application

    Handles passed in are used as-is and left open; anything missing is
    created by the lifespan and closed on shutdown.
    """
    settings = settings or get_settings()

    # Setup logging first
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle startup and shutdown"""
        logger.info("Starting ChatVibes web API")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Frontend URL: {settings.frontend_url or '(not set)'}")

        owned_http: httpx.AsyncClient | None = None
        owned_twitch: TwitchAPIClient | None = None
        owned_secrets: SecretStore | None = None

        if app.state.http_client is None:
            owned_http = httpx.AsyncClient(timeout=10.0)
            app.state.http_client = owned_http

        if app.state.twitch_api is None:
            if settings.twitch_client_id and settings.twitch_client_secret:
                owned_twitch = TwitchAPIClient(
                    settings.twitch_client_id,
                    settings.twitch_client_secret,
                    http=app.state.http_client,
                )
                app.state.twitch_api = owned_twitch
            else:
                logger.warning("Twitch client credentials not configured, Twitch routes disabled")

        if app.state.db is None:
            app.state.db = create_firestore_client(settings.gcloud_project or None)

        if app.state.secrets is None:
            # Fall back to the project Firestore resolved from the environment
            project = settings.gcloud_project or getattr(app.state.db, "project", None)
            if project:
                owned_secrets = create_secret_store(project)
                app.state.secrets = owned_secrets
            else:
                logger.warning("No Google Cloud project configured, Twitch credential routes disabled")

        yield

        # Shutdown
        logger.info("Shutting down ChatVibes web API")
        try:
            if owned_twitch is not None:
                await owned_twitch.close()
            if owned_secrets is not None:
                await owned_secrets.close()
            if owned_http is not None:
                await owned_http.aclose()
        except Exception as e:
            logger.exception(f"Error during shutdown: {e}")

    app = FastAPI(
        title="ChatVibes API",
        description="Web API for the ChatVibes TTS bot dashboard",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    app.state.settings = settings
    app.state.db = db
    app.state.secrets = secrets
    app.state.twitch_api = twitch_api
    app.state.http_client = http_client

    app.add_middleware(RequestLoggingMiddleware)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(twitch_oauth_router.router)
    app.include_router(auth_router.router)
    app.include_router(bot_router.router)
    app.include_router(shortlink_router.router)
    app.include_router(shortlink_router.redirect_router)
    app.include_router(tts_router.router)
    app.include_router(viewer_router.router)
    app.include_router(obs_router.router)
    app.include_router(rewards_router.router)

    # Liveness check, no external dependency
    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "service": SERVICE_NAME,
        }

    # Static dashboard last so it never shadows API routes
    if settings.serve_frontend and PUBLIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=PUBLIC_DIR, html=True), name="public")
        logger.debug(f"Serving dashboard from {PUBLIC_DIR}")

    logger.info("FastAPI application configured")

    return app
