"""Dependency injection utilities for FastAPI

Long-lived handles (settings, Firestore client, Secret Manager store, Twitch
client, shared HTTP client) live on ``app.state`` and are set by ``create_app``/the lifespan.
"""

import logging

import httpx
from fastapi import Depends, Header, HTTPException, Request
from google.cloud import firestore

from chatvibes.api.core.config import Settings
from chatvibes.api.services import (
    AuthService,
    BotService,
    ChannelService,
    SessionUser,
    ShortlinkService,
    ObsService,
    RewardsService,
    TTSService,
    TwitchAPIClient,
    ViewerService,
    WavespeedClient,
)
from chatvibes.shared.secrets import SecretStore

logger = logging.getLogger(__name__)


# ============================================
# Application Handles
# ============================================


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> firestore.AsyncClient:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db


def get_secret_store(request: Request) -> SecretStore:
    secrets = getattr(request.app.state, "secrets", None)
    if secrets is None:
        logger.error("Secret Manager client not initialized")
        raise HTTPException(status_code=500, detail="Server configuration error.")
    return secrets


def get_twitch_api(request: Request) -> TwitchAPIClient:
    twitch_api = getattr(request.app.state, "twitch_api", None)
    if twitch_api is None:
        logger.error("Twitch API client not configured (missing client id/secret)")
        raise HTTPException(status_code=500, detail="Server configuration error")
    return twitch_api


def get_http_client(request: Request) -> httpx.AsyncClient:
    http_client = getattr(request.app.state, "http_client", None)
    if http_client is None:
        raise HTTPException(status_code=503, detail="HTTP client not ready")
    return http_client


# ============================================
# Service Dependencies
# ============================================


def get_auth_service(settings: Settings = Depends(get_app_settings)) -> AuthService:
    """Get AuthService instance (dependency injection)"""
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not configured")
        raise HTTPException(status_code=500, detail="Server error: Auth misconfiguration.")
    return AuthService(
        secret_key=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.jwt_expire_days,
    )


def get_channel_service(
    db: firestore.AsyncClient = Depends(get_db),
    secrets: SecretStore = Depends(get_secret_store),
) -> ChannelService:
    return ChannelService(db, secrets)


def get_bot_service(
    channel_service: ChannelService = Depends(get_channel_service),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    settings: Settings = Depends(get_app_settings),
) -> BotService:
    return BotService(
        channel_service,
        twitch_api,
        bot_username=settings.twitch_bot_username,
        allowed_channels=settings.allowed_channel_list,
    )


def get_shortlink_service(
    db: firestore.AsyncClient = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> ShortlinkService:
    return ShortlinkService(db, frontend_origin=settings.frontend_origin)


def get_tts_service(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> TTSService:
    # Built without hard dependencies so an unconfigured provider still answers 501
    provider = WavespeedClient(
        settings.wavespeed_api_key,
        getattr(request.app.state, "http_client", None),
    )
    return TTSService(getattr(request.app.state, "db", None), provider)


def get_viewer_service(db: firestore.AsyncClient = Depends(get_db)) -> ViewerService:
    return ViewerService(db)


def get_obs_service(
    db: firestore.AsyncClient = Depends(get_db),
    secrets: SecretStore = Depends(get_secret_store),
    channel_service: ChannelService = Depends(get_channel_service),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    settings: Settings = Depends(get_app_settings),
) -> ObsService:
    return ObsService(db, secrets, channel_service, twitch_api, settings.obs_browser_base_url)


def get_rewards_service(
    db: firestore.AsyncClient = Depends(get_db),
    channel_service: ChannelService = Depends(get_channel_service),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
) -> RewardsService:
    return RewardsService(db, channel_service, twitch_api)


# ============================================
# Authentication Dependencies
# ============================================


async def get_current_user(
    authorization: str | None = Header(None),
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionUser:
    """Verify the ``Authorization: Bearer <JWT>`` header and return the caller"""
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Missing or malformed Authorization header")
        raise HTTPException(status_code=401, detail="Unauthorized: Missing or malformed token.")

    token = authorization[len("Bearer "):].strip()
    if not token:
        logger.warning("Empty bearer token")
        raise HTTPException(status_code=401, detail="Unauthorized: Token not found.")

    user = auth_service.verify_token(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid or expired token.")

    logger.debug(f"Authenticated {user.user_login} (scope={user.scope or 'streamer'})")
    return user
