"""Twitch OAuth login routes (streamer and viewer flows)"""

import base64
import binascii
import json
import logging
import secrets
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from chatvibes.api.core.config import Settings
from chatvibes.api.core.dependencies import (
    get_app_settings,
    get_auth_service,
    get_channel_service,
    get_twitch_api,
)
from chatvibes.api.services import (
    STREAMER_SCOPE,
    VIEWER_SCOPE,
    AuthService,
    ChannelService,
    TwitchAPIClient,
    TwitchAuthError,
)
from chatvibes.shared.models.channel import ANONYMOUS_TIER, FULL_TIER

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["twitch-oauth"])

OAUTH_TIER_SCOPES = {
    ANONYMOUS_TIER: "user:read:email channel:read:redemptions channel:manage:redemptions",
    FULL_TIER: (
        "user:read:email chat:read chat:edit channel:read:subscriptions bits:read "
        "moderator:read:followers channel:manage:redemptions channel:read:redemptions "
        "channel:manage:moderators"
    ),
}

MODERATOR_SCOPE = "channel:manage:moderators"

EVENTSUB_SETUP_TIMEOUT = 10.0


# ============================================
# Helpers
# ============================================


def _encode_viewer_state(channel: str | None) -> str:
    """Encode viewer OAuth state as base64 JSON."""
    data: dict = {"t": "viewer", "r": secrets.token_hex(8)}
    if channel:
        data["c"] = channel
    return base64.b64encode(json.dumps(data).encode()).decode()


def _decode_viewer_state(state: str | None) -> dict | None:
    """Return the viewer state payload, or None for a streamer state."""
    if not state:
        return None
    try:
        data = json.loads(base64.b64decode(state.encode(), validate=True).decode())
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    if isinstance(data, dict) and data.get("t") == "viewer":
        return data
    return None


def _frontend_url(settings: Settings, page: str, params: dict[str, str]) -> str:
    base = settings.frontend_url.rstrip("/")
    return f"{base}/{page}?{urlencode(params)}"


def _error_redirect(
    settings: Settings, error: str, description: str, state: str | None
) -> RedirectResponse:
    params = {"error": error, "error_description": description}
    if state:
        params["state"] = state
    logger.info(f"Redirecting to frontend error page: {error}")
    return RedirectResponse(
        url=_frontend_url(settings, "auth-error.html", params), status_code=302
    )


def _require_oauth_config(settings: Settings, flow: str) -> None:
    if not settings.twitch_client_id or not settings.callback_url:
        logger.error("TWITCH_CLIENT_ID or CALLBACK_URL not configured")
        raise HTTPException(
            status_code=500,
            detail={"error": f"Server configuration error for Twitch {flow}."},
        )


def _parse_scopes(granted: list[str] | str | None) -> list[str]:
    if isinstance(granted, list):
        return granted
    return [s for s in (granted or "").split(" ") if s]


async def _setup_eventsub(
    request: Request, settings: Settings, session_token: str, user_login: str, user_id: str
) -> None:
    """Ask the TTS bot to subscribe to the streamer's events (best effort)."""
    http_client: httpx.AsyncClient | None = getattr(request.app.state, "http_client", None)
    if not settings.tts_bot_url or http_client is None:
        logger.warning("TTS_BOT_URL not configured, skipping EventSub setup")
        return

    try:
        response = await http_client.post(
            f"{settings.tts_bot_url.rstrip('/')}/api/setup-eventsub",
            json={"channelLogin": user_login, "userId": user_id},
            headers={"Authorization": f"Bearer {session_token}"},
            timeout=EVENTSUB_SETUP_TIMEOUT,
        )
    except httpx.HTTPError as e:
        logger.error(f"Error setting up EventSub for {user_login}: {type(e).__name__}: {e}")
        return

    if response.is_success:
        logger.info(f"EventSub setup successful for {user_login}")
    else:
        logger.warning(
            f"EventSub setup failed for {user_login}: {response.status_code} {response.text}"
        )


# ============================================
# Endpoints
# ============================================


@router.get("/twitch/initiate")
async def initiate_twitch_auth(
    request: Request,
    tier: str = FULL_TIER,
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Build the streamer authorization URL for the requested OAuth tier"""
    _require_oauth_config(settings, "auth")
    twitch_api = get_twitch_api(request)

    if tier not in OAUTH_TIER_SCOPES:
        tier = FULL_TIER
    state = secrets.token_hex(16)
    url = twitch_api.generate_oauth_url(settings.callback_url, OAUTH_TIER_SCOPES[tier], state)

    logger.info(f"Generated streamer OAuth state (tier={tier})")
    return {"success": True, "twitchAuthUrl": url, "state": state, "tier": tier}


@router.get("/twitch/viewer")
async def initiate_viewer_auth(
    request: Request,
    channel: str | None = None,
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """Build a scope-less authorization URL for viewers"""
    _require_oauth_config(settings, "viewer auth")
    twitch_api = get_twitch_api(request)

    state = _encode_viewer_state(channel)
    url = twitch_api.generate_oauth_url(settings.callback_url, "", state)
    return {"success": True, "twitchAuthUrl": url, "state": state}


@router.get("/twitch/callback", response_model=None)
async def twitch_oauth_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    error_description: str | None = None,
    settings: Settings = Depends(get_app_settings),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    auth_service: AuthService = Depends(get_auth_service),
    channel_service: ChannelService = Depends(get_channel_service),
) -> RedirectResponse | JSONResponse:
    """Handle the Twitch redirect for both viewer and streamer logins"""
    viewer_state = _decode_viewer_state(state)
    if viewer_state is not None:
        return await _viewer_callback(
            code, error, error_description, viewer_state, settings, twitch_api, auth_service
        )

    if error:
        logger.error(f"Twitch OAuth error: {error} {error_description}")
        return _error_redirect(settings, error, error_description or "", state)

    try:
        if not code:
            raise TwitchAuthError("No authorization code received from Twitch.")

        token_data = await twitch_api.exchange_code_for_token(code, settings.callback_url)
        if not token_data:
            raise TwitchAuthError("Failed to exchange authorization code.")

        access_token = token_data.get("access_token")
        refresh_token = token_data.get("refresh_token")
        if not access_token or not refresh_token:
            raise TwitchAuthError("Twitch did not return the expected tokens.")

        scopes = _parse_scopes(token_data.get("scope"))
        oauth_tier = FULL_TIER if MODERATOR_SCOPE in scopes else ANONYMOUS_TIER
        logger.info(f"Determined OAuth tier {oauth_tier} from granted scopes")

        validated = await twitch_api.validate_token(access_token)
        if not validated or not validated.get("user_id"):
            raise TwitchAuthError("Failed to validate token or get user info from Twitch.")

        user_id = str(validated["user_id"])
        user_login = validated["login"].lower()
        user_data = await twitch_api.get_user(access_token) or {}
        display_name = user_data.get("display_name") or validated["login"]

        session_token = auth_service.create_session_token(
            user_id, user_login, display_name, scope=STREAMER_SCOPE
        )
        logger.info(f"Streamer {user_login} authenticated")
    except TwitchAuthError as e:
        logger.error(f"Twitch OAuth callback failed: {e}")
        return _error_redirect(settings, "auth_failed", str(e), state)
    except Exception as e:
        logger.exception(f"Twitch OAuth callback error: {e}")
        return _error_redirect(
            settings,
            "auth_failed",
            "Authentication failed with Twitch due to an internal server error.",
            state,
        )

    try:
        await channel_service.save_authorization(
            user_id=user_id,
            user_login=user_login,
            display_name=display_name,
            email=user_data.get("email"),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(validated.get("expires_in") or token_data.get("expires_in") or 0),
            oauth_tier=oauth_tier,
            granted_scopes=scopes,
        )
    except Exception as e:
        logger.exception(f"Error storing Twitch credentials for {user_login}: {e}")
        return _error_redirect(
            settings,
            "token_store_failed",
            "Failed to securely store Twitch credentials. Please try again.",
            state,
        )

    await _setup_eventsub(request, settings, session_token, user_login, user_id)

    params = {"user_login": user_login, "user_id": user_id}
    if state:
        params["state"] = state
    params["session_token"] = session_token
    return RedirectResponse(
        url=_frontend_url(settings, "auth-complete.html", params), status_code=302
    )


async def _viewer_callback(
    code: str | None,
    error: str | None,
    error_description: str | None,
    viewer_state: dict,
    settings: Settings,
    twitch_api: TwitchAPIClient,
    auth_service: AuthService,
) -> RedirectResponse | JSONResponse:
    if error:
        logger.error(f"Viewer OAuth error: {error} {error_description}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": error, "error_description": error_description},
        )

    try:
        token_data = await twitch_api.exchange_code_for_token(code, settings.callback_url) if code else None
        access_token = (token_data or {}).get("access_token")
        if not access_token:
            raise TwitchAuthError("No access token received from Twitch")

        validated = await twitch_api.validate_token(access_token)
        if not validated or not validated.get("user_id"):
            raise TwitchAuthError("Failed to validate viewer token")
    except TwitchAuthError as e:
        logger.error(f"Viewer OAuth callback error: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "auth_failed",
                "error_description": "Failed to complete viewer authentication",
            },
        )

    user_login = validated["login"].lower()
    session_token = auth_service.create_session_token(
        str(validated["user_id"]), user_login, validated["login"], scope=VIEWER_SCOPE
    )
    logger.info(f"Generated viewer session token for {user_login}")

    params = {"session_token": session_token, "validated": "1"}
    channel = viewer_state.get("c") or viewer_state.get("channel")
    if channel:
        params["channel"] = channel
    return RedirectResponse(
        url=_frontend_url(settings, "viewer-settings.html", params), status_code=302
    )


@router.get("/logout")
async def logout() -> dict:
    """Sessions are stateless; the client discards its token"""
    logger.info("Logout requested")
    return {
        "success": True,
        "message": "Logout successful. Please clear your session token on the client side.",
    }
