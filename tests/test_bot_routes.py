from datetime import timedelta

import httpx
import pytest
from google.api_core.exceptions import ServiceUnavailable

from chatvibes.api.services import ModeratorResult, TokenRefreshResult


@pytest.mark.asyncio
async def test_bot_routes_require_auth(client):
    for method, path in [("GET", "/api/bot/status"), ("POST", "/api/bot/add"), ("POST", "/api/bot/remove")]:
        response = await client.request(method, path)
        assert response.status_code == 401, path
        assert response.json()["success"] is False


# ============================================
# Status
# ============================================


@pytest.mark.asyncio
async def test_status_for_unknown_channel(client, auth_headers):
    response = await client.get("/api/bot/status", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "isActive": False,
        "channelName": "streamer1",
        "needsReAuth": False,
        "oauthTier": "full",
    }


@pytest.mark.asyncio
async def test_status_for_active_anonymous_channel(client, auth_headers, seed_channel):
    seed_channel(is_active=True, oauth_tier="anonymous")

    body = (await client.get("/api/bot/status", headers=auth_headers)).json()

    assert body["isActive"] is True
    assert body["oauthTier"] == "anonymous"
    assert body["channelName"] == "streamer1"


@pytest.mark.asyncio
async def test_status_survives_token_failure(client, auth_headers, seed_channel, twitch_api):
    seed_channel(is_active=True, expires_in=timedelta(minutes=-5))
    twitch_api.refresh_access_token.return_value = TokenRefreshResult(success=False, error="bad")

    response = await client.get("/api/bot/status", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["isActive"] is True
    assert body["needsReAuth"] is True


@pytest.mark.asyncio
async def test_status_survives_secret_manager_outage(client, auth_headers, seed_channel, fake_secrets):
    seed_channel(is_active=True)
    fake_secrets.error = ServiceUnavailable("secret manager unavailable")

    response = await client.get("/api/bot/status", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["isActive"] is True
    assert body["needsReAuth"] is False


# ============================================
# Add
# ============================================


@pytest.mark.asyncio
async def test_add_activates_channel_and_adds_moderator(
    client, auth_headers, seed_channel, fake_db, twitch_api
):
    seed_channel()

    response = await client.post("/api/bot/add", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Bot added to your channel successfully!"
    assert body["channelName"] == "streamer1"
    assert body["moderatorStatus"] == "added"
    assert body["oauthTier"] == "full"
    assert "moderatorError" not in body

    channel = fake_db.data("managedChannels", "streamer1")
    assert channel["isActive"] is True
    assert channel["twitchUserId"] == "1001"
    assert channel["addedAt"] is not None
    twitch_api.get_user_id_by_login.assert_awaited_once_with("chatvibesbot")
    twitch_api.add_moderator.assert_awaited_once_with("1001", "9999", "access-streamer1")


@pytest.mark.asyncio
async def test_add_is_idempotent(client, auth_headers, seed_channel, twitch_api):
    seed_channel(is_active=True)

    response = await client.post("/api/bot/add", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["alreadyActive"] is True
    twitch_api.add_moderator.assert_not_awaited()


@pytest.mark.asyncio
async def test_add_in_bot_free_mode_skips_moderator(
    client, auth_headers, seed_channel, twitch_api
):
    seed_channel(oauth_tier="anonymous")

    body = (await client.post("/api/bot/add", headers=auth_headers)).json()

    assert body["moderatorStatus"] == "skipped"
    assert body["oauthTier"] == "anonymous"
    assert "Bot-Free Mode" in body["message"]
    twitch_api.add_moderator.assert_not_awaited()


@pytest.mark.asyncio
async def test_moderator_failure_does_not_fail_activation(
    client, auth_headers, seed_channel, fake_db, twitch_api
):
    seed_channel()
    twitch_api.add_moderator.return_value = ModeratorResult(
        success=False, error="The user is banned"
    )

    response = await client.post("/api/bot/add", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["moderatorStatus"] == "failed"
    assert body["moderatorError"] == "The user is banned"
    assert fake_db.data("managedChannels", "streamer1")["isActive"] is True


@pytest.mark.asyncio
async def test_add_without_bot_username_reports_failed_moderator(
    settings, client, auth_headers, seed_channel, twitch_api
):
    settings.twitch_bot_username = ""
    seed_channel()

    body = (await client.post("/api/bot/add", headers=auth_headers)).json()

    assert body["success"] is True
    assert body["moderatorStatus"] == "failed"
    assert body["moderatorError"] == "Bot username not configured"
    twitch_api.add_moderator.assert_not_awaited()


@pytest.mark.asyncio
async def test_add_when_bot_user_cannot_be_resolved(client, auth_headers, seed_channel, twitch_api):
    seed_channel()
    twitch_api.get_user_id_by_login.return_value = None

    body = (await client.post("/api/bot/add", headers=auth_headers)).json()

    assert body["moderatorStatus"] == "failed"
    assert body["moderatorError"] == "Bot user not found"


@pytest.mark.asyncio
async def test_add_when_moderator_setup_raises(client, auth_headers, seed_channel, fake_db, twitch_api):
    seed_channel()
    twitch_api.get_user_id_by_login.side_effect = httpx.ReadTimeout("timed out")

    response = await client.post("/api/bot/add", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["moderatorStatus"] == "failed"
    assert body["moderatorError"] == "timed out"
    assert fake_db.data("managedChannels", "streamer1")["isActive"] is True
    twitch_api.add_moderator.assert_not_awaited()


@pytest.mark.asyncio
async def test_add_rejects_channel_outside_allow_list(
    settings, client, make_headers, seed_channel, fake_db
):
    settings.allowed_channels = "Friend1, friend2"
    seed_channel("stranger", "2002")

    response = await client.post("/api/bot/add", headers=make_headers("stranger", "2002"))

    assert response.status_code == 403
    assert response.json()["success"] is False
    assert fake_db.data("managedChannels", "stranger")["isActive"] is False


@pytest.mark.asyncio
async def test_allow_list_is_case_insensitive(settings, client, make_headers, seed_channel):
    settings.allowed_channels = "FRIEND1"
    seed_channel("friend1", "3003")

    response = await client.post("/api/bot/add", headers=make_headers("friend1", "3003"))

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_add_with_reauth_needed_is_401(client, auth_headers, seed_channel, fake_db):
    seed_channel(needs_reauth=True)

    response = await client.post("/api/bot/add", headers=auth_headers)

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "message": "Please re-authenticate with Twitch to add the bot.",
        "needsReauth": True,
    }
    assert fake_db.data("managedChannels", "streamer1")["isActive"] is False


@pytest.mark.asyncio
async def test_add_without_any_channel_record_is_500(client, auth_headers):
    response = await client.post("/api/bot/add", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_add_refreshes_expiring_token(
    client, auth_headers, seed_channel, fake_secrets, twitch_api
):
    seed_channel(expires_in=timedelta(minutes=2))
    twitch_api.refresh_access_token.return_value = TokenRefreshResult(
        success=True, access_token="fresh-access", refresh_token="fresh-refresh", expires_in=14400
    )

    response = await client.post("/api/bot/add", headers=auth_headers)

    assert response.status_code == 200
    twitch_api.refresh_access_token.assert_awaited_once_with("refresh-streamer1")
    twitch_api.add_moderator.assert_awaited_once_with("1001", "9999", "fresh-access")
    assert fake_secrets.value("twitch-access-token-1001") == "fresh-access"
    assert fake_secrets.value("twitch-refresh-token-1001") == "fresh-refresh"


# ============================================
# Remove
# ============================================


@pytest.mark.asyncio
async def test_remove_deactivates_channel(client, auth_headers, seed_channel, fake_db, twitch_api):
    seed_channel(is_active=True)

    response = await client.post("/api/bot/remove", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Bot removed from your channel successfully!",
        "channelName": "streamer1",
    }
    channel = fake_db.data("managedChannels", "streamer1")
    assert channel["isActive"] is False
    assert channel["removedAt"] is not None
    twitch_api.remove_moderator.assert_awaited_once_with("1001", "9999", "access-streamer1")


@pytest.mark.asyncio
async def test_remove_is_idempotent(client, auth_headers, seed_channel, fake_db, twitch_api):
    seed_channel(is_active=True)

    first = await client.post("/api/bot/remove", headers=auth_headers)
    second = await client.post("/api/bot/remove", headers=auth_headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["success"] is True
    assert fake_db.data("managedChannels", "streamer1")["isActive"] is False
    assert twitch_api.remove_moderator.await_count == 1


@pytest.mark.asyncio
async def test_remove_for_unknown_channel_is_a_no_op(client, auth_headers, fake_db):
    response = await client.post("/api/bot/remove", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert fake_db.data("managedChannels", "streamer1") is None


@pytest.mark.asyncio
async def test_remove_moderator_failure_is_not_fatal(
    client, auth_headers, seed_channel, fake_db, twitch_api
):
    seed_channel(is_active=True)
    twitch_api.remove_moderator.return_value = ModeratorResult(success=False, error="boom")

    response = await client.post("/api/bot/remove", headers=auth_headers)

    assert response.status_code == 200
    assert fake_db.data("managedChannels", "streamer1")["isActive"] is False


@pytest.mark.asyncio
async def test_remove_in_bot_free_mode_skips_moderator(
    client, auth_headers, seed_channel, twitch_api
):
    seed_channel(is_active=True, oauth_tier="anonymous")

    response = await client.post("/api/bot/remove", headers=auth_headers)

    assert response.status_code == 200
    twitch_api.remove_moderator.assert_not_awaited()


@pytest.mark.asyncio
async def test_add_then_remove_round_trip(client, auth_headers, seed_channel):
    seed_channel()

    await client.post("/api/bot/add", headers=auth_headers)
    active = (await client.get("/api/bot/status", headers=auth_headers)).json()
    await client.post("/api/bot/remove", headers=auth_headers)
    inactive = (await client.get("/api/bot/status", headers=auth_headers)).json()

    assert active["isActive"] is True
    assert inactive["isActive"] is False
