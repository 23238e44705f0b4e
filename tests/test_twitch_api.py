from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from chatvibes.api.services.twitch_api import TwitchAPIClient


def _api(handler) -> TwitchAPIClient:
    return TwitchAPIClient(
        "cid", "csecret", http=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )


def test_requires_credentials():
    with pytest.raises(ValueError):
        TwitchAPIClient("", "secret")


def test_generate_oauth_url():
    api = TwitchAPIClient("cid", "csecret", http=httpx.AsyncClient())
    url = api.generate_oauth_url(
        "https://api.example/auth/twitch/callback", "user:read:email chat:read", "abc"
    )

    parsed = urlparse(url)
    params = parse_qs(parsed.query)
    assert parsed.netloc == "id.twitch.tv"
    assert parsed.path == "/oauth2/authorize"
    assert params["client_id"] == ["cid"]
    assert params["scope"] == ["user:read:email chat:read"]
    assert params["state"] == ["abc"]
    assert params["response_type"] == ["code"]
    assert params["force_verify"] == ["true"]
    assert "%20" in url


# ============================================
# Moderators
# ============================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,body,success,error_fragment",
    [
        (204, None, True, None),
        (403, {"message": "user is already a mod"}, True, None),
        (401, {"message": "Missing scope"}, False, "re-authenticate"),
        (400, {"message": "user is banned"}, False, "user is banned"),
        (500, {"message": "oops"}, False, "oops"),
    ],
)
async def test_add_moderator_status_mapping(status, body, success, error_fragment):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers["Authorization"]
        seen["client_id"] = request.headers["Client-Id"]
        return httpx.Response(status, json=body) if body else httpx.Response(status)

    result = await _api(handler).add_moderator("111", "222", "user-token")

    assert result.success is success
    if error_fragment:
        assert error_fragment in result.error
    else:
        assert result.error is None
    assert seen == {
        "method": "POST",
        "params": {"broadcaster_id": "111", "user_id": "222"},
        "auth": "Bearer user-token",
        "client_id": "cid",
    }


@pytest.mark.asyncio
async def test_add_moderator_transport_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out")

    result = await _api(handler).add_moderator("111", "222", "tok")

    assert result.success is False
    assert result.error


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,body,success",
    [
        (204, None, True),
        (400, {"message": "user is not a moderator in this channel"}, True),
        (400, {"message": "broadcaster_id is invalid"}, False),
        (401, {"message": "unauthorized"}, False),
    ],
)
async def test_remove_moderator_status_mapping(status, body, success):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        return httpx.Response(status, json=body) if body else httpx.Response(status)

    result = await _api(handler).remove_moderator("111", "222", "tok")

    assert result.success is success


# ============================================
# Tokens and users
# ============================================


@pytest.mark.asyncio
async def test_refresh_access_token_success():
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["refresh_token"]
        assert form["refresh_token"] == ["old-refresh"]
        return httpx.Response(
            200,
            json={"access_token": "new-access", "refresh_token": "new-refresh", "expires_in": 14000},
        )

    result = await _api(handler).refresh_access_token("old-refresh")

    assert result.success
    assert result.access_token == "new-access"
    assert result.refresh_token == "new-refresh"
    assert result.expires_in == 14000


@pytest.mark.asyncio
async def test_refresh_keeps_old_refresh_token_when_not_rotated():
    result = await _api(
        lambda request: httpx.Response(200, json={"access_token": "new-access"})
    ).refresh_access_token("old-refresh")

    assert result.success
    assert result.refresh_token == "old-refresh"


@pytest.mark.asyncio
async def test_refresh_failure_carries_twitch_message():
    result = await _api(
        lambda request: httpx.Response(400, json={"status": 400, "message": "Invalid refresh token"})
    ).refresh_access_token("bad")

    assert result.success is False
    assert result.error == "Invalid refresh token"


@pytest.mark.asyncio
async def test_app_token_is_cached_between_lookups():
    calls = {"token": 0, "users": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/token":
            calls["token"] += 1
            return httpx.Response(200, json={"access_token": "app-token", "expires_in": 3600})
        calls["users"] += 1
        assert request.headers["Authorization"] == "Bearer app-token"
        assert request.url.params["login"] == "chatvibesbot"
        return httpx.Response(200, json={"data": [{"id": "9999", "login": "chatvibesbot"}]})

    api = _api(handler)

    assert await api.get_user_id_by_login("ChatVibesBot") == "9999"
    assert await api.get_user_id_by_login("chatvibesbot") == "9999"
    assert calls == {"token": 1, "users": 2}


@pytest.mark.asyncio
async def test_unknown_login_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth2/token":
            return httpx.Response(200, json={"access_token": "app-token", "expires_in": 3600})
        return httpx.Response(200, json={"data": []})

    assert await _api(handler).get_user_id_by_login("nobody") is None


@pytest.mark.asyncio
async def test_exchange_code_failure_returns_none():
    result = await _api(lambda request: httpx.Response(400, json={"message": "bad code"})).exchange_code_for_token(
        "code", "https://cb"
    )

    assert result is None


@pytest.mark.asyncio
async def test_validate_token():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "OAuth user-token"
        return httpx.Response(200, json={"login": "someone", "user_id": "5", "expires_in": 100})

    data = await _api(handler).validate_token("user-token")

    assert data["user_id"] == "5"


# ============================================
# Channel points
# ============================================


@pytest.mark.asyncio
async def test_get_custom_rewards_passes_filters():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"data": [{"id": "r1", "title": "Text-to-Speech Message"}]})

    rewards = await _api(handler).get_custom_rewards("1001", "tok", only_manageable=True)

    assert rewards == [{"id": "r1", "title": "Text-to-Speech Message"}]
    assert seen["params"] == {"broadcaster_id": "1001", "only_manageable_rewards": "true"}


@pytest.mark.asyncio
async def test_create_custom_reward_returns_created_reward():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        return httpx.Response(200, json={"data": [{"id": "new-reward"}]})

    assert await _api(handler).create_custom_reward("1001", {"title": "x"}, "tok") == {"id": "new-reward"}


@pytest.mark.asyncio
async def test_create_custom_reward_failure_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "CREATE_CUSTOM_REWARD_DUPLICATE_REWARD"})

    assert await _api(handler).create_custom_reward("1001", {"title": "x"}, "tok") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status,deleted", [(204, True), (404, False), (403, False)])
async def test_delete_custom_reward_status_mapping(status, deleted):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert request.url.params["id"] == "r1"
        return httpx.Response(status)

    assert await _api(handler).delete_custom_reward("1001", "r1", "tok") is deleted
