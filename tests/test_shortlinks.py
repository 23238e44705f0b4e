import re
from unittest.mock import patch

import pytest
from google.api_core.exceptions import ServiceUnavailable

from chatvibes.api.services import shortlink_service
from chatvibes.api.services.shortlink_service import (
    MAX_SLUG_ATTEMPTS,
    ShortlinkService,
    generate_slug,
    is_valid_url,
)
from chatvibes.api.services.errors import ShortlinkError


def test_generate_slug_is_twelve_hex_chars():
    assert re.fullmatch(r"[0-9a-f]{12}", generate_slug())


@pytest.mark.parametrize(
    "url,valid",
    [
        ("https://example.com/some/long/path?q=1", True),
        ("http://localhost:8080", True),
        ("example.com", False),
        ("ftp://example.com/file", False),
        ("not a url", False),
        ("https://", False),
    ],
)
def test_is_valid_url(url, valid):
    assert is_valid_url(url) is valid


# ============================================
# POST /api/shortlink
# ============================================


@pytest.mark.asyncio
async def test_create_requires_auth(client):
    response = await client.post("/api/shortlink", json={"url": "https://example.com"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_shortlink(client, auth_headers, fake_db):
    response = await client.post(
        "/api/shortlink", json={"url": "https://example.com/a"}, headers=auth_headers
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    slug = body["slug"]
    assert re.fullmatch(r"[0-9a-f]{12}", slug)
    assert body["shortUrl"] == f"/s/{slug}"
    assert body["absoluteUrl"] == f"https://chatvibes.test/s/{slug}"

    stored = fake_db.data("shortlinks", slug)
    assert stored["url"] == "https://example.com/a"
    assert stored["clicks"] == 0
    assert stored["createdAt"] is not None


@pytest.mark.asyncio
async def test_absolute_url_falls_back_to_path(settings, client, auth_headers):
    settings.frontend_url = ""

    body = (
        await client.post("/api/shortlink", json={"url": "https://example.com"}, headers=auth_headers)
    ).json()

    assert body["absoluteUrl"] == body["shortUrl"]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"url": ""}, {"url": "   "}, None])
async def test_create_without_url_is_400(client, auth_headers, payload):
    response = await client.post("/api/shortlink", json=payload, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "URL is required"}


@pytest.mark.asyncio
async def test_create_with_invalid_url_is_400(client, auth_headers, fake_db):
    response = await client.post(
        "/api/shortlink", json={"url": "definitely not a url"}, headers=auth_headers
    )

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid URL provided"}
    assert fake_db.collections.get("shortlinks", {}) == {}


@pytest.mark.asyncio
async def test_slug_collision_draws_a_new_slug(fake_db):
    fake_db.seed("shortlinks", "aaaaaaaaaaaa", {"url": "https://taken.example", "clicks": 7})
    service = ShortlinkService(fake_db)

    with patch.object(
        shortlink_service, "generate_slug", side_effect=["aaaaaaaaaaaa", "bbbbbbbbbbbb"]
    ):
        result = await service.create("https://new.example")

    assert result["slug"] == "bbbbbbbbbbbb"
    assert fake_db.data("shortlinks", "aaaaaaaaaaaa")["url"] == "https://taken.example"
    assert fake_db.data("shortlinks", "bbbbbbbbbbbb")["url"] == "https://new.example"


@pytest.mark.asyncio
async def test_slug_attempts_are_bounded(fake_db):
    fake_db.seed("shortlinks", "aaaaaaaaaaaa", {"url": "https://taken.example", "clicks": 0})
    service = ShortlinkService(fake_db)

    with patch.object(shortlink_service, "generate_slug", return_value="aaaaaaaaaaaa") as gen:
        with pytest.raises(ShortlinkError) as exc_info:
            await service.create("https://new.example")

    assert exc_info.value.status_code == 500
    assert gen.call_count == MAX_SLUG_ATTEMPTS


# ============================================
# GET /s/{slug}
# ============================================


@pytest.mark.asyncio
async def test_unknown_slug_is_404_plain_text(client):
    response = await client.get("/s/doesnotexist")

    assert response.status_code == 404
    assert response.text == "Short link not found"
    assert response.headers["content-type"].startswith("text/plain")


@pytest.mark.asyncio
async def test_redirect_is_301_and_counts_each_click(client, fake_db):
    fake_db.seed("shortlinks", "abc123abc123", {"url": "https://example.com/target", "clicks": 0})

    for expected_clicks in (1, 2, 3):
        response = await client.get("/s/abc123abc123")

        assert response.status_code == 301
        assert response.headers["location"] == "https://example.com/target"
        assert fake_db.data("shortlinks", "abc123abc123")["clicks"] == expected_clicks

    assert fake_db.data("shortlinks", "abc123abc123")["lastClickedAt"] is not None


@pytest.mark.asyncio
async def test_redirect_is_public(client, fake_db):
    fake_db.seed("shortlinks", "publicslug00", {"url": "https://example.com", "clicks": 0})

    response = await client.get("/s/publicslug00")

    assert response.status_code == 301


@pytest.mark.asyncio
async def test_created_link_resolves(client, auth_headers):
    created = (
        await client.post("/api/shortlink", json={"url": "https://example.com/x"}, headers=auth_headers)
    ).json()

    response = await client.get(created["shortUrl"])

    assert response.status_code == 301
    assert response.headers["location"] == "https://example.com/x"


@pytest.mark.asyncio
async def test_counter_failure_still_redirects(fake_db):
    fake_db.seed("shortlinks", "flaky0000000", {"url": "https://example.com", "clicks": 0})
    service = ShortlinkService(fake_db)

    with patch.object(
        service.links, "record_click", side_effect=ServiceUnavailable("firestore down")
    ):
        url = await service.resolve("flaky0000000")

    assert url == "https://example.com"
