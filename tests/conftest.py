import copy
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud import firestore
from httpx import ASGITransport

from chatvibes.api.app import create_app
from chatvibes.api.core.config import Settings
from chatvibes.api.services import AuthService, ModeratorResult, TwitchAPIClient
from chatvibes.shared.secrets import SecretStore

JWT_SECRET = "test-secret-for-session-tokens"
GCP_PROJECT = "test-project"


# ============================================
# In-memory Firestore double
# ============================================


def _apply_transforms(current: dict, fields: dict) -> dict:
    """Resolve Firestore write transforms the way the server would."""
    result = dict(current)
    for key, value in fields.items():
        if value is firestore.SERVER_TIMESTAMP:
            result[key] = datetime.now(UTC)
        elif isinstance(value, firestore.Increment):
            result[key] = (current.get(key) or 0) + value.value
        elif isinstance(value, firestore.ArrayUnion):
            existing = list(current.get(key) or [])
            result[key] = existing + [v for v in value.values if v not in existing]
        elif isinstance(value, firestore.ArrayRemove):
            result[key] = [v for v in current.get(key) or [] if v not in value.values]
        else:
            result[key] = copy.deepcopy(value)
    return result


class FakeSnapshot:
    def __init__(self, doc_id: str, data: dict | None):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict | None:
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentReference:
    def __init__(self, store: dict, doc_id: str):
        self._store = store
        self.id = doc_id

    async def get(self) -> FakeSnapshot:
        return FakeSnapshot(self.id, self._store.get(self.id))

    async def set(self, data: dict, merge: bool = False) -> None:
        current = self._store.get(self.id, {}) if merge else {}
        self._store[self.id] = _apply_transforms(current, data)

    async def create(self, data: dict) -> None:
        if self.id in self._store:
            raise AlreadyExists(f"Document already exists: {self.id}")
        self._store[self.id] = _apply_transforms({}, data)

    async def update(self, data: dict) -> None:
        if self.id not in self._store:
            raise NotFound(f"No document to update: {self.id}")
        self._store[self.id] = _apply_transforms(self._store[self.id], data)


class FakeCollection:
    def __init__(self, store: dict):
        self._store = store

    def document(self, doc_id: str) -> FakeDocumentReference:
        return FakeDocumentReference(self._store, doc_id)


class FakeFirestore:
    """Just enough of ``firestore.AsyncClient`` for the repositories."""

    def __init__(self):
        self.collections: dict[str, dict[str, dict]] = {}

    def collection(self, name: str) -> FakeCollection:
        return FakeCollection(self.collections.setdefault(name, {}))

    def seed(self, collection: str, doc_id: str, data: dict) -> None:
        self.collections.setdefault(collection, {})[doc_id] = dict(data)

    def data(self, collection: str, doc_id: str) -> dict | None:
        return self.collections.get(collection, {}).get(doc_id)


# ============================================
# In-memory Secret Manager double
# ============================================


class FakeSecretManager:
    """The three ``SecretManagerServiceAsyncClient`` calls ``SecretStore`` makes."""

    def __init__(self):
        self.versions: dict[str, list[bytes]] = {}
        self.error: Exception | None = None
        self.transport = SimpleNamespace(close=AsyncMock())

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    async def create_secret(self, request: dict):
        self._check()
        name = f"{request['parent']}/secrets/{request['secret_id']}"
        if name in self.versions:
            raise AlreadyExists(f"Secret already exists: {name}")
        self.versions[name] = []
        return SimpleNamespace(name=name)

    async def add_secret_version(self, request: dict):
        self._check()
        parent = request["parent"]
        if parent not in self.versions:
            raise NotFound(f"Secret not found: {parent}")
        self.versions[parent].append(request["payload"]["data"])
        return SimpleNamespace(name=f"{parent}/versions/{len(self.versions[parent])}")

    async def access_secret_version(self, request: dict):
        self._check()
        name = request["name"]
        secret, _, version = name.partition("/versions/")
        versions = self.versions.get(secret)
        if not versions:
            raise NotFound(f"Secret version not found: {name}")
        data = versions[-1] if version == "latest" else versions[int(version) - 1]
        return SimpleNamespace(name=name, payload=SimpleNamespace(data=data))

    def seed(self, secret_id: str, value: str) -> None:
        path = f"projects/{GCP_PROJECT}/secrets/{secret_id}"
        self.versions.setdefault(path, []).append(value.encode("utf-8"))

    def value(self, secret_id: str) -> str | None:
        versions = self.versions.get(f"projects/{GCP_PROJECT}/secrets/{secret_id}")
        return versions[-1].decode("utf-8") if versions else None

    def remove(self, secret_id: str) -> None:
        self.versions.pop(f"projects/{GCP_PROJECT}/secrets/{secret_id}", None)


# ============================================
# Fixtures
# ============================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        jwt_secret=JWT_SECRET,
        twitch_client_id="test-client-id",
        twitch_client_secret="test-client-secret",
        twitch_bot_username="chatvibesbot",
        callback_url="https://api.chatvibes.test/auth/twitch/callback",
        frontend_url="https://chatvibes.test",
        tts_bot_url="",
        wavespeed_api_key="",
        allowed_channels="",
        environment="test",
        serve_frontend=False,
    )


@pytest.fixture
def fake_db() -> FakeFirestore:
    return FakeFirestore()


@pytest.fixture
def fake_secrets() -> FakeSecretManager:
    return FakeSecretManager()


@pytest.fixture
def secret_store(fake_secrets) -> SecretStore:
    return SecretStore(fake_secrets, GCP_PROJECT)


@pytest.fixture
def twitch_api() -> AsyncMock:
    api = AsyncMock(spec=TwitchAPIClient)
    api.get_user_id_by_login.return_value = "9999"
    api.add_moderator.return_value = ModeratorResult(success=True)
    api.remove_moderator.return_value = ModeratorResult(success=True)
    return api


@pytest.fixture
def http_client() -> httpx.AsyncClient | None:
    return None


@pytest.fixture
def app(settings, fake_db, secret_store, twitch_api, http_client):
    return create_app(
        settings,
        db=fake_db,
        secrets=secret_store,
        twitch_api=twitch_api,
        http_client=http_client,
    )


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_service() -> AuthService:
    return AuthService(JWT_SECRET)


@pytest.fixture
def make_headers(auth_service):
    def _make(login: str = "streamer1", user_id: str = "1001", scope: str | None = "streamer"):
        token = auth_service.create_session_token(user_id, login, login.title(), scope=scope)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def auth_headers(make_headers) -> dict[str, str]:
    return make_headers()


@pytest.fixture
def seed_channel(fake_db, fake_secrets):
    """Store a managed channel with a token that is valid for another hour."""

    def _seed(
        login: str = "streamer1",
        user_id: str = "1001",
        *,
        is_active: bool = False,
        oauth_tier: str = "full",
        needs_reauth: bool = False,
        expires_in: timedelta = timedelta(hours=1),
        **extra,
    ) -> None:
        fake_db.seed(
            "managedChannels",
            login,
            {
                "channelName": login,
                "twitchUserId": user_id,
                "twitchUserLogin": login,
                "twitchDisplayName": login.title(),
                "isActive": is_active,
                "needsTwitchReAuth": needs_reauth,
                "twitchAccessTokenExpiresAt": datetime.now(UTC) + expires_in,
                "oauthTier": oauth_tier,
                **extra,
            },
        )
        fake_secrets.seed(f"twitch-access-token-{user_id}", f"access-{login}")
        fake_secrets.seed(f"twitch-refresh-token-{user_id}", f"refresh-{login}")

    return _seed
