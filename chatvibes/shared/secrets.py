"""Secret Manager access for per-user credentials.

Twitch user tokens and OBS browser-source tokens are kept in Secret Manager,
one secret per credential, with Firestore documents holding only references
and expiry metadata. Every write adds a new version; reads use ``latest``.
"""

from __future__ import annotations

import logging

from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud import secretmanager

logger = logging.getLogger(__name__)


def twitch_access_token_secret_id(user_id: str) -> str:
    return f"twitch-access-token-{user_id}"


def twitch_refresh_token_secret_id(user_id: str) -> str:
    return f"twitch-refresh-token-{user_id}"


def obs_token_secret_id(channel_login: str) -> str:
    return f"obs-token-{channel_login.lower()}"


class SecretStore:
    """Thin async wrapper over ``SecretManagerServiceAsyncClient``."""

    def __init__(self, client: secretmanager.SecretManagerServiceAsyncClient, project: str) -> None:
        if not project:
            raise ValueError("A Google Cloud project id is required for Secret Manager")
        self.client = client
        self.project = project

    def secret_path(self, secret_id: str) -> str:
        return f"projects/{self.project}/secrets/{secret_id}"

    def latest_version(self, secret_id: str) -> str:
        return f"{self.secret_path(secret_id)}/versions/latest"

    async def access(self, secret_id: str) -> str | None:
        """Return the latest payload of *secret_id*, or None if it does not exist."""
        return await self.access_version(self.latest_version(secret_id))

    async def access_version(self, version_name: str) -> str | None:
        """Read a fully qualified version name (as stored on documents)."""
        try:
            response = await self.client.access_secret_version(request={"name": version_name})
        except NotFound:
            logger.debug(f"Secret version not found: {version_name}")
            return None

        data = response.payload.data if response.payload else b""
        value = data.decode("utf-8").strip() if data else ""
        return value or None

    async def put(self, secret_id: str, value: str) -> str:
        """Store *value* as a new version of *secret_id*, creating the secret if needed.

        Returns the ``versions/latest`` name to keep as a document reference.
        """
        try:
            await self.client.create_secret(
                request={
                    "parent": f"projects/{self.project}",
                    "secret_id": secret_id,
                    "secret": {"replication": {"automatic": {}}},
                }
            )
            logger.info(f"Created secret {secret_id}")
        except AlreadyExists:
            pass

        await self.client.add_secret_version(
            request={
                "parent": self.secret_path(secret_id),
                "payload": {"data": value.encode("utf-8")},
            }
        )
        logger.debug(f"Added new version of secret {secret_id}")
        return self.latest_version(secret_id)

    async def close(self) -> None:
        await self.client.transport.close()


def create_secret_store(project: str) -> SecretStore:
    """Create a ``SecretStore`` backed by a new async Secret Manager client."""
    try:
        client = secretmanager.SecretManagerServiceAsyncClient()
    except Exception as e:
        logger.exception(f"Secret Manager client initialization failed: {e}")
        raise

    logger.info(f"Secret Manager client initialized (project={project})")
    return SecretStore(client, project)
