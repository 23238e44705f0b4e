"""Channel point TTS reward service.

Each channel has at most one "Text-to-Speech Message" custom reward. Its
settings live under ``channelPoints`` in the channel's TTS config, with the
flat ``channelPointRewardId``/``channelPointsEnabled`` fields kept in step for
older bot builds. Twitch sync failures are logged and never block the stored
configuration.
"""

import logging
import re
import time
from typing import Any

from google.cloud import firestore

from chatvibes.shared.repositories import TTSConfigRepository

from .auth_service import SessionUser
from .channel_service import ChannelService
from .errors import RewardError, TwitchTokenError
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)

REWARD_TITLE = "Text-to-Speech Message"

DEFAULT_REWARD = {
    "title": REWARD_TITLE,
    "cost": 500,
    "prompt": "Enter a message to be read aloud by the TTS bot",
    "is_user_input_required": True,
    "should_redemptions_skip_request_queue": True,
    "is_enabled": True,
}

LINK_PATTERN = re.compile(r"(https?://\S+|\b\w+\.[a-z]{2,}\b)", re.IGNORECASE)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


# ==================== Config normalization ====================


def normalize_content_policy(policy: dict[str, Any] | None) -> dict[str, Any]:
    policy = policy or {}
    banned = policy.get("bannedWords")
    return {
        "minChars": _clamp(_as_int(policy.get("minChars", 1), 1), 0, 500),
        "maxChars": _clamp(_as_int(policy.get("maxChars", 200), 200), 1, 500),
        "blockLinks": policy.get("blockLinks") is not False,
        "bannedWords": list(banned)[:100] if isinstance(banned, list) else [],
    }


def normalize_reward_config(body: dict[str, Any]) -> dict[str, Any]:
    """Clamp dashboard input to the ranges Twitch accepts."""
    limits_enabled = body.get("limitsEnabled") is True
    min_cooldown = 1 if limits_enabled else 0
    return {
        "enabled": bool(body.get("enabled")),
        "title": str(body.get("title") or REWARD_TITLE)[:45],
        "cost": _clamp(_as_int(body.get("cost") or 500, 500), 1, 999999),
        "prompt": str(body.get("prompt") or "Enter a message to be read aloud")[:100],
        "skipQueue": body.get("skipQueue") is not False,
        "cooldownSeconds": _clamp(
            _as_int(body.get("cooldownSeconds"), min_cooldown), min_cooldown, 3600
        ),
        "perStreamLimit": _clamp(_as_int(body.get("perStreamLimit"), 0), 0, 1000),
        "perUserPerStreamLimit": _clamp(_as_int(body.get("perUserPerStreamLimit"), 0), 0, 1000),
        "contentPolicy": normalize_content_policy(body.get("contentPolicy")),
        "limitsEnabled": limits_enabled,
    }


def build_twitch_reward_update(config: dict[str, Any]) -> dict[str, Any]:
    """Helix update body; each limit is sent together with its enable flag."""
    limits = config["limitsEnabled"]
    cooldown = config["cooldownSeconds"]
    per_stream = config["perStreamLimit"]
    per_user = config["perUserPerStreamLimit"]
    return {
        "title": config["title"],
        "cost": config["cost"],
        "prompt": config["prompt"],
        "is_enabled": config["enabled"],
        "should_redemptions_skip_request_queue": config["skipQueue"],
        "is_global_cooldown_enabled": limits and cooldown > 0,
        "global_cooldown_seconds": cooldown if cooldown > 0 else 1,
        "is_max_per_stream_enabled": limits and per_stream > 0,
        "max_per_stream": per_stream,
        "is_max_per_user_per_stream_enabled": limits and per_user > 0,
        "max_per_user_per_stream": per_user,
    }


def check_message(policy: dict[str, Any] | None, text: Any) -> str | None:
    """Return why *text* breaks the channel's content policy, or None if it passes."""
    if not isinstance(text, str) or not text.strip():
        return "Message is empty"

    policy = normalize_content_policy(policy)
    trimmed = text.strip()

    if len(trimmed) < policy["minChars"]:
        return f"Message too short (min {policy['minChars']})"
    if len(trimmed) > policy["maxChars"]:
        return f"Message too long (max {policy['maxChars']})"

    if policy["blockLinks"] and LINK_PATTERN.search(trimmed):
        return "Links are not allowed"

    for word in policy["bannedWords"]:
        word = str(word or "").strip()
        if word and re.search(rf"\b{re.escape(word)}\b", trimmed, re.IGNORECASE):
            return f'Contains banned word: "{word}"'

    return None


# ==================== Service ====================


class RewardsService:
    def __init__(
        self,
        db: firestore.AsyncClient,
        channel_service: ChannelService,
        twitch_api: TwitchAPIClient,
    ) -> None:
        self.tts_configs = TTSConfigRepository(db)
        self.channel_service = channel_service
        self.twitch_api = twitch_api

    async def get_config(self, user: SessionUser) -> dict:
        """Stored reward config plus the live Twitch reward, when one exists."""
        login = user.user_login
        config = await self.tts_configs.get_channel_config(login) or {}
        channel_points = config.get("channelPoints")

        twitch_status = None
        reward_id = (channel_points or {}).get("rewardId")
        if reward_id:
            try:
                token = await self.channel_service.get_valid_token(login, self.twitch_api)
            except TwitchTokenError as e:
                logger.warning(f"Skipping Twitch reward lookup for {login}: {e}")
            else:
                broadcaster_id = config.get("twitchUserId") or user.user_id
                rewards = await self.twitch_api.get_custom_rewards(
                    broadcaster_id, token, reward_id=reward_id
                )
                twitch_status = rewards[0] if rewards else None

        return {"success": True, "channelPoints": channel_points, "twitchStatus": twitch_status}

    async def save_config(self, user: SessionUser, body: dict[str, Any]) -> dict:
        """Store the reward config, creating the Twitch reward on first enable.

        Raises:
            TwitchTokenError: the reward had to be created but no token is usable.
            RewardError: Twitch refused to create the reward.
        """
        login = user.user_login
        broadcaster_id = user.user_id
        config = normalize_reward_config(body)

        existing = await self.tts_configs.get_channel_config(login) or {}
        reward_id = (existing.get("channelPoints") or {}).get("rewardId")

        if config["enabled"] and not reward_id:
            reward_id = await self._ensure_reward(
                login, broadcaster_id, existing.get("channelPointRewardId")
            )

        if reward_id:
            await self._sync_reward(login, broadcaster_id, reward_id, config)

        channel_points = {**config, "rewardId": reward_id, "lastSyncedAt": _now_ms()}
        await self.tts_configs.merge_channel_config(
            login,
            {
                "channelPoints": channel_points,
                "channelPointRewardId": reward_id,
                "channelPointsEnabled": config["enabled"],
            },
        )
        logger.info(f"Reward config saved for {login}: enabled={config['enabled']}, rewardId={reward_id}")

        return {
            "success": True,
            "channelPoints": channel_points,
            "message": (
                "Channel point reward configured successfully"
                if config["enabled"]
                else "Channel point reward disabled"
            ),
        }

    async def delete_reward(self, user: SessionUser) -> dict:
        """Disable the reward locally and delete it on Twitch when possible."""
        login = user.user_login
        config = await self.tts_configs.get_channel_config(login) or {}
        channel_points = config.get("channelPoints") or {}
        reward_id = channel_points.get("rewardId") or config.get("channelPointRewardId")

        twitch_deleted = False
        if reward_id:
            try:
                token = await self.channel_service.get_valid_token(login, self.twitch_api)
                channel = await self.channel_service.get_channel(login)
                if channel and channel.twitch_user_id:
                    twitch_deleted = await self.twitch_api.delete_custom_reward(
                        channel.twitch_user_id, reward_id, token
                    )
            except TwitchTokenError as e:
                logger.warning(f"Twitch reward delete skipped for {login}: {e}")

        await self.tts_configs.merge_channel_config(
            login,
            {
                "channelPoints": {
                    **channel_points,
                    "enabled": False,
                    "rewardId": None if twitch_deleted else channel_points.get("rewardId"),
                    "lastSyncedAt": _now_ms(),
                },
                "channelPointsEnabled": False,
                "channelPointRewardId": (
                    None if twitch_deleted else config.get("channelPointRewardId")
                ),
            },
        )
        logger.info(f"Reward disabled for {login} (twitchDeleted={twitch_deleted})")

        return {
            "success": True,
            "twitchDeleted": twitch_deleted,
            "message": (
                "Disabled & deleted reward"
                if twitch_deleted
                else "Disabled locally; delete may require re-auth or manual removal"
            ),
        }

    async def check_test_message(self, channel_login: str, text: Any) -> str | None:
        config = await self.tts_configs.get_channel_config(channel_login) or {}
        policy = (config.get("channelPoints") or {}).get("contentPolicy")
        return check_message(policy, text)

    # ==================== Twitch ====================

    async def _sync_reward(
        self, login: str, broadcaster_id: str, reward_id: str, config: dict[str, Any]
    ) -> None:
        try:
            token = await self.channel_service.get_valid_token(login, self.twitch_api)
        except TwitchTokenError as e:
            logger.warning(f"Reward {reward_id} not synced to Twitch for {login}: {e}")
            return

        if await self.twitch_api.update_custom_reward(
            broadcaster_id, reward_id, build_twitch_reward_update(config), token
        ):
            logger.info(f"Updated Twitch reward {reward_id} for {login}")

    async def _ensure_reward(
        self, login: str, broadcaster_id: str, known_reward_id: str | None
    ) -> str:
        """Reuse or create the channel's TTS reward and return its id."""
        token = await self.channel_service.get_valid_token(login, self.twitch_api)

        if known_reward_id and await self.twitch_api.update_custom_reward(
            broadcaster_id, known_reward_id, DEFAULT_REWARD, token
        ):
            logger.info(f"Reusing stored reward {known_reward_id} for {login}")
            return known_reward_id

        rewards = await self.twitch_api.get_custom_rewards(
            broadcaster_id, token, only_manageable=True
        )
        for reward in rewards or []:
            if reward.get("title") == REWARD_TITLE:
                await self.twitch_api.update_custom_reward(
                    broadcaster_id, reward["id"], DEFAULT_REWARD, token
                )
                logger.info(f"Reusing existing Twitch reward {reward['id']} for {login}")
                return reward["id"]

        created = await self.twitch_api.create_custom_reward(broadcaster_id, DEFAULT_REWARD, token)
        if not created or not created.get("id"):
            raise RewardError("Failed to create TTS channel point reward")

        logger.info(f"Created Twitch reward {created['id']} for {login}")
        return created["id"]
