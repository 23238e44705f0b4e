"""Services layer - Business logic

Services are initialized with their dependencies and accessed through dependency injection.
"""

from .auth_service import STREAMER_SCOPE, VIEWER_SCOPE, AuthService, SessionUser
from .bot_service import BotService
from .channel_service import ChannelService
from .errors import (
    ChannelNotAllowedError,
    ObsTokenError,
    RewardError,
    ShortlinkError,
    TTSProviderError,
    TwitchAuthError,
    TwitchTokenError,
    ViewerPreferenceError,
)
from .obs_service import ObsService
from .rewards_service import RewardsService
from .shortlink_service import ShortlinkService
from .tts_service import TTSService, WavespeedClient
from .twitch_api import ModeratorResult, TokenRefreshResult, TwitchAPIClient
from .viewer_service import ViewerService

__all__ = [
    "STREAMER_SCOPE",
    "VIEWER_SCOPE",
    "AuthService",
    "BotService",
    "ChannelNotAllowedError",
    "ChannelService",
    "ModeratorResult",
    "ObsService",
    "ObsTokenError",
    "RewardError",
    "RewardsService",
    "SessionUser",
    "ShortlinkError",
    "ShortlinkService",
    "TTSProviderError",
    "TTSService",
    "TokenRefreshResult",
    "TwitchAPIClient",
    "TwitchAuthError",
    "TwitchTokenError",
    "ViewerPreferenceError",
    "ViewerService",
    "WavespeedClient",
]
