"""Domain errors raised by the service layer and mapped to HTTP by the routers."""


class TwitchTokenError(Exception):
    """A usable Twitch user token could not be obtained."""

    def __init__(self, message: str, needs_reauth: bool = False):
        super().__init__(message)
        self.needs_reauth = needs_reauth


class TwitchAuthError(Exception):
    """The Twitch OAuth exchange did not produce a usable identity."""


class ChannelNotAllowedError(Exception):
    """The channel is not on the configured allow-list."""

    def __init__(self, channel_login: str):
        super().__init__(f"Channel {channel_login} is not on the allow-list")
        self.channel_login = channel_login


class ShortlinkError(Exception):
    """The shortlink could not be created."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class TTSProviderError(Exception):
    """The TTS provider rejected or failed the request."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ViewerPreferenceError(Exception):
    """A viewer preference read or update was rejected."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ObsTokenError(Exception):
    """The OBS browser-source token could not be produced."""

    def __init__(self, message: str, status_code: int = 500, needs_reauth: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.needs_reauth = needs_reauth


class RewardError(Exception):
    """The channel point reward could not be created on Twitch."""
