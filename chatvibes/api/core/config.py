"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Firebase Hosting emulator origins
_LOCAL_HOSTING_ORIGINS = ["http://127.0.0.1:5002", "http://localhost:5002"]


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Session tokens
    jwt_secret: str = Field(default="", description="Shared secret for session token signing")
    jwt_issuer: str = Field(default="chatvibes-auth", description="Session token issuer")
    jwt_audience: str = Field(default="chatvibes-api", description="Session token audience")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expire_days: int = Field(default=7, description="Session token lifetime in days")

    # Twitch OAuth
    twitch_client_id: str = Field(default="", description="Twitch OAuth Client ID")
    twitch_client_secret: str = Field(default="", description="Twitch OAuth Client Secret")
    twitch_bot_username: str = Field(default="", description="Bot account added as moderator")
    callback_url: str = Field(default="", description="Twitch OAuth redirect URI")

    # Server URLs
    frontend_url: str = Field(default="", description="Dashboard URL (redirects, CORS, shortlinks)")
    tts_bot_url: str = Field(default="", description="TTS bot service URL for EventSub setup")
    obs_browser_base_url: str = Field(
        default="https://chatvibes-tts-service-h7kj56ct4q-uc.a.run.app",
        description="Base URL of the OBS browser-source overlay",
    )

    # TTS provider
    wavespeed_api_key: str = Field(default="", description="Wavespeed AI API key")

    # Channel allow-list (comma separated logins, empty = unrestricted)
    allowed_channels: str = Field(default="", description="Channels allowed to add the bot")

    # Firestore
    gcloud_project: str = Field(default="", description="Google Cloud project id")

    # Environment
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    serve_frontend: bool = Field(default=True, description="Serve the static dashboard")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        origins = [self.frontend_origin] if self.frontend_origin else []
        if self.is_development:
            origins.extend(o for o in _LOCAL_HOSTING_ORIGINS if o not in origins)
        return origins

    @property
    def frontend_origin(self) -> str:
        """Scheme and host of the frontend URL, or an empty string"""
        parsed = urlparse(self.frontend_url)
        if not parsed.scheme or not parsed.netloc:
            return ""
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def allowed_channel_list(self) -> list[str] | None:
        """Lowercased allow-list, or None when every channel is allowed"""
        if not self.allowed_channels.strip():
            return None
        return [c.strip().lower() for c in self.allowed_channels.split(",") if c.strip()]

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
