"""
Configuration for Mint Harness.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


PRODUCTION_BASE_URL = "https://api.circle.com"
SANDBOX_BASE_URL = "https://api-sandbox.circle.com"


class Settings(BaseSettings):
    """
    Harness configuration settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Mint API
    # SECURITY: never commit the API key; keep it in the environment or .env
    api_key: str = Field(
        default="",
        description="Mint API key sent as a bearer token",
        alias="CIRCLE_API_KEY",
    )
    environment: str = Field(
        default="sandbox",
        description="Mint environment: sandbox or production",
        alias="CIRCLE_ENV",
    )
    custom_base_url: Optional[str] = Field(
        default=None,
        description="Override for the Mint API base URL",
        alias="CIRCLE_BASE_URL",
    )
    request_timeout: float = Field(
        default=30.0,
        description="HTTP timeout for Mint API calls (seconds)",
        alias="REQUEST_TIMEOUT",
    )

    # Propagation polling used by the multi-step flows
    propagation_timeout: float = Field(
        default=30.0,
        description="Give up waiting for a remote resource after this many seconds",
        alias="PROPAGATION_TIMEOUT",
    )
    propagation_initial_delay: float = Field(
        default=1.0,
        description="First delay between polling attempts (seconds)",
        alias="PROPAGATION_INITIAL_DELAY",
    )
    propagation_max_delay: float = Field(
        default=8.0,
        description="Upper bound for the doubling polling delay (seconds)",
        alias="PROPAGATION_MAX_DELAY",
    )

    # Dashboard server
    host: str = Field(default="127.0.0.1", description="Dashboard host", alias="HOST")
    port: int = Field(default=3000, description="Dashboard port", alias="PORT")
    debug: bool = Field(default=False, description="Enable debug mode", alias="DEBUG")
    allowed_origins: list[str] = Field(
        default=["*"],
        description="CORS allowed origins",
        alias="ALLOWED_ORIGINS",
    )
    static_dir: str = Field(
        default="public",
        description="Directory with the static dashboard UI (served if present)",
        alias="STATIC_DIR",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def base_url(self) -> str:
        """Mint API base URL for the selected environment."""
        if self.custom_base_url:
            return self.custom_base_url.rstrip("/")
        return PRODUCTION_BASE_URL if self.is_production else SANDBOX_BASE_URL


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
