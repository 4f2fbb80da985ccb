"""Configuration management for the Copilot MCP server."""

import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env" if os.getenv("ENVIRONMENT") != "test" else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "GitHub Copilot Metrics Manager"
    app_version: str = "1.0.0"
    environment: str = Field(default="development")

    # GitHub Authentication
    github_token: Optional[str] = Field(default=None)
    github_app_id: Optional[str] = Field(default=None)
    github_private_key: Optional[str] = Field(default=None)
    github_installation_id: Optional[str] = Field(default=None)
    github_api_url: str = Field(default="https://api.github.com")

    # Server Configuration
    log_level: Literal["error", "warn", "info", "debug"] = Field(default="info")
    api_timeout: int = Field(default=30000, description="Request timeout in ms")
    # Accepted for compatibility with existing deployments; not enforced
    cache_ttl: int = Field(
        default=300, description="Cache time-to-live in seconds (accepted for compatibility, unused)"
    )
    rate_limit_enabled: bool = Field(
        default=True, description="Client-side rate limiting (accepted for compatibility, unused)"
    )
    rate_limit_max_requests: int = Field(
        default=100, description="Requests per window (accepted for compatibility, unused)"
    )
    rate_limit_window_ms: int = Field(
        default=60000, description="Rate limit window in ms (accepted for compatibility, unused)"
    )

    # Retry
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator("github_private_key", mode="before")
    @classmethod
    def unescape_private_key(cls, v):
        # PEM keys are often passed as a single line with literal "\n"
        if isinstance(v, str):
            return v.replace("\\n", "\n")
        return v

    @model_validator(mode="after")
    def require_credentials(self):
        if not self.github_token and not self.has_app_credentials:
            raise ValueError(
                "Either GITHUB_TOKEN or complete GitHub App credentials "
                "(GITHUB_APP_ID, GITHUB_PRIVATE_KEY, GITHUB_INSTALLATION_ID) "
                "must be provided"
            )
        return self

    @property
    def has_app_credentials(self) -> bool:
        return bool(
            self.github_app_id
            and self.github_private_key
            and self.github_installation_id
        )

    @property
    def auth_mode(self) -> str:
        """Authentication strategy in use: ``token`` wins over ``app``."""
        return "token" if self.github_token else "app"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
