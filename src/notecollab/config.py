"""
Client configuration - using pydantic settings for env vars
"""

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings - loads from .env file"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # basic app stuff
    app_name: str = Field(default="NoteCollab Client")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)  # colored console logs when True
    environment: str = Field(default="development", description="Environment name")

    # remote note service
    api_base_url: str = Field(
        default="http://localhost:8080/api", description="Base URL of the note service"
    )
    request_timeout_seconds: float = Field(default=10.0, gt=0, description="HTTP timeout")

    # edit lock - renewal must fire well before the server drops the lock
    lock_ttl_seconds: float = Field(default=120.0, gt=0, description="Server lock TTL")
    lock_renewal_seconds: float = Field(default=90.0, gt=0, description="Renewal period")
    lock_max_missed_renewals: int = Field(
        default=1, ge=0, description="Consecutive failed renewal round trips tolerated"
    )
    strict_lock_on_submit: bool = Field(
        default=False, description="Refuse to submit locally once the lock has lapsed"
    )

    # form limits
    title_max_length: int = Field(default=100, ge=1)
    body_max_length: int = Field(default=280, ge=1)
    tag_max_length: int = Field(default=50, ge=1)
    tag_suggestion_limit: int = Field(default=5, ge=1)

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log format"
    )
    log_file: Optional[str] = Field(default=None, description="Rotating log file path")

    @model_validator(mode="after")
    def check_lock_timing(self) -> "Settings":
        if self.lock_renewal_seconds >= self.lock_ttl_seconds:
            raise ValueError(
                "lock_renewal_seconds must be strictly less than lock_ttl_seconds"
            )
        return self


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get client settings."""
    return settings
