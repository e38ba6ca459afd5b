"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from deal_transfer.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Bitrix Deal Transfer"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Bitrix24
    bitrix_webhook_url: str = Field(..., min_length=1, description="Bitrix24 webhook URL")
    bitrix_max_attempts: int = Field(1, ge=1, description="Attempts per remote call")
    pagination_max_pages: int = Field(500, ge=1)

    # Transfer
    target_category_id: int = 0
    default_responsible_id: int = 1
    transfer_batch_size: int = Field(3, ge=1)
    completed_task_policy: Literal["preserve", "reopen"] = "preserve"
    reset_activity_completion: bool = True
    copy_activities: bool = True
    copy_checklists: bool = True
    copy_comments: bool = True
    strict_deal_exclusion: bool = True
    initial_stage: str = ""
    deal_title_suffix: str = ""

    # Poll mode
    poll_enabled: bool = False
    poll_source_category_id: int | None = None
    poll_interval_minutes: int = Field(5, ge=1)
    duplicate_check_enabled: bool = True
    duplicate_match_fields: list[str] = ["TITLE"]

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    @property
    def webhook_base(self) -> str:
        """Webhook URL without the trailing slash."""
        return self.bitrix_webhook_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        ConfigurationError: BITRIX_WEBHOOK_URL is missing or a value is invalid
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Invalid configuration: {', '.join(missing)}",
            {"fields": missing},
        ) from e
