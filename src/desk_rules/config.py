"""Application configuration."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from desk_shared import load_config_dict


class DeskAPISettings(BaseModel):
    """Desk platform API configuration."""

    # Provider: http (real desk API) or mock (in-memory store)
    provider: str = "mock"

    base_url: str = "https://desk-api.example.com/platform/v1"
    api_token: str = ""  # REQUIRED for the http provider
    token_header: str = "Authorization"

    # Project scope of every rule request
    project_id: str = ""
    region: str = ""

    timeout: float = 30.0


class RetrySettings(BaseModel):
    """Retry policy for idempotent reads.

    Writes (create, update, delete, reorder) are never retried.
    """

    max_attempts: int = 2
    base_delay: float = 0.5
    max_delay: float = 5.0


class RuleSettings(BaseModel):
    """Rule list limits."""

    # Creation is disabled once this many rules exist for a rule type
    max_rules: int = 20

    # Page size used to fetch the full active rule list
    list_limit: int = 50

    # Page size used to fetch ticket/customer custom fields for the key catalog
    custom_field_limit: int = 100


class Settings(BaseSettings):
    """Application settings.

    Loaded from:
    1. Environment variables (DESK_*)
    2. configs/{environment}.yaml
    3. configs/default.yaml
    """

    model_config = SettingsConfigDict(
        env_prefix="DESK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Subsystems
    api: DeskAPISettings = Field(default_factory=DeskAPISettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    rules: RuleSettings = Field(default_factory=RuleSettings)

    @property
    def uses_mock_api(self) -> bool:
        """Whether the in-memory desk client is configured."""
        return self.api.provider.lower() == "mock"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings object loaded from config files and environment.
    """
    config_dict: dict[str, Any] = load_config_dict(Path("configs"), envvar_prefix="DESK")
    return Settings(**config_dict)


def validate_production_settings(settings: Settings) -> list[str]:
    """Validate settings for production readiness.

    Args:
        settings: Application settings to validate.

    Returns:
        List of validation error messages (empty if all valid).
    """
    errors: list[str] = []

    if settings.environment not in ("production", "staging", "prod"):
        return errors

    if settings.uses_mock_api:
        errors.append("DESK_API__PROVIDER must not be 'mock' in production")

    if not settings.api.api_token:
        errors.append("DESK_API__API_TOKEN must be set in production")

    if not settings.api.project_id:
        errors.append("DESK_API__PROJECT_ID must be set in production")

    if not settings.api.base_url.startswith("https://"):
        errors.append("DESK_API__BASE_URL must use https in production")

    if settings.retry.max_attempts < 1:
        errors.append("DESK_RETRY__MAX_ATTEMPTS must be at least 1")

    return errors
