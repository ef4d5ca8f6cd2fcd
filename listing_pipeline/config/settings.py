"""
Application settings and configuration management.

This module handles environment variables, API keys and pipeline behaviour
switches using Pydantic settings management for type safety and validation.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional, Self

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Sensitive values are stored as SecretStr to prevent accidental logging.
    Settings are validated on load and cached for performance.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # API Keys
    anthropic_api_key: Optional[SecretStr] = Field(default=None, alias="ANTHROPIC_API_KEY")

    # Application Configuration
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        alias="LOG_LEVEL"
    )
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Model Configuration
    claude_model: str = Field(
        default="claude-sonnet-4-20250514",
        alias="CLAUDE_MODEL"
    )
    claude_max_tokens: int = Field(default=4000, alias="CLAUDE_MAX_TOKENS")
    generation_temperature: float = Field(default=0.7, alias="GENERATION_TEMPERATURE")

    # Rate Limits and Resilience
    max_requests_per_minute: int = Field(default=20, alias="MAX_REQUESTS_PER_MINUTE")
    max_concurrent_generations: int = Field(default=4, alias="MAX_CONCURRENT_GENERATIONS")
    request_timeout_seconds: int = Field(default=30, alias="REQUEST_TIMEOUT_SECONDS")
    max_retries: int = Field(default=3, alias="MAX_RETRIES")
    circuit_failure_threshold: int = Field(default=5, alias="CIRCUIT_FAILURE_THRESHOLD")
    circuit_recovery_seconds: int = Field(default=60, alias="CIRCUIT_RECOVERY_SECONDS")
    step_timeout_seconds: int = Field(default=300, alias="STEP_TIMEOUT_SECONDS")

    # Cache Settings
    cache_enabled: bool = Field(default=True, alias="CACHE_ENABLED")
    cache_ttl_seconds: int = Field(default=3600, alias="CACHE_TTL_SECONDS")

    # Human Review
    review_mode: Optional[Literal["auto", "manual"]] = Field(default=None, alias="REVIEW_MODE")
    review_auto_approve_delay: float = Field(default=0.5, ge=0, alias="REVIEW_AUTO_APPROVE_DELAY")
    review_timeout_seconds: Optional[float] = Field(default=None, gt=0, alias="REVIEW_TIMEOUT_SECONDS")
    auto_reviewer: str = Field(default="system@lg.com", alias="AUTO_REVIEWER")

    # Listing Defaults
    default_brand: str = Field(default="LG", alias="DEFAULT_BRAND")
    asset_base_url: str = Field(default="https://cdn.example.com", alias="ASSET_BASE_URL")
    publish_url_template: str = Field(
        default="https://{platform}.example.com/products/{product_id}",
        alias="PUBLISH_URL_TEMPLATE",
    )
    min_spec_fields: int = Field(default=5, ge=0, alias="MIN_SPEC_FIELDS")

    # Events
    event_webhook_url: Optional[str] = Field(default=None, alias="EVENT_WEBHOOK_URL")

    # Output Settings
    state_dir: Path = Field(default=Path("outputs/state"), alias="STATE_DIR")
    output_dir: Path = Field(default=Path("outputs/reports"), alias="OUTPUT_DIR")
    save_run_reports: bool = Field(default=False, alias="SAVE_RUN_REPORTS")
    report_format: Literal["json", "markdown"] = Field(
        default="markdown",
        alias="REPORT_FORMAT"
    )

    @field_validator("state_dir", "output_dir", mode="before")
    @classmethod
    def validate_directories(cls, v: str | Path) -> Path:
        """Ensure directories exist."""
        path = Path(v)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def validate_anthropic_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate Anthropic API key format when one is configured."""
        if v in (None, ""):
            return None
        if not str(v).startswith("sk-"):
            raise ValueError("Invalid Anthropic API key format")
        return v

    @model_validator(mode="after")
    def default_review_mode(self) -> Self:
        """Production waits for a human; every other environment auto-approves."""
        if self.review_mode is None:
            self.review_mode = "manual" if self.app_env == "production" else "auto"
        return self

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def effective_review_mode(self) -> str:
        return self.review_mode or ("manual" if self.is_production else "auto")

    def has_generation_backend(self) -> bool:
        """Whether a Claude API key is configured for live generation."""
        return self.anthropic_api_key is not None


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
