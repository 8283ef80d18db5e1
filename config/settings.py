"""
Configuration management using pydantic-settings.
Loads environment variables and provides typed settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Literal, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # LLM Provider Configuration (draft replies)
    llm_provider: Literal["openai", "anthropic", "google"] = Field(
        default="openai",
        description="LLM provider used for draft replies"
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model name/ID"
    )
    llm_temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="LLM temperature for draft replies"
    )
    llm_max_tokens: int = Field(
        default=400,
        gt=0,
        description="Token cap for a draft reply (prompt asks for under 180 words)"
    )

    # API Keys
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    google_api_key: str | None = None

    # Database
    database_url: str = Field(
        default="sqlite:///./data/crm.db",
        description="Database connection URL"
    )

    # Gmail
    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_refresh_token: str | None = None
    gmail_poll_max_results: int = Field(
        default=50,
        description="Maximum inbound messages fetched per poll"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Lead scoring
    premium_budget_threshold: int = Field(
        default=100_000_000,
        gt=0,
        description="Budget at or above which a lead earns the top budget score"
    )
    mid_tier_budget_threshold: Optional[int] = Field(
        default=None,
        gt=0,
        description="Mid budget tier; defaults to 60% of premium"
    )
    entry_tier_budget_threshold: Optional[int] = Field(
        default=None,
        gt=0,
        description="Entry budget tier; defaults to 50% of mid"
    )
    core_areas: List[str] = Field(
        default=["lekki", "victoria island"],
        description="Locations scored as a core-area match"
    )
    nearby_areas: List[str] = Field(
        default=["ajah", "ikoyi", "oniru", "chevron", "nearby"],
        description="Locations scored as a nearby-area match"
    )

    # Webhook intake
    idempotency_ttl_seconds: int = Field(
        default=60 * 60 * 24,
        description="How long a processed webhook idempotency key is remembered"
    )
    persistence_retry_attempts: int = Field(default=3, ge=1)
    persistence_retry_delay_seconds: float = Field(default=0.25, ge=0.0)
    initial_email_retry_attempts: int = Field(default=2, ge=1)
    initial_email_retry_delay_seconds: float = Field(default=0.5, ge=0.0)

    # Observability
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    log_file: str = Field(
        default="./data/logs/crm.log",
        description="Log file path"
    )

    # Job Scheduler
    enable_background_jobs: bool = Field(
        default=False,
        description="Enable background email polling"
    )
    email_poll_interval_minutes: int = Field(
        default=5,
        description="Interval for polling the inbox"
    )

    def validate_api_keys(self) -> None:
        """Validate that required API keys are present based on provider."""
        if self.llm_provider == "openai" and not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY required when LLM_PROVIDER=openai")
        elif self.llm_provider == "anthropic" and not self.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY required when LLM_PROVIDER=anthropic")
        elif self.llm_provider == "google" and not self.google_api_key:
            raise ValueError("GOOGLE_API_KEY required when LLM_PROVIDER=google")

    def validate_gmail_credentials(self) -> None:
        """Validate that Gmail OAuth credentials are present."""
        missing = [
            name for name, value in (
                ("GOOGLE_CLIENT_ID", self.google_client_id),
                ("GOOGLE_CLIENT_SECRET", self.google_client_secret),
                ("GOOGLE_REFRESH_TOKEN", self.google_refresh_token),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing Gmail configuration: {', '.join(missing)}")


# Global settings instance
settings = Settings()
