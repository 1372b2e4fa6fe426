"""
Configuration management for Group Scheduler.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./data/group_scheduler.db",
        description="Database connection URL"
    )

    # API Configuration
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )
    api_reload: bool = Field(
        default=True,
        description="Enable auto-reload in development"
    )

    # Recommendation / preference service
    recommendation_service_url: str = Field(
        default="",
        description="Base URL of the venue recommendation and preference service"
    )
    recommendation_api_key: str = Field(
        default="",
        description="Bearer token for the recommendation service"
    )
    recommendation_timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout for recommendation requests"
    )
    recommendation_radius_km: float = Field(
        default=10.0,
        description="Default search radius passed to the recommendation service"
    )

    # Notifications
    notification_webhook_url: str = Field(
        default="",
        description="Webhook that receives participant notifications (empty = log only)"
    )
    notification_webhook_secret: str = Field(
        default="",
        description="Shared secret used to sign notification payloads"
    )
    notification_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for notification delivery"
    )

    # Event lifecycle defaults
    default_acceptance_threshold: float = Field(
        default=0.70,
        description="Fraction of expected attendees that must accept before preference gathering starts"
    )
    voting_window_days: int = Field(
        default=3,
        description="Days between entering voting and the automatic voting deadline"
    )
    default_event_duration_minutes: int = Field(
        default=120,
        description="Estimated duration used when an event does not specify one"
    )
    feedback_rating_min: int = Field(
        default=1,
        description="Lowest accepted feedback rating"
    )
    feedback_rating_max: int = Field(
        default=5,
        description="Highest accepted feedback rating"
    )
    recurrence_max_days_in_advance: int = Field(
        default=365,
        description="Upper bound for a template's days_in_advance window"
    )
    min_advance_days: int = Field(
        default=3,
        ge=0,
        description="Events must start at least this many days after they are created or rescheduled"
    )
    rsvp_deadline_hours_before_start: int = Field(
        default=24,
        ge=0,
        description="Default invitation deadline, counted back from the event start"
    )
    auto_cancel_min_accepted: int = Field(
        default=2,
        description="Accepted participants below which an event is cancelled at its invitation deadline"
    )
    auto_cancel_min_ratio: float = Field(
        default=0.5,
        description="Fraction of expected attendees that must have accepted by the invitation deadline"
    )
    reminder_lead_hours: int = Field(
        default=24,
        description="Lead time of the day-before event, voting and RSVP reminders"
    )
    final_reminder_lead_minutes: int = Field(
        default=60,
        description="Lead time of the last reminder before an event starts"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("default_acceptance_threshold")
    @classmethod
    def threshold_is_fraction(cls, v: float) -> float:
        if not 0 < v <= 1:
            raise ValueError("default_acceptance_threshold must be in (0, 1]")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def uses_postgresql(self) -> bool:
        """Check if PostgreSQL is the configured database."""
        return "postgresql" in self.database_url.lower()

    @property
    def uses_recommendation_service(self) -> bool:
        """Check if a remote recommendation service is configured."""
        return bool(self.recommendation_service_url)

    @property
    def uses_notification_webhook(self) -> bool:
        """Check if notifications are delivered to a webhook."""
        return bool(self.notification_webhook_url)

    def validate_production_config(self) -> None:
        """
        Validate configuration for production environment.

        Raises:
            ValueError: If required production settings are missing or invalid
        """
        if not self.is_production:
            return

        errors = []

        if not self.uses_postgresql:
            errors.append(
                "Production requires PostgreSQL. "
                "Set DATABASE_URL to a PostgreSQL connection string."
            )

        if not self.uses_recommendation_service:
            errors.append("RECOMMENDATION_SERVICE_URL is required in production.")

        if self.uses_notification_webhook and not self.notification_webhook_secret:
            errors.append(
                "NOTIFICATION_WEBHOOK_SECRET is required when a notification webhook is set."
            )

        if errors:
            raise ValueError("Production configuration errors:\n- " + "\n- ".join(errors))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.

    Returns:
        Settings instance loaded from environment

    Example:
        >>> from group_scheduler.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.database_url)
    """
    return Settings()
