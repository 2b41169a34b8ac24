"""
Application settings and configuration management using Pydantic Settings.
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Settings
    app_name: str = Field(default="YardLine SMS Booking", description="Application name")
    app_env: str = Field(default="development", description="Environment (development, staging, production)")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Brand / driver-facing copy
    brand_name: str = Field(default="YardLine", description="Brand name used in SMS copy")
    support_email: str = Field(default="support@yardline.example", description="Fallback support contact")

    # Database Configuration
    database_url: str = Field(default="sqlite:///./yardline.db", description="Database connection URL")
    db_echo: bool = Field(default=False, description="Log all SQL statements")

    # Twilio Configuration
    twilio_account_sid: str = Field(default="", description="Twilio Account SID")
    twilio_auth_token: str = Field(default="", description="Twilio Auth Token")
    twilio_phone_number: str = Field(default="", description="Twilio phone number (E.164)")
    twilio_validate_signature: bool = Field(default=False, description="Validate X-Twilio-Signature on inbound SMS")
    public_base_url: str = Field(default="", description="Public base URL the providers call (for signature checks)")

    # Operator alerts
    alert_phone_e164: Optional[str] = Field(default=None, description="Phone that receives operator alerts")

    # Stripe Configuration
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")
    checkout_success_url: str = Field(default="https://yardline.example/paid", description="Checkout success redirect")
    checkout_cancel_url: str = Field(default="https://yardline.example/cancelled", description="Checkout cancel redirect")
    currency: str = Field(default="usd", description="Checkout currency")

    # Booking rules
    default_timezone: str = Field(default="America/Denver", description="Timezone for lots without one")
    service_day_rollover_hour: int = Field(default=8, ge=0, le=23, description="Hour before which bookings count for the previous day")
    conversation_idle_minutes: int = Field(default=30, ge=1, description="Idle minutes before a conversation expires")
    max_custom_nights: int = Field(default=90, ge=1, description="Largest custom stay length")
    max_lot_choices: int = Field(default=5, ge=1, description="Lots offered when a location matches several")

    # Scheduled notifications
    scheduler_batch_limit: int = Field(default=10, ge=1, description="Scheduled messages dispatched per poll")
    review_nudge_hour_local: int = Field(default=20, ge=0, le=23, description="Lot-local hour for the next-day review nudge")
    review_nudge_test_delay_minutes: Optional[int] = Field(
        default=None,
        ge=0,
        description="If set, send review nudges this many minutes after confirmation"
    )

    # Rate limiting
    rate_limit_max_messages: int = Field(default=8, ge=1, description="Inbound messages allowed per window")
    rate_limit_window_seconds: int = Field(default=10, ge=1, description="Rate limit window length")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")
    api_reload: bool = Field(default=False, description="Enable auto-reload")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed_levels:
            raise ValueError(f"log_level must be one of {allowed_levels}")
        return v_upper

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed_envs = ["development", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed_envs:
            raise ValueError(f"app_env must be one of {allowed_envs}")
        return v_lower

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def sms_dry_run(self) -> bool:
        """Outbound SMS is only logged when Twilio credentials are missing."""
        return not (self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number)

    @property
    def alerts_enabled(self) -> bool:
        """Check if an operator alert phone is configured."""
        return bool(self.alert_phone_e164)


# Global settings instance
settings = Settings()
