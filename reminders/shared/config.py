"""
Configuration Management

Pydantic-settings based configuration for the reminder dispatch job.
All settings can be overridden via environment variables.
"""

from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from reminders.shared.exceptions import ConfigurationError

# Settings that must be present and non-empty before any I/O happens
REQUIRED_FIELDS: tuple[str, ...] = (
    "store_uri",
    "database_name",
    "collection_name",
    "email_sender",
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with REMINDERS_ and are case-insensitive.
    Example: REMINDERS_COLLECTION_NAME=users
    """

    model_config = SettingsConfigDict(
        env_prefix="REMINDERS_",
        env_file=[".env.local", ".env"],  # Try .env.local first
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Document store (required)
    store_uri: str | None = Field(
        default=None,
        description="DynamoDB endpoint URL for the reminder store",
    )
    database_name: str | None = Field(
        default=None,
        description="Database namespace, used as the table name prefix",
    )
    collection_name: str | None = Field(
        default=None,
        description="Collection holding user records, used as the table name suffix",
    )

    # Notification channel (required)
    email_sender: str | None = Field(
        default=None,
        description="SES verified sender identity used to send reminders",
    )

    # SES Configuration
    email_sender_name: str | None = Field(
        default=None,
        description="Display name for outbound emails",
    )
    email_subject: str = Field(
        default="Reminder",
        description="Subject line for reminder emails",
    )
    ses_configuration_set: str | None = Field(
        default=None,
        description="SES configuration set for tracking",
    )
    ses_endpoint_url: str | None = Field(
        default=None,
        description="SES endpoint URL (for local development)",
    )

    # AWS Configuration
    aws_region: str = Field(
        default="us-west-2",
        description="AWS region",
    )

    # Dispatch Configuration
    poll_interval_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Wait between completion polls of a send handle",
    )
    poll_timeout_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Accumulated poll wait after which a send is abandoned",
    )
    claim_enabled: bool = Field(
        default=True,
        description="Claim each reminder with a lease before sending it",
    )
    claim_lease_seconds: int = Field(
        default=600,
        gt=0,
        description="Lease length of a reminder claim",
    )
    default_display_name: str = Field(
        default="User",
        description="Recipient name used when a user record has none",
    )
    default_reminder_title: str = Field(
        default="You have a new reminder",
        description="Email body used when a reminder has no title",
    )

    # Application Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    def missing_required(self) -> list[str]:
        """Names of required settings that are absent or blank."""
        missing = []
        for name in REQUIRED_FIELDS:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                missing.append(name)
        return missing

    def validate_required(self) -> None:
        """
        Fail fast when any required setting is missing.

        Raises:
            ConfigurationError: Listing every missing setting
        """
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(missing)

    @property
    def table_name(self) -> str:
        """DynamoDB table holding the user collection."""
        return f"{self.database_name}-{self.collection_name}"

    @property
    def dynamodb_config(self) -> dict:
        """DynamoDB resource configuration."""
        config = {"region_name": self.aws_region}
        if self.store_uri:
            config["endpoint_url"] = self.store_uri
        return config

    @property
    def ses_config(self) -> dict:
        """SES client configuration."""
        config = {"region_name": self.aws_region}
        if self.ses_endpoint_url:
            config["endpoint_url"] = self.ses_endpoint_url
        return config


def load_settings() -> Settings:
    """
    Build settings once for an invocation.

    Not cached, so each scheduled run picks up the current environment.

    Raises:
        ConfigurationError: If a setting cannot be parsed
    """
    try:
        return Settings()
    except ValidationError as e:
        invalid = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise ConfigurationError(invalid) from e

