"""
Unit tests for configuration loading and validation.
"""

import pytest

from reminders.shared.config import REQUIRED_FIELDS, Settings, load_settings
from reminders.shared.exceptions import ConfigurationError


class TestRequiredSettings:
    """Tests for required-value validation."""

    def test_complete_settings_validate(self, settings):
        """Test a complete struct passes validation."""
        assert settings.missing_required() == []
        settings.validate_required()

    def test_empty_environment_reports_all_required(self):
        """Test every required field is reported when nothing is set."""
        settings = Settings(_env_file=None)

        assert settings.missing_required() == list(REQUIRED_FIELDS)

    def test_validate_raises_configuration_error(self):
        """Test validation raises with the missing names."""
        settings = Settings(
            _env_file=None,
            store_uri="https://dynamodb.us-west-2.amazonaws.com",
            database_name="Gnosis",
        )

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_required()

        assert exc_info.value.missing == ["collection_name", "email_sender"]
        assert "collection_name" in str(exc_info.value)

    def test_blank_values_are_missing(self, settings):
        """Test whitespace-only values count as missing."""
        blank = settings.model_copy(update={"database_name": "  ", "store_uri": ""})

        assert blank.missing_required() == ["store_uri", "database_name"]


class TestEnvironmentLoading:
    """Tests for environment-sourced settings."""

    def test_load_from_environment(self, settings_env):
        """Test REMINDERS_ variables populate the struct."""
        settings = load_settings()

        assert settings.store_uri == settings_env["REMINDERS_STORE_URI"]
        assert settings.database_name == "Gnosis"
        assert settings.collection_name == "users"
        assert settings.email_sender == "reminders@example.com"
        assert settings.missing_required() == []

    def test_defaults(self, settings_env):
        """Test nominal poll and claim values."""
        settings = load_settings()

        assert settings.poll_interval_seconds == 10.0
        assert settings.poll_timeout_seconds == 180.0
        assert settings.claim_enabled is True
        assert settings.claim_lease_seconds == 600
        assert settings.email_subject == "Reminder"
        assert settings.default_display_name == "User"

    def test_unparseable_value_is_configuration_error(self, settings_env, monkeypatch):
        """Test invalid values surface as ConfigurationError."""
        monkeypatch.setenv("REMINDERS_POLL_INTERVAL_SECONDS", "soon")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert exc_info.value.missing == ["poll_interval_seconds"]


class TestDerivedConfig:
    """Tests for derived client configuration."""

    def test_table_name(self, settings):
        assert settings.table_name == "Gnosis-users"

    def test_dynamodb_config_uses_store_uri(self, settings):
        assert settings.dynamodb_config == {
            "region_name": "us-west-2",
            "endpoint_url": "https://dynamodb.us-west-2.amazonaws.com",
        }

    def test_ses_config_without_endpoint(self, settings):
        assert settings.ses_config == {"region_name": "us-west-2"}

    def test_ses_config_with_endpoint(self, settings):
        local = settings.model_copy(update={"ses_endpoint_url": "http://localhost:4566"})

        assert local.ses_config["endpoint_url"] == "http://localhost:4566"
