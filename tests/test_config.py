"""Tests for configuration loading."""

import os
from unittest.mock import patch

import pytest

from converge.config import (
    DEFAULT_ADMIN_USERNAME,
    DEFAULT_OPERATION_TIMEOUT_SECONDS,
    TERMINAL_PROVISIONING_STATES,
    TRANSIENT_RETRY_AFTER_SECONDS,
    Config,
    ConfigurationError,
)

SUBSCRIPTION_ID = "12345678-1234-1234-1234-123456789012"


class TestConfig:
    """Tests for Config class."""

    def test_valid_config(self) -> None:
        """Test creating a valid configuration."""
        config = Config(subscription_id=SUBSCRIPTION_ID, location="westeurope")

        assert config.subscription_id == SUBSCRIPTION_ID
        assert config.operation_timeout_seconds == DEFAULT_OPERATION_TIMEOUT_SECONDS
        assert config.default_admin_username == DEFAULT_ADMIN_USERNAME
        assert config.client_id is None

    def test_missing_subscription(self) -> None:
        """Test that missing subscription raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(subscription_id="")

        assert "AZURE_SUBSCRIPTION_ID" in str(exc_info.value)

    def test_invalid_subscription_guid(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            Config(subscription_id="not-a-guid")

        assert "GUID" in str(exc_info.value)

    def test_invalid_operation_timeout(self) -> None:
        """Test that out-of-range operation timeout raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(subscription_id=SUBSCRIPTION_ID, operation_timeout_seconds=5)

        assert "OPERATION_TIMEOUT" in str(exc_info.value)

    def test_invalid_admin_username(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            Config(subscription_id=SUBSCRIPTION_ID, default_admin_username="Root User")

        assert "DEFAULT_ADMIN_USERNAME" in str(exc_info.value)

    def test_collects_all_errors(self) -> None:
        """Test that every validation failure is reported at once."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config(subscription_id="", location="West Europe!", get_timeout_seconds=0)

        message = str(exc_info.value)
        assert "AZURE_SUBSCRIPTION_ID" in message
        assert "AZURE_LOCATION" in message
        assert "GET_TIMEOUT" in message

    def test_from_env(self) -> None:
        """Test loading configuration from environment."""
        env = {
            "AZURE_SUBSCRIPTION_ID": SUBSCRIPTION_ID,
            "AZURE_LOCATION": "northeurope",
            "AZURE_CLIENT_ID": "client-1234",
            "OPERATION_TIMEOUT": "600",
            "DEFAULT_ADMIN_USERNAME": "azureuser",
        }

        with patch.dict(os.environ, env, clear=True):
            config = Config.from_env()

        assert config.location == "northeurope"
        assert config.client_id == "client-1234"
        assert config.operation_timeout_seconds == 600
        assert config.default_admin_username == "azureuser"

    def test_from_env_rejects_non_integer(self) -> None:
        env = {"AZURE_SUBSCRIPTION_ID": SUBSCRIPTION_ID, "OPERATION_TIMEOUT": "soon"}

        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                Config.from_env()

        assert "OPERATION_TIMEOUT must be an integer" in str(exc_info.value)


class TestPolicyConstants:
    """Tests for reconciliation policy constants."""

    def test_terminal_states(self) -> None:
        assert TERMINAL_PROVISIONING_STATES == {"Succeeded", "Failed", "Canceled"}

    def test_transient_retry_after(self) -> None:
        assert TRANSIENT_RETRY_AFTER_SECONDS == 20
