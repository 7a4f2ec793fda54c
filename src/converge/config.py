"""Configuration management with validation.

Policy constants used by the reconciliation core live here so that they can
be overridden in one place and injected into the components that need them.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Provisioning states in which the remote resource is not being mutated
TERMINAL_PROVISIONING_STATES: frozenset[str] = frozenset({"Succeeded", "Failed", "Canceled"})

# Terminal state in which a VM or NIC create is submitted again
FAILED_PROVISIONING_STATE = "Failed"

# Suggested delay before re-attempting a resource stuck in a non-terminal state
TRANSIENT_RETRY_AFTER_SECONDS = 20

# Labels injected by the AKS control plane that must survive updates
SYSTEM_NODE_LABEL_PREFIX = "kubernetes.azure.com"

DEFAULT_ADMIN_USERNAME = "capi"
DEFAULT_OS_DISK_NAME_FORMAT = "{name}_OSDisk"

DEFAULT_OPERATION_TIMEOUT_SECONDS = 1800
MIN_OPERATION_TIMEOUT_SECONDS = 60
MAX_OPERATION_TIMEOUT_SECONDS = 7200

DEFAULT_GET_TIMEOUT_SECONDS = 60

# Length in bytes of the generated VM admin password before encoding
ADMIN_PASSWORD_BYTES = 32
SSH_KEY_BITS = 2048

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file

VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_LOCATION_PATTERN = r"^[a-z]{2,}[a-z0-9]*$"
VALID_USERNAME_PATTERN = r"^[a-z_][a-z0-9_-]{0,31}$"


@dataclass(frozen=True)
class Config:
    """Reconciler configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-reconcile.
    """

    subscription_id: str
    location: str = ""

    # User-assigned managed identity, system-assigned when unset
    client_id: str | None = None

    operation_timeout_seconds: int = DEFAULT_OPERATION_TIMEOUT_SECONDS
    get_timeout_seconds: int = DEFAULT_GET_TIMEOUT_SECONDS

    default_admin_username: str = DEFAULT_ADMIN_USERNAME

    def __post_init__(self) -> None:
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if self.location and not re.match(VALID_LOCATION_PATTERN, self.location.lower()):
            errors.append(f"AZURE_LOCATION must be a valid Azure region: {self.location}")

        if not (
            MIN_OPERATION_TIMEOUT_SECONDS
            <= self.operation_timeout_seconds
            <= MAX_OPERATION_TIMEOUT_SECONDS
        ):
            errors.append(
                f"OPERATION_TIMEOUT must be between {MIN_OPERATION_TIMEOUT_SECONDS} "
                f"and {MAX_OPERATION_TIMEOUT_SECONDS} seconds"
            )

        if self.get_timeout_seconds < 1:
            errors.append("GET_TIMEOUT must be at least 1 second")

        if not re.match(VALID_USERNAME_PATTERN, self.default_admin_username):
            errors.append(
                f"DEFAULT_ADMIN_USERNAME must match pattern {VALID_USERNAME_PATTERN}: "
                f"{self.default_admin_username}"
            )

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Target Azure subscription (required)
            AZURE_LOCATION: Default location for created resources
            AZURE_CLIENT_ID: Client ID of a user-assigned managed identity
            OPERATION_TIMEOUT: Max seconds to wait on a long-running operation
                (default: 1800)
            GET_TIMEOUT: Max seconds for a single fetch (default: 60)
            DEFAULT_ADMIN_USERNAME: Admin user for created VMs (default: capi)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            location=os.environ.get("AZURE_LOCATION", ""),
            client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            operation_timeout_seconds=get_int(
                "OPERATION_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS
            ),
            get_timeout_seconds=get_int("GET_TIMEOUT", DEFAULT_GET_TIMEOUT_SECONDS),
            default_admin_username=os.environ.get(
                "DEFAULT_ADMIN_USERNAME", DEFAULT_ADMIN_USERNAME
            ),
        )
