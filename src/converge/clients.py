"""Azure SDK client adapters.

Each resource kind talks to a different management client with a
slightly different call signature. The adapters here give the reconcile
service one uniform shape per kind:

    get(resource_group, name, owner) -> provider object
    begin_create_or_update(resource_group, name, payload, owner, headers) -> LROPoller
    begin_delete(resource_group, name, owner) -> LROPoller

Credentials come from managed identity only. Secret-bearing environment
variables are refused before any client is built.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Protocol

from azure.core.credentials import TokenCredential
from azure.core.polling import LROPoller
from azure.identity import ManagedIdentityCredential
from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.containerservice import ContainerServiceClient
from azure.mgmt.network import NetworkManagementClient

from .config import Config
from .models import ResourceKind

logger = logging.getLogger(__name__)

# Environment variables that indicate secret-based authentication
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)


class SecretlessViolationError(Exception):
    """Raised when a credential secret is present in the environment."""

    pass


def get_credential(client_id: str | None = None) -> ManagedIdentityCredential:
    """Return a managed identity credential.

    Args:
        client_id: Client ID of a user-assigned identity, system-assigned if None.

    Raises:
        SecretlessViolationError: If credential environment variables are set.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Secret-based credential detected in environment",
                extra={"env_var": env_var},
            )
            raise SecretlessViolationError(
                f"{env_var} is set; only managed identity authentication is allowed"
            )

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": client_id[:8] + "..." if len(client_id) > 8 else client_id},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()


class ResourceClient(Protocol):
    """Fetch and submit operations for one resource kind."""

    def get(self, resource_group: str, name: str, owner: str = "") -> Any: ...

    def begin_create_or_update(
        self,
        resource_group: str,
        name: str,
        payload: Any,
        owner: str = "",
        headers: dict[str, str] | None = None,
    ) -> LROPoller[Any]: ...

    def begin_delete(self, resource_group: str, name: str, owner: str = "") -> LROPoller[Any]: ...


class AgentPoolsClient:
    """AKS agent pools, addressed through their owning managed cluster."""

    def __init__(self, client: ContainerServiceClient) -> None:
        self._client = client

    def get(self, resource_group: str, name: str, owner: str = "") -> Any:
        return self._client.agent_pools.get(resource_group, owner, name)

    def begin_create_or_update(
        self,
        resource_group: str,
        name: str,
        payload: Any,
        owner: str = "",
        headers: dict[str, str] | None = None,
    ) -> LROPoller[Any]:
        return self._client.agent_pools.begin_create_or_update(
            resource_group, owner, name, payload, headers=headers or None
        )

    def begin_delete(self, resource_group: str, name: str, owner: str = "") -> LROPoller[Any]:
        return self._client.agent_pools.begin_delete(resource_group, owner, name)


class VirtualMachinesClient:
    """Compute virtual machines."""

    def __init__(self, client: ComputeManagementClient) -> None:
        self._client = client

    def get(self, resource_group: str, name: str, owner: str = "") -> Any:
        return self._client.virtual_machines.get(resource_group, name)

    def begin_create_or_update(
        self,
        resource_group: str,
        name: str,
        payload: Any,
        owner: str = "",
        headers: dict[str, str] | None = None,
    ) -> LROPoller[Any]:
        return self._client.virtual_machines.begin_create_or_update(
            resource_group, name, payload, headers=headers or None
        )

    def begin_delete(self, resource_group: str, name: str, owner: str = "") -> LROPoller[Any]:
        return self._client.virtual_machines.begin_delete(resource_group, name)


class NetworkInterfacesClient:
    """Network interfaces."""

    def __init__(self, client: NetworkManagementClient) -> None:
        self._client = client

    def get(self, resource_group: str, name: str, owner: str = "") -> Any:
        return self._client.network_interfaces.get(resource_group, name)

    def begin_create_or_update(
        self,
        resource_group: str,
        name: str,
        payload: Any,
        owner: str = "",
        headers: dict[str, str] | None = None,
    ) -> LROPoller[Any]:
        return self._client.network_interfaces.begin_create_or_update(
            resource_group, name, payload, headers=headers or None
        )

    def begin_delete(self, resource_group: str, name: str, owner: str = "") -> LROPoller[Any]:
        return self._client.network_interfaces.begin_delete(resource_group, name)


def build_clients(
    config: Config,
    credential: TokenCredential | None = None,
) -> dict[ResourceKind, ResourceClient]:
    """Build one client adapter per resource kind.

    Args:
        config: Validated configuration.
        credential: Credential to use, managed identity from config if None.
    """
    if credential is None:
        credential = get_credential(config.client_id)

    return {
        ResourceKind.AGENT_POOL: AgentPoolsClient(
            ContainerServiceClient(credential=credential, subscription_id=config.subscription_id)
        ),
        ResourceKind.VIRTUAL_MACHINE: VirtualMachinesClient(
            ComputeManagementClient(credential=credential, subscription_id=config.subscription_id)
        ),
        ResourceKind.NETWORK_INTERFACE: NetworkInterfacesClient(
            NetworkManagementClient(credential=credential, subscription_id=config.subscription_id)
        ),
    }
