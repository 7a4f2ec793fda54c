"""Azure API Mock for service-level testing.

This module provides in-memory stand-ins for the per-kind Azure clients so
the reconcile service can be driven end to end without Azure connectivity.

Key Features:
- In-memory state for agent pools, VMs and NICs
- LROPoller-shaped operation handles
- Provisioning state control for terminal-state tests
- Error injection on get, submit, wait and result

Usage:
    from azure_mock import MockResourceState, create_mock_clients

    state = MockResourceState()
    clients = create_mock_clients(state)
    service = ReconcileService(clients, config)
    await service.reconcile(spec)

    assert clients[ResourceKind.AGENT_POOL].submit_count == 1
"""

from .resources import (
    MockPoller,
    MockResourceClient,
    MockResourceState,
    ProvisioningState,
    RecordedCall,
    create_mock_clients,
    http_error,
    resource_id,
)

__all__ = [
    "MockPoller",
    "MockResourceClient",
    "MockResourceState",
    "ProvisioningState",
    "RecordedCall",
    "create_mock_clients",
    "http_error",
    "resource_id",
]
