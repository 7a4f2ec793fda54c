"""Pydantic models for resource specifications.

These models provide:
1. Type-safe YAML parsing with validation at the boundary
2. Immutable spec values (frozen), constructed fresh per reconciliation attempt
3. Rendering into Azure SDK create-or-update payloads

Every variant implements the same capability set: identifier accessors,
custom headers, declared dependencies and ``parameters(existing, resolved)``.
``parameters`` returning None means the remote resource already matches.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, ClassVar

from azure.mgmt.compute.models import (
    DiskCreateOptionTypes,
    HardwareProfile,
    LinuxConfiguration,
    ManagedDiskParameters,
    NetworkInterfaceReference,
    NetworkProfile,
    OSDisk,
    OSProfile,
    SshConfiguration,
    SshPublicKey,
    StorageProfile,
    VirtualMachine,
)
from azure.mgmt.containerservice.models import AgentPool, AgentPoolType
from azure.mgmt.network.models import (
    BackendAddressPool,
    NetworkInterface,
    NetworkInterfaceIPConfiguration,
    Subnet,
)
from pydantic import BaseModel, Field, field_validator

from .config import (
    ADMIN_PASSWORD_BYTES,
    DEFAULT_ADMIN_USERNAME,
    DEFAULT_OS_DISK_NAME_FORMAT,
    FAILED_PROVISIONING_STATE,
)
from .diff import (
    AgentPoolProjection,
    DiffEngine,
    ensure_terminal_state,
    merge_system_labels,
    render_diff,
)
from .errors import SpecValidationError
from .image import ImageDescriptor, resolve_image
from .keygen import generate_random_string, generate_ssh_public_key
from .tags import BuildParams, ResourceLifecycle, Tags, build_tags, cloud_provider_tag_key

logger = logging.getLogger(__name__)

_diff_engine = DiffEngine()


class ResourceKind(str, Enum):
    """Closed set of resource kinds the reconciler knows how to drive."""

    AGENT_POOL = "AgentPool"
    VIRTUAL_MACHINE = "VirtualMachine"
    NETWORK_INTERFACE = "NetworkInterface"


@dataclass(frozen=True)
class Dependency:
    """A sub-resource that must exist before a payload can be built."""

    kind: ResourceKind
    name: str
    resource_group: str
    owner: str = ""


# Resolved dependency -> Azure resource ID
ResolvedDependencies = Mapping[Dependency, str]


# =============================================================================
# Base Model
# =============================================================================


class ResourceSpec(BaseModel):
    """Base specification with the identifiers shared by all resource kinds."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    kind: ClassVar[ResourceKind]

    name: Annotated[str, Field(min_length=1)]
    resource_group: Annotated[str, Field(min_length=1, alias="resourceGroup")]

    def resource_name(self) -> str:
        return self.name

    def resource_group_name(self) -> str:
        return self.resource_group

    def owner_resource_name(self) -> str:
        """Name of the parent resource, empty for top-level resources."""
        return ""

    def custom_headers(self) -> dict[str, str]:
        return {}

    def dependencies(self) -> list[Dependency]:
        return []

    def parameters(
        self,
        existing: Any | None = None,
        resolved: ResolvedDependencies | None = None,
    ) -> Any | None:
        """Render the create-or-update payload.

        Args:
            existing: Current provider object, None when the resource is absent.
            resolved: Resource IDs of the dependencies declared by this spec.

        Returns:
            The payload to submit, or None when no change is required.

        Raises:
            TransientError: If the existing resource is mid-mutation.
            SpecValidationError: If the spec or existing object is unusable.
        """
        raise NotImplementedError("Subclasses must implement parameters")

    def _expect(self, existing: Any, expected: type) -> Any:
        if not isinstance(existing, expected):
            raise SpecValidationError(f"{type(existing).__name__} is not a {expected.__name__}")
        return existing


# =============================================================================
# Agent Pools
# =============================================================================


class AgentPoolSpec(ResourceSpec):
    """AKS agent pool specification."""

    kind: ClassVar[ResourceKind] = ResourceKind.AGENT_POOL

    cluster: Annotated[str, Field(min_length=1)]
    version: str | None = None
    sku: str = ""
    replicas: Annotated[int, Field(ge=0)] = 0
    os_disk_size_gb: Annotated[int, Field(ge=0, alias="osDiskSizeGB")] = 0
    vnet_subnet_id: str = Field("", alias="vnetSubnetID")
    mode: str = "User"

    max_count: int | None = Field(None, alias="maxCount")
    min_count: int | None = Field(None, alias="minCount")
    node_labels: dict[str, str | None] | None = Field(None, alias="nodeLabels")
    node_taints: list[str] = Field(default_factory=list, alias="nodeTaints")
    enable_auto_scaling: bool | None = Field(None, alias="enableAutoScaling")
    availability_zones: list[str] = Field(default_factory=list, alias="availabilityZones")
    max_pods: int | None = Field(None, alias="maxPods")
    os_disk_type: str | None = Field(None, alias="osDiskType")
    enable_ultra_ssd: bool | None = Field(None, alias="enableUltraSSD")
    os_type: str | None = Field(None, alias="osType")
    headers: dict[str, str] = Field(default_factory=dict)
    enable_node_public_ip: bool | None = Field(None, alias="enableNodePublicIP")
    node_public_ip_prefix_id: str | None = Field(None, alias="nodePublicIPPrefixID")
    scale_set_priority: str | None = Field(None, alias="scaleSetPriority")

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        valid_modes = {"System", "User"}
        if v not in valid_modes:
            raise ValueError(f"mode must be one of {valid_modes}")
        return v

    def owner_resource_name(self) -> str:
        return self.cluster

    def custom_headers(self) -> dict[str, str]:
        return dict(self.headers)

    def desired_projection(self, existing: AgentPoolProjection) -> AgentPoolProjection:
        """Project the spec for comparison against an existing pool.

        Taints are taken from the existing pool, so a taint change alone
        never triggers an update. With autoscaling on, the node count is owned
        by the autoscaler and is copied from the existing pool as well.
        """
        projection = AgentPoolProjection(
            count=self.replicas,
            orchestrator_version=self.version,
            mode=self.mode,
            enable_auto_scaling=self.enable_auto_scaling,
            min_count=self.min_count,
            max_count=self.max_count,
            node_labels=self.node_labels,
            node_taints=existing.node_taints,
        )
        if self.enable_auto_scaling:
            projection = dataclasses.replace(projection, count=existing.count)
        return projection

    def parameters(
        self,
        existing: Any | None = None,
        resolved: ResolvedDependencies | None = None,
    ) -> AgentPool | None:
        node_labels = self.node_labels

        if existing is not None:
            pool: AgentPool = self._expect(existing, AgentPool)
            ensure_terminal_state(pool.provisioning_state, "agent pool", self.name)

            existing_projection = AgentPoolProjection.from_agent_pool(pool)
            desired_projection = self.desired_projection(existing_projection)

            differences = _diff_engine.diff(
                desired_projection.as_dict(), existing_projection.as_dict()
            )
            if not differences:
                logger.debug(
                    "Agent pool is up to date",
                    extra={"agent_pool": self.name, "cluster": self.cluster},
                )
                return None

            logger.info(
                "Agent pool update required",
                extra={
                    "agent_pool": self.name,
                    "cluster": self.cluster,
                    "diff": render_diff(differences),
                },
            )

            # Keep labels the AKS control plane added since the last reconcile
            if self.node_labels is not None:
                node_labels = merge_system_labels(self.node_labels, pool.node_labels)

        return AgentPool(
            availability_zones=list(self.availability_zones) or None,
            count=self.replicas if self.replicas > 0 else None,
            enable_auto_scaling=self.enable_auto_scaling,
            enable_ultra_ssd=self.enable_ultra_ssd,
            max_count=self.max_count,
            max_pods=self.max_pods,
            min_count=self.min_count,
            mode=self.mode,
            node_labels=dict(node_labels) if node_labels is not None else None,
            node_taints=list(self.node_taints) or None,
            orchestrator_version=self.version,
            os_disk_size_gb=self.os_disk_size_gb or None,
            os_disk_type=self.os_disk_type,
            os_type=self.os_type,
            scale_set_priority=self.scale_set_priority,
            type_properties_type=AgentPoolType.VIRTUAL_MACHINE_SCALE_SETS,
            vm_size=self.sku or None,
            vnet_subnet_id=self.vnet_subnet_id or None,
            enable_node_public_ip=self.enable_node_public_ip,
            node_public_ip_prefix_id=self.node_public_ip_prefix_id,
        )


# =============================================================================
# Virtual Machines
# =============================================================================


class ManagedDiskSpec(BaseModel):
    """Managed disk parameters."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    storage_account_type: str = Field("Premium_LRS", alias="storageAccountType")


class OSDiskSpec(BaseModel):
    """OS disk configuration."""

    model_config = {"extra": "ignore", "frozen": True, "populate_by_name": True}

    os_type: str = Field("Linux", alias="osType")
    disk_size_gb: Annotated[int, Field(ge=1, le=4095, alias="diskSizeGB")] = 30
    managed_disk: ManagedDiskSpec = Field(default_factory=ManagedDiskSpec, alias="managedDisk")


class VirtualMachineSpec(ResourceSpec):
    """Virtual machine specification.

    Existing VMs are not updated in place: a VM that Succeeded or was
    Canceled is left alone, a Failed VM gets its create payload submitted again.
    """

    kind: ClassVar[ResourceKind] = ResourceKind.VIRTUAL_MACHINE

    location: Annotated[str, Field(min_length=1)]
    nic_name: Annotated[str, Field(min_length=1, alias="nicName")]
    size: Annotated[str, Field(min_length=1)]
    image: ImageDescriptor
    os_disk: OSDiskSpec = Field(default_factory=OSDiskSpec, alias="osDisk")
    ssh_key_data: str = Field("", alias="sshKeyData")
    zone: str = ""
    custom_data: str = Field("", alias="customData")

    cluster_name: Annotated[str, Field(min_length=1, alias="clusterName")]
    role: str | None = None
    additional_tags: dict[str, str] = Field(default_factory=dict, alias="additionalTags")

    admin_username: str = Field(DEFAULT_ADMIN_USERNAME, alias="adminUsername")
    os_disk_name_format: str = Field(DEFAULT_OS_DISK_NAME_FORMAT, alias="osDiskNameFormat")

    def nic_dependency(self) -> Dependency:
        return Dependency(ResourceKind.NETWORK_INTERFACE, self.nic_name, self.resource_group)

    def dependencies(self) -> list[Dependency]:
        return [self.nic_dependency()]

    def os_disk_name(self) -> str:
        return self.os_disk_name_format.format(name=self.name)

    def tags(self) -> Tags:
        """Ownership tags plus the cloud provider tag for this machine."""
        additional = Tags.of(self.additional_tags).merged(
            {cloud_provider_tag_key(self.name): ResourceLifecycle.OWNED.value}
        )
        return build_tags(
            BuildParams(
                cluster_name=self.cluster_name,
                lifecycle=ResourceLifecycle.OWNED,
                name=self.name,
                role=self.role,
                additional=additional,
            )
        )

    def storage_profile(self) -> StorageProfile:
        return StorageProfile(
            image_reference=resolve_image(self.image),
            os_disk=OSDisk(
                name=self.os_disk_name(),
                os_type=self.os_disk.os_type,
                create_option=DiskCreateOptionTypes.FROM_IMAGE,
                disk_size_gb=self.os_disk.disk_size_gb,
                managed_disk=ManagedDiskParameters(
                    storage_account_type=self.os_disk.managed_disk.storage_account_type,
                ),
            ),
        )

    def parameters(
        self,
        existing: Any | None = None,
        resolved: ResolvedDependencies | None = None,
    ) -> VirtualMachine | None:
        if existing is not None:
            vm: VirtualMachine = self._expect(existing, VirtualMachine)
            ensure_terminal_state(vm.provisioning_state, "virtual machine", self.name)
            if vm.provisioning_state != FAILED_PROVISIONING_STATE:
                logger.debug("Virtual machine already exists", extra={"vm": self.name})
                return None
            logger.info("Resubmitting failed virtual machine", extra={"vm": self.name})

        nic_id = (resolved or {}).get(self.nic_dependency())
        if not nic_id:
            raise SpecValidationError(
                f"network interface {self.nic_name} must be resolved before building vm {self.name}"
            )

        storage_profile = self.storage_profile()

        ssh_key_data = self.ssh_key_data or generate_ssh_public_key()
        admin_password = generate_random_string(ADMIN_PASSWORD_BYTES)

        return VirtualMachine(
            location=self.location,
            tags=self.tags().as_dict(),
            zones=[self.zone] if self.zone else None,
            hardware_profile=HardwareProfile(vm_size=self.size),
            storage_profile=storage_profile,
            os_profile=OSProfile(
                computer_name=self.name,
                admin_username=self.admin_username,
                admin_password=admin_password,
                custom_data=self.custom_data or None,
                linux_configuration=LinuxConfiguration(
                    ssh=SshConfiguration(
                        public_keys=[
                            SshPublicKey(
                                path=f"/home/{self.admin_username}/.ssh/authorized_keys",
                                key_data=ssh_key_data,
                            )
                        ]
                    )
                ),
            ),
            network_profile=NetworkProfile(
                network_interfaces=[NetworkInterfaceReference(id=nic_id, primary=True)]
            ),
        )


# =============================================================================
# Network Interfaces
# =============================================================================


class NetworkInterfaceSpec(ResourceSpec):
    """Network interface specification.

    Existing NICs are left untouched once they Succeeded or were Canceled;
    a Failed NIC is submitted again.
    """

    kind: ClassVar[ResourceKind] = ResourceKind.NETWORK_INTERFACE

    location: Annotated[str, Field(min_length=1)]
    subnet_id: Annotated[str, Field(min_length=1, alias="subnetID")]
    static_ip_address: str | None = Field(None, alias="staticIPAddress")
    accelerated_networking: bool | None = Field(None, alias="acceleratedNetworking")
    backend_pool_ids: list[str] = Field(default_factory=list, alias="backendPoolIDs")
    tags: dict[str, str] = Field(default_factory=dict)

    def parameters(
        self,
        existing: Any | None = None,
        resolved: ResolvedDependencies | None = None,
    ) -> NetworkInterface | None:
        if existing is not None:
            nic: NetworkInterface = self._expect(existing, NetworkInterface)
            ensure_terminal_state(nic.provisioning_state, "network interface", self.name)
            if nic.provisioning_state != FAILED_PROVISIONING_STATE:
                logger.debug("Network interface already exists", extra={"nic": self.name})
                return None
            logger.info("Resubmitting failed network interface", extra={"nic": self.name})

        ip_config = NetworkInterfaceIPConfiguration(
            name="ipconfig1",
            primary=True,
            subnet=Subnet(id=self.subnet_id),
            private_ip_allocation_method="Static" if self.static_ip_address else "Dynamic",
            private_ip_address=self.static_ip_address,
            load_balancer_backend_address_pools=[
                BackendAddressPool(id=pool_id) for pool_id in self.backend_pool_ids
            ]
            or None,
        )

        return NetworkInterface(
            location=self.location,
            tags=dict(self.tags) or None,
            ip_configurations=[ip_config],
            enable_accelerated_networking=self.accelerated_networking,
        )


# =============================================================================
# Registry
# =============================================================================

SPEC_REGISTRY: dict[ResourceKind, type[ResourceSpec]] = {
    ResourceKind.AGENT_POOL: AgentPoolSpec,
    ResourceKind.VIRTUAL_MACHINE: VirtualMachineSpec,
    ResourceKind.NETWORK_INTERFACE: NetworkInterfaceSpec,
}


def get_spec_class(kind: str) -> type[ResourceSpec]:
    """Get the spec class for a resource kind.

    Raises:
        ValueError: If kind is not recognized.
    """
    try:
        return SPEC_REGISTRY[ResourceKind(kind)]
    except ValueError as e:
        valid_kinds = [k.value for k in ResourceKind]
        raise ValueError(f"Unknown kind '{kind}'. Valid kinds: {valid_kinds}") from e
