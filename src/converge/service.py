"""Reconciliation service driving specs against Azure Resource Manager.

A single attempt is strictly sequential:

    fetch existing -> resolve dependencies -> build parameters
        -> (no-op | submit -> wait -> fetch result)

Every attempt re-reads remote state; nothing is cached across attempts, so a
process restart mid-operation is handled by the next attempt observing the
resource again and re-submitting if it still diverges. There is no internal
retry loop: callers receive either success, a TransientError carrying a
retry-after hint, or a classified fatal error.

Blocking SDK calls run in the default executor and every suspension point
honours task cancellation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from azure.core.exceptions import AzureError

from .clients import ResourceClient
from .config import Config
from .errors import (
    DependencyNotFoundError,
    NotFoundError,
    ProviderError,
    SpecValidationError,
    is_resource_not_found,
)
from .models import Dependency, ResourceKind, ResourceSpec
from .operations import LongRunningOperation

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    """Successful outcomes of a reconcile attempt."""

    NO_OP = "NoOp"
    APPLIED = "Applied"


class DeleteOutcome(str, Enum):
    """Successful outcomes of a delete attempt."""

    DELETED = "Deleted"
    ALREADY_ABSENT = "AlreadyAbsent"


@dataclass(frozen=True)
class ResourceStatus:
    """Caller-facing view of a fetched provider object."""

    kind: ResourceKind
    name: str
    resource_group: str
    id: str | None = None
    provisioning_state: str | None = None
    location: str | None = None
    tags: dict[str, str] = field(default_factory=dict, hash=False)
    provider_object: Any = field(default=None, hash=False, compare=False, repr=False)

    @classmethod
    def from_provider_object(cls, spec: ResourceSpec, obj: Any) -> ResourceStatus:
        return cls(
            kind=spec.kind,
            name=getattr(obj, "name", None) or spec.resource_name(),
            resource_group=spec.resource_group_name(),
            id=getattr(obj, "id", None),
            provisioning_state=getattr(obj, "provisioning_state", None),
            location=getattr(obj, "location", None),
            tags=dict(getattr(obj, "tags", None) or {}),
            provider_object=obj,
        )


class ReconcileService:
    """Get, reconcile and delete resources described by specs.

    Independent specs share no mutable state, so distinct resources may be
    reconciled concurrently by the caller.
    """

    def __init__(self, clients: Mapping[ResourceKind, ResourceClient], config: Config) -> None:
        self._clients = dict(clients)
        self._config = config

    @property
    def config(self) -> Config:
        return self._config

    async def get(self, spec: ResourceSpec) -> ResourceStatus:
        """Fetch the current state of the resource.

        Raises:
            NotFoundError: If the resource does not exist.
            ProviderError: On any other remote failure.
        """
        existing = await self._fetch(
            spec.kind, spec.resource_group_name(), spec.resource_name(), spec.owner_resource_name()
        )
        if existing is None:
            raise NotFoundError(
                f"{spec.kind.value} {spec.resource_name()} not found",
                resource_name=spec.resource_name(),
                resource_group=spec.resource_group_name(),
            )
        return ResourceStatus.from_provider_object(spec, existing)

    async def reconcile(self, spec: ResourceSpec) -> ReconcileOutcome:
        """Create or update the resource until it matches the spec.

        Returns:
            NO_OP if the remote resource already matched, APPLIED otherwise.

        Raises:
            TransientError: If the remote resource is mid-mutation.
            DependencyNotFoundError: If a referenced sub-resource is missing.
            SpecValidationError: If the spec cannot be rendered.
            SecretGenerationError: If credential material cannot be generated.
            ProviderError: On remote or transport failures.
        """
        start = time.monotonic()
        log_extra = self._log_extra(spec, "create_or_update")

        existing = await self._fetch(
            spec.kind, spec.resource_group_name(), spec.resource_name(), spec.owner_resource_name()
        )
        resolved = await self._resolve_dependencies(spec)

        payload = spec.parameters(existing, resolved)
        if payload is None:
            logger.info("Resource up to date, nothing to do", extra=log_extra)
            return ReconcileOutcome.NO_OP

        logger.info(
            "Creating resource" if existing is None else "Updating resource",
            extra=log_extra,
        )
        operation = await self._submit(
            spec,
            "create_or_update",
            lambda client: client.begin_create_or_update(
                spec.resource_group_name(),
                spec.resource_name(),
                payload,
                owner=spec.owner_resource_name(),
                headers=spec.custom_headers() or None,
            ),
        )
        await self._complete(spec, operation)

        logger.info(
            "Successfully reconciled resource",
            extra={**log_extra, "duration_seconds": time.monotonic() - start},
        )
        return ReconcileOutcome.APPLIED

    async def delete(self, spec: ResourceSpec) -> DeleteOutcome:
        """Delete the resource. Deleting an absent resource succeeds.

        Raises:
            ProviderError: On remote or transport failures.
        """
        log_extra = self._log_extra(spec, "delete")
        logger.info("Deleting resource", extra=log_extra)

        try:
            operation = await self._submit(
                spec,
                "delete",
                lambda client: client.begin_delete(
                    spec.resource_group_name(),
                    spec.resource_name(),
                    owner=spec.owner_resource_name(),
                ),
            )
        except NotFoundError:
            logger.info("Resource already deleted", extra=log_extra)
            return DeleteOutcome.ALREADY_ABSENT

        await self._complete(spec, operation)

        logger.info("Successfully deleted resource", extra=log_extra)
        return DeleteOutcome.DELETED

    def _client_for(self, kind: ResourceKind) -> ResourceClient:
        client = self._clients.get(kind)
        if client is None:
            raise SpecValidationError(f"no client registered for resource kind {kind.value}")
        return client

    def _log_extra(self, spec: ResourceSpec, operation: str) -> dict[str, Any]:
        return {
            "kind": spec.kind.value,
            "resource": spec.resource_name(),
            "resource_group": spec.resource_group_name(),
            "owner": spec.owner_resource_name() or None,
            "operation": operation,
        }

    async def _run_blocking(self, fn: Callable[[], Any], timeout_seconds: float) -> Any:
        loop = asyncio.get_running_loop()
        return await asyncio.wait_for(loop.run_in_executor(None, fn), timeout=timeout_seconds)

    async def _fetch(
        self,
        kind: ResourceKind,
        resource_group: str,
        name: str,
        owner: str = "",
    ) -> Any | None:
        """Fetch a provider object, returning None if it does not exist."""
        client = self._client_for(kind)
        try:
            return await self._run_blocking(
                lambda: client.get(resource_group, name, owner=owner),
                self._config.get_timeout_seconds,
            )
        except AzureError as e:
            if is_resource_not_found(e):
                logger.debug(
                    "Resource not found",
                    extra={"kind": kind.value, "resource": name, "resource_group": resource_group},
                )
                return None
            raise ProviderError(
                f"failed to get {kind.value} {name}: {e}",
                operation="get",
                resource_name=name,
                resource_group=resource_group,
            ) from e
        except TimeoutError as e:
            raise ProviderError(
                f"timed out getting {kind.value} {name} after "
                f"{self._config.get_timeout_seconds}s",
                operation="get",
                resource_name=name,
                resource_group=resource_group,
            ) from e

    async def _resolve_dependencies(self, spec: ResourceSpec) -> dict[Dependency, str]:
        """Fetch every declared dependency fresh and collect its resource ID.

        Raises:
            DependencyNotFoundError: If a dependency is missing or has no ID.
        """
        resolved: dict[Dependency, str] = {}
        for dependency in spec.dependencies():
            logger.debug(
                "Getting dependency",
                extra={"kind": dependency.kind.value, "resource": dependency.name},
            )
            obj = await self._fetch(
                dependency.kind, dependency.resource_group, dependency.name, dependency.owner
            )
            resource_id = getattr(obj, "id", None) if obj is not None else None
            if not resource_id:
                raise DependencyNotFoundError(
                    f"{dependency.kind.value} {dependency.name} required by "
                    f"{spec.kind.value} {spec.resource_name()} not found",
                    resource_name=dependency.name,
                    resource_group=dependency.resource_group,
                )
            resolved[dependency] = resource_id
        return resolved

    async def _submit(
        self,
        spec: ResourceSpec,
        operation_name: str,
        begin: Callable[[ResourceClient], Any],
    ) -> LongRunningOperation:
        """Submit a request and return its long-running operation handle.

        Raises:
            NotFoundError: If the provider reports the resource as absent.
            ProviderError: On any other remote failure.
        """
        client = self._client_for(spec.kind)
        try:
            poller = await self._run_blocking(
                lambda: begin(client), self._config.get_timeout_seconds
            )
        except AzureError as e:
            if is_resource_not_found(e):
                raise NotFoundError(
                    f"{spec.kind.value} {spec.resource_name()} not found",
                    resource_name=spec.resource_name(),
                    resource_group=spec.resource_group_name(),
                ) from e
            raise ProviderError(
                f"cannot {operation_name} {spec.kind.value} {spec.resource_name()}: {e}",
                operation=operation_name,
                resource_name=spec.resource_name(),
                resource_group=spec.resource_group_name(),
            ) from e
        except TimeoutError as e:
            raise ProviderError(
                f"timed out submitting {operation_name} for {spec.kind.value} "
                f"{spec.resource_name()}",
                operation=operation_name,
                resource_name=spec.resource_name(),
                resource_group=spec.resource_group_name(),
            ) from e

        return LongRunningOperation(poller, operation_name)

    async def _complete(self, spec: ResourceSpec, operation: LongRunningOperation) -> Any:
        """Wait for the operation, then fetch its result once more."""
        try:
            await operation.wait(self._config.operation_timeout_seconds)
        except (AzureError, TimeoutError) as e:
            raise ProviderError(
                f"cannot get the {spec.kind.value} {operation.operation_name} future response: "
                f"{str(e) or 'timed out'}",
                operation=operation.operation_name,
                resource_name=spec.resource_name(),
                resource_group=spec.resource_group_name(),
            ) from e

        try:
            return await operation.result()
        except AzureError as e:
            raise ProviderError(
                f"{spec.kind.value} {operation.operation_name} failed: {e}",
                operation=operation.operation_name,
                resource_name=spec.resource_name(),
                resource_group=spec.resource_group_name(),
            ) from e
