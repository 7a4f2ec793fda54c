"""Ownership tags for Azure resources.

Tag sets are immutable values built once per reconciliation attempt and
passed explicitly to whoever renders a payload.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

NAME_TAG_KEY = "Name"
ROLE_TAG_KEY = "sigs.k8s.io_cluster-api-provider-azure_role"
CLUSTER_TAG_PREFIX = "sigs.k8s.io_cluster-api-provider-azure_cluster_"
CLOUD_PROVIDER_TAG_PREFIX = "kubernetes.io_cluster_"


class ResourceLifecycle(str, Enum):
    """Who owns the lifecycle of a tagged resource."""

    OWNED = "owned"
    SHARED = "shared"


def cluster_tag_key(cluster_name: str) -> str:
    return f"{CLUSTER_TAG_PREFIX}{cluster_name}"


def cloud_provider_tag_key(name: str) -> str:
    return f"{CLOUD_PROVIDER_TAG_PREFIX}{name}"


@dataclass(frozen=True)
class Tags(Mapping[str, str]):
    """Immutable tag set, stored as sorted key/value pairs."""

    items_: tuple[tuple[str, str], ...] = ()

    @classmethod
    def of(cls, values: Mapping[str, str] | None = None) -> Tags:
        return cls(tuple(sorted((values or {}).items())))

    def __getitem__(self, key: str) -> str:
        for k, v in self.items_:
            if k == key:
                return v
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return (k for k, _ in self.items_)

    def __len__(self) -> int:
        return len(self.items_)

    def merged(self, other: Mapping[str, str]) -> Tags:
        """Return a new tag set where keys from other override ours."""
        combined = dict(self.items_)
        combined.update(other)
        return Tags.of(combined)

    def as_dict(self) -> dict[str, str]:
        """Return a fresh mutable copy for an SDK payload."""
        return dict(self.items_)


@dataclass(frozen=True)
class BuildParams:
    """Inputs for the standard ownership tag set."""

    cluster_name: str
    lifecycle: ResourceLifecycle = ResourceLifecycle.OWNED
    name: str | None = None
    role: str | None = None
    additional: Tags = field(default_factory=Tags)


def build_tags(params: BuildParams) -> Tags:
    """Build the ownership tag set for a cluster resource.

    Additional tags are applied first so the ownership keys cannot be
    overridden by user-supplied values.
    """
    tags = dict(params.additional)
    tags[cluster_tag_key(params.cluster_name)] = params.lifecycle.value
    if params.role:
        tags[ROLE_TAG_KEY] = params.role
    if params.name:
        tags[NAME_TAG_KEY] = params.name
    return Tags.of(tags)
