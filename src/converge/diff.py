"""Diff engine for no-op detection against existing Azure resources.

Both the desired spec and the existing provider object are reduced to a
normalized comparison projection holding only the fields under spec control.
The projections are then compared field by field; any remaining difference
means an update is required.

DESIGN PHILOSOPHY:
- Provider-assigned fields (provisioning state, timestamps) never enter a projection
- Semantic equivalence: an empty label map or taint list equals a missing one
- Order independence: taints are a set, labels are a key/value mapping
- A resource that is mid-mutation remotely is never diffed, it is retried later
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from .config import (
    SYSTEM_NODE_LABEL_PREFIX,
    TERMINAL_PROVISIONING_STATES,
    TRANSIENT_RETRY_AFTER_SECONDS,
)
from .errors import TransientError

logger = logging.getLogger(__name__)


class NormalizationType(str, Enum):
    """Types of normalization operations."""

    # Empty equivalence: [], {}, None are equivalent
    EMPTY_EQUIVALENCE = "empty_equivalence"

    # Array order independence
    ARRAY_UNORDERED = "array_unordered"


@dataclass(frozen=True)
class NormalizationRule:
    """A single normalization rule applied to one projection field.

    Attributes:
        field_name: Projection field the rule applies to ("*" for all).
        normalization_type: Type of normalization to apply.
        reason: Human-readable explanation.
    """

    field_name: str
    normalization_type: NormalizationType
    reason: str = ""

    def matches(self, field_name: str) -> bool:
        return self.field_name in ("*", field_name)


DEFAULT_NORMALIZATION_RULES: list[NormalizationRule] = [
    NormalizationRule(
        field_name="node_labels",
        normalization_type=NormalizationType.EMPTY_EQUIVALENCE,
        reason="Empty label map equals no labels",
    ),
    NormalizationRule(
        field_name="node_taints",
        normalization_type=NormalizationType.EMPTY_EQUIVALENCE,
        reason="Empty taint list equals no taints",
    ),
    NormalizationRule(
        field_name="node_taints",
        normalization_type=NormalizationType.ARRAY_UNORDERED,
        reason="Taints are a set, order doesn't matter",
    ),
]


@dataclass(frozen=True)
class FieldDifference:
    """A single field whose normalized desired and existing values differ."""

    field_name: str
    desired: Any
    existing: Any

    def __str__(self) -> str:
        return f"{self.field_name}: desired={self.desired!r} existing={self.existing!r}"


class DiffEngine:
    """Structural comparison of normalized projections."""

    def __init__(
        self,
        rules: list[NormalizationRule] | None = None,
        enable_default_rules: bool = True,
    ) -> None:
        self._rules: list[NormalizationRule] = []
        if enable_default_rules:
            self._rules.extend(DEFAULT_NORMALIZATION_RULES)
        if rules:
            self._rules.extend(rules)

    def normalize_value(self, value: Any, field_name: str) -> Any:
        """Normalize a value based on the rules that apply to its field."""
        normalized = value
        for rule in self._rules:
            if rule.matches(field_name):
                normalized = self._apply_normalization(normalized, rule)
        return normalized

    def _apply_normalization(self, value: Any, rule: NormalizationRule) -> Any:
        match rule.normalization_type:
            case NormalizationType.EMPTY_EQUIVALENCE:
                return self._normalize_empty(value)
            case NormalizationType.ARRAY_UNORDERED:
                return self._normalize_array_order(value)
            case _:
                return value

    def _normalize_empty(self, value: Any) -> Any:
        if isinstance(value, list | tuple | dict) and len(value) == 0:
            return None
        return value

    def _normalize_array_order(self, value: Any) -> tuple | Any:
        """Sort arrays so order is irrelevant. Returns a tuple."""
        if isinstance(value, list | tuple):
            return tuple(sorted(value, key=str))
        return value

    def reasons_for(self, field_name: str) -> list[str]:
        """Explanations of the rules that apply to a field."""
        return [rule.reason for rule in self._rules if rule.matches(field_name) and rule.reason]

    def are_equivalent(self, desired: Any, existing: Any, field_name: str) -> bool:
        return self.normalize_value(desired, field_name) == self.normalize_value(
            existing, field_name
        )

    def diff(
        self,
        desired: Mapping[str, Any],
        existing: Mapping[str, Any],
    ) -> list[FieldDifference]:
        """Compare two projections field by field.

        Returns:
            Differences in field order of desired, followed by fields only
            present in existing. Empty when the projections are equivalent.
        """
        differences: list[FieldDifference] = []
        names = list(desired) + [k for k in existing if k not in desired]

        for name in names:
            want = desired.get(name)
            have = existing.get(name)
            if not self.are_equivalent(want, have, name):
                differences.append(FieldDifference(name, want, have))
            elif want != have:
                logger.debug(
                    "Difference suppressed by normalization",
                    extra={"field_name": name, "reasons": self.reasons_for(name)},
                )

        return differences


def render_diff(differences: list[FieldDifference]) -> str:
    """Render differences as text, one field per line."""
    return "\n".join(str(d) for d in differences)


def ensure_terminal_state(
    provisioning_state: str | None,
    resource_kind: str,
    resource_name: str,
) -> None:
    """Refuse to compute an update while the remote resource is mid-mutation.

    Raises:
        TransientError: If the state is not one of Succeeded, Failed, Canceled.
    """
    if provisioning_state in TERMINAL_PROVISIONING_STATES:
        return

    allowed = ", ".join(sorted(TERMINAL_PROVISIONING_STATES))
    raise TransientError(
        f"Unable to update existing {resource_kind} {resource_name} in non terminal state. "
        f"It must be in one of the following provisioning states: {allowed}. "
        f"Actual state: {provisioning_state}",
        retry_after=TRANSIENT_RETRY_AFTER_SECONDS,
    )


def is_system_node_label_key(key: str) -> bool:
    """Check if a label key is reserved for the AKS control plane."""
    return key.startswith(SYSTEM_NODE_LABEL_PREFIX)


def merge_system_labels(
    desired: Mapping[str, str | None],
    existing: Mapping[str, str | None] | None,
) -> dict[str, str | None]:
    """Merge system labels from the remote label set into the desired one.

    Labels injected remotely under the reserved prefix are kept so that an
    update does not delete them. Neither input is modified.
    """
    merged = dict(desired)
    for key, value in (existing or {}).items():
        if is_system_node_label_key(key):
            merged[key] = value
    return merged


def _enum_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class AgentPoolProjection:
    """Fields of an agent pool that are meaningful for equality."""

    count: int | None = None
    orchestrator_version: str | None = None
    mode: str | None = None
    enable_auto_scaling: bool | None = None
    min_count: int | None = None
    max_count: int | None = None
    node_labels: dict[str, str | None] | None = field(default=None, hash=False)
    node_taints: list[str] | None = field(default=None, hash=False)

    @classmethod
    def from_agent_pool(cls, pool: Any) -> AgentPoolProjection:
        """Project an existing containerservice AgentPool."""
        return cls(
            count=pool.count,
            orchestrator_version=pool.orchestrator_version,
            mode=_enum_value(pool.mode),
            enable_auto_scaling=pool.enable_auto_scaling,
            min_count=pool.min_count,
            max_count=pool.max_count,
            node_labels=dict(pool.node_labels) if pool.node_labels is not None else None,
            node_taints=list(pool.node_taints) if pool.node_taints is not None else None,
        )

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
