"""Tests for the diff engine and agent pool projection helpers."""

from __future__ import annotations

import logging

import pytest
from azure.mgmt.containerservice.models import AgentPool

from converge.diff import (
    AgentPoolProjection,
    DiffEngine,
    FieldDifference,
    NormalizationRule,
    NormalizationType,
    ensure_terminal_state,
    merge_system_labels,
    render_diff,
)
from converge.errors import TransientError


class TestDiffEngine:
    """Tests for DiffEngine comparisons."""

    @pytest.fixture
    def engine(self) -> DiffEngine:
        return DiffEngine()

    def test_identical_projections(self, engine: DiffEngine) -> None:
        projection = {"count": 3, "mode": "User", "node_labels": {"a": "b"}}

        assert engine.diff(projection, dict(projection)) == []

    def test_scalar_difference(self, engine: DiffEngine) -> None:
        differences = engine.diff({"count": 3}, {"count": 2})

        assert differences == [FieldDifference("count", 3, 2)]

    def test_empty_labels_equal_none(self, engine: DiffEngine) -> None:
        assert engine.diff({"node_labels": {}}, {"node_labels": None}) == []

    def test_empty_taints_equal_none(self, engine: DiffEngine) -> None:
        assert engine.diff({"node_taints": None}, {"node_taints": []}) == []

    def test_taint_order_ignored(self, engine: DiffEngine) -> None:
        desired = {"node_taints": ["a=b:NoSchedule", "c=d:NoExecute"]}
        existing = {"node_taints": ["c=d:NoExecute", "a=b:NoSchedule"]}

        assert engine.diff(desired, existing) == []

    def test_empty_count_is_not_none_equivalent(self, engine: DiffEngine) -> None:
        """Empty equivalence only applies to the fields it is configured for."""
        assert engine.diff({"count": 0}, {"count": None}) != []

    def test_fields_only_in_existing_reported(self, engine: DiffEngine) -> None:
        differences = engine.diff({}, {"max_count": 5})

        assert differences == [FieldDifference("max_count", None, 5)]

    def test_custom_rule(self) -> None:
        engine = DiffEngine(
            rules=[NormalizationRule("zones", NormalizationType.ARRAY_UNORDERED)],
            enable_default_rules=False,
        )

        assert engine.diff({"zones": ["2", "1"]}, {"zones": ["1", "2"]}) == []
        assert engine.diff({"node_labels": {}}, {"node_labels": None}) != []

    def test_reasons_for(self, engine: DiffEngine) -> None:
        assert engine.reasons_for("node_taints") == [
            "Empty taint list equals no taints",
            "Taints are a set, order doesn't matter",
        ]
        assert engine.reasons_for("count") == []

    def test_suppressed_difference_logged(
        self, engine: DiffEngine, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="converge.diff"):
            assert engine.diff({"node_labels": {}}, {"node_labels": None}) == []

        records = [
            r for r in caplog.records
            if r.getMessage() == "Difference suppressed by normalization"
        ]
        assert len(records) == 1
        assert records[0].field_name == "node_labels"
        assert records[0].reasons == ["Empty label map equals no labels"]

    def test_render_diff(self, engine: DiffEngine) -> None:
        rendered = render_diff(engine.diff({"count": 3, "mode": "User"}, {"count": 1, "mode": "User"}))

        assert rendered == "count: desired=3 existing=1"


class TestEnsureTerminalState:
    """Tests for the provisioning-state gate."""

    @pytest.mark.parametrize("state", ["Succeeded", "Failed", "Canceled"])
    def test_terminal_states_pass(self, state: str) -> None:
        ensure_terminal_state(state, "agent pool", "pool0")

    @pytest.mark.parametrize("state", ["Updating", "Creating", "Deleting", "Scaling", None])
    def test_non_terminal_states_raise(self, state: str | None) -> None:
        with pytest.raises(TransientError) as exc_info:
            ensure_terminal_state(state, "agent pool", "pool0")

        assert exc_info.value.retry_after == 20
        assert "non terminal state" in str(exc_info.value)
        assert f"Actual state: {state}" in str(exc_info.value)


class TestMergeSystemLabels:
    """Tests for system label preservation."""

    def test_keeps_reserved_prefix(self) -> None:
        existing = {"kubernetes.azure.com/mode": "user", "team": "a"}

        merged = merge_system_labels({"env": "prod"}, existing)

        assert merged == {"env": "prod", "kubernetes.azure.com/mode": "user"}

    def test_does_not_modify_inputs(self) -> None:
        desired = {"env": "prod"}
        existing = {"kubernetes.azure.com/agentpool": "pool0"}

        merge_system_labels(desired, existing)

        assert desired == {"env": "prod"}
        assert existing == {"kubernetes.azure.com/agentpool": "pool0"}

    def test_existing_none(self) -> None:
        assert merge_system_labels({"env": "prod"}, None) == {"env": "prod"}


class TestAgentPoolProjection:
    """Tests for projecting SDK agent pools."""

    def test_from_agent_pool(self) -> None:
        pool = AgentPool(
            count=3,
            orchestrator_version="1.27.3",
            mode="System",
            enable_auto_scaling=False,
            node_labels={"env": "prod"},
            node_taints=["a=b:NoSchedule"],
        )

        projection = AgentPoolProjection.from_agent_pool(pool)

        assert projection.as_dict() == {
            "count": 3,
            "orchestrator_version": "1.27.3",
            "mode": "System",
            "enable_auto_scaling": False,
            "min_count": None,
            "max_count": None,
            "node_labels": {"env": "prod"},
            "node_taints": ["a=b:NoSchedule"],
        }

    def test_projection_copies_collections(self) -> None:
        labels = {"env": "prod"}
        pool = AgentPool(node_labels=labels)

        projection = AgentPoolProjection.from_agent_pool(pool)
        labels["env"] = "dev"

        assert projection.node_labels == {"env": "prod"}
