"""End-to-end tests for the Conductor pipeline."""

import asyncio

import pytest

from cloudscape_agent.conductor.conductor import Conductor, NO_SUITABLE_TOOLS
from cloudscape_agent.core.execution import SimulatedToolInvoker
from cloudscape_agent.core.policy import AgentPolicy
from cloudscape_agent.core.session import Decision, SessionHistory


def make_conductor(registry, failing_tools=None, history=None, policy=None):
    invoker = SimulatedToolInvoker(delay_ms_max=0, failing_tools=failing_tools)
    return Conductor(registry, policy or AgentPolicy(), invoker=invoker, history=history)


class TestReplicationScenario:
    QUERY = "Replicate data from Oracle in real-time to BigQuery, require strong consistency"

    def test_session_reaches_a_decision(self, registry):
        conductor = make_conductor(registry)
        session = asyncio.run(conductor.think(self.QUERY))

        assert session.requirements.source_system == "oracle"
        assert session.requirements.target_system == "bigquery"
        assert len(session.selected_tools) == 5
        assert session.execution_plan[0] == "1. Enable CDC on source with OCI GoldenGate Capture"
        assert session.final_decision == Decision.EXECUTE
        assert session.confidence_score == 100
        assert session.reasoning == "All selected tools executed successfully"
        assert session.errors == []
        assert session.completed_at is not None
        assert session.total_latency_ms >= 0
        assert len(conductor.get_history()) == 1

    def test_serialized_session_shape(self, registry):
        trace = asyncio.run(make_conductor(registry).think(self.QUERY)).to_dict()
        assert trace["final_decision"] == "EXECUTE"
        assert trace["requirements"]["latency_requirement"] == "real-time"
        assert [t["id"] for t in trace["selected_tools"]][0] == "horizondb_ingest"
        assert len(trace["tool_results"]) == 5
        assert trace["current_step"] == 5


class TestNoSuitableTool:
    def test_unrecognized_request(self, registry):
        conductor = make_conductor(registry)
        session = asyncio.run(conductor.think("hello there"))

        assert session.requirements.is_empty()
        assert session.selected_tools == []
        assert session.execution_plan == []
        assert session.outcomes == []
        assert session.errors == [NO_SUITABLE_TOOLS]
        assert session.final_decision is None
        assert session.confidence_score is None
        assert conductor.get_history() == []


class TestFailover:
    QUERY = "Replicate data from Oracle to PostgreSQL"

    def test_capture_failure_is_covered_by_delivery(self, registry):
        conductor = make_conductor(registry, failing_tools={"oci_goldengate_capture"})
        session = asyncio.run(conductor.think(self.QUERY))

        assert [t.id for t in session.selected_tools] == [
            "oci_goldengate_capture", "oci_goldengate_delivery", "oci_goldengate_monitor", "aws_dms_migrate",
        ]
        assert session.fallback_triggered is True
        assert session.outcomes[1].tool_id == "oci_goldengate_delivery"
        assert session.outcomes[1].fallback_for == "oci_goldengate_capture"
        assert len(session.outcomes) == 5
        assert sum(1 for o in session.outcomes if o.success) == 4
        assert session.confidence_score == 80
        assert session.final_decision == Decision.EXECUTE_WITH_PARTIAL_FALLBACK
        assert session.reasoning == "4/5 tools succeeded with fallback"
        assert len([e for e in session.errors if e.startswith("Tool oci_goldengate_capture failed")]) == 1
        assert not any("also failed" in e for e in session.errors)

    def test_majority_failure_escalates(self, registry):
        failing = {"oci_goldengate_capture", "oci_goldengate_delivery", "oci_goldengate_monitor"}
        session = asyncio.run(make_conductor(registry, failing_tools=failing).think(self.QUERY))

        # 4 selected + 1 failed fallback, only aws_dms_migrate succeeds
        assert len(session.outcomes) == 5
        assert session.final_decision == Decision.RETRY_OR_ESCALATE
        assert session.confidence_score == 20
        assert session.reasoning == "Insufficient tool execution success rate"
        assert "Fallback tool oci_goldengate_delivery also failed" in session.errors


class TestHistory:
    def test_reset_keeps_history(self, registry):
        conductor = make_conductor(registry)
        asyncio.run(conductor.think("Analyze last quarter's sales"))
        previous = conductor.current_session

        conductor.reset()

        assert conductor.current_session is not previous
        assert conductor.current_session.user_query == ""
        assert len(conductor.get_history()) == 1

    def test_history_is_bounded(self, registry):
        policy = AgentPolicy()
        policy.history.max_sessions = 2
        conductor = make_conductor(registry, policy=policy)
        for query in ("Analyze sales", "Migrate the orders table", "Ingest IoT metrics"):
            asyncio.run(conductor.think(query))

        assert [s.user_query for s in conductor.get_history()] == ["Migrate the orders table", "Ingest IoT metrics"]

    def test_recorded_sessions_are_copies(self, registry):
        conductor = make_conductor(registry)
        session = asyncio.run(conductor.think("Analyze sales"))
        session.errors.append("mutated afterwards")

        assert conductor.get_history()[0].errors == []

    def test_history_entries_cannot_be_changed_by_callers(self, registry):
        conductor = make_conductor(registry)
        asyncio.run(conductor.think("Analyze sales"))

        entry = conductor.get_history()[0]
        entry.errors.append("changed by caller")
        entry.selected_tools.clear()

        stored = conductor.get_history()[0]
        assert stored.errors == []
        assert len(stored.selected_tools) == 4

    def test_shared_history_store(self, registry):
        history = SessionHistory(max_sessions=10)
        asyncio.run(make_conductor(registry, history=history).think("Analyze sales"))
        asyncio.run(make_conductor(registry, history=history).think("Migrate the orders table"))
        assert len(history) == 2

    def test_history_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            SessionHistory(max_sessions=0)
