"""Tests for the execution engine, timeouts, retries and fallback."""

import asyncio

from cloudscape_agent.core.execution import (
    MAX_RECORDED_CALLS,
    ExecutionEngine,
    SimulatedToolInvoker,
    ToolExecutionError,
    ToolInvoker,
)
from cloudscape_agent.core.policy import ExecutionPolicy, FallbackPolicy
from cloudscape_agent.core.session import AgentSession
from cloudscape_agent.core.tools import ToolRegistry

from conftest import make_contract


def session_for(registry, *tool_ids):
    return AgentSession(user_query="test", selected_tools=[registry.get_tool(t) for t in tool_ids])


class SlowInvoker(ToolInvoker):
    """Never resolves within a short timeout for the named tools."""

    def __init__(self, slow_tools):
        self.slow_tools = set(slow_tools)

    async def invoke(self, tool, parameters=None):
        if tool.id in self.slow_tools:
            await asyncio.sleep(1)
        return {"status": "completed"}


class FlakyInvoker(ToolInvoker):
    """Fails the first N calls, then succeeds."""

    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    async def invoke(self, tool, parameters=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise ToolExecutionError("transient")
        return {"status": "completed"}


class ErrorPayloadInvoker(ToolInvoker):
    async def invoke(self, tool, parameters=None):
        return {"error": "quota exceeded"}


class StaggeredInvoker(ToolInvoker):
    """Earlier tools take longer, so completion order is the reverse of call order."""

    def __init__(self, order):
        self.order = list(order)
        self.completed = []

    async def invoke(self, tool, parameters=None):
        await asyncio.sleep(0.01 * (len(self.order) - self.order.index(tool.id)))
        self.completed.append(tool.id)
        return {"status": "completed"}


def test_all_tools_succeed_in_selection_order(registry):
    session = session_for(registry, "oci_goldengate_capture", "oci_goldengate_delivery", "oci_goldengate_monitor")
    engine = ExecutionEngine(registry, SimulatedToolInvoker(delay_ms_max=0))
    outcomes, errors, fallback = asyncio.run(engine.execute(session))

    assert [o.tool_id for o in outcomes] == ["oci_goldengate_capture", "oci_goldengate_delivery", "oci_goldengate_monitor"]
    assert all(o.success for o in outcomes)
    assert all(o.data["status"] == "completed" for o in outcomes)
    assert 0 <= outcomes[0].data["processed_records"] < 1_000_000
    assert errors == []
    assert fallback is False
    assert session.current_step == 3


def test_failure_triggers_same_category_fallback(registry):
    session = session_for(registry, "oci_goldengate_capture", "oci_goldengate_monitor")
    invoker = SimulatedToolInvoker(delay_ms_max=0, failing_tools={"oci_goldengate_capture"})
    asyncio.run(ExecutionEngine(registry, invoker).execute(session))

    assert session.fallback_triggered is True
    assert session.errors == ["Tool oci_goldengate_capture failed: Simulated failure of OCI GoldenGate Capture"]
    assert [(o.tool_id, o.success, o.fallback_for) for o in session.outcomes] == [
        ("oci_goldengate_capture", False, None),
        ("oci_goldengate_delivery", True, "oci_goldengate_capture"),
        ("oci_goldengate_monitor", True, None),
    ]
    assert [t.id for t in session.alternative_tools] == ["oci_goldengate_delivery", "oci_goldengate_monitor"]


def test_fallback_runs_at_most_once_per_session(registry):
    session = session_for(registry, "bigquery_query", "snowflake_query")
    invoker = SimulatedToolInvoker(delay_ms_max=0, failing_tools={"bigquery_query", "snowflake_query"})
    asyncio.run(ExecutionEngine(registry, invoker).execute(session))

    # bigquery fails -> fallback to snowflake (fails) ; snowflake fails -> no second fallback
    assert list(invoker.calls) == ["bigquery_query", "snowflake_query", "snowflake_query"]
    assert session.errors == [
        "Tool bigquery_query failed: Simulated failure of Google BigQuery",
        "Fallback tool snowflake_query also failed",
        "Tool snowflake_query failed: Simulated failure of Snowflake",
    ]
    assert session.fallback_triggered is True


def test_fallback_respects_reliability_ratio():
    registry = ToolRegistry.from_dicts([
        make_contract("primary", reliability=90.0),
        make_contract("weak", reliability=70.0),
        make_contract("ok", reliability=80.0),
        make_contract("other_category", category="ml", reliability=99.0),
    ])
    engine = ExecutionEngine(registry, SimulatedToolInvoker(delay_ms_max=0))
    candidates = engine.fallback_candidates(registry.get_tool("primary"))
    assert [t.id for t in candidates] == ["ok"]


def test_no_fallback_candidate_records_nothing_extra():
    registry = ToolRegistry.from_dicts([make_contract("lonely", category="ml")])
    session = session_for(registry, "lonely")
    invoker = SimulatedToolInvoker(delay_ms_max=0, failing_tools={"lonely"})
    asyncio.run(ExecutionEngine(registry, invoker).execute(session))

    assert session.fallback_triggered is True
    assert session.alternative_tools == []
    assert len(session.outcomes) == 1
    assert session.errors == ["Tool lonely failed: Simulated failure of Lonely"]


def test_fallback_can_be_disabled(registry):
    session = session_for(registry, "oci_goldengate_capture")
    invoker = SimulatedToolInvoker(delay_ms_max=0, failing_tools={"oci_goldengate_capture"})
    engine = ExecutionEngine(registry, invoker, fallback_policy=FallbackPolicy(enabled=False))
    asyncio.run(engine.execute(session))

    assert session.fallback_triggered is False
    assert list(invoker.calls) == ["oci_goldengate_capture"]


def test_timeout_becomes_failure_and_falls_back(registry):
    session = session_for(registry, "oci_goldengate_capture")
    engine = ExecutionEngine(
        registry,
        SlowInvoker({"oci_goldengate_capture"}),
        execution_policy=ExecutionPolicy(call_timeout_ms=20),
    )
    asyncio.run(engine.execute(session))

    assert session.outcomes[0].success is False
    assert "timed out after 20 ms" in session.outcomes[0].error
    assert session.outcomes[1].tool_id == "oci_goldengate_delivery"
    assert session.outcomes[1].success is True
    assert session.errors == ["Tool oci_goldengate_capture failed: timed out after 20 ms"]


def test_error_payload_counts_as_failure(registry):
    session = session_for(registry, "vertex_ai_predict")
    engine = ExecutionEngine(registry, ErrorPayloadInvoker())
    asyncio.run(engine.execute(session))

    assert session.outcomes[0].success is False
    assert session.errors[0] == "Tool vertex_ai_predict failed: quota exceeded"
    assert session.errors[1] == "Fallback tool azure_openai_chat also failed"


def test_retries_before_failing(registry):
    session = session_for(registry, "redshift_query")
    invoker = FlakyInvoker(failures=2)
    engine = ExecutionEngine(registry, invoker, execution_policy=ExecutionPolicy(max_retries=2, retry_backoff_ms=1))
    asyncio.run(engine.execute(session))

    assert invoker.calls == 3
    assert session.outcomes[0].success is True
    assert session.outcomes[0].attempts == 3
    assert session.errors == []
    assert session.fallback_triggered is False


def test_exhausted_retries_fall_back(registry):
    session = session_for(registry, "redshift_query")
    invoker = FlakyInvoker(failures=2)
    engine = ExecutionEngine(registry, invoker, execution_policy=ExecutionPolicy(max_retries=1, retry_backoff_ms=1))
    asyncio.run(engine.execute(session))

    # two failed attempts on redshift, then the fallback call succeeds
    assert session.outcomes[0].attempts == 2
    assert session.outcomes[0].success is False
    assert session.outcomes[1].tool_id == "bigquery_query"
    assert session.outcomes[1].success is True


def test_concurrent_mode_preserves_selection_order(registry):
    order = ["bigquery_query", "snowflake_query", "horizondb_query", "redshift_query"]
    session = session_for(registry, *order)
    invoker = StaggeredInvoker(order)
    engine = ExecutionEngine(registry, invoker, execution_policy=ExecutionPolicy(mode="concurrent", max_parallel=4))
    asyncio.run(engine.execute(session))

    assert invoker.completed == list(reversed(order))
    assert [o.tool_id for o in session.outcomes] == order
    assert session.current_step == 4


def test_simulated_invoker_keeps_bounded_call_record(registry):
    invoker = SimulatedToolInvoker(delay_ms_max=0, max_recorded_calls=3)
    engine = ExecutionEngine(registry, invoker)
    for _ in range(5):
        asyncio.run(engine.execute(session_for(registry, "bigquery_query", "snowflake_query")))

    assert len(invoker.calls) == 3
    assert list(invoker.calls) == ["snowflake_query", "bigquery_query", "snowflake_query"]


def test_simulated_invoker_default_record_is_bounded(registry):
    invoker = SimulatedToolInvoker(delay_ms_max=0)
    engine = ExecutionEngine(registry, invoker)
    for _ in range(60):
        asyncio.run(engine.execute(session_for(registry, "bigquery_query", "snowflake_query")))

    assert len(invoker.calls) == MAX_RECORDED_CALLS
