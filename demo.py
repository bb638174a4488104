#!/usr/bin/env python3
"""
CloudScape Agent Demo Script

This script runs the agent against the integration scenarios it was built
for: replication, time-series consolidation, heterogeneous migration,
failover and warehouse routing.
"""

import json
import logging
from datetime import datetime

from cloudscape_agent.core.execution import SimulatedToolInvoker
from cloudscape_agent.core.policy import load_agent_policy
from cloudscape_agent.main import AgentAPI


SCENARIOS = [
    (
        "Oracle -> Multi-Cloud Real-Time Replication",
        """
        Replicate data from Oracle Database (on-premise) in real-time to:
        - BigQuery for analytics
        - MS HorizonDB for time-series metrics
        - Kafka for event streaming

        Requirements:
        - Real-time latency (sub-second)
        - Strong consistency
        - Handle schema changes automatically
        """,
    ),
    (
        "IoT Metrics -> MS HorizonDB Consolidation",
        """
        Ingest time-series metrics from multiple IoT sensor sources into MS HorizonDB.
        Volume: 10 million data points per hour.
        Requirements: real-time ingestion, automatic compression and aggregation.
        """,
    ),
    (
        "Heterogeneous Database Consolidation",
        """
        Migrate data from Oracle, SQL Server and MySQL to Snowflake.
        Requirements: schema evolution handling, deduplication, 150,000 records per second.
        """,
    ),
    (
        "Multi-Cloud Cost Optimization",
        """
        Analyze hot, warm and cold data tiers and find the most cost-effective platform routing.
        """,
    ),
    (
        "Unrecognized Request",
        "hello there",
    ),
]


def print_separator(title=""):
    """Print a visual separator."""
    if title:
        print(f"\n{'='*60}")
        print(f" {title}")
        print(f"{'='*60}")
    else:
        print("-" * 60)


def print_session_summary(trace):
    """Print a summary of a serialized session."""
    req = trace.get("requirements") or {}
    print(f"Session ID: {trace['session_id']}")
    print(f"Goal: {req.get('goal')}  Data Type: {req.get('data_type')}")
    print(f"Source: {req.get('source_system')}  Target: {req.get('target_system')}")
    print(f"Latency: {req.get('latency_requirement')}  Consistency: {req.get('consistency_requirement')}")
    if req.get("throughput_requirement") is not None:
        print(f"Throughput: {req['throughput_requirement']:.0f} records/sec")

    print("\n--- SELECTED TOOLS ---")
    for idx, tool in enumerate(trace["selected_tools"], start=1):
        print(f"{idx}. {tool['name']} ({tool['id']})  latency={tool['latency']}  reliability={tool['reliability']}%")

    print("\n--- EXECUTION PLAN ---")
    for step in trace["execution_plan"]:
        print(f"  {step}")

    print("\n--- RESULTS ---")
    for result in trace["tool_results"]:
        marker = "OK" if result["success"] else "FAIL"
        via = f" (fallback for {result['fallback_for']})" if result.get("fallback_for") else ""
        print(f"  [{marker}] {result['tool_id']}{via} in {result['execution_time_ms']}ms")
    for error in trace["errors"]:
        print(f"  ERROR: {error}")
    print(f"Final Decision: {trace['final_decision']}")
    if trace.get("confidence_score") is not None:
        print(f"Confidence Score: {trace['confidence_score']:.2f}%")


def demo_scenarios():
    """Run the integration scenarios."""
    api = AgentAPI()
    for title, query in SCENARIOS:
        print_separator(title)
        print_session_summary(api.ask_with_trace(query))


def demo_failover():
    """Force the primary CDC tool to fail and show the fallback substitution."""
    print_separator("Intelligent Failover")
    invoker = SimulatedToolInvoker(
        delay_ms_max=load_agent_policy().simulation.delay_ms_max,
        failing_tools={"oci_goldengate_capture"},
    )
    api = AgentAPI(invoker=invoker)
    trace = api.ask_with_trace("Replicate data from Oracle to PostgreSQL in real-time")
    print_session_summary(trace)
    print(f"Fallback triggered: {trace['fallback_triggered']}")


def demo_system_status():
    print_separator("SYSTEM STATUS")
    print(json.dumps(AgentAPI().status(), indent=2))


def main():
    """Run all demos."""
    logging.basicConfig(level=logging.WARNING)
    print_separator("CLOUDSCAPE AGENT DEMO")
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    try:
        demo_scenarios()
        demo_failover()
        demo_system_status()
        print_separator("DEMO COMPLETED")
    except Exception as e:
        print(f"\nDemo failed with error: {e}")
        import traceback
        traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
