"""Drive the agent through the HTTP layer in-process with FastAPI's TestClient."""

import json
from typing import Any, Dict

from fastapi.testclient import TestClient

from cloudscape_agent.api import app


def think(client: TestClient, query: str) -> Dict[str, Any]:
    r = client.post("/v1/agent/think", json={"query": query})
    return {"status_code": r.status_code, **r.json()}


def main():
    client = TestClient(app)
    cases = [
        ("replication", "Replicate data from Oracle in real-time to BigQuery, require strong consistency"),
        ("time_series", "Collect IoT metrics into MS HorizonDB with low latency"),
        ("analytics", "Query last month's orders in the warehouse"),
        ("no_match", "hello there"),
    ]
    for name, query in cases:
        trace = think(client, query)
        print(f"=== {name} ===")
        print(json.dumps({
            "status_code": trace["status_code"],
            "selected_tools": [t["id"] for t in trace.get("selected_tools", [])],
            "execution_plan": trace.get("execution_plan"),
            "final_decision": trace.get("final_decision"),
            "confidence_score": trace.get("confidence_score"),
            "errors": trace.get("errors"),
        }, indent=2))

    history = client.get("/v1/agent/history").json()
    print(f"Recorded sessions: {len(history['sessions'])}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
