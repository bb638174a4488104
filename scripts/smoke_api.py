"""Smoke test against a running API server.

Start the server first: python -m cloudscape_agent.api
"""

import sys
import time

import requests

BASE = "http://127.0.0.1:8000"


def wait_for_server(timeout=10):
    start = time.time()
    while time.time() - start < timeout:
        try:
            r = requests.get(BASE + "/v1/tools", timeout=1)
            if r.status_code == 200:
                return True
        except requests.RequestException:
            time.sleep(0.2)
    return False


def main():
    if not wait_for_server():
        print("API server is not reachable at", BASE)
        return 1

    r = requests.get(BASE + "/v1/tools")
    print("TOOLS:", r.status_code, r.json())

    r = requests.get(BASE + "/v1/tools", params={"category": "time_series"})
    print("TIME-SERIES TOOLS:", r.status_code, r.json())

    r = requests.post(BASE + "/v1/agent/think", json={
        "query": "Replicate data from Oracle in real-time to BigQuery, require strong consistency"
    })
    print("REPLICATION:", r.status_code, r.json().get("final_decision"))

    r = requests.post(BASE + "/v1/agent/think", json={"query": "hello there"})
    print("NO MATCH:", r.status_code, r.json().get("errors"))

    r = requests.post(BASE + "/v1/agent/think", json={"query": ""})
    print("EMPTY query:", r.status_code)

    r = requests.get(BASE + "/v1/status")
    print("STATUS:", r.status_code, r.json().get("history_size"))
    return 0


if __name__ == "__main__":
    sys.exit(main())
