import os

# Keep simulated tool calls short; must be set before the API module is imported.
os.environ.setdefault("CLOUDSCAPE_SIMULATED_DELAY_MS_MAX", "5")

import pytest

from cloudscape_agent.core.policy import AgentPolicy
from cloudscape_agent.core.tools import ToolRegistry


@pytest.fixture(scope="session")
def registry():
    return ToolRegistry()


@pytest.fixture
def fast_policy():
    policy = AgentPolicy()
    policy.simulation.delay_ms_max = 0
    return policy


def make_contract(tool_id, **overrides):
    """Minimal valid contract mapping for synthetic registries."""
    data = {
        "id": tool_id,
        "name": tool_id.replace("_", " ").title(),
        "description": "synthetic tool",
        "category": "data_integration",
        "endpoint": f"https://example.invalid/{tool_id}",
        "protocol": "REST",
        "latency": "seconds",
        "reliability": 99.0,
        "parameters": [],
        "requires_auth": False,
        "supports": [],
        "max_concurrent": 10,
    }
    data.update(overrides)
    return data
