"""
Agent policy (runtime configuration).

The policy is read from policies/agent.yaml and validated with pydantic.
Individual keys can be overridden through environment variables:

- CLOUDSCAPE_POLICY_PATH: alternative policy file
- CLOUDSCAPE_EXECUTION_MODE: sequential | concurrent
- CLOUDSCAPE_CALL_TIMEOUT_MS: per-call timeout
- CLOUDSCAPE_SIMULATED_DELAY_MS_MAX: upper bound of the simulated call delay
- CLOUDSCAPE_MAX_HISTORY: history capacity (0 = unbounded)
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_POLICY_PATH = Path(__file__).resolve().parents[1] / "policies" / "agent.yaml"


class SelectionPolicy(BaseModel):
    top_k: int = Field(default=5, ge=1)


class ExecutionPolicy(BaseModel):
    mode: Literal["sequential", "concurrent"] = "sequential"
    max_parallel: int = Field(default=4, ge=1)
    call_timeout_ms: int = Field(default=5000, ge=1)
    max_retries: int = Field(default=0, ge=0)
    retry_backoff_ms: int = Field(default=100, ge=0)


class FallbackPolicy(BaseModel):
    enabled: bool = True
    reliability_ratio: float = Field(default=0.8, ge=0, le=1)


class SimulationPolicy(BaseModel):
    delay_ms_max: int = Field(default=1000, ge=0)


class HistoryPolicy(BaseModel):
    # None means unbounded
    max_sessions: Optional[int] = Field(default=100, ge=1)


class AgentPolicy(BaseModel):
    selection: SelectionPolicy = Field(default_factory=SelectionPolicy)
    execution: ExecutionPolicy = Field(default_factory=ExecutionPolicy)
    fallback: FallbackPolicy = Field(default_factory=FallbackPolicy)
    simulation: SimulationPolicy = Field(default_factory=SimulationPolicy)
    history: HistoryPolicy = Field(default_factory=HistoryPolicy)


def _env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    mode = os.getenv("CLOUDSCAPE_EXECUTION_MODE")
    if mode:
        data.setdefault("execution", {})["mode"] = mode
    timeout = os.getenv("CLOUDSCAPE_CALL_TIMEOUT_MS")
    if timeout:
        data.setdefault("execution", {})["call_timeout_ms"] = int(timeout)
    delay = os.getenv("CLOUDSCAPE_SIMULATED_DELAY_MS_MAX")
    if delay:
        data.setdefault("simulation", {})["delay_ms_max"] = int(delay)
    max_history = os.getenv("CLOUDSCAPE_MAX_HISTORY")
    if max_history:
        value = int(max_history)
        data.setdefault("history", {})["max_sessions"] = value if value > 0 else None
    return data


def load_agent_policy(path: Optional[str] = None) -> AgentPolicy:
    """Load the agent policy from YAML, applying environment overrides."""
    policy_path = Path(path or os.getenv("CLOUDSCAPE_POLICY_PATH") or DEFAULT_POLICY_PATH)
    data: Dict[str, Any] = {}
    if policy_path.exists():
        with open(policy_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    else:
        logger.warning(f"Policy file {policy_path} not found, using defaults")
    policy = AgentPolicy.model_validate(_env_overrides(data))
    logger.info(f"Loaded agent policy from {policy_path}: mode={policy.execution.mode}")
    return policy
