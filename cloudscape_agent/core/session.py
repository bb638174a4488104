"""
Agent session model and session history store.
"""

import copy
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from .requirements import RequirementSet
from .tools import ToolDescriptor


class Decision(str, Enum):
    EXECUTE = "EXECUTE"
    EXECUTE_WITH_PARTIAL_FALLBACK = "EXECUTE_WITH_PARTIAL_FALLBACK"
    RETRY_OR_ESCALATE = "RETRY_OR_ESCALATE"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of one attempted tool call. Never mutated once created."""
    tool_id: str
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    duration_ms: int = 0
    timestamp: datetime = field(default_factory=utcnow)
    fallback_for: Optional[str] = None
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_id": self.tool_id,
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "execution_time_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
            "fallback_for": self.fallback_for,
            "attempts": self.attempts,
        }


@dataclass
class AgentSession:
    """State of one run of the reasoning pipeline."""
    user_query: str = ""
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    requirements: RequirementSet = field(default_factory=RequirementSet)
    selected_tools: List[ToolDescriptor] = field(default_factory=list)
    execution_plan: List[str] = field(default_factory=list)
    current_step: int = 0
    outcomes: List[ExecutionOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    alternative_tools: List[ToolDescriptor] = field(default_factory=list)
    fallback_triggered: bool = False
    final_decision: Optional[Decision] = None
    reasoning: Optional[str] = None
    confidence_score: Optional[float] = None
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    total_latency_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_query": self.user_query,
            "requirements": self.requirements.to_dict(),
            "selected_tools": [t.to_dict() for t in self.selected_tools],
            "execution_plan": list(self.execution_plan),
            "current_step": self.current_step,
            "tool_results": [o.to_dict() for o in self.outcomes],
            "errors": list(self.errors),
            "alternative_tools": [t.id for t in self.alternative_tools],
            "fallback_triggered": self.fallback_triggered,
            "final_decision": self.final_decision.value if self.final_decision else None,
            "reasoning": self.reasoning,
            "confidence_score": self.confidence_score,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_latency_ms": self.total_latency_ms,
        }


class SessionHistory:
    """Thread-safe store of completed sessions, oldest evicted first when full."""

    def __init__(self, max_sessions: Optional[int] = None):
        if max_sessions is not None and max_sessions < 1:
            raise ValueError("max_sessions must be >= 1 or None")
        self.max_sessions = max_sessions
        self._sessions: Deque[AgentSession] = deque(maxlen=max_sessions)
        self._lock = threading.Lock()

    def record(self, session: AgentSession):
        """Store a frozen copy of the session."""
        frozen = copy.deepcopy(session)
        with self._lock:
            self._sessions.append(frozen)

    def sessions(self) -> List[AgentSession]:
        """Copies of the recorded sessions, oldest first."""
        with self._lock:
            return [copy.deepcopy(s) for s in self._sessions]

    def clear(self):
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
