"""
Conductor implementation.

The Conductor runs the reasoning pipeline for one request:
extract requirements, select tools, build the plan, execute, evaluate, and
record the completed session in the history store.
"""

import time
import logging
from typing import List, Optional

from ..core.evaluation import evaluate, reasoning_for
from ..core.execution import ExecutionEngine, SimulatedToolInvoker, ToolInvoker
from ..core.planning import ExecutionPlanner
from ..core.policy import AgentPolicy
from ..core.selection import ToolSelector
from ..core.session import AgentSession, SessionHistory, utcnow
from ..core.tools import ToolRegistry
from ..translators.extractor import RequirementExtractor

logger = logging.getLogger(__name__)

NO_SUITABLE_TOOLS = "No suitable tools found for the given requirements"


class Conductor:
    """Main conductor for turning a request into an evaluated session."""

    def __init__(
        self,
        registry: ToolRegistry,
        policy: Optional[AgentPolicy] = None,
        invoker: Optional[ToolInvoker] = None,
        history: Optional[SessionHistory] = None,
        extractor: Optional[RequirementExtractor] = None,
        planner: Optional[ExecutionPlanner] = None,
    ):
        self.registry = registry
        self.policy = policy or AgentPolicy()
        self.invoker = invoker or SimulatedToolInvoker(delay_ms_max=self.policy.simulation.delay_ms_max)
        self.history = history if history is not None else SessionHistory(self.policy.history.max_sessions)
        self.extractor = extractor or RequirementExtractor()
        self.selector = ToolSelector(registry, top_k=self.policy.selection.top_k)
        self.planner = planner or ExecutionPlanner()
        self.engine = ExecutionEngine(registry, self.invoker, self.policy.execution, self.policy.fallback)
        self.current_session = AgentSession()

    async def think(self, user_query: str) -> AgentSession:
        """
        Process a request end to end.

        1. Extract requirements
        2. Select tools (empty selection ends the session with an error)
        3. Create the execution plan
        4. Execute the selected tools
        5. Evaluate results and decide
        6. Record a frozen copy in history
        """
        start_time = time.monotonic()
        session = AgentSession(user_query=user_query)
        self.current_session = session
        logger.info(f"Processing request {session.session_id}: {user_query}")

        session.requirements = self.extractor.extract(user_query)

        session.selected_tools = self.selector.select(session.requirements)
        if not session.selected_tools:
            session.errors.append(NO_SUITABLE_TOOLS)
            self._finish(session, start_time)
            logger.info(f"Request {session.session_id} ended without a suitable tool")
            return session

        session.execution_plan = self.planner.plan(session.requirements)

        await self.engine.execute(session)

        successes = sum(1 for o in session.outcomes if o.success)
        total = len(session.outcomes)
        session.final_decision, session.confidence_score = evaluate(session.outcomes)
        session.reasoning = reasoning_for(session.final_decision, successes, total)

        self._finish(session, start_time)
        self.history.record(session)
        logger.info(
            f"Request {session.session_id} completed in {session.total_latency_ms}ms: "
            f"{session.final_decision.value} ({session.confidence_score:.2f}%)"
        )
        return session

    def _finish(self, session: AgentSession, start_time: float):
        session.completed_at = utcnow()
        session.total_latency_ms = int((time.monotonic() - start_time) * 1000)

    def reset(self):
        """Discard the in-progress session. Recorded history is kept."""
        self.current_session = AgentSession()

    def get_history(self) -> List[AgentSession]:
        return self.history.sessions()
