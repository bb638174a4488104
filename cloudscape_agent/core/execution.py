"""
Tool execution.

ToolInvoker is the seam between the agent and the outside world. The only
implementation shipped here is SimulatedToolInvoker, which waits a random
delay and fabricates a success payload; real adapters plug in behind the
same interface without touching selection, ranking or evaluation.

ExecutionEngine runs the selected tools for a session, converts timeouts and
errors into failure outcomes, and performs at most one same-category
fallback substitution per session.
"""

import asyncio
import logging
import random
import time
from collections import deque
from abc import ABC, abstractmethod
from typing import Any, Deque, Dict, Iterable, List, Optional, Tuple

from .policy import ExecutionPolicy, FallbackPolicy
from .session import AgentSession, ExecutionOutcome
from .tools import ToolDescriptor, ToolRegistry

logger = logging.getLogger(__name__)

MAX_RECORDED_CALLS = 100


class ToolExecutionError(Exception):
    """Raised by an invoker when a tool call fails."""


class ToolTimeoutError(ToolExecutionError):
    """Raised when a tool call does not resolve within the per-call timeout."""


class ToolInvoker(ABC):
    """Abstract interface for calling a tool."""

    @abstractmethod
    async def invoke(self, tool: ToolDescriptor, parameters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call the tool and return its payload; raise ToolExecutionError on failure."""
        pass


class SimulatedToolInvoker(ToolInvoker):
    """Fake invoker: random delay in [0, delay_ms_max) ms, then a fabricated success.

    Tools named in failing_tools raise ToolExecutionError instead, which makes
    failure and fallback paths deterministic in tests. Only the most recent
    max_recorded_calls tool ids are kept in calls.
    """

    def __init__(
        self,
        delay_ms_max: int = 1000,
        failing_tools: Optional[Iterable[str]] = None,
        rng: Optional[random.Random] = None,
        max_recorded_calls: int = MAX_RECORDED_CALLS,
    ):
        self.delay_ms_max = delay_ms_max
        self.failing_tools = set(failing_tools or [])
        self.rng = rng or random.Random()
        self.calls: Deque[str] = deque(maxlen=max_recorded_calls)

    async def invoke(self, tool: ToolDescriptor, parameters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.calls.append(tool.id)
        await asyncio.sleep(self.rng.random() * self.delay_ms_max / 1000.0)
        if tool.id in self.failing_tools:
            raise ToolExecutionError(f"Simulated failure of {tool.name}")
        return {
            "message": f"Tool {tool.name} executed successfully",
            "processed_records": self.rng.randrange(1_000_000),
            "status": "completed",
        }


class ExecutionEngine:
    """Executes a session's selected tools with timeout, retry and fallback handling."""

    def __init__(
        self,
        registry: ToolRegistry,
        invoker: ToolInvoker,
        execution_policy: Optional[ExecutionPolicy] = None,
        fallback_policy: Optional[FallbackPolicy] = None,
    ):
        self.registry = registry
        self.invoker = invoker
        self.execution_policy = execution_policy or ExecutionPolicy()
        self.fallback_policy = fallback_policy or FallbackPolicy()

    async def execute(self, session: AgentSession) -> Tuple[List[ExecutionOutcome], List[str], bool]:
        """
        Run every selected tool of the session, in selection order.

        Mutates the session (outcomes, errors, fallback state, current step)
        and returns (outcomes, errors, fallback_triggered).
        """
        tools = list(session.selected_tools)
        if self.execution_policy.mode == "concurrent":
            outcomes = await self._dispatch_concurrent(tools)
            for index, (tool, outcome) in enumerate(zip(tools, outcomes), start=1):
                session.current_step = index
                await self._handle_outcome(session, tool, outcome)
        else:
            for index, tool in enumerate(tools, start=1):
                session.current_step = index
                outcome = await self.call_tool(tool, retries=self.execution_policy.max_retries)
                await self._handle_outcome(session, tool, outcome)
        return session.outcomes, session.errors, session.fallback_triggered

    async def _dispatch_concurrent(self, tools: List[ToolDescriptor]) -> List[ExecutionOutcome]:
        semaphore = asyncio.Semaphore(self.execution_policy.max_parallel)

        async def guarded(tool: ToolDescriptor) -> ExecutionOutcome:
            async with semaphore:
                return await self.call_tool(tool, retries=self.execution_policy.max_retries)

        # gather keeps results in argument order, not completion order
        return list(await asyncio.gather(*(guarded(t) for t in tools)))

    async def call_tool(
        self,
        tool: ToolDescriptor,
        retries: int = 0,
        fallback_for: Optional[str] = None,
    ) -> ExecutionOutcome:
        """Call one tool and wrap the result in an ExecutionOutcome. Never raises."""
        timeout_ms = self.execution_policy.call_timeout_ms
        start = time.monotonic()
        attempts = 0
        error: Optional[str] = None

        while attempts <= retries:
            if attempts > 0:
                backoff_ms = self.execution_policy.retry_backoff_ms * (2 ** (attempts - 1))
                logger.info(f"Retrying tool {tool.id} in {backoff_ms}ms (attempt {attempts + 1})")
                await asyncio.sleep(backoff_ms / 1000.0)
            attempts += 1
            try:
                try:
                    result = await asyncio.wait_for(self.invoker.invoke(tool), timeout=timeout_ms / 1000.0)
                except asyncio.TimeoutError as exc:
                    raise ToolTimeoutError(f"timed out after {timeout_ms} ms") from exc
                if isinstance(result, dict) and result.get("error"):
                    raise ToolExecutionError(str(result["error"]))
            except Exception as e:
                error = str(e) or e.__class__.__name__
                logger.error(f"Tool {tool.id} execution failed (attempt {attempts}): {error}")
                continue
            return ExecutionOutcome(
                tool_id=tool.id,
                success=True,
                data=result,
                duration_ms=int((time.monotonic() - start) * 1000),
                fallback_for=fallback_for,
                attempts=attempts,
            )

        return ExecutionOutcome(
            tool_id=tool.id,
            success=False,
            error=error,
            duration_ms=int((time.monotonic() - start) * 1000),
            fallback_for=fallback_for,
            attempts=attempts,
        )

    async def _handle_outcome(self, session: AgentSession, tool: ToolDescriptor, outcome: ExecutionOutcome):
        session.outcomes.append(outcome)
        if outcome.success:
            return
        session.errors.append(f"Tool {tool.id} failed: {outcome.error}")
        if self.fallback_policy.enabled and not session.fallback_triggered:
            await self.execute_fallback(session, tool)

    def fallback_candidates(self, failed_tool: ToolDescriptor) -> List[ToolDescriptor]:
        """Same-category tools within the reliability ratio of the failed tool, most reliable first."""
        threshold = failed_tool.reliability * self.fallback_policy.reliability_ratio
        alternatives = [
            t for t in self.registry.get_tools_by_category(failed_tool.category)
            if t.id != failed_tool.id and t.reliability >= threshold
        ]
        return sorted(alternatives, key=lambda t: t.reliability, reverse=True)

    async def execute_fallback(self, session: AgentSession, failed_tool: ToolDescriptor):
        """Single-level fallback: try the best same-category substitute once."""
        session.fallback_triggered = True
        alternatives = self.fallback_candidates(failed_tool)
        session.alternative_tools = alternatives
        if not alternatives:
            logger.warning(f"No fallback candidate for tool {failed_tool.id}")
            return

        fallback_tool = alternatives[0]
        logger.info(f"Falling back from {failed_tool.id} to {fallback_tool.id}")
        outcome = await self.call_tool(fallback_tool, retries=0, fallback_for=failed_tool.id)
        session.outcomes.append(outcome)
        if not outcome.success:
            session.errors.append(f"Fallback tool {fallback_tool.id} also failed")
