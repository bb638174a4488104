"""
Main request handler and API.

This module provides the main entry point for the agent, wiring the tool
registry, policy, invoker and conductor into one request pipeline.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .conductor.conductor import Conductor
from .core.execution import ToolInvoker
from .core.policy import AgentPolicy, load_agent_policy
from .core.session import SessionHistory
from .core.tools import ToolRegistry

logger = logging.getLogger(__name__)


class AgentRequestHandler:
    """Main request handler for the agent."""

    def __init__(
        self,
        contracts_dir: str = None,
        policy: Optional[AgentPolicy] = None,
        invoker: Optional[ToolInvoker] = None,
        history: Optional[SessionHistory] = None,
    ):
        """Initialize the request handler.

        contracts_dir defaults to the contracts bundled with the package;
        policy defaults to policies/agent.yaml plus environment overrides.
        """
        self.policy = policy or load_agent_policy()
        self.registry = ToolRegistry(contracts_dir)
        self.conductor = Conductor(self.registry, self.policy, invoker=invoker, history=history)
        logger.info(f"Agent request handler initialized with {len(self.registry)} tools")

    async def process_request_async(self, user_input: str) -> Dict[str, Any]:
        """
        Process a complete user request.

        Args:
            user_input: Natural language input from user

        Returns:
            Dict: Serialized session, or an error trace if the pipeline crashed
        """
        try:
            session = await self.conductor.think(user_input)
            return session.to_dict()
        except Exception as e:
            logger.error(f"Request processing failed: {e}")
            return self._create_error_response(user_input, str(e))

    def process_request(self, user_input: str) -> Dict[str, Any]:
        return asyncio.run(self.process_request_async(user_input))

    def _create_error_response(self, user_input: str, error: str) -> Dict[str, Any]:
        """Create error response."""
        return {
            "session_id": f"error_{datetime.now().strftime('%Y%m%d_%H%M%S')}",
            "user_query": user_input,
            "requirements": None,
            "selected_tools": [],
            "execution_plan": [],
            "tool_results": [],
            "errors": [f"Internal error: {error}"],
            "fallback_triggered": False,
            "final_decision": None,
            "reasoning": None,
            "confidence_score": None,
            "internal_error": True,
        }

    def get_system_status(self) -> Dict[str, Any]:
        """Get system status."""
        return {
            "status": "running",
            "timestamp": datetime.now().isoformat(),
            "tools_registered": len(self.registry),
            "tool_ids": self.registry.list_tools(),
            "history_size": len(self.conductor.history),
            "policy": self.policy.model_dump(),
        }


class AgentAPI:
    """Simple API wrapper for the agent."""

    def __init__(self, contracts_dir: str = None, policy: Optional[AgentPolicy] = None, invoker: Optional[ToolInvoker] = None):
        self.handler = AgentRequestHandler(contracts_dir, policy=policy, invoker=invoker)

    def ask(self, question: str) -> str:
        """
        Ask for a plan and get a one-line summary.

        Args:
            question: Natural language request

        Returns:
            str: Decision summary
        """
        return summarize(self.handler.process_request(question))

    def ask_with_trace(self, question: str) -> Dict[str, Any]:
        """
        Ask for a plan and get the full session.

        Args:
            question: Natural language request

        Returns:
            Dict: Serialized session with plan, results and decision
        """
        return self.handler.process_request(question)

    def reset(self):
        self.handler.conductor.reset()

    def history(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.handler.conductor.get_history()]

    def status(self) -> Dict[str, Any]:
        """Get system status."""
        return self.handler.get_system_status()


def summarize(trace: Dict[str, Any]) -> str:
    """One-line, human readable summary of a serialized session."""
    decision = trace.get("final_decision")
    if not decision:
        errors = trace.get("errors") or ["no decision reached"]
        return f"No decision: {errors[0]}"
    tools = ", ".join(t["id"] for t in trace.get("selected_tools", []))
    return f"{decision} ({trace.get('confidence_score', 0):.2f}% confidence) using {tools}"


# Example usage
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    api = AgentAPI()

    test_questions = [
        "Replicate data from Oracle in real-time to BigQuery, require strong consistency",
        "Ingest IoT metrics into MS HorizonDB",
        "Analyze last quarter's sales",
        "hello there",
    ]

    print("=== CloudScape Agent ===\n")
    for question in test_questions:
        print(f"Q: {question}")
        print(f"A: {api.ask(question)}")
        print("-" * 50)

    print("\n=== System Status ===")
    print(json.dumps(api.status(), indent=2))
