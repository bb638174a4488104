"""
Outcome evaluation: confidence score and ternary decision.
"""

from typing import List, Tuple

from .session import Decision, ExecutionOutcome


def evaluate(outcomes: List[ExecutionOutcome]) -> Tuple[Decision, float]:
    """Aggregate attempted calls into (decision, confidence).

    confidence is 100 * successes / attempted. A strict majority of successes
    is required for EXECUTE_WITH_PARTIAL_FALLBACK. Raises ValueError on an
    empty sequence; callers short-circuit before execution in that case.
    """
    total = len(outcomes)
    if total == 0:
        raise ValueError("Cannot evaluate an empty outcome sequence")
    successes = sum(1 for o in outcomes if o.success)
    confidence = 100 * successes / total

    if successes == total:
        decision = Decision.EXECUTE
    elif successes > total / 2:
        decision = Decision.EXECUTE_WITH_PARTIAL_FALLBACK
    else:
        decision = Decision.RETRY_OR_ESCALATE
    return decision, confidence


def reasoning_for(decision: Decision, successes: int, total: int) -> str:
    if decision == Decision.EXECUTE:
        return "All selected tools executed successfully"
    if decision == Decision.EXECUTE_WITH_PARTIAL_FALLBACK:
        return f"{successes}/{total} tools succeeded with fallback"
    return "Insufficient tool execution success rate"
