"""
Execution planning.

The plan is a canned, human-readable step list assembled from fixed blocks.
Each block is keyed by one requirement condition; blocks are additive and
always emitted in table order.
"""

from typing import Callable, List, Tuple

from .requirements import RequirementSet, Goal, DataType

PlanBlock = Tuple[str, Callable[[RequirementSet], bool], Tuple[str, ...]]

PLAN_BLOCKS: Tuple[PlanBlock, ...] = (
    (
        "replication",
        lambda req: req.goal == Goal.DATA_REPLICATION,
        (
            "1. Enable CDC on source with OCI GoldenGate Capture",
            "2. Configure delivery to target system",
            "3. Monitor replication lag",
            "4. Handle schema changes automatically",
        ),
    ),
    (
        "time_series",
        lambda req: req.data_type == DataType.TIME_SERIES,
        (
            "1. Ingest data via MS HorizonDB Ingest",
            "2. Apply compression and retention policies",
            "3. Set up downsampling rules",
            "4. Index for query optimization",
        ),
    ),
    (
        "analytics",
        lambda req: req.goal == Goal.ANALYTICS,
        (
            "1. Route to appropriate warehouse (BigQuery/Redshift/Snowflake)",
            "2. Optimize query plan",
            "3. Execute with caching if applicable",
            "4. Return aggregated results",
        ),
    ),
)


class ExecutionPlanner:
    """Builds the textual execution plan for a RequirementSet."""

    def __init__(self, blocks: Tuple[PlanBlock, ...] = PLAN_BLOCKS):
        self.blocks = blocks

    def plan(self, requirements: RequirementSet) -> List[str]:
        steps: List[str] = []
        for _name, condition, block_steps in self.blocks:
            if condition(requirements):
                steps.extend(block_steps)
        return steps

    def matched_blocks(self, requirements: RequirementSet) -> List[str]:
        """Names of the blocks a RequirementSet triggers."""
        return [name for name, condition, _ in self.blocks if condition(requirements)]
