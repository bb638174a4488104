"""
Tool selection.

Candidates are gathered by independent rules (duplicates allowed), collapsed
to one entry per tool id, and ranked by reliability, latency fit and
concurrent capacity.
"""

import re
import logging
from typing import Callable, List, Optional, Tuple

from .requirements import RequirementSet, Goal, DataType
from .tools import ToolRegistry, ToolDescriptor, LatencyClass

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
HIGH_THROUGHPUT_RECORDS_PER_SEC = 100_000
HIGH_CONCURRENCY = 50

_METRICS_TOKEN = re.compile(r"(?<![a-z0-9])metrics(?![a-z0-9])")


def latency_score(tool: ToolDescriptor, required: Optional[LatencyClass]) -> int:
    """Score how well a tool's latency class fits the requirement (higher is better)."""
    if required is None:
        return 0
    actual_rank = tool.latency.rank
    required_rank = required.rank
    if actual_rank == required_rank:
        return 10
    if actual_rank < required_rank:
        return 10 - 2 * (required_rank - actual_rank)
    return max(0, 10 - 3 * (actual_rank - required_rank))


class ToolSelector:
    """Selects and ranks tools for a RequirementSet."""

    def __init__(self, registry: ToolRegistry, top_k: int = DEFAULT_TOP_K):
        self.registry = registry
        self.top_k = top_k
        self.gathering_rules: List[Tuple[str, Callable[[RequirementSet], List[ToolDescriptor]]]] = [
            ("data_integration", self._replication_tools),
            ("time_series", self._time_series_tools),
            ("real_time", self._real_time_tools),
            ("high_throughput", self._high_throughput_tools),
            ("analytics", self._analytics_tools),
            ("migration", self._migration_tools),
            ("source_platform", self._source_platform_tools),
        ]

    def select(self, requirements: RequirementSet) -> List[ToolDescriptor]:
        """Gather, deduplicate and rank candidate tools; at most top_k are returned."""
        candidates = self.gather_candidates(requirements)
        ranked = self.rank(self.deduplicate(candidates), requirements)
        selected = ranked[: self.top_k]
        logger.info(
            f"Selected {len(selected)} of {len(ranked)} unique candidates "
            f"({len(candidates)} gathered): {[t.id for t in selected]}"
        )
        return selected

    def gather_candidates(self, requirements: RequirementSet) -> List[ToolDescriptor]:
        candidates: List[ToolDescriptor] = []
        for name, rule in self.gathering_rules:
            found = rule(requirements)
            if found:
                logger.debug(f"Gathering rule {name} contributed {[t.id for t in found]}")
            candidates.extend(found)
        return candidates

    @staticmethod
    def deduplicate(candidates: List[ToolDescriptor]) -> List[ToolDescriptor]:
        """Collapse to one entry per id, keeping the first occurrence."""
        seen = set()
        unique = []
        for tool in candidates:
            if tool.id in seen:
                continue
            seen.add(tool.id)
            unique.append(tool)
        return unique

    @staticmethod
    def rank(tools: List[ToolDescriptor], requirements: RequirementSet) -> List[ToolDescriptor]:
        """Sort by reliability > latency fit > max_concurrent, all descending (stable)."""
        required = requirements.latency_requirement

        def tool_score(tool: ToolDescriptor) -> Tuple[float, int, int]:
            return (tool.reliability, latency_score(tool, required), tool.max_concurrent)

        return sorted(tools, key=tool_score, reverse=True)

    # Gathering rules

    def _replication_tools(self, req: RequirementSet) -> List[ToolDescriptor]:
        if req.goal != Goal.DATA_REPLICATION:
            return []
        capable = self.registry.platforms_for_category("data_integration")
        endpoints = [s.lower() for s in (req.source_system, req.target_system) if s]
        if not any(e in capable for e in endpoints):
            return []
        return self.registry.get_tools_by_category("data_integration")

    def _time_series_tools(self, req: RequirementSet) -> List[ToolDescriptor]:
        mentions_metrics = bool(_METRICS_TOKEN.search((req.user_query or "").lower()))
        if req.data_type == DataType.TIME_SERIES or mentions_metrics:
            return self.registry.get_tools_by_category("time_series")
        return []

    def _real_time_tools(self, req: RequirementSet) -> List[ToolDescriptor]:
        if req.latency_requirement != LatencyClass.REAL_TIME:
            return []
        return [
            t for t in self.registry.all_tools()
            if t.latency in (LatencyClass.REAL_TIME, LatencyClass.SUB_SECOND)
        ]

    def _high_throughput_tools(self, req: RequirementSet) -> List[ToolDescriptor]:
        if req.throughput_requirement is None or req.throughput_requirement <= HIGH_THROUGHPUT_RECORDS_PER_SEC:
            return []
        return [t for t in self.registry.all_tools() if t.max_concurrent >= HIGH_CONCURRENCY]

    def _analytics_tools(self, req: RequirementSet) -> List[ToolDescriptor]:
        if req.goal != Goal.ANALYTICS:
            return []
        return self.registry.get_tools_by_category("query") + self.registry.get_tools_by_category("analytics")

    def _migration_tools(self, req: RequirementSet) -> List[ToolDescriptor]:
        if req.goal != Goal.DATA_MIGRATION:
            return []
        return self.registry.get_tools_by_category("migration")

    def _source_platform_tools(self, req: RequirementSet) -> List[ToolDescriptor]:
        if not req.source_system:
            return []
        return self.registry.get_tools_for_platform(req.source_system)
