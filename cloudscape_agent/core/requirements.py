"""
Requirement model.

A RequirementSet is the structured form of a free-text request: what the user
wants to achieve, the shape of the data, the systems involved and the
service-level constraints. It is built fresh for each request by the
extractor and treated as read-only afterwards.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any

from .tools import LatencyClass


class Goal(str, Enum):
    UNSET = "unset"
    DATA_REPLICATION = "data_replication"
    DATA_MIGRATION = "data_migration"
    ANALYTICS = "analytics"
    DATA_INGESTION = "data_ingestion"


class DataType(str, Enum):
    UNSET = "unset"
    RELATIONAL = "relational"
    TIME_SERIES = "time_series"
    EVENT_STREAM = "event_stream"
    MIXED = "mixed"


class Consistency(str, Enum):
    EVENTUAL = "eventual"
    STRONG = "strong"
    CAUSAL = "causal"


@dataclass
class RequirementSet:
    """Represents the requirements extracted from one request."""
    goal: Goal = Goal.UNSET
    data_type: DataType = DataType.UNSET
    source_system: Optional[str] = None
    target_system: Optional[str] = None
    latency_requirement: Optional[LatencyClass] = None
    consistency_requirement: Optional[Consistency] = None
    throughput_requirement: Optional[float] = None
    user_query: str = ""
    matched_rules: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.throughput_requirement is not None and self.throughput_requirement < 0:
            raise ValueError("throughput_requirement must be non-negative")

    def is_empty(self) -> bool:
        """True when no requirement field was set."""
        return (
            self.goal == Goal.UNSET
            and self.data_type == DataType.UNSET
            and self.source_system is None
            and self.target_system is None
            and self.latency_requirement is None
            and self.consistency_requirement is None
            and self.throughput_requirement is None
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal": self.goal.value,
            "data_type": self.data_type.value,
            "source_system": self.source_system,
            "target_system": self.target_system,
            "latency_requirement": self.latency_requirement.value if self.latency_requirement else None,
            "consistency_requirement": self.consistency_requirement.value if self.consistency_requirement else None,
            "throughput_requirement": self.throughput_requirement,
            "matched_rules": list(self.matched_rules),
        }
