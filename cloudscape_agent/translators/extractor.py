"""
Requirement extraction from free text.

The extractor is a flat, ordered rule table rather than a language model:
each rule names the field it sets, the value it assigns and the keywords or
fixed phrases that trigger it. Keywords match whole tokens only, so "remove"
never triggers the "move" rule and "analyzed" never triggers "analyze".
"""

import re
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Pattern, Tuple

from ..core.requirements import RequirementSet, Goal, DataType, Consistency
from ..core.tools import LatencyClass

logger = logging.getLogger(__name__)

# Pass order. Rules are evaluated field by field in this order.
FIELD_ORDER = (
    "goal",
    "data_type",
    "source_system",
    "target_system",
    "latency_requirement",
    "consistency_requirement",
)


@dataclass(frozen=True)
class ExtractionRule:
    """One (keyword-set -> field assignment) entry of the rule table."""
    name: str
    field: str
    value: Any
    keywords: Tuple[str, ...]

    def pattern(self) -> Pattern:
        return _keyword_pattern(self.keywords)

    def matches(self, lowered_text: str) -> bool:
        return self.pattern().search(lowered_text) is not None


def _keyword_pattern(keywords: Tuple[str, ...]) -> Pattern:
    alternatives = []
    for kw in keywords:
        parts = [re.escape(p) for p in kw.lower().split()]
        alternatives.append(r"\s+".join(parts))
    return re.compile(r"(?<![a-z0-9])(?:" + "|".join(alternatives) + r")(?![a-z0-9])")


# Within one field a later rule overwrites an earlier match.
RULES: Tuple[ExtractionRule, ...] = (
    # goal
    ExtractionRule("goal.replication", "goal", Goal.DATA_REPLICATION,
                   ("replicate", "replication", "replicating", "sync", "syncing",
                    "synchronize", "synchronise", "synchronization")),
    ExtractionRule("goal.migration", "goal", Goal.DATA_MIGRATION, ("migrate", "migration", "move", "moving")),
    ExtractionRule("goal.analytics", "goal", Goal.ANALYTICS, ("query", "analyze", "analyse")),
    ExtractionRule("goal.ingestion", "goal", Goal.DATA_INGESTION,
                   ("ingest", "ingestion", "ingesting", "collect", "collecting")),
    # data type
    ExtractionRule("data_type.relational", "data_type", DataType.RELATIONAL,
                   ("transaction", "transactions", "transactional", "relational")),
    ExtractionRule("data_type.event_stream", "data_type", DataType.EVENT_STREAM,
                   ("event", "events", "stream", "streams", "streaming")),
    ExtractionRule("data_type.time_series", "data_type", DataType.TIME_SERIES,
                   ("metric", "metrics", "time-series", "timeseries", "time series")),
    # source system
    ExtractionRule("source.oracle", "source_system", "oracle", ("from oracle",)),
    ExtractionRule("source.mysql", "source_system", "mysql", ("from mysql",)),
    ExtractionRule("source.postgresql", "source_system", "postgresql", ("from postgresql", "from postgres")),
    ExtractionRule("source.sql_server", "source_system", "sql server", ("from sql server",)),
    # target system
    ExtractionRule("target.horizondb", "target_system", "horizondb", ("to horizondb", "to ms horizondb")),
    ExtractionRule("target.bigquery", "target_system", "bigquery", ("to bigquery",)),
    ExtractionRule("target.kafka", "target_system", "kafka", ("to kafka",)),
    ExtractionRule("target.snowflake", "target_system", "snowflake", ("to snowflake",)),
    ExtractionRule("target.redshift", "target_system", "redshift", ("to redshift",)),
    # latency
    ExtractionRule("latency.minutes", "latency_requirement", LatencyClass.MINUTES, ("batch", "nightly")),
    ExtractionRule("latency.sub_second", "latency_requirement", LatencyClass.SUB_SECOND,
                   ("low latency", "fast", "sub-second")),
    ExtractionRule("latency.real_time", "latency_requirement", LatencyClass.REAL_TIME, ("real-time", "realtime")),
    # consistency
    ExtractionRule("consistency.strong", "consistency_requirement", Consistency.STRONG,
                   ("consistent", "strong consistency")),
    ExtractionRule("consistency.eventual", "consistency_requirement", Consistency.EVENTUAL,
                   ("eventual consistency", "eventually consistent")),
    ExtractionRule("consistency.causal", "consistency_requirement", Consistency.CAUSAL,
                   ("causal consistency", "causally consistent")),
)

_THROUGHPUT_RE = re.compile(
    r"(?<![\w.,])(\d[\d,]*(?:\.\d+)?)\s*(k|m|thousand|million)?\s+"
    r"(?:records|rows|events|(?:data\s+)?points|messages)\s*(?:per\s+|/\s*)"
    r"(second|sec|s|minute|min|hour|hr)(?![a-z])"
)
_MULTIPLIERS = {None: 1, "k": 1_000, "thousand": 1_000, "m": 1_000_000, "million": 1_000_000}
_PER_SECOND = {"second": 1, "sec": 1, "s": 1, "minute": 60, "min": 60, "hour": 3600, "hr": 3600}


def parse_throughput(lowered_text: str) -> Optional[float]:
    """Return the last records-per-second figure mentioned, if any."""
    value = None
    for m in _THROUGHPUT_RE.finditer(lowered_text):
        number = float(m.group(1).replace(",", ""))
        value = number * _MULTIPLIERS[m.group(2)] / _PER_SECOND[m.group(3)]
    return value


class RequirementExtractor:
    """Turns a free-text request into a RequirementSet."""

    def __init__(self, rules: Tuple[ExtractionRule, ...] = RULES):
        self.rules = tuple(sorted(rules, key=lambda r: FIELD_ORDER.index(r.field)))
        self._compiled = [(rule, rule.pattern()) for rule in self.rules]

    def extract(self, text: str) -> RequirementSet:
        """
        Extract requirements from text.

        Never raises: text matching no rule (or non-string input) yields an
        all-unset RequirementSet.
        """
        requirements = RequirementSet(user_query=text if isinstance(text, str) else "")
        lowered = requirements.user_query.lower()
        if not lowered.strip():
            return requirements

        for rule, pattern in self._compiled:
            if pattern.search(lowered):
                setattr(requirements, rule.field, rule.value)
                requirements.matched_rules.append(rule.name)

        throughput = parse_throughput(lowered)
        if throughput is not None:
            requirements.throughput_requirement = throughput
            requirements.matched_rules.append("throughput")

        if requirements.is_empty():
            logger.info("No extraction rule matched the request")
        else:
            logger.debug(f"Extracted requirements: {requirements.to_dict()}")
        return requirements

    def rules_for(self, field_name: str) -> List[ExtractionRule]:
        """Rules targeting one field, in evaluation order."""
        return [r for r in self.rules if r.field == field_name]
