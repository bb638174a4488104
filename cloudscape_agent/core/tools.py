"""
Tool registry and descriptor management.

This module loads the static catalog of cloud-integration tool descriptors
from YAML contracts, validates them against the tool schema, and exposes the
lookup helpers the selector and execution engine rely on.
"""

import json
import yaml
import jsonschema
from typing import Dict, List, Optional, Any, Iterable, Tuple
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import logging
import os

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parents[1]

CATEGORIES = ("data_integration", "time_series", "migration", "query", "analytics", "ml")
PROTOCOLS = ("REST", "gRPC", "SDK")


class LatencyClass(str, Enum):
    """Ordered latency classes, fastest first."""
    REAL_TIME = "real-time"
    SUB_SECOND = "sub-second"
    SECONDS = "seconds"
    MINUTES = "minutes"

    @property
    def rank(self) -> int:
        return _LATENCY_ORDER.index(self)


_LATENCY_ORDER = [LatencyClass.REAL_TIME, LatencyClass.SUB_SECOND, LatencyClass.SECONDS, LatencyClass.MINUTES]


@dataclass(frozen=True)
class ToolParameter:
    """Represents one entry of a tool's parameter schema."""
    name: str
    type: str
    required: bool = False
    description: str = ""
    enum: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class ToolDescriptor:
    """Represents a tool descriptor loaded from a contract."""
    id: str
    name: str
    description: str
    category: str
    endpoint: str
    protocol: str
    latency: LatencyClass
    reliability: float
    parameters: Tuple[ToolParameter, ...] = ()
    requires_auth: bool = False
    supports: Tuple[str, ...] = ()
    max_concurrent: int = 1

    def __post_init__(self):
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown category {self.category!r} for tool {self.id}")
        if self.protocol not in PROTOCOLS:
            raise ValueError(f"Unknown protocol {self.protocol!r} for tool {self.id}")
        if not 0 <= self.reliability <= 100:
            raise ValueError(f"Reliability of tool {self.id} must be within [0, 100], got {self.reliability}")
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent of tool {self.id} must be >= 1, got {self.max_concurrent}")

    def supports_platform(self, platform: str) -> bool:
        """Case-insensitive membership test against the supports list."""
        wanted = (platform or "").strip().lower()
        return any(s.lower() == wanted for s in self.supports)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "endpoint": self.endpoint,
            "protocol": self.protocol,
            "latency": self.latency.value,
            "reliability": self.reliability,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "required": p.required,
                    "description": p.description,
                    **({"enum": list(p.enum)} if p.enum else {}),
                }
                for p in self.parameters
            ],
            "requires_auth": self.requires_auth,
            "supports": list(self.supports),
            "max_concurrent": self.max_concurrent,
        }


def load_tool_schema() -> Dict:
    """Load the tool descriptor schema."""
    schema_path = PACKAGE_DIR / "schemas" / "tool.schema.json"
    with open(schema_path, "r", encoding="utf-8") as f:
        return json.load(f)


def descriptor_from_dict(data: Dict[str, Any], schema: Optional[Dict] = None) -> ToolDescriptor:
    """Validate a raw contract mapping and build a ToolDescriptor from it."""
    if schema is not None:
        try:
            jsonschema.validate(data, schema)
        except jsonschema.ValidationError as e:
            raise ValueError(f"Invalid tool contract {data.get('id', '<unknown>')}: {e.message}")

    parameters = tuple(
        ToolParameter(
            name=p["name"],
            type=p["type"],
            required=bool(p.get("required", False)),
            description=p.get("description", ""),
            enum=tuple(p["enum"]) if p.get("enum") else None,
        )
        for p in data.get("parameters", [])
    )
    return ToolDescriptor(
        id=data["id"],
        name=data["name"],
        description=data.get("description", ""),
        category=data["category"],
        endpoint=data["endpoint"],
        protocol=data["protocol"],
        latency=LatencyClass(data["latency"]),
        reliability=float(data["reliability"]),
        parameters=parameters,
        requires_auth=bool(data.get("requires_auth", False)),
        supports=tuple(data.get("supports", [])),
        max_concurrent=int(data["max_concurrent"]),
    )


class ToolRegistry:
    """Read-only registry of tool descriptors."""

    def __init__(self, contracts_dir: str = None, fail_on_schema_error: bool = True):
        """Initialize registry with contracts directory.

        If contracts_dir is None, the contracts bundled with the package are used.
        """
        if contracts_dir is None:
            self.contracts_dir = PACKAGE_DIR / "contracts" / "tools"
        else:
            self.contracts_dir = Path(contracts_dir)
        self.tools: Dict[str, ToolDescriptor] = {}
        self.fail_on_schema_error = fail_on_schema_error
        self.schema = load_tool_schema()
        self._load_tools()

    @classmethod
    def from_dicts(cls, contracts: Iterable[Dict[str, Any]]) -> "ToolRegistry":
        """Build a registry from in-memory contract mappings (no directory scan)."""
        registry = cls.__new__(cls)
        registry.contracts_dir = None
        registry.tools = {}
        registry.fail_on_schema_error = True
        registry.schema = load_tool_schema()
        for data in contracts:
            registry._register(descriptor_from_dict(data, registry.schema), source="<memory>")
        return registry

    def _load_tools(self):
        """Load all tool contracts from directory (recursively, sorted by path)."""
        if not self.contracts_dir.exists():
            logger.warning(f"Contracts directory {self.contracts_dir} does not exist")
            return

        yaml_paths = sorted(list(self.contracts_dir.rglob("*.yaml")) + list(self.contracts_dir.rglob("*.yml")))

        for yaml_file in yaml_paths:
            try:
                with open(yaml_file, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
                if not isinstance(data, dict):
                    raise ValueError(f"Tool contract {yaml_file} is not a mapping")
                self._register(descriptor_from_dict(data, self.schema), source=str(yaml_file))
            except Exception as e:
                logger.error(f"Failed to load tool from {yaml_file}: {e}")
                if self.fail_on_schema_error and not bool(os.getenv("ALLOW_TOOL_CONTRACT_ERRORS", "")):
                    raise

    def _register(self, tool: ToolDescriptor, source: str):
        if tool.id in self.tools:
            raise ValueError(f"Duplicate tool id {tool.id} in {source}")
        self.tools[tool.id] = tool
        logger.info(f"Loaded tool: {tool.id} from {source}")

    def __len__(self) -> int:
        return len(self.tools)

    def all_tools(self) -> List[ToolDescriptor]:
        """All descriptors in registry order."""
        return list(self.tools.values())

    def list_tools(self) -> List[str]:
        """List all registered tool ids."""
        return list(self.tools.keys())

    def get_tool(self, tool_id: str) -> Optional[ToolDescriptor]:
        """Get tool descriptor by id."""
        return self.tools.get(tool_id)

    def get_tools_by_category(self, category: str) -> List[ToolDescriptor]:
        return [t for t in self.tools.values() if t.category == category]

    def get_tools_for_platform(self, platform: str) -> List[ToolDescriptor]:
        """Find tools whose supports list names the platform (case-insensitive)."""
        if not platform:
            return []
        return [t for t in self.tools.values() if t.supports_platform(platform)]

    def platforms_for_category(self, category: str) -> List[str]:
        """Lower-cased platforms supported by any tool in a category."""
        seen: List[str] = []
        for tool in self.get_tools_by_category(category):
            for platform in tool.supports:
                key = platform.lower()
                if key not in seen:
                    seen.append(key)
        return seen
