"""Configuration source types.

This module defines the records that flow through configuration resolution:
precedence tiers, discovered sources, merge conflicts and merge results.

Example:
    from quality_tools.config.protocol import ConfigSource, Tier

    source = ConfigSource(
        tier=Tier.PROJECT_ROOT,
        file_path=Path("/project/quality-tools.yaml"),
        format="yaml",
        data={"quality-tools": {"output": {"verbosity": "verbose"}}},
    )
    source.precedence_rank  # 1
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


class Tier(str, Enum):
    """Named precedence level, declared from highest to lowest priority.

    Declaration order is the precedence order and never changes at runtime.
    """

    COMMAND_LINE = "command_line"
    PROJECT_ROOT = "project_root"
    CONFIG_DIR = "config_dir"
    TOOL_SPECIFIC = "tool_specific"
    TOOL_CONFIG_DIR = "tool_config_dir"
    PACKAGE_CONFIG = "package_config"
    GLOBAL = "global"
    PACKAGE_DEFAULTS = "package_defaults"

    @property
    def precedence_rank(self) -> int:
        """Position in the hierarchy (0 = highest priority)."""
        return _TIER_ORDER.index(self)

    @property
    def is_tool_scoped(self) -> bool:
        return self in (Tier.TOOL_SPECIFIC, Tier.TOOL_CONFIG_DIR)


_TIER_ORDER: tuple[Tier, ...] = tuple(Tier)


@dataclass(frozen=True)
class ConfigSource:
    """One discovered or synthesised configuration input.

    Attributes:
        tier: Precedence tier the source belongs to
        file_path: File the data came from (None for synthetic sources)
        format: File format ("yaml", "php", "neon", "array", "defaults", "unknown")
        tool_scope: Owning tool name, or None when the source applies to all tools
        data: Parsed document
        observed_at: File modification time, or creation time for synthetic sources
    """

    tier: Tier
    file_path: Path | None = None
    format: str = "yaml"
    tool_scope: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def name(self) -> str:
        """Identifier used in source maps and conflict records."""
        return self.tier.value

    @property
    def precedence_rank(self) -> int:
        return self.tier.precedence_rank

    @property
    def is_tool_marker(self) -> bool:
        """True when the source only signals that a tool owns its configuration."""
        return self.tool_scope is not None and self.data.get("custom_config") is True

    def sort_key(self) -> tuple[int, str, str]:
        """Ordering key: lowest priority first, ties broken by path and tool."""
        return (
            -self.precedence_rank,
            str(self.file_path) if self.file_path is not None else "",
            self.tool_scope or "",
        )

    def describe(self) -> dict[str, Any]:
        """Metadata used in merge summaries and diagnostics."""
        return {
            "name": self.name,
            "file_path": str(self.file_path) if self.file_path is not None else None,
            "format": self.format,
            "tool_scope": self.tool_scope,
            "precedence_rank": self.precedence_rank,
        }

    def __repr__(self) -> str:
        """String representation of config source."""
        return (
            f"ConfigSource(tier={self.tier.value}, file_path={self.file_path}, "
            f"tool_scope={self.tool_scope})"
        )


@dataclass(frozen=True)
class MergeConflict:
    """A value that was overwritten by a different source during merge.

    Attributes:
        key_path: Dot-separated path of the overwritten key
        previous_value: Value held before the overwrite
        previous_source: Source that held it
        new_value: Value that replaced it
        new_source: Source that replaced it
        resolution: Always "override"
        winner: Always equal to new_source
    """

    key_path: str
    previous_value: Any
    previous_source: str
    new_value: Any
    new_source: str
    resolution: str = "override"

    @property
    def winner(self) -> str:
        return self.new_source

    def to_dict(self) -> dict[str, Any]:
        return {
            "key_path": self.key_path,
            "previous_value": self.previous_value,
            "previous_source": self.previous_source,
            "new_value": self.new_value,
            "new_source": self.new_source,
            "resolution": self.resolution,
            "winner": self.winner,
        }


@dataclass(frozen=True)
class MergeResult:
    """Output of ConfigMerger.merge().

    Attributes:
        data: Merged document
        source_map: Dot-separated leaf key path -> source name
        conflicts: Overrides recorded during the fold, in application order
        merge_summary: Diagnostic metadata about the merged sources
    """

    data: dict[str, Any]
    source_map: dict[str, str]
    conflicts: tuple[MergeConflict, ...]
    merge_summary: dict[str, Any]
