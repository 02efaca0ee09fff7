"""Resolved configuration with typed accessors and provenance queries.

A ResolvedConfiguration is the immutable output of configuration
resolution. Every accessor returns a copy; nothing handed out can change the
resolved state.

Example:
    from quality_tools.config.loader import resolve

    config = resolve("/path/to/project")

    config.php_version                      # "8.3"
    config.is_tool_enabled("rector")        # True
    config.tool("phpstan").level            # 6

    config.source_of("quality-tools.tools.rector.enabled")   # "project_root"
    config.was_overridden("quality-tools.tools.rector.enabled")
"""

import copy
import functools
from collections import defaultdict
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from quality_tools.config.catalog import KNOWN_TOOLS
from quality_tools.config.merger import ROOT_KEY
from quality_tools.config.protocol import MergeConflict, MergeResult
from quality_tools.config.validator import SchemaValidator

DEFAULT_PHP_VERSION = "8.3"
DEFAULT_TYPO3_VERSION = "13.4"
DEFAULT_SCAN_PATHS = ["packages/", "config/system/"]
DEFAULT_EXCLUDE_PATHS = [
    "var/",
    "vendor/",
    "public/",
    "_assets/",
    "fileadmin/",
    "typo3/",
    "Tests/",
    "tests/",
    "typo3conf/",
]

# Tools whose php_version falls back to the project's php_version
_PHP_VERSION_TOOLS = ("rector", "fractor")


class ProjectSettings(BaseModel):
    """Project section of the resolved configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = Field(None, description="Project name")
    php_version: str = Field(DEFAULT_PHP_VERSION, description="Target PHP version")
    typo3_version: str = Field(DEFAULT_TYPO3_VERSION, description="Target TYPO3 version")


class OutputSettings(BaseModel):
    """Output section of the resolved configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    verbosity: Literal["quiet", "normal", "verbose", "debug"] = Field(
        "normal", description="Output verbosity"
    )
    colors: bool = Field(True, description="Use colored output")
    progress: bool = Field(True, description="Show progress indicators")


class PerformanceSettings(BaseModel):
    """Performance section of the resolved configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    parallel: bool = Field(True, description="Run tools in parallel where supported")
    max_processes: int = Field(4, ge=1, le=16, description="Maximum worker processes")
    cache_enabled: bool = Field(True, description="Enable tool result caches")


class ToolSettings(BaseModel):
    """Settings for one tool.

    Tool-specific keys (rector level, phpstan memory_limit, ...) are kept as
    extra attributes.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    enabled: bool = Field(True, description="Whether the tool runs")
    config_file: str | None = Field(None, description="Tool configuration file")
    paths: dict[str, list[str]] = Field(default_factory=dict, description="Tool-specific paths")
    custom_config: bool = Field(False, description="Tool owns its configuration file")
    tool_config_file: str | None = Field(None, description="Discovered tool configuration file")
    use_custom_config: bool = Field(False, description="Unified settings are ignored for the tool")


class ResolvedConfiguration:
    """Merged configuration plus the provenance of every value.

    When provenance was not tracked (see from_data), the source map and
    conflict log are empty and provenance queries answer accordingly.
    """

    def __init__(
        self,
        data: dict[str, Any],
        source_map: dict[str, str] | None = None,
        conflicts: tuple[MergeConflict, ...] | list[MergeConflict] = (),
        merge_summary: dict[str, Any] | None = None,
        project_root: str | Path | None = None,
        discovery_errors: dict[str, str] | None = None,
        tool_defaults: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self._data = copy.deepcopy(data)
        self._source_map = dict(source_map or {})
        self._conflicts = tuple(conflicts)
        self._merge_summary = copy.deepcopy(merge_summary or {})
        self._project_root = Path(project_root) if project_root is not None else None
        self._discovery_errors = dict(discovery_errors or {})
        # Per-tool schema defaults of the validator that built package_defaults
        self._tool_defaults = copy.deepcopy(
            tool_defaults if tool_defaults is not None else _bundled_tool_defaults()
        )

    @classmethod
    def from_merge(
        cls,
        result: MergeResult,
        data: dict[str, Any] | None = None,
        project_root: str | Path | None = None,
        discovery_errors: dict[str, str] | None = None,
        tool_defaults: dict[str, dict[str, Any]] | None = None,
    ) -> "ResolvedConfiguration":
        """Build from a merge result, optionally replacing its data with a validated copy."""
        return cls(
            data=result.data if data is None else data,
            source_map=result.source_map,
            conflicts=result.conflicts,
            merge_summary=result.merge_summary,
            project_root=project_root,
            discovery_errors=discovery_errors,
            tool_defaults=tool_defaults,
        )

    @classmethod
    def from_data(
        cls,
        data: dict[str, Any],
        project_root: str | Path | None = None,
        tool_defaults: dict[str, dict[str, Any]] | None = None,
    ) -> "ResolvedConfiguration":
        """Build a resolution without provenance."""
        return cls(data=data, project_root=project_root, tool_defaults=tool_defaults)

    # ------------------------------------------------------------------
    # Raw state
    # ------------------------------------------------------------------

    @property
    def data(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    @property
    def source_map(self) -> dict[str, str]:
        return dict(self._source_map)

    @property
    def conflicts(self) -> list[MergeConflict]:
        return list(self._conflicts)

    @property
    def merge_summary(self) -> dict[str, Any]:
        return copy.deepcopy(self._merge_summary)

    @property
    def project_root(self) -> Path | None:
        return self._project_root

    @property
    def discovery_errors(self) -> dict[str, str]:
        return dict(self._discovery_errors)

    @property
    def tracks_provenance(self) -> bool:
        return bool(self._source_map)

    def to_dict(self) -> dict[str, Any]:
        return self.data

    def get(self, key_path: str, default: Any = None) -> Any:
        """Look up a value by dot-separated key path, e.g. "quality-tools.output.verbosity"."""
        value: Any = self._data
        for key in key_path.split("."):
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return copy.deepcopy(value)

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    def _section(self, name: str) -> dict[str, Any]:
        section = self._data.get(ROOT_KEY, {}).get(name)
        return section if isinstance(section, dict) else {}

    @property
    def project_name(self) -> str | None:
        return self._section("project").get("name")

    @property
    def php_version(self) -> str:
        return str(self._section("project").get("php_version", DEFAULT_PHP_VERSION))

    @property
    def typo3_version(self) -> str:
        return str(self._section("project").get("typo3_version", DEFAULT_TYPO3_VERSION))

    @property
    def scan_paths(self) -> list[str]:
        return list(self._section("paths").get("scan", DEFAULT_SCAN_PATHS))

    @property
    def exclude_paths(self) -> list[str]:
        return list(self._section("paths").get("exclude", DEFAULT_EXCLUDE_PATHS))

    @property
    def verbosity(self) -> str:
        return self._section("output").get("verbosity", "normal")

    @property
    def colors_enabled(self) -> bool:
        return self._section("output").get("colors", True)

    @property
    def progress_enabled(self) -> bool:
        return self._section("output").get("progress", True)

    @property
    def parallel_enabled(self) -> bool:
        return self._section("performance").get("parallel", True)

    @property
    def max_processes(self) -> int:
        return self._section("performance").get("max_processes", 4)

    @property
    def cache_enabled(self) -> bool:
        return self._section("performance").get("cache_enabled", True)

    def _raw_tool(self, tool: str) -> dict[str, Any]:
        configured = self._section("tools").get(tool)
        return configured if isinstance(configured, dict) else {}

    def tool_paths(self, tool: str) -> dict[str, list[str]]:
        return copy.deepcopy(self._raw_tool(tool).get("paths", {}))

    def is_tool_enabled(self, tool: str) -> bool:
        return self._raw_tool(tool).get("enabled", True)

    def tool_config(self, tool: str) -> dict[str, Any]:
        """Tool settings with the tool's schema defaults filled in for absent keys."""
        defaults = copy.deepcopy(self._tool_defaults.get(tool, {"enabled": True}))
        if tool in _PHP_VERSION_TOOLS:
            defaults["php_version"] = self.php_version
        return {**defaults, **copy.deepcopy(self._raw_tool(tool))}

    def uses_custom_config(self, tool: str) -> bool:
        """Check whether a tool's own configuration file replaces the unified settings."""
        settings = self._raw_tool(tool)
        return settings.get("use_custom_config") is True or settings.get("custom_config") is True

    def custom_config_path(self, tool: str) -> str | None:
        settings = self._raw_tool(tool)
        if settings.get("use_custom_config") is True and settings.get("config_file"):
            return settings["config_file"]
        return settings.get("tool_config_file")

    def tool_config_resolved(self, tool: str) -> dict[str, Any]:
        """Settings a tool should run with.

        A tool that owns its configuration file gets only a pointer to that
        file; the unified settings are ignored for it.
        """
        if self.uses_custom_config(tool):
            return {
                "use_custom_config": True,
                "config_file": self.custom_config_path(tool),
                "unified_config_ignored": True,
            }
        return self.tool_config(tool)

    def tools_with_custom_configs(self) -> dict[str, str | None]:
        """Map of tool name to custom configuration path, for tools that have one."""
        tools = list(KNOWN_TOOLS) + [t for t in self._section("tools") if t not in KNOWN_TOOLS]
        return {tool: self.custom_config_path(tool) for tool in tools if self.uses_custom_config(tool)}

    # ------------------------------------------------------------------
    # Typed views
    # ------------------------------------------------------------------

    def project(self) -> ProjectSettings:
        return ProjectSettings.model_validate(self._section("project"))

    def output(self) -> OutputSettings:
        return OutputSettings.model_validate(self._section("output"))

    def performance(self) -> PerformanceSettings:
        return PerformanceSettings.model_validate(self._section("performance"))

    def tool(self, name: str) -> ToolSettings:
        return ToolSettings.model_validate(self.tool_config(name))

    # ------------------------------------------------------------------
    # Provenance
    # ------------------------------------------------------------------

    def source_of(self, key_path: str) -> str | None:
        """Source that supplied the final value of a leaf key path."""
        return self._source_map.get(key_path)

    def conflicts_for(self, key_path: str) -> list[MergeConflict]:
        return [conflict for conflict in self._conflicts if conflict.key_path == key_path]

    def was_overridden(self, key_path: str) -> bool:
        return any(conflict.key_path == key_path for conflict in self._conflicts)

    @property
    def has_conflicts(self) -> bool:
        return bool(self._conflicts)

    def full_chain(self, key_path: str) -> list[dict[str, Any]]:
        """Every value a key held during merge, oldest first, ending with the final value."""
        chain = [
            {
                "source": conflict.previous_source,
                "value": copy.deepcopy(conflict.previous_value),
                "overridden": True,
            }
            for conflict in self.conflicts_for(key_path)
        ]

        final_source = self.source_of(key_path)
        if final_source is not None:
            chain.append({"source": final_source, "value": self.get(key_path), "overridden": False})

        return chain

    def keys_by_source(self) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = defaultdict(list)
        for key_path, source in self._source_map.items():
            grouped[source].append(key_path)
        return {source: sorted(keys) for source, keys in grouped.items()}

    def with_sources(self) -> dict[str, Any]:
        """The configuration tree with every leaf replaced by {value, source}."""
        return _annotate(self._data, (), self._source_map)

    def export_with_metadata(self) -> dict[str, Any]:
        return {
            "configuration": self.data,
            "source_map": self.source_map,
            "conflicts": [conflict.to_dict() for conflict in self._conflicts],
            "merge_summary": self.merge_summary,
            "debug_info": {
                "project_root": str(self._project_root) if self._project_root else None,
                "has_conflicts": self.has_conflicts,
                "conflicts_count": len(self._conflicts),
                "tools_with_custom_configs": self.tools_with_custom_configs(),
                "discovery_errors": self.discovery_errors,
            },
        }

    def __repr__(self) -> str:
        return (
            f"ResolvedConfiguration(project_root={self._project_root}, "
            f"sources={self._merge_summary.get('total_sources', 0)}, "
            f"conflicts={len(self._conflicts)})"
        )


@functools.lru_cache(maxsize=1)
def _bundled_tool_defaults() -> dict[str, dict[str, Any]]:
    return SchemaValidator().build_defaults()[ROOT_KEY]["tools"]


def _annotate(value: dict[str, Any], path: tuple[str, ...], source_map: dict[str, str]) -> dict[str, Any]:
    annotated: dict[str, Any] = {}
    for key, child in value.items():
        child_path = (*path, str(key))
        if isinstance(child, dict) and child:
            annotated[key] = _annotate(child, child_path, source_map)
        else:
            annotated[key] = {
                "value": copy.deepcopy(child),
                "source": source_map.get(".".join(child_path)),
            }
    return annotated
