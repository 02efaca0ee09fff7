"""
Configuration merging with source tracking and conflict detection.

Sources are folded lowest priority first, so later application wins:

    package_defaults -> global -> package_config -> tool_config_dir
    -> tool_specific -> config_dir -> project_root -> command_line

Merge rules per key:
- absent in the accumulator: inserted wholesale, every leaf attributed to the source
- both lists: ordered union without duplicates (merge_unique)
- both mappings: merged recursively
- anything else: the incoming value overrides and a MergeConflict is recorded

A mapping carrying ``custom_config: true`` replaces the existing subtree
outright; that is how a tool's own configuration file wins over the unified
settings for that tool.

Example:
    >>> merger = ConfigMerger()
    >>> result = merger.merge([defaults_source, project_source])
    >>> result.source_map["quality-tools.tools.rector.enabled"]
    'project_root'
"""

import copy
import logging
from collections import Counter
from collections.abc import Iterable
from typing import Any

from quality_tools.config.catalog import MergeStrategy, merge_strategy
from quality_tools.config.protocol import ConfigSource, MergeConflict, MergeResult, Tier

logger = logging.getLogger(__name__)

ROOT_KEY = "quality-tools"


class ConfigMerger:
    """
    Precedence-ordered deep merge of configuration sources.

    A merger instance can be reused; every merge() call starts from a clean
    state.
    """

    def __init__(self) -> None:
        self._source_map: dict[str, str] = {}
        self._applied_at: dict[str, int] = {}
        self._conflicts: list[MergeConflict] = []

    def merge(
        self,
        sources: Iterable[ConfigSource],
        command_line: dict[str, Any] | None = None,
    ) -> MergeResult:
        """
        Merge sources into a single document.

        Args:
            sources: Discovered sources, in any order
            command_line: Optional override document applied last, at the highest rank

        Returns:
            MergeResult with merged data, source map, conflicts and summary
        """
        self._source_map = {}
        self._applied_at = {}
        self._conflicts = []

        ordered = sorted(sources, key=ConfigSource.sort_key)
        if command_line:
            ordered.append(
                ConfigSource(
                    tier=Tier.COMMAND_LINE,
                    file_path=None,
                    format="array",
                    data=copy.deepcopy(command_line),
                )
            )

        merged: dict[str, Any] = {}
        for index, source in enumerate(ordered):
            document = self._document_for(source)
            logger.debug("Merging %s (rank %s)", source, source.precedence_rank)
            self._merge_into(merged, document, source, index, ())

        logger.debug(
            "Merged %s sources with %s conflicts", len(ordered), len(self._conflicts)
        )

        return MergeResult(
            data=merged,
            source_map=dict(self._source_map),
            conflicts=tuple(self._conflicts),
            merge_summary=self._summary(ordered),
        )

    def _document_for(self, source: ConfigSource) -> dict[str, Any]:
        """Return the document to fold in, mounting opaque tool markers under their tool."""
        if source.is_tool_marker and ROOT_KEY not in source.data:
            return {ROOT_KEY: {"tools": {source.tool_scope: copy.deepcopy(source.data)}}}
        return copy.deepcopy(source.data)

    def _merge_into(
        self,
        target: dict[str, Any],
        incoming: dict[str, Any],
        source: ConfigSource,
        index: int,
        key_path: tuple[str, ...],
    ) -> None:
        for key, value in incoming.items():
            path = (*key_path, key)
            path_str = _path_string(path)

            if key not in target:
                target[key] = copy.deepcopy(value)
                self._attribute(value, path_str, source, index)
                continue

            existing = target[key]

            if isinstance(existing, list) and isinstance(value, list):
                target[key] = merge_unique(existing, value)
                self._attribute(target[key], path_str, source, index)
                continue

            if isinstance(existing, dict) and isinstance(value, dict):
                strategy = merge_strategy(path)
                if strategy is MergeStrategy.DEEP_MERGE and value.get("custom_config") is True:
                    self._override(target, key, value, path_str, source, index)
                    continue
                if not existing and value:
                    # An empty mapping stops being a leaf once it gains keys
                    self._source_map.pop(path_str, None)
                    self._applied_at.pop(path_str, None)
                self._merge_into(existing, value, source, index, path)
                continue

            # Scalars, or values of different shapes
            self._override(target, key, value, path_str, source, index)

    def _override(
        self,
        target: dict[str, Any],
        key: str,
        value: Any,
        path_str: str,
        source: ConfigSource,
        index: int,
    ) -> None:
        previous_value = target[key]
        previous_source = self._owner(path_str)

        self._release(path_str)
        target[key] = copy.deepcopy(value)
        self._attribute(value, path_str, source, index)

        self._conflicts.append(
            MergeConflict(
                key_path=path_str,
                previous_value=copy.deepcopy(previous_value),
                previous_source=previous_source,
                new_value=copy.deepcopy(value),
                new_source=source.name,
            )
        )
        logger.debug("%s overridden by %s (was %s)", path_str, source.name, previous_source)

    def _attribute(self, value: Any, path_str: str, source: ConfigSource, index: int) -> None:
        """Attribute a value, and every leaf beneath it, to a source."""
        if isinstance(value, dict) and value:
            for key, child in value.items():
                self._attribute(child, f"{path_str}.{key}", source, index)
            return

        self._source_map[path_str] = source.name
        self._applied_at[path_str] = index

    def _owner(self, path_str: str) -> str:
        """Source that most recently wrote the value at path_str (or beneath it)."""
        if path_str in self._source_map:
            return self._source_map[path_str]

        descendants = [key for key in self._source_map if key.startswith(f"{path_str}.")]
        if not descendants:
            return "unknown"
        latest = max(descendants, key=lambda key: self._applied_at[key])
        return self._source_map[latest]

    def _release(self, path_str: str) -> None:
        """Forget attribution for path_str and everything beneath it."""
        prefix = f"{path_str}."
        for key in [k for k in self._source_map if k == path_str or k.startswith(prefix)]:
            del self._source_map[key]
            self._applied_at.pop(key, None)

    def _summary(self, ordered: list[ConfigSource]) -> dict[str, Any]:
        conflicts_by_key = Counter(conflict.key_path for conflict in self._conflicts)
        return {
            "total_sources": len(ordered),
            "sources": [source.describe() for source in ordered],
            "total_conflicts": len(self._conflicts),
            "conflicts_by_key": dict(conflicts_by_key),
        }

    def get_conflicts(self) -> list[MergeConflict]:
        """Conflicts recorded by the most recent merge."""
        return list(self._conflicts)

    def has_conflicts(self) -> bool:
        return bool(self._conflicts)

    def get_conflicts_for_key(self, key_path: str) -> list[MergeConflict]:
        return [conflict for conflict in self._conflicts if conflict.key_path == key_path]


def merge_unique(existing: list[Any], incoming: list[Any]) -> list[Any]:
    """Ordered union of two lists, keeping the first occurrence of each element."""
    result: list[Any] = []
    for item in [*existing, *incoming]:
        if item not in result:
            result.append(copy.deepcopy(item))
    return result


def merge_documents(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Merge two plain documents with the same rules, discarding provenance.

    Args:
        base: Lower priority document
        override: Higher priority document

    Returns:
        Merged document
    """
    result = ConfigMerger().merge(
        [
            ConfigSource(tier=Tier.PACKAGE_DEFAULTS, format="array", data=base),
            ConfigSource(tier=Tier.PROJECT_ROOT, format="array", data=override),
        ]
    )
    return result.data


def _path_string(path: tuple[str, ...]) -> str:
    return ".".join(str(part) for part in path)
