"""Hierarchical configuration resolution.

This module discovers configuration sources, merges them by precedence and
validates the result:

Priority order (highest to lowest):
1. command_line      - overrides passed by the caller
2. project_root      - quality-tools.yaml in the project root
3. config_dir        - config/quality-tools.yaml
4. tool_specific     - rector.php, phpstan.neon, ... in the project root
5. tool_config_dir   - the same tool files under config/
6. package_config    - packages/*/quality-tools.yaml
7. global            - ~/.quality-tools.yaml
8. package_defaults  - schema defaults

Example:
    from quality_tools.config import resolve, resolve_for_tool

    config = resolve("/path/to/project")
    config.max_processes
    config.source_of("quality-tools.performance.max_processes")

    phpstan = resolve_for_tool("/path/to/project", "phpstan")
    phpstan.tool_config_resolved("phpstan")
"""

from quality_tools.config.catalog import (
    FILE_PATTERNS,
    KNOWN_TOOLS,
    PRECEDENCE_LEVELS,
    SPECIAL_KEYS,
    TOOL_CONFIG_FILES,
    MergeStrategy,
    candidate_paths,
    has_higher_precedence,
    precedence_rank,
    tier_base,
    tool_for_file,
)
from quality_tools.config.loader import (
    build_overrides,
    describe_sources,
    discovery_errors,
    parse_assignment,
    preview_merge,
    resolve,
    resolve_for_tool,
)
from quality_tools.config.merger import ConfigMerger, merge_documents, merge_unique
from quality_tools.config.protocol import ConfigSource, MergeConflict, MergeResult, Tier
from quality_tools.config.resolved import (
    OutputSettings,
    PerformanceSettings,
    ProjectSettings,
    ResolvedConfiguration,
    ToolSettings,
)
from quality_tools.config.sources import SourceDiscovery
from quality_tools.config.validator import SchemaValidator, ValidationResult, validate_config

__all__ = [
    # Catalog
    "FILE_PATTERNS",
    "KNOWN_TOOLS",
    "PRECEDENCE_LEVELS",
    "SPECIAL_KEYS",
    "TOOL_CONFIG_FILES",
    # Merger
    "ConfigMerger",
    # Protocol
    "ConfigSource",
    "MergeConflict",
    "MergeResult",
    "MergeStrategy",
    "OutputSettings",
    "PerformanceSettings",
    "ProjectSettings",
    # Resolved configuration
    "ResolvedConfiguration",
    # Validator
    "SchemaValidator",
    # Discovery
    "SourceDiscovery",
    "Tier",
    "ToolSettings",
    "ValidationResult",
    "build_overrides",
    "candidate_paths",
    "describe_sources",
    "discovery_errors",
    "has_higher_precedence",
    "merge_documents",
    "merge_unique",
    "parse_assignment",
    "precedence_rank",
    "tier_base",
    # Loader
    "preview_merge",
    "resolve",
    "resolve_for_tool",
    "tool_for_file",
    "validate_config",
]
