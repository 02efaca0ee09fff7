"""
Configuration source catalog.

Static description of the configuration hierarchy: which tiers exist, in
which order they win, which file names are candidates for each tier and how
specific keys are merged. Everything here is pure; no function touches the
filesystem.

Precedence order (highest to lowest):
    command_line > project_root > config_dir > tool_specific > tool_config_dir
    > package_config > global > package_defaults
"""

import fnmatch
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

from quality_tools.config.protocol import Tier

PRECEDENCE_LEVELS: tuple[Tier, ...] = tuple(Tier)

UNIFIED_CONFIG_NAMES = ("quality-tools.yaml", ".quality-tools.yaml", "quality-tools.yml")

GLOBAL_CONFIG_NAME = ".quality-tools.yaml"

# Tool name -> native configuration file names owned by that tool
TOOL_CONFIG_FILES: dict[str, tuple[str, ...]] = {
    "rector": ("rector.php",),
    "fractor": ("fractor.php",),
    "phpstan": ("phpstan.neon", "phpstan.neon.dist"),
    "php-cs-fixer": (".php-cs-fixer.dist.php", ".php-cs-fixer.php"),
    "typoscript-lint": ("typoscript-lint.yml",),
}

KNOWN_TOOLS: tuple[str, ...] = tuple(TOOL_CONFIG_FILES)

FILE_PATTERNS: dict[Tier, tuple[str, ...]] = {
    Tier.PROJECT_ROOT: UNIFIED_CONFIG_NAMES,
    Tier.CONFIG_DIR: tuple(f"config/{name}" for name in UNIFIED_CONFIG_NAMES),
    Tier.TOOL_SPECIFIC: tuple(name for names in TOOL_CONFIG_FILES.values() for name in names),
    Tier.TOOL_CONFIG_DIR: tuple(
        f"config/{name}" for names in TOOL_CONFIG_FILES.values() for name in names
    ),
    Tier.PACKAGE_CONFIG: ("packages/*/quality-tools.yaml", "packages/*/.quality-tools.yaml"),
}


class MergeStrategy(str, Enum):
    """How two values found at the same key path are combined."""

    DEEP_MERGE = "deep_merge"  # Maps recurse, lists union, scalars override
    MERGE_UNIQUE = "merge_unique"  # Lists union, maps recurse, no tool-marker handling


# Keys whose values are path lists or tool config paths
SPECIAL_KEYS: dict[str, MergeStrategy] = {
    "paths": MergeStrategy.MERGE_UNIQUE,
    "exclude": MergeStrategy.MERGE_UNIQUE,
    "scan": MergeStrategy.MERGE_UNIQUE,
    "config_file": MergeStrategy.MERGE_UNIQUE,
}


def precedence_rank(tier: Tier | str) -> int:
    """Position of a tier in the hierarchy (0 = highest priority)."""
    return Tier(tier).precedence_rank


def has_higher_precedence(first: Tier | str, second: Tier | str) -> bool:
    """Check whether the first tier wins over the second."""
    return precedence_rank(first) < precedence_rank(second)


def candidate_paths(
    project_root: str | Path, package_root: str | Path | None = None
) -> dict[Tier, list[Path]]:
    """
    List every candidate configuration path per tier.

    Package-config candidates are returned as glob patterns; expanding them is
    left to discovery since it requires filesystem access.

    Args:
        project_root: Project directory
        package_root: Directory holding the monorepo packages/ folder
                      (defaults to project_root)

    Returns:
        Mapping of tier to candidate paths, in catalog order
    """
    return {
        tier: [tier_base(tier, project_root, package_root) / pattern for pattern in patterns]
        for tier, patterns in FILE_PATTERNS.items()
    }


def tier_base(
    tier: Tier, project_root: str | Path, package_root: str | Path | None = None
) -> Path:
    """Directory a tier's file patterns are relative to."""
    if tier is Tier.PACKAGE_CONFIG and package_root is not None:
        return Path(package_root)
    return Path(project_root)


def is_glob(pattern: str) -> bool:
    """Check whether a catalog pattern (relative to its tier base) is a glob."""
    return any(char in pattern for char in "*?[")


def file_format(path: str | Path) -> str:
    """Determine the file format from its name."""
    name = Path(path).name.lower()
    if name.endswith((".yaml", ".yml")):
        return "yaml"
    if name.endswith(".php"):
        return "php"
    if name.endswith((".neon", ".neon.dist")):
        return "neon"
    return "unknown"


def tool_for_file(path: str | Path) -> str | None:
    """Return the tool that owns a configuration file, or None for unified files."""
    file_name = Path(path).name

    for tool, patterns in TOOL_CONFIG_FILES.items():
        for pattern in patterns:
            if file_name == pattern or fnmatch.fnmatch(file_name, pattern):
                return tool

    return None


def merge_strategy(key_path: Sequence[str]) -> MergeStrategy:
    """
    Determine the merge strategy for a key path.

    Args:
        key_path: Key path segments, e.g. ("quality-tools", "paths", "scan")

    Returns:
        Strategy for the last segment
    """
    if not key_path:
        return MergeStrategy.DEEP_MERGE
    return SPECIAL_KEYS.get(str(key_path[-1]), MergeStrategy.DEEP_MERGE)
