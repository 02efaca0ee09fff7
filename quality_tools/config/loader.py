"""
Configuration Loader

Entry points for collaborators that need a resolved configuration:
- resolve(): discover, merge and validate every source for a project
- resolve_for_tool(): the same, restricted to one tool's view
- preview_merge(): the raw merge result without final validation
- discovery_errors() / describe_sources(): diagnostics

Nothing is cached between calls; each call reads the filesystem afresh.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any

from quality_tools.config.merger import ROOT_KEY, ConfigMerger, merge_documents
from quality_tools.config.protocol import MergeResult
from quality_tools.config.resolved import ResolvedConfiguration
from quality_tools.config.sources import SourceDiscovery
from quality_tools.core.config.env_expansion import EnvironmentContext
from quality_tools.framework.errors import InvalidOverrideError

logger = logging.getLogger(__name__)


def resolve(
    project_root: str | Path,
    command_line_overrides: dict[str, Any] | None = None,
    *,
    environment: EnvironmentContext | None = None,
    package_root: str | Path | None = None,
    track_provenance: bool = True,
) -> ResolvedConfiguration:
    """
    Resolve the effective configuration for a project.

    Args:
        project_root: Project directory
        command_line_overrides: Document applied above every file source
        environment: Environment snapshot (defaults to the process environment)
        package_root: Directory holding packages/ (defaults to project_root)
        track_provenance: If False, the result carries no source map or conflicts

    Returns:
        ResolvedConfiguration

    Raises:
        ConfigValidationError: If the merged configuration fails validation

    Examples:
        >>> config = resolve("/path/to/project")
        >>> config = resolve("/path/to/project", {"quality-tools": {"output": {"verbosity": "debug"}}})
    """
    return _resolve(
        project_root,
        command_line_overrides,
        environment=environment,
        package_root=package_root,
        tool=None,
        track_provenance=track_provenance,
    )


def resolve_for_tool(
    project_root: str | Path,
    tool: str,
    command_line_overrides: dict[str, Any] | None = None,
    *,
    environment: EnvironmentContext | None = None,
    package_root: str | Path | None = None,
) -> ResolvedConfiguration:
    """
    Resolve the configuration one tool runs with.

    Only general sources and the tool's own files are considered. When the
    tool has its own configuration file, tools.<tool>.config_file and
    use_custom_config are stamped into the command-line layer so the file
    wins over any unified setting.
    """
    return _resolve(
        project_root,
        command_line_overrides,
        environment=environment,
        package_root=package_root,
        tool=tool,
        track_provenance=True,
    )


def preview_merge(
    project_root: str | Path,
    command_line_overrides: dict[str, Any] | None = None,
    *,
    environment: EnvironmentContext | None = None,
    package_root: str | Path | None = None,
    tool: str | None = None,
) -> MergeResult:
    """Merge every discovered source without validating the result."""
    discovery = SourceDiscovery(environment=environment)
    sources, _ = discovery.discover(project_root, package_root, tool=tool)
    overrides = _tool_overrides(discovery, tool, command_line_overrides)
    return ConfigMerger().merge(sources, overrides)


def discovery_errors(
    project_root: str | Path,
    *,
    environment: EnvironmentContext | None = None,
    package_root: str | Path | None = None,
    tool: str | None = None,
) -> dict[str, str]:
    """Files that were found but skipped, mapped to the reason.

    With tool given, other tools' files are not considered.
    """
    discovery = SourceDiscovery(environment=environment)
    _, errors = discovery.discover(project_root, package_root, tool=tool)
    return errors


def describe_sources(
    project_root: str | Path,
    *,
    environment: EnvironmentContext | None = None,
    package_root: str | Path | None = None,
) -> list[dict[str, Any]]:
    """
    Describe every configuration file found for a project.

    Returns:
        One entry per loaded source, highest priority first, followed by one
        entry per skipped file
    """
    sources, errors = SourceDiscovery(environment=environment).discover(project_root, package_root)

    described = []
    for source in sorted(sources, key=lambda s: s.sort_key(), reverse=True):
        entry = source.describe()
        path = source.file_path
        entry["exists"] = path is None or path.exists()
        entry["readable"] = path is None or os.access(path, os.R_OK)
        entry["loaded"] = True
        entry["observed_at"] = source.observed_at.isoformat()
        described.append(entry)

    for path, message in sorted(errors.items()):
        described.append(
            {
                "file_path": path,
                "exists": Path(path).exists(),
                "readable": os.access(path, os.R_OK),
                "loaded": False,
                "error": message,
            }
        )

    return described


def _resolve(
    project_root: str | Path,
    command_line_overrides: dict[str, Any] | None,
    *,
    environment: EnvironmentContext | None,
    package_root: str | Path | None,
    tool: str | None,
    track_provenance: bool,
) -> ResolvedConfiguration:
    discovery = SourceDiscovery(environment=environment)
    sources, errors = discovery.discover(project_root, package_root, tool=tool)
    overrides = _tool_overrides(discovery, tool, command_line_overrides)

    result = ConfigMerger().merge(sources, overrides)

    # Fail fast; a partially valid configuration is never returned
    data = discovery.validator.validate_strict(result.data)

    logger.info(
        "Resolved configuration for %s from %s sources (%s conflicts, %s skipped files)",
        project_root,
        result.merge_summary["total_sources"],
        len(result.conflicts),
        len(errors),
    )

    tool_defaults = discovery.validator.build_defaults()[ROOT_KEY].get("tools", {})

    if not track_provenance:
        return ResolvedConfiguration.from_data(
            data, project_root=project_root, tool_defaults=tool_defaults
        )

    return ResolvedConfiguration.from_merge(
        result,
        data=data,
        project_root=project_root,
        discovery_errors=errors,
        tool_defaults=tool_defaults,
    )


def _tool_overrides(
    discovery: SourceDiscovery, tool: str | None, command_line_overrides: dict[str, Any] | None
) -> dict[str, Any]:
    overrides = copy.deepcopy(command_line_overrides or {})
    if tool is None or not discovery.has_override(tool):
        return overrides

    config_path = discovery.override_path(tool)
    logger.debug("Tool %s uses its own configuration file %s", tool, config_path)

    stamp = {ROOT_KEY: {"tools": {tool: {"config_file": str(config_path), "use_custom_config": True}}}}
    return merge_documents(overrides, stamp)


# ============================================================================
# Command-line override parsing
# ============================================================================


def parse_assignment(assignment: str) -> dict[str, Any]:
    """
    Turn "key.path=value" into an override document.

    The leading "quality-tools." segment may be omitted.

    Raises:
        InvalidOverrideError: If the assignment has no "=" or no key path

    Examples:
        >>> parse_assignment("tools.phpstan.level=8")
        {'quality-tools': {'tools': {'phpstan': {'level': 8}}}}
    """
    key_path, sep, raw_value = assignment.partition("=")
    key_path = key_path.strip()
    if not sep or not key_path:
        raise InvalidOverrideError(assignment)

    keys = key_path.split(".")
    if keys[0] != ROOT_KEY:
        keys.insert(0, ROOT_KEY)

    document: dict[str, Any] = {}
    current = document
    for key in keys[:-1]:
        current = current.setdefault(key, {})
    current[keys[-1]] = _parse_value(raw_value.strip())

    return document


def build_overrides(assignments: list[str]) -> dict[str, Any]:
    """Combine several "key.path=value" assignments; later ones win."""
    overrides: dict[str, Any] = {}
    for assignment in assignments:
        overrides = merge_documents(overrides, parse_assignment(assignment))
    return overrides


def _parse_value(value: str) -> Any:
    """Parse an override value to int, float, bool or str."""
    # Try to parse as int
    try:
        return int(value)
    except ValueError:
        pass

    # Try to parse as float
    try:
        return float(value)
    except ValueError:
        pass

    # Try to parse as bool
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    # Return as string
    return value
