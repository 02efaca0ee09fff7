"""Configuration source discovery.

This module finds the configuration files that exist for a project and turns
each into a ConfigSource:

- package defaults: synthetic, built from the schema's declared defaults
- global: ~/.quality-tools.yaml, when a home directory is known
- project files: every catalog candidate that exists on disk

Each YAML file is read, interpolated (allowlisted ${VAR} references only),
parsed and validated. Failures are recorded per path and the file is
skipped; one broken file never stops discovery of the others.

Tool-owned files in a format we do not parse (rector.php, phpstan.neon, ...)
become opaque markers: ``{"tool_config_file": <path>, "custom_config": True}``.

Example:
    discovery = SourceDiscovery(environment=EnvironmentContext.from_os())
    sources, errors = discovery.discover("/path/to/project")

    for path, message in errors.items():
        print(f"{path}: {message}")

    if discovery.has_override("rector"):
        print(discovery.override_path("rector"))
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from quality_tools.config.catalog import (
    FILE_PATTERNS,
    GLOBAL_CONFIG_NAME,
    file_format,
    is_glob,
    tier_base,
    tool_for_file,
)
from quality_tools.config.merger import ROOT_KEY
from quality_tools.config.protocol import ConfigSource, Tier
from quality_tools.config.validator import SchemaValidator
from quality_tools.core.config.env_expansion import EnvironmentContext, EnvironmentInterpolator
from quality_tools.framework.errors import (
    ConfigLoadError,
    ConfigurationFileNotFoundError,
    ConfigurationFileNotReadableError,
    ErrorCode,
    QualityToolsError,
)

logger = logging.getLogger(__name__)

# Formats owned by external tools that are never parsed here
OPAQUE_FORMATS = ("php", "neon")


class SourceDiscovery:
    """Discovers and loads configuration sources for a project.

    The discovery keeps the sources of its most recent run so that callers can
    ask whether a tool ships its own configuration file.
    """

    def __init__(
        self,
        environment: EnvironmentContext | None = None,
        validator: SchemaValidator | None = None,
        interpolator: EnvironmentInterpolator | None = None,
    ) -> None:
        """Initialize source discovery.

        Args:
            environment: Environment snapshot (defaults to the process environment)
            validator: Schema validator used for per-file checks and defaults
            interpolator: Interpolator for ${VAR} references (built from environment)
        """
        self.environment = environment if environment is not None else EnvironmentContext.from_os()
        self.validator = validator or SchemaValidator.from_environment(self.environment)
        self.interpolator = interpolator or EnvironmentInterpolator(self.environment)

        self._sources: list[ConfigSource] = []
        self._errors: dict[str, str] = {}

    def discover(
        self,
        project_root: str | Path,
        package_root: str | Path | None = None,
        tool: str | None = None,
    ) -> tuple[list[ConfigSource], dict[str, str]]:
        """Discover every configuration source for a project.

        Args:
            project_root: Project directory
            package_root: Directory holding packages/ (defaults to project_root)
            tool: When given, skip files owned by other tools

        Returns:
            Tuple of (sources, errors). Sources are unsorted; errors map file
            paths to the reason they were skipped.
        """
        sources: list[ConfigSource] = [self._defaults_source()]
        errors: dict[str, str] = {}

        global_source = self._discover_global(errors)
        if global_source is not None:
            sources.append(global_source)

        for tier, patterns in FILE_PATTERNS.items():
            base = tier_base(tier, project_root, package_root)
            for path in _existing_files(base, patterns):
                owner = tool_for_file(path) if tier.is_tool_scoped else None
                if tool is not None and owner not in (None, tool):
                    continue

                try:
                    sources.append(self.load_file(path, tier, owner))
                except QualityToolsError as e:
                    errors[str(path)] = e.message
                    logger.warning("Skipping configuration file %s: %s", path, e.message)

        self._sources = list(sources)
        self._errors = dict(errors)

        logger.debug("Discovered %s sources (%s skipped) in %s", len(sources), len(errors), project_root)
        return sources, errors

    def load_file(self, path: str | Path, tier: Tier, tool: str | None = None) -> ConfigSource:
        """Load one configuration file into a ConfigSource.

        Args:
            path: File to load
            tier: Tier the file belongs to
            tool: Owning tool for tool-scoped files

        Returns:
            ConfigSource for the file

        Raises:
            QualityToolsError: If the file cannot be read, interpolated, parsed or validated
        """
        path = Path(path)
        fmt = file_format(path)

        if tool is not None and fmt in OPAQUE_FORMATS:
            return self._marker_source(path, tier, tool, fmt)

        if fmt != "yaml":
            msg = f"Unsupported configuration file type: {fmt}"
            raise ConfigLoadError(msg, path)

        data = self.load_yaml(path)

        # Native tool YAML (e.g. typoscript-lint.yml) is owned by the tool itself
        if tool is not None and ROOT_KEY not in data:
            return self._marker_source(path, tier, tool, fmt)

        result = self.validator.validate(data)
        if not result.valid:
            msg = f"Invalid configuration:\n{result.format_errors()}"
            raise ConfigLoadError(msg, path)

        return ConfigSource(
            tier=tier,
            file_path=path,
            format=fmt,
            tool_scope=tool,
            data=result.document,
            observed_at=_modified_at(path),
        )

    def load_yaml(self, path: str | Path) -> dict[str, Any]:
        """Read, interpolate and parse a YAML configuration file.

        Raises:
            ConfigurationFileNotFoundError: File does not exist
            ConfigurationFileNotReadableError: File cannot be read
            EnvExpansionError: A ${VAR} reference was rejected
            ConfigLoadError: File is not valid YAML or not a mapping
        """
        path = Path(path)
        content = _read_text(path)

        # Interpolation errors propagate; the raw text is never used as a fallback
        content = self.interpolator.interpolate(content)

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            msg = f"Failed to parse YAML file {path}: {e}"
            raise ConfigLoadError(msg, path, code=ErrorCode.PARSE_ERROR, cause=e) from e

        if data is None:
            msg = f"Configuration file is empty: {path}"
            raise ConfigLoadError(msg, path)

        if not isinstance(data, dict):
            msg = f"Configuration file must contain a YAML mapping, got {type(data).__name__}"
            raise ConfigLoadError(msg, path)

        logger.debug("Loaded YAML data from %s", path)
        return data

    def has_override(self, tool: str) -> bool:
        """Check whether the last discovery found a file that replaces the tool's settings.

        Tool YAML carrying a quality-tools root is merged as unified settings
        and does not count.
        """
        return any(self._tool_sources(tool))

    def override_path(self, tool: str) -> Path | None:
        """Highest priority file owned by the tool in the last discovery, if any."""
        owned = self._tool_sources(tool)
        if not owned:
            return None
        return min(owned, key=lambda source: source.precedence_rank).file_path

    @property
    def errors(self) -> dict[str, str]:
        """Per-file errors from the last discovery."""
        return dict(self._errors)

    @property
    def sources(self) -> list[ConfigSource]:
        """Sources from the last discovery."""
        return list(self._sources)

    def _tool_sources(self, tool: str) -> list[ConfigSource]:
        return [
            source
            for source in self._sources
            if source.tier.is_tool_scoped and source.tool_scope == tool and source.is_tool_marker
        ]

    def _defaults_source(self) -> ConfigSource:
        return ConfigSource(
            tier=Tier.PACKAGE_DEFAULTS,
            file_path=None,
            format="defaults",
            data=self.validator.build_defaults(),
        )

    def _discover_global(self, errors: dict[str, str]) -> ConfigSource | None:
        home = self.environment.home
        if not home:
            return None

        path = Path(home) / GLOBAL_CONFIG_NAME
        if not path.is_file():
            return None

        try:
            return self.load_file(path, Tier.GLOBAL)
        except QualityToolsError as e:
            errors[str(path)] = e.message
            logger.warning("Skipping global configuration %s: %s", path, e.message)
            return None

    def _marker_source(self, path: Path, tier: Tier, tool: str, fmt: str) -> ConfigSource:
        logger.debug("Tool %s owns its configuration via %s", tool, path)
        return ConfigSource(
            tier=tier,
            file_path=path,
            format=fmt,
            tool_scope=tool,
            data={"tool_config_file": str(path), "custom_config": True},
            observed_at=_modified_at(path),
        )


def _existing_files(base: Path, patterns: tuple[str, ...]) -> list[Path]:
    """Expand catalog patterns under base and keep the paths that exist.

    Only the pattern is matched; base is taken literally even when its name
    contains glob characters.
    """
    existing: list[Path] = []
    for pattern in patterns:
        if is_glob(pattern):
            existing.extend(sorted(base.glob(pattern)))
        else:
            candidate = base / pattern
            if candidate.exists():
                existing.append(candidate)
    return existing


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigurationFileNotFoundError(path) from e
    except (PermissionError, IsADirectoryError) as e:
        raise ConfigurationFileNotReadableError(path, cause=e) from e
    except UnicodeDecodeError as e:
        msg = f"Configuration file is not valid UTF-8: {path}"
        raise ConfigLoadError(msg, path, cause=e) from e
    except OSError as e:
        msg = f"Failed to read configuration file {path}: {e}"
        raise ConfigLoadError(msg, path, cause=e) from e


def _modified_at(path: Path) -> datetime:
    try:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    except OSError:
        return datetime.now(timezone.utc)
