"""Environment variable interpolation for configuration files.

Configuration files may reference environment variables using:
- ${VAR} - Required variable (raises error if undefined)
- ${VAR:-default} - Optional variable with default value (default may be empty)

Interpolation runs on the raw file text before YAML parsing, so substituted
values are always plain strings that the parser then types like any other
scalar. Only a fixed allowlist of variable names may be referenced and every
substituted value must pass a content-safety check.

Example:
    from quality_tools.core.config.env_expansion import (
        EnvironmentContext,
        EnvironmentInterpolator,
    )

    context = EnvironmentContext({"HOME": "/home/dev"})
    interpolator = EnvironmentInterpolator(context)

    text = interpolator.interpolate("cache_dir: ${HOME}/.cache\\nmemory: ${PHP_MEMORY_LIMIT:-1G}")
    # "cache_dir: /home/dev/.cache\\nmemory: 1G"
"""

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from quality_tools.framework.errors import (
    EnvironmentAccessDeniedError,
    MissingEnvironmentVariableError,
    UnsafeEnvironmentValueError,
)

logger = logging.getLogger(__name__)


# Matches ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(:-([^}]*))?\}")

# Allowlisted names must also look like conventional environment variables
VARIABLE_NAME_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")

ALLOWED_ENVIRONMENT_VARIABLES: frozenset[str] = frozenset(
    {
        # Home directory and user identity
        "HOME",
        "USER",
        "USERNAME",
        # Quality tools hints
        "QT_PROJECT_ROOT",
        "QT_VENDOR_DIR",
        "QT_DEBUG_TEMP_FILES",
        "QT_DYNAMIC_PATHS",
        # PHP runtime hints
        "PHP_MEMORY_LIMIT",
        "PHP_VERSION",
        "PHP_BINARY",
        # CI detection (read-only flags)
        "CI",
        "GITHUB_ACTIONS",
        "GITLAB_CI",
        "JENKINS_URL",
        "TRAVIS",
        "CIRCLECI",
        # Build and deployment paths
        "PROJECT_ROOT",
        "BUILD_DIR",
        "VENDOR_DIR",
        # Tool configuration paths
        "PHPSTAN_CONFIG_PATH",
        "RECTOR_CONFIG_PATH",
        "PHP_CS_FIXER_CONFIG_PATH",
        "FRACTOR_CONFIG_PATH",
    }
)

# Null bytes and control characters other than tab, newline and carriage return
_CONTROL_CHARACTERS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

_DANGEROUS_PATTERNS = (
    re.compile(r"\.\./"),  # Directory traversal
    re.compile(r"\$\{.*\}"),  # Nested variable expansion
    re.compile(r"\$\(.*\)"),  # Command substitution
    re.compile(r"`.*`"),  # Backtick command execution
    re.compile(r"\|\s*\w+"),  # Pipe to commands
    re.compile(r">\s*/"),  # Redirect to paths
)


@dataclass(frozen=True)
class EnvironmentContext:
    """Snapshot of the environment variables visible to configuration loading.

    Passing this value explicitly keeps the allowlist and content checks
    testable without touching the real process environment.

    Attributes:
        variables: Mapping of variable name to value
    """

    variables: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_os(cls) -> "EnvironmentContext":
        """Capture the current process environment."""
        return cls(dict(os.environ))

    def get(self, name: str) -> str | None:
        """Return the value of a variable, or None when unset or empty."""
        value = self.variables.get(name)
        if value is None or value == "":
            return None
        return value

    @property
    def home(self) -> str | None:
        """User home directory (HOME, falling back to USERPROFILE)."""
        return self.get("HOME") or self.get("USERPROFILE")


def is_variable_allowed(name: str) -> bool:
    """Check a variable name against the interpolation allowlist."""
    if not VARIABLE_NAME_PATTERN.match(name):
        return False
    return name in ALLOWED_ENVIRONMENT_VARIABLES


def is_value_safe(value: str) -> bool:
    """Check that a variable value carries no traversal or shell-like content."""
    if _CONTROL_CHARACTERS.search(value):
        return False
    return not any(pattern.search(value) for pattern in _DANGEROUS_PATTERNS)


class EnvironmentInterpolator:
    """Expands allowlisted ${VAR} references in raw configuration text.

    Example:
        interpolator = EnvironmentInterpolator(EnvironmentContext.from_os())
        content = interpolator.interpolate(path.read_text())
    """

    def __init__(self, context: EnvironmentContext | None = None) -> None:
        """
        Args:
            context: Environment snapshot (defaults to the process environment)
        """
        self.context = context if context is not None else EnvironmentContext.from_os()

    def interpolate(self, text: str) -> str:
        """Replace every ${VAR} and ${VAR:-default} reference in text.

        Args:
            text: Raw file content

        Returns:
            Content with references substituted

        Raises:
            EnvironmentAccessDeniedError: Variable is not allowlisted (even with a default)
            UnsafeEnvironmentValueError: Variable value failed the content-safety check
            MissingEnvironmentVariableError: Variable is unset and no default was given
        """
        return ENV_VAR_PATTERN.sub(self._replace_match, text)

    def _replace_match(self, match: re.Match) -> str:
        name = match.group(1)
        has_default = match.group(2) is not None
        default_value = match.group(3) if has_default else None

        # The allowlist is checked before the default is considered
        if not is_variable_allowed(name):
            raise EnvironmentAccessDeniedError(name)

        value = self.context.get(name)
        if value is not None:
            if not is_value_safe(value):
                raise UnsafeEnvironmentValueError(name)
            return value

        if has_default:
            logger.debug("Environment variable '%s' not set, using default: '%s'", name, default_value)
            return default_value or ""

        raise MissingEnvironmentVariableError(name)


def find_references(text: str) -> dict[str, str | None]:
    """Extract all variable references with their defaults.

    Returns a mapping of variable name to default value (None if required).
    Useful for diagnostics without performing any substitution.

    Example:
        >>> refs = find_references("a: ${HOME}\\nb: ${PHP_MEMORY_LIMIT:-1G}")
        >>> refs["HOME"] is None
        True
        >>> refs["PHP_MEMORY_LIMIT"]
        '1G'
    """
    references: dict[str, str | None] = {}

    for match in ENV_VAR_PATTERN.finditer(text):
        name = match.group(1)
        default_value = match.group(3) if match.group(2) is not None else None

        # Track first occurrence (don't overwrite a default with None)
        if name not in references or (default_value is not None and references[name] is None):
            references[name] = default_value

    return references
