"""Configuration text processing (environment interpolation)."""

from quality_tools.core.config.env_expansion import (
    ALLOWED_ENVIRONMENT_VARIABLES,
    EnvironmentContext,
    EnvironmentInterpolator,
    find_references,
)

__all__ = [
    "ALLOWED_ENVIRONMENT_VARIABLES",
    "EnvironmentContext",
    "EnvironmentInterpolator",
    "find_references",
]
