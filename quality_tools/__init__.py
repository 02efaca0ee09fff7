"""
quality-tools configuration core

Resolves one authoritative configuration for the quality-tools CLI (rector,
fractor, phpstan, php-cs-fixer, typoscript-lint) from built-in defaults, the
user's home directory, project files, tool-owned files and command-line
overrides, recording where every value came from.

Public API:
- quality_tools.config: resolution entry points and building blocks
- quality_tools.framework.errors: error taxonomy
- quality_tools.cli: the quality-tools-config diagnostic command
"""

try:
    from importlib.metadata import PackageNotFoundError, version

    try:
        __version__ = version("quality-tools-config")
    except PackageNotFoundError:
        # Development checkout, not installed via pip
        __version__ = "0.1.0"
except ImportError:
    __version__ = "0.1.0"

from quality_tools.config.loader import resolve, resolve_for_tool
from quality_tools.config.resolved import ResolvedConfiguration

__all__ = ["ResolvedConfiguration", "__version__", "resolve", "resolve_for_tool"]
