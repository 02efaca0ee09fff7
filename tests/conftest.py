"""Shared fixtures for configuration resolution tests."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from quality_tools.core.config.env_expansion import EnvironmentContext


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    """Empty home directory, so the developer's own ~/.quality-tools.yaml never leaks in."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def environment(home_dir: Path) -> EnvironmentContext:
    return EnvironmentContext({"HOME": str(home_dir)})


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def write_yaml() -> Callable[[Path, Any], Path]:
    """Write a document as YAML, creating parent directories."""

    def _write(path: Path, document: Any) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_text() -> Callable[[Path, str], Path]:
    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
