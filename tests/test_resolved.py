"""
Tests for ResolvedConfiguration.

Tests verify:
- Accessors fall back to documented defaults
- Tool settings and tool-owned configuration files
- Returned values are copies
- Provenance queries
"""

from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from quality_tools.config.merger import ConfigMerger
from quality_tools.config.protocol import ConfigSource, Tier
from quality_tools.config.resolved import ResolvedConfiguration, ToolSettings


def _qt(**sections: Any) -> dict[str, Any]:
    return {"quality-tools": sections}


@pytest.fixture
def tracked() -> ResolvedConfiguration:
    """Resolution of defaults plus a project file disabling rector."""
    defaults = ConfigSource(
        tier=Tier.PACKAGE_DEFAULTS,
        format="defaults",
        data=_qt(
            tools={"rector": {"enabled": True, "level": "typo3-13"}},
            output={"verbosity": "normal"},
            paths={"scan": ["packages/"]},
        ),
    )
    project = ConfigSource(
        tier=Tier.PROJECT_ROOT,
        file_path=Path("/p/quality-tools.yaml"),
        data=_qt(tools={"rector": {"enabled": False}}, paths={"scan": ["src/"]}),
    )
    result = ConfigMerger().merge([defaults, project])
    return ResolvedConfiguration.from_merge(result, project_root="/p")


class TestAccessors:
    """Test typed accessors."""

    def test_defaults_when_absent(self) -> None:
        """Test that every accessor is total."""
        config = ResolvedConfiguration.from_data({})

        assert config.project_name is None
        assert config.php_version == "8.3"
        assert config.typo3_version == "13.4"
        assert config.scan_paths == ["packages/", "config/system/"]
        assert "vendor/" in config.exclude_paths
        assert config.verbosity == "normal"
        assert config.colors_enabled is True
        assert config.progress_enabled is True
        assert config.parallel_enabled is True
        assert config.max_processes == 4  # noqa: PLR2004
        assert config.cache_enabled is True
        assert config.is_tool_enabled("rector") is True
        assert config.tool_paths("rector") == {}

    def test_configured_values(self) -> None:
        """Test accessors reading configured values."""
        config = ResolvedConfiguration.from_data(
            _qt(
                project={"name": "demo", "php_version": "8.2", "typo3_version": "12.4"},
                paths={"scan": ["src/"], "exclude": ["build/"]},
                tools={"phpstan": {"enabled": False, "paths": {"scan": ["Classes/"]}}},
                output={"verbosity": "quiet", "colors": False},
                performance={"max_processes": 8, "parallel": False},
            )
        )

        assert config.project_name == "demo"
        assert config.php_version == "8.2"
        assert config.typo3_version == "12.4"
        assert config.scan_paths == ["src/"]
        assert config.exclude_paths == ["build/"]
        assert config.is_tool_enabled("phpstan") is False
        assert config.tool_paths("phpstan") == {"scan": ["Classes/"]}
        assert config.verbosity == "quiet"
        assert config.colors_enabled is False
        assert config.max_processes == 8  # noqa: PLR2004
        assert config.parallel_enabled is False

    def test_get(self) -> None:
        """Test dot-path lookup."""
        config = ResolvedConfiguration.from_data(_qt(output={"verbosity": "debug"}))

        assert config.get("quality-tools.output.verbosity") == "debug"
        assert config.get("quality-tools.output.colors") is None
        assert config.get("quality-tools.output.verbosity.deeper", "x") == "x"

    def test_tool_config_fills_defaults(self) -> None:
        """Test per-tool default fill."""
        config = ResolvedConfiguration.from_data(_qt(tools={"phpstan": {"level": 8}}))

        assert config.tool_config("phpstan") == {
            "enabled": True,
            "level": 8,
            "memory_limit": "1G",
        }

    def test_tool_config_php_version_follows_project(self) -> None:
        """Test that rector and fractor default to the project's PHP version."""
        config = ResolvedConfiguration.from_data(_qt(project={"php_version": "8.2"}))

        assert config.tool_config("rector")["php_version"] == "8.2"
        assert config.tool_config("fractor")["php_version"] == "8.2"
        assert "php_version" not in config.tool_config("phpstan")

    def test_unknown_tool(self) -> None:
        """Test a tool without schema defaults."""
        config = ResolvedConfiguration.from_data({})

        assert config.tool_config("composer-normalize") == {"enabled": True}

    def test_tool_config_uses_given_defaults(self) -> None:
        """Test defaults handed over by the resolving validator."""
        config = ResolvedConfiguration.from_data(
            {}, tool_defaults={"phpstan": {"enabled": True, "level": 2}}
        )

        assert config.tool_config("phpstan") == {"enabled": True, "level": 2}
        assert config.tool_config("rector") == {"enabled": True, "php_version": "8.3"}


class TestCustomConfig:
    """Test tools that own their configuration file."""

    def test_marker(self) -> None:
        """Test a discovered tool file."""
        config = ResolvedConfiguration.from_data(
            _qt(tools={"rector": {"tool_config_file": "/p/rector.php", "custom_config": True}})
        )

        assert config.uses_custom_config("rector")
        assert config.custom_config_path("rector") == "/p/rector.php"
        assert config.tool_config_resolved("rector") == {
            "use_custom_config": True,
            "config_file": "/p/rector.php",
            "unified_config_ignored": True,
        }
        assert config.tools_with_custom_configs() == {"rector": "/p/rector.php"}

    def test_stamped_config_file(self) -> None:
        """Test config_file stamped by per-tool resolution."""
        config = ResolvedConfiguration.from_data(
            _qt(tools={"phpstan": {"config_file": "/p/phpstan.neon", "use_custom_config": True}})
        )

        assert config.custom_config_path("phpstan") == "/p/phpstan.neon"
        assert config.tool_config_resolved("phpstan")["config_file"] == "/p/phpstan.neon"

    def test_without_custom_config(self) -> None:
        """Test that unified settings are returned otherwise."""
        config = ResolvedConfiguration.from_data(_qt(tools={"phpstan": {"level": 7}}))

        assert not config.uses_custom_config("phpstan")
        assert config.custom_config_path("phpstan") is None
        assert config.tool_config_resolved("phpstan")["level"] == 7  # noqa: PLR2004
        assert config.tools_with_custom_configs() == {}


class TestImmutability:
    """Test that accessors hand out copies."""

    def test_data_is_a_copy(self) -> None:
        """Test mutating returned data."""
        source = _qt(paths={"scan": ["src/"]})
        config = ResolvedConfiguration.from_data(source)

        config.data["quality-tools"]["paths"]["scan"].append("x/")
        config.scan_paths.append("y/")
        config.get("quality-tools.paths.scan").append("z/")
        source["quality-tools"]["paths"]["scan"].append("w/")

        assert config.scan_paths == ["src/"]

    def test_tool_config_is_a_copy(self) -> None:
        """Test mutating returned tool settings."""
        config = ResolvedConfiguration.from_data(_qt(tools={"rector": {"paths": {"scan": ["a/"]}}}))

        config.tool_config("rector")["paths"]["scan"].append("b/")
        config.tool_paths("rector")["scan"].append("c/")

        assert config.tool_paths("rector") == {"scan": ["a/"]}

    def test_views_are_frozen(self) -> None:
        """Test that pydantic views reject assignment."""
        view = ResolvedConfiguration.from_data({}).output()

        with pytest.raises(ValidationError):
            view.verbosity = "debug"


class TestViews:
    """Test pydantic views."""

    def test_views(self) -> None:
        """Test section views with defaults."""
        config = ResolvedConfiguration.from_data(
            _qt(project={"name": "demo"}, performance={"max_processes": 2})
        )

        assert config.project().name == "demo"
        assert config.project().php_version == "8.3"
        assert config.output().verbosity == "normal"
        assert config.performance().max_processes == 2  # noqa: PLR2004

    def test_tool_view(self) -> None:
        """Test tool views keep tool-specific keys."""
        tool = ResolvedConfiguration.from_data({}).tool("phpstan")

        assert isinstance(tool, ToolSettings)
        assert tool.enabled is True
        assert tool.level == 6  # noqa: PLR2004
        assert tool.memory_limit == "1G"


class TestProvenance:
    """Test provenance queries."""

    def test_source_of(self, tracked: ResolvedConfiguration) -> None:
        """Test final sources."""
        assert tracked.source_of("quality-tools.tools.rector.enabled") == "project_root"
        assert tracked.source_of("quality-tools.tools.rector.level") == "package_defaults"
        assert tracked.source_of("quality-tools.nope") is None
        assert tracked.tracks_provenance

    def test_conflicts(self, tracked: ResolvedConfiguration) -> None:
        """Test conflict queries."""
        key = "quality-tools.tools.rector.enabled"

        assert tracked.has_conflicts
        assert tracked.was_overridden(key)
        assert not tracked.was_overridden("quality-tools.paths.scan")
        (conflict,) = tracked.conflicts_for(key)
        assert conflict.winner == "project_root"

    def test_full_chain(self, tracked: ResolvedConfiguration) -> None:
        """Test the value history of a key."""
        assert tracked.full_chain("quality-tools.tools.rector.enabled") == [
            {"source": "package_defaults", "value": True, "overridden": True},
            {"source": "project_root", "value": False, "overridden": False},
        ]
        assert tracked.full_chain("quality-tools.output.verbosity") == [
            {"source": "package_defaults", "value": "normal", "overridden": False},
        ]

    def test_keys_by_source(self, tracked: ResolvedConfiguration) -> None:
        """Test grouping keys by source."""
        grouped = tracked.keys_by_source()

        assert grouped["project_root"] == [
            "quality-tools.paths.scan",
            "quality-tools.tools.rector.enabled",
        ]
        assert "quality-tools.tools.rector.level" in grouped["package_defaults"]

    def test_with_sources(self, tracked: ResolvedConfiguration) -> None:
        """Test the annotated tree."""
        annotated = tracked.with_sources()["quality-tools"]

        assert annotated["tools"]["rector"]["enabled"] == {"value": False, "source": "project_root"}
        assert annotated["paths"]["scan"] == {
            "value": ["packages/", "src/"],
            "source": "project_root",
        }

    def test_export_with_metadata(self, tracked: ResolvedConfiguration) -> None:
        """Test the export bundle."""
        export = tracked.export_with_metadata()

        assert set(export) == {
            "configuration",
            "source_map",
            "conflicts",
            "merge_summary",
            "debug_info",
        }
        assert export["conflicts"][0]["winner"] == "project_root"
        assert export["debug_info"]["project_root"] == "/p"
        assert export["debug_info"]["conflicts_count"] == 1

    def test_untracked(self) -> None:
        """Test provenance queries on an untracked resolution."""
        config = ResolvedConfiguration.from_data(_qt(output={"verbosity": "quiet"}))

        assert not config.tracks_provenance
        assert config.source_map == {}
        assert config.conflicts == []
        assert not config.has_conflicts
        assert config.source_of("quality-tools.output.verbosity") is None
        assert config.full_chain("quality-tools.output.verbosity") == []
