"""
Tests for schema validation.

Tests verify:
- Declared defaults
- Unknown keys, types, enums, patterns and ranges
- Scalar normalisation
- Schema selection through QT_CONFIG_SCHEMA
"""

from pathlib import Path

import pytest

from quality_tools.config.validator import SchemaValidator, validate_config
from quality_tools.core.config.env_expansion import EnvironmentContext
from quality_tools.framework.errors import ConfigValidationError, ErrorCode


@pytest.fixture
def validator() -> SchemaValidator:
    return SchemaValidator()


def _doc(**sections: object) -> dict:
    return {"quality-tools": dict(sections)}


class TestDefaults:
    """Test build_defaults."""

    def test_project_defaults(self, validator: SchemaValidator) -> None:
        """Test project section defaults."""
        project = validator.build_defaults()["quality-tools"]["project"]

        assert project == {"php_version": "8.3", "typo3_version": "13.4"}

    def test_path_defaults(self, validator: SchemaValidator) -> None:
        """Test paths section defaults."""
        paths = validator.build_defaults()["quality-tools"]["paths"]

        assert paths["scan"] == ["packages/", "config/system/"]
        assert "vendor/" in paths["exclude"]
        assert len(paths["exclude"]) == 9  # noqa: PLR2004

    def test_tool_defaults(self, validator: SchemaValidator) -> None:
        """Test per-tool defaults."""
        tools = validator.build_defaults()["quality-tools"]["tools"]

        assert set(tools) == {"rector", "fractor", "phpstan", "php-cs-fixer", "typoscript-lint"}
        assert tools["rector"] == {"enabled": True, "level": "typo3-13"}
        assert tools["phpstan"] == {"enabled": True, "level": 6, "memory_limit": "1G"}
        assert tools["php-cs-fixer"]["preset"] == "typo3"
        assert tools["fractor"]["indentation"] == 2  # noqa: PLR2004

    def test_output_and_performance_defaults(self, validator: SchemaValidator) -> None:
        """Test output and performance defaults."""
        document = validator.build_defaults()["quality-tools"]

        assert document["output"] == {"verbosity": "normal", "colors": True, "progress": True}
        assert document["performance"] == {
            "parallel": True,
            "max_processes": 4,
            "cache_enabled": True,
        }

    def test_defaults_are_fresh_copies(self, validator: SchemaValidator) -> None:
        """Test that mutating one defaults document does not leak into the next."""
        first = validator.build_defaults()
        first["quality-tools"]["paths"]["scan"].append("src/")

        assert validator.build_defaults()["quality-tools"]["paths"]["scan"] == [
            "packages/",
            "config/system/",
        ]


class TestValidate:
    """Test validate."""

    def test_valid_document(self, validator: SchemaValidator) -> None:
        """Test a typical project document."""
        result = validator.validate(
            _doc(
                project={"name": "demo", "php_version": "8.2"},
                tools={"phpstan": {"level": 8, "memory_limit": "512M"}},
                output={"verbosity": "verbose"},
            )
        )

        assert result.valid
        assert not result.has_errors()

    def test_missing_root(self, validator: SchemaValidator) -> None:
        """Test that the quality-tools root is required."""
        result = validator.validate({})

        assert not result.valid
        assert "quality-tools: Required field missing" in result.errors

    def test_non_mapping_document(self, validator: SchemaValidator) -> None:
        """Test a document that is not a mapping."""
        result = validator.validate(["not", "a", "mapping"])

        assert result.errors == ["(root): Expected object/dict, got list"]

    def test_unknown_key(self, validator: SchemaValidator) -> None:
        """Test that unknown keys are rejected."""
        result = validator.validate(_doc(bogus=1))

        assert "quality-tools.bogus: Unknown configuration key" in result.errors

    def test_unknown_tool_key(self, validator: SchemaValidator) -> None:
        """Test that unknown keys inside a tool section are rejected."""
        result = validator.validate(_doc(tools={"rector": {"speed": "fast"}}))

        assert "quality-tools.tools.rector.speed: Unknown configuration key" in result.errors

    def test_range_error(self, validator: SchemaValidator) -> None:
        """Test numeric range checks."""
        result = validator.validate(_doc(tools={"phpstan": {"level": 12}}))

        assert result.errors == [
            "quality-tools.tools.phpstan.level: Value 12 is greater than maximum 9"
        ]

    def test_max_processes_minimum(self, validator: SchemaValidator) -> None:
        """Test lower bound."""
        result = validator.validate(_doc(performance={"max_processes": 0}))

        assert result.errors == [
            "quality-tools.performance.max_processes: Value 0 is less than minimum 1"
        ]

    def test_enum_error(self, validator: SchemaValidator) -> None:
        """Test enum checks."""
        result = validator.validate(_doc(output={"verbosity": "loud"}))

        assert len(result.errors) == 1
        assert result.errors[0].startswith("quality-tools.output.verbosity: Value 'loud' not in")

    def test_rector_level_enum(self, validator: SchemaValidator) -> None:
        """Test that only supported rector levels are accepted."""
        assert validator.validate(_doc(tools={"rector": {"level": "typo3-12"}})).valid
        assert not validator.validate(_doc(tools={"rector": {"level": "typo3-10"}})).valid

    def test_version_pattern(self, validator: SchemaValidator) -> None:
        """Test version patterns."""
        assert validator.validate(_doc(project={"typo3_version": "12.4"})).valid

        result = validator.validate(_doc(project={"typo3_version": "v13.4"}))
        assert not result.valid
        assert "does not match pattern" in result.errors[0]

    def test_memory_limit_pattern(self, validator: SchemaValidator) -> None:
        """Test memory limit formats."""
        for value in ("512M", "1G", "2048M", "1024"):
            assert validator.validate(_doc(tools={"phpstan": {"memory_limit": value}})).valid
        assert not validator.validate(_doc(tools={"phpstan": {"memory_limit": "lots"}})).valid

    def test_type_error(self, validator: SchemaValidator) -> None:
        """Test type checks."""
        result = validator.validate(_doc(paths={"scan": "packages/"}))

        assert result.errors == ["quality-tools.paths.scan: Expected array/list, got str"]

    def test_collects_every_error(self, validator: SchemaValidator) -> None:
        """Test that validation does not stop at the first error."""
        result = validator.validate(
            _doc(tools={"phpstan": {"level": 12}}, output={"verbosity": "loud"}, extra=True)
        )

        assert len(result.errors) == 3  # noqa: PLR2004

    def test_tool_marker_keys_allowed(self, validator: SchemaValidator) -> None:
        """Test that discovery markers pass validation."""
        result = validator.validate(
            _doc(tools={"rector": {"tool_config_file": "/p/rector.php", "custom_config": True}})
        )

        assert result.valid

    def test_input_not_mutated(self, validator: SchemaValidator) -> None:
        """Test that validation works on a copy."""
        document = _doc(project={"php_version": 8.2})

        validator.validate(document, coerce=True)

        assert document == {"quality-tools": {"project": {"php_version": 8.2}}}

    def test_no_defaults_without_coerce(self, validator: SchemaValidator) -> None:
        """Test that safe mode leaves absent keys absent."""
        result = validator.validate(_doc(output={"colors": False}))

        assert result.document == {"quality-tools": {"output": {"colors": False}}}


class TestNormalisation:
    """Test scalar normalisation."""

    def test_unquoted_version_becomes_string(self, validator: SchemaValidator) -> None:
        """Test that php_version: 8.3 (a YAML float) is accepted as "8.3"."""
        result = validator.validate(_doc(project={"php_version": 8.3}))

        assert result.valid
        assert result.document["quality-tools"]["project"]["php_version"] == "8.3"

    def test_integer_string(self, validator: SchemaValidator) -> None:
        """Test that "8" is accepted for an integer field."""
        result = validator.validate(_doc(tools={"phpstan": {"level": "8"}}))

        assert result.valid
        assert result.document["quality-tools"]["tools"]["phpstan"]["level"] == 8  # noqa: PLR2004

    @pytest.mark.parametrize(("raw", "expected"), [("yes", True), ("false", False), ("on", True)])
    def test_boolean_string(self, validator: SchemaValidator, raw: str, expected: bool) -> None:
        """Test boolean strings."""
        result = validator.validate(_doc(output={"colors": raw}))

        assert result.valid
        assert result.document["quality-tools"]["output"]["colors"] is expected

    def test_bool_is_not_an_integer(self, validator: SchemaValidator) -> None:
        """Test that True is not accepted as an integer."""
        result = validator.validate(_doc(performance={"max_processes": True}))

        assert result.errors == [
            "quality-tools.performance.max_processes: Expected integer, got bool"
        ]


class TestStrict:
    """Test validate_strict and validate_config."""

    def test_validate_strict_raises(self, validator: SchemaValidator) -> None:
        """Test that strict validation raises with every offending key path."""
        with pytest.raises(ConfigValidationError) as exc_info:
            validator.validate_strict(_doc(tools={"phpstan": {"level": 12}}))

        error = exc_info.value
        assert error.code == ErrorCode.VALIDATION_ERROR
        assert error.details["key_paths"] == ["quality-tools.tools.phpstan.level"]
        assert "Invalid merged configuration" in error.message

    def test_validate_strict_returns_document(self, validator: SchemaValidator) -> None:
        """Test that strict validation returns the normalised document."""
        document = validator.validate_strict(_doc(project={"php_version": 8.1}))

        assert document["quality-tools"]["project"]["php_version"] == "8.1"

    def test_validate_config(self) -> None:
        """Test the convenience function."""
        assert validate_config(_doc())
        assert not validate_config({})
        with pytest.raises(ConfigValidationError):
            validate_config({}, strict=True)


class TestSchemaSelection:
    """Test schema loading."""

    def test_bundled_schema_version(self, validator: SchemaValidator) -> None:
        """Test the bundled schema."""
        assert validator.version == 1
        assert "quality-tools" in validator.schema

    def test_schema_from_environment(self, tmp_path: Path) -> None:
        """Test QT_CONFIG_SCHEMA."""
        schema_file = tmp_path / "schema.yaml"
        schema_file.write_text(
            "version: 1\n"
            "schema:\n"
            "  quality-tools:\n"
            "    type: object\n"
            "    required: true\n"
            "    additional_properties: true\n",
            encoding="utf-8",
        )

        validator = SchemaValidator.from_environment(
            EnvironmentContext({"QT_CONFIG_SCHEMA": str(schema_file)})
        )

        assert validator.schema_path == schema_file
        assert validator.validate({"quality-tools": {"anything": 1}}).valid

    def test_unsupported_schema_version(self, tmp_path: Path) -> None:
        """Test that an unknown schema version is refused."""
        schema_file = tmp_path / "schema-v9.yaml"
        schema_file.write_text("version: 9\nschema: {}\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Unsupported schema version"):
            SchemaValidator(schema_file)
