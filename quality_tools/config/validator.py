"""
Configuration Schema Validator

Validates configuration documents against schema.yaml: required sections,
known keys only, types, enums, patterns and numeric ranges. In coercing mode
declared defaults are filled in, which is how the built-in package defaults
document is produced.
"""

import copy
import functools
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from quality_tools.core.config.env_expansion import EnvironmentContext
from quality_tools.framework.errors import ConfigValidationError

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).parent / "schema.yaml"
SUPPORTED_SCHEMA_VERSIONS = (1,)
SCHEMA_PATH_VARIABLE = "QT_CONFIG_SCHEMA"

_TRUE_STRINGS = ("true", "yes", "on", "1")
_FALSE_STRINGS = ("false", "no", "off", "0")
_INTEGER_STRING = re.compile(r"^-?\d+$")


@functools.lru_cache(maxsize=8)
def load_schema(schema_path: str) -> dict[str, Any]:
    """Load and cache a schema document for the lifetime of the process."""
    path = Path(schema_path)
    if not path.exists():
        msg = f"Schema file not found: {path}"
        raise FileNotFoundError(msg)

    with open(path, encoding="utf-8") as f:
        document = yaml.safe_load(f)

    if not isinstance(document, dict) or "schema" not in document:
        msg = f"Schema file {path} has no 'schema' section"
        raise ValueError(msg)

    version = document.get("version")
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        msg = f"Unsupported schema version {version!r} in {path}"
        raise ValueError(msg)

    logger.debug("Loaded configuration schema v%s from %s", version, path)
    return document


@dataclass
class ValidationResult:
    """Outcome of validating one document.

    Attributes:
        valid: True when no errors were found
        errors: Error strings formatted as "<key.path>: <message>"
        document: Normalised copy of the input (defaults applied in coercing mode)
    """

    valid: bool
    errors: list[str] = field(default_factory=list)
    document: dict[str, Any] = field(default_factory=dict)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def format_errors(self) -> str:
        """Format errors as a readable string"""
        if not self.errors:
            return "No validation errors"
        return "\n".join(f"  - {error}" for error in self.errors)


class SchemaValidator:
    """Validates configuration documents against the structural schema.

    The validator is stateless between calls; each validate() call collects
    its own errors.
    """

    def __init__(self, schema_path: Path | None = None) -> None:
        """
        Args:
            schema_path: Path to schema.yaml (defaults to the bundled schema)
        """
        self.schema_path = Path(schema_path) if schema_path is not None else DEFAULT_SCHEMA_PATH
        document = load_schema(str(self.schema_path.resolve()))
        self.version: int = document["version"]
        self.schema: dict[str, Any] = document["schema"]

    @classmethod
    def from_environment(cls, context: EnvironmentContext) -> "SchemaValidator":
        """Create a validator honouring QT_CONFIG_SCHEMA when it is set."""
        override = context.get(SCHEMA_PATH_VARIABLE)
        return cls(Path(override) if override else None)

    def validate(self, document: Any, coerce: bool = False) -> ValidationResult:
        """
        Validate a configuration document.

        Args:
            document: Parsed configuration document
            coerce: If True, fill in declared defaults for missing keys

        Returns:
            ValidationResult with collected errors and the normalised document
        """
        if not isinstance(document, dict):
            error = f"(root): Expected object/dict, got {type(document).__name__}"
            return ValidationResult(valid=False, errors=[error], document={})

        errors: list[str] = []
        normalised = copy.deepcopy(document)
        self._validate_object(normalised, {"properties": self.schema}, "", errors, coerce)

        return ValidationResult(valid=not errors, errors=errors, document=normalised)

    def validate_strict(self, document: Any, subject: str = "merged configuration") -> dict[str, Any]:
        """
        Validate a document and raise on failure.

        Returns:
            The normalised document

        Raises:
            ConfigValidationError: If validation fails
        """
        result = self.validate(document)
        if not result.valid:
            raise ConfigValidationError(result.errors, subject=subject)
        return result.document

    def build_defaults(self) -> dict[str, Any]:
        """Build the package defaults document from the schema's declared defaults."""
        result = self.validate({"quality-tools": {}}, coerce=True)
        if not result.valid:
            raise ConfigValidationError(result.errors, subject="package defaults")
        return result.document

    def _validate_object(
        self,
        value: dict[Any, Any],
        schema_def: dict[str, Any],
        path: str,
        errors: list[str],
        coerce: bool,
    ) -> None:
        """Validate a mapping against its declared properties (mutates value in place)."""
        properties = schema_def.get("properties", {})
        allow_unknown = schema_def.get("additional_properties", False)

        for key in value:
            if key not in properties and not allow_unknown:
                errors.append(f"{_join(path, key)}: Unknown configuration key")

        for key, prop_def in properties.items():
            child_path = _join(path, key)

            if key not in value:
                if prop_def.get("required", False):
                    errors.append(f"{child_path}: Required field missing")
                elif coerce and "default" in prop_def:
                    value[key] = copy.deepcopy(prop_def["default"])
                    value[key] = self._validate_value(value[key], prop_def, child_path, errors, coerce)
                continue

            value[key] = self._validate_value(value[key], prop_def, child_path, errors, coerce)

    def _validate_value(
        self,
        value: Any,
        schema_def: dict[str, Any],
        path: str,
        errors: list[str],
        coerce: bool,
    ) -> Any:
        """Validate a single value, returning it (scalar types normalised where unambiguous)."""
        value_type = schema_def.get("type")

        if value_type == "object":
            if not isinstance(value, dict):
                errors.append(f"{path}: Expected object/dict, got {type(value).__name__}")
                return value
            self._validate_object(value, schema_def, path, errors, coerce)
            return value

        if value_type == "array":
            if not isinstance(value, list):
                errors.append(f"{path}: Expected array/list, got {type(value).__name__}")
                return value
            items_schema = schema_def.get("items", {})
            return [
                self._validate_value(item, items_schema, f"{path}[{i}]", errors, coerce)
                for i, item in enumerate(value)
            ]

        if value_type == "integer":
            if isinstance(value, str) and _INTEGER_STRING.match(value.strip()):
                value = int(value.strip())
            if not isinstance(value, int) or isinstance(value, bool):
                errors.append(f"{path}: Expected integer, got {type(value).__name__}")
                return value
            _check_range(value, schema_def, path, errors)
            return value

        if value_type == "number":
            if isinstance(value, str):
                try:
                    value = float(value)
                except ValueError:
                    pass
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                errors.append(f"{path}: Expected number, got {type(value).__name__}")
                return value
            _check_range(value, schema_def, path, errors)
            return value

        if value_type == "string":
            # Unquoted YAML versions such as 8.3 arrive as floats
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if not isinstance(value, str):
                errors.append(f"{path}: Expected string, got {type(value).__name__}")
                return value
            if "enum" in schema_def and value not in schema_def["enum"]:
                errors.append(f"{path}: Value '{value}' not in allowed values: {schema_def['enum']}")
            if "pattern" in schema_def and not re.match(schema_def["pattern"], value):
                errors.append(
                    f"{path}: Value '{value}' does not match pattern {schema_def['pattern']}"
                )
            return value

        if value_type == "boolean":
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in _TRUE_STRINGS:
                    value = True
                elif lowered in _FALSE_STRINGS:
                    value = False
            if not isinstance(value, bool):
                errors.append(f"{path}: Expected boolean, got {type(value).__name__}")
            return value

        return value


def _check_range(value: float, schema_def: dict[str, Any], path: str, errors: list[str]) -> None:
    if "min" in schema_def and value < schema_def["min"]:
        errors.append(f"{path}: Value {value} is less than minimum {schema_def['min']}")
    if "max" in schema_def and value > schema_def["max"]:
        errors.append(f"{path}: Value {value} is greater than maximum {schema_def['max']}")


def _join(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def validate_config(document: dict[str, Any], strict: bool = False) -> bool:
    """
    Convenience function to validate a configuration document.

    Args:
        document: Configuration dictionary to validate
        strict: If True, raise exception on validation failure

    Returns:
        True if valid, False otherwise

    Raises:
        ConfigValidationError: If strict=True and validation fails
    """
    validator = SchemaValidator()
    if strict:
        validator.validate_strict(document, subject="configuration")
        return True
    return validator.validate(document).valid
