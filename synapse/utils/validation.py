"""
Schema validation utilities for Synapse records.

Every table row written by the record store is checked against a JSON Schema
shipped in ``synapse/schemas``. Errors are reported in a readable form that
names the offending path and the failing validator.
"""

import json
from pathlib import Path
from typing import Any, Optional

from jsonschema import Draft7Validator, FormatChecker
from jsonschema import ValidationError as SchemaError

from ..config import config


class ValidationResult:
    """
    Result of a validation attempt.

    Attributes:
        valid: Whether data passed validation
        errors: List of error messages
        data: The validated data
    """

    def __init__(self, valid: bool, errors: list[str], data: Any = None):
        self.valid = valid
        self.errors = errors
        self.data = data

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.valid

    def __str__(self) -> str:
        if self.valid:
            return "✓ Validation passed"
        return f"✗ Validation failed with {len(self.errors)} error(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )


class SchemaValidator:
    """
    JSON Schema validator.

    Usage:
        validator = SchemaValidator("path/to/schema.json")
        result = validator.validate(data)
        if not result:
            print(result.errors)
    """

    def __init__(self, schema_path: Path | str):
        """
        Initialize validator with a schema file.

        Args:
            schema_path: Path to JSON Schema file
        """
        self.schema_path = Path(schema_path)
        with open(self.schema_path, "r", encoding="utf-8") as f:
            self.schema = json.load(f)
        self.validator = Draft7Validator(self.schema, format_checker=FormatChecker())

    def validate(self, data: dict) -> ValidationResult:
        """
        Validate data against schema.

        Args:
            data: Data to validate

        Returns:
            ValidationResult with validation status and any errors
        """
        errors = [self._format_error(error) for error in self.validator.iter_errors(data)]
        return ValidationResult(valid=not errors, errors=errors, data=data)

    def _format_error(self, error: SchemaError) -> str:
        """
        Convert a jsonschema error to a human-readable message.

        Returns:
            Formatted error message with validator and schema path
        """
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        validator_name = getattr(error, "validator", "unknown")
        schema_path = "/".join(str(p) for p in error.schema_path)
        return (
            f"At '{path}': {error.message} "
            f"[validator={validator_name}, schema_path=/{schema_path}]"
        )


# Table name -> schema file name
TABLE_SCHEMAS = {
    "rooms": "room.schema.json",
    "questions": "question.schema.json",
    "quiz_attempts": "quiz_attempt.schema.json",
    "profiles": "profile.schema.json",
}

_validators: dict[str, SchemaValidator] = {}


def get_table_validator(table: str, schemas_dir: Optional[Path] = None) -> Optional[SchemaValidator]:
    """
    Get the cached validator for a table, or None if the table has no schema.

    Args:
        table: Table name
        schemas_dir: Override schemas directory (default: config.paths.schemas_dir)
    """
    schema_name = TABLE_SCHEMAS.get(table)
    if schema_name is None:
        return None

    schema_path = Path(schemas_dir or config.paths.schemas_dir) / schema_name
    key = str(schema_path)
    if key not in _validators:
        _validators[key] = SchemaValidator(schema_path)
    return _validators[key]


def validate_record(table: str, row: dict) -> ValidationResult:
    """
    Validate a table row.

    Tables without a schema always validate.
    """
    validator = get_table_validator(table)
    if validator is None:
        return ValidationResult(valid=True, errors=[], data=row)
    return validator.validate(row)
