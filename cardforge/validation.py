"""Input validation results and a JSON Schema backed validator factory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Mapping

from jsonschema import Draft202012Validator, ValidationError


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one input; ``errors`` maps field names to messages."""

    valid: bool
    errors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def invalid(cls, errors: Mapping[str, str]) -> "ValidationResult":
        return cls(valid=False, errors=dict(errors))


Validator = Callable[[Any], ValidationResult]


def _join(path: Iterable[Any]) -> str:
    return ".".join(str(part) for part in path) or "input"


def _collect_errors(raw_errors: Iterable[ValidationError]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for error in sorted(raw_errors, key=lambda item: [str(part) for part in item.absolute_path]):
        parent = list(error.absolute_path)
        if error.validator == "required" and isinstance(error.instance, Mapping):
            # missing keys are reported against the enclosing object
            for name in error.validator_value:
                if name not in error.instance:
                    errors.setdefault(_join(parent + [name]), f"{name!r} is a required property")
            continue
        errors.setdefault(_join(parent), error.message)
    return errors


def schema_validator(schema: Mapping[str, Any]) -> Validator:
    """Return a validator reporting the first JSON Schema violation per field."""

    Draft202012Validator.check_schema(schema)
    validator = Draft202012Validator(schema)

    def _validate(candidate: Any) -> ValidationResult:
        errors = _collect_errors(validator.iter_errors(candidate))
        if errors:
            return ValidationResult.invalid(errors)
        return ValidationResult.ok()

    return _validate


def require_text(*fields: str, message: str = "This field is required") -> Validator:
    """Validator rejecting inputs whose *fields* are missing or blank strings."""

    def _validate(candidate: Any) -> ValidationResult:
        errors: Dict[str, str] = {}
        for name in fields:
            value = candidate.get(name) if isinstance(candidate, Mapping) else getattr(candidate, name, None)
            if not isinstance(value, str) or not value.strip():
                errors[name] = message
        if errors:
            return ValidationResult.invalid(errors)
        return ValidationResult.ok()

    return _validate


__all__ = ["ValidationResult", "Validator", "require_text", "schema_validator"]
