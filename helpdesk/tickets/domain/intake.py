"""
Request Data Intake
===================

Validates a ticket's structured `request_data` against the field schema
declared by its category, producing typed values instead of opaque JSON.

Supported field types:
- text, textarea, email -> string
- number                -> int or float
- boolean, checkbox     -> bool
- select, enum          -> one of the declared options
- date                  -> ISO-8601 calendar date

A `rules.regex` that does not compile is a broken schema and raises
`ConfigurationException`, not a field error.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Union

from helpdesk.core import ConfigurationException, ValidationException
from helpdesk.tickets.domain.entities import FieldSpec

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

STRING_TYPES = {"text", "textarea", "email"}
NUMBER_TYPES = {"number"}
BOOLEAN_TYPES = {"boolean", "checkbox"}
ENUM_TYPES = {"select", "enum"}
DATE_TYPES = {"date"}

Scalar = Union[str, int, float, bool, date]


@dataclass(frozen=True)
class TypedValue:
    """A validated intake value tagged with its kind."""
    kind: str
    value: Scalar

    def to_json(self) -> Any:
        if isinstance(self.value, date):
            return self.value.isoformat()
        return self.value


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and raw.strip() == "")


def _coerce(spec: FieldSpec, raw: Any) -> TypedValue:
    """Coerce one raw value; raises ValueError with a user-facing reason."""
    field_type = spec.type.lower()
    rules = spec.rules

    if field_type in NUMBER_TYPES:
        if isinstance(raw, bool):
            raise ValueError("must be a number")
        if isinstance(raw, (int, float)):
            number = raw
        else:
            try:
                text = str(raw).strip().replace(",", ".")
                number = float(text) if any(c in text for c in ".eE") else int(text)
            except ValueError:
                raise ValueError("must be a number") from None
        if rules.min is not None and number < rules.min:
            raise ValueError(f"must be >= {rules.min}")
        if rules.max is not None and number > rules.max:
            raise ValueError(f"must be <= {rules.max}")
        return TypedValue("number", number)

    if field_type in BOOLEAN_TYPES:
        if isinstance(raw, bool):
            return TypedValue("boolean", raw)
        lowered = str(raw).strip().lower()
        if lowered in ("true", "1", "sim", "yes"):
            return TypedValue("boolean", True)
        if lowered in ("false", "0", "nao", "não", "no"):
            return TypedValue("boolean", False)
        raise ValueError("must be true or false")

    if field_type in ENUM_TYPES:
        value = str(raw)
        if spec.options and value not in spec.options:
            raise ValueError(f"must be one of {list(spec.options)}")
        return TypedValue("enum", value)

    if field_type in DATE_TYPES:
        if isinstance(raw, date):
            return TypedValue("date", raw)
        try:
            return TypedValue("date", date.fromisoformat(str(raw).strip()[:10]))
        except ValueError:
            raise ValueError("must be a date (YYYY-MM-DD)") from None

    # Anything else is free text
    value = str(raw).strip()
    if field_type == "email" and not _EMAIL_RE.match(value):
        raise ValueError("must be a valid e-mail address")
    if rules.min_len is not None and len(value) < rules.min_len:
        raise ValueError(f"must have at least {rules.min_len} characters")
    if rules.max_len is not None and len(value) > rules.max_len:
        raise ValueError(f"must have at most {rules.max_len} characters")
    if rules.regex:
        try:
            matched = re.fullmatch(rules.regex, value)
        except re.error as e:
            raise ConfigurationException(
                f"Invalid regex in the form schema for field {spec.key}",
                {"regex": rules.regex, "error": str(e)},
            ) from e
        if not matched:
            raise ValueError("does not match the expected format")
    return TypedValue("string", value)


def validate_request_data(schema: List[FieldSpec], data: Dict[str, Any]) -> Dict[str, TypedValue]:
    """
    Validate `data` against `schema`.

    Raises:
        ValidationException: with one message per offending field key
    """
    data = data or {}
    errors: Dict[str, str] = {}
    values: Dict[str, TypedValue] = {}
    declared = {spec.key: spec for spec in schema}

    for key in data:
        if key not in declared:
            errors[key] = "unknown field"

    for spec in schema:
        raw = data.get(spec.key)
        if _is_blank(raw):
            if spec.required:
                errors[spec.key] = f"{spec.label} is required"
            continue
        try:
            values[spec.key] = _coerce(spec, raw)
        except ValueError as e:
            errors[spec.key] = f"{spec.label} {e}"

    if errors:
        raise ValidationException("Invalid request data", {f"request_data.{k}": v for k, v in errors.items()})
    return values


def serialize_request_data(values: Dict[str, TypedValue]) -> Dict[str, Any]:
    """JSON-ready mapping stored on the ticket row."""
    return {key: value.to_json() for key, value in values.items()}
