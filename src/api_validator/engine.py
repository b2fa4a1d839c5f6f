"""Constraint validator engine.

Walks a decoded JSON value alongside a Constraint tree and collects every
violation. The walk is pure: the same value and constraint always produce the
same ValidationResult.
"""

import base64
import binascii
import json
import re
from functools import lru_cache
from typing import Any, Callable

from jsonschema import FormatChecker

from api_validator.results import ValidationError, ValidationResult
from api_validator.schema.base import Constraint

INT32_RANGE = (-(2**31), 2**31 - 1)
INT64_RANGE = (-(2**63), 2**63 - 1)

_FORMAT_CHECKER = FormatChecker()


def validate(value: Any, constraint: Constraint, path: str = "body", *, direction: str | None = None) -> ValidationResult:
    """Validate ``value`` against ``constraint``.

    ``path`` prefixes every reported location. ``direction`` is ``"request"``
    or ``"response"``; it relaxes ``required`` for read-only properties in
    requests and write-only properties in responses.
    """
    errors: list[ValidationError] = []
    _check(value, constraint, path, direction, errors)
    return ValidationResult(errors=tuple(errors))


def json_type(value: Any) -> str:
    """Name of the JSON type of a decoded value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "integer" if value.is_integer() else "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _type_matches(actual: str, expected: str) -> bool:
    return actual == expected or (expected == "number" and actual == "integer")


def _type_ok(actual: str, c: Constraint) -> bool:
    if c.kind == "any":
        return True
    if c.kind == "union":
        return any(_type_matches(actual, t) for t in c.types)
    return _type_matches(actual, c.kind)


def _error(path: str, rule: str, message: str, expected: Any = "", actual: Any = "") -> ValidationError:
    return ValidationError(path=path, rule=rule, message=message, expected=str(expected), actual=str(actual))


def _summary(value: Any, limit: int = 60) -> str:
    try:
        text = json.dumps(value, ensure_ascii=False, default=repr)
    except ValueError:
        text = repr(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _json_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_json_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(_json_equal(x, y) for x, y in zip(a, b))
    return a == b


def _check(value: Any, c: Constraint, path: str, direction: str | None, errors: list[ValidationError]) -> None:
    if value is None and c.nullable:
        return

    actual = json_type(value)
    if not _type_ok(actual, c):
        errors.append(
            _error(path, "type", f"expected {c.describe()}, got {actual} {_summary(value)}", c.describe(), _summary(value))
        )
        return

    if c.enum is not None and not any(_json_equal(value, option) for option in c.enum):
        options = ", ".join(_summary(option) for option in c.enum)
        errors.append(_error(path, "enum", f"{_summary(value)} is not one of [{options}]", options, _summary(value)))

    keyword_check = _KEYWORD_CHECKS.get(actual)
    if keyword_check is not None:
        keyword_check(value, c, path, direction, errors)

    _check_composition(value, c, path, direction, errors)


def _skip_required(prop: Constraint, direction: str | None) -> bool:
    return (direction == "request" and prop.read_only) or (direction == "response" and prop.write_only)


def _check_object(value: dict, c: Constraint, path: str, direction: str | None, errors: list[ValidationError]) -> None:
    for name in c.required:
        if name in value:
            continue
        prop = c.properties.get(name)
        if prop is not None and _skip_required(prop, direction):
            continue
        errors.append(_error(_join(path, name), "required", f"missing required field '{name}'", "present", "missing"))

    for name, item in value.items():
        child_path = _join(path, str(name))
        if name in c.properties:
            _check(item, c.properties[name], child_path, direction, errors)
        elif c.additional_properties is False:
            errors.append(_error(child_path, "additionalProperties", f"unexpected field '{name}'", "absent", _summary(item)))
        elif isinstance(c.additional_properties, Constraint):
            _check(item, c.additional_properties, child_path, direction, errors)

    count = len(value)
    if c.min_properties is not None and count < c.min_properties:
        errors.append(_error(path, "minProperties", f"has {count} fields, expected at least {c.min_properties}", c.min_properties, count))
    if c.max_properties is not None and count > c.max_properties:
        errors.append(_error(path, "maxProperties", f"has {count} fields, expected at most {c.max_properties}", c.max_properties, count))


def _check_array(value: list, c: Constraint, path: str, direction: str | None, errors: list[ValidationError]) -> None:
    count = len(value)
    if c.min_items is not None and count < c.min_items:
        errors.append(_error(path, "minItems", f"has {count} items, expected at least {c.min_items}", c.min_items, count))
    if c.max_items is not None and count > c.max_items:
        errors.append(_error(path, "maxItems", f"has {count} items, expected at most {c.max_items}", c.max_items, count))
    if c.unique_items:
        for i, item in enumerate(value):
            if any(_json_equal(item, earlier) for earlier in value[:i]):
                errors.append(_error(f"{path}[{i}]", "uniqueItems", f"duplicate item {_summary(item)}", "unique", _summary(item)))
    if c.items is not None:
        for i, item in enumerate(value):
            _check(item, c.items, f"{path}[{i}]", direction, errors)


def _check_string(value: str, c: Constraint, path: str, direction: str | None, errors: list[ValidationError]) -> None:
    length = len(value)
    if c.min_length is not None and length < c.min_length:
        errors.append(_error(path, "minLength", f"length {length} is shorter than {c.min_length}", c.min_length, length))
    if c.max_length is not None and length > c.max_length:
        errors.append(_error(path, "maxLength", f"length {length} is longer than {c.max_length}", c.max_length, length))
    if c.pattern is not None and not _compiled(c.pattern).search(value):
        errors.append(_error(path, "pattern", f"{_summary(value)} does not match pattern {c.pattern!r}", c.pattern, _summary(value)))
    if c.format and not _format_ok(value, c.format):
        errors.append(_error(path, "format", f"{_summary(value)} is not a valid {c.format}", c.format, _summary(value)))


def _check_number(value: int | float, c: Constraint, path: str, direction: str | None, errors: list[ValidationError]) -> None:
    if c.minimum is not None:
        if c.exclusive_minimum and value <= c.minimum:
            errors.append(_error(path, "minimum", f"{value} must be greater than {c.minimum}", f"> {c.minimum}", value))
        elif value < c.minimum:
            errors.append(_error(path, "minimum", f"{value} is less than the minimum {c.minimum}", f">= {c.minimum}", value))
    if c.maximum is not None:
        if c.exclusive_maximum and value >= c.maximum:
            errors.append(_error(path, "maximum", f"{value} must be less than {c.maximum}", f"< {c.maximum}", value))
        elif value > c.maximum:
            errors.append(_error(path, "maximum", f"{value} is greater than the maximum {c.maximum}", f"<= {c.maximum}", value))
    if c.multiple_of and not _is_multiple(value, c.multiple_of):
        errors.append(_error(path, "multipleOf", f"{value} is not a multiple of {c.multiple_of}", c.multiple_of, value))

    bounds = {"int32": INT32_RANGE, "int64": INT64_RANGE}.get(c.format or "")
    if bounds and not bounds[0] <= value <= bounds[1]:
        errors.append(_error(path, "format", f"{value} does not fit in {c.format}", c.format, value))


def _check_composition(value: Any, c: Constraint, path: str, direction: str | None, errors: list[ValidationError]) -> None:
    for sub in c.all_of:
        _check(value, sub, path, direction, errors)

    if c.any_of:
        branches = [validate(value, sub, path, direction=direction) for sub in c.any_of]
        if not any(branch.valid for branch in branches):
            errors.append(_error(path, "anyOf", f"does not match any of the {len(branches)} allowed schemas"))
            for branch in branches:
                errors.extend(branch.errors)

    if c.one_of:
        branches = [validate(value, sub, path, direction=direction) for sub in c.one_of]
        passing = sum(1 for branch in branches if branch.valid)
        if passing == 0:
            errors.append(_error(path, "oneOf", f"does not match any of the {len(branches)} allowed schemas", "exactly one", 0))
            for branch in branches:
                errors.extend(branch.errors)
        elif passing > 1:
            errors.append(_error(path, "oneOf", f"matches {passing} schemas, expected exactly one", "exactly one", passing))

    if c.negated is not None and validate(value, c.negated, path, direction=direction).valid:
        errors.append(_error(path, "not", "must not match the excluded schema"))


def _is_multiple(value: int | float, divisor: int | float) -> bool:
    if isinstance(value, int) and isinstance(divisor, int):
        return value % divisor == 0
    quotient = value / divisor
    return abs(quotient - round(quotient)) < 1e-9


def _format_ok(value: str, fmt: str) -> bool:
    if fmt == "byte":
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            return False
        return True
    return _FORMAT_CHECKER.conforms(value, fmt)


@lru_cache(maxsize=256)
def _compiled(pattern: str) -> re.Pattern:
    return re.compile(pattern)


_KEYWORD_CHECKS: dict[str, Callable[..., None]] = {
    "object": _check_object,
    "array": _check_array,
    "string": _check_string,
    "number": _check_number,
    "integer": _check_number,
}
