"""Coerce string-typed wire values (path, query, header, form fields) to their declared types."""

from typing import Any

from api_validator.schema.base import Constraint

_TRUE = {"true"}
_FALSE = {"false"}


def coerce(raw: str | list[str], constraint: Constraint, explode: bool = True) -> Any:
    """Convert a raw parameter value according to ``constraint``.

    Values that do not convert are returned unchanged so the engine reports
    the type mismatch.
    """
    values = raw if isinstance(raw, list) else [raw]
    if _accepts(constraint, "array"):
        if values == [""]:
            values = []
        elif not explode:
            values = [part for value in values for part in value.split(",")]
        items = constraint.items or Constraint()
        return [coerce_scalar(value, items) for value in values]
    return coerce_scalar(values[0], constraint)


def coerce_scalar(text: Any, constraint: Constraint) -> Any:
    if not isinstance(text, str):
        return text
    kinds = constraint.types if constraint.kind == "union" else (constraint.kind,)
    for kind in kinds:
        converted = _CONVERTERS.get(kind, _keep)(text)
        if converted is not _NO_VALUE:
            return converted
    if constraint.nullable and text in ("", "null"):
        return None
    return text


def coerce_fields(form: dict[str, Any], constraint: Constraint) -> dict[str, Any]:
    """Coerce the fields of a decoded url-encoded form body."""
    result = {}
    for name, value in form.items():
        prop = constraint.properties.get(name)
        result[name] = coerce(value, prop) if prop is not None else value
    return result


def _accepts(constraint: Constraint, kind: str) -> bool:
    return constraint.kind == kind or kind in constraint.types


_NO_VALUE = object()


def _keep(text: str) -> Any:
    return _NO_VALUE


def _to_int(text: str) -> Any:
    try:
        return int(text)
    except ValueError:
        return _NO_VALUE


def _to_number(text: str) -> Any:
    converted = _to_int(text)
    if converted is not _NO_VALUE:
        return converted
    try:
        return float(text)
    except ValueError:
        return _NO_VALUE


def _to_bool(text: str) -> Any:
    lowered = text.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return _NO_VALUE


def _to_null(text: str) -> Any:
    return None if text in ("", "null") else _NO_VALUE


_CONVERTERS = {
    "integer": _to_int,
    "number": _to_number,
    "boolean": _to_bool,
    "null": _to_null,
}
