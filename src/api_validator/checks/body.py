"""Body validation shared by the request and response checkers."""

from api_validator.engine import validate
from api_validator.message import FORM_MEDIA_TYPE, HttpMessage, media_type
from api_validator.results import ValidationResult
from api_validator.schema.base import Constraint

from .params import coerce_fields


def select_media_type(content: dict[str, Constraint | None], content_type: str) -> str | None:
    """Pick the declared media type for ``content_type``: exact, then ``type/*``, then ``*/*``."""
    declared = {media_type(key): key for key in content}
    if not content_type:
        # no Content-Type header: only unambiguous when a single type is declared
        return next(iter(content)) if len(content) == 1 else None
    if content_type in declared:
        return declared[content_type]
    wildcard = content_type.split("/", 1)[0] + "/*"
    if wildcard in declared:
        return declared[wildcard]
    return declared.get("*/*")


def check_body(message: HttpMessage, content: dict[str, Constraint | None], direction: str) -> ValidationResult:
    """Validate a present body against the constraint of its declared media type."""
    if not content:
        return ValidationResult.ok()

    key = select_media_type(content, message.content_type)
    if key is None:
        declared = ", ".join(sorted(content))
        return ValidationResult.failure(
            "body",
            "contentType",
            f"content type {message.content_type or '(none)'} is not one of: {declared}",
            expected=declared,
            actual=message.content_type,
        )

    constraint = content[key]
    if constraint is None:
        return ValidationResult.ok()

    if message.body_decoded:
        value = message.body
        if media_type(key) == FORM_MEDIA_TYPE and isinstance(value, dict):
            value = coerce_fields(value, constraint)
        return validate(value, constraint, "body", direction=direction)

    # undecoded bodies can only be checked against plain string schemas
    if constraint.kind == "string":
        return validate(message.text, constraint, "body", direction=direction)
    return ValidationResult.ok()
