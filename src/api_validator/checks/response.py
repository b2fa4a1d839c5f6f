"""Response checker: status selection, headers and body of one response."""

import logging

from api_validator.engine import validate
from api_validator.errors import ResponseSpecNotFound
from api_validator.message import CanonicalResponse
from api_validator.results import ValidationResult
from api_validator.schema.base import Operation, ResponseSpec

from .body import check_body
from .params import coerce

logger = logging.getLogger(__name__)

# Statuses that never carry a body.
BODYLESS_STATUSES = {204, 304}


def select_response_spec(operation: Operation, status_code: int) -> ResponseSpec:
    """Pick the response declared for ``status_code``: exact, then ``NXX``, then ``default``."""
    key = str(status_code)
    for candidate in (key, f"{key[0]}XX", "default"):
        if candidate in operation.responses:
            return operation.responses[candidate]
    raise ResponseSpecNotFound(str(operation.address), status_code)


def check_response(response: CanonicalResponse, operation: Operation) -> ValidationResult:
    """Validate a response against the operation it answers."""
    try:
        spec = select_response_spec(operation, response.status_code)
    except ResponseSpecNotFound as e:
        return ValidationResult.failure(
            "status",
            "ResponseSpecNotFound",
            str(e),
            expected=", ".join(sorted(operation.responses)),
            actual=str(response.status_code),
        )

    results = [_check_headers(response, spec)]
    if response.has_body:
        results.append(check_body(response, spec.content, "response"))
    elif _expects_body(operation, response.status_code, spec):
        results.append(
            ValidationResult.failure(
                "body",
                "required",
                f"response body is empty but {operation.address} declares content for {response.status_code}",
            )
        )

    result = ValidationResult.merge(*results)
    if not result.valid:
        logger.debug("%s failed response validation: %s", operation.address, result.summary())
    return result


def _check_headers(response: CanonicalResponse, spec: ResponseSpec) -> ValidationResult:
    results = []
    for key, header in spec.headers.items():
        if key == "content-type":
            continue
        path = f"header.{header.name}"
        raw = response.header(header.name)
        if raw is None:
            if header.required:
                results.append(
                    ValidationResult.failure(path, "required", f"missing required header '{header.name}'")
                )
            continue
        value = coerce(raw, header.constraint, explode=False)
        results.append(validate(value, header.constraint, path, direction="response"))
    return ValidationResult.merge(*results)


def _expects_body(operation: Operation, status_code: int, spec: ResponseSpec) -> bool:
    if operation.method == "head" or status_code in BODYLESS_STATUSES:
        return False
    return any(constraint is not None for constraint in spec.content.values())
