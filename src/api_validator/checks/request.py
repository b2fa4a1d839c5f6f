"""Request checker: parameters, security and body of one request."""

import logging

from api_validator.engine import validate
from api_validator.matcher import MatchedOperation
from api_validator.message import CanonicalRequest
from api_validator.results import ValidationResult
from api_validator.schema.base import Operation, ParameterSpec, SchemaDocument, SecurityScheme

from .body import check_body
from .params import coerce

logger = logging.getLogger(__name__)


def check_request(
    request: CanonicalRequest,
    match: MatchedOperation,
    document: SchemaDocument | None = None,
    *,
    reject_undeclared_body: bool = False,
) -> ValidationResult:
    """Validate a request against its matched operation.

    Security requirements are only checked when ``document`` is given, since
    the scheme definitions live on the document.
    """
    operation = match.operation
    results = [check_parameter(request, match, spec) for spec in operation.parameters]
    if document is not None:
        results.append(check_security(request, operation, document.security_schemes))
    results.append(check_request_body(request, operation, reject_undeclared_body=reject_undeclared_body))

    result = ValidationResult.merge(*results)
    if not result.valid:
        logger.debug("%s failed request validation: %s", operation.address, result.summary())
    return result


def check_parameter(request: CanonicalRequest, match: MatchedOperation, spec: ParameterSpec) -> ValidationResult:
    path = f"{spec.location}.{spec.name}"

    if spec.location == "path":
        if spec.name not in match.path_params:
            # matched through a normalized placeholder; nothing concrete to check
            return ValidationResult.ok()
        raw = match.path_params[spec.name]
    elif spec.location == "query":
        raw = request.query_values(spec.name) or None
    elif spec.location == "header":
        raw = request.header(spec.name)
    else:
        raw = request.cookies.get(spec.name)

    if raw is None:
        if spec.required:
            return ValidationResult.failure(
                path,
                "required",
                f"missing required {spec.location} parameter '{spec.name}'",
                expected="present",
                actual="missing",
            )
        return ValidationResult.ok()

    value = coerce(raw, spec.constraint, explode=spec.explode)
    return validate(value, spec.constraint, path, direction="request")


def check_request_body(
    request: CanonicalRequest,
    operation: Operation,
    *,
    reject_undeclared_body: bool = False,
) -> ValidationResult:
    spec = operation.request_body
    if spec is None:
        if request.has_body and reject_undeclared_body:
            return ValidationResult.failure(
                "body", "body", f"{operation.address} does not declare a request body"
            )
        return ValidationResult.ok()

    if not request.has_body:
        if spec.required:
            return ValidationResult.failure("body", "required", "request body is required")
        return ValidationResult.ok()

    return check_body(request, spec.content, "request")


def check_security(
    request: CanonicalRequest,
    operation: Operation,
    schemes: dict[str, SecurityScheme],
) -> ValidationResult:
    """Pass when at least one security alternative is fully satisfied."""
    if not operation.security:
        return ValidationResult.ok()
    for alternative in operation.security:
        if all(_satisfied(request, schemes.get(name)) for name in alternative):
            return ValidationResult.ok()

    options = " or ".join(" + ".join(alternative) for alternative in operation.security)
    return ValidationResult.failure(
        "security",
        "security",
        f"request does not satisfy any security requirement ({options})",
        expected=options,
    )


def _satisfied(request: CanonicalRequest, scheme: SecurityScheme | None) -> bool:
    if scheme is None:
        return False
    if scheme.type == "apiKey":
        if scheme.location == "query":
            return bool(request.query_values(scheme.param_name))
        if scheme.location == "cookie":
            return scheme.param_name in request.cookies
        return request.header(scheme.param_name) is not None

    authorization = request.header("authorization")
    if authorization is None:
        return False
    expected = scheme.scheme or ("basic" if scheme.type == "basic" else "")
    if expected:
        return authorization.lower().startswith(expected + " ")
    return True
