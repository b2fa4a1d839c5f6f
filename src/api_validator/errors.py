"""Exception taxonomy.

Configuration and schema errors are fatal and abort the test run. Everything
else describes a mismatch between captured traffic and the schema and is
turned into a failed assertion by the caller.
"""


class ApiValidatorError(Exception):
    """Base class for every error raised by api-validator."""


class ConfigError(ApiValidatorError):
    """The schema path is missing, unset or points to nothing."""


class SchemaError(ApiValidatorError):
    """The OpenAPI document is unreadable, malformed or incomplete."""


class CaptureError(ApiValidatorError):
    """No HTTP exchange has been captured yet."""


class OperationNotFound(ApiValidatorError):
    """No path template matches the request path."""

    def __init__(self, path: str, method: str):
        self.path = path
        self.method = method.lower()
        super().__init__(f"No operation found for {method.upper()} {path}")


class MethodNotAllowed(ApiValidatorError):
    """A path template matches but does not declare the request method."""

    def __init__(self, path: str, method: str, allowed: list[str]):
        self.path = path
        self.method = method.lower()
        self.allowed = sorted(allowed)
        allowed_text = ", ".join(m.upper() for m in self.allowed)
        super().__init__(
            f"Method {method.upper()} not allowed for {path} (allowed: {allowed_text})"
        )


class ResponseSpecNotFound(ApiValidatorError):
    """The operation declares no response for the captured status code."""

    def __init__(self, address: str, status_code: int):
        self.address = address
        self.status_code = status_code
        super().__init__(f"No response declared for status {status_code} of {address}")


class BodyDecodeError(ApiValidatorError):
    """A body does not parse as its declared content type."""

    def __init__(self, content_type: str, reason: str):
        self.content_type = content_type
        self.reason = reason
        super().__init__(f"Body is not valid {content_type}: {reason}")


class ConstraintViolation(ApiValidatorError):
    """One or more schema rules were violated."""

    def __init__(self, result):
        self.result = result
        super().__init__(result.summary())
