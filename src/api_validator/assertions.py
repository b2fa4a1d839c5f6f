"""Assertions over the last captured HTTP exchange."""

import logging

import pytest

from api_validator.capture import HttpCapture
from api_validator.checks.request import check_request
from api_validator.checks.response import check_response
from api_validator.errors import (
    BodyDecodeError,
    CaptureError,
    ConstraintViolation,
    MethodNotAllowed,
    OperationNotFound,
)
from api_validator.matcher import MatchedOperation, OperationMatcher, normalize_path
from api_validator.message import (
    CanonicalRequest,
    CanonicalResponse,
    request_target,
    to_canonical_request,
    to_canonical_response,
)
from api_validator.results import ValidationResult
from api_validator.schema.base import OperationAddress, SchemaDocument

logger = logging.getLogger(__name__)

# Errors describing the captured traffic rather than the setup; they fail the
# assertion instead of escaping.
REPORTED_ERRORS = (CaptureError, OperationNotFound, MethodNotAllowed, BodyDecodeError)


class ApiValidator:
    """Validate the last captured request and response against a schema."""

    def __init__(
        self,
        document: SchemaDocument,
        capture: HttpCapture,
        *,
        reject_undeclared_body: bool = False,
    ):
        self.document = document
        self.capture = capture
        self.reject_undeclared_body = reject_undeclared_body
        self.matcher = OperationMatcher(document)
        self.error_message = ""

    def get_request(self) -> CanonicalRequest:
        """The last captured request in canonical form."""
        return to_canonical_request(*self.capture.last_request())

    def get_response(self) -> CanonicalResponse:
        """The last captured response in canonical form."""
        return to_canonical_response(*self.capture.last_response())

    def get_operation_address(self, request: CanonicalRequest) -> OperationAddress:
        """Address of the request with numeric path segments generalized to ``{id}``."""
        return OperationAddress(path=normalize_path(request.path), method=request.method.lower())

    def match(self, request: CanonicalRequest) -> MatchedOperation:
        return self.matcher.match(request.path, request.method)

    def validate_request(self) -> ValidationResult:
        try:
            request = self.get_request()
            match = self.match(request)
        except REPORTED_ERRORS as e:
            return _failed(e)
        return check_request(
            request,
            match,
            self.document,
            reject_undeclared_body=self.reject_undeclared_body,
        )

    def validate_response(self) -> ValidationResult:
        try:
            # only the target is needed; the request body may be undecodable
            method, uri, *_ = self.capture.last_request()
            method, path = request_target(method, uri)
            try:
                match = self.matcher.match(path, method)
            except (OperationNotFound, MethodNotAllowed):
                match = self.matcher.match(normalize_path(path), method)
            response = self.get_response()
        except REPORTED_ERRORS as e:
            return _failed(e)
        return check_response(response, match.operation)

    def see_request_is_valid(self) -> None:
        """Fail the test unless the last request conforms to the schema."""
        self._assert_valid(self.validate_request())

    def see_response_is_valid(self) -> None:
        """Fail the test unless the last response conforms to the schema."""
        self._assert_valid(self.validate_response())

    def see_request_and_response_are_valid(self) -> None:
        self.see_request_is_valid()
        self.see_response_is_valid()

    def _assert_valid(self, result: ValidationResult) -> None:
        try:
            result.raise_for_errors()
        except ConstraintViolation as e:
            self.error_message = str(e)
            logger.debug("API validation failed: %s", self.error_message)
            pytest.fail(self.error_message, pytrace=False)
        self.error_message = ""


def _failed(error: Exception) -> ValidationResult:
    return ValidationResult.failure("", type(error).__name__, str(error))
