from pathlib import Path

import pytest

from api_validator.assertions import ApiValidator
from api_validator.capture import RecordedCapture, RequestsCapture, WireRequest, WireResponse
from api_validator.errors import ConstraintViolation
from api_validator.schema.loader import compile_document, load_schema

FIXTURES = Path(__file__).parent / "fixtures"
JSON = {"Content-Type": "application/json"}


@pytest.fixture(scope="module")
def petstore():
    return load_schema(FIXTURES / "petstore.yaml")


def _object_response(field):
    return {
        "description": "ok",
        "content": {"application/json": {"schema": {"type": "object", "required": [field]}}},
    }


def _validator(document, method, uri, status=200, body=None, request_headers=None, request_body=None, **kwargs):
    capture = RecordedCapture(
        WireRequest(method, uri, request_headers or {}, request_body),
        WireResponse(status, JSON, body),
    )
    return ApiValidator(document, capture, **kwargs)


class TestSeeResponseIsValid:
    def test_valid_response(self, petstore):
        validator = _validator(petstore, "GET", "/pets/7", body='{"id": 7, "name": "Rex"}')
        validator.see_response_is_valid()
        assert validator.error_message == ""

    def test_missing_field_fails_naming_it(self, petstore):
        validator = _validator(petstore, "GET", "/pets/7", body='{"id": 7}')
        with pytest.raises(pytest.fail.Exception) as excinfo:
            validator.see_response_is_valid()
        assert "body.name: missing required field 'name'" in str(excinfo.value)
        assert validator.error_message == "body.name: missing required field 'name'"

    def test_failure_message_is_the_violation_summary(self, petstore):
        validator = _validator(petstore, "GET", "/pets/7", body='{"id": "seven"}')
        result = validator.validate_response()
        with pytest.raises(ConstraintViolation) as violation:
            result.raise_for_errors()
        assert violation.value.result is result
        with pytest.raises(pytest.fail.Exception):
            validator.see_response_is_valid()
        assert validator.error_message == str(violation.value)
        assert "body.id" in validator.error_message

    def test_read_only_field_required_in_responses(self, petstore):
        validator = _validator(
            petstore, "POST", "/pets", status=201, body='{"name": "Rex"}',
            request_headers={**JSON, "X-Api-Key": "k"}, request_body='{"name": "Rex"}',
        )
        validator.see_request_is_valid()
        with pytest.raises(pytest.fail.Exception, match="body.id"):
            validator.see_response_is_valid()

    def test_undeclared_status(self, petstore):
        result = _validator(petstore, "GET", "/pets/7", status=204).validate_response()
        assert result.errors[0].rule == "ResponseSpecNotFound"

    def test_malformed_body_is_reported(self, petstore):
        result = _validator(petstore, "GET", "/pets/7", body="{not json").validate_response()
        assert result.errors[0].rule == "BodyDecodeError"
        assert "not valid application/json" in result.summary()

    def test_literal_numeric_template(self):
        document = compile_document({
            "openapi": "3.0.0",
            "paths": {"/reports/2024": {"get": {"responses": {"200": {
                "description": "ok",
                "content": {"application/json": {"schema": {"type": "object", "required": ["up"]}}},
            }}}}},
        })
        validator = _validator(document, "GET", "/reports/2024", body='{"up": true}')
        validator.see_response_is_valid()

    def test_undecodable_request_body_does_not_block_the_response(self):
        document = compile_document({
            "openapi": "3.0.0",
            "paths": {"/pets": {"post": {
                "requestBody": {"content": {"application/json": {"schema": {"type": "object"}}}},
                "responses": {"400": {
                    "description": "bad request",
                    "content": {"application/json": {"schema": {
                        "type": "object",
                        "required": ["code", "message"],
                    }}},
                }},
            }}},
        })
        validator = _validator(
            document, "POST", "/pets", status=400, body='{"code": 400, "message": "bad json"}',
            request_headers=JSON, request_body="{not json",
        )
        validator.see_response_is_valid()
        assert validator.validate_request().errors[0].rule == "BodyDecodeError"

    def test_literal_template_beats_placeholder(self):
        document = compile_document({
            "openapi": "3.0.0",
            "paths": {
                "/v/2024": {"get": {"responses": {"200": _object_response("lit")}}},
                "/v/{year}": {"get": {
                    "parameters": [{"name": "year", "in": "path", "required": True, "schema": {"type": "integer"}}],
                    "responses": {"200": _object_response("tpl")},
                }},
            },
        })
        validator = _validator(document, "GET", "/v/2024", body='{"lit": 1}')
        validator.see_request_and_response_are_valid()
        assert validator.error_message == ""
        with pytest.raises(pytest.fail.Exception, match="body.lit"):
            _validator(document, "GET", "/v/2024", body='{"tpl": 1}').see_response_is_valid()


class TestSeeRequestIsValid:
    def test_valid_request(self, petstore):
        _validator(petstore, "GET", "/pets/7").see_request_is_valid()

    def test_unknown_operation(self, petstore):
        validator = _validator(petstore, "GET", "/owners/7")
        result = validator.validate_request()
        assert result.errors[0].rule == "OperationNotFound"
        with pytest.raises(pytest.fail.Exception, match="No operation found for GET /owners/7"):
            validator.see_request_is_valid()

    def test_method_not_allowed(self, petstore):
        result = _validator(petstore, "PATCH", "/pets/7").validate_request()
        assert result.errors[0].rule == "MethodNotAllowed"

    def test_reject_undeclared_body(self, petstore):
        validator = _validator(
            petstore, "GET", "/pets/7", request_headers=JSON, request_body="{}", reject_undeclared_body=True
        )
        with pytest.raises(pytest.fail.Exception, match="does not declare a request body"):
            validator.see_request_is_valid()

    def test_nothing_captured(self, petstore):
        validator = ApiValidator(petstore, RequestsCapture())
        result = validator.validate_request()
        assert result.errors[0].rule == "CaptureError"


class TestSeeRequestAndResponseAreValid:
    def test_both_valid(self, petstore):
        _validator(petstore, "GET", "/pets/7", body='{"id": 7, "name": "Rex"}').see_request_and_response_are_valid()

    def test_stops_at_the_request(self, petstore):
        validator = _validator(
            petstore, "POST", "/pets", status=201, body="{}",
            request_headers=JSON, request_body='{"name": "Rex"}',
        )
        with pytest.raises(pytest.fail.Exception):
            validator.see_request_and_response_are_valid()
        assert "security" in validator.error_message
        assert "body.name" not in validator.error_message


class TestOperationAddress:
    def test_numeric_segments_are_generalized(self, petstore):
        validator = _validator(petstore, "get", "/orders/12/items/3")
        address = validator.get_operation_address(validator.get_request())
        assert address.path == "/orders/{id}/items/{id}"
        assert address.method == "get"
        assert str(address) == "GET /orders/{id}/items/{id}"

    def test_response_matched_through_normalized_path(self, petstore):
        validator = _validator(petstore, "GET", "/orders/12/items/3", body='{"items": [{"price": -1}]}')
        result = validator.validate_response()
        assert [e.path for e in result.errors] == ["body.items[0].price"]
