import pytest

from api_validator.engine import json_type, validate
from api_validator.schema.base import Constraint
from api_validator.schema.loader import compile_constraint


def _rules(result) -> list[str]:
    return [e.rule for e in result.errors]


PET = compile_constraint({
    "type": "object",
    "required": ["id", "name"],
    "properties": {
        "id": {"type": "integer", "readOnly": True},
        "name": {"type": "string"},
        "secret": {"type": "string", "writeOnly": True},
    },
})


class TestJsonType:
    @pytest.mark.parametrize("value, expected", [
        (None, "null"),
        (True, "boolean"),
        (3, "integer"),
        (3.0, "integer"),
        (3.5, "number"),
        ("x", "string"),
        ([], "array"),
        ({}, "object"),
    ])
    def test_json_type(self, value, expected):
        assert json_type(value) == expected


class TestTypes:
    def test_integer_is_a_number(self):
        assert validate(7, Constraint(kind="number")).valid

    def test_number_is_not_an_integer(self):
        result = validate(7.5, Constraint(kind="integer"))
        assert _rules(result) == ["type"]

    def test_boolean_is_not_a_number(self):
        assert not validate(True, Constraint(kind="integer")).valid

    def test_type_error_message(self):
        result = validate("7", Constraint(kind="integer"), "body.id")
        assert str(result.errors[0]) == 'body.id: expected integer, got string "7"'

    def test_nullable(self):
        assert validate(None, Constraint(kind="string", nullable=True)).valid
        assert not validate(None, Constraint(kind="string")).valid

    def test_union(self):
        c = Constraint(kind="union", types=("string", "integer"))
        assert validate("a", c).valid
        assert validate(1, c).valid
        assert not validate(1.5, c).valid

    def test_any(self):
        assert validate({"a": [1]}, Constraint()).valid


class TestObjects:
    def test_missing_required_field(self):
        result = validate({"id": 7}, PET)
        assert _rules(result) == ["required"]
        assert result.errors[0].path == "body.name"
        assert "missing required field 'name'" in result.summary()

    def test_nested_paths(self):
        c = compile_constraint({
            "type": "object",
            "properties": {
                "items": {
                    "type": "array",
                    "items": {"type": "object", "properties": {"price": {"type": "number"}}},
                },
            },
        })
        result = validate({"items": [{"price": 1}, {"price": 2}, {"price": "3"}]}, c)
        assert [e.path for e in result.errors] == ["body.items[2].price"]

    def test_extra_fields_allowed_by_default(self):
        assert validate({"id": 1, "name": "Rex", "color": "brown"}, PET).valid

    def test_additional_properties_false(self):
        c = Constraint(kind="object", properties={"a": Constraint()}, additional_properties=False)
        result = validate({"a": 1, "b": 2}, c)
        assert _rules(result) == ["additionalProperties"]
        assert result.errors[0].path == "body.b"

    def test_additional_properties_schema(self):
        c = Constraint(kind="object", additional_properties=Constraint(kind="integer"))
        assert validate({"x": 1}, c).valid
        assert _rules(validate({"x": "1"}, c)) == ["type"]

    def test_read_only_not_required_in_requests(self):
        assert validate({"name": "Rex"}, PET, direction="request").valid
        assert not validate({"name": "Rex"}, PET, direction="response").valid

    def test_write_only_not_required_in_responses(self):
        c = compile_constraint({
            "type": "object",
            "required": ["secret"],
            "properties": {"secret": {"type": "string", "writeOnly": True}},
        })
        assert validate({}, c, direction="response").valid
        assert not validate({}, c, direction="request").valid

    def test_property_count(self):
        c = Constraint(kind="object", min_properties=1, max_properties=2)
        assert _rules(validate({}, c)) == ["minProperties"]
        assert _rules(validate({"a": 1, "b": 2, "c": 3}, c)) == ["maxProperties"]

    def test_collects_every_violation(self):
        c = compile_constraint({
            "type": "object",
            "required": ["a", "b"],
            "properties": {"c": {"type": "integer"}},
        })
        result = validate({"c": "x"}, c)
        assert _rules(result) == ["required", "required", "type"]


class TestArrays:
    def test_item_count(self):
        c = Constraint(kind="array", min_items=1, max_items=2)
        assert _rules(validate([], c)) == ["minItems"]
        assert _rules(validate([1, 2, 3], c)) == ["maxItems"]

    def test_unique_items(self):
        c = Constraint(kind="array", unique_items=True)
        result = validate([1, 2, 1], c)
        assert _rules(result) == ["uniqueItems"]
        assert result.errors[0].path == "body[2]"
        assert validate([1, True], c).valid

    def test_items(self):
        c = Constraint(kind="array", items=Constraint(kind="string"))
        result = validate(["a", 1, "b", 2], c)
        assert [e.path for e in result.errors] == ["body[1]", "body[3]"]


class TestStrings:
    def test_length(self):
        c = Constraint(kind="string", min_length=2, max_length=3)
        assert _rules(validate("a", c)) == ["minLength"]
        assert _rules(validate("abcd", c)) == ["maxLength"]
        assert validate("abc", c).valid

    def test_pattern_is_searched(self):
        c = Constraint(kind="string", pattern="[0-9]{3}")
        assert validate("abc123", c).valid
        assert _rules(validate("abc", c)) == ["pattern"]

    def test_anchored_pattern(self):
        c = Constraint(kind="string", pattern="^[a-z]+$")
        assert not validate("abc1", c).valid

    @pytest.mark.parametrize("fmt, good, bad", [
        ("uuid", "0f8fad5b-d9cb-469f-a165-70867728950e", "not-a-uuid"),
        ("date", "2024-02-29", "2023-02-29"),
        ("email", "rex@example.com", "rex"),
        ("ipv4", "10.0.0.1", "10.0.0.256"),
        ("byte", "aGVsbG8=", "not base64!"),
    ])
    def test_formats(self, fmt, good, bad):
        c = Constraint(kind="string", format=fmt)
        assert validate(good, c).valid
        assert _rules(validate(bad, c)) == ["format"]

    def test_unknown_format_is_ignored(self):
        assert validate("anything", Constraint(kind="string", format="pet-name")).valid


class TestNumbers:
    def test_inclusive_bounds(self):
        c = Constraint(kind="integer", minimum=1, maximum=10)
        assert validate(1, c).valid
        assert validate(10, c).valid
        assert _rules(validate(0, c)) == ["minimum"]
        assert _rules(validate(11, c)) == ["maximum"]

    def test_exclusive_bounds(self):
        c = Constraint(kind="number", minimum=0, exclusive_minimum=True, maximum=1, exclusive_maximum=True)
        assert validate(0.5, c).valid
        assert _rules(validate(0, c)) == ["minimum"]
        assert _rules(validate(1, c)) == ["maximum"]

    def test_multiple_of(self):
        assert validate(10, Constraint(kind="integer", multiple_of=5)).valid
        assert _rules(validate(7, Constraint(kind="integer", multiple_of=5))) == ["multipleOf"]
        assert validate(0.3, Constraint(kind="number", multiple_of=0.1)).valid

    def test_int32_range(self):
        c = Constraint(kind="integer", format="int32")
        assert validate(2**31 - 1, c).valid
        assert _rules(validate(2**31, c)) == ["format"]


class TestEnum:
    def test_enum(self):
        c = Constraint(kind="string", enum=("available", "sold"))
        assert validate("sold", c).valid
        result = validate("lost", c)
        assert _rules(result) == ["enum"]
        assert '"lost" is not one of ["available", "sold"]' in result.summary()

    def test_enum_distinguishes_booleans(self):
        c = Constraint(enum=(1, 2))
        assert validate(1, c).valid
        assert not validate(True, c).valid


class TestComposition:
    def test_all_of_collects_every_child(self):
        c = Constraint(all_of=(
            Constraint(kind="object", required=("a",)),
            Constraint(kind="object", required=("b",)),
        ))
        result = validate({}, c)
        assert [e.path for e in result.errors] == ["body.a", "body.b"]

    def test_any_of(self):
        c = Constraint(any_of=(Constraint(kind="string"), Constraint(kind="integer")))
        assert validate(1, c).valid
        result = validate(1.5, c)
        assert _rules(result) == ["anyOf", "type", "type"]

    def test_one_of_exactly_one(self):
        c = Constraint(one_of=(Constraint(kind="number"), Constraint(kind="integer")))
        assert validate(1.5, c).valid
        result = validate(2, c)
        assert _rules(result) == ["oneOf"]
        assert "matches 2 schemas" in result.summary()

    def test_one_of_none(self):
        c = Constraint(one_of=(Constraint(kind="string"), Constraint(kind="boolean")))
        assert _rules(validate(3, c)) == ["oneOf", "type", "type"]

    def test_not(self):
        c = Constraint(kind="integer", negated=Constraint(enum=(0,)))
        assert validate(1, c).valid
        assert _rules(validate(0, c)) == ["not"]


class TestPurity:
    def test_same_input_same_result(self):
        value = {"id": "x"}
        assert validate(value, PET) == validate(value, PET)
        assert value == {"id": "x"}
