"""Compiled schema models.

The loader turns an OpenAPI 3.x or Swagger 2.0 document into these frozen
models. Nothing mutates them after load, so one SchemaDocument can be shared
by every test in a run.
"""

import re
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

Kind = Literal["object", "array", "string", "number", "integer", "boolean", "null", "union", "any"]
Location = Literal["path", "query", "header", "cookie"]

_FROZEN = ConfigDict(frozen=True)


class Constraint(BaseModel):
    """JSON-Schema-like constraint tree, tagged by ``kind``.

    ``kind`` fixes the accepted JSON type (``union`` accepts any of ``types``,
    ``any`` accepts everything). The remaining keywords apply whenever the
    value has the JSON type they restrict, as in JSON Schema.
    """

    model_config = _FROZEN

    kind: Kind = "any"
    types: tuple[str, ...] = ()
    nullable: bool = False

    # object
    properties: dict[str, "Constraint"] = {}
    required: tuple[str, ...] = ()
    additional_properties: "bool | Constraint" = True
    min_properties: int | None = None
    max_properties: int | None = None

    # array
    items: "Constraint | None" = None
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool = False

    # string
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    format: str | None = None

    # number
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: bool = False
    exclusive_maximum: bool = False
    multiple_of: int | float | None = None

    enum: tuple[Any, ...] | None = None
    read_only: bool = False
    write_only: bool = False

    # composition
    all_of: tuple["Constraint", ...] = ()
    any_of: tuple["Constraint", ...] = ()
    one_of: tuple["Constraint", ...] = ()
    negated: "Constraint | None" = None

    def describe(self) -> str:
        """Short type description used in error messages."""
        if self.kind == "union":
            return " or ".join(self.types)
        if self.nullable and self.kind != "any":
            return f"{self.kind} or null"
        return self.kind


Constraint.model_rebuild()


class ParameterSpec(BaseModel):
    """A single declared parameter (path, query, header or cookie)."""

    model_config = _FROZEN

    name: str
    location: Location
    required: bool = False
    constraint: Constraint = Constraint()
    explode: bool = True  # arrays arrive as repeated keys rather than a csv


class HeaderSpec(BaseModel):
    """A declared response header."""

    model_config = _FROZEN

    name: str
    required: bool = False
    constraint: Constraint = Constraint()


class RequestBodySpec(BaseModel):
    model_config = _FROZEN

    required: bool = False
    content: dict[str, Constraint | None] = {}  # media type -> constraint


class ResponseSpec(BaseModel):
    model_config = _FROZEN

    description: str = ""
    content: dict[str, Constraint | None] = {}
    headers: dict[str, HeaderSpec] = {}


class SecurityScheme(BaseModel):
    """The parts of a security scheme that can be checked on a request."""

    model_config = _FROZEN

    name: str
    type: str  # apiKey / http / oauth2 / openIdConnect / basic
    scheme: str = ""  # bearer / basic, for http
    param_name: str = ""
    location: str = ""  # header / query / cookie, for apiKey


class OperationAddress(BaseModel):
    """(path, lowercase method) pair identifying an operation."""

    model_config = _FROZEN

    path: str
    method: str

    def __str__(self) -> str:
        return f"{self.method.upper()} {self.path}"


class Operation(BaseModel):
    """One (path template, method) entry of the document."""

    model_config = _FROZEN

    method: str  # lowercase
    path_template: str
    operation_id: str | None = None
    summary: str = ""
    parameters: tuple[ParameterSpec, ...] = ()
    request_body: RequestBodySpec | None = None
    responses: dict[str, ResponseSpec] = {}
    # Each entry is one alternative; every scheme named in it must be satisfied.
    security: tuple[tuple[str, ...], ...] | None = None

    @property
    def address(self) -> OperationAddress:
        return OperationAddress(path=self.path_template, method=self.method)


class Segment(BaseModel):
    """One ``/``-separated part of a path template."""

    model_config = _FROZEN

    text: str
    names: tuple[str, ...] = ()  # placeholder names; empty for a literal

    @property
    def is_literal(self) -> bool:
        return not self.names

    @property
    def is_placeholder(self) -> bool:
        """True when the whole segment is a single ``{name}``."""
        return len(self.names) == 1 and self.text == "{" + self.names[0] + "}"

    def match(self, value: str) -> dict[str, str] | None:
        """Return bound placeholder values, or None when ``value`` does not fit."""
        if self.is_literal:
            return {} if value == self.text else None
        if not value:
            return None
        if self.is_placeholder:
            return {self.names[0]: value}
        found = _segment_regex(self.text).fullmatch(value)
        return dict(zip(self.names, found.groups())) if found else None


@lru_cache(maxsize=None)
def _segment_regex(text: str) -> re.Pattern:
    parts = re.split(r"\{[^{}]+\}", text)
    return re.compile("(.+?)".join(re.escape(p) for p in parts))


class PathItem(BaseModel):
    model_config = _FROZEN

    template: str
    segments: tuple[Segment, ...]
    operations: dict[str, Operation] = {}


class SchemaDocument(BaseModel):
    """Root of a compiled OpenAPI document."""

    model_config = _FROZEN

    version: Literal["openapi3", "swagger2"]
    title: str = ""
    base_paths: tuple[str, ...] = ()
    paths: dict[str, PathItem] = {}
    security_schemes: dict[str, SecurityScheme] = {}

    def operations(self) -> list[Operation]:
        """All operations, ordered by path template then method."""
        result = []
        for template in sorted(self.paths):
            item = self.paths[template]
            result.extend(item.operations[m] for m in sorted(item.operations))
        return result
