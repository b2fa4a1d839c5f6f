"""OpenAPI / Swagger document loader.

Compiles OpenAPI 3.x and Swagger 2.0 documents into SchemaDocument models.
"""

import logging
import re
from pathlib import Path
from urllib.parse import urlsplit

from prance.util.iterators import reference_iterator
from prance.util.resolver import RESOLVE_INTERNAL, RefResolver
from prance.util.url import ResolutionError

from api_validator.errors import SchemaError

from .base import (
    Constraint,
    HeaderSpec,
    Operation,
    ParameterSpec,
    PathItem,
    RequestBodySpec,
    ResponseSpec,
    SchemaDocument,
    SecurityScheme,
    Segment,
)
from .detect import detect_version, read_document

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

KINDS = {"object", "array", "string", "number", "integer", "boolean", "null"}

# Keys of a Swagger 2.0 parameter / header object that are not schema keywords.
_SWAGGER_PARAM_KEYS = {"name", "in", "required", "description", "collectionFormat", "allowEmptyValue"}

# Base URL internal references resolve against; nothing is ever read from it.
_DOCUMENT_URL = "/openapi.json"


def load_schema(file_path: Path | str, *, require_operation_ids: bool = False) -> SchemaDocument:
    """Load an OpenAPI/Swagger file into a SchemaDocument."""
    file_path = Path(file_path)
    if not file_path.is_file():
        raise SchemaError(f"Schema file {file_path} not found")

    document = compile_document(read_document(file_path), require_operation_ids=require_operation_ids)
    logger.info(
        "Loaded %s schema %s with %d operations",
        document.version,
        file_path,
        len(document.operations()),
    )
    return document


def compile_document(doc: dict, *, require_operation_ids: bool = False) -> SchemaDocument:
    """Compile an already parsed document tree."""
    version = detect_version(doc)
    paths = doc.get("paths")
    if not isinstance(paths, dict):
        raise SchemaError("Document has no 'paths' object")

    doc = resolve_references(doc)
    default_security = doc.get("security")
    seen_ids: dict[str, str] = {}

    items = {}
    for template, item in doc["paths"].items():
        if not isinstance(item, dict):
            raise SchemaError(f"Path item {template} is not an object")
        operations = {}
        for method in HTTP_METHODS:
            if method not in item:
                continue
            operation = _compile_operation(version, doc, template, method, item, default_security)
            if operation.operation_id:
                if operation.operation_id in seen_ids:
                    raise SchemaError(
                        f"Duplicate operationId {operation.operation_id!r} "
                        f"({seen_ids[operation.operation_id]} and {operation.address})"
                    )
                seen_ids[operation.operation_id] = str(operation.address)
            elif require_operation_ids:
                raise SchemaError(f"{operation.address} has no operationId")
            operations[method] = operation
        items[template] = PathItem(
            template=template,
            segments=compile_template(template),
            operations=operations,
        )

    return SchemaDocument(
        version=version,
        title=str(doc.get("info", {}).get("title", "")),
        base_paths=_base_paths(version, doc),
        paths=items,
        security_schemes=_security_schemes(version, doc),
    )


def resolve_references(doc: dict) -> dict:
    """Return a copy of ``doc`` with every internal ``$ref`` inlined.

    Remote references are left alone by the resolver and rejected
    afterwards; cycles are rejected as soon as they are found.
    """
    resolver = RefResolver(
        doc,
        _DOCUMENT_URL,
        resolve_types=RESOLVE_INTERNAL,
        recursion_limit_handler=_reject_cycle,
    )
    try:
        resolver.resolve_references()
    except ResolutionError as e:
        raise SchemaError(f"Dangling reference: {e}") from e
    except ValueError as e:
        # unknown URL scheme in a reference
        raise SchemaError(f"Remote reference not supported: {e}") from e

    leftover = next(reference_iterator(resolver.specs), None)
    if leftover is not None:
        raise SchemaError(f"Remote reference {leftover[1]!r} is not supported")
    return resolver.specs


def _reject_cycle(limit, parsed_url, recursions=()):
    raise SchemaError(f"Cyclic reference #{parsed_url.fragment}")


def compile_template(template: str) -> tuple[Segment, ...]:
    """Split a path template into literal and placeholder segments."""
    stripped = template.strip("/")
    if not stripped:
        return ()
    return tuple(
        Segment(text=part, names=tuple(re.findall(r"\{([^{}]+)\}", part)))
        for part in stripped.split("/")
    )


def compile_constraint(schema: dict | None) -> Constraint:
    """Compile a (reference-free) JSON Schema object into a Constraint."""
    if not isinstance(schema, dict) or not schema:
        return Constraint()

    nullable = bool(schema.get("nullable") or schema.get("x-nullable"))
    raw_type = schema.get("type")
    types: tuple[str, ...] = ()
    if isinstance(raw_type, list):
        if "null" in raw_type:
            nullable = True
        types = tuple(t for t in raw_type if t != "null")
        if not types:
            kind = "null"
        elif len(types) == 1:
            kind, types = types[0], ()
        else:
            kind = "union"
    elif raw_type is None or raw_type == "file":
        kind = "any"
    else:
        kind = raw_type

    for name in (kind, *types):
        if name not in KINDS and name not in ("any", "union"):
            raise SchemaError(f"Unknown schema type {name!r}")

    fields = {
        "kind": kind,
        "types": types,
        "nullable": nullable,
        "read_only": bool(schema.get("readOnly", False)),
        "write_only": bool(schema.get("writeOnly", False)),
    }

    if isinstance(schema.get("properties"), dict):
        fields["properties"] = {
            name: compile_constraint(sub) for name, sub in schema["properties"].items()
        }
    if isinstance(schema.get("required"), list):
        fields["required"] = tuple(schema["required"])
    additional = schema.get("additionalProperties", True)
    fields["additional_properties"] = (
        compile_constraint(additional) if isinstance(additional, dict) else bool(additional)
    )
    if "items" in schema:
        fields["items"] = compile_constraint(schema["items"])

    for key, field in (
        ("minProperties", "min_properties"),
        ("maxProperties", "max_properties"),
        ("minItems", "min_items"),
        ("maxItems", "max_items"),
        ("minLength", "min_length"),
        ("maxLength", "max_length"),
        ("pattern", "pattern"),
        ("format", "format"),
        ("multipleOf", "multiple_of"),
        ("uniqueItems", "unique_items"),
    ):
        if key in schema:
            fields[field] = schema[key]

    if "pattern" in schema:
        try:
            re.compile(schema["pattern"])
        except re.error as e:
            raise SchemaError(f"Invalid pattern {schema['pattern']!r}: {e}") from e

    fields["minimum"], fields["exclusive_minimum"] = _bound(schema, "minimum", "exclusiveMinimum", max)
    fields["maximum"], fields["exclusive_maximum"] = _bound(schema, "maximum", "exclusiveMaximum", min)

    if "enum" in schema:
        fields["enum"] = tuple(schema["enum"])
    elif "const" in schema:
        fields["enum"] = (schema["const"],)

    for key, field in (("allOf", "all_of"), ("anyOf", "any_of"), ("oneOf", "one_of")):
        if isinstance(schema.get(key), list):
            fields[field] = tuple(compile_constraint(sub) for sub in schema[key])
    if isinstance(schema.get("not"), dict):
        fields["negated"] = compile_constraint(schema["not"])

    return Constraint(**fields)


def _bound(schema: dict, inclusive_key: str, exclusive_key: str, stricter) -> tuple:
    """Fold 3.0 boolean and 3.1 numeric exclusive bounds into (bound, exclusive)."""
    bound = schema.get(inclusive_key)
    exclusive = schema.get(exclusive_key, False)
    if isinstance(exclusive, bool):
        return bound, exclusive and bound is not None
    # numeric exclusive bound (OpenAPI 3.1 / JSON Schema draft 6+)
    if bound is None or stricter(bound, exclusive) == exclusive:
        return exclusive, True
    return bound, False


def _compile_operation(
    version: str,
    doc: dict,
    template: str,
    method: str,
    item: dict,
    default_security,
) -> Operation:
    op = item[method]
    if not isinstance(op, dict):
        raise SchemaError(f"{method.upper()} {template} is not an object")
    if not op.get("responses"):
        raise SchemaError(f"{method.upper()} {template} declares no responses")

    raw_params = _merge_parameters(item.get("parameters", []), op.get("parameters", []))
    security = op.get("security", default_security)

    if version == "swagger2":
        consumes = op.get("consumes", doc.get("consumes")) or ["application/json"]
        produces = op.get("produces", doc.get("produces")) or ["application/json"]
        parameters = tuple(
            _swagger_parameter(p) for p in raw_params if p.get("in") not in ("body", "formData")
        )
        request_body = _swagger_request_body(raw_params, consumes)
        responses = {
            _status_key(code): _swagger_response(resp, produces)
            for code, resp in op["responses"].items()
        }
    else:
        parameters = tuple(_openapi_parameter(p) for p in raw_params)
        request_body = _openapi_request_body(op.get("requestBody"))
        responses = {
            _status_key(code): _openapi_response(resp)
            for code, resp in op["responses"].items()
        }

    return Operation(
        method=method,
        path_template=template,
        operation_id=op.get("operationId"),
        summary=op.get("summary") or "",
        parameters=parameters,
        request_body=request_body,
        responses=responses,
        security=_security_requirements(security),
    )


def _merge_parameters(shared: list[dict], own: list[dict]) -> list[dict]:
    merged: dict[tuple[str, str], dict] = {}
    for p in [*shared, *own]:
        if not isinstance(p, dict) or "name" not in p or "in" not in p:
            raise SchemaError(f"Malformed parameter {p!r}")
        merged[(p["name"], p["in"])] = p
    return list(merged.values())


def _status_key(code) -> str:
    key = str(code)
    return "default" if key.lower() == "default" else key.upper()


def _media_content(content: dict | None) -> dict[str, Constraint | None]:
    result = {}
    for media_type, media in (content or {}).items():
        schema = (media or {}).get("schema")
        result[media_type.lower()] = compile_constraint(schema) if schema else None
    return result


def _openapi_parameter(p: dict) -> ParameterSpec:
    location = p["in"]
    if location not in ("path", "query", "header", "cookie"):
        raise SchemaError(f"Parameter {p['name']!r} has unknown location {location!r}")
    schema = p.get("schema")
    if schema is None and isinstance(p.get("content"), dict):
        for media in p["content"].values():
            schema = (media or {}).get("schema")
            break
    default_style = "form" if location in ("query", "cookie") else "simple"
    explode = p.get("explode", p.get("style", default_style) == "form")
    return ParameterSpec(
        name=p["name"],
        location=location,
        required=location == "path" or bool(p.get("required", False)),
        constraint=compile_constraint(schema),
        explode=bool(explode),
    )


def _openapi_request_body(body: dict | None) -> RequestBodySpec | None:
    if not body:
        return None
    return RequestBodySpec(
        required=bool(body.get("required", False)),
        content=_media_content(body.get("content")),
    )


def _openapi_response(resp: dict) -> ResponseSpec:
    headers = {}
    for name, header in (resp.get("headers") or {}).items():
        headers[name.lower()] = HeaderSpec(
            name=name,
            required=bool(header.get("required", False)),
            constraint=compile_constraint(header.get("schema")),
        )
    return ResponseSpec(
        description=resp.get("description") or "",
        content=_media_content(resp.get("content")),
        headers=headers,
    )


def _swagger_schema(obj: dict) -> dict:
    return {k: v for k, v in obj.items() if k not in _SWAGGER_PARAM_KEYS}


def _swagger_parameter(p: dict) -> ParameterSpec:
    location = p["in"]
    if location not in ("path", "query", "header"):
        raise SchemaError(f"Parameter {p['name']!r} has unknown location {location!r}")
    return ParameterSpec(
        name=p["name"],
        location=location,
        required=location == "path" or bool(p.get("required", False)),
        constraint=compile_constraint(_swagger_schema(p)),
        explode=p.get("collectionFormat") == "multi",
    )


def _swagger_request_body(params: list[dict], consumes: list[str]) -> RequestBodySpec | None:
    for p in params:
        if p.get("in") == "body":
            constraint = compile_constraint(p.get("schema"))
            return RequestBodySpec(
                required=bool(p.get("required", False)),
                content={media_type.lower(): constraint for media_type in consumes},
            )

    form = [p for p in params if p.get("in") == "formData"]
    if not form:
        return None
    constraint = Constraint(
        kind="object",
        properties={p["name"]: compile_constraint(_swagger_schema(p)) for p in form},
        required=tuple(p["name"] for p in form if p.get("required")),
    )
    media_type = (
        "multipart/form-data"
        if "multipart/form-data" in consumes
        else "application/x-www-form-urlencoded"
    )
    return RequestBodySpec(
        required=any(p.get("required") for p in form),
        content={media_type: constraint},
    )


def _swagger_response(resp: dict, produces: list[str]) -> ResponseSpec:
    content = {}
    if resp.get("schema"):
        constraint = compile_constraint(resp["schema"])
        content = {media_type.lower(): constraint for media_type in produces}
    headers = {
        name.lower(): HeaderSpec(name=name, constraint=compile_constraint(_swagger_schema(header)))
        for name, header in (resp.get("headers") or {}).items()
    }
    return ResponseSpec(
        description=resp.get("description") or "",
        content=content,
        headers=headers,
    )


def _security_requirements(security) -> tuple[tuple[str, ...], ...] | None:
    if security is None:
        return None
    return tuple(tuple(sorted(requirement)) for requirement in security)


def _security_schemes(version: str, doc: dict) -> dict[str, SecurityScheme]:
    if version == "swagger2":
        raw = doc.get("securityDefinitions") or {}
    else:
        raw = (doc.get("components") or {}).get("securitySchemes") or {}
    schemes = {}
    for name, scheme in raw.items():
        schemes[name] = SecurityScheme(
            name=name,
            type=scheme.get("type", ""),
            scheme=str(scheme.get("scheme", "")).lower(),
            param_name=scheme.get("name", ""),
            location=scheme.get("in", ""),
        )
    return schemes


def _base_paths(version: str, doc: dict) -> tuple[str, ...]:
    if version == "swagger2":
        candidates = [doc.get("basePath", "")]
    else:
        candidates = []
        for server in doc.get("servers") or []:
            url = server.get("url", "")
            for var, spec in (server.get("variables") or {}).items():
                url = url.replace("{" + var + "}", str(spec.get("default", "")))
            candidates.append(urlsplit(url).path)

    result = []
    for path in candidates:
        path = "/" + (path or "").strip("/")
        if path != "/" and path not in result:
            result.append(path)
    return tuple(result)
