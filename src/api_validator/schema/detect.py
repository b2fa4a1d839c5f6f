"""Detect the serialization format and OpenAPI dialect of a schema file."""

import json
from pathlib import Path

import yaml

from api_validator.errors import SchemaError

YAML_SUFFIXES = (".yaml", ".yml")


def detect_format(file_path: Path) -> str:
    """Return 'yaml' for .yaml/.yml files and 'json' for everything else."""
    return "yaml" if file_path.suffix.lower() in YAML_SUFFIXES else "json"


def read_document(file_path: Path) -> dict:
    """Read and parse a schema file into a plain dict tree."""
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaError(f"Cannot read schema {file_path}: {e}") from e

    fmt = detect_format(file_path)
    try:
        if fmt == "yaml":
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except yaml.YAMLError as e:
        raise SchemaError(f"Invalid YAML in {file_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SchemaError(f"Invalid JSON in {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise SchemaError(f"{file_path} does not contain an OpenAPI document")
    return data


def detect_version(doc: dict) -> str:
    """Detect the OpenAPI dialect.

    Returns: 'openapi3' or 'swagger2'.
    """
    if "openapi" in doc:
        if str(doc["openapi"]).startswith("3."):
            return "openapi3"
        raise SchemaError(f"Unsupported OpenAPI version {doc['openapi']!r}")
    if "swagger" in doc:
        if str(doc["swagger"]).startswith("2"):
            return "swagger2"
        raise SchemaError(f"Unsupported Swagger version {doc['swagger']!r}")
    raise SchemaError("Document has neither an 'openapi' nor a 'swagger' field")
