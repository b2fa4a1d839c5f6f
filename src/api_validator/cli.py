"""CLI entry point for api-validator."""

import logging
from pathlib import Path

import click

from api_validator.assertions import ApiValidator
from api_validator.capture import load_exchange
from api_validator.errors import CaptureError, SchemaError
from api_validator.schema.base import SchemaDocument
from api_validator.schema.loader import load_schema


def _load(schema_path: Path, require_operation_ids: bool = False) -> SchemaDocument:
    try:
        return load_schema(schema_path, require_operation_ids=require_operation_ids)
    except SchemaError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log matching and validation details.")
def main(verbose: bool):
    """API Validator: check HTTP traffic against OpenAPI / Swagger schemas."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("schema_path", type=click.Path(exists=True, path_type=Path))
@click.option("--require-operation-ids", is_flag=True, help="Fail when an operation has no operationId.")
def routes(schema_path: Path, require_operation_ids: bool):
    """List the operations declared by a schema."""
    document = _load(schema_path, require_operation_ids)
    click.echo(f"{document.title or schema_path.name} ({document.version})")
    for operation in document.operations():
        line = f"  {operation.method.upper():<7} {operation.path_template}"
        if operation.operation_id:
            line += f"  [{operation.operation_id}]"
        click.echo(line)


@main.command()
@click.argument("schema_path", type=click.Path(exists=True, path_type=Path))
@click.argument("exchange_path", type=click.Path(exists=True, path_type=Path))
@click.option("--reject-undeclared-body", is_flag=True, help="Fail requests carrying an undeclared body.")
def check(schema_path: Path, exchange_path: Path, reject_undeclared_body: bool):
    """Validate a recorded request/response exchange against a schema."""
    document = _load(schema_path)
    try:
        capture = load_exchange(exchange_path)
    except CaptureError as e:
        raise click.ClickException(str(e)) from e

    validator = ApiValidator(document, capture, reject_undeclared_body=reject_undeclared_body)
    results = {"request": validator.validate_request()}
    if capture.response is not None:
        results["response"] = validator.validate_response()

    failed = False
    for name, result in results.items():
        if result.valid:
            click.echo(f"{name}: valid")
        else:
            failed = True
            click.echo(f"{name}: INVALID")
            click.echo(result.summary())

    if failed:
        raise SystemExit(1)
