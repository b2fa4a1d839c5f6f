"""Validator settings and the one-time schema load."""

import threading
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from api_validator.errors import ConfigError
from api_validator.schema.base import SchemaDocument
from api_validator.schema.loader import load_schema

ENV_SCHEMA = "API_VALIDATOR_SCHEMA"

CONFIG_EXAMPLE = """Example configuring the OpenAPI schema for api-validator:
--
[pytest]
api_schema = docs/api/openapi.yaml
--
or pass --api-schema on the command line, or set API_VALIDATOR_SCHEMA."""


class ValidatorSettings(BaseSettings):
    """Where the schema lives and how strictly to validate.

    Fields not given explicitly come from the environment: API_VALIDATOR_SCHEMA,
    API_VALIDATOR_REJECT_UNDECLARED_BODY, API_VALIDATOR_REQUIRE_OPERATION_IDS.
    """

    model_config = SettingsConfigDict(env_prefix="API_VALIDATOR_", populate_by_name=True)

    schema_path: str = Field("", validation_alias=ENV_SCHEMA)
    root_dir: Path = Path(".")
    reject_undeclared_body: bool = False
    require_operation_ids: bool = False

    @property
    def configured(self) -> bool:
        return bool(self.schema_path)

    def resolve_schema_path(self) -> Path:
        """Absolute schema path; relative paths are taken from ``root_dir``."""
        if not self.configured:
            raise ConfigError(f"No OpenAPI schema configured.\n{CONFIG_EXAMPLE}")
        path = Path(self.schema_path).expanduser()
        if not path.is_absolute():
            path = self.root_dir / path
        if not path.is_file():
            raise ConfigError(f"{path} not found!")
        return path


class SchemaProvider:
    """Loads the configured schema once and hands out the shared document."""

    def __init__(self, settings: ValidatorSettings):
        self.settings = settings
        self._document: SchemaDocument | None = None
        self._lock = threading.Lock()

    def get(self) -> SchemaDocument:
        if self._document is None:
            with self._lock:
                if self._document is None:
                    self._document = load_schema(
                        self.settings.resolve_schema_path(),
                        require_operation_ids=self.settings.require_operation_ids,
                    )
        return self._document
