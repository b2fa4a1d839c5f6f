"""pytest plugin wiring: options, one-time schema load and fixtures."""

import pytest
import requests

from api_validator.assertions import ApiValidator
from api_validator.capture import RequestsCapture
from api_validator.config import CONFIG_EXAMPLE, SchemaProvider, ValidatorSettings
from api_validator.errors import ConfigError, SchemaError
from api_validator.schema.base import SchemaDocument

provider_key = pytest.StashKey[SchemaProvider | None]()


def pytest_addoption(parser):
    group = parser.getgroup("api-validator", "OpenAPI request/response validation")
    group.addoption(
        "--api-schema",
        dest="api_schema",
        default=None,
        help="OpenAPI / Swagger schema file, absolute or relative to the rootdir.",
    )
    parser.addini("api_schema", "OpenAPI / Swagger schema file used by api_validator.", default="")
    parser.addini(
        "api_reject_undeclared_body",
        "Fail requests that carry a body the operation does not declare.",
        type="bool",
        default=False,
    )
    parser.addini(
        "api_require_operation_ids",
        "Reject schemas with operations lacking an operationId.",
        type="bool",
        default=False,
    )


def settings_from_config(config: pytest.Config) -> ValidatorSettings:
    """Command line option first, then the ini key, then API_VALIDATOR_* variables."""
    explicit = {}
    schema_path = config.getoption("api_schema") or config.getini("api_schema")
    if schema_path:
        explicit["schema_path"] = schema_path
    # an ini flag left at False must not mask the environment
    for name in ("reject_undeclared_body", "require_operation_ids"):
        if config.getini(f"api_{name}"):
            explicit[name] = True
    return ValidatorSettings(root_dir=config.rootpath, **explicit)


def pytest_configure(config: pytest.Config) -> None:
    settings = settings_from_config(config)
    provider = None
    if settings.configured:
        provider = SchemaProvider(settings)
        try:
            provider.get()
        except (ConfigError, SchemaError) as e:
            raise pytest.UsageError(f"api-validator: {e}") from e
    config.stash[provider_key] = provider


def pytest_report_header(config: pytest.Config) -> str | None:
    provider = config.stash.get(provider_key, None)
    if provider is None:
        return None
    return f"api-validator: {provider.settings.resolve_schema_path()}"


@pytest.fixture(scope="session")
def api_schema(pytestconfig: pytest.Config) -> SchemaDocument:
    """The OpenAPI document loaded at startup."""
    provider = pytestconfig.stash.get(provider_key, None)
    if provider is None:
        pytest.fail(f"api-validator has no schema.\n{CONFIG_EXAMPLE}", pytrace=False)
    return provider.get()


@pytest.fixture
def api_session():
    """A requests session whose traffic is captured for validation."""
    with requests.Session() as session:
        yield session


@pytest.fixture
def api_capture(api_session: requests.Session) -> RequestsCapture:
    return RequestsCapture(api_session)


@pytest.fixture
def api_validator(api_schema: SchemaDocument, api_capture: RequestsCapture, pytestconfig: pytest.Config) -> ApiValidator:
    """Assertions over the last exchange made through ``api_session``."""
    return ApiValidator(
        api_schema,
        api_capture,
        reject_undeclared_body=pytestconfig.stash[provider_key].settings.reject_undeclared_body,
    )
