"""HTTP capture: where the last request/response pair comes from."""

import json
import logging
from pathlib import Path
from typing import Any, NamedTuple, Protocol

import requests
import yaml

from api_validator.errors import CaptureError

logger = logging.getLogger(__name__)


class WireRequest(NamedTuple):
    method: str
    uri: str
    headers: Any
    body: bytes | str | None


class WireResponse(NamedTuple):
    status: int
    headers: Any
    body: bytes | str | None


class HttpCapture(Protocol):
    """Anything that can hand over the last captured exchange."""

    def last_request(self) -> WireRequest: ...

    def last_response(self) -> WireResponse: ...


class RequestsCapture:
    """Records the last response received through a ``requests.Session``.

    A response hook is installed on the session, so every request made with
    it is captured; ``record`` can also be called directly.
    """

    def __init__(self, session: requests.Session | None = None):
        self.session = session or requests.Session()
        self.session.hooks["response"].append(self._on_response)
        self._last: requests.Response | None = None

    def _on_response(self, response: requests.Response, *args, **kwargs) -> None:
        self.record(response)

    def record(self, response: requests.Response) -> None:
        logger.debug("Captured %s %s -> %s", response.request.method, response.request.url, response.status_code)
        self._last = response

    def _require(self) -> requests.Response:
        if self._last is None:
            raise CaptureError("No HTTP exchange has been captured yet")
        return self._last

    def last_request(self) -> WireRequest:
        prepared = self._require().request
        return WireRequest(prepared.method, prepared.url, dict(prepared.headers), prepared.body)

    def last_response(self) -> WireResponse:
        response = self._require()
        return WireResponse(response.status_code, dict(response.headers), response.content)


class RecordedCapture:
    """A fixed exchange, e.g. read from a file by the CLI."""

    def __init__(self, request: WireRequest, response: WireResponse | None = None):
        self.request = request
        self.response = response

    def last_request(self) -> WireRequest:
        return self.request

    def last_response(self) -> WireResponse:
        if self.response is None:
            raise CaptureError("The recorded exchange has no response")
        return self.response


def load_exchange(file_path: Path) -> RecordedCapture:
    """Read an exchange file (JSON or YAML) with ``request`` and optional ``response`` keys."""
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise CaptureError(f"Cannot read exchange {file_path}: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("request"), dict):
        raise CaptureError(f"{file_path} has no 'request' object")

    req = data["request"]
    request = WireRequest(
        method=req.get("method", "GET"),
        uri=req.get("uri", req.get("url", "/")),
        headers=req.get("headers") or {},
        body=_body(req.get("body")),
    )
    response = None
    if isinstance(data.get("response"), dict):
        resp = data["response"]
        response = WireResponse(
            status=int(resp.get("status", 200)),
            headers=resp.get("headers") or {},
            body=_body(resp.get("body")),
        )
    return RecordedCapture(request, response)


def _body(value: Any) -> bytes | str | None:
    # structured bodies in the file are re-serialized as JSON
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value
