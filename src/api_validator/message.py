"""Canonical HTTP messages and the adapter that builds them from wire data."""

import json
from collections.abc import Iterable, Mapping
from http.cookies import CookieError, SimpleCookie
from typing import Any
from urllib.parse import parse_qsl, urlsplit

from pydantic import BaseModel, ConfigDict

from api_validator.errors import BodyDecodeError

FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"

HeaderInput = Mapping[str, Any] | Iterable[tuple[str, Any]] | None
BodyInput = bytes | str | None


class HttpMessage(BaseModel):
    """Fields shared by requests and responses."""

    model_config = ConfigDict(frozen=True)

    headers: dict[str, str] = {}  # lowercase names
    raw_body: bytes = b""
    body: Any = None
    body_decoded: bool = False  # True when ``body`` holds a structured value

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> str:
        return media_type(self.header("content-type", ""))

    @property
    def has_body(self) -> bool:
        return bool(self.raw_body)

    @property
    def text(self) -> str:
        return self.raw_body.decode("utf-8", errors="replace")


class CanonicalRequest(HttpMessage):
    method: str  # uppercase
    path: str
    query: tuple[tuple[str, str], ...] = ()

    def query_values(self, name: str) -> list[str]:
        return [value for key, value in self.query if key == name]

    @property
    def cookies(self) -> dict[str, str]:
        raw = self.header("cookie")
        if not raw:
            return {}
        jar = SimpleCookie()
        try:
            jar.load(raw)
        except CookieError:
            return {}
        return {name: morsel.value for name, morsel in jar.items()}


class CanonicalResponse(HttpMessage):
    status_code: int


def media_type(content_type: str | None) -> str:
    """``application/json; charset=utf-8`` -> ``application/json``."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def is_json(media: str) -> bool:
    return media == "application/json" or media.endswith("+json")


def fold_headers(headers: HeaderInput) -> dict[str, str]:
    """Fold a header multimap into a dict keyed by lowercase name.

    Accepts a mapping of name to value or list of values, or an iterable of
    (name, value) pairs. Repeated values are comma-joined.
    """
    if not headers:
        return {}
    pairs = headers.items() if isinstance(headers, Mapping) else headers
    folded: dict[str, list[str]] = {}
    for name, value in pairs:
        values = value if isinstance(value, (list, tuple)) else [value]
        folded.setdefault(name.lower(), []).extend(str(v) for v in values)
    return {name: ", ".join(values) for name, values in folded.items()}


def decode_body(raw: bytes, content_type: str) -> tuple[Any, bool]:
    """Decode a body according to its content type.

    Returns (value, decoded). JSON and url-encoded form bodies are decoded;
    anything else is returned as the raw bytes with ``decoded`` False.
    """
    media = media_type(content_type)
    if not raw:
        return None, False

    if is_json(media):
        try:
            return json.loads(raw.decode("utf-8")), True
        except UnicodeDecodeError as e:
            raise BodyDecodeError(media, f"not UTF-8 ({e.reason})") from e
        except json.JSONDecodeError as e:
            raise BodyDecodeError(media, e.msg + f" at line {e.lineno} column {e.colno}") from e

    if media == FORM_MEDIA_TYPE:
        form: dict[str, Any] = {}
        for key, value in parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True):
            if key in form:
                existing = form[key]
                form[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
            else:
                form[key] = value
        return form, True

    return raw, False


def _to_bytes(body: BodyInput) -> bytes:
    if body is None:
        return b""
    if isinstance(body, str):
        return body.encode("utf-8")
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    # streamed or file bodies cannot be replayed
    return b""


def request_target(method: str, uri: str) -> tuple[str, str]:
    """Upper-cased method and path of a captured request, body untouched."""
    return method.upper(), urlsplit(uri).path or "/"


def to_canonical_request(method: str, uri: str, headers: HeaderInput = None, body: BodyInput = None) -> CanonicalRequest:
    """Build a CanonicalRequest from a captured method, URI, headers and body."""
    folded = fold_headers(headers)
    raw = _to_bytes(body)
    value, decoded = decode_body(raw, folded.get("content-type", ""))
    parts = urlsplit(uri)
    method, path = request_target(method, uri)
    return CanonicalRequest(
        method=method,
        path=path,
        query=tuple(parse_qsl(parts.query, keep_blank_values=True)),
        headers=folded,
        raw_body=raw,
        body=value,
        body_decoded=decoded,
    )


def to_canonical_response(status: int, headers: HeaderInput = None, body: BodyInput = None) -> CanonicalResponse:
    """Build a CanonicalResponse from a captured status, headers and body."""
    folded = fold_headers(headers)
    raw = _to_bytes(body)
    value, decoded = decode_body(raw, folded.get("content-type", ""))
    return CanonicalResponse(
        status_code=int(status),
        headers=folded,
        raw_body=raw,
        body=value,
        body_decoded=decoded,
    )
