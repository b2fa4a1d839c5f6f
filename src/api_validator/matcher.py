"""Resolve a request method and path to a declared operation."""

import logging
import re
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict

from api_validator.errors import MethodNotAllowed, OperationNotFound
from api_validator.schema.base import Operation, PathItem, SchemaDocument

logger = logging.getLogger(__name__)

NUMERIC_SEGMENT = re.compile(r"^[0-9]+$")
PLACEHOLDER_SEGMENT = re.compile(r"^\{[^{}/]+\}$")


class MatchedOperation(BaseModel):
    """An operation together with the path parameter values bound by the match."""

    model_config = ConfigDict(frozen=True)

    operation: Operation
    path_params: dict[str, str] = {}


def split_path(path: str) -> list[str]:
    stripped = path.strip("/")
    return stripped.split("/") if stripped else []


def normalize_path(path: str) -> str:
    """Replace every purely numeric segment with the generic ``{id}`` placeholder."""
    parts = ["{id}" if NUMERIC_SEGMENT.match(part) else part for part in split_path(path)]
    return "/" + "/".join(parts)


class OperationMatcher:
    """Match concrete or normalized paths against the templates of a document.

    A literal template segment must match exactly. A placeholder segment
    matches any non-empty segment, and an input segment that is itself a
    placeholder (``{id}`` produced by normalize_path) matches any templated
    segment. Literal segments win over templated ones, left to right.
    """

    def __init__(self, document: SchemaDocument):
        self.document = document
        self._items = sorted(document.paths.values(), key=lambda item: item.template)

    def match(self, path: str, method: str) -> MatchedOperation:
        method = method.lower()
        candidates = self._candidates(path)
        if not candidates:
            for base_path in self.document.base_paths:
                if path == base_path or path.startswith(base_path + "/"):
                    candidates = self._candidates(path[len(base_path):] or "/")
                    if candidates:
                        break
        if not candidates:
            raise OperationNotFound(path, method)

        allowed = [(score, item, params) for score, item, params in candidates if method in item.operations]
        if not allowed:
            methods = sorted({m for _, item, _ in candidates for m in item.operations})
            raise MethodNotAllowed(path, method, methods)

        # highest score first; template string breaks ties
        allowed.sort(key=lambda c: (tuple(-s for s in c[0]), c[1].template))
        _, item, params = allowed[0]
        logger.debug("Matched %s %s to %s", method.upper(), path, item.template)
        return MatchedOperation(operation=item.operations[method], path_params=params)

    def _candidates(self, path: str) -> list[tuple[tuple[int, ...], PathItem, dict[str, str]]]:
        parts = split_path(path)
        found = []
        for item in self._items:
            matched = _match_segments(item, parts)
            if matched is not None:
                score, params = matched
                found.append((score, item, params))
        return found


def _match_segments(item: PathItem, parts: list[str]) -> tuple[tuple[int, ...], dict[str, str]] | None:
    if len(item.segments) != len(parts):
        return None
    score = []
    params: dict[str, str] = {}
    for segment, part in zip(item.segments, parts):
        if PLACEHOLDER_SEGMENT.match(part):
            if segment.is_literal:
                return None
            # already normalized; no concrete value to bind
            score.append(0)
            continue
        bound = segment.match(unquote(part))
        if bound is None:
            return None
        params.update(bound)
        score.append(1 if segment.is_literal else 0)
    return tuple(score), params
