"""reqbridge chaining - most recent response per request name.

References look like ``login.response.body.access_token``:
  name.response.body[.path]       whole body, or a JSON path into it
  name.response.headers[.Name]    all headers as JSON, or one (case-insensitive)
  name.response.status            status code
  name.response.statusText        reason phrase
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Protocol

from reqbridge.filters import ci_get, extract_value
from reqbridge.variables import CHAIN_RE

logger = logging.getLogger(__name__)


@dataclass
class StoredResponse:
    status: int
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @classmethod
    def from_result(cls, result) -> "StoredResponse":
        """Build from an executor RequestResult."""
        body = result.raw_text
        if not body and result.body is not None:
            if isinstance(result.body, dict | list):
                body = json.dumps(result.body)
            else:
                body = str(result.body)
        return cls(
            status=result.status_code,
            status_text=result.reason,
            headers=dict(result.headers or {}),
            body=body or "",
        )


class ResponseStore(Protocol):
    def get(self, name: str) -> StoredResponse | None: ...

    def put(self, name: str, response: StoredResponse) -> None: ...


class InMemoryResponseStore:
    """Volatile store; a newer response for the same name replaces the old one."""

    def __init__(self):
        self._responses: dict[str, StoredResponse] = {}

    def get(self, name: str) -> StoredResponse | None:
        return self._responses.get(name)

    def put(self, name: str, response: StoredResponse) -> None:
        self._responses[name] = response

    def names(self) -> list[str]:
        return list(self._responses)

    def discard(self, name: str) -> None:
        self._responses.pop(name, None)

    def clear(self) -> None:
        self._responses.clear()


def _stringify(value) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict | list | bool):
        return json.dumps(value)
    return str(value)


def resolve_reference(reference: str, store: ResponseStore | None) -> str | None:
    """Resolve a chaining reference, or None when anything is missing."""
    if store is None:
        return None
    m = CHAIN_RE.match(reference.strip())
    if not m:
        return None
    request_name, part, rest = m.group(1), m.group(2), m.group(3)
    response = store.get(request_name)
    if response is None:
        logger.debug("No stored response for %r", request_name)
        return None

    if part == "status":
        return str(response.status)
    if part == "statusText":
        return response.status_text

    path = rest[1:] if rest.startswith(".") else rest

    if part == "headers":
        if not path:
            return json.dumps(response.headers)
        actual, value = ci_get(response.headers, path)
        return None if actual is None else _stringify(value)

    if not path:
        return response.body
    try:
        data = json.loads(response.body)
    except (json.JSONDecodeError, ValueError):
        return None
    found, value = extract_value(data, path)
    if not found or value is None:
        return None
    return _stringify(value)
