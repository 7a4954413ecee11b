"""reqbridge executor - sends fully resolved requests over HTTP."""

import json
import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)


class RequestResult:
    """Result of an HTTP request."""

    def __init__(self):
        self.status_code: int = 0
        self.reason: str = ""
        self.headers: dict[str, str] = {}
        self.body: Any = None  # parsed JSON or raw text
        self.elapsed_ms: float = 0
        self.error: str | None = None
        self.raw_text: str = ""


def execute_request(
    method: str,
    url: str,
    headers: list[tuple[str, str]] | dict[str, str] | None = None,
    body: str | None = None,
    timeout: int = 30,
    follow_redirects: bool = True,
) -> RequestResult:
    """Execute an HTTP request and return a structured result.

    Never raises: transport failures are reported on ``result.error``.
    Header pairs with repeated names are joined the way HTTP folds them.
    """
    result = RequestResult()

    if isinstance(headers, dict):
        header_map = dict(headers)
    else:
        header_map = {}
        spelling = {}
        for name, value in headers or []:
            key = spelling.setdefault(name.lower(), name)
            if key in header_map:
                header_map[key] = f"{header_map[key]}, {value}"
            else:
                header_map[key] = value

    try:
        start = time.monotonic()
        resp = requests.request(
            method=method.upper(),
            url=url,
            headers=header_map,
            data=body.encode("utf-8") if body else None,
            timeout=timeout,
            allow_redirects=follow_redirects,
        )
        result.elapsed_ms = (time.monotonic() - start) * 1000

        result.status_code = resp.status_code
        result.reason = resp.reason or ""
        result.headers = dict(resp.headers)
        result.raw_text = resp.text

        try:
            result.body = resp.json()
        except (json.JSONDecodeError, ValueError):
            result.body = resp.text

    except requests.exceptions.Timeout:
        result.error = f"Request timed out after {timeout}s"
    except requests.exceptions.ConnectionError as e:
        result.error = f"Connection error: {e}"
    except requests.exceptions.RequestException as e:
        result.error = f"Request failed: {e}"

    if result.error:
        logger.warning("%s %s failed: %s", method.upper(), url, result.error)
    else:
        logger.debug("%s %s -> %s", method.upper(), url, result.status_code)
    return result
