"""reqbridge serializer - writes requests back out as .http text."""

import base64
import re
from collections.abc import Iterable

from reqbridge.models import Collection, ParsedRequest, Request
from reqbridge.variables import PLACEHOLDER_RE, transform_variables_for_export

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
BANNER = "#" * 47


def _auth_headers(request: Request) -> tuple[str, list[tuple[str, str]]]:
    """Auth config rendered back as headers. Returns (url, headers)."""
    url = request.url
    auth = request.auth
    if not auth or auth.type == "none":
        return url, []
    if auth.type == "bearer" and auth.token:
        return url, [("Authorization", f"Bearer {auth.token}")]
    if auth.type == "basic" and (auth.username or auth.password):
        username, password = auth.username or "", auth.password or ""
        if not PLACEHOLDER_RE.search(username + password):
            encoded = base64.b64encode(f"{username}:{password}".encode()).decode()
            return url, [("Authorization", f"Basic {encoded}")]
        if not username:
            return url, [("Authorization", f"Basic {password}")]
        return url, [("Authorization", f"Basic {username}:{password}")]
    if auth.type == "apikey" and auth.api_key_name:
        value = auth.api_key_value or ""
        if auth.api_key_in == "header":
            return url, [(auth.api_key_name, value)]
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{auth.api_key_name}={value}", []
    return url, []


def _request_parts(
    request: Request | ParsedRequest,
) -> tuple[str | None, str, str, list[tuple[str, str]], str | None]:
    if isinstance(request, ParsedRequest):
        return request.name, request.method, request.url, list(request.headers), request.body
    url, auth_headers = _auth_headers(request)
    headers = [(h.name, h.value) for h in request.headers if h.enabled]
    body = None
    if request.body and request.body.type != "none" and request.body.content:
        body = request.body.content
    return request.name, request.method, url, headers + auth_headers, body


def serialize_to_http_file(
    requests: Iterable[Request | ParsedRequest],
    variables: dict[str, str] | None = None,
    dotenv: bool = False,
) -> str:
    """Render requests (and optional file-level variables) as .http text.

    Requests keep the given order and headers keep their stored order.
    With dotenv=True plain ``{{X}}`` references become ``{{$dotenv X}}``.
    """

    def _t(text: str | None) -> str | None:
        return transform_variables_for_export(text) if dotenv else text

    lines: list[str] = []
    if variables:
        for name, value in variables.items():
            lines.append(f"@{name} = {_t(value)}")
        lines.append("")

    blocks: list[list[str]] = []
    for request in requests:
        name, method, url, headers, body = _request_parts(request)
        block = [f"### {name}" if name else "###"]
        if name and IDENTIFIER_RE.match(name):
            block.append(f"# @name {name}")
        block.append(f"{method} {_t(url)}")
        for header_name, header_value in headers:
            block.append(f"{_t(header_name)}: {_t(header_value)}")
        if body:
            block.append("")
            block.append(_t(body))
        blocks.append(block)

    for i, block in enumerate(blocks):
        if i:
            lines.append("")
        lines.extend(block)
    return "\n".join(lines)


def collection_banner(collection: Collection) -> list[str]:
    """Comment banner that introduces a collection in a multi-collection file."""
    lines = [BANNER, f"### Collection: {collection.name}"]
    if collection.description:
        lines.append(f"### {collection.description}")
    lines.append(BANNER)
    return lines


def serialize_collection(collection: Collection, dotenv: bool = False) -> str:
    return serialize_to_http_file(collection.requests, collection.variables or None, dotenv=dotenv)
