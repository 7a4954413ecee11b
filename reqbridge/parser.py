"""reqbridge parser - reads .http / .rest files into structured requests.

File layout:

    @baseUrl = https://api.example.com      file-level variable

    ### Get users                           separator, optional name
    # @name listUsers                       explicit request name
    GET {{baseUrl}}/users HTTP/1.1          request line
    Accept: application/json                headers until the first blank line

    {"body": "kept verbatim until the next separator"}

Malformed blocks are skipped; parsing never raises.
"""

import base64
import binascii
import logging
import re

from reqbridge.models import (
    HTTP_METHODS,
    AuthConfig,
    Header,
    ParsedHttpFile,
    ParsedRequest,
    Request,
    RequestBody,
    generate_id,
)
from reqbridge.variables import PLACEHOLDER_RE, strip_dotenv_for_import

logger = logging.getLogger(__name__)

SEPARATOR_RE = re.compile(r"^#{3,}")
VARIABLE_RE = re.compile(r"^@([\w.-]+)\s*=\s*(.*)$")
NAME_RE = re.compile(r"^(?:#+|//)\s*@name\s+(\S+)")
REQUEST_LINE_RE = re.compile(r"^([A-Za-z]+)\s+(\S.*?)(?:\s+HTTP/\d+(?:\.\d+)?)?$")
BARE_URL_RE = re.compile(r"^(?:https?://|\{\{)\S*$")
URL_TARGET_RE = re.compile(r"^(?:https?://|/|\{\{)")
HEADER_RE = re.compile(r"^([^:]+):\s*(.*)$")


def _is_comment(stripped: str) -> bool:
    return stripped.startswith("#") or stripped.startswith("//")


def _parse_request_line(stripped: str) -> tuple[str, str] | None:
    """Return (method, url) or None if the line is not a request line."""
    if BARE_URL_RE.match(stripped):
        return "GET", stripped
    m = REQUEST_LINE_RE.match(stripped)
    if not m:
        return None
    method, target = m.group(1), m.group(2).strip()
    if method.upper() in HTTP_METHODS:
        return method.upper(), target
    # other methods are kept as written when the target looks like a URL
    if not URL_TARGET_RE.match(target):
        return None
    return method, target


def _trim_blank_edges(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def _parse_block(
    lines: list[str],
    separator_text: str | None,
    variables: dict[str, str],
) -> ParsedRequest | None:
    """Parse the lines between two separators into at most one request.

    ``@name = value`` lines seen before the request line are written into
    variables (last write wins).
    """
    name: str | None = None
    request_line: tuple[str, str] | None = None
    headers: list[tuple[str, str]] = []
    body_lines: list[str] = []
    phase = "preamble"

    for line in lines:
        stripped = line.strip()

        if phase == "preamble":
            if not stripped:
                continue
            m = NAME_RE.match(stripped)
            if m:
                name = m.group(1)
                continue
            if _is_comment(stripped):
                continue
            m = VARIABLE_RE.match(stripped)
            if m:
                variables[m.group(1)] = m.group(2).strip()
                continue
            request_line = _parse_request_line(stripped)
            if request_line is None:
                logger.warning("Skipping request block: no request line (got %r)", stripped)
                return None
            phase = "headers"
            continue

        if phase == "headers":
            if not stripped:
                phase = "body"
                continue
            if _is_comment(stripped):
                continue
            m = HEADER_RE.match(line)
            if m:
                headers.append((m.group(1).strip(), m.group(2).strip()))
            else:
                logger.debug("Ignoring malformed header line %r", stripped)
            continue

        body_lines.append(line)

    if request_line is None:
        return None

    body_lines = _trim_blank_edges(body_lines)
    method, url = request_line
    return ParsedRequest(
        method=method,
        url=url,
        headers=tuple(headers),
        body="\n".join(body_lines) if body_lines else None,
        name=name or separator_text or None,
        comment=separator_text or None,
    )


def parse_http_file(content: str) -> ParsedHttpFile:
    """Parse a whole .http document into requests and file-level variables.

    A file without request blocks yields an empty request list; deciding
    whether that is an error is up to the caller.
    """
    variables: dict[str, str] = {}
    requests: list[ParsedRequest] = []

    block: list[str] = []
    separator_text: str | None = None

    def _flush() -> None:
        parsed = _parse_block(block, separator_text, variables)
        if parsed is not None:
            requests.append(parsed)

    for line in (content or "").splitlines():
        stripped = line.strip()
        if SEPARATOR_RE.match(stripped):
            _flush()
            block = []
            separator_text = stripped.lstrip("#").strip() or None
            continue
        block.append(line)
    _flush()

    logger.debug("Parsed %d request(s), %d variable(s)", len(requests), len(variables))
    return ParsedHttpFile(requests=requests, variables=variables)


def parse_request_block(content: str) -> ParsedRequest | None:
    """Parse a snippet and return its first request, if any."""
    result = parse_http_file(content)
    return result.requests[0] if result.requests else None


# ── Conversion to the Request entity ─────────────────────────────────────


def detect_body_type(body: str | None, headers: list[tuple[str, str]] | tuple) -> str:
    """Guess the body type from Content-Type, then from the content itself."""
    if not body or not body.strip():
        return "none"

    for name, value in headers:
        if name.lower() == "content-type":
            content_type = value.lower()
            if "application/json" in content_type:
                return "json"
            if "application/xml" in content_type or "text/xml" in content_type:
                return "xml"
            if "application/x-www-form-urlencoded" in content_type:
                return "form"
            break

    text = body.strip()
    if (text.startswith("{") and text.endswith("}")) or (text.startswith("[") and text.endswith("]")):
        return "json"
    if text.startswith("<"):
        return "xml"
    return "text"


def _auth_from_header(value: str) -> AuthConfig | None:
    """Turn an Authorization header value into an auth config, if recognised."""
    scheme, _, credentials = value.strip().partition(" ")
    credentials = credentials.strip()
    scheme = scheme.lower()
    if scheme == "bearer" and credentials:
        return AuthConfig(type="bearer", token=credentials)
    if scheme == "basic" and credentials:
        if PLACEHOLDER_RE.search(credentials):
            username, sep, password = credentials.partition(":")
            if sep and username:
                return AuthConfig(type="basic", username=username, password=password)
            return AuthConfig(type="basic", username="", password=credentials)
        try:
            decoded = base64.b64decode(credentials, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return None
        username, _, password = decoded.partition(":")
        return AuthConfig(type="basic", username=username, password=password)
    return None


def parsed_request_to_request(
    parsed: ParsedRequest,
    request_id: str | None = None,
    normalize_dotenv: bool = False,
) -> Request:
    """Build a Request entity from a parsed request.

    A Bearer or Basic Authorization header is lifted into the auth config.
    With ``normalize_dotenv`` (used when importing) ``{{$dotenv X}}``
    references become plain ``{{X}}``; otherwise they are kept so they
    still read only the .env tier.
    """

    def _text(value):
        return strip_dotenv_for_import(value) if normalize_dotenv else value

    headers = [(_text(n), _text(v)) for n, v in parsed.headers]
    auth = None
    for i, (name, value) in enumerate(headers):
        if name.lower() == "authorization":
            auth = _auth_from_header(value)
            if auth is not None:
                del headers[i]
            break

    body = _text(parsed.body)
    method = parsed.method.upper() if parsed.method.upper() in HTTP_METHODS else parsed.method
    return Request(
        id=request_id or generate_id(),
        name=parsed.name or f"{method} Request",
        method=method,
        url=_text(parsed.url),
        headers=[Header(name=n, value=v) for n, v in headers],
        body=RequestBody(type=detect_body_type(body, headers), content=body or ""),
        auth=auth,
    )
