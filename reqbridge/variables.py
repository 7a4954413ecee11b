"""reqbridge variables - placeholder scanning and classification.

Placeholder syntax:
  {{name}}                     plain variable
  {{$builtin [args]}}          dynamic built-in ($guid, $timestamp, ...)
  {{$dotenv NAME}}             .env tier only
  {{$env:NAME}}                process environment
  {{req.response.body.path}}   request chaining reference
"""

import re
from collections.abc import Iterable
from enum import Enum

from reqbridge.models import Request

# Non-greedy: stops at the first "}}", nested braces are not supported.
# Empty or blank contents match too and are ignored by every consumer.
PLACEHOLDER_RE = re.compile(r"\{\{(.*?)\}\}")
CHAIN_RE = re.compile(r"^(\w+)\.response\.(body|headers|statusText|status)((?:[.\[].*)?)$")

DOTENV_PREFIX = "$dotenv "
OS_ENV_PREFIX = "$env:"


class PlaceholderKind(str, Enum):
    PLAIN = "plain"
    BUILTIN = "builtin"
    DOTENV = "dotenv"
    OS_ENV = "os_env"
    CHAIN = "chain"


def classify_placeholder(inner: str) -> PlaceholderKind | None:
    """Classify the trimmed content of a ``{{...}}`` token.

    Returns None for whitespace-only content, which is not a placeholder.
    """
    name = inner.strip()
    if not name:
        return None
    if name.startswith(DOTENV_PREFIX):
        return PlaceholderKind.DOTENV
    if name.startswith(OS_ENV_PREFIX):
        return PlaceholderKind.OS_ENV
    if name.startswith("$"):
        return PlaceholderKind.BUILTIN
    if CHAIN_RE.match(name):
        return PlaceholderKind.CHAIN
    return PlaceholderKind.PLAIN


def is_user_variable(name: str) -> bool:
    """True for names a user is expected to define (no $, no dots)."""
    return bool(name) and not name.startswith("$") and "." not in name


def extract_variable_names(text: str | None) -> set[str]:
    """Return the set of plain variable names referenced in text.

    Built-ins ($-prefixed) and anything dotted (request chaining) are
    excluded. Nothing is resolved or computed.
    """
    if not text:
        return set()
    names: set[str] = set()
    for m in PLACEHOLDER_RE.finditer(text):
        name = m.group(1).strip()
        if is_user_variable(name):
            names.add(name)
    return names


def extract_from_texts(texts: Iterable[str | None]) -> set[str]:
    names: set[str] = set()
    for text in texts:
        names |= extract_variable_names(text)
    return names


def request_texts(request: Request) -> list[str]:
    """Every text field of a request that may carry placeholders."""
    texts = [request.url]
    for header in request.headers:
        texts.extend((header.name, header.value))
    if request.body and request.body.content:
        texts.append(request.body.content)
    auth = request.auth
    if auth:
        for value in (
            auth.token,
            auth.username,
            auth.password,
            auth.api_key_value,
            auth.api_key_name,
        ):
            if value:
                texts.append(value)
    return texts


def extract_from_request(request: Request) -> set[str]:
    return extract_from_texts(request_texts(request))


def extract_from_requests(requests: Iterable[Request]) -> set[str]:
    """Union of plain variable names used across all requests."""
    names: set[str] = set()
    for request in requests:
        names |= extract_from_request(request)
    return names


# ── Export / import rewrites ─────────────────────────────────────────────


def transform_variables_for_export(text: str | None) -> str | None:
    """Rewrite ``{{X}}`` to ``{{$dotenv X}}`` for portable .http files.

    Built-ins, existing $dotenv references and chaining references are
    left untouched.
    """
    if not text:
        return text

    def _replace(m: re.Match) -> str:
        name = m.group(1).strip()
        if not is_user_variable(name):
            return m.group(0)
        return "{{" + DOTENV_PREFIX + name + "}}"

    return PLACEHOLDER_RE.sub(_replace, text)


def strip_dotenv_for_import(text: str | None) -> str | None:
    """Rewrite ``{{$dotenv X}}`` back to ``{{X}}``."""
    if not text:
        return text

    def _replace(m: re.Match) -> str:
        name = m.group(1).strip()
        if not name.startswith(DOTENV_PREFIX):
            return m.group(0)
        return "{{" + name[len(DOTENV_PREFIX) :].strip() + "}}"

    return PLACEHOLDER_RE.sub(_replace, text)
