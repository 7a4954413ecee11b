"""reqbridge resolver - substitutes {{...}} placeholders from layered variable tiers.

Lookup order for a plain ``{{name}}``:
  1. collection variables
  2. the selected environment (enabled entries only)
  3. .env file variables
Built-ins (``{{$guid}}`` etc.) are computed only when no tier defines the
same name. Anything that cannot be resolved is left verbatim and reported.
"""

import base64
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import quote

from reqbridge.builtins import resolve_builtin
from reqbridge.chaining import ResponseStore, resolve_reference
from reqbridge.models import AuthConfig, Collection, Environment, Request
from reqbridge.variables import (
    DOTENV_PREFIX,
    OS_ENV_PREFIX,
    PLACEHOLDER_RE,
    PlaceholderKind,
    classify_placeholder,
)

logger = logging.getLogger(__name__)

MAX_DEPTH = 10

CONTENT_TYPES = {
    "json": "application/json",
    "xml": "application/xml",
    "form": "application/x-www-form-urlencoded",
    "text": "text/plain",
}


@dataclass
class VariableContext:
    """Everything one resolution may consult. Built per call, never global."""

    collection_variables: dict[str, str] = field(default_factory=dict)
    environment: Environment | None = None
    dotenv_variables: dict[str, str] = field(default_factory=dict)
    responses: ResponseStore | None = None
    os_environ: Mapping[str, str] | None = None

    def environment_variables(self) -> dict[str, str]:
        if self.environment is None:
            return {}
        return self.environment.enabled_variables()

    def lookup(self, name: str) -> str | None:
        """Explicit value for name from the first tier that defines it."""
        if name in self.collection_variables:
            return self.collection_variables[name]
        env_vars = self.environment_variables()
        if name in env_vars:
            return env_vars[name]
        return self.dotenv_variables.get(name)

    def os_lookup(self, name: str) -> str | None:
        source = os.environ if self.os_environ is None else self.os_environ
        return source.get(name)


@dataclass
class Resolution:
    text: str
    unresolved: set[str] = field(default_factory=set)


@dataclass
class ResolvedRequest:
    method: str
    url: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: str | None = None
    unresolved: set[str] = field(default_factory=set)


def build_context(
    storage,
    collection_id: str | None = None,
    current_environment_id: str | None = None,
    dotenv_variables: dict[str, str] | None = None,
    responses: ResponseStore | None = None,
) -> VariableContext:
    """Hydrate a context from storage for one collection and one environment."""
    collection_vars: dict[str, str] = {}
    if collection_id:
        collection = storage.get_collection(collection_id)
        if collection and collection.variables:
            collection_vars = dict(collection.variables)
    environment = None
    if current_environment_id:
        environment = storage.get_environment(current_environment_id)
        if environment is None:
            logger.warning("Environment %r not found; skipping environment tier", current_environment_id)
    return VariableContext(
        collection_variables=collection_vars,
        environment=environment,
        dotenv_variables=dict(dotenv_variables or {}),
        responses=responses,
    )


def resolve_placeholder(inner: str, context: VariableContext) -> str | None:
    """Value for one placeholder body, or None to leave it untouched."""
    name = inner.strip()
    kind = classify_placeholder(name)
    if kind is None:
        return None
    if kind is PlaceholderKind.DOTENV:
        return context.dotenv_variables.get(name[len(DOTENV_PREFIX) :].strip())
    if kind is PlaceholderKind.OS_ENV:
        return context.os_lookup(name[len(OS_ENV_PREFIX) :].strip())
    if kind is PlaceholderKind.BUILTIN:
        explicit = context.lookup(name)
        return explicit if explicit is not None else resolve_builtin(name)
    if kind is PlaceholderKind.CHAIN:
        return resolve_reference(name, context.responses)
    return context.lookup(name)


def resolve_text_report(text: str | None, context: VariableContext) -> Resolution:
    """Resolve every placeholder in text and report the ones left over.

    Values that themselves contain placeholders are resolved again, up to
    MAX_DEPTH passes. Every built-in occurrence gets its own fresh value.
    """
    if not text:
        return Resolution(text or "")

    def _replace(m) -> str:
        value = resolve_placeholder(m.group(1), context)
        return m.group(0) if value is None else value

    result = text
    for _ in range(MAX_DEPTH):
        updated = PLACEHOLDER_RE.sub(_replace, result)
        if updated == result:
            break
        result = updated

    unresolved = {m.group(1).strip() for m in PLACEHOLDER_RE.finditer(result) if m.group(1).strip()}
    if unresolved:
        logger.debug("Unresolved placeholders: %s", ", ".join(sorted(unresolved)))
    return Resolution(result, unresolved)


def resolve_text(text: str | None, context: VariableContext) -> str:
    return resolve_text_report(text, context).text


def find_unresolved(text: str | None, context: VariableContext) -> set[str]:
    """Names that would stay unresolved in text. Does not modify anything."""
    return resolve_text_report(text, context).unresolved


def variables_preview(context: VariableContext) -> dict[str, dict[str, str]]:
    """Variables grouped by tier, plus the merged view the resolver sees."""
    merged = dict(context.dotenv_variables)
    merged.update(context.environment_variables())
    merged.update(context.collection_variables)
    return {
        "dotenv": dict(context.dotenv_variables),
        "environment": context.environment_variables(),
        "collection": dict(context.collection_variables),
        "merged": merged,
    }


# ── Whole requests ───────────────────────────────────────────────────────


def _effective_auth(request: Request, collection: Collection | None) -> AuthConfig | None:
    if request.auth and request.auth.type != "none":
        return request.auth
    if collection and collection.default_auth and collection.default_auth.type != "none":
        return collection.default_auth
    return None


def _merge_headers(request: Request, collection: Collection | None) -> list[tuple[str, str]]:
    """Collection defaults first; a request header replaces a default of the same name."""
    headers: list[tuple[str, str]] = []
    if collection:
        headers = [(h.name, h.value) for h in collection.default_headers if h.enabled and h.name]
    own = [(h.name, h.value) for h in request.headers if h.enabled and h.name]
    own_names = {name.lower() for name, _ in own}
    headers = [(n, v) for n, v in headers if n.lower() not in own_names]
    return headers + own


def resolve_request(
    request: Request,
    context: VariableContext,
    collection: Collection | None = None,
) -> ResolvedRequest:
    """Resolve URL, headers, auth and body into a request ready to send.

    Auth placement:
      basic:   Authorization: Basic <b64(username:password)>
      bearer:  Authorization: Bearer <token>
      apikey:  custom header, or appended to the query string
    """
    unresolved: set[str] = set()

    def _res(text: str | None) -> str:
        r = resolve_text_report(text, context)
        unresolved.update(r.unresolved)
        return r.text

    url = _res(request.url)
    headers = [(_res(name), _res(value)) for name, value in _merge_headers(request, collection)]

    auth = _effective_auth(request, collection)
    if auth and auth.type == "basic" and auth.username:
        credentials = f"{_res(auth.username)}:{_res(auth.password or '')}"
        encoded = base64.b64encode(credentials.encode()).decode()
        headers.append(("Authorization", f"Basic {encoded}"))
    elif auth and auth.type == "basic" and auth.password:
        # password alone holds pre-encoded credentials, or raw user:pass
        credentials = _res(auth.password)
        if ":" in credentials:
            credentials = base64.b64encode(credentials.encode()).decode()
        headers.append(("Authorization", f"Basic {credentials}"))
    elif auth and auth.type == "bearer" and auth.token:
        headers.append(("Authorization", f"Bearer {_res(auth.token)}"))
    elif auth and auth.type == "apikey" and auth.api_key_name:
        key_name = _res(auth.api_key_name)
        key_value = _res(auth.api_key_value or "")
        if auth.api_key_in == "header":
            headers.append((key_name, key_value))
        else:
            separator = "&" if "?" in url else "?"
            url += f"{separator}{quote(key_name, safe='')}={quote(key_value, safe='')}"

    body = None
    if request.body and request.body.type != "none" and request.body.content:
        body = _res(request.body.content)
        content_type = CONTENT_TYPES.get(request.body.type)
        if content_type and not any(n.lower() == "content-type" for n, _ in headers):
            headers.append(("Content-Type", content_type))

    return ResolvedRequest(
        method=request.method.upper(),
        url=url,
        headers=headers,
        body=body,
        unresolved=unresolved,
    )
