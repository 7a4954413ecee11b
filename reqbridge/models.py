"""reqbridge models - requests, collections and environments."""

import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE", "CONNECT")

BODY_TYPES = ("none", "json", "form", "text", "xml")
AUTH_TYPES = ("none", "basic", "bearer", "apikey")


def generate_id() -> str:
    """Return a new opaque identifier for stored entities."""
    return uuid.uuid4().hex


def _now_ms() -> int:
    return int(time.time() * 1000)


# ── Parsed file entities ─────────────────────────────────────────────────


@dataclass(frozen=True)
class ParsedRequest:
    """One request as read from .http text.

    Headers are kept in file order; duplicate names stay separate entries.
    """

    method: str
    url: str
    headers: tuple[tuple[str, str], ...] = ()
    body: str | None = None
    name: str | None = None
    comment: str | None = None


@dataclass
class ParsedHttpFile:
    requests: list[ParsedRequest] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)


# ── Domain entities ──────────────────────────────────────────────────────


@dataclass
class Header:
    name: str
    value: str
    enabled: bool = True


@dataclass
class RequestBody:
    type: str = "none"
    content: str = ""


@dataclass
class AuthConfig:
    type: str = "none"
    username: str | None = None
    password: str | None = None
    token: str | None = None
    api_key_name: str | None = None
    api_key_value: str | None = None
    api_key_in: str = "header"


@dataclass
class Request:
    id: str
    name: str
    method: str = "GET"
    url: str = ""
    headers: list[Header] = field(default_factory=list)
    body: RequestBody = field(default_factory=RequestBody)
    auth: AuthConfig | None = None
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)


@dataclass
class Collection:
    id: str
    name: str
    description: str = ""
    requests: list[Request] = field(default_factory=list)
    variables: dict[str, str] = field(default_factory=dict)
    default_headers: list[Header] = field(default_factory=list)
    default_auth: AuthConfig | None = None
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)


@dataclass
class EnvironmentVariable:
    name: str
    value: str = ""
    enabled: bool = True


@dataclass
class Environment:
    id: str
    name: str
    variables: list[EnvironmentVariable] = field(default_factory=list)
    is_active: bool = False
    created_at: int = field(default_factory=_now_ms)
    updated_at: int = field(default_factory=_now_ms)

    def enabled_variables(self) -> dict[str, str]:
        """Enabled entries as a mapping; later duplicates win."""
        return {v.name: v.value for v in self.variables if v.enabled}

    def defines(self, name: str) -> bool:
        return any(v.name == name for v in self.variables)


# ── Factories ────────────────────────────────────────────────────────────


def create_request(
    name: str,
    method: str = "GET",
    url: str = "",
    auth: AuthConfig | None = None,
) -> Request:
    return Request(id=generate_id(), name=name, method=method, url=url, auth=auth)


def create_collection(name: str, description: str = "") -> Collection:
    return Collection(id=generate_id(), name=name, description=description)


def create_environment(name: str) -> Environment:
    return Environment(id=generate_id(), name=name)


def create_variable(name: str, value: str) -> EnvironmentVariable:
    return EnvironmentVariable(name=name, value=value, enabled=True)


# ── Serialization for storage ────────────────────────────────────────────


def to_dict(entity: Any) -> dict:
    """Plain-dict form of any model dataclass (JSON-safe)."""
    return asdict(entity)


def _auth_from_dict(data: dict | None) -> AuthConfig | None:
    if not data:
        return None
    return AuthConfig(**{k: v for k, v in data.items() if k in AuthConfig.__dataclass_fields__})


def _headers_from_list(items: list | None) -> list[Header]:
    return [
        Header(name=h.get("name", ""), value=h.get("value", ""), enabled=h.get("enabled", True))
        for h in items or []
    ]


def request_from_dict(data: dict) -> Request:
    body = data.get("body") or {}
    return Request(
        id=data.get("id") or generate_id(),
        name=data.get("name", ""),
        method=data.get("method", "GET"),
        url=data.get("url", ""),
        headers=_headers_from_list(data.get("headers")),
        body=RequestBody(type=body.get("type", "none"), content=body.get("content", "")),
        auth=_auth_from_dict(data.get("auth")),
        created_at=data.get("created_at") or _now_ms(),
        updated_at=data.get("updated_at") or _now_ms(),
    )


def collection_from_dict(data: dict) -> Collection:
    return Collection(
        id=data.get("id") or generate_id(),
        name=data.get("name", ""),
        description=data.get("description") or "",
        requests=[request_from_dict(r) for r in data.get("requests") or []],
        variables=dict(data.get("variables") or {}),
        default_headers=_headers_from_list(data.get("default_headers")),
        default_auth=_auth_from_dict(data.get("default_auth")),
        created_at=data.get("created_at") or _now_ms(),
        updated_at=data.get("updated_at") or _now_ms(),
    )


def environment_from_dict(data: dict) -> Environment:
    return Environment(
        id=data.get("id") or generate_id(),
        name=data.get("name", ""),
        variables=[
            EnvironmentVariable(
                name=v.get("name", ""),
                value=v.get("value", ""),
                enabled=v.get("enabled", True),
            )
            for v in data.get("variables") or []
        ],
        is_active=bool(data.get("is_active", False)),
        created_at=data.get("created_at") or _now_ms(),
        updated_at=data.get("updated_at") or _now_ms(),
    )
