"""reqbridge storage - collections, environments and the active environment.

Environment variable values are kept apart from the environment records,
in a secrets mapping keyed by ``"<environment-id>:<variable-name>"``, and
hydrated back into the environment on every read.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Protocol

from reqbridge.errors import StorageError
from reqbridge.models import (
    Collection,
    Environment,
    collection_from_dict,
    environment_from_dict,
    to_dict,
)

logger = logging.getLogger(__name__)

STATE_FILE = "state.json"
SECRETS_FILE = "secrets.json"


class Storage(Protocol):
    def get_collections(self) -> list[Collection]: ...

    def get_collection(self, collection_id: str) -> Collection | None: ...

    def save_collection(self, collection: Collection) -> None: ...

    def delete_collection(self, collection_id: str) -> None: ...

    def get_environments(self) -> list[Environment]: ...

    def get_environment(self, environment_id: str) -> Environment | None: ...

    def save_environment(self, environment: Environment) -> None: ...

    def delete_environment(self, environment_id: str) -> None: ...

    def get_active_environment(self) -> Environment | None: ...

    def set_active_environment_id(self, environment_id: str | None) -> None: ...


def secret_key(environment_id: str, variable_name: str) -> str:
    return f"{environment_id}:{variable_name}"


def find_collection(storage: Storage, id_or_name: str) -> Collection | None:
    """Look a collection up by id, then by exact name, then case-insensitively."""
    found = storage.get_collection(id_or_name)
    if found:
        return found
    collections = storage.get_collections()
    for c in collections:
        if c.name == id_or_name:
            return c
    lower = id_or_name.lower()
    for c in collections:
        if c.name.lower() == lower:
            return c
    return None


def find_environment(storage: Storage, id_or_name: str) -> Environment | None:
    found = storage.get_environment(id_or_name)
    if found:
        return found
    lower = id_or_name.lower()
    for e in storage.get_environments():
        if e.name == id_or_name or e.name.lower() == lower:
            return e
    return None


# ── In-memory ────────────────────────────────────────────────────────────


class MemoryStorage:
    """Process-local storage. Hands out copies so callers cannot alias state."""

    def __init__(self):
        self._collections: dict[str, Collection] = {}
        self._environments: dict[str, dict] = {}
        self._secrets: dict[str, str] = {}
        self._active_id: str | None = None

    def get_collections(self) -> list[Collection]:
        return [copy.deepcopy(c) for c in self._collections.values()]

    def get_collection(self, collection_id: str) -> Collection | None:
        c = self._collections.get(collection_id)
        return copy.deepcopy(c) if c else None

    def save_collection(self, collection: Collection) -> None:
        self._collections[collection.id] = copy.deepcopy(collection)

    def delete_collection(self, collection_id: str) -> None:
        self._collections.pop(collection_id, None)

    def get_environments(self) -> list[Environment]:
        return [self._hydrate(e) for e in self._environments.values()]

    def get_environment(self, environment_id: str) -> Environment | None:
        stored = self._environments.get(environment_id)
        return self._hydrate(stored) if stored else None

    def save_environment(self, environment: Environment) -> None:
        _drop_secrets(self._secrets, self._environments.get(environment.id))
        self._environments[environment.id] = _strip_values(environment, self._secrets)

    def delete_environment(self, environment_id: str) -> None:
        _drop_secrets(self._secrets, self._environments.pop(environment_id, None))
        if self._active_id == environment_id:
            self._active_id = None

    def get_active_environment(self) -> Environment | None:
        if not self._active_id:
            return None
        return self.get_environment(self._active_id)

    def set_active_environment_id(self, environment_id: str | None) -> None:
        self._active_id = environment_id

    def _hydrate(self, stored: dict) -> Environment:
        return _hydrate(stored, self._secrets, self._active_id)


# ── File-backed ──────────────────────────────────────────────────────────


class FileStorage:
    """JSON state file plus a separate secrets file under one directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.state_path = self.root / STATE_FILE
        self.secrets_path = self.root / SECRETS_FILE

    # Low-level I/O

    def _read(self, path: Path, empty: dict) -> dict:
        if not path.exists():
            return empty
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read {path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Cannot read {path}: unexpected content")
        return data

    def _write(self, path: Path, data: dict) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            with open(tmp, "w") as f:
                json.dump(data, f, indent=2)
            tmp.replace(path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e

    def _state(self) -> dict:
        state = self._read(self.state_path, {})
        state.setdefault("collections", [])
        state.setdefault("environments", [])
        state.setdefault("active_environment_id", None)
        return state

    def _secrets(self) -> dict[str, str]:
        return self._read(self.secrets_path, {})

    # Collections

    def get_collections(self) -> list[Collection]:
        return [collection_from_dict(c) for c in self._state()["collections"]]

    def get_collection(self, collection_id: str) -> Collection | None:
        for c in self._state()["collections"]:
            if c.get("id") == collection_id:
                return collection_from_dict(c)
        return None

    def save_collection(self, collection: Collection) -> None:
        state = self._state()
        data = to_dict(collection)
        items = state["collections"]
        for i, c in enumerate(items):
            if c.get("id") == collection.id:
                items[i] = data
                break
        else:
            items.append(data)
        self._write(self.state_path, state)

    def delete_collection(self, collection_id: str) -> None:
        state = self._state()
        state["collections"] = [c for c in state["collections"] if c.get("id") != collection_id]
        self._write(self.state_path, state)

    # Environments

    def get_environments(self) -> list[Environment]:
        state = self._state()
        secrets = self._secrets()
        active = state["active_environment_id"]
        return [_hydrate(e, secrets, active) for e in state["environments"]]

    def get_environment(self, environment_id: str) -> Environment | None:
        for env in self.get_environments():
            if env.id == environment_id:
                return env
        return None

    def save_environment(self, environment: Environment) -> None:
        state = self._state()
        secrets = self._secrets()
        items = state["environments"]
        old = next((e for e in items if e.get("id") == environment.id), None)
        _drop_secrets(secrets, old)
        stored = _strip_values(environment, secrets)
        if old is None:
            items.append(stored)
        else:
            items[items.index(old)] = stored
        self._write(self.secrets_path, secrets)
        self._write(self.state_path, state)

    def delete_environment(self, environment_id: str) -> None:
        state = self._state()
        secrets = self._secrets()
        old = next((e for e in state["environments"] if e.get("id") == environment_id), None)
        if old is None:
            return
        _drop_secrets(secrets, old)
        state["environments"].remove(old)
        if state["active_environment_id"] == environment_id:
            state["active_environment_id"] = None
        self._write(self.secrets_path, secrets)
        self._write(self.state_path, state)

    def get_active_environment(self) -> Environment | None:
        active = self._state()["active_environment_id"]
        if not active:
            return None
        return self.get_environment(active)

    def set_active_environment_id(self, environment_id: str | None) -> None:
        state = self._state()
        state["active_environment_id"] = environment_id
        self._write(self.state_path, state)


# ── Helpers shared by both backends ──────────────────────────────────────


def _strip_values(environment: Environment, secrets: dict[str, str]) -> dict:
    """Move variable values into secrets; return the value-less record."""
    data = to_dict(environment)
    for var in data["variables"]:
        secrets[secret_key(environment.id, var["name"])] = var.pop("value", "")
    data.pop("is_active", None)
    return data


def _drop_secrets(secrets: dict[str, str], stored: dict | None) -> None:
    if not stored:
        return
    for var in stored.get("variables", []):
        secrets.pop(secret_key(stored["id"], var.get("name", "")), None)


def _hydrate(stored: dict, secrets: dict[str, str], active_id: str | None) -> Environment:
    data = copy.deepcopy(stored)
    for var in data.get("variables", []):
        var["value"] = secrets.get(secret_key(data["id"], var.get("name", "")), "")
    data["is_active"] = data["id"] == active_id
    return environment_from_dict(data)
