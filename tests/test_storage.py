"""Tests for the in-memory and file-backed storage backends."""

import json

import pytest

from reqbridge.errors import StorageError
from reqbridge.models import create_collection, create_environment, create_request, create_variable
from reqbridge.storage import FileStorage, MemoryStorage, find_collection, find_environment, secret_key


@pytest.fixture(params=["memory", "file"])
def backend(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return FileStorage(tmp_path / "store")


def _env(name, **values):
    env = create_environment(name)
    env.variables = [create_variable(k, v) for k, v in values.items()]
    return env


class TestCollections:
    def test_save_and_get(self, backend):
        collection = create_collection("api")
        collection.requests = [create_request("ping", url="https://x/ping")]
        collection.variables = {"host": "https://x"}
        backend.save_collection(collection)

        loaded = backend.get_collection(collection.id)
        assert loaded.name == "api"
        assert loaded.requests[0].url == "https://x/ping"
        assert loaded.variables == {"host": "https://x"}

    def test_update_replaces(self, backend):
        collection = create_collection("api")
        backend.save_collection(collection)
        collection.name = "renamed"
        backend.save_collection(collection)
        assert [c.name for c in backend.get_collections()] == ["renamed"]

    def test_delete(self, backend):
        collection = create_collection("api")
        backend.save_collection(collection)
        backend.delete_collection(collection.id)
        assert backend.get_collection(collection.id) is None

    def test_returned_objects_are_copies(self, backend):
        collection = create_collection("api")
        backend.save_collection(collection)
        loaded = backend.get_collection(collection.id)
        loaded.name = "changed"
        assert backend.get_collection(collection.id).name == "api"


class TestEnvironments:
    def test_values_round_trip(self, backend):
        env = _env("dev", token="abc", empty="")
        backend.save_environment(env)
        loaded = backend.get_environment(env.id)
        assert loaded.enabled_variables() == {"token": "abc", "empty": ""}

    def test_single_active_environment(self, backend):
        dev, prod = _env("dev"), _env("prod")
        backend.save_environment(dev)
        backend.save_environment(prod)
        backend.set_active_environment_id(dev.id)
        backend.set_active_environment_id(prod.id)

        assert backend.get_active_environment().id == prod.id
        flags = {e.name: e.is_active for e in backend.get_environments()}
        assert flags == {"dev": False, "prod": True}

    def test_delete_active_clears_selection(self, backend):
        env = _env("dev")
        backend.save_environment(env)
        backend.set_active_environment_id(env.id)
        backend.delete_environment(env.id)
        assert backend.get_active_environment() is None

    def test_renamed_variable_drops_old_secret(self, backend):
        env = _env("dev", old="1")
        backend.save_environment(env)
        env.variables = [create_variable("new", "2")]
        backend.save_environment(env)
        assert backend.get_environment(env.id).enabled_variables() == {"new": "2"}


class TestFileStorageLayout:
    def test_values_kept_out_of_state_file(self, tmp_path):
        storage = FileStorage(tmp_path)
        env = _env("dev", token="s3cret")
        storage.save_environment(env)

        state = (tmp_path / "state.json").read_text()
        secrets = json.loads((tmp_path / "secrets.json").read_text())
        assert "s3cret" not in state
        assert secrets == {secret_key(env.id, "token"): "s3cret"}

    def test_persists_across_instances(self, tmp_path):
        env = _env("dev", a="1")
        FileStorage(tmp_path).save_environment(env)
        FileStorage(tmp_path).set_active_environment_id(env.id)
        assert FileStorage(tmp_path).get_active_environment().enabled_variables() == {"a": "1"}

    def test_missing_directory_is_empty(self, tmp_path):
        storage = FileStorage(tmp_path / "nope")
        assert storage.get_collections() == []
        assert storage.get_environments() == []

    def test_corrupt_state_raises(self, tmp_path):
        (tmp_path / "state.json").write_text("{not json")
        with pytest.raises(StorageError):
            FileStorage(tmp_path).get_collections()


class TestLookupHelpers:
    def test_find_collection_by_id_or_name(self, storage):
        collection = create_collection("Users API")
        storage.save_collection(collection)
        assert find_collection(storage, collection.id).id == collection.id
        assert find_collection(storage, "Users API").id == collection.id
        assert find_collection(storage, "users api").id == collection.id
        assert find_collection(storage, "other") is None

    def test_find_environment(self, storage):
        env = _env("Staging")
        storage.save_environment(env)
        assert find_environment(storage, "staging").id == env.id
        assert find_environment(storage, env.id).id == env.id
        assert find_environment(storage, "prod") is None
