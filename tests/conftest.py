"""Shared fixtures for reqbridge scenario tests."""

import json

import pytest
from click.testing import CliRunner

from reqbridge import core
from reqbridge.executor import RequestResult
from reqbridge.storage import MemoryStorage


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def global_reqbridge_dir(tmp_path, monkeypatch):
    """Override the global ~/.reqbridge directory to a temp location."""
    fake_global = tmp_path / "fake_home" / ".reqbridge"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(core, "GLOBAL_DIR", fake_global)
    monkeypatch.setattr(core, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


@pytest.fixture
def storage():
    return MemoryStorage()


def make_request_result(
    status_code=200,
    body=None,
    headers=None,
    elapsed_ms=42.0,
    error=None,
    raw_text="",
    reason="OK",
):
    """Factory for mock RequestResult objects."""
    r = RequestResult()
    r.status_code = status_code
    r.reason = reason
    r.headers = headers or {}
    r.body = body
    r.elapsed_ms = elapsed_ms
    r.error = error
    r.raw_text = raw_text or (
        json.dumps(body) if isinstance(body, dict | list) else str(body or "")
    )
    return r
