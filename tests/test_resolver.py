"""Scenario tests for layered variable resolution."""

import base64
import re

from reqbridge.chaining import InMemoryResponseStore, StoredResponse
from reqbridge.models import (
    AuthConfig,
    EnvironmentVariable,
    Header,
    RequestBody,
    create_collection,
    create_environment,
    create_request,
    create_variable,
)
from reqbridge.resolver import (
    MAX_DEPTH,
    VariableContext,
    build_context,
    find_unresolved,
    resolve_request,
    resolve_text,
    resolve_text_report,
    variables_preview,
)


def _env(name="dev", **values):
    env = create_environment(name)
    env.variables = [create_variable(k, v) for k, v in values.items()]
    return env


# ── Tier precedence ──────────────────────────────────────────────────────


class TestPrecedence:
    def test_collection_beats_environment_beats_dotenv(self):
        ctx = VariableContext(
            collection_variables={"a": "1"},
            environment=_env(a="2", b="3"),
            dotenv_variables={"a": "4", "b": "5", "c": "6"},
        )
        assert resolve_text("{{a}}-{{b}}-{{c}}", ctx) == "1-3-6"

    def test_disabled_environment_entry_ignored(self):
        env = _env()
        env.variables = [EnvironmentVariable("a", "env", enabled=False)]
        ctx = VariableContext(environment=env, dotenv_variables={"a": "dot"})
        assert resolve_text("{{a}}", ctx) == "dot"

    def test_explicit_value_shadows_builtin(self):
        ctx = VariableContext(collection_variables={"$guid": "fixed"})
        assert resolve_text("{{$guid}}", ctx) == "fixed"

    def test_empty_string_is_a_value(self):
        ctx = VariableContext(environment=_env(token=""))
        assert resolve_text("[{{token}}]", ctx) == "[]"


# ── Special forms ────────────────────────────────────────────────────────


class TestSpecialForms:
    def test_dotenv_reads_only_dotenv_tier(self):
        ctx = VariableContext(
            collection_variables={"KEY": "collection"},
            dotenv_variables={"KEY": "dotenv"},
        )
        assert resolve_text("{{$dotenv KEY}}", ctx) == "dotenv"

    def test_dotenv_missing_stays(self):
        ctx = VariableContext(collection_variables={"KEY": "collection"})
        assert resolve_text("{{$dotenv KEY}}", ctx) == "{{$dotenv KEY}}"

    def test_os_environment(self):
        ctx = VariableContext(os_environ={"HOME": "/home/me"})
        assert resolve_text("{{$env:HOME}}/x", ctx) == "/home/me/x"

    def test_os_environment_missing(self):
        ctx = VariableContext(os_environ={})
        assert resolve_text("{{$env:NOPE}}", ctx) == "{{$env:NOPE}}"

    def test_builtins_are_fresh_per_occurrence(self):
        text = resolve_text("{{$guid}} {{$guid}}", VariableContext())
        first, second = text.split()
        assert first != second

    def test_timestamp_format(self):
        text = resolve_text("{{$timestamp}}", VariableContext())
        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$", text)

    def test_chaining_reference(self):
        responses = InMemoryResponseStore()
        responses.put("login", StoredResponse(status=200, body='{"token": "t-9"}'))
        ctx = VariableContext(responses=responses)
        assert resolve_text("Bearer {{login.response.body.token}}", ctx) == "Bearer t-9"


# ── Nesting and leftovers ────────────────────────────────────────────────


class TestNestingAndUnresolved:
    def test_nested_values_resolved(self):
        ctx = VariableContext(
            collection_variables={"url": "{{host}}/api"},
            environment=_env(host="{{scheme}}://example.com"),
            dotenv_variables={"scheme": "https"},
        )
        assert resolve_text("{{url}}/users", ctx) == "https://example.com/api/users"

    def test_self_reference_terminates(self):
        ctx = VariableContext(collection_variables={"loop": "{{loop}}"})
        assert resolve_text("{{loop}}", ctx) == "{{loop}}"

    def test_depth_is_bounded(self):
        chain = {f"v{i}": f"{{{{v{i + 1}}}}}" for i in range(MAX_DEPTH + 5)}
        ctx = VariableContext(collection_variables=chain)
        report = resolve_text_report("{{v0}}", ctx)
        assert report.unresolved

    def test_unresolved_left_verbatim_and_reported(self):
        ctx = VariableContext(collection_variables={"a": "1"})
        report = resolve_text_report("{{a}}/{{UNSET}}/{{ other }}", ctx)
        assert report.text == "1/{{UNSET}}/{{ other }}"
        assert report.unresolved == {"UNSET", "other"}

    def test_empty_braces_left_alone(self):
        ctx = VariableContext(collection_variables={"a": "1"})
        report = resolve_text_report("{{}}/{{a}}", ctx)
        assert report.text == "{{}}/1"
        assert report.unresolved == set()

    def test_find_unresolved(self):
        ctx = VariableContext(dotenv_variables={"x": "1"})
        assert find_unresolved("{{x}} {{y}} {{$guid}}", ctx) == {"y"}

    def test_no_placeholders(self):
        assert resolve_text("plain", VariableContext()) == "plain"
        assert resolve_text("", VariableContext()) == ""


# ── Context hydration ────────────────────────────────────────────────────


class TestBuildContext:
    def test_explicit_environment_is_used(self, storage):
        collection = create_collection("api")
        collection.variables = {"c": "col"}
        storage.save_collection(collection)
        dev, prod = _env("dev", host="dev"), _env("prod", host="prod")
        storage.save_environment(dev)
        storage.save_environment(prod)
        storage.set_active_environment_id(prod.id)

        ctx = build_context(storage, collection.id, dev.id, {"d": "dot"})
        assert resolve_text("{{c}} {{host}} {{d}}", ctx) == "col dev dot"

    def test_without_environment_id_no_environment_tier(self, storage):
        env = _env("dev", host="dev")
        storage.save_environment(env)
        storage.set_active_environment_id(env.id)
        ctx = build_context(storage)
        assert resolve_text("{{host}}", ctx) == "{{host}}"

    def test_unknown_environment_skipped(self, storage):
        ctx = build_context(storage, current_environment_id="missing")
        assert ctx.environment is None

    def test_preview_merges_in_precedence_order(self):
        ctx = VariableContext(
            collection_variables={"a": "col"},
            environment=_env(a="env", b="env"),
            dotenv_variables={"b": "dot", "c": "dot"},
        )
        preview = variables_preview(ctx)
        assert preview["merged"] == {"a": "col", "b": "env", "c": "dot"}
        assert preview["dotenv"] == {"b": "dot", "c": "dot"}


# ── Whole requests ───────────────────────────────────────────────────────


class TestResolveRequest:
    def test_url_headers_body(self):
        req = create_request("r", method="post", url="{{host}}/items")
        req.headers = [Header("X-Trace", "{{trace}}"), Header("X-Off", "x", enabled=False)]
        req.body = RequestBody(type="json", content='{"n": "{{n}}"}')
        ctx = VariableContext(collection_variables={"host": "http://h", "trace": "t", "n": "5"})

        resolved = resolve_request(req, ctx)
        assert resolved.method == "POST"
        assert resolved.url == "http://h/items"
        assert ("X-Trace", "t") in resolved.headers
        assert all(name != "X-Off" for name, _ in resolved.headers)
        assert ("Content-Type", "application/json") in resolved.headers
        assert resolved.body == '{"n": "5"}'
        assert resolved.unresolved == set()

    def test_existing_content_type_kept(self):
        req = create_request("r", method="POST", url="http://h")
        req.headers = [Header("content-type", "application/vnd.api+json")]
        req.body = RequestBody(type="json", content="{}")
        resolved = resolve_request(req, VariableContext())
        content_types = [v for n, v in resolved.headers if n.lower() == "content-type"]
        assert content_types == ["application/vnd.api+json"]

    def test_bearer_auth(self):
        req = create_request("r", url="http://h", auth=AuthConfig(type="bearer", token="{{token}}"))
        resolved = resolve_request(req, VariableContext(dotenv_variables={"token": "abc"}))
        assert ("Authorization", "Bearer abc") in resolved.headers

    def test_basic_auth_encoded(self):
        req = create_request("r", url="http://h", auth=AuthConfig(type="basic", username="u", password="{{pw}}"))
        resolved = resolve_request(req, VariableContext(collection_variables={"pw": "p"}))
        expected = base64.b64encode(b"u:p").decode()
        assert ("Authorization", f"Basic {expected}") in resolved.headers

    def test_basic_auth_pre_encoded_placeholder(self):
        req = create_request("r", url="http://h", auth=AuthConfig(type="basic", username="", password="{{creds}}"))
        resolved = resolve_request(req, VariableContext(collection_variables={"creds": "dTpw"}))
        assert ("Authorization", "Basic dTpw") in resolved.headers

    def test_basic_auth_raw_pair_in_password_encoded(self):
        req = create_request("r", url="http://h", auth=AuthConfig(type="basic", username="", password="{{creds}}"))
        resolved = resolve_request(req, VariableContext(collection_variables={"creds": "bob:pw"}))
        assert ("Authorization", "Basic Ym9iOnB3") in resolved.headers

    def test_apikey_in_query(self):
        auth = AuthConfig(type="apikey", api_key_name="api key", api_key_value="a&b", api_key_in="query")
        req = create_request("r", url="http://h/x?y=1", auth=auth)
        resolved = resolve_request(req, VariableContext())
        assert resolved.url == "http://h/x?y=1&api%20key=a%26b"

    def test_apikey_in_header(self):
        auth = AuthConfig(type="apikey", api_key_name="X-Key", api_key_value="{{k}}")
        req = create_request("r", url="http://h", auth=auth)
        resolved = resolve_request(req, VariableContext(collection_variables={"k": "secret"}))
        assert ("X-Key", "secret") in resolved.headers

    def test_collection_defaults(self):
        collection = create_collection("api")
        collection.default_headers = [Header("Accept", "text/plain"), Header("X-App", "demo")]
        collection.default_auth = AuthConfig(type="bearer", token="col-token")
        req = create_request("r", url="http://h")
        req.headers = [Header("accept", "application/json")]

        resolved = resolve_request(req, VariableContext(), collection)
        assert ("X-App", "demo") in resolved.headers
        assert ("accept", "application/json") in resolved.headers
        assert ("Accept", "text/plain") not in resolved.headers
        assert ("Authorization", "Bearer col-token") in resolved.headers

    def test_unresolved_collected(self):
        req = create_request("r", url="{{host}}/{{path}}")
        resolved = resolve_request(req, VariableContext(collection_variables={"host": "h"}))
        assert resolved.url == "h/{{path}}"
        assert resolved.unresolved == {"path"}
