"""Tests for path lookups and terminal output formatting."""

from reqbridge.filters import extract_value, format_output, parse_path
from tests.conftest import make_request_result

# ── parse_path ───────────────────────────────────────────────────────────


class TestParsePath:
    def test_segments(self):
        assert parse_path("data.items[0].id") == ["data", "items", 0, "id"]
        assert parse_path("items[-1]") == ["items", -1]
        assert parse_path("items[]") == ["items", None]
        assert parse_path("items[1:3]") == ["items", (1, 3)]
        assert parse_path("items[2:]") == ["items", (2, None)]
        assert parse_path("headers[Content-Type]") == ["headers", "Content-Type"]
        assert parse_path("items.2") == ["items", 2]

    def test_empty(self):
        assert parse_path("") == []


# ── extract_value ────────────────────────────────────────────────────────


class TestExtractValue:
    DATA = {
        "Data": {"Items": [{"id": 1, "tags": ["a"]}, {"id": 2, "tags": ["b"]}, {"id": 3, "tags": []}]},
        "count": 3,
    }

    def test_key_lookup_case_insensitive(self):
        assert extract_value(self.DATA, "data.items[0].id") == (True, 1)

    def test_negative_index(self):
        assert extract_value(self.DATA, "data.items[-1].id") == (True, 3)

    def test_iterate(self):
        assert extract_value(self.DATA, "data.items[].id") == (True, [1, 2, 3])

    def test_slice(self):
        assert extract_value(self.DATA, "data.items[0:2].id") == (True, [1, 2])

    def test_dot_index(self):
        assert extract_value(self.DATA, "data.items.1.id") == (True, 2)

    def test_missing(self):
        assert extract_value(self.DATA, "data.nope") == (False, None)
        assert extract_value(self.DATA, "data.items[9].id") == (False, None)
        assert extract_value(self.DATA, "count.deeper") == (False, None)

    def test_empty_path_returns_data(self):
        assert extract_value(self.DATA, "") == (True, self.DATA)

    def test_falsy_values_found(self):
        assert extract_value({"a": 0, "b": False, "c": None}, "a") == (True, 0)
        assert extract_value({"a": 0, "b": False, "c": None}, "b") == (True, False)
        assert extract_value({"a": 0, "b": False, "c": None}, "c") == (True, None)


# ── format_output ────────────────────────────────────────────────────────


class TestFormatOutput:
    def test_status_time_body(self):
        result = make_request_result(status_code=201, body={"id": 1}, reason="Created")
        output = format_output(result)
        assert output.splitlines()[0] == "STATUS: 201 Created"
        assert "TIME: 42ms" in output
        assert 'BODY:\n{\n  "id": 1\n}' in output
        assert "HEADERS:" not in output

    def test_verbose_headers(self):
        result = make_request_result(headers={"X-Id": "7"})
        output = format_output(result, verbose=True)
        assert "HEADERS:\n  X-Id: 7" in output

    def test_label(self):
        output = format_output(make_request_result(), label="login")
        assert output.startswith("### login\nSTATUS: 200")

    def test_text_body(self):
        output = format_output(make_request_result(body="pong"))
        assert output.endswith("BODY:\npong")

    def test_no_body(self):
        assert "BODY" not in format_output(make_request_result(status_code=204, reason="No Content"))

    def test_error(self):
        assert format_output(make_request_result(error="boom")) == "ERROR: boom"
