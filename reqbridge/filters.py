"""reqbridge filters - path lookups into response bodies and output formatting."""

from __future__ import annotations

import json
import re
from typing import Any

# ---------------------------------------------------------------------------
# Segment types returned by parse_path:
#   str              → dict key  (case-insensitive lookup)
#   int              → list index (supports negative)
#   None             → every element of a list
#   (start, stop)    → slice, e.g. [2:], [:-1], [1:3]
# ---------------------------------------------------------------------------

_INT_RE = re.compile(r"^-?\d+$")
_SLICE_RE = re.compile(r"^(-?\d*):(-?\d*)$")
_BRACKETED_RE = re.compile(r"^([^\[]*)((?:\[[^\]]*\])+)$")


def parse_path(path: str) -> list[Any]:
    """Split a lookup path into typed segments.

      access_token           → key
      data.items[0].id       → key, key, 0, key
      items[-1]              → key, -1
      items[]                → key, iter
      items[1:3]             → key, (1, 3)
      headers[Content-Type]  → key, key
      items.2                → key, 2
    """
    segments: list[Any] = []
    for part in path.strip().split("."):
        part = part.strip()
        if not part:
            continue
        m = _BRACKETED_RE.match(part)
        if m:
            key = m.group(1).strip()
            if key:
                segments.append(key)
            for inner in re.findall(r"\[([^\]]*)\]", m.group(2)):
                segments.append(_bracket_segment(inner.strip()))
        elif _INT_RE.match(part):
            segments.append(int(part))
        else:
            segments.append(part)
    return segments


def _bracket_segment(content: str) -> str | int | tuple[int | None, int | None] | None:
    if not content:
        return None
    sm = _SLICE_RE.match(content)
    if sm:
        start = int(sm.group(1)) if sm.group(1) else None
        stop = int(sm.group(2)) if sm.group(2) else None
        return (start, stop)
    if _INT_RE.match(content):
        return int(content)
    return content


def ci_get(d: dict[str, Any], key: str) -> tuple[str | None, Any]:
    """Case-insensitive dict lookup, exact match first. Returns (actual_key, value)."""
    if key in d:
        return key, d[key]
    lower = key.lower()
    for k, v in d.items():
        if k.lower() == lower:
            return k, v
    return None, None


def _walk(data: Any, segments: list[Any]) -> tuple[bool, Any]:
    """Follow key/index segments. Iteration and slices are handled by the caller."""
    current = data
    for seg in segments:
        if isinstance(seg, str) and isinstance(current, dict):
            actual, current = ci_get(current, seg)
            if actual is None:
                return False, None
        elif isinstance(seg, int) and isinstance(current, list):
            try:
                current = current[seg]
            except IndexError:
                return False, None
        else:
            return False, None
    return True, current


def _select(arr: list[Any], seg: Any) -> list[Any]:
    if seg is None:
        return list(arr)
    if isinstance(seg, tuple):
        return arr[slice(*seg)]
    return []


def extract_value(data: Any, path: str) -> tuple[bool, Any]:
    """Look up path inside data.

    Returns (found, value). An empty path returns data itself. A ``[]`` or
    slice segment collects the remaining path from each selected element.
    """
    segments = parse_path(path)
    for i, seg in enumerate(segments):
        if seg is None or isinstance(seg, tuple):
            found, arr = _walk(data, segments[:i])
            if not found or not isinstance(arr, list):
                return False, None
            rest = segments[i + 1 :]
            values = []
            for item in _select(arr, seg):
                ok, val = _walk(item, rest)
                if ok:
                    values.append(val)
            return True, values
    return _walk(data, segments)


def format_output(result, verbose: bool = False, label: str | None = None) -> str:
    """Render a transport result for the terminal."""
    if result.error:
        return f"ERROR: {result.error}"

    lines: list[str] = []
    if label:
        lines.append(f"### {label}")
    status = f"STATUS: {result.status_code}"
    if result.reason:
        status += f" {result.reason}"
    lines.append(status)
    lines.append(f"TIME: {int(result.elapsed_ms)}ms")

    if verbose and result.headers:
        lines.append("HEADERS:")
        for key, value in result.headers.items():
            lines.append(f"  {key}: {value}")

    body = result.body
    if body is not None and body != "":
        lines.append("BODY:")
        if isinstance(body, dict | list):
            lines.append(json.dumps(body, indent=2))
        else:
            lines.append(str(body))
    return "\n".join(lines)
