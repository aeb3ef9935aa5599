"""Locate JSON objects embedded in noisy process output.

The rearm CLI prints log lines and a JSON reply to the same streams. These
helpers find a brace-balanced object without parsing the surrounding noise:
a small state machine tracks nesting depth and ignores braces that appear
inside JSON string literals.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Literal

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict

__all__ = [
    "JsonFragmentError",
    "extract_envelope",
    "find_json_object",
    "find_matching_brace",
]


@dataclass(frozen=True, slots=True)
class JsonFragmentError:
    kind: Literal["not_found", "unbalanced", "invalid_json", "not_object"]
    message: str


def find_matching_brace(text: str, start: int) -> int | None:
    """Return the index one past the ``}`` closing the ``{`` at ``start``.

    Returns None if ``text[start]`` is not ``{`` or the object never closes.
    """
    if start < 0 or start >= len(text) or text[start] != "{":
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def _parse_object(fragment: str) -> Result[StrDict, JsonFragmentError]:
    try:
        obj: object = json.loads(fragment)
    except json.JSONDecodeError as e:
        return Err(JsonFragmentError(kind="invalid_json", message=f"invalid JSON: {e}"))
    data = as_str_dict(obj)
    if data is None:
        return Err(JsonFragmentError(kind="not_object", message="JSON fragment is not an object"))
    return Ok(data)


def _balanced_spans(text: str) -> list[tuple[int, int]]:
    """Every balanced ``{...}`` span, found in one pass.

    Quotes only open a string inside an object, so stray quotes in log
    noise do not hide later objects. A raw newline ends a string: JSON
    strings cannot contain one, so the quote was noise.
    """
    spans: list[tuple[int, int]] = []
    open_braces: list[int] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"' or ch == "\n":
                in_string = False
            continue

        if ch == '"' and open_braces:
            in_string = True
        elif ch == "{":
            open_braces.append(i)
        elif ch == "}" and open_braces:
            spans.append((open_braces.pop(), i + 1))
    return spans


def find_json_object(text: str, required_key: str) -> Result[StrDict, JsonFragmentError]:
    """Parse the smallest balanced object that holds ``required_key``.

    Candidates are the balanced ``{...}`` fragments whose text contains
    ``"required_key"``; they are tried from smallest to largest and the
    first one that parses to an object with that key wins. When candidates
    exist but none parses, the smallest candidate's error is returned.
    """
    needle = f'"{required_key}"'
    if needle not in text:
        return Err(
            JsonFragmentError(kind="not_found", message=f"no JSON object with {needle} in output")
        )

    candidates = [
        (start, end) for start, end in _balanced_spans(text) if needle in text[start:end]
    ]

    if not candidates:
        return Err(
            JsonFragmentError(
                kind="unbalanced", message=f"no balanced JSON object with {needle} in output"
            )
        )

    candidates.sort(key=lambda span: (span[1] - span[0], span[0]))
    first_error: JsonFragmentError | None = None
    for start, end in candidates:
        parsed = _parse_object(text[start:end])
        if isinstance(parsed, Err):
            first_error = first_error or parsed.error
            continue
        if required_key in parsed.value:
            return parsed
        first_error = first_error or JsonFragmentError(
            kind="not_found", message=f"{needle} is not a top-level key"
        )

    assert first_error is not None
    return Err(first_error)


def extract_envelope(text: str, prefix: str) -> Result[StrDict, JsonFragmentError]:
    """Parse the object starting at the first occurrence of ``prefix``.

    ``prefix`` must begin with ``{`` (for example ``{"data":``).
    """
    start = text.find(prefix)
    if start == -1:
        return Err(JsonFragmentError(kind="not_found", message=f"no {prefix} envelope in output"))

    end = find_matching_brace(text, start)
    if end is None:
        return Err(JsonFragmentError(kind="unbalanced", message=f"unbalanced {prefix} envelope"))

    return _parse_object(text[start:end])
