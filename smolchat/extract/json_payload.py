"""Recover a JSON object from free-form model output.

The model is asked for JSON but nothing constrains it: the payload may sit in a
```json fence, be surrounded by prose, or be followed by more braces. We take
the span from the fence (or the first "{") to the LAST "}" and parse it
strictly.
"""

from __future__ import annotations

import json
from typing import Any

_FENCE_OPEN = "```json"
_FENCE_SKIP = "\n\r "
_TAIL_STRIP = "`\n\r "
_NBSP = "\u00a0"


class PayloadParseError(ValueError):
    pass


def _reject_constant(name: str) -> Any:
    raise PayloadParseError(f"Non-standard JSON constant: {name}")


def locate_json_span(text: str) -> tuple[int, int] | None:
    """Return `(start, end)` slice bounds of the candidate payload, or None."""
    fence = text.find(_FENCE_OPEN)
    if fence != -1:
        start = fence + len(_FENCE_OPEN)
        while start < len(text) and text[start] in _FENCE_SKIP:
            start += 1
    else:
        start = text.find("{")
        if start == -1:
            return None

    end = text.rfind("}")
    if end == -1 or end <= start:
        return None
    return start, end + 1


def clean_payload(payload: str) -> str:
    """Strip trailing fence/whitespace and turn non-breaking spaces into spaces."""
    return payload.rstrip(_TAIL_STRIP).replace(_NBSP, " ")


def parse_json_payload(text: str) -> Any:
    """Locate, clean and strictly parse the JSON payload in `text`.

    Raises:
        PayloadParseError: If no span is found or the span is not valid JSON.
    """
    span = locate_json_span(text)
    if span is None:
        raise PayloadParseError("No JSON object found in text.")
    candidate = clean_payload(text[span[0] : span[1]])
    try:
        return json.loads(candidate, parse_constant=_reject_constant)
    except PayloadParseError:
        raise
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError, oversized integer literals, pathological nesting.
        raise PayloadParseError(f"Invalid JSON payload: {exc}") from exc
