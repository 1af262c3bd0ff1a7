"""Persona summary extraction by line selection.

The model is asked for a one-sentence persona such as
``Jane Roe (Analyst, Finance). Preferred language: English. ...``. Its output
may echo the prompt, wrap the answer in quotes or fences, or ramble. Selection
rule over the cleaned candidate lines, in order:

1. the first line that starts with the subject's name and is longer than
   ``MIN_LINE_LENGTH`` wins immediately;
2. otherwise the LAST line longer than ``MIN_LINE_LENGTH`` that contains both
   "(" and ")" wins;
3. if nothing qualifies, or the winner is shorter than ``MIN_RESULT_LENGTH``,
   the fallback sentence built from the request fields is returned.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from .records import PersonaFields

logger = logging.getLogger(__name__)

MIN_LINE_LENGTH = 50
MIN_RESULT_LENGTH = 20

_TRIM = " \n\r\t\""
_ECHO_MARKER = "Persona:"
_FENCE = "```"


def clean_line(line: str) -> str:
    return line.strip(_TRIM)


def _is_noise(line: str) -> bool:
    return not line or line == _FENCE or _ECHO_MARKER in line


def select_persona_line(lines: Iterable[str], name: str) -> str:
    """Pick the persona sentence from `lines`; returns "" when nothing qualifies."""
    best = ""
    for raw in lines:
        line = clean_line(raw)
        if _is_noise(line) or len(line) <= MIN_LINE_LENGTH:
            continue
        if line.startswith(name):
            return line
        if "(" in line and ")" in line:
            best = line
    return best


def extract_persona(raw_text: str, subject_name: str, fallback_fields: Any = None) -> str:
    """Return a persona sentence from model output, or the deterministic fallback.

    `fallback_fields` is a PersonaFields, a mapping or an object with
    name/position/department/language; a missing name defaults to
    `subject_name`. Never raises.
    """
    fields = PersonaFields.coerce(fallback_fields, name=subject_name)
    text = raw_text if isinstance(raw_text, str) else ""

    selected = select_persona_line(text.split("\n"), subject_name or "")
    if len(selected) < MIN_RESULT_LENGTH:
        logger.warning("No usable persona line in %d chars of output; using fallback.", len(text))
        return fields.fallback_text()
    return selected
