"""Structured extraction dispatch: JSON payload -> task record, or fallback."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Union

from .json_payload import PayloadParseError, parse_json_payload
from .records import Classification, CvMetadata, DraftReply

logger = logging.getLogger(__name__)

ExtractionResult = Union[CvMetadata, DraftReply, Classification]


class Shape(str, Enum):
    CV_METADATA = "cv_metadata"
    DRAFT_REPLY = "draft_reply"
    CLASSIFICATION = "classification"

    @classmethod
    def parse(cls, value: Any) -> "Shape":
        """Accept a Shape, its value ("cv_metadata") or a CamelCase name ("CvMetadata")."""
        if isinstance(value, Shape):
            return value
        if isinstance(value, str):
            key = value.strip().replace("-", "_").lower()
            normalized = _ALIASES.get(key, key)
            for shape in cls:
                if shape.value == normalized:
                    return shape
        known = ", ".join(s.value for s in cls)
        raise ValueError(f"Unknown extraction shape: {value!r}. Available: {known}")

    @property
    def record_type(self) -> type:
        return _RECORD_TYPES[self]


_ALIASES = {
    "cvmetadata": "cv_metadata",
    "cv": "cv_metadata",
    "draftreply": "draft_reply",
    "reply": "draft_reply",
}

_RECORD_TYPES = {
    Shape.CV_METADATA: CvMetadata,
    Shape.DRAFT_REPLY: DraftReply,
    Shape.CLASSIFICATION: Classification,
}


def extract_structured(raw_text: str, shape: Any, fallback_fields: Any = None) -> ExtractionResult:
    """Parse `raw_text` into the record for `shape`.

    Any parsing problem yields the shape's fallback record (``fallback=True``).
    The only exception raised is ValueError for an unknown `shape`.
    """
    record_type = Shape.parse(shape).record_type
    text = raw_text if isinstance(raw_text, str) else ""

    try:
        payload = parse_json_payload(text)
        return record_type.from_payload(payload, fallback_fields)
    except PayloadParseError as exc:
        logger.warning("%s extraction fell back: %s", record_type.__name__, exc)
        return record_type.fallback_record(fallback_fields)
