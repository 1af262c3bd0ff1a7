"""Structured result records produced by the extractors.

Every record is immutable and always well-formed. `fallback=True` marks a
record that was synthesized from request inputs instead of parsed from model
text; it does not take part in equality.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from .json_payload import PayloadParseError

UNKNOWN = "Unknown"


def _text_field(value: Any) -> str:
    if value is None:
        return UNKNOWN
    if isinstance(value, str):
        return value.strip() or UNKNOWN
    if isinstance(value, (list, tuple)):
        parts = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return "; ".join(parts) or UNKNOWN
    if isinstance(value, dict):
        return UNKNOWN
    return str(value)


def _get(fields: Any, key: str, default: Any = None) -> Any:
    if fields is None:
        return default
    if isinstance(fields, Mapping):
        return fields.get(key, default)
    return getattr(fields, key, default)


@dataclass(frozen=True)
class PersonaFields:
    """Request-side fields the persona fallback sentence is built from."""

    name: str
    position: str = UNKNOWN
    department: str = UNKNOWN
    language: str = UNKNOWN

    @classmethod
    def coerce(cls, value: Any, *, name: str = "") -> "PersonaFields":
        if isinstance(value, PersonaFields):
            return value
        return cls(
            name=str(_get(value, "name", name) or name),
            position=str(_get(value, "position", UNKNOWN) or UNKNOWN),
            department=str(_get(value, "department", UNKNOWN) or UNKNOWN),
            language=str(_get(value, "language", UNKNOWN) or UNKNOWN),
        )

    def fallback_text(self) -> str:
        return (
            f"{self.name} ({self.position}, {self.department}). "
            f"Preferred language: {self.language}. "
            "Professional tone inferred from writing samples. "
            "Direct communication style."
        )


@dataclass(frozen=True)
class CvMetadata:
    name: str = UNKNOWN
    position: str = UNKNOWN
    skills: tuple[str, ...] = ()
    experience: str = UNKNOWN
    education: str = UNKNOWN
    fallback: bool = field(default=False, compare=False)

    _KEYS = ("name", "position", "skills", "experience", "education")

    @classmethod
    def fallback_record(cls, fields: Any = None) -> "CvMetadata":
        return cls(fallback=True)

    @classmethod
    def from_payload(cls, payload: Any, fields: Any = None) -> "CvMetadata":
        if not isinstance(payload, dict):
            raise PayloadParseError(f"Expected a JSON object, got {type(payload).__name__}.")
        if not any(key in payload for key in cls._KEYS):
            raise PayloadParseError("JSON object has none of the CV metadata keys.")

        raw_skills = payload.get("skills")
        if isinstance(raw_skills, list):
            skills = tuple(str(s).strip() for s in raw_skills if s is not None and str(s).strip())
        else:
            skills = ()

        return cls(
            name=_text_field(payload.get("name")),
            position=_text_field(payload.get("position")),
            skills=skills,
            experience=_text_field(payload.get("experience")),
            education=_text_field(payload.get("education")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "position": self.position,
            "skills": list(self.skills),
            "experience": self.experience,
            "education": self.education,
        }


@dataclass(frozen=True)
class DraftReply:
    subject: str
    draft_reply: str
    fallback: bool = field(default=False, compare=False)

    FALLBACK_BODY = "Unable to generate reply. Please try again."
    PLACEHOLDER_SUBJECT = "[Subject]"

    @classmethod
    def fallback_subject(cls, fields: Any = None) -> str:
        subject = _get(fields, "subject")
        if isinstance(subject, str) and subject.strip():
            return f"Re: {subject.strip()}"
        return f"Re: {cls.PLACEHOLDER_SUBJECT}"

    @classmethod
    def fallback_record(cls, fields: Any = None) -> "DraftReply":
        return cls(subject=cls.fallback_subject(fields), draft_reply=cls.FALLBACK_BODY, fallback=True)

    @classmethod
    def from_payload(cls, payload: Any, fields: Any = None) -> "DraftReply":
        if not isinstance(payload, dict):
            raise PayloadParseError(f"Expected a JSON object, got {type(payload).__name__}.")
        body = payload.get("draft_reply")
        if not isinstance(body, str) or not body.strip():
            raise PayloadParseError("Missing or empty 'draft_reply'.")

        subject = payload.get("subject")
        if not isinstance(subject, str) or not subject.strip():
            subject = cls.fallback_subject(fields)
        return cls(subject=subject, draft_reply=body)

    def to_dict(self) -> dict[str, Any]:
        return {"subject": self.subject, "draft_reply": self.draft_reply}


CATEGORIES = (
    "Urgent & Action Required",
    "Normal Follow-up",
    "FYI / Low Priority",
    "Spam",
)
DEFAULT_CATEGORY = "FYI / Low Priority"
DEFAULT_CONFIDENCE = 0.5


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    out = float(value)
    if math.isnan(out):
        return DEFAULT_CONFIDENCE
    return min(max(out, 0.0), 1.0)


@dataclass(frozen=True)
class Classification:
    category: str = DEFAULT_CATEGORY
    confidence: float = DEFAULT_CONFIDENCE
    fallback: bool = field(default=False, compare=False)

    @classmethod
    def fallback_record(cls, fields: Any = None) -> "Classification":
        return cls(fallback=True)

    @classmethod
    def from_payload(cls, payload: Any, fields: Any = None) -> "Classification":
        if not isinstance(payload, dict):
            raise PayloadParseError(f"Expected a JSON object, got {type(payload).__name__}.")
        category = payload.get("category")
        if category not in CATEGORIES:
            category = DEFAULT_CATEGORY
        return cls(category=category, confidence=_confidence(payload.get("confidence")))

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category, "confidence": self.confidence}
