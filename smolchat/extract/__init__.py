# Output extractors
#
# Turn raw generated text into structured results. Extraction never raises on
# bad model output; it degrades to a deterministic fallback record.
#
#   - persona.py        Persona sentence by line selection
#   - json_payload.py   Delimited-JSON span recovery
#   - records.py        Result records and their fallbacks
#   - structured.py     Shape dispatch (CV metadata, draft reply, classification)

from .json_payload import PayloadParseError, parse_json_payload
from .persona import extract_persona, select_persona_line
from .records import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    Classification,
    CvMetadata,
    DraftReply,
    PersonaFields,
)
from .structured import ExtractionResult, Shape, extract_structured

__all__ = [
    "CATEGORIES",
    "DEFAULT_CATEGORY",
    "Classification",
    "CvMetadata",
    "DraftReply",
    "ExtractionResult",
    "PayloadParseError",
    "PersonaFields",
    "Shape",
    "extract_persona",
    "extract_structured",
    "parse_json_payload",
    "select_persona_line",
]
