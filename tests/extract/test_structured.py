import json
import sys

import pytest

from smolchat.extract.json_payload import PayloadParseError
from smolchat.extract.records import CATEGORIES, Classification, CvMetadata, DraftReply
from smolchat.extract.structured import Shape, extract_structured


_CV_FALLBACK = {
    "name": "Unknown",
    "position": "Unknown",
    "skills": [],
    "experience": "Unknown",
    "education": "Unknown",
}


def test_classification_clamps_confidence() -> None:
    text = 'blah blah ```json\n{"category": "Spam", "confidence": 1.7}\n``` trailing'
    record = extract_structured(text, Shape.CLASSIFICATION)

    assert record == Classification(category="Spam", confidence=1.0)
    assert not record.fallback
    assert record.to_dict() == {"category": "Spam", "confidence": 1.0}


def test_classification_negative_confidence_clamps_to_zero() -> None:
    record = extract_structured('{"category": "Normal Follow-up", "confidence": -3}', "classification")
    assert record.confidence == 0.0
    assert record.category == "Normal Follow-up"


@pytest.mark.parametrize("category", ["spam", "Urgent", "Other", 3, None])
def test_unknown_category_becomes_default(category) -> None:
    text = json.dumps({"category": category, "confidence": 0.8})
    record = extract_structured(text, Shape.CLASSIFICATION)

    assert record.category == "FYI / Low Priority"
    assert record.confidence == pytest.approx(0.8)
    assert not record.fallback


@pytest.mark.parametrize("confidence", ["high", None, True, [1]])
def test_bad_confidence_becomes_neutral(confidence) -> None:
    text = json.dumps({"category": "Spam", "confidence": confidence})
    assert extract_structured(text, Shape.CLASSIFICATION).confidence == 0.5


def test_all_categories_are_accepted() -> None:
    for category in CATEGORIES:
        text = json.dumps({"category": category, "confidence": 0.9})
        assert extract_structured(text, Shape.CLASSIFICATION).category == category


def test_cv_without_braces_is_fallback() -> None:
    record = extract_structured("The candidate looks great.", Shape.CV_METADATA)

    assert record.fallback
    assert record.to_dict() == _CV_FALLBACK


def test_cv_parsed() -> None:
    text = (
        "Extracted:\n```json\n"
        '{"name": "Jane Roe", "position": "Data Engineer", "skills": ["Python", "SQL"],'
        ' "experience": "6 years", "education": "MSc"}\n```'
    )
    record = extract_structured(text, "CvMetadata")

    assert record == CvMetadata(
        name="Jane Roe",
        position="Data Engineer",
        skills=("Python", "SQL"),
        experience="6 years",
        education="MSc",
    )
    assert record.to_dict()["skills"] == ["Python", "SQL"]


def test_cv_missing_fields_get_defaults() -> None:
    record = extract_structured('{"name": "Jane Roe", "skills": "Python"}', Shape.CV_METADATA)

    assert record.name == "Jane Roe"
    assert record.position == "Unknown"
    assert record.skills == ()
    assert not record.fallback


def test_cv_with_nbsp_in_value() -> None:
    text = '{"name": "Jane\u00a0Roe", "position": "Engineer"}'
    assert extract_structured(text, Shape.CV_METADATA).name == "Jane Roe"


def test_cv_unrelated_object_is_fallback() -> None:
    record = extract_structured('{"answer": 42}', Shape.CV_METADATA)
    assert record.fallback


def test_draft_reply_parsed() -> None:
    text = '```json\n{"subject": "Re: Budget", "draft_reply": "Thanks, approved."}\n```'
    record = extract_structured(text, Shape.DRAFT_REPLY, {"subject": "Budget"})

    assert record == DraftReply(subject="Re: Budget", draft_reply="Thanks, approved.")


def test_draft_reply_fallback_uses_request_subject() -> None:
    record = extract_structured("{broken", Shape.DRAFT_REPLY, {"subject": "Budget"})

    assert record.fallback
    assert record.to_dict() == {
        "subject": "Re: Budget",
        "draft_reply": "Unable to generate reply. Please try again.",
    }


def test_draft_reply_fallback_without_subject() -> None:
    record = extract_structured("nothing", "draft_reply")
    assert record.subject == "Re: [Subject]"


def test_draft_reply_missing_subject_is_filled() -> None:
    record = extract_structured('{"draft_reply": "Sure."}', Shape.DRAFT_REPLY, {"subject": "Lunch"})

    assert record.subject == "Re: Lunch"
    assert record.draft_reply == "Sure."
    assert not record.fallback


def test_draft_reply_empty_body_is_fallback() -> None:
    record = extract_structured('{"subject": "Hi", "draft_reply": "  "}', Shape.DRAFT_REPLY)
    assert record.fallback


@pytest.mark.parametrize(
    "shape,fields",
    [
        (Shape.CV_METADATA, None),
        (Shape.DRAFT_REPLY, None),
        (Shape.DRAFT_REPLY, {"subject": "Quarterly report"}),
        (Shape.CLASSIFICATION, None),
    ],
)
def test_fallback_is_stable_when_reextracted(shape, fields) -> None:
    first = extract_structured("no payload here", shape, fields)
    again = extract_structured(json.dumps(first.to_dict()), shape, fields)

    assert first.fallback
    assert again == first
    assert again.to_dict() == first.to_dict()


def test_unknown_shape_raises() -> None:
    with pytest.raises(ValueError, match="Unknown extraction shape"):
        extract_structured("{}", "persona")


def test_non_object_payload_is_rejected() -> None:
    for record_type in (CvMetadata, DraftReply, Classification):
        with pytest.raises(PayloadParseError):
            record_type.from_payload([1, 2])


def test_non_text_output_is_fallback() -> None:
    assert extract_structured(None, Shape.CLASSIFICATION).fallback  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "text,shape",
    [
        ('{"category": "Spam", "confidence": Infinity}', Shape.CLASSIFICATION),
        ('{"category": "Spam", "confidence": NaN}', Shape.CLASSIFICATION),
        ('{"category": ' + "[" * 100000 + "]" * 100000 + "}", Shape.CLASSIFICATION),
        pytest.param(
            '{"name": "x", "experience": ' + "9" * 5000 + "}",
            Shape.CV_METADATA,
            marks=pytest.mark.skipif(
                not hasattr(sys, "get_int_max_str_digits"), reason="no integer string length limit"
            ),
        ),
    ],
)
def test_unparseable_payloads_fall_back(text, shape) -> None:
    record = extract_structured(text, shape)

    assert record.fallback
    assert record == shape.record_type.fallback_record()
