from decimal import Decimal

import pytest

from cashdesk.domain.merge import MERGED_FIELDS, merge_draft
from cashdesk.domain.models import EntryDraft, RecognitionResult


def _draft() -> EntryDraft:
    return EntryDraft(
        type="OUT",
        payment_method="CARD",
        amount=Decimal("12.00"),
        description="typed by user",
        category="mercado",
        entry_date="2024-02-10",
    )


def test_empty_result_leaves_draft_unchanged():
    draft = _draft()
    assert merge_draft(draft, RecognitionResult()) == draft


@pytest.mark.parametrize(
    "field,value",
    [
        ("type", "IN"),
        ("payment_method", "PIX"),
        ("amount", Decimal("99.99")),
        ("description", "padaria"),
        ("category", "alimentacao"),
        ("entry_date", "2024-03-05"),
    ],
)
def test_extracted_field_overwrites_only_itself(field, value):
    draft = _draft()
    merged = merge_draft(draft, RecognitionResult(**{field: value}))
    assert getattr(merged, field) == value
    for other in MERGED_FIELDS:
        if other != field:
            assert getattr(merged, other) == getattr(draft, other)


def test_user_description_survives_when_recognizer_misses_it():
    draft = EntryDraft(description="almoço", amount=Decimal("0"))
    merged = merge_draft(draft, RecognitionResult(amount=Decimal("120.5"), confidence=0.73))
    assert merged.description == "almoço"
    assert merged.amount == Decimal("120.5")


def test_merge_does_not_mutate_input():
    draft = _draft()
    merge_draft(draft, RecognitionResult(description="novo"))
    assert draft.description == "typed by user"


def test_recognition_result_from_api_keeps_missing_fields_as_none():
    result = RecognitionResult.from_api({"amount": 120.5, "confidence": 0.73, "type": "BOGUS"})
    assert result.amount == Decimal("120.5")
    assert result.type is None
    assert result.description is None
    assert result.entry_date is None
    assert result.confidence == pytest.approx(0.73)


def test_recognition_result_clamps_confidence():
    assert RecognitionResult.from_api({"confidence": 3}).confidence == 1.0
    assert RecognitionResult.from_api({}).confidence == 0.0
