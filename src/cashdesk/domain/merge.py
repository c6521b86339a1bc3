from __future__ import annotations

from dataclasses import replace

from .models import EntryDraft, RecognitionResult

MERGED_FIELDS = ("type", "payment_method", "amount", "description", "category", "entry_date")


def merge_draft(draft: EntryDraft, result: RecognitionResult) -> EntryDraft:
    """Fold a recognition result into a draft, field by field.

    A field the recognizer extracted overwrites the draft; a field it left as
    None keeps whatever the draft holds, including the user's own edits.
    The input draft is not modified.
    """
    changes = {}
    for name in MERGED_FIELDS:
        value = getattr(result, name)
        if value is not None:
            changes[name] = value
    return replace(draft, **changes)
