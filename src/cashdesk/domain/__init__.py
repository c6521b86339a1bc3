"""Ledger records, formatting helpers, error taxonomy and the draft merge policy."""

from .errors import (
    CashdeskError,
    DraftValidationError,
    ImageDecodeError,
    InvalidFileError,
    PayloadTooLargeError,
    ScanInProgressError,
    ServiceError,
    TransportError,
    UnauthorizedError,
    UnsupportedFormatError,
)
from .merge import merge_draft
from .models import (
    AuthUser,
    DashboardFilters,
    EntryDraft,
    LedgerEntry,
    RecognitionResult,
    ReportFilters,
    Summary,
)

__all__ = [
    "AuthUser",
    "CashdeskError",
    "DashboardFilters",
    "DraftValidationError",
    "EntryDraft",
    "ImageDecodeError",
    "InvalidFileError",
    "LedgerEntry",
    "PayloadTooLargeError",
    "RecognitionResult",
    "ReportFilters",
    "ScanInProgressError",
    "ServiceError",
    "Summary",
    "TransportError",
    "UnauthorizedError",
    "UnsupportedFormatError",
    "merge_draft",
]
