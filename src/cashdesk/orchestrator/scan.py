"""Receipt digitization: validate -> resize -> recognize -> merge into the draft."""

from __future__ import annotations

import asyncio
import enum
import os
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from ..domain.errors import (
    CashdeskError,
    InvalidFileError,
    PayloadTooLargeError,
    ScanInProgressError,
    UnauthorizedError,
    service_message,
)
from ..domain.merge import merge_draft
from ..domain.models import EntryDraft, RecognitionResult
from ..ledger.client import LedgerClient
from ..logging import get_logger
from .resize import DATA_URL_PREFIX, DEFAULT_MAX_DIMENSION, resize_image

LOG = get_logger("orchestrator-scan")

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif", ".heic", ".heif"}
MAX_PAYLOAD_CHARS = 9_500_000
RECOGNITION_LANGUAGE = "por"
SCAN_FALLBACK_ERROR = "Falha ao ler comprovante. Tente novamente com uma foto mais nitida."


class ScanState(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RESIZING = "resizing"
    UPLOADING = "uploading"
    SUCCESS = "success"
    FAILED = "failed"


class DraftOwner(Protocol):
    draft: EntryDraft

    def select_date(self, value: str) -> None: ...


@dataclass
class ScanOutcome:
    status: ScanState
    info: str = ""
    error: str = ""
    result: Optional[RecognitionResult] = None
    stale: bool = False
    unauthorized: bool = False


def is_image_like(filename: str, media_type: Optional[str] = None) -> bool:
    """Accept by declared media type or, failing that, by file extension.

    Camera captures often arrive without a usable media type.
    """
    if media_type and media_type.lower().startswith("image/"):
        return True
    _, ext = os.path.splitext((filename or "").lower())
    return ext in IMAGE_EXTENSIONS


def confidence_text(confidence: float) -> str:
    percent = int(float(confidence or 0) * 100 + 0.5)
    return f"Leitura concluida ({percent}% de confianca). Confira os campos antes de salvar."


class ReceiptScanner:
    """One-at-a-time receipt digitization bound to a draft owner.

    The state always returns to IDLE when a scan ends; `on_reset` runs on every
    exit so the file picker can accept the same file again.
    """

    def __init__(
        self,
        client: LedgerClient,
        owner: DraftOwner,
        *,
        max_dimension: int = DEFAULT_MAX_DIMENSION,
        max_payload_chars: int = MAX_PAYLOAD_CHARS,
        language: str = RECOGNITION_LANGUAGE,
        on_reset: Optional[Callable[[], None]] = None,
        resize: Callable[[bytes, int], str] = resize_image,
    ) -> None:
        self.client = client
        self.owner = owner
        self.max_dimension = max_dimension
        self.max_payload_chars = max_payload_chars
        self.language = language
        self.on_reset = on_reset
        self._resize = resize
        self.state = ScanState.IDLE
        self.last_status: Optional[ScanState] = None
        self.info = ""
        self.error = ""
        self._generation = 0

    @property
    def busy(self) -> bool:
        return self.state is not ScanState.IDLE

    def cancel(self) -> None:
        """Forget any scan in flight; its result will be discarded."""
        self._generation += 1

    def _enter(self, state: ScanState) -> None:
        LOG.debug(f"scan state {self.state.value} -> {state.value}")
        self.state = state

    async def scan(self, data: bytes, *, filename: str, media_type: Optional[str] = None) -> ScanOutcome:
        if self.busy:
            raise ScanInProgressError()
        self._generation += 1
        generation = self._generation
        self.info = ""
        self.error = ""
        outcome = ScanOutcome(status=ScanState.FAILED)
        try:
            self._enter(ScanState.VALIDATING)
            if not is_image_like(filename, media_type):
                raise InvalidFileError()

            self._enter(ScanState.RESIZING)
            payload = await asyncio.to_thread(self._resize, data, self.max_dimension)
            if not payload.startswith(DATA_URL_PREFIX):
                raise InvalidFileError()
            if len(payload) > self.max_payload_chars:
                LOG.warning(f"Encoded image has {len(payload)} chars (limit {self.max_payload_chars})")
                raise PayloadTooLargeError(len(payload), self.max_payload_chars)

            self._enter(ScanState.UPLOADING)
            result = await asyncio.to_thread(self.client.scan_receipt, payload, language=self.language)

            if generation != self._generation:
                LOG.info("Discarding recognition result from a superseded scan")
                outcome = ScanOutcome(status=ScanState.IDLE, stale=True, result=result)
                return outcome

            self.owner.draft = merge_draft(self.owner.draft, result)
            if result.entry_date:
                self.owner.select_date(result.entry_date)
            self.info = confidence_text(result.confidence)
            self._enter(ScanState.SUCCESS)
            LOG.info(f"Receipt recognized with confidence {result.confidence:.2f}")
            outcome = ScanOutcome(status=ScanState.SUCCESS, info=self.info, result=result)
        except UnauthorizedError:
            # the client already ended the session; nothing to report here
            outcome = ScanOutcome(status=ScanState.FAILED, unauthorized=True)
        except CashdeskError as e:
            if generation == self._generation:
                self.error = service_message(e) or _own_message(e)
                self._enter(ScanState.FAILED)
                LOG.warning(f"Receipt scan failed: {self.error}")
            outcome = ScanOutcome(status=ScanState.FAILED, error=self.error, stale=generation != self._generation)
        finally:
            self.last_status = outcome.status
            self._enter(ScanState.IDLE)
            if self.on_reset is not None:
                self.on_reset()
        return outcome


def _own_message(exc: CashdeskError) -> str:
    # local errors carry user-facing text; transport/service ones use the fallback
    if isinstance(exc, (InvalidFileError, PayloadTooLargeError)):
        return str(exc)
    return SCAN_FALLBACK_ERROR
