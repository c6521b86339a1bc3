"""Error taxonomy for the cashdesk client.

Pure components (codec, merge policy) raise these; the scan workflow and the
views catch them at their boundary and turn them into user-facing text.
"""

from __future__ import annotations

from typing import Any, Optional


class CashdeskError(Exception):
    """Base class for every error raised by this package."""


class DraftValidationError(CashdeskError):
    """Draft rejected before any network call (blank description, bad amount)."""


class InvalidFileError(CashdeskError):
    def __init__(self, message: str = "Arquivo invalido. Envie uma imagem.") -> None:
        super().__init__(message)


class PayloadTooLargeError(CashdeskError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__("Imagem muito grande. Tire a foto mais de perto ou com menor resolucao.")


class ImageDecodeError(CashdeskError):
    def __init__(self, message: str = "Falha ao carregar imagem.") -> None:
        super().__init__(message)


class UnsupportedFormatError(ImageDecodeError):
    def __init__(self, message: str = "Formato de imagem nao suportado.") -> None:
        super().__init__(message)


class ScanInProgressError(CashdeskError):
    def __init__(self) -> None:
        super().__init__("Ja existe uma leitura de comprovante em andamento.")


class TransportError(CashdeskError):
    """The request never produced an HTTP response (DNS, refused, timeout)."""


class ServiceError(CashdeskError):
    """Non-2xx answer from the ledger service.

    `message` is the service's own message when it sent one (array messages
    joined with ", "), otherwise None so callers can pick their fallback.
    """

    def __init__(self, status: int, message: Optional[str] = None, body: Any = None) -> None:
        self.status = status
        self.message = message
        self.body = body
        super().__init__(message or f"HTTP {status}")


class UnauthorizedError(ServiceError):
    def __init__(self, message: Optional[str] = None, body: Any = None) -> None:
        super().__init__(401, message, body)


def extract_api_message(body: Any) -> Optional[str]:
    """Return the `message` of an error body, joining array messages with ", "."""
    if not isinstance(body, dict):
        return None
    message = body.get("message")
    if isinstance(message, list):
        parts = [str(m) for m in message if m is not None]
        return ", ".join(parts) if parts else None
    if isinstance(message, str) and message.strip():
        return message
    return None


def service_message(exc: BaseException) -> Optional[str]:
    if isinstance(exc, ServiceError):
        return exc.message
    return None
