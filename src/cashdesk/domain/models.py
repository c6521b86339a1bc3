from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Optional

from .errors import DraftValidationError
from .normalize import is_iso_date, parse_amount, today_iso

ENTRY_TYPES = ("IN", "OUT")
PAYMENT_METHODS = ("CASH", "PIX", "CARD")
ALL = "ALL"


def _opt_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, str) else None


def _choice(value: Any, choices) -> Optional[str]:
    return value if isinstance(value, str) and value in choices else None


@dataclass(frozen=True)
class LedgerEntry:
    id: str
    type: str                # IN | OUT
    amount: Decimal
    description: str
    created_at: str          # ISO timestamp from the service
    category: Optional[str] = None
    payment_method: Optional[str] = None  # CASH | PIX | CARD

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "LedgerEntry":
        amount = parse_amount(data.get("amount"))
        return cls(
            id=str(data.get("id", "")),
            type="IN" if data.get("type") == "IN" else "OUT",
            amount=amount if amount is not None else Decimal("0"),
            description=str(data.get("description") or ""),
            created_at=str(data.get("createdAt") or ""),
            category=_opt_str(data.get("category")) or None,
            payment_method=_choice(data.get("paymentMethod"), PAYMENT_METHODS),
        )


@dataclass(frozen=True)
class Summary:
    total_in: Decimal
    total_out: Decimal
    balance: Decimal
    count_in: int
    count_out: int
    date: Optional[str] = None
    total_entries: Optional[int] = None

    @classmethod
    def empty(cls, date: Optional[str] = None) -> "Summary":
        zero = Decimal("0")
        return cls(zero, zero, zero, 0, 0, date=date, total_entries=0)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Summary":
        zero = Decimal("0")
        total_in = parse_amount(data.get("totalIn")) or zero
        total_out = parse_amount(data.get("totalOut")) or zero
        balance = parse_amount(data.get("balance"))
        count_in = int(data.get("countIn") or 0)
        count_out = int(data.get("countOut") or 0)
        total_entries = data.get("totalEntries")
        return cls(
            total_in=total_in,
            total_out=total_out,
            balance=balance if balance is not None else total_in - total_out,
            count_in=count_in,
            count_out=count_out,
            date=_opt_str(data.get("date")),
            total_entries=int(total_entries) if isinstance(total_entries, int) else count_in + count_out,
        )


@dataclass(frozen=True)
class RecognitionResult:
    """Partial extraction from a receipt photo; None means "not extracted"."""

    type: Optional[str] = None
    payment_method: Optional[str] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    category: Optional[str] = None
    entry_date: Optional[str] = None
    confidence: float = 0.0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RecognitionResult":
        try:
            confidence = float(data.get("confidence") or 0)
        except (TypeError, ValueError):
            confidence = 0.0
        entry_date = _opt_str(data.get("entryDate"))
        return cls(
            type=_choice(data.get("type"), ENTRY_TYPES),
            payment_method=_choice(data.get("paymentMethod"), PAYMENT_METHODS),
            amount=parse_amount(data.get("amount")),
            description=_opt_str(data.get("description")),
            category=_opt_str(data.get("category")),
            entry_date=entry_date if entry_date and is_iso_date(entry_date[:10]) else None,
            confidence=min(1.0, max(0.0, confidence)),
        )


@dataclass
class EntryDraft:
    """In-progress entry form. Mutated by user edits and the merge policy."""

    type: str = "IN"
    payment_method: str = "PIX"
    amount: Decimal = Decimal("0")
    description: str = ""
    category: str = ""
    entry_date: Optional[str] = field(default_factory=today_iso)

    def validate(self) -> None:
        if not self.description.strip():
            raise DraftValidationError("Informe uma descricao para o lancamento.")
        amount = parse_amount(self.amount)
        if amount is None or amount <= 0:
            raise DraftValidationError("Informe um valor maior que zero.")

    def to_payload(self) -> Dict[str, Any]:
        """Body for POST /cash-entries; blank category and entry date are omitted."""
        payload: Dict[str, Any] = {
            "type": self.type,
            "paymentMethod": self.payment_method,
            "amount": float(parse_amount(self.amount) or 0),
            "description": self.description.strip(),
        }
        category = (self.category or "").strip()
        if category:
            payload["category"] = category
        if self.entry_date:
            payload["entryDate"] = self.entry_date
        return payload

    def cleared(self, fallback_date: Optional[str] = None) -> "EntryDraft":
        """Draft after a successful submission: keeps type, payment method and date."""
        return replace(
            self,
            amount=Decimal("0"),
            description="",
            category="",
            entry_date=self.entry_date or fallback_date,
        )


@dataclass(frozen=True)
class DashboardFilters:
    date: str
    type: str = ALL
    payment_method: str = ALL

    def to_params(self) -> Dict[str, str]:
        params = {"date": self.date}
        if self.type != ALL:
            params["type"] = self.type
        if self.payment_method != ALL:
            params["paymentMethod"] = self.payment_method
        return params


@dataclass(frozen=True)
class ReportFilters:
    type: str = ALL
    date_from: str = ""
    date_to: str = ""
    category: str = ""
    description: str = ""
    min_amount: str = ""
    max_amount: str = ""

    def to_params(self) -> Dict[str, str]:
        """Query parameters; empty predicates are left out so the service default applies."""
        params: Dict[str, str] = {}
        if self.type != ALL:
            params["type"] = self.type
        if self.date_from:
            params["dateFrom"] = self.date_from
        if self.date_to:
            params["dateTo"] = self.date_to
        if self.category.strip():
            params["category"] = self.category.strip()
        if self.description.strip():
            params["description"] = self.description.strip()
        if self.min_amount != "":
            params["minAmount"] = self.min_amount
        if self.max_amount != "":
            params["maxAmount"] = self.max_amount
        return params


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    name: str
    created_at: str = ""
    company: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AuthUser":
        return cls(
            id=str(data.get("id", "")),
            email=str(data.get("email") or ""),
            name=str(data.get("name") or ""),
            created_at=str(data.get("createdAt") or ""),
            company=_opt_str(data.get("company")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "createdAt": self.created_at,
        }
        if self.company is not None:
            data["company"] = self.company
        return data
