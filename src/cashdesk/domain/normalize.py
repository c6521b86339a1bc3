import re
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from ..logging import get_logger

_LOG = get_logger("normalize")

_CENTS = Decimal("0.01")

TYPE_LABELS = {"IN": "Entrada", "OUT": "Saida"}
PAYMENT_LABELS = {"CASH": "Dinheiro", "CARD": "Cartao", "PIX": "PIX"}


def today_iso(now: Optional[datetime] = None) -> str:
    """Current UTC date as YYYY-MM-DD (the ISO timestamp truncated to the day)."""
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is not None:
        current = current.astimezone(timezone.utc)
    return current.date().isoformat()


def parse_amount(val: Any) -> Optional[Decimal]:
    """Parse a JSON number or a user-typed amount ("45,90", "45.90") into Decimal.

    Returns None for blanks and anything that is not a finite number.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, Decimal):
        return val if val.is_finite() else None
    s = str(val).strip().replace(" ", "")
    if not s:
        return None
    if "," in s and "." in s:
        s = s.replace(".", "").replace(",", ".")
    elif "," in s:
        s = s.replace(",", ".")
    try:
        num = Decimal(s)
    except InvalidOperation:
        _LOG.debug(f"Unparseable amount: {val!r}")
        return None
    return num if num.is_finite() else None


def quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _group_thousands(value: Decimal) -> str:
    s = f"{quantize_amount(value):,.2f}"
    return s.replace(",", "_").replace(".", ",").replace("_", ".")


def format_brl(value: Decimal) -> str:
    """Format as Brazilian Real: R$ 1.234,50 (negative: -R$ 1.234,50)."""
    if value < 0:
        return f"-R$ {_group_thousands(-value)}"
    return f"R$ {_group_thousands(value)}"


def format_amount_csv(value: Decimal) -> str:
    """Two decimals, comma as decimal separator, no grouping: 1234.5 -> 1234,50."""
    return f"{quantize_amount(value):.2f}".replace(".", ",")


def format_date_br(value: str) -> str:
    """YYYY-MM-DD -> DD/MM/YYYY; blank -> "-"; anything else passes through."""
    if not value:
        return "-"
    m = re.fullmatch(r"(\d{4})-(\d{2})-(\d{2})", value.strip())
    if m:
        year, month, day = m.groups()
        return f"{day}/{month}/{year}"
    return value


def _parse_timestamp(value: str) -> Optional[datetime]:
    v = (value or "").strip()
    if not v:
        return None
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(v)
    except ValueError:
        return None


def format_datetime_br(value: str) -> str:
    """ISO timestamp -> "DD/MM/YYYY, HH:MM:SS" in local time; unparseable values pass through."""
    parsed = _parse_timestamp(value)
    if parsed is None:
        return value
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.strftime("%d/%m/%Y, %H:%M:%S")


def is_iso_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except (TypeError, ValueError):
        return False
    return True


def type_label(value: Optional[str]) -> str:
    return TYPE_LABELS.get(value or "", "Saida")


def payment_label(value: Optional[str]) -> str:
    return PAYMENT_LABELS.get(value or "", "-")
