"""Report export: tabular rows, `;`-delimited CSV and the totals fold."""

from __future__ import annotations

import os
from decimal import Decimal
from functools import reduce
from typing import Iterable, List, Optional, Sequence, Tuple

from ..domain.models import LedgerEntry, Summary
from ..domain.normalize import (
    format_amount_csv,
    format_brl,
    format_datetime_br,
    payment_label,
    today_iso,
    type_label,
)
from ..logging import get_logger

LOG = get_logger("orchestrator-export")

CSV_HEADER = ("Data/Hora", "Tipo", "Categoria", "Descricao", "Pagamento", "Valor")
CSV_DELIMITER = ";"
BOM = "\ufeff"
_NEEDS_QUOTES = ('"', CSV_DELIMITER, "\n", "\r")

Row = Tuple[str, str, str, str, str, str]


def fold_summary(entries: Iterable[LedgerEntry]) -> Summary:
    """Single left-to-right fold over the entries.

    Shared by the summary cards and the report totals so both always agree.
    """

    def step(acc: Tuple[Decimal, Decimal, int, int], entry: LedgerEntry):
        total_in, total_out, count_in, count_out = acc
        if entry.type == "IN":
            return total_in + entry.amount, total_out, count_in + 1, count_out
        return total_in, total_out + entry.amount, count_in, count_out + 1

    zero = Decimal("0")
    total_in, total_out, count_in, count_out = reduce(step, entries, (zero, zero, 0, 0))
    return Summary(
        total_in=total_in,
        total_out=total_out,
        balance=total_in - total_out,
        count_in=count_in,
        count_out=count_out,
        total_entries=count_in + count_out,
    )


def report_rows(entries: Iterable[LedgerEntry]) -> List[Row]:
    """On-screen/print rows: timestamp, type, category, description, payment, amount."""
    return [
        (
            format_datetime_br(e.created_at),
            type_label(e.type),
            e.category or "",
            e.description,
            payment_label(e.payment_method),
            format_brl(e.amount),
        )
        for e in entries
    ]


def csv_rows(entries: Iterable[LedgerEntry]) -> List[Row]:
    # the download carries the raw payment code and a bare decimal amount
    return [
        (
            format_datetime_br(e.created_at),
            type_label(e.type),
            e.category or "",
            e.description,
            e.payment_method or "",
            format_amount_csv(e.amount),
        )
        for e in entries
    ]


def escape_csv(value: object) -> str:
    text = "" if value is None else str(value)
    if not any(ch in text for ch in _NEEDS_QUOTES):
        return text
    return '"' + text.replace('"', '""') + '"'


def to_csv(entries: Iterable[LedgerEntry]) -> str:
    """Delimited-text document (BOM-prefixed, `;`-separated, `\\n` line ends)."""
    rows: List[Sequence[str]] = [CSV_HEADER, *csv_rows(entries)]
    body = "\n".join(CSV_DELIMITER.join(escape_csv(cell) for cell in row) for row in rows)
    return BOM + body


def csv_filename(day: Optional[str] = None) -> str:
    return f"relatorio-caixa-{day or today_iso()}.csv"


def write_csv(entries: Iterable[LedgerEntry], directory: str, *, day: Optional[str] = None) -> str:
    items = list(entries)
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, csv_filename(day))
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(to_csv(items))
    LOG.info(f"Wrote CSV report with {len(items)} row(s): {path}")
    return path


def render_table(entries: Sequence[LedgerEntry], *, filter_lines: Sequence[str] = ()) -> str:
    """Print-ready plain-text report: filter summary, rows, then totals."""
    lines: List[str] = list(filter_lines)
    if lines:
        lines.append("")
    rows = report_rows(entries)
    if not rows:
        lines.append("Nenhum lancamento encontrado para os filtros selecionados.")
    else:
        table = [CSV_HEADER, *rows]
        widths = [max(len(r[i].replace("\n", " ")) for r in table) for i in range(len(CSV_HEADER))]
        for r in table:
            cells = [r[i].replace("\n", " ") for i in range(len(r))]
            padded = [c.ljust(widths[i]) for i, c in enumerate(cells[:-1])]
            lines.append("  ".join(padded + [cells[-1].rjust(widths[-1])]).rstrip())
    totals = fold_summary(entries)
    lines.append("")
    lines.append(f"Total de entradas: {format_brl(totals.total_in)}")
    lines.append(f"Total de saidas: {format_brl(totals.total_out)}")
    lines.append(f"Saldo filtrado: {format_brl(totals.balance)}")
    return "\n".join(lines)
