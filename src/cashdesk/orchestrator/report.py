"""Report view: open-range filters, 250 ms debounce, client-side totals."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional

from ..domain.errors import CashdeskError, service_message
from ..domain.models import LedgerEntry, ReportFilters, Summary
from ..domain.normalize import format_brl, format_date_br, parse_amount
from ..ledger.client import LedgerClient
from ..logging import get_logger
from .export import fold_summary, render_table, to_csv, write_csv
from .query import QueryEngine

LOG = get_logger("orchestrator-report")

REPORT_DEBOUNCE_SECONDS = 0.25
REPORT_ERROR = "Falha ao carregar relatorio."


class ReportView:
    """Keeps `items` in step with `filters`; every setter schedules a debounced fetch.

    Setters must be called from a running asyncio event loop.
    """

    def __init__(self, client: LedgerClient, *, debounce: float = REPORT_DEBOUNCE_SECONDS) -> None:
        self.client = client
        self.filters = ReportFilters()
        self.items: List[LedgerEntry] = []
        self.error = ""
        self._engine: QueryEngine[ReportFilters, List[LedgerEntry]] = QueryEngine(
            self._fetch,
            on_result=self._apply,
            on_error=self._fail,
            delay=debounce,
            name="report",
        )

    # ---------- lifecycle ----------
    def open(self) -> None:
        """Initial load, scheduled like any other filter change."""
        self._engine.submit(self.filters)

    def close(self) -> None:
        self._engine.close()

    async def refresh(self) -> None:
        await self._engine.refresh()

    async def settle(self) -> None:
        await self._engine.settle()

    @property
    def loading(self) -> bool:
        return self._engine.loading

    # ---------- filter setters ----------
    def _update(self, **changes) -> None:
        updated = replace(self.filters, **changes)
        if updated == self.filters:
            return
        self._engine.submit(updated)
        self.filters = updated

    def set_type(self, value: str) -> None:
        self._update(type=value)

    def set_date_from(self, value: str) -> None:
        self._update(date_from=value)

    def set_date_to(self, value: str) -> None:
        self._update(date_to=value)

    def set_category(self, value: str) -> None:
        self._update(category=value)

    def set_description(self, value: str) -> None:
        self._update(description=value)

    def set_min_amount(self, value: str) -> None:
        self._update(min_amount=value)

    def set_max_amount(self, value: str) -> None:
        self._update(max_amount=value)

    def clear_filters(self) -> None:
        if self.filters != ReportFilters():
            self._engine.submit(ReportFilters())
            self.filters = ReportFilters()

    # ---------- derived ----------
    @property
    def totals(self) -> Summary:
        return fold_summary(self.items)

    def filter_summary_lines(self) -> List[str]:
        f = self.filters
        type_text = {"IN": "Entrada", "OUT": "Saida"}.get(f.type, "Todos")
        return [
            f"Tipo: {type_text}",
            f"Data inicial: {format_date_br(f.date_from)}",
            f"Data final: {format_date_br(f.date_to)}",
            f"Categoria: {f.category.strip() or '-'}",
            f"Descricao: {f.description.strip() or '-'}",
            f"Valor minimo: {_amount_filter_text(f.min_amount)}",
            f"Valor maximo: {_amount_filter_text(f.max_amount)}",
        ]

    def export_csv(self) -> str:
        return to_csv(self.items)

    def save_csv(self, directory: str, *, day: Optional[str] = None) -> str:
        return write_csv(self.items, directory, day=day)

    def render(self) -> str:
        return render_table(self.items, filter_lines=self.filter_summary_lines())

    # ---------- engine callbacks ----------
    async def _fetch(self, filters: ReportFilters) -> List[LedgerEntry]:
        self.error = ""
        return await asyncio.to_thread(self.client.list_entries, filters.to_params())

    def _apply(self, filters: ReportFilters, items: List[LedgerEntry]) -> None:
        LOG.info(f"Report refreshed: {len(items)} entries for {filters.to_params()}")
        self.items = items

    def _fail(self, exc: CashdeskError) -> None:
        self.error = service_message(exc) or REPORT_ERROR


def _amount_filter_text(value: str) -> str:
    if value == "":
        return "-"
    amount = parse_amount(value)
    return format_brl(amount if amount is not None else Decimal("0"))
