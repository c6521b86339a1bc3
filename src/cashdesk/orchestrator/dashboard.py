"""Live-ledger view: one day's entries plus the service's daily summary."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import List, Optional, Tuple

from ..domain.errors import CashdeskError, DraftValidationError, UnauthorizedError, service_message
from ..domain.models import ALL, DashboardFilters, EntryDraft, LedgerEntry, Summary
from ..domain.normalize import today_iso
from ..ledger.client import LedgerClient
from ..logging import get_logger
from .query import QueryEngine

LOG = get_logger("orchestrator-dashboard")

LOAD_ERROR = "Nao foi possivel carregar os dados do caixa. Verifique se o backend esta rodando."
CREATE_ERROR = "Falha ao criar lancamento."
DELETE_ERROR = "Falha ao excluir lancamento."

DashboardData = Tuple[List[LedgerEntry], Summary]


class CashDashboard:
    """Owns the day filter and the entry draft.

    Filter changes re-fetch immediately. The entry list and the daily summary
    are fetched together and applied in one step only when both succeed.
    Like the report view, it is driven from a running asyncio event loop.
    """

    def __init__(
        self,
        client: LedgerClient,
        *,
        today: Optional[str] = None,
        type: str = ALL,
        payment_method: str = ALL,
    ) -> None:
        self.client = client
        day = today or today_iso()
        self.filters = DashboardFilters(date=day, type=type, payment_method=payment_method)
        self.entries: List[LedgerEntry] = []
        self.summary: Optional[Summary] = None
        self.draft = EntryDraft(entry_date=day)
        self.error = ""
        self.submitting = False
        self._engine: QueryEngine[DashboardFilters, DashboardData] = QueryEngine(
            self._fetch,
            on_result=self._apply,
            on_error=self._fail,
            name="dashboard",
        )

    # ---------- lifecycle ----------
    def open(self) -> None:
        self._engine.submit(self.filters)

    def close(self) -> None:
        self._engine.close()

    async def reload(self) -> None:
        await self._engine.refresh()

    async def settle(self) -> None:
        await self._engine.settle()

    @property
    def loading(self) -> bool:
        return self._engine.loading

    # ---------- filters ----------
    def _update(self, **changes) -> None:
        updated = replace(self.filters, **changes)
        if updated == self.filters:
            return
        self._engine.submit(updated)
        self.filters = updated

    def set_date(self, value: str) -> None:
        self._update(date=value)

    def select_date(self, value: str) -> None:
        """Hand-off from the receipt scanner so the new entry's day is on screen."""
        self.set_date(value)

    def set_type(self, value: str) -> None:
        self._update(type=value)

    def set_payment_method(self, value: str) -> None:
        self._update(payment_method=value)

    # ---------- draft ----------
    def update_draft(self, **fields) -> EntryDraft:
        self.draft = replace(self.draft, **fields)
        return self.draft

    async def create_entry(self) -> Optional[LedgerEntry]:
        self.error = ""
        try:
            self.draft.validate()
        except DraftValidationError as e:
            self.error = str(e)
            return None

        self.submitting = True
        try:
            created = await asyncio.to_thread(self.client.create_entry, self.draft.to_payload())
            self.draft = self.draft.cleared(self.filters.date)
            await self.reload()
            return created
        except UnauthorizedError:
            return None
        except CashdeskError as e:
            self.error = service_message(e) or CREATE_ERROR
            return None
        finally:
            self.submitting = False

    async def delete_entry(self, entry_id: str) -> bool:
        self.error = ""
        try:
            await asyncio.to_thread(self.client.delete_entry, entry_id)
        except UnauthorizedError:
            return False
        except CashdeskError:
            self.error = DELETE_ERROR
            return False
        await self.reload()
        return True

    # ---------- derived ----------
    @property
    def filtered_count(self) -> int:
        return len(self.entries)

    @property
    def balance_tone(self) -> str:
        balance = self.summary.balance if self.summary else 0
        if balance > 0:
            return "positive"
        if balance < 0:
            return "negative"
        return "neutral"

    # ---------- engine callbacks ----------
    async def _fetch(self, filters: DashboardFilters) -> DashboardData:
        self.error = ""
        entries, summary = await asyncio.gather(
            asyncio.to_thread(self.client.list_entries, filters.to_params()),
            asyncio.to_thread(self.client.daily_summary, filters.date),
        )
        return entries, summary

    def _apply(self, filters: DashboardFilters, data: DashboardData) -> None:
        entries, summary = data
        self.entries = entries
        self.summary = summary
        LOG.info(
            f"Dashboard {filters.date}: {len(entries)} entries, "
            f"balance={summary.balance} (in={summary.total_in}, out={summary.total_out})"
        )

    def _fail(self, exc: CashdeskError) -> None:
        self.error = LOAD_ERROR
