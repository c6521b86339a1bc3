from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..domain.errors import (
    CashdeskError,
    ServiceError,
    TransportError,
    UnauthorizedError,
)
from ..domain.models import ALL, DashboardFilters, EntryDraft, LedgerEntry, ReportFilters, Summary
from ..domain.normalize import parse_amount, quantize_amount, today_iso
from ..ledger.client import LedgerClient
from ..logging import get_logger
from ..orchestrator.export import csv_filename, fold_summary, report_rows, to_csv
from ..orchestrator.scan import ReceiptScanner, ScanState

LOG = get_logger("frontend")


def _amount(value) -> str:
    return str(quantize_amount(value))


def entry_to_dict(entry: LedgerEntry, row: Optional[tuple] = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": entry.id,
        "type": entry.type,
        "amount": _amount(entry.amount),
        "description": entry.description,
        "category": entry.category,
        "paymentMethod": entry.payment_method,
        "createdAt": entry.created_at,
    }
    if row is not None:
        data["display"] = list(row)
    return data


def summary_to_dict(summary: Summary) -> Dict[str, Any]:
    return {
        "date": summary.date,
        "totalIn": _amount(summary.total_in),
        "totalOut": _amount(summary.total_out),
        "balance": _amount(summary.balance),
        "countIn": summary.count_in,
        "countOut": summary.count_out,
    }


def draft_to_dict(draft: EntryDraft) -> Dict[str, Any]:
    return {
        "type": draft.type,
        "paymentMethod": draft.payment_method,
        "amount": _amount(draft.amount),
        "description": draft.description,
        "category": draft.category,
        "entryDate": draft.entry_date,
    }


def report_filters_from_query(qp) -> ReportFilters:
    return ReportFilters(
        type=qp.get("type") or ALL,
        date_from=qp.get("dateFrom") or qp.get("from") or "",
        date_to=qp.get("dateTo") or qp.get("to") or "",
        category=qp.get("category") or "",
        description=qp.get("description") or "",
        min_amount=qp.get("minAmount") or "",
        max_amount=qp.get("maxAmount") or "",
    )


class _DraftHolder:
    """Per-request draft owner for the scan endpoint."""

    def __init__(self, draft: EntryDraft) -> None:
        self.draft = draft
        self.selected_date: Optional[str] = None

    def select_date(self, value: str) -> None:
        self.selected_date = value


def _draft_from_query(qp) -> EntryDraft:
    draft = EntryDraft()
    changes: Dict[str, Any] = {}
    if qp.get("type") in ("IN", "OUT"):
        changes["type"] = qp["type"]
    if qp.get("paymentMethod") in ("CASH", "PIX", "CARD"):
        changes["payment_method"] = qp["paymentMethod"]
    amount = parse_amount(qp.get("amount"))
    if amount is not None:
        changes["amount"] = amount
    for key, name in (("description", "description"), ("category", "category"), ("entryDate", "entry_date")):
        if qp.get(key):
            changes[name] = qp[key]
    return replace(draft, **changes)


def _raise_for(exc: CashdeskError) -> None:
    if isinstance(exc, UnauthorizedError):
        raise HTTPException(status_code=401, detail="Sessao expirada. Faca login novamente.") from exc
    if isinstance(exc, TransportError):
        raise HTTPException(status_code=502, detail="Servico de caixa indisponivel.") from exc
    if isinstance(exc, ServiceError):
        raise HTTPException(status_code=502, detail=exc.message or f"Servico respondeu {exc.status}.") from exc
    raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(
    client: LedgerClient,
    *,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing report, dashboard and receipt-scan endpoints."""

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "authenticated": client.session.is_authenticated})

    async def _list(filters: ReportFilters) -> List[LedgerEntry]:
        try:
            return await run_in_threadpool(client.list_entries, filters.to_params())
        except CashdeskError as exc:
            _raise_for(exc)
            raise

    async def report(request: Request) -> JSONResponse:
        filters = report_filters_from_query(request.query_params)
        items = await _list(filters)
        totals = fold_summary(items)
        rows = report_rows(items)
        return JSONResponse(
            {
                "filters": filters.to_params(),
                "items": [entry_to_dict(e, row) for e, row in zip(items, rows)],
                "totals": {
                    "totalIn": _amount(totals.total_in),
                    "totalOut": _amount(totals.total_out),
                    "net": _amount(totals.balance),
                },
                "total": len(items),
            }
        )

    async def report_csv(request: Request) -> Response:
        filters = report_filters_from_query(request.query_params)
        items = await _list(filters)
        filename = csv_filename(today_iso())
        LOG.info(f"Serving CSV {filename} with {len(items)} row(s)")
        return Response(
            to_csv(items),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    async def dashboard(request: Request) -> JSONResponse:
        qp = request.query_params
        filters = DashboardFilters(
            date=qp.get("date") or today_iso(),
            type=qp.get("type") or ALL,
            payment_method=qp.get("paymentMethod") or ALL,
        )
        try:
            entries, summary = await asyncio.gather(
                run_in_threadpool(client.list_entries, filters.to_params()),
                run_in_threadpool(client.daily_summary, filters.date),
            )
        except CashdeskError as exc:
            _raise_for(exc)
            raise
        return JSONResponse(
            {
                "date": filters.date,
                "entries": [entry_to_dict(e) for e in entries],
                "summary": summary_to_dict(summary),
            }
        )

    async def scan(request: Request) -> JSONResponse:
        data = await request.body()
        filename = request.headers.get("x-filename", "")
        media_type = request.headers.get("content-type", "")
        holder = _DraftHolder(_draft_from_query(request.query_params))
        scanner = ReceiptScanner(client, holder)
        outcome = await scanner.scan(data, filename=filename, media_type=media_type)
        if outcome.unauthorized:
            raise HTTPException(status_code=401, detail="Sessao expirada. Faca login novamente.")
        if outcome.status is not ScanState.SUCCESS:
            raise HTTPException(status_code=422, detail=outcome.error)
        return JSONResponse(
            {
                "draft": draft_to_dict(holder.draft),
                "selectedDate": holder.selected_date,
                "info": outcome.info,
                "confidence": outcome.result.confidence if outcome.result else 0,
            }
        )

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/report", report, methods=["GET"]),
        Route("/api/report.csv", report_csv, methods=["GET"]),
        Route("/api/dashboard", dashboard, methods=["GET"]),
        Route("/api/scan", scan, methods=["POST"]),
    ]

    async def http_error(_: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)

    app = Starlette(debug=False, routes=routes, exception_handlers={HTTPException: http_error})

    origins = allow_origins or ["http://localhost:5173", "http://127.0.0.1:5173"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if "*" in origins else origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app


__all__ = ["create_app"]
