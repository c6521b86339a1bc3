from __future__ import annotations

import asyncio
from decimal import Decimal

from cashdesk.orchestrator.dashboard import CREATE_ERROR, DELETE_ERROR, LOAD_ERROR, CashDashboard

DAY = "2024-03-01"


def _seed(service) -> None:
    service.add_entry(id="a", type="IN", amount=100, paymentMethod="PIX", createdAt=f"{DAY}T09:00:00")
    service.add_entry(id="b", type="OUT", amount=20, paymentMethod="CARD", createdAt=f"{DAY}T10:00:00")
    service.add_entry(id="c", type="IN", amount=7, paymentMethod="CASH", createdAt="2024-02-29T10:00:00")


def test_open_loads_entries_and_summary_for_the_day(client, service):
    _seed(service)

    async def run():
        view = CashDashboard(client, today=DAY)
        view.open()
        await view.settle()
        return view

    view = asyncio.run(run())
    assert [e.id for e in view.entries] == ["a", "b"]
    assert view.summary.total_in == Decimal("100")
    assert view.summary.balance == Decimal("80")
    assert view.balance_tone == "positive"
    assert view.loading is False


def test_created_entry_shows_up_under_matching_filters(client, service):
    _seed(service)

    async def run():
        view = CashDashboard(client, today=DAY)
        view.open()
        await view.settle()
        view.set_type("OUT")
        await view.settle()
        before = view.summary
        view.update_draft(type="OUT", amount=Decimal("45.90"), description="fornecedor", payment_method="CASH")
        created = await view.create_entry()
        await view.settle()
        return view, before, created

    view, before, created = asyncio.run(run())
    assert created is not None and created.description == "fornecedor"
    assert any(e.description == "fornecedor" and e.amount == Decimal("45.9") for e in view.entries)
    assert all(e.type == "OUT" for e in view.entries)
    assert view.summary.total_out == before.total_out + Decimal("45.90")
    assert view.summary.count_out == before.count_out + 1
    assert view.draft.description == "" and view.draft.amount == Decimal("0")
    assert view.draft.type == "OUT" and view.draft.entry_date == DAY

    posted = service.calls_to("POST", "/cash-entries")[0][4]
    assert posted == {
        "type": "OUT",
        "paymentMethod": "CASH",
        "amount": 45.9,
        "description": "fornecedor",
        "entryDate": DAY,
    }


def test_invalid_draft_makes_no_request(client, service):
    async def run():
        view = CashDashboard(client, today=DAY)
        view.update_draft(description="   ", amount=Decimal("10"))
        first = await view.create_entry()
        error_blank = view.error
        view.update_draft(description="ok", amount=Decimal("0"))
        second = await view.create_entry()
        return first, error_blank, second, view.error

    first, error_blank, second, error_amount = asyncio.run(run())
    assert first is None and second is None
    assert error_blank and error_amount
    assert service.calls_to("POST", "/cash-entries") == []


def test_service_rejection_on_create(client, service):
    service.overrides[("POST", "/cash-entries")] = (500, {})

    async def run():
        view = CashDashboard(client, today=DAY)
        view.update_draft(description="x", amount=Decimal("1"))
        await view.create_entry()
        return view

    view = asyncio.run(run())
    assert view.error == CREATE_ERROR
    assert view.draft.description == "x"


def test_summary_failure_keeps_previous_data(client, service):
    _seed(service)

    async def run():
        view = CashDashboard(client, today=DAY)
        view.open()
        await view.settle()
        entries, summary = view.entries, view.summary
        service.overrides[("GET", "/cash-summary/daily")] = (500, {"message": "db down"})
        service.add_entry(type="IN", amount=1, createdAt=f"{DAY}T11:00:00")
        await view.reload()
        return view, entries, summary

    view, entries, summary = asyncio.run(run())
    assert view.entries is entries
    assert view.summary is summary
    assert view.error == LOAD_ERROR


def test_delete_reloads(client, service):
    _seed(service)

    async def run():
        view = CashDashboard(client, today=DAY)
        view.open()
        await view.settle()
        ok = await view.delete_entry("a")
        return view, ok

    view, ok = asyncio.run(run())
    assert ok
    assert [e.id for e in view.entries] == ["b"]
    assert view.balance_tone == "negative"


def test_delete_failure_sets_error(client, service):
    service.overrides[("DELETE", "/cash-entries/zzz")] = (500, {})
    view = CashDashboard(client, today=DAY)
    assert asyncio.run(view.delete_entry("zzz")) is False
    assert view.error == DELETE_ERROR


def test_malformed_summary_body_shows_load_error(client, service):
    _seed(service)
    service.overrides[("GET", "/cash-summary/daily")] = (200, {"totalIn": 1, "countIn": "n/a"})

    async def run():
        view = CashDashboard(client, today=DAY)
        view.open()
        await view.settle()
        return view

    view = asyncio.run(run())
    assert view.error == LOAD_ERROR
    assert view.summary is None and view.entries == []
    assert view.loading is False


def test_initial_filters_fetch_once(client, service):
    _seed(service)

    async def run():
        view = CashDashboard(client, today=DAY, type="OUT", payment_method="CARD")
        view.open()
        await view.settle()
        return view

    view = asyncio.run(run())
    gets = service.calls_to("GET", "/cash-entries")
    assert len(gets) == 1
    assert gets[0][2] == {"date": DAY, "type": "OUT", "paymentMethod": "CARD"}
    assert [e.id for e in view.entries] == ["b"]
