from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import mimetypes
import os
import sys
from typing import Optional, Sequence

from ..config import load_api_url, load_report_debounce_ms, load_session_path, load_timeout
from ..domain.errors import CashdeskError, UnauthorizedError
from ..domain.normalize import format_brl, format_datetime_br, parse_amount, payment_label, type_label
from ..ledger import LedgerClient, Router, SessionStore
from ..logging import get_logger
from ..orchestrator import CashDashboard, ReceiptScanner, ReportView, ScanState
from ..orchestrator.resize import read_image_file
from ..paths import expand_abs

LOG = get_logger("cli-main")

RELOGIN_HINT = "Sessao encerrada. Execute 'cashdesk login' novamente."


def _build_client(ns: argparse.Namespace) -> LedgerClient:
    script_dir = os.getcwd()
    base_url = ns.api_url or load_api_url(script_dir)
    session = SessionStore(ns.session_file or load_session_path(script_dir))
    LOG.debug(f"Ledger API: {base_url}; session file: {session.path}")
    return LedgerClient(base_url, session, timeout=load_timeout(script_dir))


def _require_session(client: LedgerClient) -> Optional[Router]:
    router = Router(client.session)
    if router.location == "/login":
        print(RELOGIN_HINT, file=sys.stderr)
        return None
    return router


def _print_entries(entries) -> None:
    for e in entries:
        sign = "+" if e.type == "IN" else "-"
        category = f" [{e.category}]" if e.category else ""
        print(
            f"{e.id}  {format_datetime_br(e.created_at)}  {type_label(e.type):7} "
            f"{payment_label(e.payment_method):8} {sign} {format_brl(e.amount)}  {e.description}{category}"
        )


# ---------- auth ----------
def _login(ns: argparse.Namespace) -> int:
    client = _build_client(ns)
    password = ns.password or getpass.getpass("Senha: ")
    if not ns.email.strip() or not password.strip():
        print("Preencha os campos obrigatorios.", file=sys.stderr)
        return 2
    try:
        user = client.login(ns.email, password)
    except CashdeskError as e:
        print(getattr(e, "message", None) or "Erro na autenticacao.", file=sys.stderr)
        return 1
    print(f"Logado como {user.name} ({user.email})")
    return 0


def _register(ns: argparse.Namespace) -> int:
    client = _build_client(ns)
    password = ns.password or getpass.getpass("Senha: ")
    if not ns.name.strip() or not ns.email.strip() or not password.strip():
        print("Preencha os campos obrigatorios.", file=sys.stderr)
        return 2
    try:
        client.register(ns.name, ns.email, password)
    except CashdeskError as e:
        print(getattr(e, "message", None) or "Erro na autenticacao.", file=sys.stderr)
        return 1
    print("Cadastro realizado. Agora faca login.")
    return 0


def _logout(ns: argparse.Namespace) -> int:
    _build_client(ns).logout()
    print("Sessao encerrada.")
    return 0


def _whoami(ns: argparse.Namespace) -> int:
    client = _build_client(ns)
    user = client.session.user
    if not client.session.is_authenticated or user is None:
        print(RELOGIN_HINT, file=sys.stderr)
        return 1
    company = f" - Empresa: {user.company}" if user.company else ""
    print(f"{user.name} ({user.email}){company}")
    return 0


# ---------- dashboard / entries ----------
def _dashboard(ns: argparse.Namespace) -> int:
    client = _build_client(ns)
    router = _require_session(client)
    if router is None:
        return 1

    async def run() -> CashDashboard:
        view = CashDashboard(client, today=ns.date, type=ns.type, payment_method=ns.payment)
        view.open()
        await view.settle()
        view.close()
        return view

    view = asyncio.run(run())
    if router.location == "/login":
        print(RELOGIN_HINT, file=sys.stderr)
        return 1
    if view.error:
        print(view.error, file=sys.stderr)
        return 1
    s = view.summary
    if s is not None:
        print(f"Data {view.filters.date}")
        print(f"Entradas: {format_brl(s.total_in)} ({s.count_in} lancamentos)")
        print(f"Saidas:   {format_brl(s.total_out)} ({s.count_out} lancamentos)")
        print(f"Saldo:    {format_brl(s.balance)}")
    print(f"Itens listados: {view.filtered_count}")
    _print_entries(view.entries)
    return 0


def _add(ns: argparse.Namespace) -> int:
    client = _build_client(ns)
    router = _require_session(client)
    if router is None:
        return 1

    async def run() -> int:
        view = CashDashboard(client, today=ns.date)
        amount = parse_amount(ns.amount)
        view.update_draft(
            type=ns.type,
            payment_method=ns.payment,
            amount=amount if amount is not None else ns.amount,
            description=ns.description,
            category=ns.category or "",
        )
        created = await view.create_entry()
        view.close()
        if created is None and router.location == "/login":
            print(RELOGIN_HINT, file=sys.stderr)
            return 1
        if view.error:
            print(view.error, file=sys.stderr)
            return 1
        print(f"Lancamento criado: {created.id if created else '-'}")
        return 0

    return asyncio.run(run())


def _delete(ns: argparse.Namespace) -> int:
    client = _build_client(ns)
    router = _require_session(client)
    if router is None:
        return 1
    try:
        client.delete_entry(ns.entry_id)
    except UnauthorizedError:
        print(RELOGIN_HINT, file=sys.stderr)
        return 1
    except CashdeskError:
        print("Falha ao excluir lancamento.", file=sys.stderr)
        return 1
    print(f"Lancamento {ns.entry_id} excluido.")
    return 0


def _scan(ns: argparse.Namespace) -> int:
    client = _build_client(ns)
    router = _require_session(client)
    if router is None:
        return 1
    path = expand_abs(ns.image)
    try:
        data = read_image_file(path)
    except OSError as e:
        LOG.error(f"Could not read {path}: {e}")
        return 2
    media_type, _ = mimetypes.guess_type(path)

    async def run() -> int:
        view = CashDashboard(client, today=ns.date)
        scanner = ReceiptScanner(client, view)
        outcome = await scanner.scan(data, filename=os.path.basename(path), media_type=media_type)
        view.close()
        if outcome.unauthorized:
            print(RELOGIN_HINT, file=sys.stderr)
            return 1
        if outcome.status is not ScanState.SUCCESS:
            print(outcome.error, file=sys.stderr)
            return 1
        d = view.draft
        print(outcome.info)
        print(json.dumps(
            {
                "type": d.type,
                "paymentMethod": d.payment_method,
                "amount": str(d.amount),
                "description": d.description,
                "category": d.category,
                "entryDate": d.entry_date,
            },
            ensure_ascii=False,
        ))
        if not ns.save:
            return 0
        created = await view.create_entry()
        if created is None and router.location == "/login":
            print(RELOGIN_HINT, file=sys.stderr)
            return 1
        if view.error:
            print(view.error, file=sys.stderr)
            return 1
        print(f"Lancamento criado: {created.id if created else '-'}")
        return 0

    return asyncio.run(run())


# ---------- report ----------
def _report(ns: argparse.Namespace) -> int:
    client = _build_client(ns)
    router = _require_session(client)
    if router is None:
        return 1
    debounce = load_report_debounce_ms(os.getcwd()) / 1000.0

    async def run() -> ReportView:
        view = ReportView(client, debounce=debounce)
        view.open()
        view.set_type(ns.type)
        view.set_date_from(ns.date_from or "")
        view.set_date_to(ns.date_to or "")
        view.set_category(ns.category or "")
        view.set_description(ns.description or "")
        view.set_min_amount(ns.min_amount or "")
        view.set_max_amount(ns.max_amount or "")
        await view.settle()
        view.close()
        return view

    view = asyncio.run(run())
    if router.location == "/login":
        print(RELOGIN_HINT, file=sys.stderr)
        return 1
    if view.error:
        print(view.error, file=sys.stderr)
        return 1
    print(view.render())
    if ns.csv:
        path = view.save_csv(expand_abs(ns.csv))
        print(f"CSV salvo em {path}")
    return 0


def _serve(ns: argparse.Namespace) -> int:
    from ..frontend import create_app
    import uvicorn

    client = _build_client(ns)
    allow_origins = ns.allow_origins
    if allow_origins and len(allow_origins) == 1 and allow_origins[0] == "*":
        allow_origins = ["*"]
    app = create_app(client, allow_origins=allow_origins)
    uvicorn.run(app, host=ns.host, port=ns.port, log_level=ns.log_level)
    return 0


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("--api-url", help="Override ledger API base URL (defaults to env/.env)")
    p.add_argument("--session-file", help="Override where the session token is stored")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cashdesk",
        description="Command line client for the cash-ledger service.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Authenticate and store the access token.")
    login.add_argument("--email", required=True)
    login.add_argument("--password", help="Prompted when omitted")
    login.set_defaults(handler=_login)

    register = subparsers.add_parser("register", help="Create a user on the ledger service.")
    register.add_argument("--name", required=True)
    register.add_argument("--email", required=True)
    register.add_argument("--password", help="Prompted when omitted")
    register.set_defaults(handler=_register)

    logout = subparsers.add_parser("logout", help="Forget the stored session.")
    logout.set_defaults(handler=_logout)

    whoami = subparsers.add_parser("whoami", help="Show the logged-in user.")
    whoami.set_defaults(handler=_whoami)

    dash = subparsers.add_parser("dashboard", help="Daily summary and entries for one day.")
    dash.add_argument("--date", help="YYYY-MM-DD (default: today)")
    dash.add_argument("--type", choices=["ALL", "IN", "OUT"], default="ALL")
    dash.add_argument("--payment", choices=["ALL", "CASH", "PIX", "CARD"], default="ALL")
    dash.set_defaults(handler=_dashboard)

    add = subparsers.add_parser("add", help="Record a cash-in or cash-out entry.")
    add.add_argument("--type", choices=["IN", "OUT"], required=True)
    add.add_argument("--amount", required=True)
    add.add_argument("--description", required=True)
    add.add_argument("--category")
    add.add_argument("--payment", choices=["CASH", "PIX", "CARD"], default="PIX")
    add.add_argument("--date", help="Entry date YYYY-MM-DD (default: today)")
    add.set_defaults(handler=_add)

    delete = subparsers.add_parser("delete", help="Delete an entry by id.")
    delete.add_argument("entry_id")
    delete.set_defaults(handler=_delete)

    scan = subparsers.add_parser("scan", help="Read a receipt photo and pre-fill an entry.")
    scan.add_argument("image")
    scan.add_argument("--date", help="Draft date before recognition (default: today)")
    scan.add_argument("--save", action="store_true", help="Submit the merged draft as a new entry")
    scan.set_defaults(handler=_scan)

    report = subparsers.add_parser("report", help="Filtered report with totals and optional CSV.")
    report.add_argument("--type", choices=["ALL", "IN", "OUT"], default="ALL")
    report.add_argument("--from", dest="date_from")
    report.add_argument("--to", dest="date_to")
    report.add_argument("--category")
    report.add_argument("--description")
    report.add_argument("--min-amount")
    report.add_argument("--max-amount")
    report.add_argument("--csv", metavar="DIR", help="Also write relatorio-caixa-<date>.csv into DIR")
    report.set_defaults(handler=_report)

    serve = subparsers.add_parser("serve", help="Run the local report/scan HTTP API.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8001)
    serve.add_argument("--log-level", default="info")
    serve.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origins",
        help="Allowed CORS origin (can be provided multiple times, use '*' for any).",
    )
    serve.set_defaults(handler=_serve)

    for sub in (login, register, logout, whoami, dash, add, delete, scan, report, serve):
        _add_common(sub)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    provided = list(argv) if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(provided)
    code = args.handler(args)
    LOG.debug(f"Subcommand '{args.command}' finished with exit code {code}.")
    return code


if __name__ == "__main__":
    sys.exit(main())
