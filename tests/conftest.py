from __future__ import annotations

import io
import json
import os
import sys
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import pytest
import requests
from PIL import Image
from requests.adapters import BaseAdapter

# Ensure the repository's src/ is importable
sys.path.insert(0, os.path.abspath("src"))

from cashdesk.domain.models import AuthUser
from cashdesk.ledger import LedgerClient, SessionStore

BASE_URL = "http://ledger.test"
TOKEN = "token-123"
USER = {"id": "u1", "email": "ana@example.com", "name": "Ana", "createdAt": "2024-01-01T00:00:00Z"}

_REASONS = {200: "OK", 201: "Created", 204: "No Content", 400: "Bad Request", 401: "Unauthorized", 500: "Internal Server Error"}


def make_response(request: requests.PreparedRequest, status: int, body: Any = None) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r.reason = _REASONS.get(status, "")
    r._content = b"" if body is None else json.dumps(body).encode("utf-8")
    r.headers["Content-Type"] = "application/json"
    r.encoding = "utf-8"
    r.url = request.url
    r.request = request
    return r


class FakeLedgerService(BaseAdapter):
    """In-memory ledger API mounted on a requests.Session."""

    def __init__(self) -> None:
        super().__init__()
        self.entries: List[Dict[str, Any]] = []
        self.calls: List[Tuple[str, str, Dict[str, str], Optional[str], Any]] = []
        self.overrides: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.scan_result: Dict[str, Any] = {"confidence": 0.5}
        self.raise_transport = False

    # ---------- helpers for tests ----------
    def add_entry(self, **fields: Any) -> Dict[str, Any]:
        entry = {
            "id": fields.pop("id", str(uuid.uuid4())),
            "type": fields.pop("type", "IN"),
            "amount": fields.pop("amount", 10),
            "description": fields.pop("description", "venda"),
            "createdAt": fields.pop("createdAt", "2024-03-01T12:00:00"),
        }
        entry.update(fields)
        self.entries.append(entry)
        return entry

    def calls_to(self, method: str, path: str) -> List[Tuple[str, str, Dict[str, str], Optional[str], Any]]:
        return [c for c in self.calls if c[0] == method and c[1] == path]

    # ---------- adapter ----------
    def send(self, request, **kwargs):  # noqa: ANN001
        if self.raise_transport:
            raise requests.ConnectionError("connection refused")
        url = urlparse(request.url)
        path = url.path
        params = {k: v[0] for k, v in parse_qs(url.query).items()}
        body = json.loads(request.body) if request.body else None
        auth = request.headers.get("Authorization")
        self.calls.append((request.method, path, params, auth, body))

        override = self.overrides.pop((request.method, path), None)
        if override is not None:
            return make_response(request, *override)

        if path == "/login":
            if body.get("password") == "secret":
                return make_response(request, 200, {"accessToken": TOKEN, "tokenType": "Bearer", "user": USER})
            return make_response(request, 401, {"message": "Credenciais invalidas"})
        if path == "/register":
            return make_response(request, 201, {"message": "ok", "user": {**USER, "name": body["name"]}})

        if auth != f"Bearer {TOKEN}":
            return make_response(request, 401, {"message": "Unauthorized", "statusCode": 401})

        if path == "/cash-entries" and request.method == "GET":
            return make_response(request, 200, self._filter(params))
        if path == "/cash-entries" and request.method == "POST":
            created = {
                "id": str(uuid.uuid4()),
                "type": body["type"],
                "amount": body["amount"],
                "description": body["description"],
                "paymentMethod": body.get("paymentMethod"),
                "createdAt": f"{body.get('entryDate', '2024-01-01')}T12:00:00",
            }
            if body.get("category"):
                created["category"] = body["category"]
            self.entries.append(created)
            return make_response(request, 201, created)
        if path.startswith("/cash-entries/") and request.method == "DELETE":
            entry_id = path.rsplit("/", 1)[1]
            self.entries = [e for e in self.entries if e["id"] != entry_id]
            return make_response(request, 204)
        if path == "/cash-entries/scan-receipt":
            return make_response(request, 201, self.scan_result)
        if path == "/cash-summary/daily":
            return make_response(request, 200, self._daily(params["date"]))
        return make_response(request, 404, {"message": "Not Found"})

    def close(self) -> None:
        pass

    def _filter(self, params: Dict[str, str]) -> List[Dict[str, Any]]:
        out = []
        for e in self.entries:
            day = e["createdAt"][:10]
            if "date" in params and day != params["date"]:
                continue
            if "dateFrom" in params and day < params["dateFrom"]:
                continue
            if "dateTo" in params and day > params["dateTo"]:
                continue
            if "type" in params and e["type"] != params["type"]:
                continue
            if "paymentMethod" in params and e.get("paymentMethod") != params["paymentMethod"]:
                continue
            if "category" in params and params["category"].lower() not in (e.get("category") or "").lower():
                continue
            if "description" in params and params["description"].lower() not in e["description"].lower():
                continue
            amount = Decimal(str(e["amount"]))
            if "minAmount" in params and amount < Decimal(params["minAmount"]):
                continue
            if "maxAmount" in params and amount > Decimal(params["maxAmount"]):
                continue
            out.append(e)
        return out

    def _daily(self, day: str) -> Dict[str, Any]:
        items = self._filter({"date": day})
        total_in = sum((Decimal(str(e["amount"])) for e in items if e["type"] == "IN"), Decimal("0"))
        total_out = sum((Decimal(str(e["amount"])) for e in items if e["type"] == "OUT"), Decimal("0"))
        count_in = sum(1 for e in items if e["type"] == "IN")
        count_out = sum(1 for e in items if e["type"] == "OUT")
        return {
            "date": day,
            "totalIn": float(total_in),
            "totalOut": float(total_out),
            "balance": float(total_in - total_out),
            "countIn": count_in,
            "countOut": count_out,
            "totalEntries": count_in + count_out,
        }


def image_bytes(width: int, height: int, *, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    color = (200, 120, 40, 255)[: len(mode)] if mode in ("RGB", "RGBA") else 128
    buf = io.BytesIO()
    Image.new(mode, (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def service() -> FakeLedgerService:
    return FakeLedgerService()


@pytest.fixture
def session() -> SessionStore:
    store = SessionStore()
    store.set(TOKEN, AuthUser.from_api(USER))
    return store


@pytest.fixture
def client(service: FakeLedgerService, session: SessionStore) -> LedgerClient:
    http = requests.Session()
    http.mount(BASE_URL, service)
    return LedgerClient(BASE_URL, session, http=http)
