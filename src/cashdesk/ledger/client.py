from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from ..domain.errors import ServiceError, TransportError, UnauthorizedError, extract_api_message
from ..domain.models import AuthUser, LedgerEntry, RecognitionResult, Summary
from ..logging import get_logger
from .session import SessionStore

T = TypeVar("T")


class LedgerClient:
    """Thin client for the cash-ledger API with session, timeouts, and logging.

    Every call attaches the stored access token as a bearer credential. A 401
    from any authenticated call ends the session before UnauthorizedError is
    raised, so callers only decide what to show.
    """

    def __init__(
        self,
        base_url: str,
        session: SessionStore,
        *,
        timeout: int = 30,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base = base_url.rstrip("/")
        self.session = session
        self.timeout = int(timeout)
        self.log = get_logger("ledger-client")
        self.s = http or requests.Session()
        self.s.headers.update({"Accept": "application/json"})

    # ---------- helpers ----------
    def _url(self, path: str) -> str:
        return f"{self.base}{path}"

    def _headers(self) -> Dict[str, str]:
        token = self.session.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        url = self._url(path)
        try:
            r = self.s.request(
                method,
                url,
                params=params or None,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            self.log.error(f"{method} {path} failed before a response: {e}")
            raise TransportError(str(e)) from e
        return self._json(r, method, path, authenticated=authenticated)

    def _json(self, r: requests.Response, method: str, path: str, *, authenticated: bool) -> Any:
        try:
            body = r.json() if r.content else None
        except ValueError:
            body = None
        try:
            r.raise_for_status()
        except requests.HTTPError as e:
            message = extract_api_message(body)
            if r.status_code == 401 and authenticated:
                self.log.warning(f"{method} {path} -> 401; ending session")
                self.session.end()
                raise UnauthorizedError(message, body) from e
            self.log.error(f"{method} {path} -> {r.status_code}: {message or r.reason}")
            raise ServiceError(r.status_code, message, body) from e
        return body

    def _parse(self, path: str, build: Callable[[Any], T], data: Any) -> T:
        try:
            return build(data)
        except (TypeError, ValueError, ArithmeticError) as e:
            self.log.error(f"Malformed response body from {path}: {e}")
            raise ServiceError(502, None, data) from e

    # ---------- cash entries ----------
    def list_entries(self, params: Optional[Dict[str, str]] = None) -> List[LedgerEntry]:
        self.log.debug(f"GET /cash-entries params={params}")
        data = self._request("GET", "/cash-entries", params=params)
        items = data if isinstance(data, list) else []
        return self._parse(
            "/cash-entries",
            lambda rows: [LedgerEntry.from_api(item) for item in rows if isinstance(item, dict)],
            items,
        )

    def daily_summary(self, date: str) -> Summary:
        data = self._request("GET", "/cash-summary/daily", params={"date": date})
        return self._parse("/cash-summary/daily", Summary.from_api, data if isinstance(data, dict) else {})

    def create_entry(self, payload: Dict[str, Any]) -> Optional[LedgerEntry]:
        self.log.info(
            f"POST /cash-entries: type={payload.get('type')}, amount={payload.get('amount')}, "
            f"date={payload.get('entryDate')}"
        )
        data = self._request("POST", "/cash-entries", payload=payload)
        return self._parse("/cash-entries", LedgerEntry.from_api, data) if isinstance(data, dict) else None

    def delete_entry(self, entry_id: str) -> None:
        self.log.info(f"DELETE /cash-entries/{entry_id}")
        self._request("DELETE", f"/cash-entries/{requests.utils.quote(str(entry_id), safe='')}")

    def scan_receipt(self, base64_image: str, *, language: str = "por") -> RecognitionResult:
        self.log.info(f"POST /cash-entries/scan-receipt ({len(base64_image)} chars, language={language})")
        data = self._request(
            "POST",
            "/cash-entries/scan-receipt",
            payload={"base64Image": base64_image, "language": language},
        )
        return self._parse(
            "/cash-entries/scan-receipt", RecognitionResult.from_api, data if isinstance(data, dict) else {}
        )

    # ---------- auth ----------
    def login(self, email: str, password: str) -> AuthUser:
        data = self._request(
            "POST", "/login", payload={"email": email, "password": password}, authenticated=False
        ) or {}
        token = data.get("accessToken") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise ServiceError(200, "Resposta de login sem token.", data)
        user = self._parse("/login", AuthUser.from_api, data.get("user") or {})
        self.session.set(token, user)
        return user

    def register(self, name: str, email: str, password: str) -> AuthUser:
        data = self._request(
            "POST",
            "/register",
            payload={"name": name, "email": email, "password": password},
            authenticated=False,
        ) or {}
        user = data.get("user") if isinstance(data, dict) else None
        return self._parse("/register", AuthUser.from_api, user if isinstance(user, dict) else {})

    def logout(self) -> None:
        self.session.clear()
