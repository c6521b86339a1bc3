"""Session context shared by everything that issues authenticated calls.

Holds at most one access token and one user record. Clearing the session (on
logout or on any 401) notifies subscribers so views can navigate away.
"""

from __future__ import annotations

import json
import os
from typing import Callable, List, Optional

from ..domain.models import AuthUser
from ..logging import get_logger

LOG = get_logger("session")

SessionListener = Callable[[], None]

LOGIN_PATH = "/login"
HOME_PATH = "/cash"
PROTECTED_PATHS = ("/cash", "/reports")


class SessionStore:
    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path
        self._token: Optional[str] = None
        self._user: Optional[AuthUser] = None
        self._listeners: List[SessionListener] = []
        if path:
            self._load()

    # ---------- state ----------
    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[AuthUser]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def set(self, token: str, user: AuthUser) -> None:
        self._token = token
        self._user = user
        LOG.info(f"Session started for {user.email}")
        self._save()

    def clear(self) -> None:
        """Drop token and user; listeners fire only if a session existed."""
        had_session = self._token is not None or self._user is not None
        self._token = None
        self._user = None
        self._save()
        if had_session:
            LOG.info("Session ended")
            self._notify()

    def end(self) -> None:
        """Force the "session ended" path (401 received), even if already empty."""
        if self._token is None and self._user is None:
            self._notify()
            return
        self.clear()

    # ---------- subscriptions ----------
    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # ---------- persistence ----------
    def _load(self) -> None:
        assert self.path is not None
        if not os.path.isfile(self.path):
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            LOG.warning(f"Ignoring unreadable session file {self.path}: {e}")
            return
        if not isinstance(data, dict):
            return
        token = data.get("accessToken")
        self._token = token if isinstance(token, str) and token else None
        user = data.get("user")
        if isinstance(user, dict):
            self._user = AuthUser.from_api(user)
        elif user is not None:
            LOG.warning("Dropping corrupt user record from session file")

    def _save(self) -> None:
        if not self.path:
            return
        if self._token is None and self._user is None:
            if os.path.isfile(self.path):
                os.remove(self.path)
            return
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        payload = {
            "accessToken": self._token,
            "user": self._user.to_dict() if self._user else None,
        }
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False)


class Router:
    """Navigation boundary: protected pages redirect to login without a session."""

    def __init__(self, session: SessionStore, location: str = HOME_PATH) -> None:
        self.session = session
        self.history: List[str] = []
        self.location = self.resolve(location)
        session.subscribe(self._on_session_ended)

    def resolve(self, path: str) -> str:
        if path == LOGIN_PATH:
            return LOGIN_PATH
        if path not in PROTECTED_PATHS:
            path = HOME_PATH
        if not self.session.is_authenticated:
            return LOGIN_PATH
        return path

    def navigate(self, path: str, *, replace: bool = False) -> str:
        target = self.resolve(path)
        if not replace:
            self.history.append(self.location)
        self.location = target
        LOG.debug(f"Navigated to {target} (requested {path})")
        return target

    def _on_session_ended(self) -> None:
        self.navigate(LOGIN_PATH, replace=True)
