from .client import LedgerClient
from .session import Router, SessionStore

__all__ = ["LedgerClient", "Router", "SessionStore"]
