import os
from typing import Dict, Optional

from .logging import get_logger
from .paths import expand_abs, find_project_root, var_dir

log = get_logger("config")

DEFAULT_API_URL = "http://localhost:3000"
DEFAULT_TIMEOUT = 30
DEFAULT_REPORT_DEBOUNCE_MS = 250


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    Running the CLI from a subdirectory still picks up the project-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Minimal .env reader.

    - Reads key=value pairs, ignores comments (#/;) and blank lines.
    - Trims single/double quotes around the value.
    - Returns mapping; does not mutate environment.
    """
    env: Dict[str, str] = {}
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return env
    try:
        with open(path, "r", encoding="utf-8") as f:
            for raw in f:
                line = raw.strip()
                if not line or line.startswith("#") or line.startswith(";"):
                    continue
                if "=" not in line:
                    continue
                k, v = line.split("=", 1)
                k = k.strip()
                v = v.strip()
                if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
                    v = v[1:-1]
                env[k] = v.strip()
        log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    except OSError as e:
        log.warning(f"Failed reading .env: {e}")
    return env


def _lookup(dotenv_dir: str, key: str) -> Optional[str]:
    v = os.environ.get(key)
    if v and v.strip():
        return v.strip()
    v = _read_dotenv(dotenv_dir).get(key)
    return v.strip() if v else None


def load_api_url(dotenv_dir: str, fallback: str = DEFAULT_API_URL) -> str:
    """Base URL of the ledger service (CASHDESK_API_URL)."""
    return (_lookup(dotenv_dir, "CASHDESK_API_URL") or fallback).rstrip("/")


def load_session_path(dotenv_dir: str) -> str:
    """Where the access token and user record are persisted between runs."""
    v = _lookup(dotenv_dir, "CASHDESK_SESSION_FILE")
    if v:
        return expand_abs(v)
    return os.path.join(var_dir(find_project_root(dotenv_dir)), "session.json")


def load_timeout(dotenv_dir: str, fallback: int = DEFAULT_TIMEOUT) -> int:
    v = _lookup(dotenv_dir, "CASHDESK_TIMEOUT")
    if not v:
        return fallback
    try:
        return max(1, int(v))
    except ValueError:
        log.warning(f"Ignoring invalid CASHDESK_TIMEOUT={v!r}; using {fallback}s")
        return fallback


def load_report_debounce_ms(dotenv_dir: str, fallback: int = DEFAULT_REPORT_DEBOUNCE_MS) -> int:
    """Quiescence window for the report filters, in milliseconds."""
    v = _lookup(dotenv_dir, "CASHDESK_REPORT_DEBOUNCE_MS")
    if not v:
        return fallback
    try:
        return max(0, int(v))
    except ValueError:
        log.warning(f"Ignoring invalid CASHDESK_REPORT_DEBOUNCE_MS={v!r}; using {fallback}ms")
        return fallback
