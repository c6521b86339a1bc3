import logging
import os
from typing import Optional, Union

ROOT_NAME = "cashdesk"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _coerce_level(value: Optional[Union[str, int]]) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        name = value.strip().upper()
        if name == "WARN":
            name = "WARNING"
        level = logging.getLevelName(name)
        if isinstance(level, int):
            return level
    return logging.INFO


def _configure_root() -> logging.Logger:
    """Attach handlers to the package root logger on first use.

    LOG_LEVEL (default INFO) sets the level; LOG_FILE, when set, adds an
    appending UTF-8 file handler next to the console one.
    """
    root = logging.getLogger(ROOT_NAME)
    if root.handlers:
        return root

    level = _coerce_level(os.environ.get("LOG_LEVEL"))
    root.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            root.warning(f"LOG_FILE {log_file!r} could not be opened ({e}); console only")
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    # keep library output out of the host application's root logger
    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for one area of the client, e.g. get_logger("ledger-client")."""
    _configure_root()
    return logging.getLogger(f"{ROOT_NAME}.{name}")
