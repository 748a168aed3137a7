"""Logging setup for the submitter (stdlib only).

Every module does ``log = get_logger(__name__)``. The first call installs a
stdout handler at ``LOG_LEVEL`` and a per-day DEBUG file under the log
directory (``AUTOSUBMIT_LOG_DIR``, default ``<repo>/logs``). Set
``AUTOSUBMIT_FILE_LOG=0`` for console-only output.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import date
from pathlib import Path

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_QUIET = ("urllib3", "asyncio")
_configured = False


def get_logger(name: str) -> logging.Logger:
    global _configured
    if not _configured:
        configure()
        _configured = True
    return logging.getLogger(name)


def log_dir() -> Path:
    override = os.environ.get("AUTOSUBMIT_LOG_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(__file__).resolve().parent.parent / "logs"


def configure(level: str | None = None) -> None:
    """Install root handlers unless something already has."""
    name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    console_level = getattr(logging, name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if _file_logging() else console_level)
    for noisy in _QUIET:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if root.handlers:
        return

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if _file_logging():
        _add_file_handler(root, formatter)


def _file_logging() -> bool:
    return os.environ.get("AUTOSUBMIT_FILE_LOG", "1").strip().lower() not in ("0", "false", "no")


def _add_file_handler(root: logging.Logger, formatter: logging.Formatter) -> None:
    path = log_dir() / f"submitter_{date.today().isoformat()}.log"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        root.warning("File logging disabled, cannot open %s: %s", path, exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    root.addHandler(fh)
