"""Logging setup for the engine and its CLI.

Console output goes to stderr; stdout is reserved for the JSON the CLI prints.
A daily file under ``logs/`` (or ``ENGINE_LOG_DIR``) records DEBUG and up
unless ``ENGINE_LOG_TO_FILE`` is switched off.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import date
from pathlib import Path

FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
DATE_FMT = "%Y-%m-%d %H:%M:%S"

# httpx logs every oracle request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

_configured = False


def _log_dir() -> Path:
    return Path(os.environ.get("ENGINE_LOG_DIR") or Path(__file__).resolve().parent.parent / "logs")


def _file_logging_enabled() -> bool:
    return os.environ.get("ENGINE_LOG_TO_FILE", "true").lower() in ("1", "true", "yes")


def setup_logging(level: str | int | None = None) -> None:
    """Attach console (and file) handlers to the root logger once.

    ``level`` overrides ``LOG_LEVEL``; calling again only adjusts the level.
    """
    global _configured
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    if _configured:
        for handler in root.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)
        root.setLevel(min(level, root.level))
        return
    _configured = True
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if root.handlers:
        return

    formatter = logging.Formatter(FORMAT, datefmt=DATE_FMT)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if not _file_logging_enabled():
        return
    log_file = _log_dir() / f"engine_{date.today():%Y-%m-%d}.log"
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        root.warning("File logging disabled, cannot open %s: %s", log_file, exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    root.addHandler(fh)
    root.setLevel(logging.DEBUG)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger, configuring handlers on first use."""
    if not _configured:
        setup_logging()
    return logging.getLogger(name)
