from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging
import os
import sys


_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "crit": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


class BracketLevelFormatter(logging.Formatter):
    """Lowercase bracketed level tags ([info], [warn], ...) and UTC timestamps."""

    _TAGS = {
        logging.DEBUG: "[debug]",
        logging.INFO: "[info]",
        logging.WARNING: "[warn]",
        logging.ERROR: "[error]",
        logging.CRITICAL: "[crit]",
    }

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def format(self, record):
        record.level_tag = self._TAGS.get(record.levelno, f"[lvl{record.levelno}]")
        return super().format(record)


def init_logging(cfg: Optional[Dict[str, Any]] = None) -> None:
    """Configure the root logger.

    Keys (all optional):
        level:  debug|info|warn|error|crit (default info)
        stderr: log to stderr (default True)
        file:   path of an append-mode log file
    """
    cfg = cfg or {}

    level = _LEVELS.get(str(cfg.get("level", "info")).lower(), logging.INFO)
    formatter = BracketLevelFormatter(fmt="%(asctime)s %(level_tag)s %(name)s: %(message)s")

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    if cfg.get("stderr", True):
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        root.addHandler(stderr_handler)

    file_path = cfg.get("file")
    if isinstance(file_path, str) and file_path.strip():
        path = os.path.abspath(os.path.expanduser(file_path.strip()))
        os.makedirs(os.path.dirname(path), exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.captureWarnings(True)


__all__ = ["BracketLevelFormatter", "init_logging"]
