"""
Append-only action log for publisher mutations and read failures.

Lines look like::

    2026-01-31T09:12:44.120391+00:00 - CREATE: {"filename": "acme.json", "publisherId": "acme"}

The log is best-effort. Failing to open, rotate or append never surfaces to
the caller; the request that triggered the entry proceeds regardless.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class _SilentRotatingFileHandler(RotatingFileHandler):
    def handleError(self, record: logging.LogRecord) -> None:
        # Write and rotation errors are dropped instead of printed to stderr.
        pass


class AuditLogger:
    """
    Writes one line per action to ``path``, rotating to ``<path>.1`` once the
    file grows past ``max_bytes``. Only one rotated file is kept.
    """

    def __init__(self, path: Path, max_bytes: int = 5 * 1024 * 1024) -> None:
        self.path = path
        # Not registered with the logging manager, so the handler is released
        # together with this instance.
        self._logger = logging.Logger(f"{__name__}.{path.name}")
        self._logger.propagate = False
        self._logger.setLevel(logging.INFO)
        self._handler: Optional[RotatingFileHandler] = None

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = _SilentRotatingFileHandler(path, maxBytes=max_bytes, backupCount=1, encoding="utf-8", delay=True)
        except OSError as exc:
            logger.warning(f"Audit log disabled, cannot use {path}: {exc}")
            return

        handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(handler)
        self._handler = handler

    @property
    def enabled(self) -> bool:
        return self._handler is not None

    def log(self, action: str, details: Optional[Dict[str, Any]] = None) -> None:
        if self._handler is None:
            return
        try:
            timestamp = datetime.now(timezone.utc).isoformat()
            payload = json.dumps(details or {}, ensure_ascii=False, default=str)
            self._logger.info(f"{timestamp} - {action}: {payload}")
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"Dropped audit entry {action}: {exc}")

    def close(self) -> None:
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None
