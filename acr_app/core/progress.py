"""Common progress reporting for long-running stages (logged, not rendered)."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int | None, int | None], None]


class ProgressReporter:
    """Logs ``[current/total] message`` lines for a stage."""

    def __init__(self, title: str, log: logging.Logger | None = None):
        self.title = title
        self._log = log or logger
        self._total: int | None = None
        self._current: int = 0
        self._finalized: bool = False
        self._log.info("%s", title)

    def callback(self, message: str, current: int | None = None, total: int | None = None) -> None:
        """Signature compatible with the stage services' progress callbacks."""
        self.update(message, current=current, total=total)

    def update(self, message: str, *, current: int | None = None, total: int | None = None) -> None:
        if self._finalized:
            return
        if total is not None and total > 0:
            self._total = total
        if current is not None:
            self._current = max(0, current)
        if self._total:
            self._log.info("[%d/%d] %s", self._current, self._total, message)
        else:
            self._log.info("%s", message)

    def complete(self, message: str) -> None:
        if self._finalized:
            return
        self._log.info("%s: %s", self.title, message)
        self._finalized = True
