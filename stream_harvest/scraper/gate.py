"""Completion gate tracking in-flight pages for one harvest run."""
from __future__ import annotations

import threading
from typing import Optional

from .error_codes import ErrorCode, HarvestError
from .logging_utils import _scraper_event

TERMINAL_EMPTY_PAGE = "empty_page"
TERMINAL_TIME_BOUNDARY = "time_boundary"


class CompletionGate:
    """Counting gate: a run completes when the count is zero and a terminal
    reason has been recorded, or as soon as a fatal error is recorded.

    The gate starts holding one unit for the bootstrap phase; the first page
    request inherits that unit, so the count cannot drain before the first
    page has been handled.
    """

    def __init__(self, initial: int = 1) -> None:
        self._count = initial
        self._terminal: Optional[str] = None
        self._error: Optional[BaseException] = None
        self._ignored: Optional[str] = None
        self._cond = threading.Condition()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    @property
    def terminal_reason(self) -> Optional[str]:
        with self._cond:
            return self._terminal

    @property
    def is_closed(self) -> bool:
        """True once a terminal reason or fatal error stops further dispatch."""

        with self._cond:
            return self._terminal is not None or self._error is not None

    def note_ignored(self, url: str, content_type: str) -> None:
        """Remember a skipped non-JSON response for the stall diagnostic."""

        with self._cond:
            self._ignored = f"url={url} content_type={content_type or 'none'!r}"
        _scraper_event("state", phase="gate", kind="ignored_response", url=url, content_type=content_type)

    def acquire(self) -> None:
        with self._cond:
            self._count += 1

    def release(self) -> None:
        with self._cond:
            if self._count <= 0:
                raise HarvestError(ErrorCode.INTERNAL, "Completion gate released more times than acquired")
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def signal_terminal(self, reason: str) -> None:
        with self._cond:
            if self._terminal is None:
                self._terminal = reason
                _scraper_event("state", phase="gate", kind="terminal", reason=reason, in_flight=self._count)
            self._cond.notify_all()

    def fail(self, error: BaseException) -> None:
        with self._cond:
            if self._error is None:
                self._error = error
                _scraper_event(
                    "error",
                    phase="gate",
                    kind="fatal",
                    error_code=getattr(error, "error_code", ErrorCode.INTERNAL),
                    error=str(error),
                )
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> str:
        """Block until the run completes; return the terminal reason."""

        with self._cond:
            finished = self._cond.wait_for(
                lambda: self._error is not None or self._count == 0,
                timeout=timeout,
            )
            if self._error is not None:
                raise self._error
            if not finished:
                raise HarvestError(ErrorCode.STALLED, f"Harvest did not complete within {timeout}s")
            if self._terminal is None:
                detail = "All pages drained without an empty page or time boundary"
                if self._ignored is not None:
                    detail += f"; last page response was ignored as non-JSON ({self._ignored})"
                raise HarvestError(ErrorCode.STALLED, detail)
            return self._terminal


__all__ = ["CompletionGate", "TERMINAL_EMPTY_PAGE", "TERMINAL_TIME_BOUNDARY"]
