"""Shared harvest session and its readiness latch."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Optional

from .error_codes import ErrorCode, HarvestError


class ReadinessLatch:
    """Count-down latch released once every bootstrap fragment is known."""

    def __init__(self, parties: int = 2) -> None:
        self._remaining = parties
        self._error: Optional[HarvestError] = None
        self._cond = threading.Condition()

    @property
    def remaining(self) -> int:
        with self._cond:
            return self._remaining

    @property
    def is_released(self) -> bool:
        with self._cond:
            return self._remaining == 0 and self._error is None

    def count_down(self) -> None:
        with self._cond:
            if self._remaining > 0:
                self._remaining -= 1
            if self._remaining == 0:
                self._cond.notify_all()

    def abort(self, error: HarvestError) -> None:
        with self._cond:
            if self._error is None:
                self._error = error
            self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until released; raise if the bootstrap failed or timed out."""

        with self._cond:
            released = self._cond.wait_for(
                lambda: self._remaining == 0 or self._error is not None,
                timeout=timeout,
            )
            if self._error is not None:
                raise self._error
            if not released:
                raise HarvestError(
                    ErrorCode.AUTH_MATERIAL,
                    f"Session not ready after {timeout}s; bootstrap never completed",
                )


@dataclass
class HarvestSession:
    symbol: str
    retry_budget: int
    delay_ms: int
    readiness: ReadinessLatch = field(default_factory=ReadinessLatch)
    _csrf_token: Optional[str] = field(default=None, repr=False)
    _stream_id: Optional[int] = None
    _write_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def csrf_token(self) -> Optional[str]:
        return self._csrf_token

    @property
    def stream_id(self) -> Optional[int]:
        return self._stream_id

    @property
    def delay_seconds(self) -> float:
        return max(0, self.delay_ms) / 1000.0

    def publish_token(self, token: str) -> None:
        with self._write_lock:
            if self._csrf_token is not None:
                raise HarvestError(ErrorCode.INTERNAL, "csrf token already published")
            self._csrf_token = token
        self.readiness.count_down()

    def publish_stream_id(self, stream_id: int) -> None:
        with self._write_lock:
            if self._stream_id is not None:
                raise HarvestError(ErrorCode.INTERNAL, "stream id already published")
            self._stream_id = stream_id
        self.readiness.count_down()

    def wait_ready(self, timeout: Optional[float] = None) -> None:
        self.readiness.wait(timeout)


__all__ = ["HarvestSession", "ReadinessLatch"]
