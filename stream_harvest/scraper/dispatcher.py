from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Callable, Optional

from .logging_utils import _scraper_event

Task = Callable[[], None]


class RequestDispatcher:
    """
    Bounded-parallelism executor for page requests and their handlers.

    - ``submit`` never blocks the caller; the task runs on a pool thread.
    - Parallelism is fixed at construction (default 2 for the stream host).
    - Exceptions escaping a task are reported to ``on_error`` so a worker
      failure reaches the run instead of vanishing inside a future.
    """

    def __init__(
        self,
        max_workers: int,
        *,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self._max_workers = max(1, max_workers)
        self._executor = ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="harvest",
        )
        self._on_error = on_error
        self._lock = Lock()
        self._in_flight: int = 0
        self._peak_in_flight: int = 0
        self._submitted: int = 0

    def submit(self, label: str, fn: Task) -> Future[None]:
        with self._lock:
            self._in_flight += 1
            self._submitted += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)

        def _wrapped() -> None:
            try:
                fn()
            except BaseException as exc:  # noqa: BLE001
                _scraper_event(
                    "error",
                    phase="dispatcher",
                    task=label,
                    error_repr=repr(exc),
                )
                if self._on_error is None:
                    raise
                self._on_error(exc)
            finally:
                with self._lock:
                    self._in_flight -= 1

        return self._executor.submit(_wrapped)

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        with self._lock:
            return self._peak_in_flight

    @property
    def submitted(self) -> int:
        with self._lock:
            return self._submitted

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)


__all__ = ["RequestDispatcher"]
