from __future__ import annotations

import threading
from typing import TypeVar

from . import config
from .error_codes import ErrorCode, HarvestError
from .logging_utils import _scraper_event
from .utils import log_line

R = TypeVar("R")


class RetryController:
    """Shared retry budget for every request of a harvest run.

    A successful response restores the full budget; each transport failure
    spends one unit and hands the identical request back for resubmission.
    When the budget is already spent the failure becomes fatal. No backoff is
    applied here beyond the poller's fixed inter-request delay.
    """

    def __init__(self, budget: int) -> None:
        if budget < config.UNLIMITED_RETRIES:
            raise ValueError(f"retry budget must be >= {config.UNLIMITED_RETRIES}, got {budget}")
        self._budget = budget
        self._remaining = budget
        self._total_retries = 0
        self._lock = threading.Lock()

    @property
    def budget(self) -> int:
        return self._budget

    @property
    def unlimited(self) -> bool:
        return config.is_unlimited(self._budget)

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    @property
    def total_retries(self) -> int:
        with self._lock:
            return self._total_retries

    def record_success(self) -> None:
        with self._lock:
            self._remaining = self._budget

    def on_failure(self, request: R, error: HarvestError) -> R:
        """Return ``request`` for resubmission or raise when the budget is spent."""

        if not error.is_transient:
            raise error

        with self._lock:
            if not self.unlimited and self._remaining <= 0:
                _scraper_event(
                    "state",
                    phase="retry_decision",
                    kind="exhausted",
                    error_code=error.error_code,
                    http_status=error.http_status,
                    budget=self._budget,
                    will_retry=False,
                )
                raise HarvestError(
                    ErrorCode.RETRY_EXHAUSTED,
                    f"exit due to request failure after {self._budget} retries: {error}",
                    http_status=error.http_status,
                ) from error

            if not self.unlimited:
                self._remaining -= 1
            self._total_retries += 1
            attempt = self._total_retries if self.unlimited else self._budget - self._remaining

        _scraper_event(
            "state",
            phase="retry_decision",
            kind="retryable",
            error_code=error.error_code,
            http_status=error.http_status,
            attempt=attempt,
            budget=self._budget,
            will_retry=True,
        )
        log_line(f"ERROR: retrying...{attempt} ({error})")
        return request


__all__ = ["RetryController"]
