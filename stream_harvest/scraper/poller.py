"""Pagination poller: builds stream request targets and issues them."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from . import config
from .error_codes import ErrorCode, HarvestError
from .http_client import FetchResponse, Transport
from .logging_utils import _scraper_event
from .session import HarvestSession
from .utils import log_line

KIND_LANDING = "landing"
KIND_INITIAL = "initial"
KIND_CONTINUATION = "continuation"


@dataclass(frozen=True)
class PageRequest:
    kind: str
    url: str
    cursor: Optional[int] = None


def landing_request(symbol: str) -> PageRequest:
    return PageRequest(KIND_LANDING, config.LANDING_URL_TEMPLATE.format(symbol=symbol.upper()))


def initial_request(stream_id: int) -> PageRequest:
    return PageRequest(KIND_INITIAL, config.INITIAL_URL_TEMPLATE.format(stream_id=stream_id))


def continuation_request(stream_id: int, max_id: int) -> PageRequest:
    if max_id <= 0:
        raise HarvestError(ErrorCode.PROTOCOL, f"Continuation cursor must be positive, got {max_id}")
    return PageRequest(
        KIND_CONTINUATION,
        config.CONTINUATION_URL_TEMPLATE.format(stream_id=stream_id, max_id=max_id),
        cursor=max_id,
    )


class PagePoller:
    """Issues stream page requests once the session is ready.

    The poller never decides retry policy and never moves the cursor; a
    transport failure is raised to the caller unchanged.
    """

    def __init__(
        self,
        session: HarvestSession,
        transport: Transport,
        *,
        readiness_timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session
        self._transport = transport
        self._readiness_timeout = (
            readiness_timeout if readiness_timeout is not None else config.READINESS_TIMEOUT_SECONDS
        )
        self._sleep = sleep

    def first_request(self, resume_cursor: int = 0) -> PageRequest:
        """Newest page, or the page just older than ``resume_cursor``."""

        self._session.wait_ready(self._readiness_timeout)
        stream_id = self._session.stream_id
        if resume_cursor:
            return continuation_request(stream_id, resume_cursor)
        return initial_request(stream_id)

    def next_request(self, max_id: int) -> PageRequest:
        return continuation_request(self._session.stream_id, max_id)

    def auth_headers(self) -> dict[str, str]:
        return {
            config.CSRF_HEADER: self._session.csrf_token or "",
            config.AJAX_HEADER: config.AJAX_HEADER_VALUE,
        }

    def poll(self, request: PageRequest) -> FetchResponse:
        self._session.wait_ready(self._readiness_timeout)
        self._sleep(self._session.delay_seconds)

        log_line(f"URL    : {request.url}")
        _scraper_event("state", phase="poll", kind=request.kind, cursor=request.cursor)
        return self._transport.get(request.url, headers=self.auth_headers())


__all__ = [
    "KIND_CONTINUATION",
    "KIND_INITIAL",
    "KIND_LANDING",
    "PagePoller",
    "PageRequest",
    "continuation_request",
    "initial_request",
    "landing_request",
]
