"""Page processor: classifies responses and decides how paging continues."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .gate import TERMINAL_EMPTY_PAGE, TERMINAL_TIME_BOUNDARY
from .http_client import FetchResponse
from .logging_utils import _scraper_event
from .models import Cursor, Page, decode_page
from .poller import PageRequest
from .sink import TsvSink
from .utils import log_line

STATUS_IGNORED = "ignored"
STATUS_CONTINUE = "continue"


@dataclass
class PageOutcome:
    status: str
    page: Optional[Page] = None
    next_request: Optional[PageRequest] = None

    @property
    def terminal(self) -> bool:
        return self.status in (TERMINAL_EMPTY_PAGE, TERMINAL_TIME_BOUNDARY)

    @property
    def has_records(self) -> bool:
        return self.page is not None and not self.page.is_empty


def is_structured(response: FetchResponse) -> bool:
    return "json" in response.content_type.lower()


class PageProcessor:
    """Turns one stream response into a :class:`PageOutcome`.

    ``evaluate`` does no I/O: it decodes the payload, applies the
    termination rules and moves the cursor. ``emit`` writes a page's messages
    to the sink. The harvester dispatches ``next_request`` before calling
    ``emit`` so the next fetch overlaps with writing the current page.
    """

    def __init__(
        self,
        *,
        boundary: datetime,
        cursor: Cursor,
        sink: TsvSink,
        next_request: Callable[[int], PageRequest],
    ) -> None:
        self._boundary = boundary
        self._cursor = cursor
        self._sink = sink
        self._next_request = next_request

    @property
    def cursor(self) -> Cursor:
        return self._cursor

    def evaluate(self, response: FetchResponse) -> PageOutcome:
        if not is_structured(response):
            _scraper_event(
                "state",
                phase="page",
                kind="ignored",
                url=response.url,
                content_type=response.content_type,
            )
            return PageOutcome(STATUS_IGNORED)

        page = decode_page(response.body)
        if page.is_empty:
            log_line("receiving 0 messages, exit...")
            return PageOutcome(TERMINAL_EMPTY_PAGE, page=page)

        page.derive_bounds()
        self._cursor.advance(page.max)
        log_line(
            f"Response got {len(page.messages)} messages, {page.since} - {page.max} (more={page.more})"
        )

        if page.oldest.created_at < self._boundary:
            _scraper_event(
                "state",
                phase="page",
                kind="boundary_reached",
                oldest_id=page.oldest.id,
                oldest_created_at=page.oldest.created_at.isoformat(),
                boundary=self._boundary.date().isoformat(),
            )
            return PageOutcome(TERMINAL_TIME_BOUNDARY, page=page)

        return PageOutcome(STATUS_CONTINUE, page=page, next_request=self._next_request(page.max))

    def emit(self, page: Page) -> int:
        return self._sink.write_page(page.messages)


__all__ = ["PageOutcome", "PageProcessor", "STATUS_CONTINUE", "STATUS_IGNORED", "is_structured"]
