"""Session bootstrap from the symbol landing page.

The landing page markup carries the two pieces of authentication material
that every stream request needs:

    <meta name="csrf-token" content="...">
    <ol class="stream-list" stream-id="686">

Each fragment is extracted by its own observer task. An observer publishes
its field on the shared session, which counts down the readiness latch; once
both have run, pollers waiting on the session are released. A missing or
malformed fragment aborts the latch and fails the run.
"""
from __future__ import annotations

from typing import Callable

from bs4 import BeautifulSoup

from . import config
from .error_codes import ErrorCode, HarvestError
from .http_client import FetchResponse
from .logging_utils import _scraper_event
from .session import HarvestSession
from .utils import log_line

Submit = Callable[[str, Callable[[], None]], object]


def parse_landing(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "html5lib")


def extract_csrf_token(soup: BeautifulSoup) -> str:
    node = soup.select_one(config.TOKEN_SELECTOR)
    token = (node.get(config.TOKEN_ATTRIBUTE) or "").strip() if node is not None else ""
    if not token:
        raise HarvestError(ErrorCode.AUTH_MATERIAL, "csrf token not found")
    return token


def extract_stream_id(soup: BeautifulSoup) -> int:
    node = soup.select_one(config.STREAM_SELECTOR)
    raw = (node.get(config.STREAM_ATTRIBUTE) or "").strip() if node is not None else ""
    try:
        return int(raw)
    except ValueError as exc:
        raise HarvestError(ErrorCode.AUTH_MATERIAL, f"stream id not found (got {raw!r})") from exc


class SessionBootstrapper:
    def __init__(self, session: HarvestSession) -> None:
        self._session = session

    def _observe(self, name: str, extract: Callable[[], None]) -> Callable[[], None]:
        def _run() -> None:
            try:
                extract()
            except HarvestError as exc:
                _scraper_event("error", phase="bootstrap", fragment=name, error=str(exc))
                self._session.readiness.abort(exc)
                raise

        return _run

    def bootstrap(self, response: FetchResponse, submit: Submit) -> None:
        """Schedule both extraction observers for the landing ``response``."""

        soup = parse_landing(response.text)
        session = self._session

        def _token() -> None:
            token = extract_csrf_token(soup)
            session.publish_token(token)
            log_line(f"csrfToken is {token}")

        def _stream_id() -> None:
            stream_id = extract_stream_id(soup)
            session.publish_stream_id(stream_id)
            log_line(f"id is {stream_id}")

        _scraper_event("state", phase="bootstrap", kind="landing_received", symbol=session.symbol)
        submit("bootstrap:csrf_token", self._observe("csrf_token", _token))
        submit("bootstrap:stream_id", self._observe("stream_id", _stream_id))


__all__ = [
    "SessionBootstrapper",
    "extract_csrf_token",
    "extract_stream_id",
    "parse_landing",
]
