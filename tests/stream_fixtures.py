"""Fake stream host used by the harvester tests."""
from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qs, urlparse

from stream_harvest.scraper.error_codes import HarvestError
from stream_harvest.scraper.http_client import FetchResponse

STREAM_ID = 686
TOKEN = "tok-123"

LANDING_HTML = f"""
<html>
  <head><meta name="csrf-token" content="{TOKEN}"></head>
  <body><ol class="stream-list" stream-id="{STREAM_ID}"></ol></body>
</html>
"""


def stamp(year: int, month: int, day: int, hour: int = 12) -> str:
    return datetime(year, month, day, hour, tzinfo=timezone.utc).strftime("%a, %d %b %Y %H:%M:%S -0000")


def message(message_id: int, created_at: str, *, body: str = "hi", sentiment: Optional[str] = None,
            likes: int = 0) -> Dict[str, Any]:
    return {
        "id": message_id,
        "body": body,
        "created_at": created_at,
        "sentiment": {"class": "", "name": sentiment} if sentiment else None,
        "total_likes": likes,
    }


def page_body(messages: List[Dict[str, Any]], *, since: int = 0, max_id: int = 0, more: bool = True) -> bytes:
    payload: Dict[str, Any] = {"more": more, "messages": messages}
    if since:
        payload["since"] = since
    if max_id:
        payload["max"] = max_id
    return json.dumps(payload).encode("utf-8")


def json_response(url: str, body: bytes) -> FetchResponse:
    return FetchResponse(url=url, status_code=200, headers={"Content-Type": "application/json"}, body=body)


class FakeTransport:
    """Serves the landing page plus stream pages keyed by ``max`` cursor.

    ``pages[None]`` is the newest page; ``pages[n]`` answers ``max=n``.
    ``failures`` maps a cursor key to the errors raised, one per call, before
    the page is served.
    """

    def __init__(
        self,
        pages: Dict[Optional[int], bytes],
        *,
        landing: str = LANDING_HTML,
        failures: Optional[Dict[Optional[int], List[HarvestError]]] = None,
        content_types: Optional[Dict[Optional[int], str]] = None,
    ) -> None:
        self.pages = pages
        self.landing = landing
        self.failures = {key: list(errors) for key, errors in (failures or {}).items()}
        self.content_types = content_types or {}
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchResponse:
        with self._lock:
            self.calls.append({"url": url, "headers": dict(headers or {})})
            if "/symbol/" in url:
                return FetchResponse(
                    url=url,
                    status_code=200,
                    headers={"Content-Type": "text/html; charset=utf-8"},
                    body=self.landing.encode("utf-8"),
                )

            query = parse_qs(urlparse(url).query)
            key: Optional[int] = int(query["max"][0]) if "max" in query else None
            pending = self.failures.get(key)
            if pending:
                raise pending.pop(0)

            content_type = self.content_types.get(key, "application/json; charset=utf-8")
            body = self.pages.get(key, page_body([]))
            return FetchResponse(url=url, status_code=200, headers={"Content-Type": content_type}, body=body)

    @property
    def stream_calls(self) -> List[Dict[str, Any]]:
        return [call for call in self.calls if "/streams/" in call["url"]]
