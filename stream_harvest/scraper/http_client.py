from __future__ import annotations

import urllib.parse
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol

import requests

from . import config
from .error_codes import ErrorCode, HarvestError, classify_http_status
from .logging_utils import _scraper_event


@dataclass
class FetchResponse:
    url: str
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value or ""
        return ""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class Transport(Protocol):
    def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchResponse:
        ...


def _redact_url(url: str) -> str:
    try:
        parsed = urllib.parse.urlparse(url)
        return urllib.parse.urlunparse(parsed._replace(query=""))
    except Exception:
        return url


class HttpTransport:
    """``requests``-backed GET with the harvester's default headers.

    Connection problems, timeouts and HTTP error statuses are all raised as
    ``HarvestError`` with a transport error code so the retry controller can
    account for them.
    """

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self._session = session or requests.Session()
        self._session.headers.update(config.COMMON_HEADERS)
        self._timeout = timeout or config.REQUEST_TIMEOUT_SECONDS

    def get(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchResponse:
        status: Optional[int] = None
        try:
            resp = self._session.get(url, headers=dict(headers or {}), timeout=self._timeout)
            status = resp.status_code
            resp.raise_for_status()
        except (requests.Timeout, requests.ConnectionError) as exc:
            _scraper_event(
                "http",
                phase="get",
                url=_redact_url(url),
                status="error",
                error_code=ErrorCode.NETWORK,
            )
            raise HarvestError(ErrorCode.NETWORK, f"GET {url} failed: {exc}") from exc
        except requests.HTTPError as exc:
            status = getattr(exc.response, "status_code", status)
            error_code = classify_http_status(status)
            _scraper_event(
                "http",
                phase="get",
                url=_redact_url(url),
                status="error",
                http_status=status,
                error_code=error_code,
            )
            raise HarvestError(error_code, f"GET {url} returned HTTP {status}", http_status=status) from exc
        except requests.RequestException as exc:
            raise HarvestError(ErrorCode.NETWORK, f"GET {url} failed: {exc}") from exc

        return FetchResponse(
            url=url,
            status_code=resp.status_code,
            headers=dict(resp.headers),
            body=resp.content,
        )

    def close(self) -> None:
        self._session.close()


__all__ = ["FetchResponse", "HttpTransport", "Transport"]
