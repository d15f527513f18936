from __future__ import annotations

"""Centralised error code taxonomy for harvest failures.

Codes are included in structured logs and in the run telemetry so that an
aborted harvest can be explained after the fact. Only the transport codes
are retried; every other code ends the run.
"""


class ErrorCode:
    NETWORK = "network_error"
    HTTP_4XX = "http_4xx"
    HTTP_5XX = "http_5xx"
    HTTP_429 = "http_429_rate_limited"
    DECODE = "decode_error"
    PROTOCOL = "protocol_error"
    AUTH_MATERIAL = "auth_material_missing"
    TIMESTAMP = "timestamp_parse_error"
    RETRY_EXHAUSTED = "retry_exhausted"
    STALLED = "stalled"
    INTERNAL = "internal_error"


TRANSIENT_ERROR_CODES = {
    ErrorCode.NETWORK,
    ErrorCode.HTTP_4XX,
    ErrorCode.HTTP_5XX,
    ErrorCode.HTTP_429,
}


class HarvestError(Exception):
    def __init__(self, error_code: str, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.http_status = http_status

    @property
    def is_transient(self) -> bool:
        return self.error_code in TRANSIENT_ERROR_CODES

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


def classify_http_status(status: int | None) -> str:
    if status is None:
        return ErrorCode.INTERNAL
    if status == 429:
        return ErrorCode.HTTP_429
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.INTERNAL


__all__ = ["ErrorCode", "HarvestError", "TRANSIENT_ERROR_CODES", "classify_http_status"]
