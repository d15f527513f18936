from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from .utils import log_line


def _render(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return repr(str(value))
    return repr(value)


def _scraper_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit one ``[SCRAPER][LABEL] key=value`` line for the harvest log.

    ``phase`` doubles as the label when no label is given; otherwise it is
    kept in the payload. Fields whose value is ``None`` are left out, so call
    sites can pass optional context (``http_status``, ``cursor``) unchanged.
    """

    try:
        event_label = label or (phase or "")
        if phase and label:
            fields.setdefault("phase", phase)
        payload = ", ".join(
            f"{key}={_render(value)}" for key, value in sorted(fields.items()) if value is not None
        )
        log_line(f"[SCRAPER][{event_label.upper()}] {payload}".rstrip())
    except Exception:
        # Logging must not break the harvest.
        return


__all__ = ["_scraper_event"]
