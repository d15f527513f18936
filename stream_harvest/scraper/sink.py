"""Append-only tab-delimited sink for harvested messages."""
from __future__ import annotations

import csv
import threading
from pathlib import Path
from typing import IO, Iterable, Optional

from . import config
from .models import Message, format_timestamp
from .utils import sanitize_body


def message_row(message: Message) -> list[str]:
    return [
        str(message.id),
        format_timestamp(message.created_at),
        sanitize_body(message.body),
        message.sentiment or config.NEUTRAL_SENTIMENT,
        str(int(message.likes)),
    ]


class TsvSink:
    """Appends one page of rows at a time under a single lock.

    The header row is written only when the destination is new or empty, so
    re-running against an existing file keeps appending data rows.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._handle: Optional[IO[str]] = None
        self._writer = None
        self.rows_written = 0

    def open(self) -> "TsvSink":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.path.open("a", newline="", encoding="utf-8")
        self._writer = csv.writer(self._handle, delimiter="\t", lineterminator="\n")
        if self.path.stat().st_size == 0:
            self._writer.writerow(config.OUTPUT_HEADER)
            self._handle.flush()
        return self

    def write_page(self, messages: Iterable[Message]) -> int:
        """Write every message of one page, in order, then flush."""

        if self._writer is None or self._handle is None:
            raise RuntimeError("sink is not open")

        with self._lock:
            count = 0
            for message in messages:
                self._writer.writerow(message_row(message))
                count += 1
            self._handle.flush()
            self.rows_written += count
            return count

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.flush()
                self._handle.close()
                self._handle = None
                self._writer = None

    def __enter__(self) -> "TsvSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["TsvSink", "message_row"]
