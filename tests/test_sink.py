from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from stream_harvest.scraper.models import Message
from stream_harvest.scraper.sink import TsvSink, message_row
from stream_harvest.scraper.utils import sanitize_body

HEADER = "Id\tCreatedAt\tBody\tSentiment\tLikes"


def _message(message_id: int, body: str = "hello", sentiment: str = "Bullish") -> Message:
    return Message(
        id=message_id,
        body=body,
        created_at=datetime(2020, 1, 5, 12, 0, tzinfo=timezone.utc),
        sentiment=sentiment,
        likes=3,
    )


def test_sanitize_body_flattens_tabs_and_newlines() -> None:
    assert sanitize_body("hello\tworld\nfoo") == "hello world\\nfoo"
    assert sanitize_body("a\r\nb\rc") == "a\\nb\\nc"
    assert sanitize_body(None) == ""


def test_message_row_renders_rfc3339_and_defaults() -> None:
    row = message_row(_message(7, body="x\ty", sentiment=""))

    assert row == ["7", "2020-01-05T12:00:00Z", "x y", "Neutral", "3"]


def test_sink_writes_header_once_across_runs(tmp_path: Path) -> None:
    path = tmp_path / "out" / "AAPL.csv"

    with TsvSink(path) as sink:
        assert sink.write_page([_message(3), _message(2)]) == 2

    with TsvSink(path) as sink:
        sink.write_page([_message(1)])

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == HEADER
    assert lines.count(HEADER) == 1
    assert [line.split("\t")[0] for line in lines[1:]] == ["3", "2", "1"]


def test_sink_writes_header_into_existing_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "TSLA.csv"
    path.touch()

    with TsvSink(path) as sink:
        sink.write_page([])

    assert path.read_text(encoding="utf-8").splitlines() == [HEADER]


def test_sink_keeps_each_record_on_one_line(tmp_path: Path) -> None:
    path = tmp_path / "AAPL.csv"

    with TsvSink(path) as sink:
        sink.write_page([_message(9, body="line one\nline two\tend")])
        assert sink.rows_written == 1

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert lines[1].split("\t") == ["9", "2020-01-05T12:00:00Z", "line one\\nline two end", "Bullish", "3"]
