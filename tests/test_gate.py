from __future__ import annotations

import threading

import pytest

from stream_harvest.scraper.error_codes import ErrorCode, HarvestError
from stream_harvest.scraper.gate import TERMINAL_EMPTY_PAGE, TERMINAL_TIME_BOUNDARY, CompletionGate


def test_gate_holds_bootstrap_unit_until_first_page() -> None:
    gate = CompletionGate()
    assert gate.count == 1

    gate.signal_terminal(TERMINAL_EMPTY_PAGE)
    with pytest.raises(HarvestError) as excinfo:
        gate.wait(timeout=0.05)
    assert excinfo.value.error_code == ErrorCode.STALLED

    gate.release()
    assert gate.wait(timeout=1) == TERMINAL_EMPTY_PAGE


def test_gate_waits_for_in_flight_pages_after_terminal() -> None:
    gate = CompletionGate()
    gate.acquire()
    gate.release()
    gate.signal_terminal(TERMINAL_TIME_BOUNDARY)
    finished = threading.Event()
    result: list[str] = []

    def _waiter() -> None:
        result.append(gate.wait(timeout=5))
        finished.set()

    thread = threading.Thread(target=_waiter)
    thread.start()
    assert not finished.wait(timeout=0.2)

    gate.release()
    assert finished.wait(timeout=5)
    thread.join(timeout=5)
    assert result == [TERMINAL_TIME_BOUNDARY]


def test_first_terminal_reason_wins() -> None:
    gate = CompletionGate(initial=0)
    gate.signal_terminal(TERMINAL_TIME_BOUNDARY)
    gate.signal_terminal(TERMINAL_EMPTY_PAGE)

    assert gate.is_closed
    assert gate.wait(timeout=1) == TERMINAL_TIME_BOUNDARY


def test_fail_wakes_waiter_immediately() -> None:
    gate = CompletionGate()
    gate.acquire()
    error = HarvestError(ErrorCode.DECODE, "bad payload")
    gate.fail(error)

    with pytest.raises(HarvestError) as excinfo:
        gate.wait(timeout=1)

    assert excinfo.value is error
    assert gate.is_closed


def test_drained_without_terminal_is_stalled() -> None:
    gate = CompletionGate()
    gate.release()

    with pytest.raises(HarvestError) as excinfo:
        gate.wait(timeout=1)

    assert excinfo.value.error_code == ErrorCode.STALLED


def test_release_below_zero_is_an_error() -> None:
    gate = CompletionGate(initial=0)

    with pytest.raises(HarvestError):
        gate.release()


def test_stall_names_the_ignored_response() -> None:
    gate = CompletionGate()
    gate.note_ignored("https://stocktwits.com/streams/poll?max=250", "text/html")
    gate.release()

    with pytest.raises(HarvestError) as excinfo:
        gate.wait(timeout=1)

    assert excinfo.value.error_code == ErrorCode.STALLED
    assert "https://stocktwits.com/streams/poll?max=250" in str(excinfo.value)
    assert "text/html" in str(excinfo.value)
