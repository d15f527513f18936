"""Cursor-paginated harvester for a symbol's message stream.

Workflow:

- GET https://stocktwits.com/symbol/<SYMBOL> and hand the markup to the
  bootstrapper, whose two observers publish the csrf token and stream id.
- Block until the session is ready, then dispatch the first stream request
  (newest page, or the page behind a resume cursor).
- For every JSON page: decode, move the cursor back to the page's ``max``,
  dispatch the next-older request, then append the page to ``<SYMBOL>.csv``.
- Stop on an empty page or once a page reaches past the boundary date.

Transport failures are resubmitted through the shared retry budget; every
other failure aborts the run. This is wired to the CLI via main().
"""

from __future__ import annotations

import argparse
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from . import config
from .bootstrap import SessionBootstrapper
from .config_validation import validate_runtime_config
from .dispatcher import RequestDispatcher
from .error_codes import ErrorCode, HarvestError
from .gate import CompletionGate
from .http_client import FetchResponse, HttpTransport, Transport
from .logging_utils import _scraper_event
from .models import Cursor, parse_boundary_date
from .poller import PagePoller, PageRequest, landing_request
from .processor import STATUS_IGNORED, PageProcessor
from .retry_policy import RetryController
from .session import HarvestSession
from .sink import TsvSink
from .state import clear_checkpoint, load_checkpoint, save_checkpoint
from .telemetry import RunTelemetry
from .utils import ensure_dirs, log_line, setup_run_logger


@dataclass
class HarvestOptions:
    symbol: str = config.DEFAULT_SYMBOL
    boundary_date: str = config.DEFAULT_BOUNDARY_DATE
    resume_cursor: int = 0
    delay_ms: int = config.REQUEST_DELAY_MS
    retry_budget: int = config.RETRY_BUDGET
    parallelism: int = config.MAX_PARALLEL_REQUESTS
    output_dir: Optional[Path] = None
    checkpoint: bool = True

    def __post_init__(self) -> None:
        self.symbol = self.symbol.strip().upper()

    @property
    def output_path(self) -> Path:
        return config.output_path_for(self.symbol, self.output_dir)


@dataclass
class HarvestResult:
    symbol: str
    terminal_reason: str
    output_path: Path
    pages: int
    messages: int
    cursor: int


class Harvester:
    """Owns one harvest run: session, cursor, retry budget, gate and sink."""

    def __init__(
        self,
        options: HarvestOptions,
        *,
        transport: Optional[Transport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.options = options
        self.boundary = parse_boundary_date(options.boundary_date)
        self.session = HarvestSession(
            symbol=options.symbol,
            retry_budget=options.retry_budget,
            delay_ms=options.delay_ms,
        )
        self.transport: Transport = transport or HttpTransport()
        self.retry = RetryController(self.session.retry_budget)
        self.gate = CompletionGate(initial=1)
        self.cursor = Cursor(options.resume_cursor)
        self.poller = PagePoller(self.session, self.transport, sleep=sleep)
        self.bootstrapper = SessionBootstrapper(self.session)
        self.sink = TsvSink(options.output_path)
        self.processor = PageProcessor(
            boundary=self.boundary,
            cursor=self.cursor,
            sink=self.sink,
            next_request=self.poller.next_request,
        )
        self.telemetry = RunTelemetry(options.symbol)
        self.dispatcher: Optional[RequestDispatcher] = None

    def _fetch_with_retry(
        self,
        request: PageRequest,
        fetch: Callable[[PageRequest], FetchResponse],
        *,
        abandon_when_closed: bool = True,
    ) -> Optional[FetchResponse]:
        while True:
            if abandon_when_closed and self.gate.is_closed:
                return None
            self.telemetry.bump("requests")
            try:
                response = fetch(request)
            except HarvestError as exc:
                request = self.retry.on_failure(request, exc)
                self.telemetry.bump("retries")
                continue
            self.retry.record_success()
            return response

    def _dispatch(self, request: PageRequest, *, inherit_unit: bool = False) -> None:
        if self.gate.is_closed:
            if inherit_unit:
                self.gate.release()
            return
        if not inherit_unit:
            self.gate.acquire()
        assert self.dispatcher is not None
        self.dispatcher.submit(f"page:{request.kind}", lambda: self._handle_page(request))

    def _handle_page(self, request: PageRequest) -> None:
        try:
            response = self._fetch_with_retry(request, self.poller.poll)
            if response is None or self.gate.is_closed:
                return

            outcome = self.processor.evaluate(response)
            if outcome.status == STATUS_IGNORED:
                self.telemetry.bump("ignored_responses")
                log_line(
                    f"[RUN][WARN] Ignored non-JSON page response from {response.url} "
                    f"(content-type {response.content_type or 'none'!r}); no further page is requested"
                )
                self.gate.note_ignored(response.url, response.content_type)
                return

            if outcome.next_request is not None:
                self._dispatch(outcome.next_request)

            if outcome.has_records:
                written = self.processor.emit(outcome.page)
                self.telemetry.bump("pages")
                self.telemetry.bump("messages", written)
                if self.options.checkpoint:
                    save_checkpoint(self.options.symbol, outcome.page.max)

            if outcome.terminal:
                self.gate.signal_terminal(outcome.status)
        except HarvestError as exc:
            self.gate.fail(exc)
        except Exception as exc:  # noqa: BLE001
            self.gate.fail(HarvestError(ErrorCode.INTERNAL, f"Page handler crashed: {exc!r}"))
        finally:
            self.gate.release()

    def _on_worker_error(self, exc: BaseException) -> None:
        if isinstance(exc, HarvestError):
            self.gate.fail(exc)
        else:
            self.gate.fail(HarvestError(ErrorCode.INTERNAL, f"Worker crashed: {exc!r}"))

    def run(self) -> HarvestResult:
        opts = self.options
        log_line(
            f"[RUN] Harvesting {opts.symbol} back to {opts.boundary_date} "
            f"(resume_cursor={opts.resume_cursor or 'newest'}, delay={opts.delay_ms}ms, "
            f"retry={opts.retry_budget}, parallelism={opts.parallelism}) -> {opts.output_path}"
        )
        self.dispatcher = RequestDispatcher(opts.parallelism, on_error=self._on_worker_error)
        self.sink.open()
        outcome: dict = {}
        try:
            landing = self._fetch_with_retry(
                landing_request(opts.symbol),
                lambda req: self.transport.get(req.url),
                abandon_when_closed=False,
            )
            self.bootstrapper.bootstrap(landing, self.dispatcher.submit)

            first = self.poller.first_request(self.cursor.value)
            self._dispatch(first, inherit_unit=True)

            reason = self.gate.wait()
            outcome = {"status": "completed", "terminal_reason": reason}
            log_line(f"[RUN] Harvest of {opts.symbol} completed ({reason}).")
            return HarvestResult(
                symbol=opts.symbol,
                terminal_reason=reason,
                output_path=opts.output_path,
                pages=self.telemetry.snapshot().get("pages", 0),
                messages=self.sink.rows_written,
                cursor=self.cursor.value,
            )
        except HarvestError as exc:
            outcome = {"status": "failed", "error_code": exc.error_code, "error": str(exc)}
            raise
        finally:
            self.dispatcher.shutdown(wait=outcome.get("status") == "completed")
            self.sink.close()
            _scraper_event(
                "state",
                phase="dispatcher",
                kind="summary",
                peak_in_flight=self.dispatcher.peak_in_flight,
                submitted=self.dispatcher.submitted,
                max_parallel=self.dispatcher.max_workers,
            )
            try:
                self.telemetry.finalize(
                    {**outcome, "cursor": self.cursor.value, "total_retries": self.retry.total_retries}
                )
            except OSError as exc:
                log_line(f"[RUN][WARN] Unable to write run telemetry: {exc}")


def run_harvest(options: HarvestOptions, *, transport: Optional[Transport] = None) -> HarvestResult:
    """Run one harvest to completion; raises ``HarvestError`` on fatal failure."""

    return Harvester(options, transport=transport).run()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Harvest a symbol's message stream into a TSV file")
    parser.add_argument("--symbol", default=config.DEFAULT_SYMBOL, help="symbol to look for")
    parser.add_argument(
        "--date",
        default=config.DEFAULT_BOUNDARY_DATE,
        help="earliest date for data (YYYY-MM-DD)",
    )
    parser.add_argument("--id", type=int, default=0, help="restart from this max id")
    parser.add_argument(
        "--delay",
        type=int,
        default=config.REQUEST_DELAY_MS,
        help="delay in ms between requests",
    )
    parser.add_argument(
        "--retry",
        type=int,
        default=config.RETRY_BUDGET,
        help=f"retry a failed request this many times, {config.UNLIMITED_RETRIES} for unlimited",
    )
    parser.add_argument("--parallelism", type=int, default=config.MAX_PARALLEL_REQUESTS)
    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument(
        "--resume",
        action="store_true",
        help="continue from the saved checkpoint cursor when --id is not given",
    )
    parser.add_argument(
        "--reset-checkpoint",
        action="store_true",
        help="discard the saved checkpoint for --symbol before harvesting",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the harvest CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        parse_boundary_date(args.date)
    except ValueError:
        parser.error(f"--date must be YYYY-MM-DD, got {args.date!r}")

    config.REQUEST_DELAY_MS = args.delay
    config.RETRY_BUDGET = args.retry
    config.MAX_PARALLEL_REQUESTS = args.parallelism
    try:
        validate_runtime_config("cli")
    except ValueError as exc:
        parser.error(str(exc))

    ensure_dirs()
    setup_run_logger(args.symbol)

    if args.reset_checkpoint:
        clear_checkpoint(args.symbol)
        log_line(f"[RUN] Cleared checkpoint for {args.symbol.upper()}")

    resume_cursor = args.id
    if not resume_cursor and args.resume:
        resume_cursor = load_checkpoint(args.symbol) or 0
        if resume_cursor:
            log_line(f"[RUN] Resuming {args.symbol.upper()} from checkpoint cursor {resume_cursor}")

    options = HarvestOptions(
        symbol=args.symbol,
        boundary_date=args.date,
        resume_cursor=resume_cursor,
        delay_ms=config.REQUEST_DELAY_MS,
        retry_budget=config.RETRY_BUDGET,
        parallelism=config.MAX_PARALLEL_REQUESTS,
        output_dir=args.output_dir,
    )

    try:
        result = run_harvest(options)
    except HarvestError as exc:
        log_line(f"[RUN] Harvest aborted ({exc.error_code}): {exc}")
        return 1

    log_line(
        f"[RUN] Wrote {result.messages} messages from {result.pages} pages to {result.output_path} "
        f"(last cursor {result.cursor})"
    )
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())

__all__ = ["Harvester", "HarvestOptions", "HarvestResult", "main", "run_harvest"]
