from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["cli", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments (clamping the dispatcher parallelism) are logged but
    do not raise.
    """

    if config.REQUEST_DELAY_MS < 0:
        _raise_config_error(
            "REQUEST_DELAY_MS must be non-negative.",
            entrypoint=entrypoint,
            error="request_delay_invalid",
        )

    if config.RETRY_BUDGET < config.UNLIMITED_RETRIES:
        _raise_config_error(
            f"RETRY_BUDGET must be >= 0, or {config.UNLIMITED_RETRIES} for unlimited retries.",
            entrypoint=entrypoint,
            error="retry_budget_invalid",
        )

    if config.MAX_PARALLEL_REQUESTS < 1:
        adjusted = 1
        _scraper_event(
            "state",
            phase="config",
            context="runtime_validation",
            kind="config_adjustment",
            field="MAX_PARALLEL_REQUESTS",
            value=config.MAX_PARALLEL_REQUESTS,
            adjusted=adjusted,
            entrypoint=entrypoint,
        )
        log_line("[CONFIG] MAX_PARALLEL_REQUESTS < 1; clamping to 1.")
        config.MAX_PARALLEL_REQUESTS = adjusted

    timeout_fields = [
        ("REQUEST_TIMEOUT_SECONDS", config.REQUEST_TIMEOUT_SECONDS),
        ("READINESS_TIMEOUT_SECONDS", config.READINESS_TIMEOUT_SECONDS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )


__all__ = ["validate_runtime_config", "Entrypoint"]
