"""Helpers for persisting and restoring per-symbol cursor checkpoints."""

from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path
from typing import Dict, Optional

from . import config
from .utils import log_line

_LOCK = threading.Lock()


def _checkpoint_path() -> Path:
    return Path(os.environ.get("HARVEST_CHECKPOINT_PATH", str(config.CHECKPOINT_PATH)))


def load_checkpoints() -> Dict[str, Dict]:
    """Load every persisted checkpoint, keyed by symbol."""

    path = _checkpoint_path()
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        log_line(f"[STATE] Ignoring unreadable checkpoint file {path}: {exc}")
        return {}
    return data if isinstance(data, dict) else {}


def load_checkpoint(symbol: str) -> Optional[int]:
    """Return the last emitted cursor for ``symbol``, if any."""

    entry = load_checkpoints().get(symbol.upper()) or {}
    cursor = entry.get("cursor")
    if isinstance(cursor, int) and cursor > 0:
        return cursor
    return None


def save_checkpoint(symbol: str, cursor: int, **extra) -> None:
    """Persist ``cursor`` as the resume point for ``symbol``."""

    path = _checkpoint_path()
    with _LOCK:
        path.parent.mkdir(parents=True, exist_ok=True)
        state = load_checkpoints()
        entry = state.get(symbol.upper()) or {}
        previous = entry.get("cursor")
        # Pages may finish out of order; keep the oldest cursor.
        if isinstance(previous, int) and 0 < previous < cursor:
            return
        entry.update(extra)
        entry["cursor"] = cursor
        entry["saved_at_ts"] = time.time()
        state[symbol.upper()] = entry
        tmp_path = path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(state, handle, ensure_ascii=False, indent=2)
        tmp_path.replace(path)


def clear_checkpoint(symbol: str) -> None:
    """Remove the checkpoint for ``symbol`` if present."""

    path = _checkpoint_path()
    with _LOCK:
        state = load_checkpoints()
        if state.pop(symbol.upper(), None) is None:
            return
        with path.open("w", encoding="utf-8") as handle:
            json.dump(state, handle, ensure_ascii=False, indent=2)


__all__ = [
    "load_checkpoint",
    "load_checkpoints",
    "save_checkpoint",
    "clear_checkpoint",
]
