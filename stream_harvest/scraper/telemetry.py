"""Run telemetry helpers."""

from __future__ import annotations

import json
import os
import threading
import time
import uuid
from collections import defaultdict
from typing import Any, Dict, Optional

from . import config


def _ts() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


class RunTelemetry:
    """Collect per-run counters and write them as a JSON summary."""

    def __init__(self, symbol: str) -> None:
        self.run_id = f"{_ts()}_{uuid.uuid4().hex[:8]}"
        self.symbol = symbol
        self.started_at = time.time()
        self.summary: Dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def bump(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self.summary[key] += amount

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self.summary)

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> str:
        runs_dir = os.environ.get("RUNS_DIR", str(config.RUNS_DIR))
        os.makedirs(runs_dir, exist_ok=True)
        payload = {
            "run_id": self.run_id,
            "symbol": self.symbol,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "summary": self.snapshot(),
            **(extra or {}),
        }
        path = os.path.join(runs_dir, f"run_{self.symbol}_{self.run_id}.json")
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        return path


__all__ = ["RunTelemetry"]
