"""Progress reporting for long-running per-channel computations."""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class ProgressInfo:
    current_step: int
    total_steps: int
    percentage: float
    status: str
    channel_index: int = 0
    channel_name: str = ""
    elapsed_s: float = 0.0
    estimated_s: Optional[float] = None


ProgressCallback = Callable[[ProgressInfo], None]


class ProgressTracker:
    """Thread-safe step counter forwarding updates to a callback.

    Updates closer together than ``min_interval_s`` are dropped, except
    the final one.
    """

    def __init__(self, total_steps: int, callback: Optional[ProgressCallback] = None,
                 min_interval_s: float = 0.0):
        self.total_steps = total_steps
        self.callback = callback
        self.min_interval_s = min_interval_s
        self.current_step = 0
        self._lock = threading.Lock()
        self._start = time.monotonic()
        self._last_update: Optional[float] = None

    def advance(self, status: str, channel_index: int = 0, channel_name: str = "") -> None:
        with self._lock:
            self.current_step += 1
            step = self.current_step
            now = time.monotonic()
            final = step >= self.total_steps
            if (not final and self._last_update is not None
                    and now - self._last_update < self.min_interval_s):
                return
            self._last_update = now
            elapsed = now - self._start
        if self.callback is None:
            return

        total = max(self.total_steps, 1)
        estimated = None
        if 0 < step < total:
            estimated = elapsed / step * (total - step)
        info = ProgressInfo(
            current_step=step,
            total_steps=self.total_steps,
            percentage=min(100.0, 100.0 * step / total),
            status=status,
            channel_index=channel_index,
            channel_name=channel_name,
            elapsed_s=elapsed,
            estimated_s=estimated,
        )
        self.callback(info)
