"""Memory-aware admission control for the window engine workers.

The controller samples the resident memory of the current process
(``psutil``) against a configured budget and scales the useful number of
workers down as the budget fills up:

- below ``memory_threshold`` (0.8): all workers
- up to ``throttle_threshold`` (0.9): half of them
- at or above it: a quarter, at least one

Admission is advisory: :meth:`BackpressureController.await_admission`
delays a job while memory stays above the throttle threshold but never
drops it.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

import psutil

from .constants import MAX_WORKERS

logger = logging.getLogger(__name__)


def default_worker_count() -> int:
    return max(1, min(os.cpu_count() or 1, MAX_WORKERS))


def process_memory_bytes() -> int:
    """Resident set size of the current process."""
    return psutil.Process().memory_info().rss


@dataclass
class BackpressureConfig:
    max_memory_mb: float = 1024.0
    max_workers: int = field(default_factory=default_worker_count)
    memory_threshold: float = 0.8
    throttle_threshold: float = 0.9
    check_interval_s: float = 0.1
    max_wait_s: float = 5.0

    @classmethod
    def from_dict(cls, cfg: dict) -> "BackpressureConfig":
        known = {k: v for k, v in cfg.items() if k in cls.__dataclass_fields__ and v is not None}
        return cls(**known)


@dataclass
class BackpressureStats:
    peak_memory_bytes: int = 0
    average_workers: float = 0.0
    throttle_events: int = 0
    wait_events: int = 0
    total_jobs: int = 0
    total_processing_time_s: float = 0.0
    throughput_jobs_per_s: float = 0.0


class BackpressureController:
    """Adaptive worker sizing and job admission driven by memory pressure."""

    def __init__(
        self,
        config: Optional[BackpressureConfig] = None,
        memory_probe: Optional[Callable[[], int]] = None,
    ):
        self.config = config or BackpressureConfig()
        self._probe = memory_probe or process_memory_bytes
        self._lock = threading.Lock()
        self._stats = BackpressureStats()
        self._active_jobs = 0
        self._worker_samples = 0
        self._worker_sum = 0.0
        self._started = time.monotonic()

    def _sample(self) -> float:
        used = self._probe()
        with self._lock:
            if used > self._stats.peak_memory_bytes:
                self._stats.peak_memory_bytes = used
        return used / (self.config.max_memory_mb * 1024 * 1024)

    def memory_ratio(self) -> float:
        return self._sample()

    def optimal_worker_count(self) -> int:
        ratio = self._sample()
        max_workers = self.config.max_workers
        if ratio >= self.config.throttle_threshold:
            workers = max(1, int(max_workers * 0.25))
        elif ratio >= self.config.memory_threshold:
            workers = max(1, int(max_workers * 0.5))
        else:
            workers = max_workers
        with self._lock:
            if ratio >= self.config.throttle_threshold:
                self._stats.throttle_events += 1
            self._worker_sum += workers
            self._worker_samples += 1
            self._stats.average_workers = self._worker_sum / self._worker_samples
        if workers < max_workers:
            logger.info(f"Memory at {ratio:.0%} of budget, using {workers}/{max_workers} workers")
        return workers

    def await_admission(self, cancel: Optional[threading.Event] = None) -> float:
        """Block while memory is at or above the throttle threshold.

        Returns the number of seconds spent waiting.  Waiting stops early
        when ``cancel`` is set, and after ``max_wait_s`` the job is
        admitted anyway.
        """
        waited = 0.0
        while self._sample() >= self.config.throttle_threshold:
            if cancel is not None and cancel.is_set():
                break
            if waited >= self.config.max_wait_s:
                logger.warning(
                    f"Memory still above {self.config.throttle_threshold:.0%} after "
                    f"{waited:.1f}s, admitting job"
                )
                break
            if cancel is not None:
                cancel.wait(self.config.check_interval_s)
            else:
                time.sleep(self.config.check_interval_s)
            waited += self.config.check_interval_s
        if waited:
            with self._lock:
                self._stats.wait_events += 1
        return waited

    def record_start(self) -> None:
        with self._lock:
            self._active_jobs += 1
            self._stats.total_jobs += 1

    def record_complete(self) -> None:
        with self._lock:
            if self._active_jobs > 0:
                self._active_jobs -= 1

    @property
    def active_jobs(self) -> int:
        with self._lock:
            return self._active_jobs

    def stats(self) -> BackpressureStats:
        with self._lock:
            elapsed = time.monotonic() - self._started
            out = replace(self._stats, total_processing_time_s=elapsed)
        if elapsed > 0:
            out.throughput_jobs_per_s = out.total_jobs / elapsed
        return out

    def reset(self) -> None:
        with self._lock:
            self._stats = BackpressureStats()
            self._active_jobs = 0
            self._worker_samples = 0
            self._worker_sum = 0.0
            self._started = time.monotonic()


class NullBackpressure:
    """Admission controller that never throttles."""

    def __init__(self, max_workers: Optional[int] = None):
        self.max_workers = max_workers or default_worker_count()

    def optimal_worker_count(self) -> int:
        return self.max_workers

    def await_admission(self, cancel: Optional[threading.Event] = None) -> float:
        return 0.0

    def record_start(self) -> None:
        pass

    def record_complete(self) -> None:
        pass

    def stats(self) -> BackpressureStats:
        return BackpressureStats()
