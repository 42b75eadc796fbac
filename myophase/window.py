"""Sliding-window maximum of means over EMG channels.

For every channel the engine finds the contiguous window of
``window_size`` samples whose arithmetic mean is largest.  Channels are
independent and are processed by a small thread pool; results come back
in channel order whatever the completion order.

Times in :class:`~myophase.schema.WindowResult` are in the scaled domain
of the stream; :mod:`myophase.export` divides the scaling factor out.

Functions
---------
max_mean
    Best window of every channel of an EMG stream.
channel_max_mean
    Best window of a single value sequence.
select_range
    Sample index bounds of an optional time sub-range.

Classes
-------
CancellationToken
    Per-request cancellation flag shared by the workers.
"""

import logging
import queue
import threading
import time
from typing import List, Optional, Sequence, Tuple

from .backpressure import NullBackpressure, default_worker_count
from .errors import InputValidationError, InsufficientDataError, OperationCancelledError
from .numeric import scale
from .progress import ProgressCallback, ProgressTracker
from .schema import EMGStream, WindowResult, range_indices

logger = logging.getLogger(__name__)

_CANCEL_CHECK_EVERY = 4096


class CancellationToken(threading.Event):
    """Event that also remembers why it was set."""

    def __init__(self):
        super().__init__()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self.is_set():
            self.reason = reason
        self.set()

    @property
    def cancelled(self) -> bool:
        return self.is_set()


def select_range(
    times: Sequence[float],
    start_range: float = 0.0,
    end_range: float = 0.0,
    scaling_factor: int = 0,
) -> Tuple[int, int]:
    """Inclusive sample indices covering ``[start_range, end_range]``.

    The bounds are given in seconds and scaled by ``scaling_factor`` to
    match the stream.  ``end_range == 0`` selects up to the last sample.
    """
    if len(times) == 0:
        raise InsufficientDataError("stream has no samples", field="time")
    if end_range and start_range > end_range:
        raise InputValidationError(
            f"start range {start_range} is after end range {end_range}", field="range"
        )
    lo = scale(start_range, scaling_factor)
    hi = scale(end_range, scaling_factor) if end_range else float(times[-1])
    if lo > hi:
        raise InsufficientDataError(f"no samples after {start_range}s", field="range")
    return range_indices(times, lo, hi)


def channel_max_mean(
    values: Sequence[float],
    window_size: int,
    cancel: Optional[threading.Event] = None,
) -> Tuple[int, float]:
    """Start offset and mean of the best ``window_size`` window in ``values``.

    The window sum is updated incrementally; ties keep the earliest
    window.
    """
    values = list(values)
    n = len(values)
    if window_size < 1:
        raise InputValidationError(f"window size must be >= 1, got {window_size}", field="window_size")
    if n < window_size:
        raise InsufficientDataError(
            f"{n} samples available, window needs {window_size}", field="window_size"
        )

    total = sum(values[:window_size])
    best_mean = total / window_size
    best_start = 0
    for i in range(1, n - window_size + 1):
        if cancel is not None and i % _CANCEL_CHECK_EVERY == 0 and cancel.is_set():
            raise OperationCancelledError("max-mean computation cancelled")
        total += values[i + window_size - 1] - values[i - 1]
        mean = total / window_size
        if mean > best_mean:
            best_mean = mean
            best_start = i
    return best_start, best_mean


def max_mean(
    stream: EMGStream,
    window_size: int,
    start_range: float = 0.0,
    end_range: float = 0.0,
    backpressure=None,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancellationToken] = None,
    max_workers: Optional[int] = None,
) -> List[WindowResult]:
    """Best ``window_size``-sample window of every channel.

    Parameters
    ----------
    stream : EMGStream
        Parsed EMG stream (scaled).
    window_size : int
        Window width in samples.
    start_range, end_range : float
        Optional sub-range in seconds; ``end_range == 0`` means up to the
        end of the stream.
    backpressure : BackpressureController, optional
        Admission controller; defaults to :class:`NullBackpressure`.
    progress : callable, optional
        Called with a :class:`~myophase.progress.ProgressInfo` after each
        channel.
    cancel : CancellationToken, optional
        Set by the caller to abort; set internally on the first failure.
    max_workers : int, optional
        Upper bound on worker threads (default ``min(cpu, 16)``).

    Returns
    -------
    list of WindowResult
        One entry per channel, in channel order.

    Raises
    ------
    InputValidationError
        If ``window_size < 1`` or the range is inverted.
    InsufficientDataError
        If the selected range holds fewer than ``window_size`` samples.
    OperationCancelledError
        If ``cancel`` was set before every channel finished.
    """
    if window_size < 1:
        raise InputValidationError(f"window size must be >= 1, got {window_size}", field="window_size")

    first, last = select_range(stream.time, start_range, end_range, stream.scaling_factor)
    available = last - first + 1
    if available < window_size:
        raise InsufficientDataError(
            f"{available} samples in range, window needs {window_size}",
            field="window_size", available=available,
        )

    n_ch = stream.n_channels
    controller = backpressure if backpressure is not None else NullBackpressure()
    n_workers = max(1, min(n_ch, controller.optimal_worker_count(),
                           max_workers or default_worker_count()))
    cancel = cancel if cancel is not None else CancellationToken()
    tracker = ProgressTracker(n_ch, progress)

    jobs: "queue.Queue[int]" = queue.Queue(maxsize=n_ch)
    for ch in range(n_ch):
        jobs.put(ch)

    results: List[Optional[WindowResult]] = [None] * n_ch
    lock = threading.Lock()
    failure: List[BaseException] = []

    logger.info(
        f"Max-mean over {n_ch} channels, window {window_size}, "
        f"samples {first}-{last}, {n_workers} workers"
    )
    t0 = time.monotonic()

    def run_job(ch: int) -> None:
        controller.await_admission(cancel)
        controller.record_start()
        try:
            segment = stream.values[first:last + 1, ch]
            offset, mean = channel_max_mean(segment, window_size, cancel)
            start = first + offset
            result = WindowResult(
                channel_index=ch + 1,
                start_time=float(stream.time[start]),
                end_time=float(stream.time[start + window_size - 1]),
                max_mean=mean,
                channel_name=stream.channels[ch],
            )
        finally:
            controller.record_complete()
        if cancel.is_set():
            return
        results[ch] = result
        tracker.advance(f"channel {stream.channels[ch]} done", ch + 1, stream.channels[ch])

    def worker() -> None:
        while not cancel.is_set():
            try:
                ch = jobs.get_nowait()
            except queue.Empty:
                return
            try:
                run_job(ch)
            except Exception as exc:
                with lock:
                    if not failure and not cancel.is_set():
                        failure.append(exc)
                        cancel.cancel(f"channel {ch + 1} failed: {exc}")
                return

    threads = [threading.Thread(target=worker, name=f"maxmean-{i}", daemon=True)
               for i in range(n_workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    if failure:
        raise failure[0]
    if any(r is None for r in results):
        raise OperationCancelledError(
            f"max-mean cancelled: {cancel.reason or 'by caller'}", reason=cancel.reason
        )

    logger.info(f"Max-mean finished in {time.monotonic() - t0:.3f}s")
    return results
