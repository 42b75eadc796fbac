"""Per-channel statistics over landmark intervals and phase buckets.

Functions
---------
interval_stats
    Mean and maximum of every channel of an already sliced stream.
phase_buckets
    Max and mean per channel inside each of several consecutive phases.
parse_phases
    Turn phase boundary strings into consecutive scaled intervals.
"""

import logging
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .constants import DEFAULT_PHASE_LABELS
from .errors import InputValidationError, InsufficientDataError, ParseError
from .numeric import parse_number
from .schema import EMGStream, PhaseAnalysis, PhaseBucketResult, Stats, TimeRange

logger = logging.getLogger(__name__)

Interval = Union[TimeRange, Tuple[float, float]]


def interval_stats(
    stream: EMGStream,
    subject: str,
    start_phase: str,
    end_phase: str,
    start_time: float,
    end_time: float,
) -> Stats:
    """Mean and maximum of each channel over ``stream``.

    ``stream`` is expected to be restricted to ``[start_time, end_time]``
    already (both ends inclusive).  A channel without samples reports 0
    for both values.
    """
    means, maxes = {}, {}
    for k, name in enumerate(stream.channels):
        column = np.asarray(stream.values[:, k])
        if column.size == 0:
            means[name] = 0.0
            maxes[name] = 0.0
            continue
        means[name] = float(column.sum() / column.size)
        maxes[name] = float(column.max())

    return Stats(
        subject=subject,
        start_phase=start_phase,
        end_phase=end_phase,
        start_time=start_time,
        end_time=end_time,
        channels=list(stream.channels),
        means=means,
        maxes=maxes,
        scaling_factor=stream.scaling_factor,
    )


def _bounds(interval: Interval) -> Tuple[float, float]:
    if isinstance(interval, TimeRange):
        return interval.start, interval.end
    start, end = interval
    return start, end


def phase_buckets(
    stream: EMGStream,
    intervals: Sequence[Interval],
    labels: Optional[Sequence[str]] = None,
) -> PhaseAnalysis:
    """Aggregate samples strictly inside each interval.

    A sample at time ``t`` belongs to interval ``(start, end)`` only when
    ``start < t < end``, so samples on a boundary belong to no phase.
    Channels without samples in a phase are reported as ``None``.  The
    time of each channel's maximum over the whole stream is reported as
    well (earliest occurrence).

    Raises
    ------
    InsufficientDataError
        If the stream is empty.
    InputValidationError
        If the number of intervals differs from the number of labels.
    """
    labels = list(labels) if labels is not None else list(DEFAULT_PHASE_LABELS)
    if stream.n_samples == 0:
        raise InsufficientDataError("stream has no samples", field="time")
    if len(intervals) != len(labels):
        raise InputValidationError(
            f"{len(intervals)} phases but {len(labels)} phase labels",
            field="phase_labels",
        )

    time = np.asarray(stream.time)
    values = np.asarray(stream.values)
    logger.info(
        f"Phase analysis: {len(labels)} phases, {stream.n_samples} samples, "
        f"{stream.n_channels} channels"
    )

    phases: List[PhaseBucketResult] = []
    for label, interval in zip(labels, intervals):
        start, end = _bounds(interval)
        mask = (time > start) & (time < end)
        if mask.any():
            subset = values[mask]
            maxes = [float(v) for v in subset.max(axis=0)]
            means = [float(v) for v in subset.sum(axis=0) / subset.shape[0]]
        else:
            maxes = [None] * stream.n_channels
            means = [None] * stream.n_channels
        phases.append(PhaseBucketResult(label=label, maxes=maxes, means=means))

    max_times = [float(time[int(np.argmax(values[:, k]))]) for k in range(stream.n_channels)]

    return PhaseAnalysis(
        channels=list(stream.channels),
        phases=phases,
        max_times=max_times,
        scaling_factor=stream.scaling_factor,
    )


def parse_phases(
    points: Sequence[str],
    scaling_factor: int,
    labels: Optional[Sequence[str]] = None,
) -> List[TimeRange]:
    """Consecutive intervals ``[p0, p1], [p1, p2], ...`` from boundary strings.

    One more point than there are labels is required (five for the four
    default phases).
    """
    labels = list(labels) if labels is not None else list(DEFAULT_PHASE_LABELS)
    needed = len(labels) + 1
    if len(points) < needed:
        raise InputValidationError(
            f"need at least {needed} time points for {len(labels)} phases, got {len(points)}",
            field="phases",
        )
    values = []
    for p in points:
        try:
            values.append(parse_number(p, scaling_factor))
        except ParseError as e:
            raise ParseError(f"cannot parse phase time point {p!r}", cause=e, field="phases") from e

    out = []
    for i in range(len(labels)):
        if values[i] > values[i + 1]:
            raise InputValidationError(
                f"phase time points must not decrease ({points[i]} > {points[i + 1]})",
                field="phases",
            )
        out.append(TimeRange(values[i], values[i + 1]))
    return out
