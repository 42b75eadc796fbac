"""In-memory data structures shared by every processing step.

Streams hold their samples in dense numpy arrays: one ``time`` (or
``index``) vector and a ``values`` matrix of shape
``(n_samples, n_channels)`` whose column order is the header order fixed
at parse time.  Arrays are frozen (read-only) once a stream is built.

Classes
-------
EMGStream
    1000 Hz EMG samples, time column in scaled seconds.
MotionStream
    250 Hz motion-capture frames addressed by 1-based index.
ForceStream
    1000 Hz force-plate samples decoded from an ANC file.
Manifest
    One subject row of the phase manifest.
Request
    Parameters of a phase-synchronized statistics request.
Stats
    Per-channel mean and maximum over a landmark interval.
WindowResult
    Best max-of-means window of one channel.
PhaseBucketResult, PhaseAnalysis
    Per-phase aggregation over consecutive intervals.
"""

from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional

import numpy as np
import pandas as pd

from .constants import (
    DEFAULT_SCALING_FACTOR,
    DEFAULT_TIME_PRECISION,
    LANDMARK_NAMES,
    MOTION_RATE_HZ,
)
from .errors import FileFormatError, InputValidationError, InsufficientDataError


def _frozen(values, dtype=float) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


def _frozen_matrix(values, n_rows: int, n_cols: int) -> np.ndarray:
    arr = np.array(values, dtype=float)
    if arr.size == 0:
        arr = np.zeros((n_rows, n_cols), dtype=float)
    elif arr.ndim == 1 and n_cols == 1:
        arr = arr.reshape(n_rows, 1)
    arr.setflags(write=False)
    return arr


def range_indices(times: np.ndarray, start: float, end: float):
    """Return ``(first, last)`` sample indices with ``start <= t <= end``.

    Raises
    ------
    InputValidationError
        If ``start > end``.
    InsufficientDataError
        If no sample falls inside the range.
    """
    if start > end:
        raise InputValidationError(
            f"start time {start} is after end time {end}", field="time_range"
        )
    first = int(np.searchsorted(times, start, side="left"))
    last = int(np.searchsorted(times, end, side="right")) - 1
    if first >= len(times) or last < 0 or first > last:
        raise InsufficientDataError(
            f"no samples between {start} and {end}", field="time_range"
        )
    return first, last


def _check_increasing(values: np.ndarray, what: str) -> None:
    if len(values) < 2:
        return
    bad = np.nonzero(np.diff(values) <= 0)[0]
    if len(bad):
        row = int(bad[0]) + 1
        raise FileFormatError(
            f"{what} is not strictly increasing at sample {row}", field=what, row=row
        )


def _check_channels(channels: List[str], values: np.ndarray, n: int, what: str) -> None:
    if not channels:
        raise FileFormatError(f"{what} has no channels", field="header")
    if len(set(channels)) != len(channels):
        dupes = sorted({c for c in channels if channels.count(c) > 1})
        raise FileFormatError(f"{what} has duplicate channel names: {dupes}", field="header")
    if values.shape != (n, len(channels)):
        raise FileFormatError(
            f"{what} values have shape {values.shape}, expected {(n, len(channels))}",
            field="values",
        )


# ── Streams ──────────────────────────────────────────────────────────────


@dataclass
class EMGStream:
    """EMG samples with a strictly increasing, scaled time column."""

    time: np.ndarray
    values: np.ndarray
    channels: List[str]
    time_column: str = "time"
    time_precision: int = DEFAULT_TIME_PRECISION
    scaling_factor: int = DEFAULT_SCALING_FACTOR

    def __post_init__(self):
        self.time = _frozen(self.time)
        self.channels = list(self.channels)
        self.values = _frozen_matrix(self.values, len(self.time), len(self.channels))

    @property
    def n_samples(self) -> int:
        return len(self.time)

    @property
    def n_channels(self) -> int:
        return len(self.channels)

    @property
    def headers(self) -> List[str]:
        return [self.time_column] + self.channels

    def channel(self, name: str) -> np.ndarray:
        try:
            return self.values[:, self.channels.index(name)]
        except ValueError:
            raise KeyError(f"Unknown channel: {name}") from None

    def validate(self) -> "EMGStream":
        if self.n_samples == 0:
            raise FileFormatError("EMG stream has no samples", field="time")
        _check_channels(self.channels, self.values, self.n_samples, "EMG stream")
        _check_increasing(self.time, "time")
        return self

    def time_slice(self, start: float, end: float) -> "EMGStream":
        """Samples with ``start <= time <= end`` (scaled seconds)."""
        first, last = range_indices(self.time, start, end)
        return EMGStream(
            time=self.time[first:last + 1],
            values=self.values[first:last + 1],
            channels=self.channels,
            time_column=self.time_column,
            time_precision=self.time_precision,
            scaling_factor=self.scaling_factor,
        )

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame(np.asarray(self.values), columns=self.channels)
        df.insert(0, self.time_column, np.asarray(self.time))
        return df


@dataclass
class MotionStream:
    """Motion-capture frames addressed by a 1-based integer index."""

    index: np.ndarray
    values: np.ndarray
    columns: List[str]
    index_column: str = "index"
    scaling_factor: int = DEFAULT_SCALING_FACTOR

    def __post_init__(self):
        self.index = _frozen(self.index, dtype=np.int64)
        self.columns = list(self.columns)
        self.values = _frozen_matrix(self.values, len(self.index), len(self.columns))

    @property
    def n_frames(self) -> int:
        return len(self.index)

    @property
    def time(self) -> np.ndarray:
        """Motion-clock seconds of each frame, ``(index - 1) / 250``."""
        return (self.index - 1) / MOTION_RATE_HZ

    def column(self, name: str) -> np.ndarray:
        try:
            return self.values[:, self.columns.index(name)]
        except ValueError:
            raise KeyError(f"Unknown column: {name}") from None

    def validate(self) -> "MotionStream":
        if self.n_frames == 0:
            raise FileFormatError("motion stream has no frames", field="index")
        _check_channels(self.columns, self.values, self.n_frames, "motion stream")
        _check_increasing(self.index, "index")
        return self

    def index_slice(self, start: int, end: int) -> "MotionStream":
        """Frames with ``start <= index <= end``."""
        first, last = range_indices(self.index, start, end)
        return MotionStream(
            index=self.index[first:last + 1],
            values=self.values[first:last + 1],
            columns=self.columns,
            index_column=self.index_column,
            scaling_factor=self.scaling_factor,
        )


@dataclass
class ForceStream:
    """Force-plate samples with their ANC metadata."""

    time: np.ndarray
    values: np.ndarray
    channels: List[str]
    trial_name: str = ""
    trial_number: str = ""
    duration_s: float = 0.0
    declared_channels: int = 0
    bit_depth: str = ""
    precise_rate: float = 0.0
    rates: List[str] = field(default_factory=list)
    ranges: List[str] = field(default_factory=list)
    scaling_factor: int = DEFAULT_SCALING_FACTOR

    def __post_init__(self):
        self.time = _frozen(self.time)
        self.channels = list(self.channels)
        self.values = _frozen_matrix(self.values, len(self.time), len(self.channels))

    @property
    def n_samples(self) -> int:
        return len(self.time)

    def channel(self, name: str) -> np.ndarray:
        try:
            return self.values[:, self.channels.index(name)]
        except ValueError:
            raise KeyError(f"Unknown channel: {name}") from None

    def validate(self) -> "ForceStream":
        if self.n_samples == 0:
            raise FileFormatError("force stream has no samples", field="time")
        _check_channels(self.channels, self.values, self.n_samples, "force stream")
        _check_increasing(self.time, "time")
        return self

    def time_slice(self, start: float, end: float) -> "ForceStream":
        first, last = range_indices(self.time, start, end)
        return ForceStream(
            time=self.time[first:last + 1],
            values=self.values[first:last + 1],
            channels=self.channels,
            trial_name=self.trial_name,
            trial_number=self.trial_number,
            duration_s=self.duration_s,
            declared_channels=self.declared_channels,
            bit_depth=self.bit_depth,
            precise_rate=self.precise_rate,
            rates=list(self.rates),
            ranges=list(self.ranges),
            scaling_factor=self.scaling_factor,
        )


# ── Manifest and requests ────────────────────────────────────────────────


@dataclass
class Manifest:
    """Landmark record of one subject.

    ``landmarks`` maps each of ``P0 P1 P2 S C D T0 T O L`` to its value in
    natural units: force seconds, or a motion frame index for ``D`` and
    ``O``.  Missing landmarks are stored as zero.
    """

    subject: str
    motion_file: str
    force_file: str
    emg_file: str
    emg_motion_offset: int
    landmarks: Dict[str, float] = field(default_factory=dict)
    row: Optional[int] = None

    def __post_init__(self):
        for name in LANDMARK_NAMES:
            self.landmarks.setdefault(name, 0)

    def landmark(self, name: str) -> float:
        return self.landmarks[name]


@dataclass
class Request:
    manifest_path: str
    data_folder: str
    start_phase: str
    end_phase: str
    subject_index: int = 0


class PhaseTimeRange(NamedTuple):
    """EMG-clock interval between two landmarks (natural seconds)."""

    start_time: float
    end_time: float
    start_type: str
    end_type: str


class SyncedTimeRange(NamedTuple):
    start_motion_index: int
    end_motion_index: int
    start_force_time: float
    end_force_time: float
    start_emg_time: float
    end_emg_time: float


@dataclass(frozen=True)
class TimeRange:
    start: float
    end: float


# ── Results ──────────────────────────────────────────────────────────────


@dataclass
class Stats:
    """Interval statistics; means and maxes stay in the scaled domain."""

    subject: str
    start_phase: str
    end_phase: str
    start_time: float
    end_time: float
    channels: List[str]
    means: Dict[str, float]
    maxes: Dict[str, float]
    scaling_factor: int = DEFAULT_SCALING_FACTOR

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class WindowResult:
    """Best window of one channel; times and mean are scaled."""

    channel_index: int
    start_time: float
    end_time: float
    max_mean: float
    channel_name: str = ""


@dataclass
class PhaseBucketResult:
    """Per-channel max and mean of one phase; ``None`` marks an empty channel."""

    label: str
    maxes: List[Optional[float]]
    means: List[Optional[float]]


@dataclass
class PhaseAnalysis:
    channels: List[str]
    phases: List[PhaseBucketResult]
    max_times: List[Optional[float]]
    scaling_factor: int = DEFAULT_SCALING_FACTOR


@dataclass
class ReferenceValues:
    """Per-channel divisors read from the first data row of a reference file."""

    channels: List[str]
    values: np.ndarray
    label: str = ""
    scaling_factor: int = DEFAULT_SCALING_FACTOR

    def __post_init__(self):
        self.channels = list(self.channels)
        self.values = _frozen(self.values)

    @property
    def n_channels(self) -> int:
        return len(self.channels)
