"""Conversions between the motion, force and EMG clocks.

Motion capture runs at 250 Hz and is addressed by a 1-based frame index.
The force plate shares its time origin with motion capture, so frame
``i`` happens at force time ``(i - 1) / 250``.  The EMG clock is aligned
by ``offset``, the motion frame index that coincides with EMG sample 0.

All functions are pure; rounding is half away from zero.

Functions
---------
motion_index_to_motion_time, motion_time_to_motion_index
motion_index_to_emg_time, emg_time_to_motion_index
force_time_to_motion_index, motion_index_to_force_time
force_time_to_emg_time, emg_time_to_force_time
synced_time_range
    A motion-index interval expressed on all three clocks.
find_nearest_time_index
    Index of the sample closest to a target time.
validate_time_sync
    Sanity-check an offset against parsed motion and EMG streams.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .constants import MOTION_RATE_HZ
from .errors import InputValidationError
from .numeric import descale, round_half_away
from .schema import EMGStream, MotionStream, SyncedTimeRange

logger = logging.getLogger(__name__)


def motion_index_to_motion_time(index: int) -> float:
    if index < 1:
        return 0.0
    return (index - 1) / MOTION_RATE_HZ


def motion_time_to_motion_index(t: float) -> int:
    if t < 0:
        return 1
    return max(1, round_half_away(t * MOTION_RATE_HZ) + 1)


def motion_index_to_emg_time(index: int, offset: int) -> float:
    return (index - offset) / MOTION_RATE_HZ


def emg_time_to_motion_index(t: float, offset: int) -> int:
    return max(1, round_half_away(t * MOTION_RATE_HZ) + offset)


def force_time_to_motion_index(t: float) -> int:
    return motion_time_to_motion_index(t)


def motion_index_to_force_time(index: int) -> float:
    return motion_index_to_motion_time(index)


def force_time_to_emg_time(t: float, offset: int) -> float:
    return motion_index_to_emg_time(force_time_to_motion_index(t), offset)


def emg_time_to_force_time(t: float, offset: int) -> float:
    return motion_index_to_force_time(emg_time_to_motion_index(t, offset))


def synced_time_range(start_index: int, end_index: int, offset: int) -> SyncedTimeRange:
    """Express the motion-index interval ``[start_index, end_index]`` on every clock."""
    if start_index > end_index:
        raise InputValidationError(
            f"start index {start_index} is after end index {end_index}", field="motion_index"
        )
    return SyncedTimeRange(
        start_motion_index=start_index,
        end_motion_index=end_index,
        start_force_time=motion_index_to_force_time(start_index),
        end_force_time=motion_index_to_force_time(end_index),
        start_emg_time=motion_index_to_emg_time(start_index, offset),
        end_emg_time=motion_index_to_emg_time(end_index, offset),
    )


def find_nearest_time_index(times: Sequence[float], target: float) -> int:
    """Index of the value in sorted ``times`` closest to ``target``.

    Ties go to the earlier sample.  Returns -1 for an empty sequence.
    """
    times = np.asarray(times)
    if len(times) == 0:
        return -1
    pos = int(np.searchsorted(times, target, side="left"))
    if pos <= 0:
        return 0
    if pos >= len(times):
        return len(times) - 1
    if target - times[pos - 1] <= times[pos] - target:
        return pos - 1
    return pos


def validate_time_sync(
    motion: Optional[MotionStream],
    emg: Optional[EMGStream],
    offset: int,
    tolerance_s: float = 1.0,
) -> None:
    """Check that ``offset`` can align the given streams.

    Raises
    ------
    InputValidationError
        If the offset is negative or lies beyond the last motion frame.
    """
    if offset < 0:
        raise InputValidationError(f"offset must be >= 0, got {offset}", field="emg_motion_offset")
    if motion is None or motion.n_frames == 0:
        return
    last_index = int(motion.index[-1])
    if offset > last_index:
        raise InputValidationError(
            f"offset {offset} is beyond the last motion frame {last_index}",
            field="emg_motion_offset",
        )
    if emg is None or emg.n_samples == 0:
        return

    motion_span = motion_index_to_emg_time(last_index, offset)
    emg_span = descale(float(emg.time[-1]), emg.scaling_factor)
    if abs(motion_span - emg_span) > tolerance_s:
        logger.warning(
            f"EMG ends at {emg_span:.3f}s but motion ends at {motion_span:.3f}s "
            f"on the EMG clock (offset {offset})"
        )
