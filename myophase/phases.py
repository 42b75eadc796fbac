"""Resolve named jump landmarks to intervals on the EMG clock.

Landmarks ``D`` and ``O`` are motion-capture frame indices; every other
landmark is a force-plate time.  Both kinds are converted to EMG seconds
through :mod:`myophase.sync`.

Functions
---------
get_phase_time_range
    EMG-time interval between two landmarks of a manifest.
validate_phase_order
    Require the start landmark to precede the end landmark.
landmark_type
    ``"motion"`` or ``"force"``.
available_start_phases, available_end_phases
    Landmark names selectable as interval bounds.
phase_info
    Landmark descriptions.
format_phase_time
    Display string of a landmark value.
"""

import logging
from typing import Dict, List, Mapping

from .constants import (
    LANDMARK_DESCRIPTIONS,
    LANDMARK_NAMES,
    LANDMARK_RANK,
    LANDMARK_TYPE_FORCE,
    LANDMARK_TYPE_MOTION,
    MOTION_INDEX_LANDMARKS,
)
from .errors import PhaseLookupError
from .schema import PhaseTimeRange
from .sync import force_time_to_emg_time, motion_index_to_emg_time

logger = logging.getLogger(__name__)


def landmark_type(name: str) -> str:
    if name not in LANDMARK_RANK:
        raise PhaseLookupError(f"unknown landmark: {name}", field="phase", phase=name)
    return LANDMARK_TYPE_MOTION if name in MOTION_INDEX_LANDMARKS else LANDMARK_TYPE_FORCE


def _landmark_emg_time(landmarks: Mapping[str, float], name: str, offset: int):
    kind = landmark_type(name)
    if name not in landmarks:
        raise PhaseLookupError(f"landmark {name} is missing", field="phase", phase=name)
    value = landmarks[name]
    if value == 0:
        raise PhaseLookupError(f"landmark {name} value not set", field="phase", phase=name)
    if kind == LANDMARK_TYPE_MOTION:
        return motion_index_to_emg_time(int(value), offset), kind
    return force_time_to_emg_time(float(value), offset), kind


def get_phase_time_range(
    landmarks: Mapping[str, float],
    start: str,
    end: str,
    offset: int,
) -> PhaseTimeRange:
    """EMG-clock interval between landmarks ``start`` and ``end``.

    Parameters
    ----------
    landmarks : mapping
        Landmark name to value (force seconds, or frame index for D/O).
    start, end : str
        Landmark names.
    offset : int
        Motion frame index aligned with EMG sample 0.

    Returns
    -------
    PhaseTimeRange
        ``(start_time, end_time, start_type, end_type)`` in EMG seconds.

    Raises
    ------
    PhaseLookupError
        If a name is unknown, a value is zero, or the start resolves
        after the end.
    """
    start_time, start_type = _landmark_emg_time(landmarks, start, offset)
    end_time, end_type = _landmark_emg_time(landmarks, end, offset)
    if start_time > end_time:
        raise PhaseLookupError(
            f"{start} ({start_time:.3f}s) is after {end} ({end_time:.3f}s) on the EMG clock",
            field="phase", start=start, end=end,
        )
    logger.debug(f"Phase {start}->{end}: {start_time:.3f}s to {end_time:.3f}s (offset {offset})")
    return PhaseTimeRange(start_time, end_time, start_type, end_type)


def validate_phase_order(start: str, end: str) -> None:
    """Raise :class:`PhaseLookupError` unless ``start`` precedes ``end``."""
    for name in (start, end):
        if name not in LANDMARK_RANK:
            raise PhaseLookupError(f"unknown landmark: {name}", field="phase", phase=name)
    if LANDMARK_RANK[start] >= LANDMARK_RANK[end]:
        raise PhaseLookupError(
            f"start landmark {start} must come before end landmark {end}",
            field="phase", start=start, end=end,
        )


def available_start_phases() -> List[str]:
    return list(LANDMARK_NAMES)


def available_end_phases() -> List[str]:
    return LANDMARK_NAMES[1:]


def phase_info() -> Dict[str, dict]:
    return {
        name: {
            "description": LANDMARK_DESCRIPTIONS[name],
            "type": landmark_type(name),
            "rank": LANDMARK_RANK[name],
        }
        for name in LANDMARK_NAMES
    }


def format_phase_time(name: str, value: float) -> str:
    if landmark_type(name) == LANDMARK_TYPE_MOTION:
        return f"Index: {int(value)}"
    return f"{value:.3f} 秒"
