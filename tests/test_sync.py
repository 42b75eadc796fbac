"""Tests for motion / force / EMG clock conversions."""

import logging

import numpy as np
import pytest

from conftest import make_emg_stream
from myophase.errors import InputValidationError
from myophase.schema import MotionStream
from myophase.sync import (
    emg_time_to_force_time,
    emg_time_to_motion_index,
    find_nearest_time_index,
    force_time_to_emg_time,
    force_time_to_motion_index,
    motion_index_to_emg_time,
    motion_index_to_force_time,
    motion_index_to_motion_time,
    motion_time_to_motion_index,
    synced_time_range,
    validate_time_sync,
)


def test_motion_index_and_time():
    assert motion_index_to_motion_time(1) == 0.0
    assert motion_index_to_motion_time(251) == pytest.approx(1.0)
    assert motion_index_to_motion_time(0) == 0.0
    assert motion_time_to_motion_index(1.0) == 251
    assert motion_time_to_motion_index(-0.5) == 1


def test_motion_index_to_emg_time():
    assert motion_index_to_emg_time(350, 100) == pytest.approx(1.0)
    assert motion_index_to_emg_time(50, 100) == pytest.approx(-0.2)


def test_emg_time_to_motion_index_rounds_half_away():
    assert emg_time_to_motion_index(1.0, 100) == 350
    assert emg_time_to_motion_index(0.002, 100) == 101
    assert emg_time_to_motion_index(0.0, 0) == 1


def test_force_clock_shares_motion_origin():
    assert force_time_to_motion_index(8.0) == 2001
    assert motion_index_to_force_time(2001) == pytest.approx(8.0)
    assert force_time_to_emg_time(8.0, 100) == pytest.approx(7.604)
    assert emg_time_to_force_time(7.604, 100) == pytest.approx(8.0)


@pytest.mark.parametrize("offset", [0, 1, 100, 1234])
def test_emg_motion_round_trip_within_one_frame(offset):
    for t in np.linspace(0.0, 10.0, 997):
        back = motion_index_to_emg_time(emg_time_to_motion_index(t, offset), offset)
        assert abs(back - t) <= 1 / 250 + 1e-12


def test_synced_time_range():
    r = synced_time_range(251, 501, 1)
    assert r.start_motion_index == 251
    assert r.start_force_time == pytest.approx(1.0)
    assert r.end_force_time == pytest.approx(2.0)
    assert r.start_emg_time == pytest.approx(1.0)
    assert r.end_emg_time == pytest.approx(2.0)
    with pytest.raises(InputValidationError):
        synced_time_range(10, 5, 0)


def test_find_nearest_time_index():
    times = [0.0, 1.0, 2.0, 3.0]
    assert find_nearest_time_index(times, 1.2) == 1
    assert find_nearest_time_index(times, 1.8) == 2
    assert find_nearest_time_index(times, 0.5) == 0
    assert find_nearest_time_index(times, -4) == 0
    assert find_nearest_time_index(times, 99) == 3
    assert find_nearest_time_index([], 1.0) == -1


def _motion(n_frames):
    return MotionStream(index=np.arange(1, n_frames + 1), values=np.zeros((n_frames, 1)),
                        columns=["X"], scaling_factor=0)


def test_validate_time_sync_errors():
    with pytest.raises(InputValidationError):
        validate_time_sync(None, None, -1)
    with pytest.raises(InputValidationError, match="beyond the last motion frame"):
        validate_time_sync(_motion(50), None, 100)


def test_validate_time_sync_duration_mismatch_warns(caplog):
    emg = make_emg_stream(np.arange(0, 5.0, 0.5), {"A": np.zeros(10)})
    with caplog.at_level(logging.WARNING, logger="myophase.sync"):
        validate_time_sync(_motion(600), emg, 100)
    assert "EMG ends at" in caplog.text


def test_validate_time_sync_matching_streams(caplog):
    emg = make_emg_stream(np.linspace(0.0, 2.0, 201), {"A": np.zeros(201)})
    with caplog.at_level(logging.WARNING, logger="myophase.sync"):
        validate_time_sync(_motion(600), emg, 100)
    assert caplog.text == ""
