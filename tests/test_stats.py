"""Tests for interval statistics and phase buckets."""

import numpy as np
import pytest

from conftest import make_emg_stream
from myophase.errors import InputValidationError, InsufficientDataError, ParseError
from myophase.schema import TimeRange
from myophase.stats import interval_stats, parse_phases, phase_buckets


def test_interval_stats():
    stream = make_emg_stream([0.0, 0.1, 0.2], {"A": [1, 2, 6], "B": [-1, -2, -3]})
    stats = interval_stats(stream, "S01", "S", "T", 0.0, 0.2)
    assert stats.channels == ["A", "B"]
    assert stats.means == {"A": pytest.approx(3.0), "B": pytest.approx(-2.0)}
    assert stats.maxes == {"A": 6.0, "B": -1.0}
    assert stats.duration == pytest.approx(0.2)
    assert set(stats.means) == set(stats.maxes) == set(stats.channels)


def test_interval_stats_empty_stream_reports_zero():
    stream = make_emg_stream([], {"A": []})
    stats = interval_stats(stream, "S01", "S", "T", 1.0, 2.0)
    assert stats.means == {"A": 0.0}
    assert stats.maxes == {"A": 0.0}


def test_phase_buckets_strict_boundaries():
    stream = make_emg_stream([0.0, 0.5, 1.0], {"A": [100, 150, 200]})
    analysis = phase_buckets(stream, [(0.0, 1.0), (1.0, 2.0), (2.0, 3.0), (3.0, 4.0)])
    first = analysis.phases[0]
    assert first.maxes == [150]
    assert first.means == [150]
    for phase in analysis.phases[1:]:
        assert phase.maxes == [None]
        assert phase.means == [None]
    assert analysis.max_times == [1.0]


def test_boundary_samples_belong_to_no_phase():
    stream = make_emg_stream([0, 1, 2, 3, 4], {"A": [10, 20, 30, 40, 50]})
    analysis = phase_buckets(stream, [TimeRange(0, 2), TimeRange(2, 4)], labels=["a", "b"])
    assert [p.means for p in analysis.phases] == [[20], [40]]
    assert [p.label for p in analysis.phases] == ["a", "b"]


def test_max_time_is_earliest_occurrence():
    stream = make_emg_stream([0, 1, 2, 3], {"A": [5, 9, 9, 1], "B": [0, 0, 0, 0]})
    analysis = phase_buckets(stream, [(0, 4)], labels=["all"])
    assert analysis.max_times == [1.0, 0.0]


def test_phase_buckets_multi_channel_mean():
    stream = make_emg_stream(np.arange(6.0), {"A": np.arange(6.0), "B": np.full(6, 2.0)})
    analysis = phase_buckets(stream, [(0, 5)], labels=["mid"])
    assert analysis.phases[0].means == [pytest.approx(2.5), pytest.approx(2.0)]
    assert analysis.phases[0].maxes == [4.0, 2.0]


def test_phase_buckets_label_mismatch():
    stream = make_emg_stream([0, 1], {"A": [1, 2]})
    with pytest.raises(InputValidationError):
        phase_buckets(stream, [(0, 1)], labels=["a", "b"])


def test_phase_buckets_empty_stream():
    stream = make_emg_stream([], {"A": []})
    with pytest.raises(InsufficientDataError):
        phase_buckets(stream, [(0, 1)], labels=["a"])


def test_parse_phases():
    intervals = parse_phases(["0.5", "1.0", "1.5", "2.0", "2.5"], 10)
    assert len(intervals) == 4
    assert intervals[0] == TimeRange(5e9, 1e10)
    assert intervals[3].end == pytest.approx(2.5e10)


def test_parse_phases_custom_labels_and_extra_points():
    intervals = parse_phases(["0", "1", "2", "3"], 0, labels=["a", "b"])
    assert intervals == [TimeRange(0.0, 1.0), TimeRange(1.0, 2.0)]


def test_parse_phases_errors():
    with pytest.raises(InputValidationError, match="need at least 5"):
        parse_phases(["0", "1"], 0)
    with pytest.raises(InputValidationError, match="must not decrease"):
        parse_phases(["0", "2", "1", "3", "4"], 0)
    with pytest.raises(ParseError):
        parse_phases(["0", "1", "two", "3", "4"], 0)
