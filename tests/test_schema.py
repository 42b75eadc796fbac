"""Tests for stream containers and range slicing."""

import numpy as np
import pytest

from conftest import make_emg_stream
from myophase.errors import FileFormatError, InputValidationError, InsufficientDataError
from myophase.schema import EMGStream, ForceStream, Manifest, range_indices


def test_range_indices_inclusive():
    times = np.array([0.0, 1.0, 2.0, 3.0])
    assert range_indices(times, 1.0, 2.0) == (1, 2)
    assert range_indices(times, 0.5, 2.5) == (1, 2)
    assert range_indices(times, -5, 10) == (0, 3)


def test_range_indices_errors():
    times = np.array([0.0, 1.0, 2.0])
    with pytest.raises(InputValidationError):
        range_indices(times, 2.0, 1.0)
    with pytest.raises(InsufficientDataError):
        range_indices(times, 1.2, 1.8)
    with pytest.raises(InsufficientDataError):
        range_indices(times, 5.0, 6.0)


def test_emg_stream_accessors():
    stream = make_emg_stream([0.0, 0.1], {"A": [1, 2], "B": [3, 4]})
    assert stream.headers == ["time", "A", "B"]
    np.testing.assert_allclose(stream.channel("B"), [3, 4])
    with pytest.raises(KeyError):
        stream.channel("Z")
    df = stream.to_dataframe()
    assert list(df.columns) == ["time", "A", "B"]
    assert df["A"].tolist() == [1.0, 2.0]


def test_emg_stream_validate_shape():
    stream = EMGStream(time=[0.0, 1.0], values=[[1.0], [2.0]], channels=["A", "B"])
    with pytest.raises(FileFormatError):
        stream.validate()


def test_force_stream_validate_empty():
    stream = ForceStream(time=[], values=[], channels=["Fx"])
    with pytest.raises(FileFormatError):
        stream.validate()


def test_manifest_defaults_missing_landmarks():
    m = Manifest("S01", "m.csv", "f.anc", "e.csv", 100, landmarks={"S": 1.0})
    assert m.landmark("S") == 1.0
    assert m.landmark("L") == 0
    assert len(m.landmarks) == 10
