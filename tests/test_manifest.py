"""Tests for the phase manifest parser."""

import pytest

from conftest import MANIFEST_HEADER, manifest_row, write_manifest
from myophase.errors import FileFormatError, InputValidationError, ParseError
from myophase.manifest import (
    load_subjects,
    parse_manifest,
    parse_manifest_records,
    validate_manifest,
)


def _records(*rows):
    return [MANIFEST_HEADER.split(",")] + [r.split(",") for r in rows]


def test_parse_manifest_row():
    [m] = parse_manifest_records(_records(manifest_row(L="8.0")))
    assert m.subject == "S01"
    assert m.emg_file == "emg.csv"
    assert m.motion_file == "motion.csv"
    assert m.force_file == "force.anc"
    assert m.emg_motion_offset == 100
    assert m.landmark("S") == pytest.approx(0.896)
    assert m.landmark("D") == 350
    assert isinstance(m.landmark("D"), int)
    assert m.landmark("L") == pytest.approx(8.0)
    assert m.row == 2


def test_missing_landmarks_are_zero():
    [m] = parse_manifest_records(_records(manifest_row(P0="-", O="x")))
    assert m.landmark("P0") == 0
    assert m.landmark("O") == 0
    assert m.landmark("T") == 0


def test_blank_rows_are_skipped(tmp_path):
    path = write_manifest(tmp_path / "m.csv", [manifest_row("A"), "", manifest_row("B")])
    assert [m.subject for m in parse_manifest(path)] == ["A", "B"]
    assert load_subjects(path) == ["A", "B"]


def test_short_row_names_the_row():
    with pytest.raises(FileFormatError) as e:
        parse_manifest_records(_records(manifest_row(), "S02,m.csv,f.anc"))
    assert e.value.fields["row"] == 3


def test_offset_must_be_an_integer():
    with pytest.raises(ParseError) as e:
        parse_manifest_records(_records(manifest_row(offset="NA")))
    assert e.value.field == "emg_motion_offset"


def test_bad_landmark_value():
    with pytest.raises(ParseError) as e:
        parse_manifest_records(_records(manifest_row(T="soon")))
    assert e.value.field == "T"


def test_empty_manifest():
    with pytest.raises(FileFormatError):
        parse_manifest_records([])


def test_validate_manifest_accepts_ordered_row():
    [m] = parse_manifest_records(_records(manifest_row(P0="0.1", S="0.896", T="1.5", L="2.0")))
    validate_manifest(m)


def test_validate_manifest_empty_subject():
    [m] = parse_manifest_records(_records(manifest_row(subject="")))
    with pytest.raises(InputValidationError) as e:
        validate_manifest(m)
    assert e.value.field == "subject"


def test_validate_manifest_negative_offset():
    [m] = parse_manifest_records(_records(manifest_row(offset="-5")))
    with pytest.raises(InputValidationError) as e:
        validate_manifest(m)
    assert e.value.field == "emg_motion_offset"


def test_validate_manifest_force_landmark_order():
    [m] = parse_manifest_records(_records(manifest_row(P1="2.0", P2="1.0")))
    with pytest.raises(InputValidationError) as e:
        validate_manifest(m)
    assert e.value.field == "P2"


def test_validate_manifest_order_across_unset_landmark():
    # P1 is NA, so P0 is compared with P2 directly
    [m] = parse_manifest_records(_records(manifest_row(P0="0.9", P2="0.5")))
    assert m.landmarks["P1"] == 0
    with pytest.raises(InputValidationError) as e:
        validate_manifest(m)
    assert e.value.field == "P2"
