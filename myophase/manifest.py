"""Phase manifest: one row of landmark events per subject.

The manifest is a CSV with a header row followed by one row per subject
in the fixed column order::

    subject, motion_file, force_file, emg_file, emg_motion_offset,
    P0, P1, P2, S, C, D, T0, T, O, L

``D`` and ``O`` are motion-capture frame indices, the other landmarks
are force-plate seconds.  Landmark values stay in natural units (they
are not scaled).  Missing-value sentinels decode to zero.
"""

import logging
import re
from pathlib import Path
from typing import List, Union

from .constants import (
    FORCE_TIME_LANDMARKS,
    LANDMARK_NAMES,
    LARGE_FILE_MB,
    MANIFEST_COLUMNS,
    MAX_FILE_SIZE_MB,
    MISSING_SENTINELS,
    MOTION_INDEX_LANDMARKS,
)
from .errors import FileFormatError, InputValidationError, ParseError
from .numeric import parse_number
from .parsers import read_csv_records, source_name
from .schema import Manifest

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^[+-]?\d+$")


def _parse_int(cell: str, field: str, row: int, allow_missing: bool = True) -> int:
    s = cell.strip()
    if allow_missing and s in MISSING_SENTINELS:
        return 0
    if not _INT_RE.match(s):
        raise ParseError(f"row {row}: {field} value {s!r} is not an integer", field=field, row=row)
    return int(s)


def _parse_float(cell: str, field: str, row: int) -> float:
    try:
        return parse_number(cell, 0)
    except ParseError as e:
        raise ParseError(
            f"row {row}: {field} value {cell.strip()!r} is not a number",
            cause=e, field=field, row=row,
        ) from e


def parse_manifest_records(records: List[List[str]], name: str = "<records>") -> List[Manifest]:
    """Parse manifest rows (header included) into :class:`Manifest` records.

    Raises
    ------
    FileFormatError
        If the file is empty or a row has fewer than 15 cells.
    ParseError
        If the offset or a landmark cell cannot be parsed.
    """
    if not records:
        raise FileFormatError(f"{name}: manifest is empty", field="rows")

    manifests = []
    for row_num, record in enumerate(records[1:], start=2):
        if not record or all(not c.strip() for c in record):
            continue
        if len(record) < len(MANIFEST_COLUMNS):
            raise FileFormatError(
                f"{name}: row {row_num} has {len(record)} cells, "
                f"expected {len(MANIFEST_COLUMNS)}",
                row=row_num,
            )
        landmarks = {}
        for k, lm in enumerate(LANDMARK_NAMES, start=5):
            if lm in MOTION_INDEX_LANDMARKS:
                landmarks[lm] = _parse_int(record[k], lm, row_num)
            else:
                landmarks[lm] = _parse_float(record[k], lm, row_num)
        manifests.append(Manifest(
            subject=record[0].strip(),
            motion_file=record[1].strip(),
            force_file=record[2].strip(),
            emg_file=record[3].strip(),
            emg_motion_offset=_parse_int(record[4], "emg_motion_offset", row_num,
                                         allow_missing=False),
            landmarks=landmarks,
            row=row_num,
        ))

    logger.info(f"Loaded {len(manifests)} subjects from {name}")
    return manifests


def parse_manifest(
    path: Union[str, Path, bytes],
    max_file_size_mb: float = MAX_FILE_SIZE_MB,
    large_file_mb: float = LARGE_FILE_MB,
) -> List[Manifest]:
    """Parse a manifest CSV file (or its bytes)."""
    records = read_csv_records(path, max_file_size_mb, large_file_mb)
    return parse_manifest_records(records, name=source_name(path))


def validate_manifest(manifest: Manifest) -> None:
    """Check required fields, the offset and force-landmark ordering.

    Raises
    ------
    InputValidationError
        With ``field`` set to the offending column.
    """
    for field in ("subject", "motion_file", "force_file", "emg_file"):
        if not getattr(manifest, field):
            raise InputValidationError(f"{field} must not be empty", field=field, row=manifest.row)

    if manifest.emg_motion_offset < 0:
        raise InputValidationError(
            f"emg_motion_offset must be >= 0, got {manifest.emg_motion_offset}",
            field="emg_motion_offset", row=manifest.row,
        )

    # Unset landmarks are skipped, so each present value is compared with
    # the next present one.
    present = [(name, manifest.landmarks[name]) for name in FORCE_TIME_LANDMARKS
               if manifest.landmarks[name] != 0]
    for (earlier, a), (later, b) in zip(present, present[1:]):
        if a > b:
            raise InputValidationError(
                f"{earlier} ({a}) must not be after {later} ({b})",
                field=later, row=manifest.row,
            )


def load_subjects(path: Union[str, Path]) -> List[str]:
    """Subject names listed in a manifest, in file order."""
    return [m.subject for m in parse_manifest(path)]
