"""Decoders for EMG, motion-capture, force-plate and reference files.

All decoders return streams whose numeric content is scaled by
``10 ** scaling_factor`` (see :mod:`myophase.numeric`).  Recoverable
problems inside a file (a row whose time cannot be read, a channel cell
that is not a number) are logged and skipped or zeroed; structural
problems raise :class:`~myophase.errors.FileFormatError`.

Functions
---------
read_csv_records
    Read a comma-delimited file or byte blob into a list of rows.
check_file_size
    Refuse files above the configured size limit.
detect_time_precision
    Observed decimal precision of a time column.
parse_emg, parse_emg_records
    EMG CSV (row 0 header, column 0 time).
parse_motion, parse_motion_records
    Motion-capture CSV (three metadata rows, header on row 4).
parse_anc, parse_anc_lines
    Force-plate ANC export (12 metadata lines, tab-delimited data).
parse_reference, parse_reference_records
    Normalization reference CSV (first data row holds the divisors).
"""

import csv
import io
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .constants import (
    ANC_METADATA_LINES,
    DEFAULT_SCALING_FACTOR,
    DEFAULT_TIME_PRECISION,
    LARGE_FILE_MB,
    MAX_FILE_SIZE_MB,
    MISSING_SENTINELS,
    MOTION_HEADER_ROW,
    PRECISION_SCAN_ROWS,
)
from .errors import FileFormatError, FileTooLargeError, ParseError
from .numeric import decimal_places, parse_number, try_parse_number
from .schema import EMGStream, ForceStream, MotionStream, ReferenceValues

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes]


def source_name(source: Optional[Source]) -> str:
    if source is None or isinstance(source, bytes):
        return "<bytes>"
    return Path(source).name


# ── Raw readers ──────────────────────────────────────────────────────────


def check_file_size(
    path: Union[str, Path],
    max_file_size_mb: float = MAX_FILE_SIZE_MB,
    large_file_mb: float = LARGE_FILE_MB,
) -> int:
    """Return the file size in bytes, refusing files above the limit.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    FileTooLargeError
        If the file exceeds ``max_file_size_mb``.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    size = path.stat().st_size
    size_mb = size / (1024 * 1024)
    if size_mb > max_file_size_mb:
        raise FileTooLargeError(
            f"{path.name} is {size_mb:.1f} MB, limit is {max_file_size_mb} MB",
            path=str(path), size=size,
        )
    if size_mb > large_file_mb:
        logger.info(f"Large file {path.name} ({size_mb:.1f} MB)")
    return size


def _read_text(source: Source, max_file_size_mb: float, large_file_mb: float = LARGE_FILE_MB) -> str:
    if isinstance(source, bytes):
        return source.decode("utf-8-sig")
    check_file_size(source, max_file_size_mb, large_file_mb)
    with open(source, encoding="utf-8-sig", newline="") as f:
        return f.read()


def read_csv_records(
    source: Source,
    max_file_size_mb: float = MAX_FILE_SIZE_MB,
    large_file_mb: float = LARGE_FILE_MB,
) -> List[List[str]]:
    """Read a comma-delimited file (or bytes) into rows of strings.

    A leading UTF-8 BOM is dropped, leading spaces after delimiters are
    ignored and rows may have differing lengths.
    """
    text = _read_text(source, max_file_size_mb, large_file_mb)
    reader = csv.reader(io.StringIO(text), skipinitialspace=True)
    return [row for row in reader]


def _clean_header(row: Sequence[str]) -> List[str]:
    return [c.strip() for c in row if c.strip()]


def detect_time_precision(time_cells: Sequence[str]) -> int:
    """Maximum number of decimals among the first rows of a time column.

    Falls back to ``DEFAULT_TIME_PRECISION`` when no cell has a decimal
    point.
    """
    best = 0
    for cell in list(time_cells)[:PRECISION_SCAN_ROWS]:
        best = max(best, decimal_places(cell))
    return best if best > 0 else DEFAULT_TIME_PRECISION


def _parse_cells(cells: Sequence[str], n: int, scaling_factor: int):
    """Parse ``n`` channel cells; bad or missing cells become zero."""
    values = []
    coerced = 0
    for j in range(n):
        if j >= len(cells):
            values.append(0.0)
            continue
        v = try_parse_number(cells[j], scaling_factor)
        if v is None:
            coerced += 1
            v = 0.0
        values.append(v)
    return values, coerced


# ── EMG ──────────────────────────────────────────────────────────────────


def parse_emg_records(
    records: List[List[str]],
    scaling_factor: int = DEFAULT_SCALING_FACTOR,
    name: str = "<records>",
) -> EMGStream:
    """Build an :class:`EMGStream` from CSV rows.

    Row 0 is the header (column 0 is the time column, whatever its
    name).  Rows shorter than the header or whose time cell cannot be
    parsed are skipped with a warning; unparseable channel cells become
    zero.

    Raises
    ------
    FileFormatError
        If the header is missing or has no channel column, if no data row
        survives, or if time is not strictly increasing.
    """
    if len(records) < 2:
        raise FileFormatError(f"{name}: need a header row and at least one data row", field="rows")

    headers = _clean_header(records[0])
    if len(headers) < 2:
        raise FileFormatError(f"{name}: header needs a time column and at least one channel", field="header")
    n_ch = len(headers) - 1

    times, rows, time_cells = [], [], []
    skipped = coerced = 0
    for i, record in enumerate(records[1:], start=2):
        if not record or all(not c.strip() for c in record):
            continue
        if len(record) < len(headers):
            logger.warning(f"{name}: row {i} has {len(record)} cells, expected {len(headers)}; skipped")
            skipped += 1
            continue
        cell = record[0].strip()
        if cell in MISSING_SENTINELS:
            logger.warning(f"{name}: row {i} has no time value; skipped")
            skipped += 1
            continue
        try:
            t = parse_number(cell, scaling_factor)
        except ParseError:
            logger.warning(f"{name}: row {i} time {cell!r} is not a number; skipped")
            skipped += 1
            continue
        values, bad = _parse_cells(record[1:], n_ch, scaling_factor)
        coerced += bad
        times.append(t)
        rows.append(values)
        time_cells.append(cell)

    if not times:
        raise FileFormatError(f"{name}: no valid data rows", field="rows")
    if coerced:
        logger.warning(f"{name}: {coerced} channel cells could not be parsed and were set to 0")

    stream = EMGStream(
        time=times,
        values=rows,
        channels=headers[1:],
        time_column=headers[0],
        time_precision=detect_time_precision(time_cells),
        scaling_factor=scaling_factor,
    )
    stream.validate()
    logger.debug(
        f"{name}: {stream.n_samples} samples, {stream.n_channels} channels, "
        f"{skipped} rows skipped"
    )
    return stream


def parse_emg(
    source: Source,
    scaling_factor: int = DEFAULT_SCALING_FACTOR,
    max_file_size_mb: float = MAX_FILE_SIZE_MB,
    large_file_mb: float = LARGE_FILE_MB,
) -> EMGStream:
    """Parse an EMG CSV file (or its bytes) into a scaled :class:`EMGStream`."""
    name = source_name(source)
    records = read_csv_records(source, max_file_size_mb, large_file_mb)
    return parse_emg_records(records, scaling_factor, name=name)


# ── Motion capture ───────────────────────────────────────────────────────

_INT_RE = re.compile(r"^[+-]?\d+$")


def parse_motion_records(
    records: List[List[str]],
    scaling_factor: int = DEFAULT_SCALING_FACTOR,
    name: str = "<records>",
) -> MotionStream:
    """Build a :class:`MotionStream` from CSV rows.

    Rows 0-2 are metadata, row 3 is the header (column 0 is the frame
    index) and data starts on row 4.
    """
    if len(records) <= MOTION_HEADER_ROW + 1:
        raise FileFormatError(
            f"{name}: expected a header on row {MOTION_HEADER_ROW + 1} followed by data",
            field="rows",
        )
    headers = _clean_header(records[MOTION_HEADER_ROW])
    if len(headers) < 2:
        raise FileFormatError(f"{name}: header needs an index column and at least one data column", field="header")
    n_cols = len(headers) - 1

    index, rows = [], []
    coerced = 0
    for i, record in enumerate(records[MOTION_HEADER_ROW + 1:], start=MOTION_HEADER_ROW + 2):
        if not record or not record[0].strip():
            continue
        if len(record) < len(headers):
            logger.debug(f"{name}: row {i} is incomplete; skipped")
            continue
        cell = record[0].strip()
        if not _INT_RE.match(cell):
            logger.debug(f"{name}: row {i} index {cell!r} is not an integer; skipped")
            continue
        values, bad = _parse_cells(record[1:], n_cols, scaling_factor)
        coerced += bad
        index.append(int(cell))
        rows.append(values)

    if not index:
        raise FileFormatError(f"{name}: no valid data rows", field="rows")
    if coerced:
        logger.warning(f"{name}: {coerced} cells could not be parsed and were set to 0")

    stream = MotionStream(
        index=index,
        values=rows,
        columns=headers[1:],
        index_column=headers[0],
        scaling_factor=scaling_factor,
    )
    return stream.validate()


def parse_motion(
    source: Source,
    scaling_factor: int = DEFAULT_SCALING_FACTOR,
    max_file_size_mb: float = MAX_FILE_SIZE_MB,
    large_file_mb: float = LARGE_FILE_MB,
) -> MotionStream:
    """Parse a motion-capture CSV file (or its bytes)."""
    name = source_name(source)
    records = read_csv_records(source, max_file_size_mb, large_file_mb)
    return parse_motion_records(records, scaling_factor, name=name)


# ── Force plate (ANC) ────────────────────────────────────────────────────


def _metadata_value(fields: List[str], label: str) -> str:
    """Value following ``label`` in a tab-split metadata line."""
    for k, part in enumerate(fields):
        if label not in part:
            continue
        value = part.split(label, 1)[1].lstrip(":").strip()
        if not value and k + 1 < len(fields):
            value = fields[k + 1].strip()
        return value
    return ""


def _row_after(tokens: List[str], label: str) -> List[str]:
    if label in tokens:
        return tokens[tokens.index(label) + 1:]
    return []


def parse_anc_lines(
    lines: List[str],
    scaling_factor: int = DEFAULT_SCALING_FACTOR,
    name: str = "<lines>",
) -> ForceStream:
    """Build a :class:`ForceStream` from the lines of an ANC export.

    The first 12 lines are metadata: line 3 carries ``Trial_Name``,
    ``Trial#``, ``Duration(Sec.)`` and ``#Channels``, line 4 ``BitDepth``
    and ``PreciseRate``, lines 9-11 the channel ``Name``, ``Rate`` and
    ``Range`` rows.  Data starts at the first later line whose first
    field is a number; rows shorter than the channel list are padded
    with zero.
    """
    meta = [line.rstrip("\r\n").split("\t") for line in lines[:ANC_METADATA_LINES]]
    while len(meta) < ANC_METADATA_LINES:
        meta.append([])

    trial_name = _metadata_value(meta[2], "Trial_Name")
    trial_number = _metadata_value(meta[2], "Trial#")
    duration = try_parse_number(_metadata_value(meta[2], "Duration(Sec.)"), 0) or 0.0
    declared = try_parse_number(_metadata_value(meta[2], "#Channels"), 0) or 0
    bit_depth = _metadata_value(meta[3], "BitDepth")
    precise_rate = try_parse_number(_metadata_value(meta[3], "PreciseRate"), 0) or 0.0

    channels = _row_after(" ".join(meta[8]).split(), "Name")
    rates = _row_after(" ".join(meta[9]).split(), "Rate")
    ranges = _row_after(" ".join(meta[10]).split(), "Range")

    times, rows = [], []
    started = False
    coerced = 0
    for i, line in enumerate(lines[ANC_METADATA_LINES:], start=ANC_METADATA_LINES + 1):
        fields = line.split()
        if not fields:
            continue
        t = try_parse_number(fields[0], scaling_factor) if fields[0] not in MISSING_SENTINELS else None
        if t is None:
            if started:
                logger.warning(f"{name}: line {i} time {fields[0]!r} is not a number; skipped")
            continue
        started = True
        if not channels:
            n = int(declared) if declared else len(fields) - 1
            channels = [f"Ch{k + 1}" for k in range(n)]
        values, bad = _parse_cells(fields[1:], len(channels), scaling_factor)
        coerced += bad
        times.append(t)
        rows.append(values)

    if not times:
        raise FileFormatError(f"{name}: no data section found", field="rows")
    if coerced:
        logger.warning(f"{name}: {coerced} cells could not be parsed and were set to 0")
    if declared and int(declared) != len(channels):
        logger.warning(f"{name}: header declares {int(declared)} channels, found {len(channels)} names")
    logger.debug(f"{name}: trial {trial_name!r}, rate {precise_rate} Hz, {len(times)} samples")

    stream = ForceStream(
        time=times,
        values=rows,
        channels=channels,
        trial_name=trial_name,
        trial_number=trial_number,
        duration_s=duration,
        declared_channels=int(declared),
        bit_depth=bit_depth,
        precise_rate=precise_rate,
        rates=rates,
        ranges=ranges,
        scaling_factor=scaling_factor,
    )
    return stream.validate()


def parse_anc(
    source: Source,
    scaling_factor: int = DEFAULT_SCALING_FACTOR,
    max_file_size_mb: float = MAX_FILE_SIZE_MB,
    large_file_mb: float = LARGE_FILE_MB,
) -> ForceStream:
    """Parse a force-plate ANC file (or its bytes)."""
    name = source_name(source)
    text = _read_text(source, max_file_size_mb, large_file_mb)
    return parse_anc_lines(text.splitlines(), scaling_factor, name=name)


# ── Normalization reference ──────────────────────────────────────────────


def parse_reference_records(
    records: List[List[str]],
    scaling_factor: int = DEFAULT_SCALING_FACTOR,
    name: str = "<records>",
) -> ReferenceValues:
    """Read the per-channel divisors from the first data row.

    Column 0 holds a row label and is not interpreted.  A label that is
    itself a number means the file is a time-indexed recording rather
    than a reference table, and is rejected.

    Raises
    ------
    FileFormatError
        If the header or data row is missing, or column 0 looks like time.
    ParseError
        If a divisor cell cannot be parsed.
    """
    if len(records) < 2:
        raise FileFormatError(f"{name}: need a header row and a reference row", field="rows")
    headers = _clean_header(records[0])
    if len(headers) < 2:
        raise FileFormatError(f"{name}: header needs a label column and at least one channel", field="header")
    row = records[1]
    label = row[0].strip() if row else ""
    if label and label not in MISSING_SENTINELS and try_parse_number(label, 0) is not None:
        raise FileFormatError(
            f"{name}: column 0 of the reference row is numeric ({label!r}); "
            "expected a label, not a time-indexed recording",
            field="label", row=2, col=1,
        )
    n_ch = len(headers) - 1
    values = []
    for j in range(n_ch):
        cell = row[j + 1] if j + 1 < len(row) else ""
        try:
            values.append(parse_number(cell, scaling_factor))
        except ParseError as e:
            raise ParseError(
                f"{name}: reference value {cell!r} at channel {j + 1} is not a number",
                cause=e, row=2, col=j + 2, channel=j + 1,
            ) from e
    return ReferenceValues(channels=headers[1:], values=values, label=label,
                           scaling_factor=scaling_factor)


def parse_reference(
    source: Source,
    scaling_factor: int = DEFAULT_SCALING_FACTOR,
    max_file_size_mb: float = MAX_FILE_SIZE_MB,
    large_file_mb: float = LARGE_FILE_MB,
) -> ReferenceValues:
    """Parse a normalization reference CSV file (or its bytes)."""
    name = source_name(source)
    records = read_csv_records(source, max_file_size_mb, large_file_mb)
    return parse_reference_records(records, scaling_factor, name=name)

