"""Assemble result tables and write them to CSV, JSON or Excel.

Tables are lists of rows (lists of strings) in a stable row-major
layout: a header row followed by labelled result rows with one cell per
channel in channel order.  Assemblers only build rows;
:func:`write_table` puts them on disk.

Functions
---------
max_mean_table
    Max-of-means results with the requested range.
stats_table
    Interval statistics between two landmarks.
phase_table
    Per-phase max and mean plus the time of each channel's maximum.
normalized_table
    A normalized EMG stream, one row per sample.
format_statistics_report
    Plain-text summary of interval statistics.
sanitize_filename, output_filename
    Output file naming.
write_table
    Write rows as CSV (optional UTF-8 BOM), JSON or XLSX.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .constants import (
    LABEL_END_CALC,
    LABEL_END_PHASE,
    LABEL_END_RANGE,
    LABEL_END_TIME,
    LABEL_GLOBAL_MAX_TIME,
    LABEL_MAX,
    LABEL_MAX_MEAN,
    LABEL_MEAN,
    LABEL_START_CALC,
    LABEL_START_PHASE,
    LABEL_START_RANGE,
    LABEL_START_TIME,
    MISSING_CELL,
    UNSAFE_FILENAME_CHARS,
)
from .errors import InputValidationError
from .numeric import descale, format_number
from .schema import EMGStream, PhaseAnalysis, Stats, WindowResult

logger = logging.getLogger(__name__)

Rows = List[List[str]]

OUTPUT_FORMATS = ("csv", "json", "xlsx")


# ── Table assemblers ─────────────────────────────────────────────────────


def max_mean_table(
    headers: Sequence[str],
    results: Sequence[WindowResult],
    start_range: float,
    end_range: float,
    precision: int,
    scaling_factor: int,
) -> Rows:
    """Rows of a max-of-means result.

    The requested range is written as given (seconds); window times and
    means are divided by ``10 ** scaling_factor``.
    """
    rows = [list(headers)]
    labelled = [
        (LABEL_START_RANGE, lambda r: format_number(start_range, precision)),
        (LABEL_END_RANGE, lambda r: format_number(end_range, precision)),
        (LABEL_START_CALC, lambda r: format_number(r.start_time, precision, scaling_factor)),
        (LABEL_END_CALC, lambda r: format_number(r.end_time, precision, scaling_factor)),
        (LABEL_MAX_MEAN, lambda r: format_number(r.max_mean, precision, scaling_factor)),
    ]
    for label, cell in labelled:
        rows.append([label] + [cell(r) for r in results])
    return rows


def stats_table(stats: Stats, precision: int) -> Rows:
    """Rows of an interval-statistics result.

    Landmark times are already in seconds; means and maxima are divided
    by the scaling factor of the stream they came from.
    """
    n = len(stats.channels)
    start_time = format_number(stats.start_time, precision)
    end_time = format_number(stats.end_time, precision)
    k = stats.scaling_factor
    return [
        [""] + list(stats.channels),
        [LABEL_START_PHASE] + [stats.start_phase] * n,
        [LABEL_START_TIME] + [start_time] * n,
        [LABEL_END_PHASE] + [stats.end_phase] * n,
        [LABEL_END_TIME] + [end_time] * n,
        [LABEL_MEAN] + [format_number(stats.means[c], precision, k) for c in stats.channels],
        [LABEL_MAX] + [format_number(stats.maxes[c], precision, k) for c in stats.channels],
    ]


def _cell(value: Optional[float], precision: int, scaling_factor: int) -> str:
    if value is None:
        return MISSING_CELL
    return format_number(value, precision, scaling_factor)


def phase_table(analysis: PhaseAnalysis, precision: int, time_column: str = "time") -> Rows:
    """Rows of a phase-bucket analysis; empty phases render as ``N/A``."""
    k = analysis.scaling_factor
    rows = [[time_column] + list(analysis.channels)]
    for phase in analysis.phases:
        rows.append([f"{phase.label} {LABEL_MAX}"] + [_cell(v, precision, k) for v in phase.maxes])
        rows.append([f"{phase.label} {LABEL_MEAN}"] + [_cell(v, precision, k) for v in phase.means])
    if analysis.max_times:
        rows.append([LABEL_GLOBAL_MAX_TIME] + [_cell(t, precision, k) for t in analysis.max_times])
    return rows


def normalized_table(stream: EMGStream, precision: int) -> Rows:
    """Rows of a normalized stream.

    Time keeps the precision observed in the source file; the ratios are
    written at ``precision`` decimals without de-scaling.
    """
    rows = [stream.headers]
    k = stream.scaling_factor
    for t, values in zip(np.asarray(stream.time), np.asarray(stream.values)):
        rows.append(
            [format_number(t, stream.time_precision, k)]
            + [format_number(v, precision) for v in values]
        )
    return rows


def format_statistics_report(stats: Stats) -> str:
    k = stats.scaling_factor
    lines = [
        "EMG 統計分析報告",
        "================",
        f"主題: {stats.subject}",
        f"分析區間: {stats.start_phase} ({stats.start_time:.3f}s) → "
        f"{stats.end_phase} ({stats.end_time:.3f}s)",
        f"持續時間: {stats.duration:.3f} 秒",
        f"通道數量: {len(stats.channels)}",
        "",
        "各通道統計結果:",
        f"{'通道名稱':<20} {'平均值':>15} {'最大值':>15}",
        "-" * 52,
    ]
    for name in stats.channels:
        mean = descale(stats.means[name], k)
        peak = descale(stats.maxes[name], k)
        lines.append(f"{name:<20} {mean:>15.6f} {peak:>15.6f}")
    return "\n".join(lines) + "\n"


# ── File naming ──────────────────────────────────────────────────────────


def sanitize_filename(name: str) -> str:
    return "".join("_" if ch in UNSAFE_FILENAME_CHARS else ch for ch in name)


def output_filename(subject: str, start_phase: str, end_phase: str) -> str:
    return f"{sanitize_filename(subject)}_{start_phase}-{end_phase}_statistics.csv"


def with_format_suffix(path: Union[str, Path], fmt: str) -> Path:
    return Path(path).with_suffix(f".{fmt}")


# ── Writers ──────────────────────────────────────────────────────────────


def _convert_numpy(obj: Any) -> Any:
    """Recursively convert numpy types to Python types for JSON serialization."""
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {k: _convert_numpy(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_convert_numpy(v) for v in obj]
    return obj


def write_table(
    rows: Rows,
    path: Union[str, Path],
    fmt: str = "csv",
    bom: bool = True,
) -> str:
    """Write ``rows`` to ``path``.

    Parameters
    ----------
    rows : list of list of str
        Table produced by one of the assemblers.
    path : str or Path
        Output path; parent directories are created.  The suffix is not
        changed.
    fmt : {"csv", "json", "xlsx"}
        Output format.
    bom : bool
        Prefix CSV output with a UTF-8 byte-order mark for spreadsheet
        applications.

    Returns
    -------
    str
        Path to the created file.

    Raises
    ------
    InputValidationError
        If ``fmt`` is not supported.
    ImportError
        If XLSX is requested but ``openpyxl`` is not installed.
    """
    if fmt not in OUTPUT_FORMATS:
        raise InputValidationError(f"unsupported output format: {fmt}", field="output.format")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "csv":
        pd.DataFrame(rows).to_csv(
            path, index=False, header=False,
            encoding="utf-8-sig" if bom else "utf-8",
            lineterminator="\n",
        )
    elif fmt == "json":
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"rows": _convert_numpy(rows)}, f, indent=2, ensure_ascii=False)
    else:
        try:
            import openpyxl  # noqa: F401
        except ImportError:
            raise ImportError("openpyxl is required for Excel export: pip install openpyxl")
        pd.DataFrame(rows).to_excel(path, index=False, header=False, engine="openpyxl")

    logger.info(f"Wrote {len(rows)} rows to {path}")
    return str(path)
