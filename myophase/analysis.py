"""End-to-end analysis runs: parse inputs, compute, assemble, write.

Each ``run_*`` function takes file paths and a configuration dict (see
:mod:`myophase.config`), performs one analysis and writes its table to
the output directory.

Functions
---------
analyze_phase_sync
    Interval statistics between two landmarks of a manifest subject.
export_results
    Write interval statistics under their canonical file name.
load_trial
    Parse the motion, force and EMG files of a manifest subject.
find_data_files
    Glob a folder for data files.
validate_data_files
    Check that the files referenced by a manifest row exist.
run_max_mean
    Max-of-means over an EMG file.
run_normalize
    Reference normalization of an EMG file.
run_phase_analysis
    Phase-bucket statistics of an EMG file.
"""

import logging
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .backpressure import BackpressureConfig, BackpressureController, NullBackpressure
from .config import default_config
from .errors import InputValidationError
from .export import (
    max_mean_table,
    normalized_table,
    output_filename,
    phase_table,
    stats_table,
    with_format_suffix,
    write_table,
)
from .manifest import parse_manifest, validate_manifest
from .normalize import normalize
from .numeric import scale
from .parsers import parse_anc, parse_emg, parse_motion, parse_reference
from .phases import get_phase_time_range, validate_phase_order
from .progress import ProgressCallback
from .schema import EMGStream, ForceStream, Manifest, MotionStream, PhaseAnalysis, Request, Stats, WindowResult
from .stats import interval_stats, parse_phases, phase_buckets
from .sync import validate_time_sync
from .window import CancellationToken, max_mean

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MAX_MEAN_SUFFIX = "_最大平均值計算"
PHASE_SUFFIX = "_分期分析"
NORMALIZED_SUFFIX = "_標準化"


def _settings(config: Optional[dict]) -> dict:
    return config if config is not None else default_config()


def _file_limits(cfg: dict) -> dict:
    files = cfg["files"]
    return {"max_file_size_mb": files["max_file_size_mb"], "large_file_mb": files["large_file_mb"]}


def _output_path(output_dir: PathLike, name: str, cfg: dict) -> Path:
    fmt = cfg["output"]["format"]
    path = Path(output_dir) / name
    return path if fmt == "csv" else with_format_suffix(path, fmt)


def _write(rows, path: Path, cfg: dict) -> str:
    return write_table(rows, path, fmt=cfg["output"]["format"], bom=cfg["output"]["bom_enabled"])


def build_backpressure(config: Optional[dict] = None):
    """Admission controller described by the ``backpressure`` section."""
    cfg = _settings(config)["backpressure"]
    if not cfg.get("enabled", True):
        return NullBackpressure(cfg.get("max_workers"))
    return BackpressureController(BackpressureConfig.from_dict(cfg))


def resolve_data_path(data_folder: PathLike, name: str) -> Path:
    path = Path(name)
    if path.is_absolute():
        return path
    return Path(data_folder) / path


def resolve_input_path(path: PathLike, input_dir: Optional[PathLike]) -> Path:
    """Resolve a relative input path that does not exist against ``input_dir``.

    The path is returned unchanged when it exists, is absolute, or is not
    found under ``input_dir`` either.
    """
    path = Path(path)
    if path.is_absolute() or path.exists() or not input_dir:
        return path
    candidate = Path(input_dir) / path
    return candidate if candidate.exists() else path


# ── Phase-synchronized statistics ────────────────────────────────────────


def load_trial(
    data_folder: PathLike,
    manifest: Manifest,
    config: Optional[dict] = None,
) -> Tuple[MotionStream, ForceStream, EMGStream]:
    """Parse the three recordings of a manifest subject and check alignment."""
    cfg = _settings(config)
    k = cfg["analysis"]["scaling_factor"]
    limits = _file_limits(cfg)
    validate_data_files(data_folder, manifest)
    motion = parse_motion(resolve_data_path(data_folder, manifest.motion_file), k, **limits)
    force = parse_anc(resolve_data_path(data_folder, manifest.force_file), k, **limits)
    emg = parse_emg(resolve_data_path(data_folder, manifest.emg_file), k, **limits)
    validate_time_sync(motion, emg, manifest.emg_motion_offset)
    return motion, force, emg


def analyze_phase_sync(
    request: Request,
    config: Optional[dict] = None,
    check_sync: bool = False,
) -> Stats:
    """Per-channel mean and maximum between two landmarks.

    Parameters
    ----------
    request : Request
        Manifest path, data folder, landmark pair and subject index.
    config : dict, optional
        Configuration (defaults to ``DEFAULT_CONFIG``).
    check_sync : bool
        Also parse the motion and force files and check the EMG offset
        against them.

    Returns
    -------
    Stats
        Means and maxima in the scaled domain, landmark times in EMG
        seconds.

    Raises
    ------
    InputValidationError
        For an invalid subject index or manifest row.
    PhaseLookupError
        For unknown, unset or out-of-order landmarks.
    """
    cfg = _settings(config)
    k = cfg["analysis"]["scaling_factor"]
    t0 = time.time()

    manifests = parse_manifest(request.manifest_path, **_file_limits(cfg))
    if not 0 <= request.subject_index < len(manifests):
        raise InputValidationError(
            f"invalid subject index {request.subject_index} ({len(manifests)} subjects)",
            field="subject_index",
        )
    manifest = manifests[request.subject_index]
    validate_manifest(manifest)
    validate_phase_order(request.start_phase, request.end_phase)

    if check_sync:
        _, _, emg = load_trial(request.data_folder, manifest, cfg)
    else:
        emg_path = resolve_data_path(request.data_folder, manifest.emg_file)
        emg = parse_emg(emg_path, k, **_file_limits(cfg))

    phase_range = get_phase_time_range(
        manifest.landmarks, request.start_phase, request.end_phase, manifest.emg_motion_offset
    )
    window = emg.time_slice(scale(phase_range.start_time, k), scale(phase_range.end_time, k))
    stats = interval_stats(
        window,
        subject=manifest.subject,
        start_phase=request.start_phase,
        end_phase=request.end_phase,
        start_time=phase_range.start_time,
        end_time=phase_range.end_time,
    )
    logger.info(
        f"{manifest.subject}: {request.start_phase}->{request.end_phase} "
        f"({phase_range.start_time:.3f}s-{phase_range.end_time:.3f}s), "
        f"{window.n_samples} samples in {time.time() - t0:.2f}s"
    )
    return stats


def export_results(stats: Stats, output_dir: PathLike, config: Optional[dict] = None) -> str:
    """Write interval statistics to ``<subject>_<start>-<end>_statistics.csv``."""
    cfg = _settings(config)
    name = output_filename(stats.subject, stats.start_phase, stats.end_phase)
    rows = stats_table(stats, cfg["analysis"]["precision"])
    return _write(rows, _output_path(output_dir, name, cfg), cfg)


def find_data_files(folder: PathLike, patterns: Sequence[str]) -> List[str]:
    """Files in ``folder`` matching any of ``patterns``, without duplicates."""
    seen = set()
    files = []
    for pattern in patterns:
        for match in sorted(Path(folder).glob(pattern)):
            key = str(match)
            if key not in seen:
                seen.add(key)
                files.append(key)
    return files


def validate_data_files(data_folder: PathLike, manifest: Manifest) -> None:
    """Raise :class:`FileNotFoundError` for the first missing recording."""
    for label, name in (
        ("EMG", manifest.emg_file),
        ("motion", manifest.motion_file),
        ("force", manifest.force_file),
    ):
        path = resolve_data_path(data_folder, name)
        if not path.exists():
            raise FileNotFoundError(f"{label} file not found: {path}")


# ── Single-file analyses ─────────────────────────────────────────────────


def run_max_mean(
    path: PathLike,
    window_size: Optional[int] = None,
    start_range: Optional[float] = None,
    end_range: Optional[float] = None,
    config: Optional[dict] = None,
    output_dir: Optional[PathLike] = None,
    progress: Optional[ProgressCallback] = None,
    cancel: Optional[CancellationToken] = None,
) -> Tuple[List[WindowResult], str]:
    """Max-of-means of an EMG file, written next to ``output_dir``.

    Unset arguments fall back to the ``window`` section of the config.
    """
    cfg = _settings(config)
    k = cfg["analysis"]["scaling_factor"]
    window_size = window_size if window_size is not None else cfg["window"]["size"]
    start_range = start_range if start_range is not None else cfg["window"]["start_range"]
    end_range = end_range if end_range is not None else cfg["window"]["end_range"]
    path = resolve_input_path(path, cfg["input"]["directory"])

    stream = parse_emg(path, k, **_file_limits(cfg))
    controller = build_backpressure(cfg)
    results = max_mean(
        stream, window_size, start_range, end_range,
        backpressure=controller, progress=progress, cancel=cancel,
        max_workers=cfg["backpressure"]["max_workers"],
    )
    bp = controller.stats()
    logger.debug(
        f"Backpressure: peak {bp.peak_memory_bytes / 1e6:.1f} MB, "
        f"{bp.throttle_events} throttle events, {bp.throughput_jobs_per_s:.1f} jobs/s"
    )

    rows = max_mean_table(stream.headers, results, start_range, end_range,
                          cfg["analysis"]["precision"], k)
    out_dir = output_dir if output_dir is not None else cfg["output"]["directory"]
    name = f"{Path(path).stem}{MAX_MEAN_SUFFIX}.csv"
    return results, _write(rows, _output_path(out_dir, name, cfg), cfg)


def run_normalize(
    path: PathLike,
    reference_path: PathLike,
    config: Optional[dict] = None,
    output_dir: Optional[PathLike] = None,
) -> Tuple[EMGStream, str]:
    """Normalize an EMG file by a reference file and write the result."""
    cfg = _settings(config)
    k = cfg["analysis"]["scaling_factor"]
    limits = _file_limits(cfg)
    path = resolve_input_path(path, cfg["input"]["directory"])
    reference_path = resolve_input_path(reference_path, cfg["input"]["reference_directory"])
    stream = parse_emg(path, k, **limits)
    reference = parse_reference(reference_path, k, **limits)
    result = normalize(stream, reference)

    rows = normalized_table(result, cfg["analysis"]["precision"])
    out_dir = output_dir if output_dir is not None else cfg["output"]["directory"]
    name = f"{Path(path).stem}{NORMALIZED_SUFFIX}.csv"
    return result, _write(rows, _output_path(out_dir, name, cfg), cfg)


def run_phase_analysis(
    path: PathLike,
    phase_points: Sequence[str],
    config: Optional[dict] = None,
    output_dir: Optional[PathLike] = None,
) -> Tuple[PhaseAnalysis, str]:
    """Phase-bucket statistics of an EMG file between consecutive time points."""
    cfg = _settings(config)
    k = cfg["analysis"]["scaling_factor"]
    labels = cfg["analysis"]["phase_labels"]
    path = resolve_input_path(path, cfg["input"]["directory"])
    stream = parse_emg(path, k, **_file_limits(cfg))
    intervals = parse_phases(phase_points, k, labels)
    analysis = phase_buckets(stream, intervals, labels)

    rows = phase_table(analysis, cfg["analysis"]["precision"], stream.time_column)
    out_dir = output_dir if output_dir is not None else cfg["output"]["directory"]
    name = f"{Path(path).stem}{PHASE_SUFFIX}.csv"
    return analysis, _write(rows, _output_path(out_dir, name, cfg), cfg)
