"""myophase -- Phase-synchronized EMG, motion and force analysis.

Quick start::

    from myophase import Request, analyze_phase_sync, export_results
    stats = analyze_phase_sync(Request("manifest.csv", "./data", "S", "T"))
    export_results(stats, "./output")

Max-of-means over a sliding window::

    from myophase import parse_emg, max_mean
    stream = parse_emg("emg.csv")
    results = max_mean(stream, window_size=100, start_range=1.0, end_range=3.0)

Phase buckets::

    from myophase import parse_phases, phase_buckets
    intervals = parse_phases(["0.5", "1.0", "1.5", "2.0", "2.5"], stream.scaling_factor)
    analysis = phase_buckets(stream, intervals)

Normalization::

    from myophase import parse_reference, normalize
    normalized = normalize(stream, parse_reference("mvc.csv"))

Clock conversions::

    from myophase import force_time_to_emg_time, motion_index_to_emg_time
    motion_index_to_emg_time(350, offset=100)   # 1.0
"""

__version__ = "0.3.1"

from .errors import (
    ErrorKind,
    MyophaseError,
    InputValidationError,
    FileFormatError,
    FileTooLargeError,
    ParseError,
    PhaseLookupError,
    InsufficientDataError,
    DivisionByZeroError,
    OperationCancelledError,
    is_recoverable,
)
from .numeric import parse_number, format_number, decimal_places, scale, descale
from .schema import (
    EMGStream,
    MotionStream,
    ForceStream,
    Manifest,
    Request,
    Stats,
    WindowResult,
    PhaseAnalysis,
    PhaseBucketResult,
    TimeRange,
    ReferenceValues,
)
from .parsers import parse_emg, parse_motion, parse_anc, parse_reference, check_file_size
from .manifest import parse_manifest, validate_manifest, load_subjects
from .sync import (
    motion_index_to_motion_time,
    motion_time_to_motion_index,
    motion_index_to_emg_time,
    emg_time_to_motion_index,
    force_time_to_motion_index,
    motion_index_to_force_time,
    force_time_to_emg_time,
    emg_time_to_force_time,
    synced_time_range,
    find_nearest_time_index,
    validate_time_sync,
)
from .phases import (
    get_phase_time_range,
    validate_phase_order,
    available_start_phases,
    available_end_phases,
    phase_info,
    format_phase_time,
)
from .backpressure import BackpressureConfig, BackpressureController, NullBackpressure
from .progress import ProgressInfo, ProgressTracker
from .window import CancellationToken, max_mean, channel_max_mean
from .stats import interval_stats, phase_buckets, parse_phases
from .normalize import normalize, validate_reference
from .export import (
    max_mean_table,
    stats_table,
    phase_table,
    normalized_table,
    format_statistics_report,
    output_filename,
    write_table,
)
from .analysis import (
    analyze_phase_sync,
    export_results,
    find_data_files,
    validate_data_files,
    run_max_mean,
    run_normalize,
    run_phase_analysis,
)
from .config import load_config, save_config, validate_config, DEFAULT_CONFIG

__all__ = [
    # Errors
    "ErrorKind", "MyophaseError", "InputValidationError", "FileFormatError",
    "FileTooLargeError", "ParseError", "PhaseLookupError", "InsufficientDataError",
    "DivisionByZeroError", "OperationCancelledError", "is_recoverable",
    # Numeric codec
    "parse_number", "format_number", "decimal_places", "scale", "descale",
    # Data model
    "EMGStream", "MotionStream", "ForceStream", "Manifest", "Request", "Stats",
    "WindowResult", "PhaseAnalysis", "PhaseBucketResult", "TimeRange", "ReferenceValues",
    # Parsers
    "parse_emg", "parse_motion", "parse_anc", "parse_reference", "check_file_size",
    "parse_manifest", "validate_manifest", "load_subjects",
    # Clocks
    "motion_index_to_motion_time", "motion_time_to_motion_index",
    "motion_index_to_emg_time", "emg_time_to_motion_index",
    "force_time_to_motion_index", "motion_index_to_force_time",
    "force_time_to_emg_time", "emg_time_to_force_time",
    "synced_time_range", "find_nearest_time_index", "validate_time_sync",
    # Landmarks
    "get_phase_time_range", "validate_phase_order", "available_start_phases",
    "available_end_phases", "phase_info", "format_phase_time",
    # Engine
    "BackpressureConfig", "BackpressureController", "NullBackpressure",
    "ProgressInfo", "ProgressTracker", "CancellationToken", "max_mean", "channel_max_mean",
    "interval_stats", "phase_buckets", "parse_phases", "normalize", "validate_reference",
    # Output
    "max_mean_table", "stats_table", "phase_table", "normalized_table",
    "format_statistics_report", "output_filename", "write_table",
    # Pipeline
    "analyze_phase_sync", "export_results", "find_data_files", "validate_data_files",
    "run_max_mean", "run_normalize", "run_phase_analysis",
    # Config
    "load_config", "save_config", "validate_config", "DEFAULT_CONFIG",
]
