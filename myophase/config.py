"""Analysis configuration management.

Supports JSON and YAML config files for reproducible analyses.
Configuration is merged against ``DEFAULT_CONFIG`` so partial
overrides work seamlessly.

Functions
---------
load_config
    Load analysis config from a JSON or YAML file.
save_config
    Save analysis config to a JSON or YAML file.
validate_config
    Check value ranges and raise on the first invalid field.
default_config
    Fresh deep copy of ``DEFAULT_CONFIG``.

Attributes
----------
DEFAULT_CONFIG : dict
    Default configuration values for every processing stage.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Union

from .backpressure import default_worker_count
from .constants import (
    DEFAULT_PHASE_LABELS,
    DEFAULT_PRECISION,
    DEFAULT_SCALING_FACTOR,
    LARGE_FILE_MB,
    MAX_FILE_SIZE_MB,
)
from .errors import InputValidationError

logger = logging.getLogger(__name__)


DEFAULT_CONFIG = {
    "analysis": {
        "scaling_factor": DEFAULT_SCALING_FACTOR,
        "precision": DEFAULT_PRECISION,
        "phase_labels": list(DEFAULT_PHASE_LABELS),
    },
    "window": {
        "size": 100,
        "start_range": 0.0,
        "end_range": 0.0,
    },
    "output": {
        "format": "csv",
        "bom_enabled": True,
        "directory": "./output",
    },
    "input": {
        "directory": "./input",
        "reference_directory": "./value_operate",
    },
    "backpressure": {
        "enabled": True,
        "max_memory_mb": 1024,
        "max_workers": default_worker_count(),
        "memory_threshold": 0.8,
        "throttle_threshold": 0.9,
        "check_interval_s": 0.1,
        "max_wait_s": 5.0,
    },
    "files": {
        "max_file_size_mb": MAX_FILE_SIZE_MB,
        "large_file_mb": LARGE_FILE_MB,
    },
}

MAX_PHASE_LABELS = 50
MAX_LABEL_LENGTH = 100


def default_config() -> dict:
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(path: Union[str, Path]) -> dict:
    """Load analysis config from a JSON or YAML file.

    The loaded configuration is merged against ``DEFAULT_CONFIG``
    so partial overrides work correctly.

    Parameters
    ----------
    path : str or Path
        Path to config file (``.json`` or ``.yaml``/``.yml``).

    Returns
    -------
    dict
        Merged configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If the config file does not exist.
    ImportError
        If YAML is requested but ``pyyaml`` is not installed.
    ValueError
        If the file content is not a dict or a value is out of range.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML required for YAML configs: pip install pyyaml")
        with open(path, encoding="utf-8") as f:
            cfg = yaml.safe_load(f)
    else:
        with open(path, encoding="utf-8") as f:
            cfg = json.load(f)

    if not isinstance(cfg, dict):
        raise ValueError("Config must be a dict")

    merged = _deep_merge(default_config(), cfg)
    validate_config(merged)
    logger.info(f"Loaded config from {path}")
    return merged


def save_config(config: dict, path: Union[str, Path]) -> str:
    """Save analysis config to a JSON or YAML file.

    Returns
    -------
    str
        Path to the saved file.

    Raises
    ------
    ImportError
        If YAML is requested but ``pyyaml`` is not installed.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            import yaml
        except ImportError:
            raise ImportError("PyYAML required for YAML configs: pip install pyyaml")
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False,
                           allow_unicode=True)
    else:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2, ensure_ascii=False)

    logger.info(f"Saved config to {path}")
    return str(path)


def _require_int(value, field: str, lo: int, hi: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not lo <= value <= hi:
        raise InputValidationError(
            f"{field} must be an integer between {lo} and {hi}, got {value!r}", field=field
        )


def validate_config(config: dict) -> None:
    """Raise :class:`InputValidationError` on the first invalid value."""
    analysis = config.get("analysis", {})
    _require_int(analysis.get("scaling_factor"), "analysis.scaling_factor", 1, 20)
    _require_int(analysis.get("precision"), "analysis.precision", 0, 15)

    labels = analysis.get("phase_labels")
    if not isinstance(labels, list) or not 1 <= len(labels) <= MAX_PHASE_LABELS:
        raise InputValidationError(
            f"analysis.phase_labels must hold 1 to {MAX_PHASE_LABELS} labels",
            field="analysis.phase_labels",
        )
    for i, label in enumerate(labels):
        if not isinstance(label, str) or not label.strip():
            raise InputValidationError(
                f"phase label {i + 1} is empty", field="analysis.phase_labels"
            )
        if len(label) > MAX_LABEL_LENGTH:
            raise InputValidationError(
                f"phase label {i + 1} is longer than {MAX_LABEL_LENGTH} characters",
                field="analysis.phase_labels",
            )
        if any(ord(ch) < 32 or ord(ch) == 127 for ch in label):
            raise InputValidationError(
                f"phase label {i + 1} contains control characters",
                field="analysis.phase_labels",
            )

    window = config.get("window", {})
    _require_int(window.get("size"), "window.size", 1, 10 ** 9)
    start, end = window.get("start_range", 0.0), window.get("end_range", 0.0)
    if start < 0 or end < 0 or (end and start >= end):
        raise InputValidationError(
            f"window range must satisfy 0 <= start < end (or end = 0), got {start}..{end}",
            field="window.start_range",
        )

    fmt = config.get("output", {}).get("format")
    if fmt not in ("csv", "json", "xlsx"):
        raise InputValidationError(
            f"output.format must be csv, json or xlsx, got {fmt!r}", field="output.format"
        )

    bp = config.get("backpressure", {})
    if bp.get("max_memory_mb", 1) <= 0:
        raise InputValidationError("backpressure.max_memory_mb must be positive",
                                   field="backpressure.max_memory_mb")
    _require_int(bp.get("max_workers"), "backpressure.max_workers", 1, 1024)

    files = config.get("files", {})
    if files.get("max_file_size_mb", 1) <= 0:
        raise InputValidationError("files.max_file_size_mb must be positive",
                                   field="files.max_file_size_mb")
    if files.get("large_file_mb", 0) < 0:
        raise InputValidationError("files.large_file_mb must not be negative",
                                   field="files.large_file_mb")


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result
