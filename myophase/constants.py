"""Sampling clocks, landmark definitions and output labels."""

# ── Sampling clocks ──────────────────────────────────────────────────────

MOTION_RATE_HZ = 250.0

DEFAULT_SCALING_FACTOR = 10
DEFAULT_PRECISION = 10
DEFAULT_TIME_PRECISION = 2
PRECISION_SCAN_ROWS = 10

MAX_WORKERS = 16

# ── Missing-value sentinels ──────────────────────────────────────────────
# Cells holding one of these decode to zero instead of failing.

MISSING_SENTINELS = frozenset({"", "NA", "N/A", "x", "X", "-"})

# ── Landmarks ────────────────────────────────────────────────────────────
# Canonical sequential order of the jump landmarks.

LANDMARK_NAMES = ["P0", "P1", "P2", "S", "C", "D", "T0", "T", "O", "L"]

# D and O are recorded as motion-capture frame indices, the rest in
# force-plate seconds.
MOTION_INDEX_LANDMARKS = frozenset({"D", "O"})
FORCE_TIME_LANDMARKS = [n for n in LANDMARK_NAMES if n not in MOTION_INDEX_LANDMARKS]

LANDMARK_RANK = {name: i + 1 for i, name in enumerate(LANDMARK_NAMES)}

LANDMARK_TYPE_MOTION = "motion"
LANDMARK_TYPE_FORCE = "force"

LANDMARK_DESCRIPTIONS = {
    "P0": "準備期開始",
    "P1": "準備期第一階段",
    "P2": "準備期第二階段",
    "S": "啟動瞬間",
    "C": "下蹲加速減速轉換瞬間",
    "D": "下蹲結束時間",
    "T0": "正沖涼結束時間",
    "T": "起跳瞬間",
    "O": "展體轉間",
    "L": "著地瞬間",
}

# ── Manifest layout ──────────────────────────────────────────────────────

MANIFEST_COLUMNS = [
    "subject", "motion_file", "force_file", "emg_file", "emg_motion_offset",
    *LANDMARK_NAMES,
]

# ── Input layouts ────────────────────────────────────────────────────────

MOTION_HEADER_ROW = 3
ANC_METADATA_LINES = 12

# ── Phase-bucket defaults ────────────────────────────────────────────────

DEFAULT_PHASE_LABELS = ["啟跳下蹲階段", "啟跳上升階段", "團身階段", "下降階段"]

# ── Output labels ────────────────────────────────────────────────────────

LABEL_START_RANGE = "開始範圍秒數"
LABEL_END_RANGE = "結束範圍秒數"
LABEL_START_CALC = "開始計算秒數"
LABEL_END_CALC = "結束計算秒數"
LABEL_MAX_MEAN = "最大平均值"

LABEL_START_PHASE = "開始分期點"
LABEL_START_TIME = "開始時間"
LABEL_END_PHASE = "結束分期點"
LABEL_END_TIME = "結束時間"
LABEL_MEAN = "平均值"
LABEL_MAX = "最大值"

LABEL_GLOBAL_MAX_TIME = "整個階段最大值出現在_秒"
MISSING_CELL = "N/A"

UTF8_BOM = b"\xef\xbb\xbf"
UNSAFE_FILENAME_CHARS = '/\\:*?"<>| '

# ── File-size limits ─────────────────────────────────────────────────────

MAX_FILE_SIZE_MB = 2048
LARGE_FILE_MB = 200
