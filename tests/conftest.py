"""Shared test fixtures for myophase test suite.

Provides reusable fake recordings (EMG, motion, force, manifest and
reference files) used across all test modules.
"""

import numpy as np
import pytest


def make_emg_stream(times, columns, scaling_factor=0, time_precision=2):
    """Build an EMGStream from already-scaled times and a dict of channels."""
    from myophase.schema import EMGStream

    names = list(columns)
    values = np.column_stack([np.asarray(columns[n], dtype=float) for n in names])
    return EMGStream(
        time=times,
        values=values,
        channels=names,
        time_precision=time_precision,
        scaling_factor=scaling_factor,
    )


def write_emg_csv(path, n_samples=201, step=0.01, bom=True):
    """EMG file with ``Ch1 = sample index`` and ``Ch2 = 2.0``.

    Times are ``0.00, 0.01, ...`` written at two decimals.
    """
    lines = ["time,Ch1,Ch2"]
    for i in range(n_samples):
        lines.append(f"{i * step:.2f},{i},2.0")
    data = ("\n".join(lines) + "\n").encode("utf-8")
    if bom:
        data = b"\xef\xbb\xbf" + data
    path.write_bytes(data)
    return path


def write_motion_csv(path, n_frames=600):
    lines = [
        "Trajectories",
        "250",
        "Subject",
        "index,HipX,HipY",
    ]
    for i in range(1, n_frames + 1):
        lines.append(f"{i},{i * 0.1:.1f},{i * 0.2:.1f}")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def anc_lines(n_samples=3, channels=("Fx", "Fy"), short_last=False):
    meta = [
        "File_Type:\tAnalog R/C ASCII\tGeneration#:\t1",
        "Board_Type:\tNational Instruments\tPolarity:\tBipolar",
        f"Trial_Name:\tjump01\tTrial#:\t1\tDuration(Sec.):\t{n_samples / 1000:.3f}"
        f"\t#Channels:\t{len(channels)}",
        "BitDepth:\t16\tPreciseRate:\t1000.000",
        "",
        "",
        "",
        "",
        "Name\t" + "\t".join(channels),
        "Rate\t" + "\t".join("1000" for _ in channels),
        "Range\t" + "\t".join("10000" for _ in channels),
        "",
    ]
    data = []
    for i in range(1, n_samples + 1):
        cells = [f"{i / 1000:.3f}"] + [f"{i * (k + 1):.1f}" for k in range(len(channels))]
        if short_last and i == n_samples:
            cells = cells[:-1]
        data.append("\t".join(cells))
    return meta + data


def write_anc(path, n_samples=2000):
    path.write_text("\n".join(anc_lines(n_samples)) + "\n", encoding="utf-8")
    return path


MANIFEST_HEADER = (
    "受試者,動作檔,力板檔,EMG檔,EMG對齊,P0,P1,P2,S,C,D,T0,T,O,L"
)


def manifest_row(subject="S01", emg="emg.csv", offset="100", **landmarks):
    """One manifest row; landmarks default to ``NA`` except S and D."""
    values = {"S": "0.896", "D": "350"}
    values.update({k: str(v) for k, v in landmarks.items()})
    names = ["P0", "P1", "P2", "S", "C", "D", "T0", "T", "O", "L"]
    cells = [subject, "motion.csv", "force.anc", emg, offset]
    cells += [values.get(n, "NA") for n in names]
    return ",".join(cells)


def write_manifest(path, rows):
    path.write_text("\n".join([MANIFEST_HEADER, *rows]) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def trial_dir(tmp_path):
    """Folder with a manifest, EMG, motion and force file for one subject.

    The S landmark (force time 0.896 s) and D (motion frame 350) resolve
    to EMG times 0.5 s and 1.0 s with an offset of 100 frames.
    """
    write_emg_csv(tmp_path / "emg.csv")
    write_motion_csv(tmp_path / "motion.csv")
    write_anc(tmp_path / "force.anc")
    write_manifest(tmp_path / "manifest.csv", [manifest_row()])
    return tmp_path
