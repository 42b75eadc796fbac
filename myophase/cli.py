"""Command-line interface for myophase.

Provides subcommands for phase-synchronized EMG analysis:

    myophase maxmean emg.csv --window 100 --start 1.0 --end 3.0
    myophase normalize emg.csv mvc.csv
    myophase phases emg.csv --phases 0.5 1.0 1.5 2.0 2.5
    myophase sync manifest.csv ./data --subject 0 --start S --end T
    myophase subjects manifest.csv
    myophase landmarks
"""

import argparse
import logging
import sys
from importlib.metadata import version as pkg_version, PackageNotFoundError


def _get_version() -> str:
    """Return package version without importing the full myophase package."""
    try:
        return pkg_version("myophase")
    except PackageNotFoundError:
        return "0.0.0+local"


def _setup_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config(args) -> dict:
    from .config import default_config, load_config

    cfg = load_config(args.config) if args.config else default_config()
    if args.output_dir:
        cfg["output"]["directory"] = args.output_dir
    return cfg


def _print_progress(info):
    print(f"  [{info.current_step}/{info.total_steps}] {info.status}")


def cmd_maxmean(args):
    """Best window of every channel of an EMG file."""
    from .analysis import run_max_mean
    from .numeric import format_number

    cfg = _load_config(args)
    results, path = run_max_mean(
        args.emg_file,
        window_size=args.window,
        start_range=args.start,
        end_range=args.end,
        config=cfg,
        progress=_print_progress if args.progress else None,
    )
    k = cfg["analysis"]["scaling_factor"]
    for r in results:
        print(f"{r.channel_name:<20} {format_number(r.max_mean, 6, k):>15} "
              f"({format_number(r.start_time, 3, k)}s - {format_number(r.end_time, 3, k)}s)")
    print(f"Saved to {path}")


def cmd_normalize(args):
    """Divide an EMG file by per-channel reference values."""
    from .analysis import run_normalize

    cfg = _load_config(args)
    stream, path = run_normalize(args.emg_file, args.reference_file, config=cfg)
    print(f"Normalized {stream.n_samples} samples x {stream.n_channels} channels")
    print(f"Saved to {path}")


def cmd_phases(args):
    """Max and mean of every channel inside consecutive phases."""
    from .analysis import run_phase_analysis
    from .config import validate_config

    cfg = _load_config(args)
    if args.labels:
        cfg["analysis"]["phase_labels"] = args.labels
        validate_config(cfg)
    analysis, path = run_phase_analysis(args.emg_file, args.phases, config=cfg)
    empty = sum(1 for p in analysis.phases if p.means and p.means[0] is None)
    print(f"{len(analysis.phases)} phases, {len(analysis.channels)} channels"
          + (f" ({empty} empty)" if empty else ""))
    print(f"Saved to {path}")


def cmd_sync(args):
    """Interval statistics between two landmarks of a manifest subject."""
    from .analysis import analyze_phase_sync, export_results
    from .export import format_statistics_report
    from .schema import Request

    cfg = _load_config(args)
    request = Request(
        manifest_path=args.manifest,
        data_folder=args.data_dir,
        start_phase=args.start,
        end_phase=args.end,
        subject_index=args.subject,
    )
    stats = analyze_phase_sync(request, config=cfg, check_sync=args.check_sync)
    print(format_statistics_report(stats), end="")
    path = export_results(stats, cfg["output"]["directory"], cfg)
    print(f"Saved to {path}")


def cmd_subjects(args):
    """List the subjects of a manifest."""
    from .manifest import parse_manifest
    from .phases import format_phase_time

    for i, m in enumerate(parse_manifest(args.manifest)):
        print(f"[{i}] {m.subject}  (EMG: {m.emg_file}, offset {m.emg_motion_offset})")
        if args.landmarks:
            for name, value in m.landmarks.items():
                shown = format_phase_time(name, value) if value else "-"
                print(f"      {name:<3} {shown}")


def cmd_landmarks(args):
    """Show the landmark names in sequential order."""
    from .phases import phase_info

    print(f"  {'Name':<5} {'Rank':<5} {'Clock':<7} Description")
    print(f"  {'-'*5} {'-'*5} {'-'*7} {'-'*20}")
    for name, info in phase_info().items():
        print(f"  {name:<5} {info['rank']:<5} {info['type']:<7} {info['description']}")


def main():
    parser = argparse.ArgumentParser(
        prog="myophase",
        description="Phase-synchronized EMG, motion and force analysis",
    )
    parser.add_argument("--version", action="version", version=f"myophase {_get_version()}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--config", help="Config file (JSON/YAML)")
    parser.add_argument("-o", "--output-dir", help="Output directory (overrides config)")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # maxmean
    p_max = sub.add_parser("maxmean", help="Maximum sliding-window mean per channel")
    p_max.add_argument("emg_file", help="Path to EMG CSV file")
    p_max.add_argument("-w", "--window", type=int, help="Window size in samples (default: config)")
    p_max.add_argument("--start", type=float, help="Range start in seconds")
    p_max.add_argument("--end", type=float, help="Range end in seconds (0 = end of file)")
    p_max.add_argument("--progress", action="store_true", help="Print per-channel progress")
    p_max.set_defaults(func=cmd_maxmean)

    # normalize
    p_norm = sub.add_parser("normalize", help="Divide EMG by reference values")
    p_norm.add_argument("emg_file", help="Path to EMG CSV file")
    p_norm.add_argument("reference_file", help="Reference CSV (first data row holds divisors)")
    p_norm.set_defaults(func=cmd_normalize)

    # phases
    p_ph = sub.add_parser("phases", help="Per-phase max and mean between time points")
    p_ph.add_argument("emg_file", help="Path to EMG CSV file")
    p_ph.add_argument("--phases", nargs="+", required=True, help="Phase boundary times in seconds")
    p_ph.add_argument("--labels", nargs="+", help="Phase labels (one fewer than time points)")
    p_ph.set_defaults(func=cmd_phases)

    # sync
    p_sync = sub.add_parser("sync", help="Statistics between two landmarks of a subject")
    p_sync.add_argument("manifest", help="Path to phase manifest CSV")
    p_sync.add_argument("data_dir", help="Folder holding the recordings")
    p_sync.add_argument("-s", "--subject", type=int, default=0, help="Subject index (default: 0)")
    p_sync.add_argument("--start", required=True, help="Start landmark (e.g. S)")
    p_sync.add_argument("--end", required=True, help="End landmark (e.g. T)")
    p_sync.add_argument("--check-sync", action="store_true",
                        help="Also load motion and force files and check alignment")
    p_sync.set_defaults(func=cmd_sync)

    # subjects
    p_subj = sub.add_parser("subjects", help="List subjects of a manifest")
    p_subj.add_argument("manifest", help="Path to phase manifest CSV")
    p_subj.add_argument("--landmarks", action="store_true", help="Also show landmark values")
    p_subj.set_defaults(func=cmd_subjects)

    # landmarks
    p_lm = sub.add_parser("landmarks", help="Show landmark names and order")
    p_lm.set_defaults(func=cmd_landmarks)

    args = parser.parse_args()
    _setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ImportError as e:
        print(f"Missing dependency: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
