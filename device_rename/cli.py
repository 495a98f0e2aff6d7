"""Command-line interface and orchestration for device-rename."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import __version__
from .collectors.windows import _utils
from .config.agent_config import load_config
from .config.run_lock import RunLock
from .errors import InitializationError
from .reconcile.pipeline import ReconciliationPipeline
from .reconcile.types import ExitCode, RunOutcome
from .report.tag_file import write_tag_file
from .report.transcript import session_transcript


# ── argument parsing ──────────────────────────────────────────────────────────

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="device-rename",
        description=(
            "Rename this computer to its hardware-derived name and keep a "
            "scheduled task that re-runs until the name converges."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Exit codes:\n"
            "  0     success (renamed and restart scheduled, or nothing to do)\n"
            "  1     failure\n"
            "  1641  renamed during enrollment; restart left to the platform\n"
            "\n"
            "Examples:\n"
            "  device-rename\n"
            "  device-rename --test\n"
            "  device-rename --prefix DESKTOP-\n"
        ),
    )
    parser.add_argument(
        "--prefix",
        metavar="NAME",
        default=None,
        help="Only act when the current name starts with NAME (case-insensitive)",
    )
    parser.add_argument(
        "--test", "--dry-run",
        dest="test",
        action="store_true",
        default=False,
        help="Report the decision without renaming, scheduling, or writing files",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        default=None,
        help="YAML config file (default: DEVICE_RENAME_CONFIG or the local agent.yaml)",
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"device-rename {__version__}",
    )
    return parser.parse_args(argv)


def _print_summary(outcome: RunOutcome) -> None:
    label = {
        ExitCode.SUCCESS:          "OK",
        ExitCode.FAILURE:          "FAILED",
        ExitCode.RESTART_DEFERRED: "RESTART DEFERRED",
    }[outcome.exit_code]
    print(f"\n[device-rename] Done. {label} (exit {int(outcome.exit_code)}): {outcome.summary}")


# ── main entry point ──────────────────────────────────────────────────────────

def run(argv=None) -> int:
    """Run one reconciliation and return the process exit code."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, TypeError) as exc:
        print(f"[error] Could not load config: {exc}", file=sys.stderr)
        return int(ExitCode.FAILURE)

    name_prefix = args.prefix or config["filter"]["name_prefix"]

    if args.test:
        print("[device-rename] Test mode: computing the decision only, nothing is changed")
        outcome = ReconciliationPipeline(config, dry_run=True).run(name_prefix)
        _print_summary(outcome)
        return int(outcome.exit_code)

    paths = config["paths"]
    try:
        with session_transcript(Path(paths["transcript_dir"]), int(paths["keep_transcripts"])) as log:
            print(f"[device-rename] {__version__} starting; transcript {log}")
            if sys.platform == "win32" and not _utils.is_admin():
                print("  [warning] Not running elevated; rename and task registration will fail")
            write_tag_file(Path(paths["tag_file"]))

            with RunLock(Path(paths["lock_file"]), float(paths["lock_stale_minutes"])) as lock:
                if not lock.acquired:
                    print(
                        f"[device-rename] Another run (pid {lock.holder.get('pid')}) is in "
                        "progress; leaving this device to it"
                    )
                    return int(ExitCode.SUCCESS)
                outcome = ReconciliationPipeline(config).run(name_prefix)

            _print_summary(outcome)
            return int(outcome.exit_code)
    except (InitializationError, OSError) as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return int(ExitCode.FAILURE)


def main() -> None:
    sys.exit(run())
