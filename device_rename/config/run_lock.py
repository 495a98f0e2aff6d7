"""Run lock for device-rename.

The scheduled task fires daily, at logon and at startup, so two invocations
can overlap (a logon shortly after boot). The lock makes such overlaps safe:
only one run at a time reads, renames and registers the task.

The lock file is a simple JSON object::

    {
      "pid": 4242,
      "started_utc": "2026-02-27T08:00:00+00:00"
    }

The state is written to a temporary file and hard-linked into place, so the
lock never appears half written. A lock whose owner process is gone, which is
older than the stale threshold, or which stays unreadable past a short grace
period is reclaimed so a run killed by the host never blocks later runs.
"""

from __future__ import annotations

import datetime
import json
import os
import time
from pathlib import Path

import psutil

# An unreadable lock younger than this belongs to a run still writing it
UNREADABLE_GRACE_SECONDS = 30


def _read_lock(path: Path) -> dict:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except Exception:
        return {}


def _age_seconds(path: Path) -> float:
    try:
        return time.time() - path.stat().st_mtime
    except FileNotFoundError:
        return float("inf")


def _is_stale(state: dict, stale_minutes: float) -> bool:
    pid = state.get("pid")
    if not isinstance(pid, int) or not psutil.pid_exists(pid):
        return True

    started_str = state.get("started_utc")
    if not started_str:
        return True
    try:
        started = datetime.datetime.fromisoformat(started_str)
    except ValueError:
        # Corrupt lock - reclaim so we self-heal
        return True
    if started.tzinfo is None:
        started = started.replace(tzinfo=datetime.timezone.utc)

    now = datetime.datetime.now(datetime.timezone.utc)
    return (now - started).total_seconds() / 60 >= stale_minutes


class RunLock:
    """Exclusive lock file held for the duration of one pipeline run.

    Use as a context manager; ``acquired`` tells whether this process owns it::

        with RunLock(path) as lock:
            if not lock.acquired:
                return
    """

    def __init__(self, path: Path, stale_minutes: float = 60) -> None:
        self.path = Path(path)
        self.stale_minutes = stale_minutes
        self.acquired = False
        self.holder: dict = {}

    def _publish(self) -> None:
        """Link a fully written state file into place; FileExistsError if held."""
        state = {
            "pid": os.getpid(),
            "started_utc": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        tmp = self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")
        tmp.write_text(json.dumps(state, indent=2), encoding="utf-8")
        try:
            os.link(tmp, self.path)
        finally:
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass

    def acquire(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for _ in range(2):
            try:
                self._publish()
            except FileExistsError:
                self.holder = _read_lock(self.path)
                if not self.holder and _age_seconds(self.path) < UNREADABLE_GRACE_SECONDS:
                    # Just created by a writer that has not finished yet
                    return False
                if self.holder and not _is_stale(self.holder, self.stale_minutes):
                    return False
                print(
                    f"  [run-lock] Reclaiming stale lock held by pid {self.holder.get('pid')}",
                    flush=True,
                )
                try:
                    self.path.unlink()
                except FileNotFoundError:
                    pass
                except PermissionError:
                    # Windows: the owner still has the file open
                    return False
                continue

            self.acquired = True
            return True
        return False

    def release(self) -> None:
        if not self.acquired:
            return
        try:
            self.path.unlink()
        except OSError as exc:
            print(f"  [run-lock] Warning: could not remove lock file: {exc}", flush=True)
        self.acquired = False

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
