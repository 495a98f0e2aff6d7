"""Session transcript: tee every status line of a run into a log file.

The transcript is a scoped resource. ``session_transcript`` opens it at run
start and closes it on every way out of the ``with`` block, so the footer is
written whether the run succeeded, failed or raised.
"""

from __future__ import annotations

import contextlib
import datetime
import io
import sys
from pathlib import Path

from .. import __version__
from ..errors import InitializationError

_PREFIX = "device-rename-"


class _Tee(io.TextIOBase):
    """Text stream that writes to several streams at once."""

    def __init__(self, *streams) -> None:
        super().__init__()
        self._streams = streams

    def write(self, s: str) -> int:
        for stream in self._streams:
            stream.write(s)
        return len(s)

    def flush(self) -> None:
        for stream in self._streams:
            stream.flush()


def prune_transcripts(directory: Path, keep: int) -> list[Path]:
    """Delete the oldest transcripts so at most *keep* remain; return the deleted paths."""
    logs = sorted(directory.glob(f"{_PREFIX}*.log"), key=lambda p: p.stat().st_mtime)
    removed = []
    for old in logs[:max(len(logs) - keep, 0)]:
        try:
            old.unlink()
            removed.append(old)
        except OSError:
            pass
    return removed


@contextlib.contextmanager
def session_transcript(directory: Path, keep: int = 20):
    """Tee stdout and stderr into a new timestamped file under *directory*.

    Yields the transcript path.

    Raises:
        InitializationError: the directory or file could not be created.
    """
    started = datetime.datetime.now(datetime.timezone.utc)
    try:
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        if keep > 0:
            prune_transcripts(directory, keep - 1)
        path = directory / f"{_PREFIX}{started.strftime('%Y%m%d-%H%M%S')}.log"
        fh = open(path, "a", encoding="utf-8")
    except OSError as exc:
        raise InitializationError(f"could not start transcript in {directory}: {exc}") from exc

    with fh:
        fh.write(f"**** Transcript started {started.isoformat()} (device-rename {__version__})\n")
        fh.flush()
        try:
            with contextlib.redirect_stdout(_Tee(sys.stdout, fh)), \
                    contextlib.redirect_stderr(_Tee(sys.stderr, fh)):
                yield path
        finally:
            ended = datetime.datetime.now(datetime.timezone.utc)
            fh.write(f"**** Transcript stopped {ended.isoformat()}\n")
