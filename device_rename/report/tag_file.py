"""Write the installation tag file that inventory detection rules look for."""

from __future__ import annotations

import datetime
from pathlib import Path

from .. import __version__
from ..errors import InitializationError


def write_tag_file(path: Path) -> None:
    """Record the agent version and run time at *path*.

    Raises:
        InitializationError: the file could not be written.
    """
    path = Path(path)
    now_utc = datetime.datetime.now(datetime.timezone.utc).isoformat()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            f"Installed\nversion={__version__}\nlast_run_utc={now_utc}\n",
            encoding="utf-8",
        )
    except OSError as exc:
        raise InitializationError(f"could not write tag file '{path}': {exc}") from exc
