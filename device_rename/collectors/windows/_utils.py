"""Windows-specific utility functions."""

import ctypes
import json
import subprocess
import sys


def is_admin() -> bool:
    """Return True if the current process has administrator privileges."""
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except Exception:
        return False


def ps_quote(value: str) -> str:
    """Return value as a single-quoted PowerShell string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def loads_array(ps_output: str) -> list:
    """Parse PowerShell JSON output; always return a list."""
    if not ps_output.strip():
        return []
    data = json.loads(ps_output)
    return data if isinstance(data, list) else [data]


def loads_obj(ps_output: str) -> dict:
    if not ps_output.strip():
        return {}
    data = json.loads(ps_output)
    return data if isinstance(data, dict) else {}


def _decode(raw: bytes) -> str:
    """Decode subprocess bytes with UTF-8; fall back to cp1252 then replace."""
    for enc in ("utf-8-sig", "utf-8", "cp1252"):
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue
    return raw.decode("utf-8", errors="replace")


def run_powershell(cmd: str, timeout: int = 60) -> str:
    """Run a PowerShell command and return stdout as a string.

    Raises RuntimeError on non-zero exit code.
    """
    # Force UTF-8 output encoding so JSON is readable regardless of system locale
    full_cmd = (
        "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8; "
        "$ErrorActionPreference = 'Stop'; "
        + cmd
    )

    kwargs: dict = {
        "args": [
            "powershell",
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy", "Bypass",
            "-Command", full_cmd,
        ],
        "capture_output": True,
        "timeout": timeout,
    }
    if sys.platform == "win32":
        kwargs["creationflags"] = 0x08000000  # CREATE_NO_WINDOW

    result = subprocess.run(**kwargs)
    stdout = _decode(result.stdout).strip()
    stderr = _decode(result.stderr).strip()

    if result.returncode != 0:
        raise RuntimeError(stderr or f"PowerShell exited with code {result.returncode}")
    return stdout


def run_command(cmd: list[str], timeout: int = 30) -> str:
    """Run an arbitrary subprocess command and return stdout.

    Raises RuntimeError on non-zero exit code.
    """
    kwargs: dict = {
        "args": cmd,
        "capture_output": True,
        "timeout": timeout,
    }
    if sys.platform == "win32":
        kwargs["creationflags"] = 0x08000000  # CREATE_NO_WINDOW
    result = subprocess.run(**kwargs)
    stdout = _decode(result.stdout).strip()
    if result.returncode != 0:
        stderr = _decode(result.stderr).strip()
        raise RuntimeError(stderr or stdout or f"{cmd[0]} exited with code {result.returncode}")
    return stdout
