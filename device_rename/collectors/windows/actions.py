"""Host mutation primitives: rename, restart, scheduled task, self-install.

Each function raises RuntimeError (from ``_utils``) or OSError on failure;
callers decide whether a failure is fatal.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from ...models.schema import ScheduledTaskSpec
from . import _utils

# Well-known SIDs so the ACL is independent of the OS display language
_SID_LOCAL_SYSTEM = "*S-1-5-18"
_SID_ADMINISTRATORS = "*S-1-5-32-544"


def rename_computer(new_name: str) -> None:
    """Set the pending computer name; takes effect at the next restart."""
    _utils.run_powershell(
        f"Rename-Computer -NewName {_utils.ps_quote(new_name)} -Force -WarningAction SilentlyContinue"
    )


def schedule_restart(delay_seconds: int, message: str) -> None:
    """Schedule a forced restart and show *message* to the signed-in user."""
    _utils.run_command([
        "shutdown.exe", "/r", "/f",
        "/t", str(int(delay_seconds)),
        "/c", message[:500],
    ])


# ── scheduled task ────────────────────────────────────────────────────────────

def get_scheduled_task(task_name: str) -> dict | None:
    """Return the registered task's summary, or None when it does not exist."""
    # A suppressed "not found" error still sets $? to false; exit 0 explicitly
    ps = _utils.run_powershell(
        f"$t = Get-ScheduledTask -TaskName {_utils.ps_quote(task_name)} "
        "-ErrorAction SilentlyContinue; "
        "if ($t) { $t | Select-Object TaskName,TaskPath,State | ConvertTo-Json }; "
        "exit 0"
    )
    items = _utils.loads_array(ps)
    return items[0] if items else None


def build_registration_script(spec: ScheduledTaskSpec) -> str:
    """Return the PowerShell that registers *spec* with its three triggers."""
    q = _utils.ps_quote
    action = f"$action = New-ScheduledTaskAction -Execute {q(spec.program)}"
    if spec.arguments:
        action += f" -Argument {q(spec.arguments)}"

    lines = [
        action,
        f"$daily = New-ScheduledTaskTrigger -Daily -At {q(spec.daily_at)}",
        "$logon = New-ScheduledTaskTrigger -AtLogOn",
        "$startup = New-ScheduledTaskTrigger -AtStartup",
    ]
    # Logon/startup triggers take a fixed Delay; the randomness is drawn per device
    if spec.logon_delay_minutes:
        lines.append(f"$logon.Delay = 'PT{spec.logon_delay_minutes}M'")
    if spec.startup_delay_minutes:
        lines.append(f"$startup.Delay = 'PT{spec.startup_delay_minutes}M'")
    lines += [
        f"$principal = New-ScheduledTaskPrincipal -UserId {q(spec.run_as)} "
        "-LogonType ServiceAccount -RunLevel Highest",
        "$settings = New-ScheduledTaskSettingsSet -StartWhenAvailable "
        "-AllowStartIfOnBatteries -DontStopIfGoingOnBatteries "
        "-ExecutionTimeLimit (New-TimeSpan -Hours 1)",
        f"Register-ScheduledTask -TaskName {q(spec.task_name)} "
        f"-Description {q(spec.description)} "
        "-Action $action -Trigger @($daily, $logon, $startup) "
        "-Principal $principal -Settings $settings | Out-Null",
    ]
    return "; ".join(lines)


def register_scheduled_task(spec: ScheduledTaskSpec) -> None:
    _utils.run_powershell(build_registration_script(spec))


# ── self-install ──────────────────────────────────────────────────────────────

def restrict_to_administrators(path: Path) -> None:
    """Replace inherited ACLs on *path* with SYSTEM + Administrators full control."""
    _utils.run_command([
        "icacls", str(path),
        "/inheritance:r",
        "/grant:r", f"{_SID_LOCAL_SYSTEM}:(OI)(CI)F",
        "/grant:r", f"{_SID_ADMINISTRATORS}:(OI)(CI)F",
        "/T", "/Q",
    ])


def install_program(source: Path, install_dir: Path) -> Path:
    """Copy *source* into *install_dir*, lock the directory down, return the copy."""
    install_dir.mkdir(parents=True, exist_ok=True)
    target = install_dir / source.name
    if source.resolve() != target.resolve():
        shutil.copy2(str(source), str(target))
    restrict_to_administrators(install_dir)
    return target
