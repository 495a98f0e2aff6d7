"""Collect the device's current name and interactive-session facts."""

from __future__ import annotations

import os
import socket

import psutil

from ...models.schema import ProvisioningPhase
from ..base import BaseCollector
from . import _utils

DEFAULT_PLACEHOLDER_USERS = ("defaultuser0", "defaultuser1")


def _bare_username(name: str) -> str:
    """Strip a ``DOMAIN\\`` prefix or ``@upn`` suffix from a user name."""
    name = name.strip()
    if "\\" in name:
        name = name.rsplit("\\", 1)[1]
    if "@" in name:
        name = name.split("@", 1)[0]
    return name


def detect_provisioning_phase(
    session_users: list[str],
    placeholder_users=DEFAULT_PLACEHOLDER_USERS,
) -> ProvisioningPhase:
    """Return OUT_OF_BOX when any session belongs to an OOBE placeholder account."""
    placeholders = {u.lower() for u in placeholder_users}
    for user in session_users:
        if _bare_username(user).lower() in placeholders:
            return ProvisioningPhase.OUT_OF_BOX
    return ProvisioningPhase.NORMAL


class DeviceIdentityCollector(BaseCollector):
    name = "windows.device_identity"

    def __init__(self, placeholder_users=DEFAULT_PLACEHOLDER_USERS) -> None:
        super().__init__()
        self.placeholder_users = tuple(placeholder_users)

    def _collect(self) -> dict:
        active_name = os.environ.get("COMPUTERNAME") or socket.gethostname().split(".")[0]
        # The pending name is what the device will be called after the next
        # reboot; it equals the active name unless a rename is outstanding.
        pending_name = self._get_pending_name() or active_name
        users = self._get_session_users()
        return {
            "current_name":       pending_name,
            "active_name":        active_name,
            "session_users":      users,
            "provisioning_phase": detect_provisioning_phase(users, self.placeholder_users),
        }

    def _get_pending_name(self) -> str | None:
        try:
            ps = _utils.run_powershell(
                "Get-ItemProperty "
                "'HKLM:\\SYSTEM\\CurrentControlSet\\Control\\ComputerName\\ComputerName' "
                "| Select-Object ComputerName "
                "| ConvertTo-Json"
            )
            return (_utils.loads_obj(ps).get("ComputerName") or "").strip() or None
        except Exception as exc:
            self._note("pending_name", exc)
            return None

    def _get_session_users(self) -> list[str]:
        users: list[str] = []
        try:
            for session in psutil.users():
                if session.name and session.name not in users:
                    users.append(session.name)
        except Exception as exc:
            self._note("psutil_users", exc)

        # Console owner as seen by WMI; covers OOBE sessions psutil can miss
        try:
            ps = _utils.run_powershell(
                "Get-CimInstance Win32_ComputerSystem "
                "| Select-Object UserName "
                "| ConvertTo-Json"
            )
            console = (_utils.loads_obj(ps).get("UserName") or "").strip()
            if console and console not in users:
                users.append(console)
        except Exception as exc:
            self._note("console_user", exc)
        return users
