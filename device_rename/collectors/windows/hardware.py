"""Collect the hardware identity facts used to derive the computer name."""

from __future__ import annotations

from ...models.schema import ChassisType
from ..base import BaseCollector
from . import _utils

# SMBIOS System Enclosure chassis-type codes
_DESKTOP_CHASSIS = {3, 4, 5, 6, 7, 13, 15, 16, 24, 34, 35, 36}
_LAPTOP_CHASSIS = {8, 9, 10, 11, 12, 14, 18, 21, 30, 31, 32}

# Substrings of Win32_ComputerSystem Manufacturer/Model reported by hypervisors
_VM_MARKERS = (
    "virtual machine",
    "vmware",
    "virtualbox",
    "qemu",
    "kvm",
    "xen",
    "parallels",
    "amazon ec2",
    "google compute engine",
)

# Values OEMs leave in the serial / asset tag fields when nothing was burned in
_PLACEHOLDER_TAGS = {
    "",
    "to be filled by o.e.m.",
    "default string",
    "system serial number",
    "chassis serial number",
    "not specified",
    "not applicable",
    "none",
    "n/a",
    "unknown",
    "no asset tag",
    "asset-1234567890",
}


def is_placeholder_tag(value: str | None) -> bool:
    return (value or "").strip().lower() in _PLACEHOLDER_TAGS


def classify_chassis(
    chassis_codes: list | None,
    manufacturer: str | None = None,
    model: str | None = None,
) -> ChassisType:
    """Map enclosure codes and system make/model to a chassis class.

    Hypervisor markers win over enclosure codes because most hypervisors
    report a generic desktop enclosure.
    """
    make_model = f"{manufacturer or ''} {model or ''}".lower()
    if any(marker in make_model for marker in _VM_MARKERS):
        return ChassisType.VIRTUAL_MACHINE

    for code in chassis_codes or []:
        try:
            code = int(code)
        except (TypeError, ValueError):
            continue
        if code in _LAPTOP_CHASSIS:
            return ChassisType.LAPTOP
        if code in _DESKTOP_CHASSIS:
            return ChassisType.DESKTOP
    return ChassisType.UNKNOWN


class HardwareIdentityCollector(BaseCollector):
    name = "windows.hardware_identity"

    def _collect(self) -> dict:
        bios = self._get_bios()
        enclosure = self._get_enclosure()
        system = self._get_system()

        codes = enclosure.get("ChassisTypes")
        if codes is not None and not isinstance(codes, list):
            codes = [codes]

        serial = (bios.get("SerialNumber") or "").strip()
        enclosure_serial = (enclosure.get("SerialNumber") or "").strip()
        if is_placeholder_tag(serial) and not is_placeholder_tag(enclosure_serial):
            serial = enclosure_serial

        return {
            "serial":       serial,
            "asset_tag":    (enclosure.get("SMBIOSAssetTag") or "").strip(),
            "manufacturer": (system.get("Manufacturer") or "").strip() or None,
            "model":        (system.get("Model") or "").strip() or None,
            "chassis":      classify_chassis(
                codes, system.get("Manufacturer"), system.get("Model")
            ),
        }

    # ── CIM queries ──────────────────────────────────────────────────────────

    def _get_bios(self) -> dict:
        try:
            ps = _utils.run_powershell(
                "Get-CimInstance Win32_BIOS "
                "| Select-Object SerialNumber "
                "| ConvertTo-Json"
            )
            return _utils.loads_obj(ps)
        except Exception as exc:
            self._note("bios", exc)
            return {}

    def _get_enclosure(self) -> dict:
        try:
            ps = _utils.run_powershell(
                "Get-CimInstance Win32_SystemEnclosure "
                "| Select-Object ChassisTypes,SMBIOSAssetTag,SerialNumber "
                "| ConvertTo-Json"
            )
            items = _utils.loads_array(ps)
            return items[0] if items and isinstance(items[0], dict) else {}
        except Exception as exc:
            self._note("enclosure", exc)
            return {}

    def _get_system(self) -> dict:
        try:
            ps = _utils.run_powershell(
                "Get-CimInstance Win32_ComputerSystem "
                "| Select-Object Manufacturer,Model "
                "| ConvertTo-Json"
            )
            return _utils.loads_obj(ps)
        except Exception as exc:
            self._note("system", exc)
            return {}
