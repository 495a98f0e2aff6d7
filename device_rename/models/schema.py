"""Pydantic v2 models for the device facts the reconciliation pipeline reads."""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

NAME_MAX_LENGTH = 63

_NAME_CHARSET_RE = re.compile(r"^[A-Za-z0-9-]+$")


class ChassisType(str, Enum):
    DESKTOP = "Desktop"
    LAPTOP = "Laptop"
    VIRTUAL_MACHINE = "VirtualMachine"
    UNKNOWN = "Unknown"

    @property
    def config_key(self) -> str:
        """Key used for this chassis class under ``naming.chassis_prefix``."""
        return {
            ChassisType.DESKTOP: "desktop",
            ChassisType.LAPTOP: "laptop",
            ChassisType.VIRTUAL_MACHINE: "virtual_machine",
            ChassisType.UNKNOWN: "unknown",
        }[self]


class ProvisioningPhase(str, Enum):
    NORMAL = "Normal"
    OUT_OF_BOX = "OutOfBoxExperience"


# ── directory membership ──────────────────────────────────────────────────────

class Workgroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["none"] = "none"

    def describe(self) -> str:
        return "workgroup (not directory-joined)"


class OnPremisesJoin(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["on_premises"] = "on_premises"
    domain_name: str

    def describe(self) -> str:
        return f"on-premises domain {self.domain_name}"


class CloudJoin(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["cloud"] = "cloud"
    tenant_id: str

    def describe(self) -> str:
        return f"cloud directory tenant {self.tenant_id}"


DirectoryState = Annotated[
    Union[Workgroup, OnPremisesJoin, CloudJoin],
    Field(discriminator="kind"),
]


# ── names ─────────────────────────────────────────────────────────────────────

def naming_violation(value: str) -> Optional[str]:
    """Return why *value* is not a usable computer name, or None if it is."""
    if not value:
        return "name is empty"
    if len(value) > NAME_MAX_LENGTH:
        return f"name is {len(value)} characters (maximum {NAME_MAX_LENGTH})"
    if value.isdigit():
        return "name consists only of digits"
    if not _NAME_CHARSET_RE.match(value):
        return "name contains characters other than letters, digits and hyphens"
    return None


class CanonicalName(BaseModel):
    """A candidate computer name derived from hardware identity.

    Building one never fails; ``violation`` reports whether the value breaks
    the naming rules so the decision engine can reject it.
    """

    model_config = ConfigDict(frozen=True)

    value: str

    @property
    def violation(self) -> Optional[str]:
        return naming_violation(self.value)

    @property
    def is_valid(self) -> bool:
        return self.violation is None

    def __str__(self) -> str:
        return self.value


# ── snapshot ──────────────────────────────────────────────────────────────────

class DeviceIdentitySnapshot(BaseModel):
    """Point-in-time facts about the device, captured fresh on every run."""

    model_config = ConfigDict(frozen=True)

    current_name: str
    hardware_tag: str = ""
    chassis: ChassisType = ChassisType.UNKNOWN
    directory: DirectoryState = Field(default_factory=Workgroup)
    provisioning_phase: ProvisioningPhase = ProvisioningPhase.NORMAL


# ── scheduled task ────────────────────────────────────────────────────────────

class ScheduledTaskSpec(BaseModel):
    """Registration record for the recurring reconciliation task."""

    model_config = ConfigDict(frozen=True)

    task_name: str
    program: str
    arguments: str = ""
    daily_at: str = "12:00"
    logon_delay_minutes: int = Field(default=0, ge=0)
    startup_delay_minutes: int = Field(default=0, ge=0)
    run_as: str = "SYSTEM"
    description: str = "Re-runs device-rename until the computer name converges."
