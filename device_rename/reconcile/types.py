"""Tagged outcomes of the rename decision, the rename itself, and a whole run."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Union

from ..models.schema import DeviceIdentitySnapshot


class ExitCode(IntEnum):
    SUCCESS = 0
    FAILURE = 1
    # Recognised by enrollment orchestrators as "reboot handled by the platform"
    RESTART_DEFERRED = 1641


# ── rename decisions ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NoOpAlreadyCorrect:
    current_name: str


@dataclass(frozen=True)
class NoOpInvalidCandidate:
    candidate: str
    reason: str


@dataclass(frozen=True)
class ApplyRename:
    new_name: str


RenameDecision = Union[NoOpAlreadyCorrect, NoOpInvalidCandidate, ApplyRename]


# ── execution results ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Completed:
    new_name: str
    restart_delay_seconds: int


@dataclass(frozen=True)
class CompletedDeferredExitForProvisioning:
    new_name: str


@dataclass(frozen=True)
class Failed:
    reason: str


ExecutionResult = Union[Completed, CompletedDeferredExitForProvisioning, Failed]


@dataclass(frozen=True)
class RunOutcome:
    """Everything a single pipeline run decided, for reporting and tests."""

    exit_code: ExitCode
    summary: str
    decision: RenameDecision | None = None
    result: ExecutionResult | None = None
    snapshot: DeviceIdentitySnapshot | None = None
    scheduler_ensured: bool = False
