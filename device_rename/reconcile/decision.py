"""Decide whether the current computer name has to change."""

from __future__ import annotations

from ..models.schema import CanonicalName
from .types import ApplyRename, NoOpAlreadyCorrect, NoOpInvalidCandidate, RenameDecision


def decide(current: str | None, candidate: CanonicalName) -> RenameDecision:
    """Compare *current* with *candidate*, case-insensitively.

    Pure and total: no side effects, never raises. An invalid candidate is
    reported before equality is considered, so a name that breaks the rules
    is surfaced even when the device already carries it.
    """
    reason = candidate.violation
    if reason is not None:
        return NoOpInvalidCandidate(candidate=candidate.value, reason=reason)
    if (current or "").strip().casefold() == candidate.value.casefold():
        return NoOpAlreadyCorrect(current_name=current or "")
    return ApplyRename(new_name=candidate.value)
