"""Run the reconciliation stages in order and map the outcome to an exit code.

Stage order:
  1. name-prefix filter (mismatch ends the run successfully, nothing else runs)
  2. device facts: current (pending) name, session users, provisioning phase
  3. hardware identity -> candidate name
  4. naming-rule validation (local, checked before any directory query)
  5. directory membership, and reachability when on-premises
  6. rename decision
  7. rename execution
  8. recurring task, after every non-dry-run that passed the filter

Stages 3-7 fail closed: the first failure ends them, stage 8 still runs.
"""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path

from ..collectors.windows.device_identity import DeviceIdentityCollector
from ..errors import DeviceRenameError, SchedulerError
from ..models.schema import DeviceIdentitySnapshot, ProvisioningPhase
from .decision import decide
from .directory import DomainJoinDetector
from .executor import RenameExecutor
from .naming import HardwareIdentityResolver
from .scheduler import SelfHealingScheduler
from .types import (
    ApplyRename,
    Completed,
    CompletedDeferredExitForProvisioning,
    ExitCode,
    Failed,
    NoOpAlreadyCorrect,
    NoOpInvalidCandidate,
    RenameDecision,
    RunOutcome,
)


class ReconciliationPipeline:
    def __init__(
        self,
        config: dict,
        dry_run: bool = False,
        identity_collector=None,
        resolver=None,
        detector=None,
        executor=None,
        scheduler=None,
        self_path: Path | None = None,
    ) -> None:
        self.dry_run = dry_run
        self.identity_collector = identity_collector or DeviceIdentityCollector(
            config["provisioning"]["placeholder_users"]
        )
        self.resolver = resolver or HardwareIdentityResolver(config["naming"])
        self.detector = detector or DomainJoinDetector()
        self.executor = executor or RenameExecutor(config["restart"])
        self.scheduler = scheduler or SelfHealingScheduler(config["scheduler"])
        self.self_path = self_path

    # ── entry point ──────────────────────────────────────────────────────────

    def run(self, name_prefix: str | None = None) -> RunOutcome:
        print("  - device identity...", end=" ", flush=True)
        identity = self.identity_collector.collect()
        current = identity.data.get("current_name") or ""
        phase = identity.data.get("provisioning_phase") or ProvisioningPhase.NORMAL
        if identity.errors:
            print(f"partial ({'; '.join(identity.errors[:2])})")
        else:
            print("done")
        print(f"    current name: {current or '?'}; provisioning phase: {phase.value}")

        if name_prefix and not current.lower().startswith(name_prefix.lower()):
            summary = f"Name {current} does not start with {name_prefix}; nothing to do"
            print(f"  - {summary}")
            return RunOutcome(exit_code=ExitCode.SUCCESS, summary=summary)

        outcome = self._reconcile(current, phase)
        if self.dry_run:
            return outcome
        return self._ensure_scheduled(outcome)

    # ── stages 3-7 ───────────────────────────────────────────────────────────

    def _reconcile(self, current: str, phase: ProvisioningPhase) -> RunOutcome:
        try:
            print("  - hardware identity...", end=" ", flush=True)
            candidate = self.resolver.resolve()
            print(f"candidate {candidate}")

            if not candidate.is_valid:
                return self._conclude(decide(current, candidate))

            print("  - directory membership...", end=" ", flush=True)
            state = self.detector.detect()
            print(state.describe())

            snapshot = DeviceIdentitySnapshot(
                current_name=current,
                hardware_tag=self.resolver.hardware_tag,
                chassis=self.resolver.chassis,
                directory=state,
                provisioning_phase=phase,
            )
            self.detector.require_reachable(state)
        except DeviceRenameError as exc:
            print("FAILED")
            print(f"[error] {exc}", file=sys.stderr)
            return RunOutcome(exit_code=ExitCode.FAILURE, summary=str(exc))
        except Exception as exc:  # noqa: BLE001
            print("FAILED")
            print(f"[error] Unexpected {type(exc).__name__}: {exc}", file=sys.stderr)
            return RunOutcome(exit_code=ExitCode.FAILURE, summary=f"unexpected error: {exc}")

        return self._conclude(decide(current, candidate), snapshot, phase)

    def _conclude(
        self,
        decision: RenameDecision,
        snapshot: DeviceIdentitySnapshot | None = None,
        phase: ProvisioningPhase = ProvisioningPhase.NORMAL,
    ) -> RunOutcome:
        if isinstance(decision, NoOpInvalidCandidate):
            summary = f"Candidate name {decision.candidate!r} is unusable: {decision.reason}"
            if self.dry_run:
                print(f"  - [test] {summary}")
                return RunOutcome(ExitCode.SUCCESS, summary, decision, snapshot=snapshot)
            print(f"[error] {summary}", file=sys.stderr)
            return RunOutcome(ExitCode.FAILURE, summary, decision, snapshot=snapshot)

        if isinstance(decision, NoOpAlreadyCorrect):
            summary = f"Name {decision.current_name} is already correct"
            print(f"  - {summary}")
            return RunOutcome(ExitCode.SUCCESS, summary, decision, snapshot=snapshot)

        if not isinstance(decision, ApplyRename):
            raise TypeError(f"unknown rename decision {decision!r}")

        if self.dry_run:
            summary = f"Would rename {snapshot.current_name if snapshot else '?'} to {decision.new_name}"
            print(f"  - [test] {summary}")
            return RunOutcome(ExitCode.SUCCESS, summary, decision, snapshot=snapshot)

        print(f"  - renaming to {decision.new_name}...", end=" ", flush=True)
        result = self.executor.apply(decision, phase)

        if isinstance(result, Failed):
            print("FAILED")
            print(f"[error] {result.reason}", file=sys.stderr)
            return RunOutcome(ExitCode.FAILURE, result.reason, decision, result, snapshot)

        print("done")
        if isinstance(result, CompletedDeferredExitForProvisioning):
            summary = f"Renamed to {result.new_name}; restart left to the provisioning platform"
            print(f"  - {summary}")
            return RunOutcome(ExitCode.RESTART_DEFERRED, summary, decision, result, snapshot)

        if isinstance(result, Completed):
            summary = (
                f"Renamed to {result.new_name}; restart in "
                f"{result.restart_delay_seconds // 60} minutes"
            )
            print(f"  - {summary}")
            return RunOutcome(ExitCode.SUCCESS, summary, decision, result, snapshot)

        raise TypeError(f"unknown execution result {result!r}")

    # ── stage 8 ──────────────────────────────────────────────────────────────

    def _ensure_scheduled(self, outcome: RunOutcome) -> RunOutcome:
        print("  - recurring task...")
        try:
            self.scheduler.ensure_scheduled(self.self_path)
        except SchedulerError as exc:
            print(f"[error] {exc}", file=sys.stderr)
            if outcome.exit_code == ExitCode.SUCCESS:
                return replace(
                    outcome,
                    exit_code=ExitCode.FAILURE,
                    summary=f"{outcome.summary}; {exc}",
                )
            return outcome
        return replace(outcome, scheduler_ensured=True)
