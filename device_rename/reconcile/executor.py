"""Apply a rename and choose between restart and deferred exit."""

from __future__ import annotations

from ..collectors.windows import actions as host_actions
from ..models.schema import ProvisioningPhase
from .types import (
    ApplyRename,
    Completed,
    CompletedDeferredExitForProvisioning,
    ExecutionResult,
    Failed,
)


class RenameExecutor:
    """Runs the rename primitive once; retries only happen on later runs.

    ``actions`` provides ``rename_computer`` and ``schedule_restart``; it
    defaults to the Windows implementations.
    """

    def __init__(self, restart: dict, actions=None) -> None:
        self.restart_delay = int(restart.get("delay_seconds", 600))
        self.restart_message = restart.get("message") or ""
        self.actions = actions or host_actions

    def apply(self, decision: ApplyRename, phase: ProvisioningPhase) -> ExecutionResult:
        try:
            self.actions.rename_computer(decision.new_name)
        except Exception as exc:
            return Failed(reason=f"rename to {decision.new_name} failed: {exc}")

        if phase is ProvisioningPhase.OUT_OF_BOX:
            # Rebooting mid-enrollment can break the provisioning session
            return CompletedDeferredExitForProvisioning(new_name=decision.new_name)

        try:
            self.actions.schedule_restart(self.restart_delay, self.restart_message)
        except Exception as exc:
            # The new name is already pending; it applies at the next restart
            print(f"  [rename] Warning: could not schedule restart: {exc}", flush=True)
        return Completed(new_name=decision.new_name, restart_delay_seconds=self.restart_delay)
