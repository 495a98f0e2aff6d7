"""Keep a recurring reconciliation task registered so the device converges.

Registration is guarded only by the presence check below. Two runs that both
see the task missing could both try to create it; the CLI's run lock
serialises runs so that cannot happen through this program.
"""

from __future__ import annotations

import random
import sys
from pathlib import Path

from ..collectors.windows import actions as host_actions
from ..errors import SchedulerError
from ..models.schema import ScheduledTaskSpec

_MODULE_ARGUMENTS = "-m device_rename"


def locate_self() -> Path:
    """Return the file the current process was started from."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable)
    path = Path(sys.argv[0]).resolve()
    # pip console-script launchers report their path without the .exe suffix
    if not path.suffix and path.with_suffix(".exe").exists():
        path = path.with_suffix(".exe")
    return path


class SelfHealingScheduler:
    """Creates the task when absent and never touches an existing one.

    ``actions`` provides ``get_scheduled_task``, ``register_scheduled_task``
    and ``install_program``; it defaults to the Windows implementations.
    """

    def __init__(self, scheduler: dict, actions=None, rng: random.Random | None = None) -> None:
        self.task_name = scheduler["task_name"]
        self.daily_at = scheduler.get("daily_at", "12:00")
        self.logon_delay_max = int(scheduler.get("logon_delay_max_minutes", 30))
        self.startup_delay_max = int(scheduler.get("startup_delay_max_minutes", 30))
        self.install_dir = Path(scheduler["install_dir"])
        self.actions = actions or host_actions
        self.rng = rng or random.Random()

    def build_spec(self, program: str, arguments: str = "") -> ScheduledTaskSpec:
        return ScheduledTaskSpec(
            task_name=self.task_name,
            program=program,
            arguments=arguments,
            daily_at=self.daily_at,
            logon_delay_minutes=self.rng.randint(0, max(self.logon_delay_max, 0)),
            startup_delay_minutes=self.rng.randint(0, max(self.startup_delay_max, 0)),
        )

    def _payload(self, self_path: Path) -> tuple[str, str]:
        """Return (program, arguments) the task should run."""
        if self_path.suffix.lower() == ".exe":
            installed = self.actions.install_program(self_path, self.install_dir)
            return str(installed), ""
        # Running from source: the interpreter is the stable program
        return sys.executable, _MODULE_ARGUMENTS

    def ensure_scheduled(self, self_path: Path | None = None) -> bool:
        """Register the task if it does not exist yet.

        Returns:
            True if the task was created by this call, False if it was
            already present.

        Raises:
            SchedulerError: the task could not be queried, the program could
                not be installed, or registration failed.
        """
        try:
            existing = self.actions.get_scheduled_task(self.task_name)
        except Exception as exc:
            raise SchedulerError(f"could not query task {self.task_name}: {exc}") from exc

        if existing:
            print(f"  [scheduler] Task {self.task_name} already registered", flush=True)
            return False

        try:
            program, arguments = self._payload(self_path or locate_self())
        except Exception as exc:
            raise SchedulerError(f"could not install program to {self.install_dir}: {exc}") from exc

        spec = self.build_spec(program, arguments)
        try:
            self.actions.register_scheduled_task(spec)
        except Exception as exc:
            raise SchedulerError(f"could not register task {self.task_name}: {exc}") from exc

        print(
            f"  [scheduler] Registered {spec.task_name}: daily at {spec.daily_at}, "
            f"logon +{spec.logon_delay_minutes}m, startup +{spec.startup_delay_minutes}m",
            flush=True,
        )
        return True
