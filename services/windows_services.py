"""Windows service startup and run-state reconciliation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from services.commands import (
    CommandRunner,
    SubprocessRunner,
    failure_detail,
    load_json_objects,
    powershell_command,
    ps_quote,
)
from services.errors import ServiceControlError

logger = logging.getLogger(__name__)

AUTOMATIC = "Automatic"
RUNNING = "Running"


@dataclass
class ServiceState:
    name: str
    start_type: str
    status: str
    actions: list[str] = field(default_factory=list)

    @property
    def is_automatic(self) -> bool:
        return self.start_type.lower() == AUTOMATIC.lower()

    @property
    def is_running(self) -> bool:
        return self.status.lower() == RUNNING.lower()


class ServiceController:
    """Service control primitives backed by PowerShell cmdlets."""

    def __init__(self, *, command_runner: CommandRunner | None = None) -> None:
        self._runner = command_runner or SubprocessRunner()

    def get(self, name: str) -> ServiceState | None:
        script = (
            f"$service = Get-Service -Name {ps_quote(name)} -ErrorAction SilentlyContinue; "
            "if ($service) { $service | Select-Object Name,"
            " @{n='StartType';e={$_.StartType.ToString()}}, @{n='Status';e={$_.Status.ToString()}}"
            " | ConvertTo-Json -Compress }; exit 0"
        )
        completed = self._runner.run(powershell_command(script))
        if completed.returncode != 0:
            raise ServiceControlError(f"Querying service {name} failed: {failure_detail(completed)}")
        try:
            items = load_json_objects(completed.stdout)
        except ValueError as exc:
            raise ServiceControlError(f"Unreadable service query output for {name}: {exc}") from exc
        if not items:
            return None
        item = items[0]
        return ServiceState(
            name=str(item.get("Name") or name),
            start_type=str(item.get("StartType") or ""),
            status=str(item.get("Status") or ""),
        )

    def set_startup_type(self, name: str, start_type: str) -> None:
        self._run_and_check(
            f"Set-Service -Name {ps_quote(name)} -StartupType {start_type} -ErrorAction Stop",
            f"Setting {name} startup type to {start_type}",
        )

    def start(self, name: str) -> None:
        self._run_and_check(
            f"Start-Service -Name {ps_quote(name)} -ErrorAction Stop",
            f"Starting {name}",
        )

    def _run_and_check(self, script: str, step: str) -> None:
        completed = self._runner.run(powershell_command(script))
        if completed.returncode != 0:
            raise ServiceControlError(f"{step} failed: {failure_detail(completed)}")


class ServiceReconciler:
    def __init__(self, *, controller: ServiceController | None = None) -> None:
        self._controller = controller or ServiceController()

    def ensure_running(self, name: str) -> ServiceState | None:
        state = self._controller.get(name)
        if state is None:
            logger.warning("Service %s not found; it may appear once its package is installed", name)
            return None
        if not state.is_automatic:
            logger.info("Service %s startup type is %s, setting to %s", name, state.start_type or "unknown", AUTOMATIC)
            self._controller.set_startup_type(name, AUTOMATIC)
            state.start_type = AUTOMATIC
            state.actions.append(f"set to {AUTOMATIC}")
        if state.is_running:
            logger.info("Service %s is already running", name)
            return state
        logger.info("Starting service %s (status: %s)", name, state.status or "unknown")
        self._controller.start(name)
        state.status = RUNNING
        state.actions.append("started")
        return state
