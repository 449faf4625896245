"""Idempotent convergence pass over the fixed gaming stack targets."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable

from gaming_repair.constants import ComponentSpec, RedistributableSpec, RunConfig, ServiceSpec
from services.errors import ElevationError, GamingRepairError, RegistrationError, WingetUnavailableError
from services.installer import PackageInstaller
from services.packages import PackageInspector, PackageRegistrar
from services.privilege import ElevationCheck, ensure_elevated, is_admin
from services.windows_services import ServiceReconciler

logger = logging.getLogger(__name__)

FATAL_ERRORS = (ElevationError, WingetUnavailableError)


class RunResult(enum.Enum):
    ALREADY_SATISFIED = "already satisfied"
    INSTALLED = "installed"
    REPAIRED = "repaired"
    INSTALL_SKIPPED_NO_SOURCE = "missing, no install source"
    REGISTER_FAILED = "registration failed"
    REGISTER_SKIPPED_NO_MANIFEST = "registration skipped, manifest missing"


@dataclass
class ComponentOutcome:
    label: str
    result: RunResult | None
    detail: str = ""

    @property
    def success(self) -> bool:
        return self.result in {RunResult.ALREADY_SATISFIED, RunResult.INSTALLED, RunResult.REPAIRED}


class ReconciliationEngine:
    """Drives each configured target toward present, registered and running.

    Every run re-derives state from live queries, so running it again
    after a successful pass performs no installs. Only ``ElevationError``
    and ``WingetUnavailableError`` abort the run; other failures are
    logged at the component boundary and the pass moves on.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        inspector: PackageInspector | None = None,
        registrar: PackageRegistrar | None = None,
        installer: PackageInstaller | None = None,
        service_reconciler: ServiceReconciler | None = None,
        elevation_check: ElevationCheck = is_admin,
    ) -> None:
        self._config = config
        self._inspector = inspector or PackageInspector()
        self._registrar = registrar or PackageRegistrar()
        self._installer = installer or PackageInstaller()
        self._services = service_reconciler or ServiceReconciler()
        self._elevation_check = elevation_check

    def run(self) -> list[ComponentOutcome]:
        ensure_elevated(self._elevation_check)
        outcomes: list[ComponentOutcome] = []
        for spec in self._config.components:
            outcomes.append(self._guarded(spec.label, lambda spec=spec: self._component_outcome(spec)))
        for service in self._config.services:
            outcomes.append(self._guarded(service.label, lambda service=service: self._service_outcome(service)))
        for redist in self._config.redistributables:
            outcomes.append(self._guarded(redist.label, lambda redist=redist: self._redistributable_outcome(redist)))
        self._log_summary(outcomes)
        return outcomes

    def ensure_component(self, spec: ComponentSpec) -> RunResult:
        logger.info("Checking %s (%s)", spec.label, spec.name)
        records = self._inspector.find_packages(spec.name)
        installed = False
        if not records:
            if not spec.source_id:
                logger.warning("%s is not installed and has no install source; skipping", spec.label)
                return RunResult.INSTALL_SKIPPED_NO_SOURCE
            self._installer.install_from_source(spec.source_id, spec.label, source=spec.source)
            installed = True
        else:
            logger.info("%s is installed (%d record(s))", spec.label, len(records))

        fresh_records = self._inspector.find_packages(spec.name)
        if installed and not fresh_records:
            logger.warning("%s is still not visible after install; it will be checked again on the next run", spec.label)
        try:
            report = self._registrar.register_from_records(spec.name, fresh_records)
        except RegistrationError as exc:
            logger.error("%s: %s", spec.label, exc)
            return RunResult.REGISTER_FAILED
        if report.skipped:
            return RunResult.REGISTER_SKIPPED_NO_MANIFEST
        if installed:
            return RunResult.INSTALLED
        return RunResult.ALREADY_SATISFIED

    def _component_outcome(self, spec: ComponentSpec) -> ComponentOutcome:
        result = self.ensure_component(spec)
        return ComponentOutcome(spec.label, result, result.value)

    def _service_outcome(self, service: ServiceSpec) -> ComponentOutcome:
        logger.info("Checking service %s (%s)", service.label, service.name)
        state = self._services.ensure_running(service.name)
        if state is None:
            return ComponentOutcome(service.label, None, "service not found")
        if state.actions:
            return ComponentOutcome(service.label, RunResult.REPAIRED, ", ".join(state.actions))
        return ComponentOutcome(service.label, RunResult.ALREADY_SATISFIED, "already running")

    def _redistributable_outcome(self, redist: RedistributableSpec) -> ComponentOutcome:
        result = self._installer.install_from_source(redist.source_id, redist.label, source=redist.source)
        if result.already_installed:
            return ComponentOutcome(redist.label, RunResult.ALREADY_SATISFIED, "already installed")
        if result.succeeded:
            return ComponentOutcome(redist.label, RunResult.INSTALLED, "winget finished")
        return ComponentOutcome(redist.label, None, f"winget exit={result.returncode}")

    def _guarded(self, label: str, action: Callable[[], ComponentOutcome]) -> ComponentOutcome:
        try:
            return action()
        except FATAL_ERRORS:
            raise
        except (GamingRepairError, OSError) as exc:
            logger.error("%s: %s", label, exc)
            return ComponentOutcome(label, None, str(exc))

    def _log_summary(self, outcomes: list[ComponentOutcome]) -> None:
        degraded = [outcome for outcome in outcomes if not outcome.success]
        logger.info("Summary:")
        for outcome in outcomes:
            status = "OK" if outcome.success else "ATTENTION"
            logger.info("  [%s] %s - %s", status, outcome.label, outcome.detail)
        if degraded:
            logger.warning("%d item(s) need attention; re-run after resolving the warnings above.", len(degraded))
        else:
            logger.info("All components are in the desired state.")
