"""Appx package inspection and re-registration."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence, Union

from gaming_repair.constants import APPX_MANIFEST_NAME
from services.commands import (
    CommandRunner,
    SubprocessRunner,
    failure_detail,
    load_json_objects,
    powershell_command,
    ps_quote,
)
from services.errors import PackageQueryError, RegistrationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageRecord:
    name: str
    install_location: Path | None

    @property
    def manifest_path(self) -> Path | None:
        if self.install_location is None:
            return None
        return self.install_location / APPX_MANIFEST_NAME


@dataclass(frozen=True)
class ManifestReady:
    record: PackageRecord
    manifest_path: Path


@dataclass(frozen=True)
class ManifestUnavailable:
    record: PackageRecord
    reason: str


ManifestResolution = Union[ManifestReady, ManifestUnavailable]


@dataclass
class RegistrationReport:
    name: str
    registered: list[Path] = field(default_factory=list)
    skipped: list[ManifestUnavailable] = field(default_factory=list)

    @property
    def had_records(self) -> bool:
        return bool(self.registered or self.skipped)


def resolve_manifest(record: PackageRecord) -> ManifestResolution:
    manifest = record.manifest_path
    if manifest is None:
        return ManifestUnavailable(record, "package has no install location")
    if not manifest.exists():
        return ManifestUnavailable(record, f"manifest not found at {manifest}")
    return ManifestReady(record, manifest)


class PackageInspector:
    """Looks up installed Appx packages in the all-users and current-user scopes."""

    def __init__(self, *, command_runner: CommandRunner | None = None) -> None:
        self._runner = command_runner or SubprocessRunner()

    def find_packages(self, name: str) -> list[PackageRecord]:
        all_users = self._query(name, all_users=True)
        current_user = self._query(name, all_users=False)
        if not all_users:
            return _dedupe(current_user)
        return _dedupe([*all_users, *current_user])

    def _query(self, name: str, *, all_users: bool) -> list[PackageRecord]:
        scope = " -AllUsers" if all_users else ""
        script = (
            f"Get-AppxPackage{scope} -Name {ps_quote(name)} -ErrorAction SilentlyContinue"
            " | Select-Object Name, InstallLocation | ConvertTo-Json -Compress"
        )
        completed = self._runner.run(powershell_command(script))
        scope_label = "all users" if all_users else "current user"
        if completed.returncode != 0:
            raise PackageQueryError(f"Package query for {name} ({scope_label}) failed: {failure_detail(completed)}")
        try:
            items = load_json_objects(completed.stdout)
        except ValueError as exc:
            raise PackageQueryError(f"Unreadable package query output for {name}: {exc}") from exc
        records = [_record_from_json(item, name) for item in items]
        logger.debug("Found %d record(s) for %s (%s)", len(records), name, scope_label)
        return records


class PackageRegistrar:
    """Re-registers installed packages from their on-disk manifests."""

    def __init__(self, *, command_runner: CommandRunner | None = None) -> None:
        self._runner = command_runner or SubprocessRunner()

    def register_from_records(self, name: str, records: Sequence[PackageRecord]) -> RegistrationReport:
        report = RegistrationReport(name)
        if not records:
            logger.warning("%s: no installed package found, nothing to register", name)
            return report
        for record in records:
            resolution = resolve_manifest(record)
            if isinstance(resolution, ManifestUnavailable):
                logger.warning("%s: skipping registration, %s", name, resolution.reason)
                report.skipped.append(resolution)
                continue
            self._register(name, resolution.manifest_path)
            report.registered.append(resolution.manifest_path)
        return report

    def _register(self, name: str, manifest: Path) -> None:
        logger.info("%s: registering from %s", name, manifest)
        script = (
            "Add-AppxPackage -DisableDevelopmentMode -Register "
            f"{ps_quote(str(manifest))} -ErrorAction Stop"
        )
        completed = self._runner.run(powershell_command(script))
        if completed.returncode != 0:
            raise RegistrationError(f"Registering {name} from {manifest} failed: {failure_detail(completed)}")


def _record_from_json(item: dict, fallback_name: str) -> PackageRecord:
    location = item.get("InstallLocation")
    return PackageRecord(
        name=str(item.get("Name") or fallback_name),
        install_location=Path(location) if location else None,
    )


def _dedupe(records: Iterable[PackageRecord]) -> list[PackageRecord]:
    seen: set[PackageRecord] = set()
    unique: list[PackageRecord] = []
    for record in records:
        if record in seen:
            continue
        seen.add(record)
        unique.append(record)
    return unique
