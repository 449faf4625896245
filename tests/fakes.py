from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Sequence

from services.installer import CommandExecutionResult
from services.packages import ManifestUnavailable, PackageRecord, RegistrationReport, resolve_manifest
from services.windows_services import ServiceState


class FakeRunner:
    """Answers PowerShell commands by the first matching script fragment."""

    def __init__(self, responses: dict[str, tuple[int, str, str]] | None = None) -> None:
        self.responses = responses or {}
        self.commands: list[Sequence[str]] = []

    def run(self, command: Sequence[str]) -> subprocess.CompletedProcess[str]:
        self.commands.append(tuple(command))
        script = command[-1]
        for fragment, (code, stdout, stderr) in self.responses.items():
            if fragment in script:
                return subprocess.CompletedProcess(command, code, stdout, stderr)
        return subprocess.CompletedProcess(command, 0, "", "")

    def scripts(self) -> list[str]:
        return [command[-1] for command in self.commands]


def appx_json(*locations: Path | str, name: str = "Microsoft.GamingApp") -> str:
    items = [{"Name": name, "InstallLocation": str(location)} for location in locations]
    if len(items) == 1:
        return json.dumps(items[0])
    return json.dumps(items)


def make_install_dir(root: Path, name: str, *, with_manifest: bool = True) -> Path:
    location = root / name
    location.mkdir(parents=True, exist_ok=True)
    if with_manifest:
        (location / "AppxManifest.xml").write_text("<Package />", encoding="utf-8")
    return location


class FakeInspector:
    """In-memory package table shared with FakeInstaller."""

    def __init__(self, packages: dict[str, list[PackageRecord]] | None = None) -> None:
        self.packages = packages or {}
        self.queries: list[str] = []

    def find_packages(self, name: str) -> list[PackageRecord]:
        self.queries.append(name)
        return list(self.packages.get(name, []))


class FakeRegistrar:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, list[PackageRecord]]] = []
        self.error = error

    def register_from_records(self, name: str, records: Sequence[PackageRecord]) -> RegistrationReport:
        self.calls.append((name, list(records)))
        if self.error:
            raise self.error
        report = RegistrationReport(name)
        for record in records:
            resolution = resolve_manifest(record)
            if isinstance(resolution, ManifestUnavailable):
                report.skipped.append(resolution)
            else:
                report.registered.append(resolution.manifest_path)
        return report


class FakeInstaller:
    def __init__(
        self,
        inspector: FakeInspector | None = None,
        *,
        install_root: Path | None = None,
        error: Exception | None = None,
        returncode: int = 0,
    ) -> None:
        self.inspector = inspector
        self.install_root = install_root
        self.error = error
        self.returncode = returncode
        self.calls: list[tuple[str, str, str | None]] = []
        self.package_names: dict[str, str] = {}

    def install_from_source(self, source_id: str, label: str, *, source: str | None = None) -> CommandExecutionResult:
        self.calls.append((source_id, label, source))
        if self.error:
            raise self.error
        name = self.package_names.get(source_id)
        if name and self.inspector is not None and self.install_root is not None:
            location = make_install_dir(self.install_root, name)
            self.inspector.packages.setdefault(name, []).append(PackageRecord(name, location))
        return CommandExecutionResult(["winget", "install", "--id", source_id], self.returncode, "", "")


class FakeServiceReconciler:
    def __init__(self, states: dict[str, ServiceState] | None = None) -> None:
        self.states = states or {}
        self.calls: list[str] = []

    def ensure_running(self, name: str) -> ServiceState | None:
        self.calls.append(name)
        state = self.states.get(name)
        if state is None:
            return None
        if state.start_type != "Automatic":
            state.start_type = "Automatic"
            state.actions.append("set to Automatic")
        if state.status != "Running":
            state.status = "Running"
            state.actions.append("started")
        return state
