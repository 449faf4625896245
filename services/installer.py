"""winget-backed package installation."""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from services.errors import WingetError, WingetUnavailableError

logger = logging.getLogger(__name__)

WINGET_MISSING_MESSAGE = (
    "winget is required to install {label} but was not found. "
    "Install or update 'App Installer' from the Microsoft Store and re-run."
)

# winget exit codes meaning the package is already present
WINGET_UPDATE_NOT_APPLICABLE = -1978335189  # 0x8A15002B
WINGET_PACKAGE_ALREADY_INSTALLED = -1978335135  # 0x8A150061
WINGET_ALREADY_INSTALLED_CODES = frozenset({WINGET_UPDATE_NOT_APPLICABLE, WINGET_PACKAGE_ALREADY_INSTALLED})


@dataclass
class CommandExecutionResult:
    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def already_installed(self) -> bool:
        return self.returncode in WINGET_ALREADY_INSTALLED_CODES

    @property
    def output(self) -> str:
        return "\n".join(part.strip() for part in (self.stdout, self.stderr) if part and part.strip())


class PackageInstallerClient(Protocol):
    def is_available(self) -> bool:  # pragma: no cover - protocol
        ...

    def install_package(
        self,
        package_id: str,
        *,
        source: str | None = None,
        silent: bool = True,
    ) -> CommandExecutionResult:  # pragma: no cover - protocol
        ...

    def update_sources(self) -> CommandExecutionResult | None:  # pragma: no cover - protocol
        ...


class WingetClient:
    """Thin wrapper around the winget CLI."""

    def __init__(self, executable: str | None = None):
        exe_path = executable or shutil.which("winget")
        if not exe_path:
            fallback = self._find_winget_fallback()
            exe_path = str(fallback) if fallback else None
        self._executable = Path(exe_path) if exe_path else None

    def is_available(self) -> bool:
        return self._executable is not None

    def install_package(
        self,
        package_id: str,
        *,
        source: str | None = None,
        silent: bool = True,
    ) -> CommandExecutionResult:
        cmd = self._build_base_command("install", package_id, source)
        if silent:
            cmd.append("--silent")
        return self._run(cmd)

    def update_sources(self) -> CommandExecutionResult | None:
        if not self._executable:
            return None
        return self._run([str(self._executable), "source", "update"])

    def _build_base_command(self, verb: str, package_id: str, source: str | None) -> list[str]:
        if not self._executable:
            raise WingetError("winget executable not found in PATH")
        cmd = [str(self._executable), verb, "--id", package_id, "--exact"]
        cmd.extend(["--accept-package-agreements", "--accept-source-agreements"])
        if source:
            cmd.extend(["--source", source])
        return cmd

    def _run(self, cmd: list[str]) -> CommandExecutionResult:
        completed = subprocess.run(cmd, capture_output=True, text=True, check=False)
        return CommandExecutionResult(cmd, completed.returncode, completed.stdout, completed.stderr)

    def _find_winget_fallback(self) -> Path | None:
        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            candidate = Path(local_appdata) / "Microsoft" / "WindowsApps" / "winget.exe"
            if candidate.exists():
                return candidate
        program_files = os.environ.get("ProgramFiles")
        if program_files:
            base = Path(program_files) / "WindowsApps"
            try:
                candidates = sorted(base.glob("Microsoft.DesktopAppInstaller_*_x64__8wekyb3d8bbwe/winget.exe"))
            except OSError:
                candidates = []
            for candidate in reversed(candidates):
                if candidate.exists():
                    return candidate
        return None


class PackageInstaller:
    """Installs packages by source id, refreshing winget sources once per run."""

    def __init__(self, *, client: PackageInstallerClient | None = None) -> None:
        self._client = client or WingetClient()
        self._sources_refreshed = False

    def install_from_source(
        self,
        source_id: str,
        label: str,
        *,
        source: str | None = None,
    ) -> CommandExecutionResult:
        if not self._client.is_available():
            raise WingetUnavailableError(WINGET_MISSING_MESSAGE.format(label=label))
        self._refresh_sources()
        source_label = f" from {source}" if source else ""
        logger.info("Installing %s (%s)%s via winget", label, source_id, source_label)
        result = self._client.install_package(source_id, source=source, silent=True)
        if result.output:
            logger.info("winget output for %s:\n%s", label, result.output)
        if result.succeeded:
            logger.info("winget finished for %s", label)
        elif result.already_installed:
            logger.info("%s is already installed and up to date", label)
        else:
            logger.warning("winget exited with code %s for %s", result.returncode, label)
        return result

    def _refresh_sources(self) -> None:
        if self._sources_refreshed:
            return
        self._sources_refreshed = True
        result = self._client.update_sources()
        if result is not None and not result.succeeded:
            logger.warning("winget source update failed (exit=%s): %s", result.returncode, result.output)
