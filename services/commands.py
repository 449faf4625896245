"""Command execution helpers shared by the package and service modules."""
from __future__ import annotations

import json
import subprocess
from typing import Any, Protocol, Sequence

POWERSHELL = "powershell"


class CommandRunner(Protocol):
    def run(self, command: Sequence[str]) -> subprocess.CompletedProcess[str]:  # pragma: no cover - protocol
        ...


class SubprocessRunner:
    def run(self, command: Sequence[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(list(command), capture_output=True, text=True, check=False)


def powershell_command(script: str) -> list[str]:
    return [POWERSHELL, "-NoProfile", "-NonInteractive", "-Command", script]


def ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def failure_detail(completed: subprocess.CompletedProcess[str]) -> str:
    detail = (completed.stderr or completed.stdout or "").strip()
    return detail or f"exit code {completed.returncode}"


def load_json_objects(output: str) -> list[dict[str, Any]]:
    """Decode ``ConvertTo-Json`` output into a list of objects.

    PowerShell emits nothing for an empty pipeline, a bare object for a
    single result and an array otherwise. Raises ``ValueError`` on
    malformed output.
    """
    text = (output or "").strip()
    if not text:
        return []
    data = json.loads(text)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"Unexpected JSON payload: {text[:200]}")
    return [item for item in data if isinstance(item, dict)]
