"""Immutable targets for the gaming stack repair run."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

MSSTORE_SOURCE = "msstore"
WINGET_SOURCE = "winget"
APPX_MANIFEST_NAME = "AppxManifest.xml"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class ComponentSpec:
    name: str
    label: str
    source_id: str | None = None
    source: str | None = None


@dataclass(frozen=True)
class ServiceSpec:
    name: str
    label: str


@dataclass(frozen=True)
class RedistributableSpec:
    label: str
    source_id: str
    source: str | None = WINGET_SOURCE


@dataclass(frozen=True)
class RunConfig:
    components: Tuple[ComponentSpec, ...]
    services: Tuple[ServiceSpec, ...]
    redistributables: Tuple[RedistributableSpec, ...]
    log_level: int = logging.INFO
    log_format: str = LOG_FORMAT
    date_format: str = LOG_DATE_FORMAT


COMPONENTS: Tuple[ComponentSpec, ...] = (
    ComponentSpec("Microsoft.WindowsStore", "Microsoft Store", "9WZDNCRFJBMP", MSSTORE_SOURCE),
    ComponentSpec("Microsoft.GamingApp", "Xbox app", "9MV0B5HZVK9Z", MSSTORE_SOURCE),
    ComponentSpec("Microsoft.XboxIdentityProvider", "Xbox Identity Provider", "9WZDNCRD1HKW", MSSTORE_SOURCE),
    ComponentSpec("Microsoft.XboxGamingOverlay", "Xbox Game Bar", "9NZKPSTSNW4P", MSSTORE_SOURCE),
    ComponentSpec("Microsoft.GamingServices", "Gaming Services", "9MWPM2CQNLHN", MSSTORE_SOURCE),
)

LEGACY_CONSOLE_COMPANION = ComponentSpec(
    "Microsoft.XboxApp",
    "Xbox Console Companion (legacy)",
    "9WZDNCRFJBD8",
    MSSTORE_SOURCE,
)

SERVICES: Tuple[ServiceSpec, ...] = (
    ServiceSpec("GamingServices", "Gaming Services"),
    ServiceSpec("GamingServicesNet", "Gaming Services (network)"),
)

REDISTRIBUTABLES: Tuple[RedistributableSpec, ...] = (
    RedistributableSpec("Microsoft Edge WebView2 Runtime", "Microsoft.EdgeWebView2Runtime"),
    RedistributableSpec("Visual C++ 2015+ Redistributable (x64)", "Microsoft.VCRedist.2015+.x64"),
    RedistributableSpec("Visual C++ 2015+ Redistributable (x86)", "Microsoft.VCRedist.2015+.x86"),
)


def build_run_config(*, include_legacy_console_companion: bool = False) -> RunConfig:
    components = COMPONENTS
    if include_legacy_console_companion:
        components = components + (LEGACY_CONSOLE_COMPANION,)
    return RunConfig(
        components=components,
        services=SERVICES,
        redistributables=REDISTRIBUTABLES,
    )
