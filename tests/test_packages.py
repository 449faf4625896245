from __future__ import annotations

from pathlib import Path

import pytest

from services.errors import PackageQueryError, RegistrationError
from services.packages import (
    ManifestReady,
    ManifestUnavailable,
    PackageInspector,
    PackageRecord,
    PackageRegistrar,
    resolve_manifest,
)
from fakes import FakeRunner, appx_json, make_install_dir

ALL_USERS = "Get-AppxPackage -AllUsers"
CURRENT_USER = "Get-AppxPackage -Name"


def test_find_packages_merges_scopes_and_drops_duplicates(tmp_path: Path) -> None:
    machine = make_install_dir(tmp_path, "machine")
    user = make_install_dir(tmp_path, "user")
    runner = FakeRunner(
        {
            ALL_USERS: (0, appx_json(machine, user), ""),
            CURRENT_USER: (0, appx_json(user), ""),
        }
    )
    records = PackageInspector(command_runner=runner).find_packages("Microsoft.GamingApp")
    assert [record.install_location for record in records] == [machine, user]
    assert len(runner.commands) == 2


def test_find_packages_falls_back_to_current_user(tmp_path: Path) -> None:
    user = make_install_dir(tmp_path, "user")
    runner = FakeRunner({ALL_USERS: (0, "", ""), CURRENT_USER: (0, appx_json(user), "")})
    records = PackageInspector(command_runner=runner).find_packages("Microsoft.GamingApp")
    assert records == [PackageRecord("Microsoft.GamingApp", user)]


def test_find_packages_absent_is_empty_not_error() -> None:
    runner = FakeRunner()
    assert PackageInspector(command_runner=runner).find_packages("Microsoft.XboxApp") == []


def test_find_packages_quotes_package_name() -> None:
    runner = FakeRunner()
    PackageInspector(command_runner=runner).find_packages("Odd'Name")
    assert all("-Name 'Odd''Name'" in script for script in runner.scripts())


def test_find_packages_raises_when_query_fails() -> None:
    runner = FakeRunner({ALL_USERS: (1, "", "Get-AppxPackage : access denied")})
    with pytest.raises(PackageQueryError, match="access denied"):
        PackageInspector(command_runner=runner).find_packages("Microsoft.GamingApp")


def test_find_packages_raises_on_unreadable_output() -> None:
    runner = FakeRunner({ALL_USERS: (0, "not json", "")})
    with pytest.raises(PackageQueryError):
        PackageInspector(command_runner=runner).find_packages("Microsoft.GamingApp")


def test_resolve_manifest_tags_each_case(tmp_path: Path) -> None:
    ready = make_install_dir(tmp_path, "ready")
    broken = make_install_dir(tmp_path, "broken", with_manifest=False)
    assert resolve_manifest(PackageRecord("a", ready)) == ManifestReady(
        PackageRecord("a", ready), ready / "AppxManifest.xml"
    )
    assert isinstance(resolve_manifest(PackageRecord("b", broken)), ManifestUnavailable)
    missing_location = resolve_manifest(PackageRecord("c", None))
    assert isinstance(missing_location, ManifestUnavailable)
    assert "install location" in missing_location.reason


def test_register_only_records_with_manifests(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    good = make_install_dir(tmp_path, "good")
    bad = make_install_dir(tmp_path, "bad", with_manifest=False)
    runner = FakeRunner()
    registrar = PackageRegistrar(command_runner=runner)
    records = [PackageRecord("Microsoft.GamingApp", bad), PackageRecord("Microsoft.GamingApp", good)]

    with caplog.at_level("WARNING"):
        report = registrar.register_from_records("Microsoft.GamingApp", records)

    assert report.registered == [good / "AppxManifest.xml"]
    assert [skip.record.install_location for skip in report.skipped] == [bad]
    assert len(runner.commands) == 1
    assert "Add-AppxPackage -DisableDevelopmentMode -Register" in runner.scripts()[0]
    assert str(good / "AppxManifest.xml") in runner.scripts()[0]
    assert len([r for r in caplog.records if r.levelname == "WARNING"]) == 1


def test_register_with_no_records_warns(caplog: pytest.LogCaptureFixture) -> None:
    runner = FakeRunner()
    with caplog.at_level("WARNING"):
        report = PackageRegistrar(command_runner=runner).register_from_records("Microsoft.GamingApp", [])
    assert not report.had_records
    assert runner.commands == []
    assert "nothing to register" in caplog.text


def test_register_failure_is_escalated(tmp_path: Path) -> None:
    good = make_install_dir(tmp_path, "good")
    runner = FakeRunner({"Add-AppxPackage": (1, "", "Deployment failed with HRESULT: 0x80073CF6")})
    registrar = PackageRegistrar(command_runner=runner)
    with pytest.raises(RegistrationError, match="0x80073CF6"):
        registrar.register_from_records("Microsoft.GamingApp", [PackageRecord("Microsoft.GamingApp", good)])
