"""Package inspector: badging parsing and subprocess failure handling."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from apps.catalog.services.errors import ArtifactInspectionFailedError
from apps.catalog.services.inspector import AaptPackageInspector, PackageInfo, parse_badging

BADGING = [
    "package: name='com.acme.app' versionCode='12' versionName='1.2.0' platformBuildVersionName='13'",
    "sdkVersion:'21'",
    "application-label:'Acme'",
]


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=["aapt"], returncode=returncode, stdout=stdout, stderr=stderr)


def test_parse_badging_reads_package_line() -> None:
    assert parse_badging(BADGING) == PackageInfo(pkg="com.acme.app", version="1.2.0")


def test_parse_badging_missing_version_name() -> None:
    assert parse_badging(["package: name='com.acme.app' versionCode='12'"]) is None
    assert parse_badging(["sdkVersion:'21'"]) is None


def test_inspect_runs_dump_badging_with_timeout() -> None:
    inspector = AaptPackageInspector(command="/opt/aapt", timeout=5)
    with patch("apps.catalog.services.inspector.subprocess.run", return_value=_completed(stdout="\n".join(BADGING))) as run:
        info = inspector.inspect(Path("/files/a/app.apk"))
    assert info == PackageInfo(pkg="com.acme.app", version="1.2.0")
    args, kwargs = run.call_args
    assert args[0] == ["/opt/aapt", "dump", "badging", "/files/a/app.apk"]
    assert kwargs["timeout"] == 5


def test_nonzero_exit_raises_with_stderr_lines() -> None:
    inspector = AaptPackageInspector(command="aapt", timeout=5)
    result = _completed(returncode=1, stderr="ERROR: dump failed\nInvalid file\n")
    with patch("apps.catalog.services.inspector.subprocess.run", return_value=result):
        with pytest.raises(ArtifactInspectionFailedError) as exc:
            inspector.inspect(Path("broken.apk"))
    assert exc.value.exit_code == 1
    assert exc.value.stderr_lines == ["ERROR: dump failed", "Invalid file"]
    assert exc.value.status_code == 422


def test_timeout_raises_inspection_failed() -> None:
    inspector = AaptPackageInspector(command="aapt", timeout=0.1)
    with patch(
        "apps.catalog.services.inspector.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="aapt", timeout=0.1),
    ):
        with pytest.raises(ArtifactInspectionFailedError) as exc:
            inspector.inspect(Path("slow.apk"))
    assert exc.value.exit_code is None


def test_missing_tool_raises_inspection_failed() -> None:
    inspector = AaptPackageInspector(command="no-such-aapt", timeout=1)
    with patch("apps.catalog.services.inspector.subprocess.run", side_effect=FileNotFoundError("no-such-aapt")):
        with pytest.raises(ArtifactInspectionFailedError):
            inspector.inspect(Path("x.apk"))


def test_output_without_package_line_raises() -> None:
    inspector = AaptPackageInspector(command="aapt", timeout=1)
    with patch("apps.catalog.services.inspector.subprocess.run", return_value=_completed(stdout="sdkVersion:'21'\n")):
        with pytest.raises(ArtifactInspectionFailedError):
            inspector.inspect(Path("x.apk"))
