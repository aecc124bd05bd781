"""Package inspector: extract (pkg, version) from an uploaded artifact.

Runs `<AAPT_COMMAND> dump badging <file>` and reads the `package:` line, e.g.
  package: name='com.acme.app' versionCode='7' versionName='1.2.0'
"""

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from apps.catalog.config import config
from apps.catalog.services.errors import ArtifactInspectionFailedError

logger = logging.getLogger(__name__)

_ATTR = re.compile(r"(\w+)='([^']*)'")


@dataclass(frozen=True)
class PackageInfo:
    pkg: str
    version: str


class PackageInspector(Protocol):
    def inspect(self, path: Path) -> PackageInfo: ...


def parse_badging(lines: list[str]) -> PackageInfo | None:
    """Return PackageInfo from the first `package:` line, or None if name/versionName are missing."""
    for line in lines:
        if not line.startswith("package:"):
            continue
        attrs = dict(_ATTR.findall(line))
        pkg = attrs.get("name", "").strip()
        version = attrs.get("versionName", "").strip()
        if pkg and version:
            return PackageInfo(pkg=pkg, version=version)
        return None
    return None


class AaptPackageInspector:
    """Inspector backed by the aapt command line tool. Bounded by a timeout."""

    def __init__(self, command: str | None = None, timeout: float | None = None):
        self.command = command or config.AAPT_COMMAND
        self.timeout = timeout if timeout is not None else config.INSPECTOR_TIMEOUT_SECONDS

    def inspect(self, path: Path) -> PackageInfo:
        argv = [self.command, "dump", "badging", str(path)]
        try:
            result = subprocess.run(argv, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            logger.error("Package inspection of %s timed out after %ss", path, self.timeout)
            raise ArtifactInspectionFailedError(None, ["timeout"]) from e
        except OSError as e:
            logger.error("Package inspector %s could not be started: %s", self.command, e)
            raise ArtifactInspectionFailedError(None, [str(e)]) from e

        stderr_lines = (result.stderr or "").splitlines()
        if result.returncode != 0:
            logger.error("Package inspector exited with %s for %s: %s", result.returncode, path, stderr_lines)
            raise ArtifactInspectionFailedError(result.returncode, stderr_lines)

        info = parse_badging((result.stdout or "").splitlines())
        if info is None:
            logger.error("No package name/version in inspector output for %s", path)
            raise ArtifactInspectionFailedError(result.returncode, stderr_lines)
        return info
