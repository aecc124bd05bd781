#!/usr/bin/env python3
"""Catalog consistency scan: alert on package ids held by more than one application in one scope,
and on applications whose latest_version_id is stale.

Duplicate package ids are never repaired automatically; they make uploads of that package fail
until an operator merges or deletes the records. Stale latest-version pointers are recalculated
with --fix-latest (or FIX_LATEST=1).

TENANTS (comma-separated) limits the latest-version check to those tenants' applications plus
common ones; the duplicate check is always global.
"""

import argparse
import sys

sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parent.parent))

from cron.config import config
from cron.db import get_session
from cron.logging import get_logger

logger = get_logger("package_consistency_scan")


def _scan_duplicates(session) -> int:
    from apps.catalog.services.repo import find_duplicate_packages

    findings = find_duplicate_packages(session)
    for pkg, common, application_ids in findings:
        logger.error(
            "duplicate_package pkg=%s scope=%s application_ids=%s",
            pkg,
            "common" if common else "private",
            application_ids,
        )
    return len(findings)


def _scan_latest(session, tenants: list[str], fix: bool) -> int:
    from apps.catalog.services.ledger import recalculate_latest_version
    from apps.catalog.services.repo import list_all_applications, list_application_versions
    from apps.catalog.services.versioning import pick_latest

    stale = 0
    for application in list_all_applications(session):
        if tenants and not application.common and application.tenant_id not in tenants:
            continue
        latest = pick_latest(list_application_versions(session, application.id))
        expected = latest.id if latest is not None else None
        if application.latest_version_id == expected:
            continue
        stale += 1
        logger.warning(
            "stale_latest application_id=%s pkg=%s current=%s expected=%s",
            application.id,
            application.pkg,
            application.latest_version_id,
            expected,
        )
        if fix:
            recalculate_latest_version(session, application.id)
    return stale


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Scan the application catalog for consistency problems")
    parser.add_argument("--fix-latest", action="store_true", help="Recalculate stale latest-version pointers")
    args = parser.parse_args(argv)
    fix = args.fix_latest or config.FIX_LATEST

    logger.info("package_consistency_scan start tenants=%s fix_latest=%s", config.TENANTS or "all", fix)
    try:
        with get_session() as session:
            duplicates = _scan_duplicates(session)
            stale = _scan_latest(session, config.TENANTS, fix)
    except Exception as e:
        logger.exception("package_consistency_scan error: %s", e)
        return 1

    logger.info("package_consistency_scan done duplicates=%s stale_latest=%s fixed=%s", duplicates, stale, fix)
    return 2 if duplicates else 0


if __name__ == "__main__":
    sys.exit(main())
