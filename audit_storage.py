#!/usr/bin/env python3
"""
Storage audit script
Compares files under UPLOAD_DIR with image records and usage counters.
Run with --repair to delete orphaned files, drop stale records and reset counters.
"""
import argparse
import logging
import sys

from sqlmodel import Session

from pixelvault.config import settings
from pixelvault.database import engine, create_db_and_tables
from pixelvault.dependencies import build_audit_service


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Audit PixelVault storage consistency")
    parser.add_argument("--repair", action="store_true", help="fix the inconsistencies that are found")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO), format=settings.LOG_FORMAT)

    print(f"Auditing {settings.DATABASE_URL} against {settings.image_dir}...")
    create_db_and_tables()
    with Session(engine) as session:
        report = build_audit_service(session).run(repair=args.repair)

    print(f"Orphaned blobs:   {len(report.orphaned_blobs)}")
    for locator in report.orphaned_blobs:
        print(f"  {locator}")
    print(f"Missing blobs:    {len(report.missing_blobs)}")
    for image_id in report.missing_blobs:
        print(f"  image {image_id}")
    print(f"Stale records:    {len(report.stale_records)}")
    print(f"User drift:       {len(report.user_drift)}")
    for user_id, (recorded, expected) in report.user_drift.items():
        print(f"  user {user_id}: recorded {recorded}, expected {expected}")
    print(f"Category drift:   {len(report.category_drift)}")
    for category_id, (recorded, expected) in report.category_drift.items():
        print(f"  category {category_id}: recorded {recorded}, expected {expected}")

    if report.clean:
        print("Storage is consistent")
        return 0
    if report.repaired:
        print("Repair completed")
        return 0
    print("Inconsistencies found; re-run with --repair to fix them")
    return 1


if __name__ == "__main__":
    sys.exit(main())
