"""
Report (and optionally clean up) drift between the blob store and the documents table.

Uploads write the blob before the row and deletes remove the blob before the row,
with no compensation in between, so failures can leave:
- orphaned blobs: objects under the storage prefix with no documents row
- dangling rows: documents rows whose blob is gone

Report-only by default. --delete-orphans removes orphaned blobs (never rows) and
requires --yes or an interactive confirmation.
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys


# Allow `import app.*` from backend/
REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))


from app.core.config import settings  # noqa: E402
from app.core.database import SessionLocal  # noqa: E402
from app.services.reconcile import ORPHAN_GRACE_SECONDS, delete_orphaned_blobs, find_storage_drift  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Blob store / documents table reconciliation.")
    parser.add_argument("--delete-orphans", action="store_true", help="Delete blobs that have no documents row.")
    parser.add_argument("--yes", action="store_true", help="Skip confirmation prompt.")
    parser.add_argument(
        "--grace-seconds",
        type=int,
        default=ORPHAN_GRACE_SECONDS,
        help="Ignore unmatched blobs uploaded more recently than this.",
    )
    args = parser.parse_args()

    if not settings.S3_BUCKET_NAME:
        print("Refusing to run: S3_BUCKET_NAME is not configured")
        return 2

    with SessionLocal() as db:
        drift = find_storage_drift(db, grace_seconds=args.grace_seconds)

    print(f"bucket={settings.S3_BUCKET_NAME!r} prefix={settings.S3_PREFIX!r}")
    print(f"orphaned_blobs={len(drift.orphaned_blobs)}")
    for key in drift.orphaned_blobs:
        print(f"  blob  {key}")
    print(f"dangling_rows={len(drift.dangling_rows)}")
    for doc_id in drift.dangling_rows:
        print(f"  row   {doc_id}")
    if drift.skipped_recent:
        print(f"skipped_recent={len(drift.skipped_recent)} (younger than {args.grace_seconds}s)")

    if not args.delete_orphans or not drift.orphaned_blobs:
        return 0 if drift.is_clean else 1

    if not args.yes:
        resp = input(f"Delete {len(drift.orphaned_blobs)} orphaned blobs? Type DELETE to continue: ").strip()
        if resp != "DELETE":
            print("Cancelled.")
            return 1

    deleted = delete_orphaned_blobs(drift)
    print(f"Done. deleted_blobs={deleted}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
