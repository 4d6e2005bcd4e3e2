from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.document import Document
from app.services.s3 import delete_object, list_keys

logger = logging.getLogger(__name__)

# Uploads write the blob before the row; blobs younger than this may still get their row.
ORPHAN_GRACE_SECONDS = 300


@dataclass
class StorageDrift:
    """Blob/row mismatches left behind by the non-transactional upload and delete paths."""

    orphaned_blobs: list[str] = field(default_factory=list)
    dangling_rows: list[str] = field(default_factory=list)  # document ids
    skipped_recent: list[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.orphaned_blobs and not self.dangling_rows


def _storage_root() -> str:
    return f"{settings.S3_PREFIX}/" if settings.S3_PREFIX else ""


def _uploaded_at_ms(key: str) -> int | None:
    # .../<epoch_ms>-<file_name>
    stamp = key.rsplit("/", 1)[-1].split("-", 1)[0]
    return int(stamp) if stamp.isdigit() else None


def _is_recent(key: str, now_ms: int, grace_seconds: int) -> bool:
    uploaded_at = _uploaded_at_ms(key)
    if uploaded_at is None:
        return False
    return now_ms - uploaded_at < grace_seconds * 1000


def find_storage_drift(
    db: Session,
    *,
    grace_seconds: int = ORPHAN_GRACE_SECONDS,
    now_ms: int | None = None,
) -> StorageDrift:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    blob_keys = set(list_keys(_storage_root()))
    rows = db.query(Document.id, Document.storage_path).all()
    row_paths = {path for _, path in rows}

    drift = StorageDrift(dangling_rows=sorted(doc_id for doc_id, path in rows if path not in blob_keys))
    for key in sorted(blob_keys - row_paths):
        if _is_recent(key, now_ms, grace_seconds):
            drift.skipped_recent.append(key)
        else:
            drift.orphaned_blobs.append(key)

    logger.info(
        "Storage drift: orphaned_blobs=%d dangling_rows=%d skipped_recent=%d",
        len(drift.orphaned_blobs),
        len(drift.dangling_rows),
        len(drift.skipped_recent),
    )
    return drift


def delete_orphaned_blobs(drift: StorageDrift) -> int:
    deleted = 0
    for key in drift.orphaned_blobs:
        delete_object(key)
        deleted += 1
    return deleted
