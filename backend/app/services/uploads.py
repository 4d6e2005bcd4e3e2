from __future__ import annotations

import logging
from dataclasses import dataclass

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.document import Document
from app.models.user import User
from app.services.content import extract_scan_content
from app.services.s3 import build_storage_path, put_object
from app.services.scanner import DocumentScanner, ScanVerdict, fail_open_verdict

logger = logging.getLogger(__name__)

ALLOWED_UPLOAD_TYPES = {
    "application/pdf",
    "text/plain",
    "image/jpeg",
    "image/jpg",
    "image/png",
}


@dataclass(frozen=True)
class UploadOutcome:
    document: Document
    verdict: ScanVerdict


# -----------------------------
# Validation
# -----------------------------
def require_file_name(raw: str | None) -> str:
    file_name = (raw or "").strip()
    if not file_name:
        raise HTTPException(status_code=400, detail="File name is required")
    return file_name


def require_allowed_type(raw: str | None) -> str:
    # "text/plain; charset=utf-8" is still text/plain.
    file_type = (raw or "").split(";", 1)[0].strip().lower()
    if file_type not in ALLOWED_UPLOAD_TYPES:
        logger.info("Upload rejected: unsupported type %r", raw)
        raise HTTPException(status_code=415, detail="Only PDF, TXT, JPG and PNG files are allowed.")
    return file_type


def enforce_max_upload_bytes(size_bytes: int) -> None:
    if size_bytes > settings.MAX_UPLOAD_BYTES:
        max_mb = settings.MAX_UPLOAD_BYTES / (1024 * 1024)
        logger.info("Upload rejected: %s bytes exceeds limit", size_bytes)
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum file size is {max_mb:.0f}MB.",
        )


# -----------------------------
# Scan + gate
# -----------------------------
def scan_with_fail_open(scanner: DocumentScanner, *, content: str, file_name: str, file_type: str) -> ScanVerdict:
    try:
        return scanner.scan(content=content, file_name=file_name, file_type=file_type)
    except Exception:
        # Scan failures never block an upload.
        logger.exception("Scan failed for %s; treating as safe", file_name)
        return fail_open_verdict()


def enforce_scan_verdict(verdict: ScanVerdict, *, file_name: str) -> None:
    if not verdict.blocks_upload:
        return
    logger.warning(
        "Upload blocked for %s: %s",
        file_name,
        ",".join(w.type for w in verdict.warnings),
    )
    raise HTTPException(
        status_code=422,
        detail={
            "code": "UNSAFE_CONTENT",
            "message": "Security issues detected. The file was not uploaded.",
            "details": {"warnings": [w.to_payload() for w in verdict.warnings]},
        },
    )


# -----------------------------
# Persist
# -----------------------------
def persist_document(db: Session, user: User, *, raw: bytes, file_name: str, file_type: str) -> Document:
    """
    Blob first, then the metadata row. No compensating delete: if the insert
    fails the blob stays behind as an orphan.
    """
    storage_path = build_storage_path(user.id, file_name)

    try:
        put_object(storage_path, raw, file_type)
    except (BotoCoreError, ClientError):
        logger.exception("Blob upload failed for %s", storage_path)
        raise HTTPException(status_code=502, detail="Upload failed: could not store file")

    doc = Document(
        user_id=user.id,
        file_name=file_name,
        file_type=file_type,
        file_size=len(raw),
        storage_path=storage_path,
        is_safe=True,
    )
    db.add(doc)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Metadata insert failed; blob left orphaned at %s", storage_path)
        raise HTTPException(status_code=500, detail="Upload failed: could not save document metadata")

    db.refresh(doc)
    logger.info("Document uploaded document_id=%s user_id=%s size=%s", doc.id, user.id, doc.file_size)
    return doc


def run_upload(
    db: Session,
    user: User,
    scanner: DocumentScanner,
    *,
    raw: bytes,
    file_name: str,
    file_type: str,
) -> UploadOutcome:
    """
    Extract -> scan -> gate -> persist for an already validated file.
    """
    content = extract_scan_content(raw, file_name=file_name, file_type=file_type)
    verdict = scan_with_fail_open(scanner, content=content, file_name=file_name, file_type=file_type)
    enforce_scan_verdict(verdict, file_name=file_name)
    doc = persist_document(db, user, raw=raw, file_name=file_name, file_type=file_type)
    return UploadOutcome(document=doc, verdict=verdict)
