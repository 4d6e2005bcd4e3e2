from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.document import Document
from app.schemas.document import DocumentOut
from app.services.s3 import delete_object

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite round-trips tz-aware datetimes as naive; stored values are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def share_is_valid(doc: Document, now: datetime | None = None) -> bool:
    if not doc.share_token or doc.share_expires_at is None:
        return False
    return _as_utc(doc.share_expires_at) > (now or _now_utc())


def build_share_url(token: str) -> str:
    return f"{settings.FRONTEND_BASE_URL}/share/{token}"


def to_document_out(doc: Document) -> DocumentOut:
    out = DocumentOut.model_validate(doc)
    if share_is_valid(doc):
        out.has_valid_share = True
        out.share_url = build_share_url(doc.share_token)
    return out


def list_documents(db: Session, user_id: int) -> list[Document]:
    return (
        db.query(Document)
        .filter(Document.user_id == user_id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )


def get_document_for_user(db: Session, document_id: str, user_id: int) -> Document:
    doc = (
        db.query(Document)
        .filter(Document.id == document_id, Document.user_id == user_id)
        .first()
    )
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


def generate_share_link(db: Session, doc: Document) -> Document:
    """
    Mint a fresh token valid for SHARE_LINK_TTL_HOURS.

    Always overwrites: the row holds a single token, so a previous link stops
    resolving immediately.
    """
    document_id = doc.id
    doc.share_token = secrets.token_urlsafe(32)
    doc.share_expires_at = _now_utc() + timedelta(hours=settings.SHARE_LINK_TTL_HOURS)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Share link update failed document_id=%s", document_id)
        raise HTTPException(status_code=500, detail="Could not generate share link")
    db.refresh(doc)
    logger.info("Share link generated document_id=%s expires_at=%s", doc.id, doc.share_expires_at)
    return doc


def delete_document(db: Session, doc: Document) -> None:
    """
    Blob first, then row. A failed blob delete leaves both in place; a failed
    row delete leaves the row without its blob.
    """
    try:
        delete_object(doc.storage_path)
    except (BotoCoreError, ClientError):
        logger.exception("Blob delete failed document_id=%s; keeping metadata row", doc.id)
        raise HTTPException(status_code=502, detail="Delete failed: could not remove file from storage")

    document_id = doc.id
    db.delete(doc)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Row delete failed document_id=%s; blob already removed, row left dangling", document_id)
        raise HTTPException(status_code=500, detail="Delete failed: could not remove document metadata")
    logger.info("Document deleted document_id=%s", document_id)
