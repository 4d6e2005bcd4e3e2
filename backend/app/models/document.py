import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from app.core.base import Base


def _new_document_id() -> str:
    return str(uuid.uuid4())


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Document(Base):
    __tablename__ = "documents"

    # Opaque id; never derived from user input.
    id = Column(String(36), primary_key=True, default=_new_document_id)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    file_name = Column(String(512), nullable=False)
    file_type = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False)

    # <prefix>/<user_id>/<epoch_ms>-<file_name>
    storage_path = Column(String(1024), nullable=False, unique=True)

    # Both null until a share link is generated. Valid iff token set AND expiry in the future.
    share_token = Column(String(128), nullable=True, unique=True, index=True)
    share_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Scan verdict at upload time. Unsafe files are never persisted.
    is_safe = Column(Boolean, nullable=False, server_default="true")

    # Set in Python for sub-second ordering; server_default covers raw inserts.
    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="documents")
