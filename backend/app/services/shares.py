from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.document import Document
from app.services.documents import share_is_valid

UNAVAILABLE_MESSAGE = "Document not found or link has expired"


def resolve_share(db: Session, token: str) -> Document:
    """
    Public lookup by share token. Unknown and expired tokens look the same to the caller.
    """
    token = (token or "").strip()
    if not token:
        raise HTTPException(status_code=404, detail=UNAVAILABLE_MESSAGE)

    doc = db.query(Document).filter(Document.share_token == token).first()
    if not doc or not share_is_valid(doc):
        raise HTTPException(status_code=404, detail=UNAVAILABLE_MESSAGE)
    return doc
