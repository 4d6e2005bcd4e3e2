from __future__ import annotations

import logging
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.document import SharedDocumentOut
from app.services.s3 import open_object
from app.services.shares import resolve_share

router = APIRouter(prefix="/share", tags=["share"])

logger = logging.getLogger(__name__)


@router.get("/{token}", response_model=SharedDocumentOut)
def get_shared_document(token: str, db: Session = Depends(get_db)):
    return resolve_share(db, token)


@router.get("/{token}/download")
def download_shared_document(token: str, db: Session = Depends(get_db)):
    doc = resolve_share(db, token)

    try:
        chunks = open_object(doc.storage_path)
    except (BotoCoreError, ClientError):
        logger.exception("Shared download failed document_id=%s", doc.id)
        raise HTTPException(status_code=502, detail="Download failed")

    return StreamingResponse(
        chunks,
        media_type=doc.file_type or "application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(doc.file_name)}"},
    )
