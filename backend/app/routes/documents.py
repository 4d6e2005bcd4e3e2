from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.document import DeletedOut, DocumentOut, ShareLinkOut
from app.services.documents import (
    build_share_url,
    delete_document,
    generate_share_link,
    get_document_for_user,
    list_documents,
    to_document_out,
)
from app.services.scanner import DocumentScanner, get_document_scanner
from app.services.uploads import (
    enforce_max_upload_bytes,
    require_allowed_type,
    require_file_name,
    run_upload,
)

router = APIRouter(prefix="/documents", tags=["documents"], dependencies=[Depends(get_current_user)])


def _maybe_limit(rule: str):
    if not settings.ENABLE_RATE_LIMITING:
        def passthrough(fn):
            return fn
        return passthrough
    return limiter.limit(rule)


@router.post("", response_model=DocumentOut)
@_maybe_limit("10/minute")
def upload_document(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    scanner: DocumentScanner = Depends(get_document_scanner),
):
    file_name = require_file_name(file.filename)
    file_type = require_allowed_type(file.content_type)

    # Read one byte past the ceiling so oversize files are detected without buffering them whole.
    raw = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    enforce_max_upload_bytes(len(raw))

    outcome = run_upload(db, user, scanner, raw=raw, file_name=file_name, file_type=file_type)
    return to_document_out(outcome.document)


@router.get("", response_model=list[DocumentOut])
def get_documents(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [to_document_out(doc) for doc in list_documents(db, user.id)]


@router.post("/{document_id}/share", response_model=ShareLinkOut)
@_maybe_limit("30/minute")
def create_share_link(
    request: Request,
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    doc = generate_share_link(db, get_document_for_user(db, document_id, user.id))
    return {
        "document_id": doc.id,
        "share_token": doc.share_token,
        "share_expires_at": doc.share_expires_at,
        "share_url": build_share_url(doc.share_token),
    }


@router.delete("/{document_id}", response_model=DeletedOut)
@_maybe_limit("30/minute")
def remove_document(
    request: Request,
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    delete_document(db, get_document_for_user(db, document_id, user.id))
    return {"deleted": True}
