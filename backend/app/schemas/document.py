from datetime import datetime

from pydantic import BaseModel, ConfigDict


# ---------- OUTPUT SCHEMAS ----------

class DocumentOut(BaseModel):
    id: str
    user_id: int

    file_name: str
    file_type: str
    file_size: int
    storage_path: str

    share_token: str | None = None
    share_expires_at: datetime | None = None
    # Derived: token set AND expiry in the future
    has_valid_share: bool = False
    share_url: str | None = None

    is_safe: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ShareLinkOut(BaseModel):
    document_id: str
    share_token: str
    share_expires_at: datetime
    share_url: str


class SharedDocumentOut(BaseModel):
    file_name: str
    file_type: str
    file_size: int
    share_expires_at: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeletedOut(BaseModel):
    deleted: bool = True
