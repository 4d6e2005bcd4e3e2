from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import Request, Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.refresh_token import RefreshToken


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def hash_refresh_token(raw_token: str) -> str:
    """
    HMAC keyed by JWT_SECRET; only the hash is stored.
    """
    secret = (settings.JWT_SECRET or "").encode("utf-8")
    if not secret:
        raise RuntimeError("JWT_SECRET must be set to hash refresh tokens.")
    return hmac.new(secret, raw_token.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_refresh_token(db: Session, user_id: int) -> str:
    raw = secrets.token_urlsafe(48)
    db.add(
        RefreshToken(
            user_id=user_id,
            token_hash=hash_refresh_token(raw),
            expires_at=_now_utc() + timedelta(hours=settings.REFRESH_TOKEN_EXPIRE_HOURS),
        )
    )
    db.commit()
    return raw


def revoke_refresh_token(db: Session, token_hash: str) -> None:
    rt = db.query(RefreshToken).filter(RefreshToken.token_hash == token_hash).first()
    if rt and rt.revoked_at is None:
        rt.revoked_at = _now_utc()
        db.commit()


def get_valid_refresh_token(db: Session, raw_refresh_token: str) -> RefreshToken | None:
    rt = (
        db.query(RefreshToken)
        .filter(RefreshToken.token_hash == hash_refresh_token(raw_refresh_token))
        .first()
    )
    if not rt or rt.revoked_at is not None or rt.expires_at is None:
        return None

    expires_at = rt.expires_at
    # SQLite may round-trip tz-aware datetimes as naive.
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if expires_at <= _now_utc():
        return None
    return rt


# -----------------------------
# Cookie helpers
# -----------------------------
def _cookie_samesite() -> str:
    v = str(settings.REFRESH_COOKIE_SAMESITE or "lax").lower().strip()
    return v if v in {"lax", "strict", "none"} else "lax"


def set_refresh_cookie(resp: Response, raw_refresh_token: str) -> None:
    resp.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=raw_refresh_token,
        httponly=True,
        secure=settings.is_prod,
        samesite=_cookie_samesite(),
        max_age=settings.REFRESH_TOKEN_EXPIRE_HOURS * 3600,
        path=settings.REFRESH_COOKIE_PATH,
    )


def clear_refresh_cookie(resp: Response) -> None:
    resp.delete_cookie(key=settings.REFRESH_COOKIE_NAME, path=settings.REFRESH_COOKIE_PATH)


def read_refresh_cookie(req: Request) -> str | None:
    val = (req.cookies.get(settings.REFRESH_COOKIE_NAME) or "").strip()
    return val or None
