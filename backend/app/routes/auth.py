# app/routes/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.password_policy import ensure_password_policy
from app.core.security import create_access_token, hash_password, verify_password
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.auth import LoginIn, MessageOut, RegisterIn, TokenOut, UserOut
from app.services.refresh_tokens import (
    clear_refresh_cookie,
    get_valid_refresh_token,
    hash_refresh_token,
    issue_refresh_token,
    read_refresh_cookie,
    revoke_refresh_token,
    set_refresh_cookie,
)

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)


def _start_session(db: Session, user: User, response: Response) -> dict:
    refresh_token = issue_refresh_token(db, user_id=user.id)
    set_refresh_cookie(response, refresh_token)
    return {"access_token": create_access_token(subject=user.email), "token_type": "bearer"}


@router.post("/register", response_model=TokenOut)
def register(payload: RegisterIn, response: Response, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(status_code=409, detail="Email already registered")

    ensure_password_policy(payload.password, email=email)

    user = User(email=email, password_hash=hash_password(payload.password), is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User registered user_id=%s", user.id)

    # Sign-up signs the user in.
    return _start_session(db, user, response)


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()

    user = db.query(User).filter(User.email == email).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return _start_session(db, user, response)


@router.post("/refresh", response_model=TokenOut)
def refresh(request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Rotate the refresh cookie and return a new access token.
    """
    raw = read_refresh_cookie(request)
    if not raw:
        raise HTTPException(status_code=401, detail="Missing refresh token")

    rt = get_valid_refresh_token(db, raw)
    if not rt:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    user = db.query(User).filter(User.id == rt.user_id).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid user")

    revoke_refresh_token(db, rt.token_hash)
    return _start_session(db, user, response)


@router.post("/logout", response_model=MessageOut)
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    raw = read_refresh_cookie(request)
    if raw:
        revoke_refresh_token(db, hash_refresh_token(raw))

    clear_refresh_cookie(response)
    return {"message": "Logged out"}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
