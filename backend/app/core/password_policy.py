from __future__ import annotations

from fastapi import HTTPException, status

from app.core.config import settings


def evaluate_password(password: str, *, email: str | None = None) -> list[str]:
    """
    Returns a list of violation codes if the password does not meet policy.
    """
    pw = password or ""
    violations: list[str] = []
    min_length = max(int(settings.PASSWORD_MIN_LENGTH or 0), 1)

    if len(pw) < min_length:
        violations.append("min_length")

    email_norm = (email or "").strip().lower()
    if email_norm and pw.lower() == email_norm:
        violations.append("matches_email")

    return violations


def ensure_password_policy(password: str, *, email: str | None = None) -> None:
    violations = evaluate_password(password, email=email)
    if violations:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "WEAK_PASSWORD",
                "message": f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters and differ from your email.",
                "details": {"violations": violations},
            },
        )
