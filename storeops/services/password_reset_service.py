import asyncio
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from fastapi import HTTPException
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from storeops.core.config import settings
from storeops.core.id_utils import new_id
from storeops.core.security import hash_password
from storeops.db.session import SessionLocal
from storeops.models.password_reset import PasswordResetToken
from storeops.models.user import User
from storeops.services.email_service import EmailDeliveryResult, send_password_reset_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedResetToken:
    raw_token: str
    expires_at: datetime
    delivery: EmailDeliveryResult


def generate_password_reset_token() -> str:
    return f"pr_{secrets.token_urlsafe(32)}"


def hash_password_reset_token(raw_token: str) -> str:
    token_material = f"{settings.secret_key}:{(raw_token or '').strip()}"
    return hashlib.sha256(token_material.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _reset_link(raw_token: str) -> str | None:
    if not settings.password_reset_web_base_url:
        return None
    base = settings.password_reset_web_base_url.rstrip("/")
    return f"{base}?{urlencode({'token': raw_token})}"


def issue_password_reset(db: Session, *, email: str) -> IssuedResetToken | None:
    """
    Create a reset token for ``email`` and mail it.

    Returns None when no such user exists; callers respond identically either way.
    """
    user = db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()
    if not user:
        return None

    raw_token = generate_password_reset_token()
    expires_at = datetime.now(timezone.utc) + timedelta(
        minutes=settings.password_reset_token_ttl_minutes
    )
    db.add(
        PasswordResetToken(
            id=new_id(),
            user_id=user.id,
            token_hash=hash_password_reset_token(raw_token),
            expires_at=expires_at,
        )
    )
    delivery = send_password_reset_email(
        recipient_email=user.email,
        recipient_name=user.first_name,
        reset_token=raw_token,
        expires_at=expires_at,
        reset_link=_reset_link(raw_token),
    )
    if delivery.status == "failed":
        logger.warning("password reset email to user %s failed: %s", user.id, delivery.detail)
    return IssuedResetToken(raw_token=raw_token, expires_at=expires_at, delivery=delivery)


def consume_password_reset(db: Session, *, raw_token: str, new_password: str) -> User:
    token_row = db.execute(
        select(PasswordResetToken).where(
            PasswordResetToken.token_hash == hash_password_reset_token(raw_token)
        )
    ).scalar_one_or_none()
    now = datetime.now(timezone.utc)
    if (
        not token_row
        or token_row.used_at is not None
        or _as_utc(token_row.expires_at) <= now
    ):
        raise HTTPException(status_code=400, detail="Reset token is invalid or expired")

    user = db.get(User, token_row.user_id)
    if not user:
        raise HTTPException(status_code=400, detail="Reset token is invalid or expired")

    user.hashed_password = hash_password(new_password)
    token_row.used_at = now
    return user


def purge_expired_password_reset_tokens(db: Session, *, now: datetime | None = None) -> int:
    cutoff = now or datetime.now(timezone.utc)
    result = db.execute(
        delete(PasswordResetToken).where(
            or_(
                PasswordResetToken.expires_at <= cutoff,
                PasswordResetToken.used_at.is_not(None),
            )
        )
    )
    db.commit()
    return result.rowcount or 0


def _purge_once() -> int:
    db = SessionLocal()
    try:
        return purge_expired_password_reset_tokens(db)
    finally:
        db.close()


async def run_password_reset_cleanup(interval_seconds: int) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await asyncio.to_thread(_purge_once)
        except Exception:  # noqa: BLE001 - keep the loop alive across transient db errors
            logger.exception("password reset token cleanup failed")
            continue
        if removed:
            logger.info("purged %d expired password reset tokens", removed)
