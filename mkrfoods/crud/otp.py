import json
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from mkrfoods.models.models import OtpChallenge, User


# ---------------------------- OTP CHALLENGES ----------------------------
def get_otp_challenge(db: Session, flow: str, key: str) -> Optional[OtpChallenge]:
    return (
        db.query(OtpChallenge)
        .filter(OtpChallenge.flow == flow, OtpChallenge.key == key)
        .first()
    )


def upsert_otp_challenge(
    db: Session,
    flow: str,
    key: str,
    code: str,
    issued_at: datetime,
    expires_at: datetime,
    attempts: int = 0,
    payload: Optional[Dict[str, Any]] = None,
) -> OtpChallenge:
    """Insert or wholesale replace the challenge for (flow, key)."""
    row = get_otp_challenge(db, flow, key)
    if row is None:
        row = OtpChallenge(flow=flow, key=key)
        db.add(row)

    row.code = code
    row.attempts = attempts
    row.issued_at = issued_at
    row.expires_at = expires_at
    row.payload = json.dumps(payload) if payload is not None else None
    db.commit()
    db.refresh(row)
    return row


def delete_otp_challenge(db: Session, flow: str, key: str) -> bool:
    deleted = (
        db.query(OtpChallenge)
        .filter(OtpChallenge.flow == flow, OtpChallenge.key == key)
        .delete(synchronize_session=False)
    )
    db.commit()
    return bool(deleted)


def increment_otp_attempts(db: Session, flow: str, key: str) -> Optional[int]:
    """Atomically bump the attempt counter. Returns the new value, or None if the row is gone."""
    updated = (
        db.query(OtpChallenge)
        .filter(OtpChallenge.flow == flow, OtpChallenge.key == key)
        .update({OtpChallenge.attempts: OtpChallenge.attempts + 1}, synchronize_session=False)
    )
    db.commit()
    if not updated:
        return None
    row = get_otp_challenge(db, flow, key)
    return row.attempts if row else None


def purge_expired_otp_challenges(db: Session, now: datetime, flow: Optional[str] = None) -> int:
    """Delete challenges whose expiry has passed. Returns the number of rows removed."""
    query = db.query(OtpChallenge).filter(OtpChallenge.expires_at < now)
    if flow:
        query = query.filter(OtpChallenge.flow == flow)
    deleted = query.delete(synchronize_session=False)
    db.commit()
    return int(deleted or 0)


# ---------------------------- USERS ----------------------------
def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def create_user(db: Session, name: str, email: str, hashed_password: str) -> User:
    user = User(name=name, email=email, hashed_password=hashed_password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
