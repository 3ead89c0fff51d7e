# mkrfoods/utils/otp_store.py
"""
Record stores backing the OTP manager.

Every store keeps at most one record per key. `put` replaces wholesale,
`increment_attempts` is the only partial update.
"""
import json
import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis
from sqlalchemy.exc import SQLAlchemyError

from mkrfoods.crud import otp as otp_crud
from mkrfoods.utils.errors import DependencyError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class OtpRecord:
    key: str
    code: str
    issued_at: datetime
    expires_at: datetime
    attempts: int = 0
    payload: Optional[Dict[str, Any]] = field(default=None)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def seconds_left(self, now: datetime) -> int:
        return max(0, math.ceil((self.expires_at - now).total_seconds()))


class OtpStore:
    """Interface every backing store implements."""

    backend = "abstract"

    def get(self, key: str) -> Optional[OtpRecord]:
        raise NotImplementedError

    def put(self, record: OtpRecord) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def increment_attempts(self, key: str) -> Optional[int]:
        """Add one failed attempt. Returns the new count, or None if the record is gone."""
        raise NotImplementedError

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Drop expired records. Stores with native expiry have nothing to do."""
        return 0


# ---------------- IN-MEMORY ----------------
class MemoryOtpStore(OtpStore):
    """Process-local map. Pending codes are not shared between server instances."""

    backend = "memory"

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, OtpRecord] = {}

    def get(self, key):
        with self._lock:
            record = self._records.get(key)
            return replace(record) if record else None

    def put(self, record):
        with self._lock:
            self._records[record.key] = replace(record)

    def delete(self, key):
        with self._lock:
            self._records.pop(key, None)

    def increment_attempts(self, key):
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            record.attempts += 1
            return record.attempts

    def purge_expired(self, now=None):
        now = now or _utcnow()
        with self._lock:
            expired = [k for k, r in self._records.items() if r.is_expired(now)]
            for k in expired:
                del self._records[k]
        return len(expired)

    def __len__(self):
        with self._lock:
            return len(self._records)


# ---------------- DATABASE ----------------
class SqlOtpStore(OtpStore):
    """
    Persisted challenges in the `otp_challenges` table, shared by every instance.
    Expired rows are removed by `purge_expired`, which the scheduler runs periodically.
    """

    backend = "database"

    def __init__(self, session_factory, flow: str):
        self._session_factory = session_factory
        self.flow = flow

    @contextmanager
    def _session(self):
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("OTP store database error (flow=%s): %s", self.flow, e)
            raise DependencyError("OTP storage is unavailable. Please try again.", detail=str(e))
        finally:
            db.close()

    @staticmethod
    def _to_record(row) -> OtpRecord:
        return OtpRecord(
            key=row.key,
            code=row.code,
            issued_at=_as_utc(row.issued_at),
            expires_at=_as_utc(row.expires_at),
            attempts=row.attempts or 0,
            payload=json.loads(row.payload) if row.payload else None,
        )

    def get(self, key):
        with self._session() as db:
            row = otp_crud.get_otp_challenge(db, self.flow, key)
            return self._to_record(row) if row else None

    def put(self, record):
        with self._session() as db:
            otp_crud.upsert_otp_challenge(
                db,
                self.flow,
                record.key,
                code=record.code,
                issued_at=record.issued_at,
                expires_at=record.expires_at,
                attempts=record.attempts,
                payload=record.payload,
            )

    def delete(self, key):
        with self._session() as db:
            otp_crud.delete_otp_challenge(db, self.flow, key)

    def increment_attempts(self, key):
        with self._session() as db:
            return otp_crud.increment_otp_attempts(db, self.flow, key)

    def purge_expired(self, now=None):
        with self._session() as db:
            return otp_crud.purge_expired_otp_challenges(db, now or _utcnow(), flow=self.flow)


# ---------------- REDIS ----------------
class RedisOtpStore(OtpStore):
    """Records written with SETEX, so Redis expires them on its own."""

    backend = "redis"

    def __init__(self, client, flow: str, prefix: str = "otp"):
        self._client = client
        self.flow = flow
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, flow: str) -> "RedisOtpStore":
        return cls(redis.Redis.from_url(url, decode_responses=True), flow)

    def _name(self, key: str) -> str:
        return f"{self._prefix}:{self.flow}:{key}"

    @staticmethod
    def _dump(record: OtpRecord) -> str:
        return json.dumps({
            "code": record.code,
            "issued_at": record.issued_at.isoformat(),
            "expires_at": record.expires_at.isoformat(),
            "attempts": record.attempts,
            "payload": record.payload,
        })

    @staticmethod
    def _load(key: str, raw: str) -> OtpRecord:
        data = json.loads(raw)
        return OtpRecord(
            key=key,
            code=data["code"],
            issued_at=_as_utc(datetime.fromisoformat(data["issued_at"])),
            expires_at=_as_utc(datetime.fromisoformat(data["expires_at"])),
            attempts=int(data.get("attempts") or 0),
            payload=data.get("payload"),
        )

    def _call(self, fn, *args):
        try:
            return fn(*args)
        except redis.RedisError as e:
            logger.exception("OTP store redis error (flow=%s): %s", self.flow, e)
            raise DependencyError("OTP storage is unavailable. Please try again.", detail=str(e))

    def get(self, key):
        raw = self._call(self._client.get, self._name(key))
        return self._load(key, raw) if raw else None

    def put(self, record):
        ttl = max(1, math.ceil((record.expires_at - _utcnow()).total_seconds()))
        self._call(self._client.setex, self._name(record.key), ttl, self._dump(record))

    def delete(self, key):
        self._call(self._client.delete, self._name(key))

    def increment_attempts(self, key):
        name = self._name(key)
        raw = self._call(self._client.get, name)
        if not raw:
            return None
        # Keep whatever lifetime Redis still has for the key
        ttl_ms = self._call(self._client.pttl, name)
        if ttl_ms is None or ttl_ms <= 0:
            return None
        record = self._load(key, raw)
        record.attempts += 1
        self._call(self._client.psetex, name, ttl_ms, self._dump(record))
        return record.attempts
