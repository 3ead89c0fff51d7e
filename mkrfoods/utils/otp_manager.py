# mkrfoods/utils/otp_manager.py
"""
OTP lifecycle shared by the email, signup and mobile flows.

A challenge is issued (or re-issued) for an identity key, checked against
submitted codes with a bounded number of attempts, and consumed exactly once:
on a successful match, when found expired, or when the attempt cap is hit.
"""
import logging
import secrets
import threading
import zlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from mkrfoods.schemas.enums import OtpPurpose, VerifyStatus
from mkrfoods.utils.errors import DeliveryError, NoPendingChallenge
from mkrfoods.utils.otp_store import OtpRecord, OtpStore

logger = logging.getLogger(__name__)

OTP_MIN = 100000
OTP_MAX = 999999


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    """Uniform 6-digit code in [100000, 999999]."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


@dataclass
class VerifyResult:
    status: VerifyStatus
    attempts_remaining: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status == VerifyStatus.VERIFIED


class OtpManager:
    def __init__(
        self,
        store: OtpStore,
        sender,
        ttl_seconds: int,
        flow: str = "otp",
        max_attempts: int = 3,
        require_pending: bool = False,
        clock: Callable[[], datetime] = _utcnow,
        log_codes: bool = False,
        lock_stripes: int = 64,
    ):
        self.store = store
        self.sender = sender
        self.ttl = timedelta(seconds=ttl_seconds)
        self.flow = flow
        self.max_attempts = max_attempts
        self.require_pending = require_pending
        self.clock = clock
        self.log_codes = log_codes
        # Serializes read-modify-write per key within this process
        self._locks = [threading.Lock() for _ in range(max(1, lock_stripes))]

    def _lock_for(self, key: str) -> threading.Lock:
        return self._locks[zlib.crc32(key.encode("utf-8")) % len(self._locks)]

    def _new_record(self, key: str, payload: Optional[Dict[str, Any]]) -> OtpRecord:
        now = self.clock()
        return OtpRecord(
            key=key,
            code=generate_code(),
            issued_at=now,
            expires_at=now + self.ttl,
            attempts=0,
            payload=payload,
        )

    def _deliver(self, record: OtpRecord, purpose: OtpPurpose) -> None:
        if self.log_codes:
            logger.info("[%s] %s OTP for %s: %s", self.flow, purpose.value, record.key, record.code)
        try:
            self.sender.send(record.key, record.code, purpose)
        except DeliveryError as e:
            e.record = record
            raise
        except Exception as e:
            logger.exception("[%s] OTP delivery to %s failed: %s", self.flow, record.key, e)
            raise DeliveryError("Failed to deliver OTP. Please try again.", detail=str(e), record=record)

    # ---------------- ISSUE ----------------
    def issue(self, key: str, payload: Optional[Dict[str, Any]] = None) -> OtpRecord:
        """
        Write a fresh challenge for `key`, replacing any previous one, then deliver it.
        The record stays written when delivery fails; DeliveryError carries it.
        """
        record = self._new_record(key, payload)
        with self._lock_for(key):
            self.store.put(record)
        self._deliver(record, OtpPurpose.SEND)
        return record

    # ---------------- VERIFY ----------------
    def verify(self, key: str, code: str) -> VerifyResult:
        """Gates run in order: existence, expiry, attempt cap, equality."""
        with self._lock_for(key):
            record = self.store.get(key)
            if record is None:
                return VerifyResult(VerifyStatus.NOT_FOUND)

            if record.is_expired(self.clock()):
                self.store.delete(key)
                return VerifyResult(VerifyStatus.EXPIRED)

            if record.attempts >= self.max_attempts:
                self.store.delete(key)
                return VerifyResult(VerifyStatus.ATTEMPTS_EXCEEDED)

            if code != record.code:
                attempts = self.store.increment_attempts(key)
                if attempts is None:
                    return VerifyResult(VerifyStatus.NOT_FOUND)
                if attempts >= self.max_attempts:
                    self.store.delete(key)
                    logger.info("[%s] attempt cap reached for %s", self.flow, key)
                    return VerifyResult(VerifyStatus.ATTEMPTS_EXCEEDED)
                return VerifyResult(VerifyStatus.MISMATCH, attempts_remaining=self.max_attempts - attempts)

            self.store.delete(key)

        logger.info("[%s] OTP verified for %s", self.flow, key)
        return VerifyResult(VerifyStatus.VERIFIED, payload=record.payload)

    # ---------------- RESEND ----------------
    def resend(self, key: str) -> OtpRecord:
        """
        Invalidate any previous code and issue a new one. Pending payload carries over.
        Raises NoPendingChallenge when the flow requires a live challenge and there is none.
        """
        with self._lock_for(key):
            prior = self.store.get(key)
            if prior is not None and prior.is_expired(self.clock()):
                self.store.delete(key)
                prior = None

            if prior is None and self.require_pending:
                raise NoPendingChallenge("No pending signup for this email. Please submit signup form first.")

            if prior is not None:
                self.store.delete(key)
            record = self._new_record(key, prior.payload if prior else None)
            self.store.put(record)

        self._deliver(record, OtpPurpose.RESEND)
        return record

    # ---------------- DEBUG ----------------
    def peek(self, key: str) -> Optional[OtpRecord]:
        """Read the stored record without any expiry side effects."""
        return self.store.get(key)
