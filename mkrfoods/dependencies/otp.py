# mkrfoods/dependencies/otp.py
"""
Per-flow OTP managers, built once from configuration.

Routers receive them through FastAPI dependencies so tests can swap in
their own managers with `app.dependency_overrides`.
"""
import logging
import threading
from typing import Dict

from mkrfoods import config
from mkrfoods.database.database import SessionLocal
from mkrfoods.schemas.enums import OtpFlow, StoreBackend
from mkrfoods.utils.identity import DatabaseIdentityStore, FirebaseIdentityStore, IdentityStore
from mkrfoods.utils.notifiers import EmailOtpSender, WhatsAppOtpSender
from mkrfoods.utils.otp_manager import OtpManager
from mkrfoods.utils.otp_store import MemoryOtpStore, OtpStore, RedisOtpStore, SqlOtpStore

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_managers: Dict[OtpFlow, OtpManager] = {}


def build_store(backend: str, flow: OtpFlow) -> OtpStore:
    try:
        backend = StoreBackend(backend)
    except ValueError:
        raise ValueError(f"Unknown OTP store backend '{backend}' for flow {flow.value}")

    if backend == StoreBackend.DATABASE:
        return SqlOtpStore(SessionLocal, flow.value)
    if backend == StoreBackend.REDIS:
        if not config.REDIS_URL:
            raise ValueError(f"REDIS_URL must be set to use the redis OTP store for flow {flow.value}")
        return RedisOtpStore.from_url(config.REDIS_URL, flow.value)
    return MemoryOtpStore()


def build_manager(flow: OtpFlow) -> OtpManager:
    common = dict(
        flow=flow.value,
        max_attempts=config.OTP_MAX_ATTEMPTS,
        log_codes=config.IS_DEVELOPMENT,
    )

    if flow == OtpFlow.EMAIL:
        ttl = config.EMAIL_OTP_TTL_SECONDS
        sender = EmailOtpSender(
            ttl,
            subject=f"{config.BRAND_NAME} - Your OTP Verification Code",
            resend_subject=f"{config.BRAND_NAME} - Your New OTP Code",
        )
        store = build_store(config.EMAIL_OTP_STORE, flow)
        manager = OtpManager(store, sender, ttl, **common)
    elif flow == OtpFlow.SIGNUP:
        ttl = config.SIGNUP_OTP_TTL_SECONDS
        sender = EmailOtpSender(
            ttl,
            subject=f"Verify Your {config.BRAND_NAME} Account",
            resend_subject="Your New OTP Code",
        )
        store = build_store(config.SIGNUP_OTP_STORE, flow)
        manager = OtpManager(store, sender, ttl, require_pending=True, **common)
    else:
        ttl = config.MOBILE_OTP_TTL_SECONDS
        store = build_store(config.MOBILE_OTP_STORE, flow)
        manager = OtpManager(store, WhatsAppOtpSender(ttl), ttl, **common)

    logger.info("OTP manager ready: flow=%s store=%s ttl=%ss", flow.value, store.backend, ttl)
    return manager


def _get_manager(flow: OtpFlow) -> OtpManager:
    with _lock:
        manager = _managers.get(flow)
        if manager is None:
            manager = _managers[flow] = build_manager(flow)
        return manager


def get_email_otp_manager() -> OtpManager:
    return _get_manager(OtpFlow.EMAIL)


def get_signup_otp_manager() -> OtpManager:
    return _get_manager(OtpFlow.SIGNUP)


def get_mobile_otp_manager() -> OtpManager:
    return _get_manager(OtpFlow.MOBILE)


def all_managers():
    return [_get_manager(flow) for flow in OtpFlow]


def get_identity_store() -> IdentityStore:
    if config.IDENTITY_STORE == "database":
        return DatabaseIdentityStore(SessionLocal)
    return FirebaseIdentityStore(SessionLocal)


def purge_expired_challenges() -> int:
    """Scheduled job: garbage-collect expired challenges in stores without native expiry."""
    removed = 0
    for manager in all_managers():
        try:
            removed += manager.store.purge_expired()
        except Exception as e:
            logger.exception("Failed to purge expired OTPs for flow %s: %s", manager.flow, e)
    if removed:
        logger.info("Purged %s expired OTP challenge(s)", removed)
    return removed
