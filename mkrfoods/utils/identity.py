# mkrfoods/utils/identity.py
"""
Identity pre-check for the signup flow.

When the account store cannot answer, signups are allowed rather than
blocked. Every such decision is logged with `event=identity_precheck_degraded`
and counted in DEGRADED_PRECHECKS.
"""
import logging
import threading

from firebase_admin import auth, exceptions as firebase_exceptions
from sqlalchemy.exc import SQLAlchemyError

from mkrfoods.crud import otp as otp_crud
from mkrfoods.utils.errors import AlreadyRegistered, IdentityStoreUnavailable
from mkrfoods.utils.firebase import firebase_ready

logger = logging.getLogger(__name__)


class _Counter:
    def __init__(self):
        self._lock = threading.Lock()
        self.value = 0

    def incr(self) -> int:
        with self._lock:
            self.value += 1
            return self.value


DEGRADED_PRECHECKS = _Counter()


class IdentityStore:
    def exists_by_email(self, email: str) -> bool:
        raise NotImplementedError


class DatabaseIdentityStore(IdentityStore):
    """Accounts created by the signup flow live in the local users table."""

    name = "database"

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def exists_by_email(self, email):
        db = self._session_factory()
        try:
            return otp_crud.get_user_by_email(db, email) is not None
        except SQLAlchemyError as e:
            raise IdentityStoreUnavailable(str(e))
        finally:
            db.close()


class FirebaseIdentityStore(DatabaseIdentityStore):
    """
    Local users table first, then Firebase Auth.
    A Firebase outage only degrades the check for addresses not already known locally.
    """

    name = "firebase"

    def exists_by_email(self, email):
        if super().exists_by_email(email):
            return True
        if not firebase_ready():
            raise IdentityStoreUnavailable("Firebase Admin is not initialized")
        try:
            auth.get_user_by_email(email)
            return True
        except auth.UserNotFoundError:
            return False
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            raise IdentityStoreUnavailable(str(e))


def ensure_not_registered(store: IdentityStore, email: str) -> bool:
    """
    Raise AlreadyRegistered if `email` already has an account.
    Returns False when the check ran in degraded mode, True otherwise.
    """
    try:
        exists = store.exists_by_email(email)
    except IdentityStoreUnavailable as e:
        count = DEGRADED_PRECHECKS.incr()
        store_name = getattr(store, "name", type(store).__name__)
        logger.warning(
            "event=identity_precheck_degraded store=%s degraded_total=%s: allowing signup for %s: %s",
            store_name,
            count,
            email,
            e,
            extra={
                "event": "identity_precheck_degraded",
                "identity_store": store_name,
                "degraded_total": count,
            },
        )
        return False

    if exists:
        raise AlreadyRegistered("An account with this email already exists. Please log in instead.")
    return True
