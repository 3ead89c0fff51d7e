# mkrfoods/utils/errors.py
from typing import Any, Dict, Optional


class OtpServiceError(Exception):
    """Base class for errors rendered as `{success: false, message}` responses."""

    status_code = 400

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def extra(self) -> Dict[str, Any]:
        return {}


class ValidationError(OtpServiceError):
    """Malformed identity or missing fields."""


class ChallengeStateError(OtpServiceError):
    """Client-correctable OTP state: not found, expired, too many attempts, mismatch."""

    def __init__(self, message: str, reason: str, attempts_remaining: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.attempts_remaining = attempts_remaining

    def extra(self) -> Dict[str, Any]:
        if self.attempts_remaining is None:
            return {}
        return {"attemptsRemaining": self.attempts_remaining}


class NoPendingChallenge(OtpServiceError):
    """Resend requested for a flow that requires an existing challenge."""


class AlreadyRegistered(OtpServiceError):
    """Signup requested for an address that already has an account."""


class DeliveryError(OtpServiceError):
    """The notification transport failed. The issued record is kept."""

    status_code = 500

    def __init__(self, message: str, detail: Optional[str] = None, record=None):
        super().__init__(message, detail)
        self.record = record


class DependencyError(OtpServiceError):
    """A backing store (database, redis) is unavailable."""

    status_code = 500


class IdentityStoreUnavailable(Exception):
    """The identity store cannot answer. Never surfaced to clients."""
