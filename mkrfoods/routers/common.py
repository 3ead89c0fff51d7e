# mkrfoods/routers/common.py
import logging
from typing import Any, Callable, Dict

from fastapi import HTTPException, status

from mkrfoods import config
from mkrfoods.schemas.enums import VerifyStatus
from mkrfoods.utils.errors import ChallengeStateError, DeliveryError
from mkrfoods.utils.otp_manager import OtpManager, VerifyResult

logger = logging.getLogger(__name__)

VERIFY_MESSAGES = {
    VerifyStatus.NOT_FOUND: "OTP not found. Please request a new OTP.",
    VerifyStatus.EXPIRED: "OTP has expired. Please request a new OTP.",
    VerifyStatus.ATTEMPTS_EXCEEDED: "Maximum OTP attempts exceeded. Please request a new OTP.",
}


def raise_for_verify(result: VerifyResult) -> None:
    """Turn a failed verification into a client-correctable 400."""
    if result.ok:
        return
    if result.status == VerifyStatus.MISMATCH:
        raise ChallengeStateError(
            f"Invalid OTP. Attempts remaining: {result.attempts_remaining}",
            reason=result.status.value,
            attempts_remaining=result.attempts_remaining,
        )
    raise ChallengeStateError(VERIFY_MESSAGES[result.status], reason=result.status.value)


def deliver_or_preview(issue: Callable[[], Any], identity_field: str, identity: str, message: str) -> Dict[str, Any]:
    """
    Run an issue/resend call and build the success body.
    In development a failed delivery can still return the code for local testing.
    """
    try:
        issue()
    except DeliveryError as e:
        if not config.IS_DEVELOPMENT or not config.OTP_DEV_PREVIEW or e.record is None:
            raise
        logger.warning("Delivery failed for %s, returning development preview: %s", identity, e.detail or e.message)
        return {
            "success": True,
            "message": "OTP generated but delivery failed (development preview).",
            identity_field: identity,
            "previewCode": e.record.code,
        }
    return {"success": True, "message": message, identity_field: identity}


def status_body(manager: OtpManager, key: str, identity_field: str) -> Dict[str, Any]:
    """Debug view of a stored challenge. Only served when APP_ENV=development."""
    if not config.IS_DEVELOPMENT:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This endpoint is only available in development")

    record = manager.peek(key)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No OTP found for this {identity_field}")

    return {
        "success": True,
        identity_field: key,
        "otp": record.code,
        "expiresIn": f"{record.seconds_left(manager.clock())}s",
        "attempts": record.attempts,
    }
