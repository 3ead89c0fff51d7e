# mkrfoods/routers/email_otp.py
from fastapi import APIRouter, Depends, status
import logging

from mkrfoods.dependencies.otp import get_email_otp_manager
from mkrfoods.routers.common import deliver_or_preview, raise_for_verify, status_body
from mkrfoods.schemas.otp import EmailOTPRequest, VerifyEmailOTPRequest
from mkrfoods.utils.errors import ValidationError
from mkrfoods.utils.normalisation import normalize_email
from mkrfoods.utils.otp_manager import OtpManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/email-otp", tags=["Email OTP"])


# ---------------- SEND ----------------
@router.post("/send", status_code=status.HTTP_200_OK)
def send_email_otp(payload: EmailOTPRequest, manager: OtpManager = Depends(get_email_otp_manager)):
    """
    Send a 6-digit OTP to an email address.
    Body: { "email": "user@example.com" }
    """
    email = normalize_email(payload.email)
    return deliver_or_preview(lambda: manager.issue(email), "email", email, "OTP sent to your email")


# ---------------- VERIFY ----------------
@router.post("/verify", status_code=status.HTTP_200_OK)
def verify_email_otp(payload: VerifyEmailOTPRequest, manager: OtpManager = Depends(get_email_otp_manager)):
    """
    Verify an email OTP.
    Body: { "email": "user@example.com", "otp": "123456" }
    """
    if not payload.email or not payload.otp:
        raise ValidationError("Email and OTP are required")
    email = normalize_email(payload.email)

    result = manager.verify(email, payload.otp)
    raise_for_verify(result)

    return {
        "success": True,
        "message": "OTP verified successfully",
        "email": email,
        "verified": True,
    }


# ---------------- RESEND ----------------
@router.post("/resend", status_code=status.HTTP_200_OK)
def resend_email_otp(payload: EmailOTPRequest, manager: OtpManager = Depends(get_email_otp_manager)):
    """Drop any outstanding code and send a new one."""
    email = normalize_email(payload.email)
    return deliver_or_preview(lambda: manager.resend(email), "email", email, "New OTP sent to your email")


# ---------------- STATUS (development only) ----------------
@router.get("/status/{email}")
def email_otp_status(email: str, manager: OtpManager = Depends(get_email_otp_manager)):
    return status_body(manager, normalize_email(email), "email")
