# mkrfoods/routers/mobile_otp.py
from fastapi import APIRouter, Depends, status

from mkrfoods.dependencies.otp import get_mobile_otp_manager
from mkrfoods.routers.common import deliver_or_preview, raise_for_verify, status_body
from mkrfoods.schemas.otp import MobileOTPRequest, VerifyMobileOTPRequest
from mkrfoods.utils.errors import ValidationError
from mkrfoods.utils.normalisation import normalize_phone
from mkrfoods.utils.otp_manager import OtpManager

router = APIRouter(prefix="/api/mobile-otp", tags=["Mobile OTP"])


@router.post("/send", status_code=status.HTTP_200_OK)
def send_mobile_otp(payload: MobileOTPRequest, manager: OtpManager = Depends(get_mobile_otp_manager)):
    """
    Send an OTP over WhatsApp.
    Body: { "phone": "9876543210" } (10 digits, country code is added)
    """
    phone = normalize_phone(payload.phone)
    return deliver_or_preview(lambda: manager.issue(phone), "phone", phone, "OTP sent to your WhatsApp")


@router.post("/verify", status_code=status.HTTP_200_OK)
def verify_mobile_otp(payload: VerifyMobileOTPRequest, manager: OtpManager = Depends(get_mobile_otp_manager)):
    if not payload.phone or not payload.otp:
        raise ValidationError("Phone number and OTP are required")
    phone = normalize_phone(payload.phone)

    result = manager.verify(phone, payload.otp)
    raise_for_verify(result)

    return {
        "success": True,
        "message": "OTP verified successfully",
        "phone": phone,
        "verified": True,
    }


@router.post("/resend", status_code=status.HTTP_200_OK)
def resend_mobile_otp(payload: MobileOTPRequest, manager: OtpManager = Depends(get_mobile_otp_manager)):
    phone = normalize_phone(payload.phone)
    return deliver_or_preview(lambda: manager.resend(phone), "phone", phone, "New OTP sent to your WhatsApp")


@router.get("/status/{phone}")
def mobile_otp_status(phone: str, manager: OtpManager = Depends(get_mobile_otp_manager)):
    return status_body(manager, normalize_phone(phone), "phone")
