# mkrfoods/routers/signup_otp.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from mkrfoods.crud import otp as otp_crud
from mkrfoods.database.database import get_db
from mkrfoods.dependencies.otp import get_identity_store, get_signup_otp_manager
from mkrfoods.routers.common import deliver_or_preview, raise_for_verify, status_body
from mkrfoods.schemas.otp import ResendSignupOTPRequest, SignupOTPRequest, VerifySignupOTPRequest
from mkrfoods.utils.errors import AlreadyRegistered, DependencyError, ValidationError
from mkrfoods.utils.identity import IdentityStore, ensure_not_registered
from mkrfoods.utils.normalisation import normalize_email, validate_signup
from mkrfoods.utils.otp_manager import OtpManager
from mkrfoods.utils.security import get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Signup OTP"])


# ---------------- SEND ----------------
@router.post("/send-otp", status_code=status.HTTP_200_OK)
def send_signup_otp(
    payload: SignupOTPRequest,
    manager: OtpManager = Depends(get_signup_otp_manager),
    identity_store: IdentityStore = Depends(get_identity_store),
):
    """
    Start a signup: hold the pending account until the emailed OTP is verified.
    Body: { "name": "...", "email": "...", "password": "..." }
    """
    email = normalize_email(payload.email)
    name = validate_signup(payload.name, payload.password)

    ensure_not_registered(identity_store, email)

    pending = {"name": name, "password_hash": get_password_hash(payload.password)}
    return deliver_or_preview(
        lambda: manager.issue(email, payload=pending),
        "email",
        email,
        "OTP sent successfully to your email",
    )


# ---------------- VERIFY ----------------
@router.post("/verify-otp", status_code=status.HTTP_200_OK)
def verify_signup_otp(
    payload: VerifySignupOTPRequest,
    manager: OtpManager = Depends(get_signup_otp_manager),
    db: Session = Depends(get_db),
):
    """
    Verify the signup OTP and create the account from the pending data.
    Body: { "email": "...", "otp": "123456" }
    """
    if not payload.email or not payload.otp:
        raise ValidationError("Email and OTP are required")
    email = normalize_email(payload.email)

    result = manager.verify(email, payload.otp)
    raise_for_verify(result)

    pending = result.payload or {}
    try:
        user = otp_crud.create_user(db, name=pending.get("name"), email=email, hashed_password=pending.get("password_hash"))
    except IntegrityError:
        db.rollback()
        raise AlreadyRegistered("An account with this email already exists. Please log in instead.")
    except SQLAlchemyError as e:
        db.rollback()
        # The challenge is already consumed; the user has to sign up again
        logger.error("Verified signup for %s could not be saved: %s", email, e)
        raise DependencyError("Could not complete signup. Please sign up again.", detail=str(e))

    logger.info("Signup completed for %s (user_id=%s)", email, user.id)
    return {
        "success": True,
        "verified": True,
        "message": "Email verified successfully!",
        "data": {
            "email": email,
            "name": user.name,
            "userId": user.id,
        },
    }


# ---------------- RESEND ----------------
@router.post("/resend-otp", status_code=status.HTTP_200_OK)
def resend_signup_otp(payload: ResendSignupOTPRequest, manager: OtpManager = Depends(get_signup_otp_manager)):
    """Resend only works while a signup for this email is pending."""
    email = normalize_email(payload.email)
    return deliver_or_preview(lambda: manager.resend(email), "email", email, "OTP resent successfully")


# ---------------- STATUS (development only) ----------------
@router.get("/signup-otp/status/{email}")
def signup_otp_status(email: str, manager: OtpManager = Depends(get_signup_otp_manager)):
    return status_body(manager, normalize_email(email), "email")
