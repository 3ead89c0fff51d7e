import re
from typing import Optional

from mkrfoods import config
from mkrfoods.utils.errors import ValidationError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# 10-digit Indian mobile numbers
PHONE_RE = re.compile(r"^[6-9]\d{9}$")

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8


def normalize_email(raw: Optional[str]) -> str:
    """Lowercase and trim, then check the basic local@domain.tld shape."""
    email = (raw or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    return email


def normalize_phone(raw: Optional[str]) -> str:
    """
    Validate a national mobile number and reshape it to international form.

    "9876543210" -> "+919876543210" (with the default +91 country code)
    """
    phone = (raw or "").strip()
    if not phone:
        raise ValidationError("Phone number is required")
    if not PHONE_RE.match(phone):
        raise ValidationError("Invalid phone number format. Please enter 10-digit Indian mobile number.")
    return f"{config.DEFAULT_COUNTRY_CODE}{phone}"


def validate_signup(name: Optional[str], password: Optional[str]) -> str:
    """Check pending signup fields. Returns the trimmed display name."""
    clean_name = (name or "").strip()
    if len(clean_name) < MIN_NAME_LENGTH:
        raise ValidationError("Name is required")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return clean_name
