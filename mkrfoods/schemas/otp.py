# mkrfoods/schemas/otp.py
# Fields are optional so missing values get the same 400 messages as malformed ones.
from pydantic import BaseModel
from typing import Optional


# ---------------- EMAIL OTP ----------------
class EmailOTPRequest(BaseModel):
    email: Optional[str] = None

class VerifyEmailOTPRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None


# ---------------- SIGNUP OTP ----------------
class SignupOTPRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

class ResendSignupOTPRequest(BaseModel):
    email: Optional[str] = None

class VerifySignupOTPRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None


# ---------------- MOBILE OTP ----------------
class MobileOTPRequest(BaseModel):
    phone: Optional[str] = None

class VerifyMobileOTPRequest(BaseModel):
    phone: Optional[str] = None
    otp: Optional[str] = None
