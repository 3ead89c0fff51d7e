from enum import Enum

# ------------------ OTP FLOWS ------------------
class OtpFlow(str, Enum):
    EMAIL = "email"
    SIGNUP = "signup"
    MOBILE = "mobile"

# ------------------ STORE BACKENDS ------------------
class StoreBackend(str, Enum):
    MEMORY = "memory"
    DATABASE = "database"
    REDIS = "redis"

# ------------------ VERIFY OUTCOMES ------------------
class VerifyStatus(str, Enum):
    VERIFIED = "verified"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    MISMATCH = "mismatch"

# ------------------ NOTIFICATION PURPOSE ------------------
class OtpPurpose(str, Enum):
    SEND = "send"
    RESEND = "resend"
