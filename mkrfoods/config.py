# config.py
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


# ------------------ Runtime ------------------
# Unset means production; debug surfaces need an explicit APP_ENV=development
APP_ENV = os.getenv("APP_ENV", os.getenv("NODE_ENV", "production")).strip().lower()
IS_DEVELOPMENT = APP_ENV == "development"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ------------------ Database ------------------
# Local/dev fallback keeps the app runnable without Postgres
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./mkrfoods.db")
SQL_ECHO = _env_bool("SQL_ECHO")

# ------------------ Redis ------------------
REDIS_URL = os.getenv("REDIS_URL")

# ------------------ OTP ------------------
# Store backend per flow: memory | database | redis
EMAIL_OTP_STORE = os.getenv("EMAIL_OTP_STORE", "memory").lower()
SIGNUP_OTP_STORE = os.getenv("SIGNUP_OTP_STORE", "database").lower()
MOBILE_OTP_STORE = os.getenv("MOBILE_OTP_STORE", "memory").lower()

EMAIL_OTP_TTL_SECONDS = int(os.getenv("EMAIL_OTP_TTL_SECONDS", 300))
SIGNUP_OTP_TTL_SECONDS = int(os.getenv("SIGNUP_OTP_TTL_SECONDS", 600))
MOBILE_OTP_TTL_SECONDS = int(os.getenv("MOBILE_OTP_TTL_SECONDS", 300))
OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", 3))

# Return the code in the response when delivery fails in development
OTP_DEV_PREVIEW = _env_bool("OTP_DEV_PREVIEW", "true")
OTP_PURGE_INTERVAL_MINUTES = int(os.getenv("OTP_PURGE_INTERVAL_MINUTES", 5))

DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "+91")

# ------------------ Identity pre-check ------------------
# firebase | database
IDENTITY_STORE = os.getenv("IDENTITY_STORE", "firebase").lower()

# ------------------ Firebase ------------------
# Either inline JSON (deployment) or a path to the service account file (local dev)
FIREBASE_CREDENTIALS_JSON = os.getenv("FIREBASE_CREDENTIALS_JSON", os.getenv("FIREBASE_SERVICE_ACCOUNT"))

# ------------------ SendGrid ------------------
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL")
SENDGRID_SANDBOX = _env_bool("SENDGRID_SANDBOX")

# ------------------ WhatsApp Cloud API ------------------
WHATSAPP_ACCESS_TOKEN = os.getenv("WHATSAPP_ACCESS_TOKEN")
WHATSAPP_PHONE_NUMBER_ID = os.getenv("WHATSAPP_PHONE_NUMBER_ID")
WHATSAPP_API_URL = os.getenv("WHATSAPP_API_URL", "https://graph.facebook.com/v19.0")
WHATSAPP_TIMEOUT_SECONDS = int(os.getenv("WHATSAPP_TIMEOUT_SECONDS", 15))

BRAND_NAME = os.getenv("BRAND_NAME", "MKR Foods")
