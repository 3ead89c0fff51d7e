import os
import json
import logging
import firebase_admin
from firebase_admin import credentials

from mkrfoods import config

logger = logging.getLogger(__name__)


def _load_credentials(raw: str):
    """Accept either an inline JSON string or a path to the service account file."""
    try:
        creds_dict = json.loads(raw)
    except ValueError:
        if os.path.exists(raw):
            return credentials.Certificate(raw)
        logger.error("FIREBASE_CREDENTIALS_JSON is not valid JSON nor a file path")
        return None

    # Fix for escaped newlines in private_key
    if "private_key" in creds_dict:
        creds_dict["private_key"] = creds_dict["private_key"].replace("\\n", "\n")
    return credentials.Certificate(creds_dict)


# ---------------- FIREBASE INITIALIZATION ----------------
def init_firebase() -> bool:
    """Initialize the default Firebase app once. Returns True when an app is available."""
    if firebase_admin._apps:
        return True

    raw = config.FIREBASE_CREDENTIALS_JSON
    if not raw:
        logger.warning("No FIREBASE_CREDENTIALS_JSON env var set; identity pre-check runs in degraded mode.")
        return False

    try:
        cred = _load_credentials(raw)
        if cred is None:
            return False
        firebase_admin.initialize_app(cred)
        logger.info("Firebase Admin initialized successfully")
        return True
    except Exception as e:
        logger.error("Failed to initialize Firebase: %s", e)
        return False


def firebase_ready() -> bool:
    return bool(firebase_admin._apps)
