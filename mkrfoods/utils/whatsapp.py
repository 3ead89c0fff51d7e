# mkrfoods/utils/whatsapp.py
import logging
import requests

from mkrfoods import config

logger = logging.getLogger(__name__)


class WhatsAppError(Exception):
    pass


def render_otp_message(code: str, expires_minutes: int, resend: bool = False) -> str:
    label = "Your New OTP Verification Code" if resend else "Your OTP Verification Code"
    lines = [
        f"{config.BRAND_NAME} - {label}",
        "",
        f"Your {'new ' if resend else ''}OTP is: {code}",
        "",
        f"This code will expire in {expires_minutes} minutes.",
        "Do not share this code with anyone.",
    ]
    if not resend:
        lines += ["", "If you didn't request this code, please ignore this message."]
    return "\n".join(lines)


def send_whatsapp_message(to_number: str, message: str) -> dict:
    """
    Send a text message through the WhatsApp Cloud API.
    - to_number is in international form (e.g. +919876543210).
    - Returns the parsed JSON response, raises WhatsAppError on failure.
    """
    if not config.WHATSAPP_ACCESS_TOKEN or not config.WHATSAPP_PHONE_NUMBER_ID:
        raise WhatsAppError("WhatsApp credentials not configured. Set WHATSAPP_ACCESS_TOKEN and WHATSAPP_PHONE_NUMBER_ID.")

    url = f"{config.WHATSAPP_API_URL.rstrip('/')}/{config.WHATSAPP_PHONE_NUMBER_ID}/messages"
    payload = {
        "messaging_product": "whatsapp",
        "to": to_number.lstrip("+"),
        "type": "text",
        "text": {"body": message},
    }

    try:
        resp = requests.post(
            url,
            json=payload,
            headers={"Authorization": f"Bearer {config.WHATSAPP_ACCESS_TOKEN}"},
            timeout=config.WHATSAPP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        raise WhatsAppError(f"Network error sending WhatsApp message: {e}")

    if resp.status_code < 200 or resp.status_code >= 300:
        # include response body for easier debugging
        raise WhatsAppError(f"WhatsApp API error: {resp.status_code} - {resp.text}")

    logger.info("WhatsApp message accepted for %s", to_number)
    try:
        return resp.json()
    except ValueError:
        return {"raw_response": resp.text}
