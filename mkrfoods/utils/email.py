# mkrfoods/utils/email.py
import logging
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, To, HtmlContent, PlainTextContent, Email, MailSettings, SandBoxMode

from mkrfoods import config

logger = logging.getLogger(__name__)


def render_otp_email(code: str, expires_minutes: int, heading: str = "Verify Your Email") -> tuple[str, str]:
    """Return (plain_text, html) bodies for an OTP email."""
    brand = config.BRAND_NAME
    plain_text = (
        f"{brand} - {heading}\n\n"
        f"Your One-Time Password (OTP) is: {code}\n"
        f"This code will expire in {expires_minutes} minutes. Do not share this code with anyone.\n"
        "If you didn't request this code, please ignore this email."
    )
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #333;">{brand}</h2>
      <h3 style="color: #1a202c;">{heading}</h3>
      <p style="color: #666; font-size: 16px;">Your One-Time Password (OTP) is:</p>
      <div style="background-color: #ff6b6b; color: white; padding: 20px; border-radius: 8px; text-align: center;">
        <span style="font-size: 36px; font-weight: bold; letter-spacing: 5px;">{code}</span>
      </div>
      <p style="color: #999; font-size: 14px;">This code will expire in {expires_minutes} minutes. Do not share this code with anyone.</p>
      <p style="color: #999; font-size: 14px;">If you didn't request this code, please ignore this email.</p>
    </div>
    """
    return plain_text, html


def send_otp_email(to_email: str, code: str, subject: str, expires_minutes: int = 5, heading: str = "Verify Your Email") -> bool:
    """
    Send an OTP email via SendGrid.
    Returns True if send was accepted (202 or 200) - logs and returns False on failure.
    """
    if not config.SENDGRID_API_KEY or not config.SENDGRID_FROM_EMAIL:
        logger.error("SendGrid not configured (missing API key or sender email).")
        return False

    plain_text, html = render_otp_email(code, expires_minutes, heading)

    message = Mail(
        from_email=Email(config.SENDGRID_FROM_EMAIL, config.BRAND_NAME),
        to_emails=To(to_email),
        subject=subject,
        plain_text_content=PlainTextContent(plain_text),
        html_content=HtmlContent(html)
    )

    # Sandbox mode available for dev (does not deliver)
    if config.SENDGRID_SANDBOX:
        message.mail_settings = MailSettings(sandbox_mode=SandBoxMode(True))
        logger.info("SendGrid sandbox mode enabled; %s will not receive mail.", to_email)

    try:
        client = SendGridAPIClient(config.SENDGRID_API_KEY)
        resp = client.send(message)
        code_resp = resp.status_code if resp is not None else None
        logger.info("SendGrid send result: %s", code_resp)
        # SendGrid returns 202 on success, treat 200/202 as ok
        if code_resp in (200, 202):
            return True
        logger.warning("SendGrid returned non-2xx: %s %s", code_resp, getattr(resp, "body", ""))
        return False
    except Exception as e:
        logger.exception("Failed to send email via SendGrid: %s", e)
        return False
