# mkrfoods/utils/notifiers.py
import logging

from mkrfoods.schemas.enums import OtpPurpose
from mkrfoods.utils.email import send_otp_email
from mkrfoods.utils.errors import DeliveryError
from mkrfoods.utils.whatsapp import WhatsAppError, render_otp_message, send_whatsapp_message

logger = logging.getLogger(__name__)


class NotificationSender:
    """Delivers a code out-of-band. Raises DeliveryError when the transport fails."""

    def send(self, identity: str, code: str, purpose: OtpPurpose = OtpPurpose.SEND) -> None:
        raise NotImplementedError


class EmailOtpSender(NotificationSender):
    def __init__(self, ttl_seconds: int, subject: str, resend_subject: str = None,
                 heading: str = "Verify Your Email", resend_heading: str = "New OTP Code"):
        self.expires_minutes = max(1, ttl_seconds // 60)
        self.subject = subject
        self.resend_subject = resend_subject or subject
        self.heading = heading
        self.resend_heading = resend_heading

    def send(self, identity, code, purpose=OtpPurpose.SEND):
        resend = purpose == OtpPurpose.RESEND
        sent = send_otp_email(
            identity,
            code,
            subject=self.resend_subject if resend else self.subject,
            expires_minutes=self.expires_minutes,
            heading=self.resend_heading if resend else self.heading,
        )
        if not sent:
            raise DeliveryError(
                "Failed to send OTP email. Please try again later.",
                detail="SendGrid did not accept the message; check SENDGRID_API_KEY and SENDGRID_FROM_EMAIL.",
            )
        logger.info("OTP email sent successfully to %s", identity)


class WhatsAppOtpSender(NotificationSender):
    def __init__(self, ttl_seconds: int):
        self.expires_minutes = max(1, ttl_seconds // 60)

    def send(self, identity, code, purpose=OtpPurpose.SEND):
        message = render_otp_message(code, self.expires_minutes, resend=purpose == OtpPurpose.RESEND)
        try:
            send_whatsapp_message(identity, message)
        except WhatsAppError as e:
            logger.error("WhatsApp sending error for %s: %s", identity, e)
            raise DeliveryError(
                "Failed to send OTP via WhatsApp. Please try again.",
                detail=str(e),
            )
