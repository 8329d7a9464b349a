"""
Outbound message transports.

SMS goes through the Twilio REST API and email through SMTP. When a
transport has no credentials configured, sends are logged and reported as
successful so the rest of the pipeline still runs in development.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from ..config import Settings

# Set up logging
logger = logging.getLogger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"


@dataclass(frozen=True)
class SendResult:
    """Outcome of one transport call."""
    success: bool
    error: Optional[str] = None


class SmsSender:
    """Sends SMS through Twilio."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send_sms(self, recipient: str, message: str) -> SendResult:
        """
        Send one SMS.

        Args:
            recipient: Destination phone number in E.164 format
            message: Message body

        Returns:
            SendResult: success, or the transport error
        """
        if not self.configured:
            logger.info(f"[SMS] Twilio not configured - SMS would be sent to {recipient}")
            return SendResult(success=True)

        url = TWILIO_API_URL.format(account_sid=self.account_sid)
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    url,
                    auth=(self.account_sid, self.auth_token),
                    data={"From": self.from_number, "To": recipient, "Body": message},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"[SMS] Twilio rejected message to {recipient}: {e.response.status_code}")
            return SendResult(success=False, error=f"Twilio returned {e.response.status_code}: {e.response.text}")
        except httpx.HTTPError as e:
            logger.error(f"[SMS] Transport error sending to {recipient}: {str(e)}")
            return SendResult(success=False, error=str(e) or e.__class__.__name__)

        logger.info(f"[SMS] Sent to {recipient}")
        return SendResult(success=True)


class EmailSender:
    """Sends plain-text email over SMTP."""

    def __init__(self, connection_config: Optional[ConnectionConfig] = None):
        self.connection_config = connection_config
        self._mail = FastMail(connection_config) if connection_config else None

    @property
    def configured(self) -> bool:
        return self._mail is not None

    async def send_email(self, recipient: str, subject: str, message: str) -> SendResult:
        """
        Send one email.

        Args:
            recipient: Destination email address
            subject: Subject line
            message: Plain text body

        Returns:
            SendResult: success, or the transport error
        """
        if not self.configured:
            logger.info(f"[Email] SMTP not configured - Email would be sent to {recipient}: {subject}")
            return SendResult(success=True)

        schema = MessageSchema(
            subject=subject,
            recipients=[recipient],
            body=message,
            subtype=MessageType.plain,
        )
        try:
            await self._mail.send_message(schema)
        except Exception as e:
            logger.error(f"[Email] Error sending to {recipient}: {str(e)}")
            return SendResult(success=False, error=str(e) or e.__class__.__name__)

        logger.info(f"[Email] Sent to {recipient}")
        return SendResult(success=True)


def build_sms_sender(settings: Settings) -> SmsSender:
    if not settings.twilio_configured:
        return SmsSender(timeout_seconds=settings.sender_timeout_seconds)

    return SmsSender(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_phone_number,
        timeout_seconds=settings.sender_timeout_seconds,
    )


def build_email_sender(settings: Settings) -> EmailSender:
    if not settings.mail_configured:
        return EmailSender()

    return EmailSender(
        ConnectionConfig(
            MAIL_USERNAME=settings.mail_username,
            MAIL_PASSWORD=settings.mail_password,
            MAIL_FROM=settings.mail_from,
            MAIL_PORT=settings.mail_port,
            MAIL_SERVER=settings.mail_server,
            MAIL_STARTTLS=settings.mail_starttls,
            MAIL_SSL_TLS=settings.mail_ssl_tls,
            USE_CREDENTIALS=True,
            VALIDATE_CERTS=True,
            TIMEOUT=int(settings.sender_timeout_seconds),
        )
    )
