import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import aiosmtplib

from inbox.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    to: str
    subject: str
    body_html: str
    body_text: str


class EmailService(ABC):
    @abstractmethod
    async def send_email(self, message: EmailMessage) -> bool:
        pass


class ConsoleEmailService(EmailService):
    """Development backend: logs the message instead of sending it."""

    async def send_email(self, message: EmailMessage) -> bool:
        logger.info(
            "Email (console backend) to=%s subject=%s\n%s",
            message.to,
            message.subject,
            message.body_text,
        )
        return True


class SMTPEmailService(EmailService):
    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        username: str,
        password: str,
        from_email: str,
        from_name: str,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.from_name = from_name

    async def send_email(self, message: EmailMessage) -> bool:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = message.to
        msg.attach(MIMEText(message.body_text, "plain"))
        msg.attach(MIMEText(message.body_html, "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.username,
                password=self.password,
                start_tls=True,
            )
        except aiosmtplib.SMTPException:
            logger.exception("Failed to send email to %s", message.to)
            return False
        return True


def get_email_service() -> EmailService:
    if settings.EMAIL_BACKEND == "smtp":
        return SMTPEmailService(
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_email=settings.SMTP_FROM_EMAIL,
            from_name=settings.SMTP_FROM_NAME,
        )
    return ConsoleEmailService()


def build_confirmation_email(name: str, email: str, token: str) -> EmailMessage:
    confirm_url = f"{settings.email_redirect_url}?token={token}"
    hours = settings.EMAIL_CONFIRMATION_TOKEN_EXPIRE_HOURS

    body_html = f"""\
<html>
<body style="font-family: Helvetica, Arial, sans-serif;">
  <h2>Confirm your email</h2>
  <p>Hi {escape(name)},</p>
  <p>Follow this link to confirm your account and start chatting:</p>
  <p><a href="{escape(confirm_url)}">Confirm my email</a></p>
  <p>The link expires in {hours} hours.</p>
</body>
</html>"""

    text_body = f"""\
Confirm your email

Hi {name},

Follow this link to confirm your account and start chatting:
{confirm_url}

The link expires in {hours} hours."""

    return EmailMessage(
        to=email,
        subject="Confirm your signup",
        body_html=body_html,
        body_text=text_body,
    )
