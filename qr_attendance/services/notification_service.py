# qr_attendance/services/notification_service.py
import logging
from html import escape
from typing import Optional

from pydantic import BaseModel, EmailStr, validator
from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from qr_attendance.core.config import get_email_settings

logger = logging.getLogger(__name__)


class EmailConfig(BaseModel):
    """Email configuration with secure defaults and validation"""
    MAIL_USERNAME: str
    MAIL_PASSWORD: str
    MAIL_FROM: EmailStr
    MAIL_PORT: int = 465
    MAIL_SERVER: str = "smtp.gmail.com"
    MAIL_FROM_NAME: str = "Chamada QR"
    MAIL_STARTTLS: bool = False
    MAIL_SSL_TLS: bool = True
    USE_CREDENTIALS: bool = True
    VALIDATE_CERTS: bool = True
    TIMEOUT: int = 10

    @validator('MAIL_PORT')
    def validate_port(cls, v):
        if v not in [25, 465, 587, 1025]:
            raise ValueError(f"Invalid SMTP port: {v}")
        return v


class Notifier:
    """Confirmation channel towards the student; callers treat every send as fire-and-forget"""

    async def send_confirmation(
        self,
        student_name: str,
        student_email: str,
        student_registration: str,
        class_name: str,
        session_date: str,
        session_time: str
    ) -> bool:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Used when SMTP is not configured: records the confirmation in the log only"""

    async def send_confirmation(
        self,
        student_name: str,
        student_email: str,
        student_registration: str,
        class_name: str,
        session_date: str,
        session_time: str
    ) -> bool:
        logger.info(
            f"Confirmation for {student_registration} in {class_name} "
            f"({session_date} {session_time}) not sent: email disabled"
        )
        return False


class EmailNotifier(Notifier):
    def __init__(self, config: EmailConfig):
        self.conf = ConnectionConfig(
            MAIL_USERNAME=config.MAIL_USERNAME,
            MAIL_PASSWORD=config.MAIL_PASSWORD,
            MAIL_FROM=config.MAIL_FROM,
            MAIL_PORT=config.MAIL_PORT,
            MAIL_SERVER=config.MAIL_SERVER,
            MAIL_STARTTLS=config.MAIL_STARTTLS,
            MAIL_SSL_TLS=config.MAIL_SSL_TLS,
            USE_CREDENTIALS=config.USE_CREDENTIALS,
            VALIDATE_CERTS=config.VALIDATE_CERTS,
            MAIL_FROM_NAME=config.MAIL_FROM_NAME,
            TIMEOUT=config.TIMEOUT
        )
        self.fastmail = FastMail(self.conf)
        logger.info("FastMail client initialized successfully")

    async def send_email(self, recipients, subject: str, body: str) -> bool:
        """Single send attempt; failures are logged and reported as False"""
        if not recipients or not subject or not body:
            logger.warning("Invalid email parameters")
            return False
        try:
            message = MessageSchema(
                subject=subject,
                recipients=recipients,
                body=body,
                subtype=MessageType.html
            )
            await self.fastmail.send_message(message)
            logger.info(f"Email sent successfully to {', '.join(recipients)}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email: {type(e).__name__}: {str(e)}")
            return False

    async def send_confirmation(
        self,
        student_name: str,
        student_email: str,
        student_registration: str,
        class_name: str,
        session_date: str,
        session_time: str
    ) -> bool:
        subject = f"Presença confirmada - {class_name}"
        body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
                <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                    <h2 style="color: #2c5282;">Presença registrada</h2>
                    <p>Olá, {escape(student_name)}!</p>
                    <p>Sua presença na turma <strong>{escape(class_name)}</strong> foi registrada.</p>
                    <div style="background-color: #f7fafc; padding: 15px; border-radius: 5px; margin: 20px 0;">
                        <ul>
                            <li>Matrícula: {escape(student_registration)}</li>
                            <li>Data: {escape(session_date)}</li>
                            <li>Horário da aula: {escape(session_time)}</li>
                        </ul>
                    </div>
                    <p>Se você não reconhece este registro, procure seu professor.</p>
                </div>
            </body>
        </html>
        """
        return await self.send_email([student_email], subject, body)


def build_notifier(email_settings: Optional[dict] = None) -> Notifier:
    """EmailNotifier when SMTP credentials are complete, LoggingNotifier otherwise"""
    email_settings = email_settings or get_email_settings()

    if not email_settings["enabled"]:
        return LoggingNotifier()

    required = {
        "EMAIL_USERNAME": email_settings["username"],
        "EMAIL_PASSWORD": email_settings["password"],
        "EMAIL_FROM": email_settings["from_email"],
        "SMTP_SERVER": email_settings["smtp_server"],
    }
    missing = [name for name, value in required.items() if not value]
    if missing:
        logger.warning(f"Email configuration is incomplete. Missing: {', '.join(missing)}")
        return LoggingNotifier()

    use_tls = email_settings["use_tls"]
    config = EmailConfig(
        MAIL_USERNAME=email_settings["username"],
        MAIL_PASSWORD=email_settings["password"],
        MAIL_FROM=email_settings["from_email"],
        MAIL_PORT=email_settings["smtp_port"],
        MAIL_SERVER=email_settings["smtp_server"],
        MAIL_FROM_NAME=email_settings["from_name"],
        MAIL_STARTTLS=use_tls,
        MAIL_SSL_TLS=not use_tls,
        TIMEOUT=email_settings["timeout"]
    )
    return EmailNotifier(config)
