import logging

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from taskboard.config import settings

logger = logging.getLogger(__name__)


def smtp_configured() -> bool:
    return bool(settings.EMAIL_HOST and settings.EMAIL_FROM)


async def send_email_async(subject: str, body: str, to_email: str) -> bool:
    """
    Send a plain-text email with aiosmtplib.

    Returns False without sending when SMTP is not configured. Delivery
    errors propagate so the caller can record the failure.
    """
    if not smtp_configured():
        logger.info("SMTP not configured, skipping email to %s: %s", to_email, subject[:50])
        return False

    msg = MIMEMultipart()
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain"))

    # STARTTLS, the common setup for port 587
    await aiosmtplib.send(
        msg,
        hostname=settings.EMAIL_HOST,
        port=settings.EMAIL_PORT,
        username=settings.EMAIL_USER,
        password=settings.EMAIL_PASS,
        start_tls=True,
        timeout=10
    )
    logger.info("Email sent to %s: %s", to_email, subject)
    return True
