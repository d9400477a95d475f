from email.message import EmailMessage

from portal.config import settings
from portal.logging.logger import get_logger

logger = get_logger("notifier")


async def send_email(to: str, subject: str, body: str) -> bool:
    """
    Deliver one email.
    - NOTIFICATION_DRIVER=mock: log only, return True
    - NOTIFICATION_DRIVER=email: send via SMTP
    Returns False when delivery was not possible; callers decide about retries.
    """
    if not to:
        return False

    driver = (settings.NOTIFICATION_DRIVER or "mock").lower()

    if driver == "mock":
        logger.info(f"[MOCK] send email to={to} subject={subject!r}")
        return True

    if driver != "email":
        logger.warning(f"Unsupported NOTIFICATION_DRIVER={settings.NOTIFICATION_DRIVER!r}, skip sending")
        return False

    if not settings.SMTP_HOST or not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        logger.warning("SMTP not configured (SMTP_HOST/SMTP_USER/SMTP_PASSWORD missing), skip sending")
        return False

    msg = EmailMessage()
    msg["From"] = settings.EMAIL_FROM or settings.SMTP_USER
    msg["To"] = to
    msg["Subject"] = f"[{settings.APP_NAME}] {subject}"
    msg.set_content(body)

    import aiosmtplib

    try:
        await aiosmtplib.send(
            msg,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT or 587,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            start_tls=True,
        )
    except aiosmtplib.SMTPException as e:
        logger.warning(f"Failed to send email to={to}: {e}")
        return False

    logger.info(f"Email sent to={to} subject={subject!r}")
    return True
