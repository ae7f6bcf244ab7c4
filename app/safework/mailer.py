from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid

logger = logging.getLogger(__name__)


class MailerError(RuntimeError):
    pass


def send_email(config: dict, *, to: str, subject: str, html: str, text: str | None = None) -> str:
    """
    Send one HTML e-mail over SMTP. Returns the Message-ID.
    Raises MailerError when SMTP is not configured or delivery fails.
    """
    host = (config.get("SMTP_HOST") or "").strip()
    if not host:
        raise MailerError("SMTP_HOST is not configured")

    msg = EmailMessage()
    msg["From"] = config.get("MAIL_FROM") or "SafeWorkCA <notifications@safeworkca.com>"
    msg["To"] = to
    msg["Subject"] = subject
    msg["Message-ID"] = make_msgid(domain="safeworkca.com")
    msg.set_content(text or "This message requires an HTML-capable mail client.")
    msg.add_alternative(html, subtype="html")

    port = int(config.get("SMTP_PORT") or 587)
    try:
        with smtplib.SMTP(host, port, timeout=30) as smtp:
            if config.get("SMTP_USE_TLS", True):
                smtp.starttls()
            username = config.get("SMTP_USERNAME") or ""
            if username:
                smtp.login(username, config.get("SMTP_PASSWORD") or "")
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise MailerError(f"SMTP delivery to {to} failed: {e}") from e

    logger.info("Sent email to=%s subject=%r", to, subject)
    return msg["Message-ID"]
