"""Outgoing e-mail over SMTP.

When SMTP credentials are not configured the message is written to the
log instead, so local development can complete the OTP login without a
mail server. Functions return `True` on success and `False` when the SMTP
server rejected or failed the delivery.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ..config import settings

logger = logging.getLogger("admin_panel.mail")

OTP_SUBJECT = "Your OTP for Admin Login"

_OTP_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #333;">Two-Step Verification</h2>
  <p>Your verification code is:</p>
  <div style="font-size: 32px; font-weight: bold; letter-spacing: 10px; color: #667eea; margin: 20px 0;">{otp}</div>
  <p style="color: #666;">This code expires in {minutes} minutes.</p>
  <p style="color: #888; font-size: 14px;">If you didn't request this code, please ignore this email.</p>
</div>
"""


def send_email(to: str, subject: str, body: str, html: Optional[str] = None) -> bool:
    """Send a plain-text (optionally multipart HTML) message to `to`."""
    if not settings.smtp_configured:
        logger.info("[DEV MODE] email to %s: %s\n%s", to, subject, body)
        return True

    message = MIMEMultipart("alternative")
    message["From"] = settings.SMTP_FROM or settings.SMTP_USER
    message["To"] = to
    message["Subject"] = subject
    message.attach(MIMEText(body, "plain"))
    if html:
        message.attach(MIMEText(html, "html"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as server:
            if settings.SMTP_USE_TLS:
                server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("SMTP error sending email to %s: %s", to, e)
        return False
    logger.info("email sent to %s: %s", to, subject)
    return True


def send_otp_email(email: str, otp: str) -> bool:
    """Deliver a login OTP. Only the dev fallback ever logs the code itself."""
    if not settings.smtp_configured:
        logger.info("[DEV MODE] OTP for %s: %s", email, otp)
        return True
    body = (
        f"Your verification code is {otp}.\n\n"
        f"This code expires in {settings.OTP_TTL_MINUTES} minutes. "
        "If you didn't request this code, please ignore this email."
    )
    html = _OTP_HTML.format(otp=otp, minutes=settings.OTP_TTL_MINUTES)
    return send_email(email, OTP_SUBJECT, body, html=html)
