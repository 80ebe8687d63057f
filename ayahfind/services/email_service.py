"""
Email delivery over SMTP.

When SMTP settings are missing the message is skipped and logged, so local
development and tests run without a mail server. Delivery failures are logged
and never fail the request that triggered them.
"""
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ayahfind.core import config

logger = logging.getLogger(__name__)

SUBJECT_VERIFICATION = "Verify Your Email - AyahFind"
SUBJECT_PASSWORD_RESET = "Reset Your Password - AyahFind"
SUBJECT_WELCOME = "Welcome to AyahFind!"


def is_configured() -> bool:
    return bool(config.SMTP_HOST and config.SMTP_FROM and config.SMTP_PORT)


def send_email(subject: str, to_email: str, html_body: str, text_body: Optional[str] = None) -> bool:
    """
    Send a multipart email.

    Returns:
        True if the message was handed to the SMTP server, False otherwise
    """
    if not is_configured():
        logger.info(f"SMTP not configured; skipping email '{subject}'")
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = config.SMTP_FROM
    msg["To"] = to_email
    msg.attach(MIMEText(text_body or html_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))

    try:
        context = ssl.create_default_context()
        if config.SMTP_PORT == 465:
            server = smtplib.SMTP_SSL(config.SMTP_HOST, config.SMTP_PORT, context=context, timeout=10)
        else:
            server = smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10)
        with server:
            if config.SMTP_PORT != 465:
                server.ehlo()
                server.starttls(context=context)
            if config.SMTP_USER and config.SMTP_PASSWORD:
                server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.sendmail(config.SMTP_FROM, [to_email], msg.as_string())
        logger.info(f"Email sent: subject='{subject}'")
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email '{subject}': {e}")
        return False


def _link(path: str, token: str) -> str:
    return f"{config.APP_BASE_URL.rstrip('/')}/{path}?token={token}"


def send_verification_email(to_email: str, token: str) -> bool:
    link = _link("verify-email", token)
    html = (
        "<h2>Verify your email</h2>"
        "<p>Thanks for signing up for AyahFind. Confirm your address to finish setting up your account.</p>"
        f'<p><a href="{link}">Verify email</a></p>'
        f"<p>Or enter this code in the app: <code>{token}</code></p>"
        f"<p>This link expires in {config.VERIFICATION_TOKEN_EXPIRE_HOURS} hours.</p>"
    )
    text = (
        "Thanks for signing up for AyahFind.\n"
        f"Verify your email: {link}\n"
        f"Code: {token}\n"
        f"This link expires in {config.VERIFICATION_TOKEN_EXPIRE_HOURS} hours."
    )
    return send_email(SUBJECT_VERIFICATION, to_email, html, text)


def send_password_reset_email(to_email: str, token: str) -> bool:
    link = _link("reset-password", token)
    html = (
        "<h2>Reset your password</h2>"
        "<p>We received a request to reset your AyahFind password.</p>"
        f'<p><a href="{link}">Choose a new password</a></p>'
        f"<p>Or enter this code in the app: <code>{token}</code></p>"
        f"<p>This link expires in {config.PASSWORD_RESET_TOKEN_EXPIRE_HOURS} hour(s). "
        "If you did not ask for this, you can ignore this email.</p>"
    )
    text = (
        "We received a request to reset your AyahFind password.\n"
        f"Reset it here: {link}\n"
        f"Code: {token}\n"
        "If you did not ask for this, you can ignore this email."
    )
    return send_email(SUBJECT_PASSWORD_RESET, to_email, html, text)


def send_welcome_email(to_email: str, display_name: Optional[str] = None) -> bool:
    greeting = f"Assalamu alaikum {display_name}," if display_name else "Assalamu alaikum,"
    html = (
        f"<p>{greeting}</p>"
        "<p>Your email is verified and your AyahFind account is ready. "
        "Recite a verse and let AyahFind find it for you.</p>"
    )
    text = (
        f"{greeting}\n"
        "Your email is verified and your AyahFind account is ready."
    )
    return send_email(SUBJECT_WELCOME, to_email, html, text)
