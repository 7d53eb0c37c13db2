"""
Outgoing mail over SMTP.

Uses the MAIL_* settings from eventreg.config.settings. When MAIL_HOST is not
configured every send is skipped with a warning, which is what local
development and the test-suite rely on.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from urllib.parse import quote

from eventreg.config import settings

logger = logging.getLogger("eventreg.mail")


def _send(to_email: str, subject: str, text_body: str, html_body: str) -> bool:
    if not settings.MAIL_HOST:
        logger.warning("MAIL_HOST not configured, skipping email '%s' to %s", subject, to_email)
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.APP_NAME} <{settings.MAIL_FROM}>"
    msg["To"] = to_email
    msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    if settings.MAIL_SECURE:
        server = smtplib.SMTP_SSL(settings.MAIL_HOST, settings.MAIL_PORT)
    else:
        server = smtplib.SMTP(settings.MAIL_HOST, settings.MAIL_PORT)

    with server:
        if not settings.MAIL_SECURE:
            server.ehlo()
            server.starttls()
            server.ehlo()
        if settings.MAIL_USER:
            server.login(settings.MAIL_USER, settings.MAIL_PASSWORD)
        server.sendmail(settings.MAIL_FROM, to_email, msg.as_string())

    logger.info("Email '%s' sent to %s", subject, to_email)
    return True


def send_verification_email(to_email: str, token: str) -> bool:
    """
    Send the account verification link.

    Raises smtplib / OS errors; callers decide whether that matters.
    """
    link = f"{settings.VERIFICATION_BASE_URL.rstrip('/')}/auth/verify-email?token={quote(token)}"
    hours = settings.EMAIL_TOKEN_EXPIRATION // 3600

    text_body = f"""
Welcome to {settings.APP_NAME}!

Please verify your email address by opening the link below:
{link}

The link expires in {hours} hours. If you did not create an account, ignore this email.
    """.strip()

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto; padding: 24px;">
        <h2>Welcome to {settings.APP_NAME}!</h2>
        <p>Please verify your email address to activate your account.</p>
        <p><a href="{link}" style="display: inline-block; background: #2563eb; color: #fff;
            text-decoration: none; padding: 10px 24px; border-radius: 6px;">Verify email</a></p>
        <p style="color: #666; font-size: 12px;">The link expires in {hours} hours.
            Questions? Contact <a href="mailto:{settings.SUPPORT_EMAIL}">{settings.SUPPORT_EMAIL}</a>.</p>
    </div>
    """

    return _send(to_email, f"Verify your email for {settings.APP_NAME}", text_body, html_body)


def send_password_reset_email(to_email: str, token: str) -> bool:
    link = f"{settings.CLIENT_URL.rstrip('/')}/reset-password?token={quote(token)}"
    minutes = settings.RESET_TOKEN_EXPIRE_MINUTES

    text_body = f"""
A password reset was requested for your {settings.APP_NAME} account.

Reset your password here (valid for {minutes} minutes, single use):
{link}

If you didn't request this, you can safely ignore this email.
    """.strip()

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto; padding: 24px;">
        <h2>Password reset</h2>
        <p>A password reset was requested for your {settings.APP_NAME} account.</p>
        <p><a href="{link}" style="display: inline-block; background: #2563eb; color: #fff;
            text-decoration: none; padding: 10px 24px; border-radius: 6px;">Reset password</a></p>
        <p style="color: #666; font-size: 12px;">This link expires in {minutes} minutes and can be used once.
            If you didn't request this, you can safely ignore this email.</p>
    </div>
    """

    return _send(to_email, f"Reset your {settings.APP_NAME} password", text_body, html_body)
