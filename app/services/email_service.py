"""
Transactional email (verification, password reset, support chat notifications, announcements).
Uses Resend if RESEND_API_KEY is set, otherwise SendGrid if SENDGRID_API_KEY is set.
Sending never raises: failures are logged and reported as False so requests are never broken.
"""
import html
import logging
import secrets
import string
from typing import Optional
from urllib.parse import quote

import requests
import resend

from app.core.config import (
    ADMIN_EMAIL,
    APP_NAME,
    APP_URL,
    RESEND_API_KEY,
    SENDER_EMAIL,
    SENDER_NAME,
    SENDGRID_API_KEY,
)

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
VERIFICATION_CODE_LENGTH = 6
VERIFICATION_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_verification_code() -> str:
    """Six character uppercase code, emailed to confirm an address."""
    return "".join(secrets.choice(VERIFICATION_CODE_ALPHABET) for _ in range(VERIFICATION_CODE_LENGTH))


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def _send_with_resend(to_email: str, subject: str, html_body: str, text_body: Optional[str]) -> bool:
    resend.api_key = RESEND_API_KEY
    params = {
        "from": f"{SENDER_NAME} <{SENDER_EMAIL}>",
        "to": [to_email],
        "subject": subject,
        "html": html_body.strip(),
    }
    if text_body:
        params["text"] = text_body.strip()
    response = resend.Emails.send(params)
    logger.info("Email sent via Resend to %s: %s", to_email, (response or {}).get("id"))
    return True


def _send_with_sendgrid(to_email: str, subject: str, html_body: str, text_body: Optional[str]) -> bool:
    content = []
    if text_body:
        content.append({"type": "text/plain", "value": text_body.strip()})
    content.append({"type": "text/html", "value": html_body.strip()})
    response = requests.post(
        SENDGRID_SEND_URL,
        headers={"Authorization": f"Bearer {SENDGRID_API_KEY}", "Content-Type": "application/json"},
        json={
            "personalizations": [{"to": [{"email": to_email}]}],
            "from": {"email": SENDER_EMAIL, "name": SENDER_NAME},
            "subject": subject,
            "content": content,
        },
        timeout=10,
    )
    if response.status_code >= 400:
        logger.error("SendGrid rejected email to %s: %s %s", to_email, response.status_code, response.text[:200])
        return False
    logger.info("Email sent via SendGrid to %s", to_email)
    return True


def send_email(to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
    """
    Send one email. Returns True if a provider accepted it, False if skipped or failed.
    """
    if not to_email:
        return False
    if not RESEND_API_KEY and not SENDGRID_API_KEY:
        logger.warning("No email provider configured; skipping email to %s (%s)", to_email, subject)
        return False
    try:
        if RESEND_API_KEY:
            return _send_with_resend(to_email, subject, html_body, text_body)
        return _send_with_sendgrid(to_email, subject, html_body, text_body)
    except Exception as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        return False


def send_verification_email(username: str, email: str, code: str) -> bool:
    verification_url = f"{APP_URL}/verify-email?code={code}&email={quote(email)}"
    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #22C9C9;">Welcome to {APP_NAME}!</h2>
      <p>Hi {html.escape(username)},</p>
      <p>Please verify your email address to finish setting up your account.</p>
      <p><a href="{verification_url}">Verify Email</a></p>
      <p>Or enter this verification code: <strong>{code}</strong></p>
      <p>This code will expire in 24 hours.</p>
      <p>Thank you,<br>The {APP_NAME} Team</p>
    </div>
    """
    text_body = f"""
    Welcome to {APP_NAME}!

    Hi {username}, please verify your email address: {verification_url}

    Or enter this verification code: {code}
    This code will expire in 24 hours.
    """
    return send_email(email, f"Verify Your {APP_NAME} Account", html_body, text_body)


def send_password_reset_email(username: str, email: str, token: str) -> bool:
    reset_url = f"{APP_URL}/reset-password?token={token}&email={quote(email)}"
    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #22C9C9;">{APP_NAME} Password Reset</h2>
      <p>Hi {html.escape(username)},</p>
      <p>We received a request to reset your password.</p>
      <p><a href="{reset_url}">Reset Password</a></p>
      <p>This link will expire in 1 hour.</p>
      <p>If you didn't request a password reset, please ignore this email.</p>
    </div>
    """
    text_body = f"""
    {APP_NAME} Password Reset

    Hi {username}, reset your password here: {reset_url}
    This link will expire in 1 hour.
    """
    return send_email(email, f"Reset Your {APP_NAME} Password", html_body, text_body)


def send_chat_notification(
    conversation_id: int,
    user_name: str,
    message: str,
    user_email: Optional[str] = None,
) -> bool:
    """Let the support admin know a visitor wrote in the support chat."""
    if not ADMIN_EMAIL:
        logger.warning("ADMIN_EMAIL not set; skipping support chat notification")
        return False
    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #22C9C9;">New Live Chat Message</h2>
      <p><strong>From:</strong> {html.escape(user_name)}{f" ({html.escape(user_email)})" if user_email else ""}</p>
      <p><strong>Conversation:</strong> #{conversation_id}</p>
      <blockquote style="border-left: 4px solid #22C9C9; padding-left: 10px;">{html.escape(message)}</blockquote>
      <p><a href="{APP_URL}/admin/chat">Open the admin chat dashboard</a></p>
    </div>
    """
    return send_email(ADMIN_EMAIL, f"New Live Chat Message from {user_name}", html_body)


def send_announcement(recipients: list[str], subject: str, html_body: str) -> dict:
    """Send the same email to many recipients. Returns sent/failed counts."""
    sent = 0
    failed = []
    for email in recipients:
        if send_email(email, subject, html_body):
            sent += 1
        else:
            failed.append(email)
    logger.info("Announcement '%s': %s sent, %s failed", subject, sent, len(failed))
    return {"sent": sent, "failed": failed}
