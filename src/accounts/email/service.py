"""Transactional email using SendGrid."""

from typing import Protocol

import httpx

from accounts.logging_config import get_logger
from accounts.settings import Settings

logger = get_logger(__name__)


class Mailer(Protocol):
    """What the auth service needs from an email backend."""

    async def send_password_reset_email(self, to_email: str, reset_link: str) -> bool: ...


class EmailService:
    """Email service using SendGrid API.

    Handles transactional emails:
    - Password reset
    """

    SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        """Initialize email service.

        Args:
            settings: Application settings
            client: Optional HTTP client (a fresh one is opened per send otherwise)
        """
        self.api_key = settings.sendgrid_api_key
        self.from_email = settings.sendgrid_from_email
        self.from_name = settings.sendgrid_from_name
        self.app_name = settings.app_name
        self.enabled = bool(self.api_key)
        self._client = client

        if not self.enabled:
            logger.warning("email_service_disabled", reason="SENDGRID_API_KEY not set")

    async def _post(self, payload: dict, headers: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.SENDGRID_API_URL, json=payload, headers=headers, timeout=30.0)
        async with httpx.AsyncClient() as client:
            return await client.post(self.SENDGRID_API_URL, json=payload, headers=headers, timeout=30.0)

    async def _send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> bool:
        """Send an email via SendGrid API.

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_content: HTML body
            text_content: Plain text body (optional)

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.warning("email_not_sent", reason="service_disabled", to=to_email)
            return False

        payload = {
            "personalizations": [
                {
                    "to": [{"email": to_email}],
                    "subject": subject,
                }
            ],
            "from": {
                "email": self.from_email,
                "name": self.from_name,
            },
            "content": [
                {"type": "text/html", "value": html_content},
            ],
        }

        if text_content:
            payload["content"].insert(0, {"type": "text/plain", "value": text_content})

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._post(payload, headers)
        except httpx.HTTPError as e:
            logger.error("email_send_error", to=to_email, error=str(e))
            return False

        if response.status_code in (200, 201, 202):
            logger.info("email_sent", to=to_email, subject=subject)
            return True

        logger.error(
            "email_send_failed",
            to=to_email,
            status=response.status_code,
            body=response.text[:200],
        )
        return False

    async def send_password_reset_email(self, to_email: str, reset_link: str) -> bool:
        """Send password reset link.

        Args:
            to_email: User's email address
            reset_link: Full URL carrying the reset token

        Returns:
            True if sent successfully
        """
        subject = "Password Reset Request"

        html_content = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <style>
                body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .button {{ display: inline-block; background-color: #2563eb; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; margin: 20px 0; }}
                .warning {{ background-color: #fef3c7; border: 1px solid #f59e0b; padding: 12px; border-radius: 6px; margin: 20px 0; }}
            </style>
        </head>
        <body>
            <div class="container">
                <p>Hello,</p>

                <p>We received a request to reset the password for your {self.app_name} account.</p>

                <p style="text-align: center;">
                    <a href="{reset_link}" class="button">Reset password</a>
                </p>

                <p>Or copy this link into your browser:</p>
                <p style="word-break: break-all; color: #666;">{reset_link}</p>

                <div class="warning">
                    <strong>Note:</strong> This link is valid for 1 hour.
                </div>

                <p>If you did not request this, you can ignore this email. Your password stays unchanged.</p>
            </div>
        </body>
        </html>
        """

        text_content = f"""
Hello,

Click the link to reset your password: {reset_link}

This link is valid for 1 hour.

If you did not request this, you can ignore this email.
Your password stays unchanged.
        """

        return await self._send_email(to_email, subject, html_content, text_content)
