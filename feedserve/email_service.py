"""Email service for sending validation alerts via Mailgun."""

import html as html_lib
import logging
from typing import Any

import httpx

from feedserve.config import Settings
from feedserve.validator.models import ValidationResult

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending emails via Mailgun API."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.api_key = settings.mailgun_api_key
        self.domain = settings.mailgun_domain
        self.from_email = settings.mailgun_from_email
        self.base_url = f"https://api.mailgun.net/v3/{self.domain}/messages"

    def is_configured(self) -> bool:
        """Check if Mailgun is properly configured."""
        return bool(self.api_key and self.domain)

    async def send_email(
        self,
        to: str,
        subject: str,
        text: str,
        html: str | None = None,
    ) -> bool:
        """
        Send an email via Mailgun API.

        Args:
            to: Recipient email address
            subject: Email subject
            text: Plain text body
            html: Optional HTML body

        Returns:
            True if email was sent successfully, False otherwise

        Raises:
            ValueError: If Mailgun is not configured
        """
        if not self.is_configured():
            logger.error(
                "Mailgun is not configured. Set FS_MAILGUN_API_KEY and FS_MAILGUN_DOMAIN."
            )
            raise ValueError("Email service is not configured")

        data: dict[str, Any] = {
            "from": self.from_email,
            "to": to,
            "subject": subject,
            "text": text,
        }

        if html:
            data["html"] = html

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.base_url,
                    auth=("api", self.api_key),
                    data=data,
                    timeout=10.0,
                )
        except httpx.HTTPError as e:
            logger.error(f"HTTP error while sending email to {to}: {e}", exc_info=True)
            return False

        if response.status_code == 200:
            logger.info(f"Email sent successfully to {to}: {subject}")
            return True

        logger.error(
            f"Failed to send email to {to}. Status: {response.status_code}, "
            f"Response: {response.text}"
        )
        return False


def _bullets(lines: list[str]) -> str:
    return "\n".join(f"• {line}" for line in lines) or "• (none)"


def _html_list(lines: list[str]) -> str:
    return "".join(f"<li>{html_lib.escape(line)}</li>" for line in lines) or "<li>(none)</li>"


async def send_validation_alert_email(
    settings: Settings, feed_name: str, feed_url: str, result: ValidationResult
) -> bool:
    """
    Send an alert summarizing a failed feed validation.

    Args:
        settings: Application settings (Mailgun credentials and recipient)
        feed_name: Feed slug
        feed_url: URL that was validated
        result: The failing validation result

    Returns:
        True if email was sent successfully, False otherwise
    """
    service = EmailService(settings)

    subject = f"[{settings.site_name}] Feed validation failed: {feed_name}"

    text = f"""Feed validation found problems with the {feed_name} feed.

Feed URL: {feed_url}
Checked at: {result.checked_at.isoformat() if result.checked_at else "unknown"}

Errors:
{_bullets(result.errors)}

Warnings:
{_bullets(result.warnings)}

---
{settings.site_name} feed monitoring
"""

    html = f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2 style="color: #991b1b;">Feed validation failed: {feed_name}</h2>
    <p><a href="{feed_url}">{feed_url}</a></p>

    <div style="background: #fee2e2; border-left: 4px solid #dc2626; padding: 15px; margin: 20px 0;">
        <p style="margin: 0 0 10px 0; font-weight: bold;">Errors</p>
        <ul style="margin: 0; padding-left: 20px;">{_html_list(result.errors)}</ul>
    </div>

    <div style="background: #fff3cd; border-left: 4px solid #ffc107; padding: 15px; margin: 20px 0;">
        <p style="margin: 0 0 10px 0; font-weight: bold;">Warnings</p>
        <ul style="margin: 0; padding-left: 20px;">{_html_list(result.warnings)}</ul>
    </div>

    <p style="color: #9ca3af; font-size: 12px;">{settings.site_name} feed monitoring</p>
</body>
</html>
"""

    return await service.send_email(settings.alert_email, subject, text, html)
