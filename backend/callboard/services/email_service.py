"""
Email Service - Resend HTTP API

Transactional email for team invitations.
"""

import html
import logging
from typing import List, Optional

import httpx

from callboard.config import INVITE_EXPIRY_DAYS, RESEND_API_KEY, RESEND_FROM

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailDeliveryError(Exception):
    """Resend refused the message or could not be reached."""


class EmailService:
    """Sends email through Resend."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key or RESEND_API_KEY
        self.from_email = from_email or RESEND_FROM
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: List[str], subject: str, body_html: str) -> Optional[str]:
        """
        Send one message.

        Returns:
            Resend message id (may be None if the API omits it)

        Raises:
            EmailDeliveryError: when not configured, on transport error or non-2xx
        """
        if not self.is_configured():
            raise EmailDeliveryError("RESEND_API_KEY is not configured")

        try:
            async with httpx.AsyncClient(timeout=15.0, transport=self._transport) as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": self.from_email,
                        "to": to,
                        "subject": subject,
                        "html": body_html,
                    },
                )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Resend request failed: {e}") from e

        if response.status_code >= 400:
            raise EmailDeliveryError(f"Resend error: {response.status_code} - {response.text}")

        message_id = response.json().get("id")
        logger.info(f"[EMAIL] Sent '{subject}' to {', '.join(to)} (id={message_id})")
        return message_id

    async def send_team_invite(self, email: str, team_name: Optional[str], link: str) -> Optional[str]:
        name = html.escape(team_name or "your team")
        body = (
            f"<h2>You have been invited to {name}</h2>"
            f'<p>Click to join: <a href="{html.escape(link)}">{html.escape(link)}</a></p>'
            f"<p>This link expires in {INVITE_EXPIRY_DAYS} days.</p>"
        )
        return await self.send([email], f"Invitation to {team_name or 'your team'}", body)


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
