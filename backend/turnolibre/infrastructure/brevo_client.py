"""
Brevo transactional email sender.
"""

import httpx

from turnolibre.core.config import get_settings
from turnolibre.core.logging import get_logger
from turnolibre.services.interfaces.notification import NotificationSender

logger = get_logger(__name__)
settings = get_settings()


class BrevoEmailSender(NotificationSender):
    """Sends HTML email through Brevo's SMTP API."""

    def __init__(self, api_key: str = "", api_url: str = "", timeout: float = 10.0):
        self.api_key = api_key or settings.BREVO_API_KEY
        self.api_url = api_url or settings.BREVO_API_URL
        self.timeout = timeout

    async def send(self, to_address: str, subject: str, html_body: str) -> bool:
        if not self.api_key:
            logger.warning("email_disabled", to=to_address, subject=subject)
            return False

        payload = {
            "sender": {"email": settings.MAIL_FROM_ADDRESS, "name": settings.MAIL_FROM_NAME},
            "to": [{"email": to_address}],
            "subject": subject,
            "htmlContent": html_body,
        }
        headers = {"api-key": self.api_key, "accept": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("email_send_failed", to=to_address, subject=subject, error=str(e))
            return False

        logger.info("email_sent", to=to_address, message_id=response.json().get("messageId"))
        return True
