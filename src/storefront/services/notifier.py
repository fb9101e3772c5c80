"""
Email notifier - client for the outbound mail provider (SendGrid v3 API)
"""
import httpx
from decimal import Decimal
from typing import Dict, Optional
from opentelemetry import trace
from storefront.services.errors import NotificationError
import logging

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def order_confirmation(order_id: str, total: Decimal) -> Dict[str, str]:
    """Order confirmation email template"""
    return {
        "subject": f"Order Confirmation #{order_id}",
        "html": (
            "<h1>Order Confirmation</h1>"
            f"<p>Thank you for your order #{order_id}!</p>"
            f"<p>Your total: ${Decimal(total):.2f}</p>"
            "<p>We'll notify you when your order ships.</p>"
        ),
    }


class EmailNotifier:
    """
    Send transactional email through the provider's HTTP API

    Disabled when no API key is configured; sends are then skipped and
    reported as not delivered.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = "https://api.sendgrid.com/v3/mail/send",
        sender: str = "orders@storefront.local",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.sender = sender
        self.client = client or httpx.AsyncClient(timeout=timeout)

        if not api_key:
            logger.warning("Mail provider API key not set - email notifications disabled")
            self.enabled = False
        else:
            self.enabled = True
            logger.info("EmailNotifier initialized")

        # Statistics
        self.notifications_sent = 0
        self.notifications_failed = 0

    def is_enabled(self) -> bool:
        return self.enabled

    async def notify(self, to: str, subject: str, body: str) -> bool:
        """
        Send one email

        Returns:
            True if the provider accepted the message, False when disabled

        Raises:
            NotificationError: the provider could not be reached or refused it
        """
        if not self.enabled:
            logger.debug(f"Email disabled - skipping '{subject}' to {to}")
            return False

        with tracer.start_as_current_span("notifier.notify") as span:
            span.set_attribute("email.subject", subject)

            payload = {
                "personalizations": [{"to": [{"email": to}]}],
                "from": {"email": self.sender},
                "subject": subject,
                "content": [{"type": "text/html", "value": body}],
            }

            try:
                response = await self.client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"}
                )
                span.set_attribute("http.status_code", response.status_code)
                response.raise_for_status()
            except httpx.HTTPError as e:
                self.notifications_failed += 1
                span.record_exception(e)
                logger.error(f"Failed to send email '{subject}' to {to}: {e}")
                raise NotificationError(str(e)) from e

            self.notifications_sent += 1
            logger.info(f"Sent email '{subject}' to {to}")
            return True

    async def send_order_confirmation(self, to: str, order_id: str, total: Decimal) -> bool:
        template = order_confirmation(order_id, total)
        return await self.notify(to, template["subject"], template["html"])

    def get_stats(self) -> Dict:
        return {
            "enabled": self.enabled,
            "notifications_sent": self.notifications_sent,
            "notifications_failed": self.notifications_failed,
        }

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()
