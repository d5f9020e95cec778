# designstudio/services/notification_service.py
import logging
from typing import Optional
import aiohttp
from ..config import Config
from ..errors import ExternalServiceError
from ..models.order import Order
from ..utils.messages import Messages

class EmailSender:
    """Outbound mail through an HTTP mail API"""

    def __init__(self, api_url: Optional[str] = None, api_key: Optional[str] = None,
                 sender: Optional[str] = None):
        self.api_url = api_url if api_url is not None else Config.EMAIL_API_URL
        self.api_key = api_key if api_key is not None else Config.EMAIL_API_KEY
        self.sender = sender or Config.EMAIL_FROM
        self.logger = logging.getLogger(__name__)

    async def send(self, to: str, subject: str, html: str) -> bool:
        if not self.api_url:
            self.logger.warning(f"Email API not configured, '{subject}' to {to} not sent")
            return False

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=15)) as session:
                async with session.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": self.sender,
                        "to": to,
                        "subject": subject,
                        "html": html
                    }
                ) as response:
                    if response.status >= 300:
                        self.logger.error(f"Email API returned {response.status} for '{subject}' to {to}")
                        return False
        except aiohttp.ClientError as e:
            self.logger.error(f"Error sending email to {to}: {e}", exc_info=True)
            return False

        self.logger.info(f"Email '{subject}' sent to {to}")
        return True

class ChallanGenerator:
    """Requests the print-shop work order document for an order"""

    def __init__(self, service_url: Optional[str] = None):
        self.service_url = service_url if service_url is not None else Config.CHALLAN_SERVICE_URL
        self.logger = logging.getLogger(__name__)

    async def generate_challan(self, order_id: int) -> str:
        """Return the URL of the generated challan"""
        if not self.service_url:
            raise ExternalServiceError("challan", "challan service is not configured")

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=60)) as session:
                async with session.post(
                    f"{self.service_url.rstrip('/')}/challans",
                    json={"orderId": order_id}
                ) as response:
                    if response.status >= 300:
                        raise ExternalServiceError("challan", f"generation failed ({response.status})")
                    data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise ExternalServiceError("challan", str(e)) from e

        url = (data or {}).get("url")
        if not url:
            raise ExternalServiceError("challan", "response did not include a document url")
        return url

class CustomerNotifier:
    """Emails the order's customer after admin and self-service changes"""

    def __init__(self, db, email_sender: Optional[EmailSender] = None):
        self.db = db
        self.email_sender = email_sender or EmailSender()
        self.logger = logging.getLogger(__name__)

    async def order_cancelled(self, order: Order) -> bool:
        return await self._notify(order, f"Order {order.order_number} cancelled",
                                  Messages.order_cancelled(order))

    async def refund_processed(self, order: Order) -> bool:
        return await self._notify(order, f"Refund for order {order.order_number}",
                                  Messages.refund_processed(order))

    async def _notify(self, order: Order, subject: str, html: str) -> bool:
        try:
            async with self.db.session() as store:
                user = await store.get_user(order.user_id)
            if not user:
                return False
            return await self.email_sender.send(user.email, subject, html)
        except Exception as e:
            self.logger.error(f"Error notifying customer of order {order.order_id}: {e}", exc_info=True)
            return False
