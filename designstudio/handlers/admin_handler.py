# designstudio/handlers/admin_handler.py
import logging
from fastapi import Depends
from ..models.checkout import (
    PaymentStatusUpdateRequest, PrintingStatusRequest, RefundRequest, StatusUpdateRequest
)
from ..models.user import User
from ..services.design_order_service import DesignOrderService
from ..services.notification_service import CustomerNotifier
from ..services.order_service import OrderService
from .base_handler import BaseHandler

class AdminHandler(BaseHandler):
    """Order administration; every route requires an admin"""
    def __init__(self, db, order_service: OrderService, design_order_service: DesignOrderService,
                 notifier: CustomerNotifier):
        super().__init__(db)
        self.order_service = order_service
        self.design_order_service = design_order_service
        self.notifier = notifier
        self.logger = logging.getLogger(__name__)
        self._register_routes()

    def _register_routes(self):
        @self.router.put("/admin/orders/{order_id}/status")
        async def update_status(order_id: int, request: StatusUpdateRequest,
                                admin: User = Depends(self.require_admin)):
            async with self.db.transaction() as store:
                order = await self.order_service.update_status(
                    store, order_id, request.status, admin.user_id, request.status_note
                )
            return {"success": True, "message": "Order status updated", "order": order.model_dump()}

        @self.router.put("/admin/orders/{order_id}/payment")
        async def update_payment(order_id: int, request: PaymentStatusUpdateRequest,
                                 admin: User = Depends(self.require_admin)):
            async with self.db.transaction() as store:
                order = await self.order_service.update_payment_status(
                    store, order_id, request.payment_status,
                    request.payment_method, request.transaction_id, admin.user_id
                )
            return {"success": True, "message": "Payment status updated", "order": order.model_dump()}

        @self.router.post("/admin/orders/{order_id}/refund")
        async def refund(order_id: int, request: RefundRequest,
                         admin: User = Depends(self.require_admin)):
            async with self.db.transaction() as store:
                order = await self.order_service.process_refund(
                    store, order_id, request.refund_amount, request.refund_reason,
                    request.refund_method, admin.user_id
                )
            email_sent = await self.notifier.refund_processed(order)
            return {
                "success": True,
                "message": "Refund processed",
                "refund": order.refund.model_dump(),
                "emailSent": email_sent,
                "order": order.model_dump()
            }

        @self.router.put("/admin/design-orders/{design_order_id}/status")
        async def update_printing_status(design_order_id: int, request: PrintingStatusRequest,
                                         admin: User = Depends(self.require_admin)):
            async with self.db.transaction() as store:
                design_order = await self.design_order_service.advance_printing_status(
                    store, design_order_id, request.status
                )
            return {"success": True, "designOrder": design_order.model_dump()}
