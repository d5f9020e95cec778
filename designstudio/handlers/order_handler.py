# designstudio/handlers/order_handler.py
import logging
from typing import Optional
from fastapi import Body, Depends
from ..errors import AuthenticationError, AuthorizationError
from ..models.checkout import CancelOrderRequest, GuestClaimRequest
from ..models.order import Order
from ..models.user import User
from ..services.identity_service import IdentityService
from ..services.notification_service import CustomerNotifier
from ..services.order_service import OrderService
from ..utils.security import GUEST_TOKEN, verify_token
from .base_handler import BaseHandler

class OrderHandler(BaseHandler):
    """Customer-facing order endpoints"""
    def __init__(self, db, order_service: OrderService, identity_service: IdentityService,
                 notifier: CustomerNotifier):
        super().__init__(db)
        self.order_service = order_service
        self.identity_service = identity_service
        self.notifier = notifier
        self.logger = logging.getLogger(__name__)
        self._register_routes()

    def _check_access(self, order: Order, user: User):
        if order.user_id != user.user_id and not self.is_admin(user):
            raise AuthorizationError("You do not have access to this order")

    def _register_routes(self):
        @self.router.get("/orders")
        async def list_orders(user: User = Depends(self.require_user)):
            async with self.db.session() as store:
                orders = await self.order_service.get_user_orders(store, user.user_id)
            return {"success": True, "orders": [o.model_dump() for o in orders]}

        @self.router.get("/orders/guest/{token}")
        async def guest_orders(token: str):
            verified = verify_token(token, GUEST_TOKEN)
            if not verified:
                raise AuthenticationError("Invalid or expired guest session")
            user_id, _ = verified
            async with self.db.session() as store:
                orders = await self.order_service.get_user_orders(store, user_id)
            return {"success": True, "orders": [o.model_dump() for o in orders]}

        @self.router.get("/orders/{order_id}")
        async def get_order(order_id: int, user: User = Depends(self.require_user)):
            async with self.db.session() as store:
                order = await self.order_service.get_order(store, order_id)
                self._check_access(order, user)
                design_orders = await store.get_design_orders_for_order(order_id)
            return {
                "success": True,
                "order": order.model_dump(),
                "designOrders": [d.model_dump() for d in design_orders]
            }

        @self.router.post("/orders/{order_id}/cancel")
        async def cancel_order(order_id: int,
                               request: Optional[CancelOrderRequest] = Body(None),
                               user: User = Depends(self.require_user)):
            reason = request.cancellation_reason if request else None
            async with self.db.transaction() as store:
                order = await self.order_service.get_order(store, order_id)
                self._check_access(order, user)
                order = await self.order_service.cancel_order(
                    store, order_id, reason, cancelled_by=user.user_id
                )
            email_sent = await self.notifier.order_cancelled(order)
            return {
                "success": True,
                "message": "Order cancelled",
                "order": order.model_dump(),
                "emailSent": email_sent
            }

        @self.router.post("/guest/claim")
        async def claim_account(request: GuestClaimRequest):
            async with self.db.transaction() as store:
                user = await self.identity_service.claim_guest_account(store, request.token, request.name)
            return {
                "success": True,
                "message": "Account claimed",
                "user": user.model_dump(exclude={"address"})
            }
