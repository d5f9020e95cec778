# designstudio/handlers/checkout_handler.py
import logging
from typing import Optional
from fastapi import Depends
from ..errors import AuthenticationError
from ..models.checkout import CheckoutRequest, VerificationRequest
from ..models.user import User
from ..services.checkout_service import CheckoutService
from .base_handler import BaseHandler

class CheckoutHandler(BaseHandler):
    """Checkout and payment callback endpoints"""
    def __init__(self, db, checkout_service: CheckoutService):
        super().__init__(db)
        self.checkout_service = checkout_service
        self.logger = logging.getLogger(__name__)
        self._register_routes()

    def _resolve_user_id(self, request: CheckoutRequest, user: Optional[User]) -> Optional[int]:
        """A userId in the body must belong to the bearer of the token"""
        if request.user_id is None:
            return user.user_id if user else None
        if not user or (user.user_id != request.user_id and not self.is_admin(user)):
            raise AuthenticationError("Authentication required to check out as a registered user")
        return request.user_id

    def _register_routes(self):
        @self.router.post("/checkout")
        async def checkout(request: CheckoutRequest,
                           user: Optional[User] = Depends(self.optional_user)):
            return await self.checkout_service.checkout(
                request, self._resolve_user_id(request, user)
            )

        @self.router.post("/checkout/express")
        async def express_checkout(request: CheckoutRequest,
                                   user: Optional[User] = Depends(self.optional_user)):
            return await self.checkout_service.express_checkout(
                request, self._resolve_user_id(request, user)
            )

        @self.router.post("/checkout/verify")
        async def verify_payment(request: VerificationRequest):
            return await self.checkout_service.verify_payment(request)
