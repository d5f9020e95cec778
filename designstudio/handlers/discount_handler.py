# designstudio/handlers/discount_handler.py
import logging
from fastapi import Depends
from ..models.checkout import DiscountCreateRequest, DiscountPreviewRequest, UsageCorrectionRequest
from ..models.user import User
from ..services.discount_service import DiscountService
from ..utils.formatters import now_utc
from .base_handler import BaseHandler

class DiscountHandler(BaseHandler):
    """Discount code preview and management"""
    def __init__(self, db, discount_service: DiscountService):
        super().__init__(db)
        self.discount_service = discount_service
        self.logger = logging.getLogger(__name__)
        self._register_routes()

    def _register_routes(self):
        @self.router.post("/discounts/validate")
        async def validate_code(request: DiscountPreviewRequest):
            async with self.db.session() as store:
                preview = await self.discount_service.preview(
                    store, request.code, request.subtotal, now_utc()
                )
            return {
                "success": True,
                "valid": preview["valid"],
                "discountId": preview["discount_id"],
                "code": preview["code"],
                "discountAmount": preview["amount"],
                "finalAmount": preview["final_amount"]
            }

        @self.router.post("/admin/discounts", status_code=201)
        async def create_discount(request: DiscountCreateRequest,
                                  admin: User = Depends(self.require_admin)):
            async with self.db.transaction() as store:
                discount = await self.discount_service.create_discount(
                    store, request.model_dump(), now_utc()
                )
            self.logger.info(f"Discount {discount.code} created by {admin.user_id}")
            return {"success": True, "discount": discount.model_dump()}

        @self.router.get("/admin/discounts")
        async def list_discounts(admin: User = Depends(self.require_admin)):
            async with self.db.session() as store:
                discounts = await self.discount_service.get_active_discounts(store, now_utc())
            return {"success": True, "discounts": [d.model_dump() for d in discounts]}

        @self.router.post("/admin/discounts/{discount_id}/deactivate")
        async def deactivate_discount(discount_id: int, admin: User = Depends(self.require_admin)):
            async with self.db.transaction() as store:
                discount = await self.discount_service.deactivate_discount(store, discount_id)
            return {"success": True, "discount": discount.model_dump()}

        @self.router.put("/admin/discounts/{discount_id}/usage")
        async def correct_usage(discount_id: int, request: UsageCorrectionRequest,
                                admin: User = Depends(self.require_admin)):
            async with self.db.transaction() as store:
                discount = await self.discount_service.correct_usage(
                    store, discount_id, request.used_count, admin.user_id
                )
            return {"success": True, "discount": discount.model_dump()}
