# designstudio/services/order_service.py
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from ..database.store import Store
from ..errors import DuplicateKeyError, NotFoundError, ValidationError
from ..models.address import Address, PLACEHOLDER_FIELD, PLACEHOLDER_STREET
from ..models.checkout import CheckoutRequest
from ..models.design_order import DesignOrder
from ..models.order import (
    CheckoutType, DesignItem, ExpressCheckoutMetadata, GuestSessionData, Order,
    OrderStatus, PaymentStatus, ProductItem, RefundMethod, RefundRecord, StatusChange
)
from ..models.product import Product
from ..utils.formatters import generate_order_number, now_utc
from .design_order_service import DesignOrderService
from .discount_service import DiscountReservation, DiscountService
from .identity_service import IdentityResult
from .pricing_service import PricingEngine, Quote, round_money

ORDER_NUMBER_ATTEMPTS = 5

ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

@dataclass
class AssembledOrder:
    order: Order
    reservation: Optional[DiscountReservation] = None
    design_order: Optional[DesignOrder] = None
    design_order_linked: bool = False

class OrderService:
    """Builds orders at checkout and applies admin changes afterwards"""

    def __init__(self, pricing: Optional[PricingEngine] = None,
                 discount_service: Optional[DiscountService] = None,
                 design_order_service: Optional[DesignOrderService] = None):
        self.pricing = pricing or PricingEngine()
        self.discount_service = discount_service or DiscountService(self.pricing)
        self.design_order_service = design_order_service or DesignOrderService()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def placeholder_address(identity: IdentityResult, gst_number: Optional[str] = None) -> Address:
        """Address stand-in for express orders; replaced with gateway billing data on payment"""
        user = identity.user
        return Address(
            name=user.name or "Guest User",
            email=user.email,
            phone=user.phone or "",
            street=PLACEHOLDER_STREET,
            city=PLACEHOLDER_FIELD,
            state=PLACEHOLDER_FIELD,
            zip_code="000000",
            country="India",
            gst_number=gst_number
        )

    async def _price_items(self, store: Store, request: CheckoutRequest) -> Tuple[Quote, List[Any]]:
        if request.design_order:
            payload = request.design_order
            design = await store.get_design(payload.design_id)
            if not design:
                raise NotFoundError(f"Design {payload.design_id} not found")

            quote = self.pricing.quote_design(design, payload.sizes)
            item = DesignItem(
                design_id=design.design_id,
                product_name=payload.product_name or design.name,
                quantity=quote.total_quantity,
                unit_price=round_money(quote.subtotal / quote.total_quantity),
                line_total=quote.subtotal,
                color=payload.color or "Custom",
                design_data={'sizes': payload.sizes, **payload.design_info}
            )
            return quote, [item]

        if not request.items:
            raise ValidationError(
                "At least one item is required",
                [{"field": "items", "message": "must not be empty"}]
            )

        lines: List[Tuple[Product, int]] = []
        for cart_item in request.items:
            product = await store.get_product(cart_item.product_id)
            if not product:
                raise NotFoundError(f"Product {cart_item.product_id} not found")
            lines.append((product, cart_item.quantity))

        quote = self.pricing.quote_catalog(lines)
        items = [
            ProductItem(
                product_id=product.product_id,
                product_name=product.name,
                quantity=cart_item.quantity,
                unit_price=product.price,
                line_total=round_money(product.price * cart_item.quantity),
                color=cart_item.color or "Default",
                size=cart_item.size or "M"
            )
            for (product, _), cart_item in zip(lines, request.items)
        ]
        return quote, items

    async def assemble(self, store: Store, request: CheckoutRequest, identity: IdentityResult,
                       now: Optional[datetime] = None,
                       checkout_type: CheckoutType = CheckoutType.REGULAR,
                       express_metadata: Optional[ExpressCheckoutMetadata] = None,
                       guest_session: Optional[GuestSessionData] = None) -> AssembledOrder:
        """Price, reserve the discount, persist the order and link its design order.

        Must be called inside the checkout transaction.
        """
        now = now or now_utc()
        express = checkout_type == CheckoutType.EXPRESS

        gst_number = request.guest_info.gst_number if request.guest_info else None
        address = request.address or request.shipping_address
        if address is None:
            if not express:
                raise ValidationError(
                    "Shipping address is required",
                    [{"field": "address", "message": "required"}]
                )
            address = self.placeholder_address(identity, gst_number)

        billing_address = request.billing_address or address
        if gst_number and not billing_address.gst_number:
            billing_address = billing_address.model_copy(update={'gst_number': gst_number})

        quote, items = await self._price_items(store, request)

        reservation = None
        if request.discount_code:
            reservation = await self.discount_service.validate_and_reserve(
                store, request.discount_code, quote.subtotal, now
            )

        breakdown = self.pricing.finalize(
            quote, request.shipping_method,
            reservation.amount if reservation else Decimal(0)
        )

        fields: Dict[str, Any] = {
            'user_id': identity.user.user_id,
            'items': items,
            'price_breakdown': breakdown,
            'status': OrderStatus.PENDING,
            'payment_status': PaymentStatus.PENDING,
            'shipping_method': request.shipping_method,
            'checkout_type': checkout_type,
            'is_guest_order': identity.is_guest_order,
            'address': address,
            'shipping_address': request.shipping_address or address,
            'billing_address': billing_address,
            'purchase_order_number': request.purchase_order_number,
            'discount_code_id': reservation.discount.discount_id if reservation else None,
            'express_metadata': express_metadata,
            'guest_session': guest_session,
            'created_at': now
        }

        order = await self._insert_with_unique_number(
            store, fields, "EXPRESS" if express else "ORD", now
        )

        if reservation:
            await self.discount_service.record_usage(store, reservation, order.order_id)

        result = AssembledOrder(order=order, reservation=reservation)

        payload = request.design_order
        if payload and not payload.skip_design_order_record:
            try:
                async with store.savepoint():
                    result.design_order = await self.design_order_service.link(
                        store, order, payload, identity.user, address
                    )
                result.design_order_linked = True
                result.order = await store.get_order(order.order_id)
            except Exception as e:
                self.logger.error(
                    f"Design order linking failed for {order.order_number}: {e}", exc_info=True
                )

        self.logger.info(
            f"Order {order.order_number} assembled for user {identity.user.user_id}: "
            f"total {breakdown.total}"
        )
        return result

    async def _insert_with_unique_number(self, store: Store, fields: Dict[str, Any],
                                         prefix: str, now: datetime) -> Order:
        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            order_number = generate_order_number(prefix, now)
            try:
                async with store.savepoint():
                    return await store.insert_order({'order_number': order_number, **fields})
            except DuplicateKeyError as e:
                if 'order_number' not in e.constraint:
                    raise
                self.logger.warning(f"Order number {order_number} taken (attempt {attempt})")

        raise DuplicateKeyError("orders_order_number_key")

    async def get_order(self, store: Store, order_id: int) -> Order:
        order = await store.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    async def get_order_by_number(self, store: Store, order_number: str) -> Order:
        order = await store.get_order_by_number(order_number)
        if not order:
            raise NotFoundError("Order not found")
        return order

    async def get_user_orders(self, store: Store, user_id: int, limit: int = 20) -> List[Order]:
        return await store.get_user_orders(user_id, limit)

    def _history_entry(self, order: Order, new_status: str, now: datetime,
                       changed_by: Optional[int], reason: Optional[str]) -> List[StatusChange]:
        return order.status_history + [StatusChange(
            previous_status=order.status.value,
            new_status=new_status,
            changed_at=now,
            changed_by=changed_by,
            reason=reason
        )]

    async def update_status(self, store: Store, order_id: int, new_status: OrderStatus,
                            admin_id: Optional[int] = None, note: Optional[str] = None,
                            now: Optional[datetime] = None) -> Order:
        """Move an order along its lifecycle and carry the change to design orders"""
        now = now or now_utc()
        order = await store.get_order(order_id, for_update=True)
        if not order:
            raise NotFoundError("Order not found")

        if new_status not in ORDER_TRANSITIONS[order.status]:
            raise ValidationError(
                f"Invalid status transition from {order.status.value} to {new_status.value}"
            )

        fields: Dict[str, Any] = {
            'status': new_status,
            'status_history': self._history_entry(order, new_status.value, now, admin_id, note)
        }
        if new_status == OrderStatus.CANCELLED:
            fields['cancellation_reason'] = note or "Cancelled by admin"

        updated = await store.update_order(order_id, **fields)
        await self.design_order_service.mirror_order_status(store, updated)

        self.logger.info(
            f"Order {order.order_number} status {order.status.value} -> {new_status.value} by {admin_id}"
        )
        return updated

    async def update_payment_status(self, store: Store, order_id: int, payment_status: PaymentStatus,
                                    payment_method: Optional[str] = None,
                                    transaction_id: Optional[str] = None,
                                    admin_id: Optional[int] = None) -> Order:
        """Manual payment-status correction; refunds go through process_refund"""
        if payment_status == PaymentStatus.REFUNDED:
            raise ValidationError("Use the refund endpoint to refund an order")

        order = await store.get_order(order_id, for_update=True)
        if not order:
            raise NotFoundError("Order not found")

        if order.payment_status == PaymentStatus.REFUNDED:
            raise ValidationError("Payment status of a refunded order cannot be changed")

        fields: Dict[str, Any] = {'payment_status': payment_status}
        if payment_method:
            fields['payment_method'] = payment_method
        if transaction_id:
            fields['transaction_id'] = transaction_id

        updated = await store.update_order(order_id, **fields)
        await self.design_order_service.reconcile(store, updated)

        self.logger.info(
            f"Order {order.order_number} payment {order.payment_status.value} -> "
            f"{payment_status.value} by {admin_id}"
        )
        return updated

    async def process_refund(self, store: Store, order_id: int, amount: Decimal, reason: str,
                             method: RefundMethod = RefundMethod.ORIGINAL_PAYMENT,
                             admin_id: Optional[int] = None,
                             now: Optional[datetime] = None) -> Order:
        """Record a refund against a paid order"""
        now = now or now_utc()
        order = await store.get_order(order_id, for_update=True)
        if not order:
            raise NotFoundError("Order not found")

        if order.payment_status != PaymentStatus.PAID:
            raise ValidationError("Only paid orders can be refunded")

        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError("Refund amount must be greater than zero")
        if amount > order.total:
            raise ValidationError(
                f"Refund amount cannot exceed order total of {order.total}",
                [{"field": "refundAmount", "message": "exceeds order total"}]
            )

        refund = RefundRecord(
            refund_id=str(uuid.uuid4()),
            amount=amount,
            reason=reason,
            method=method,
            processed_at=now,
            processed_by=admin_id
        )
        updated = await store.update_order(
            order_id, payment_status=PaymentStatus.REFUNDED, refund=refund
        )
        await self.design_order_service.reconcile(store, updated)

        self.logger.info(f"Refund {refund.refund_id} of {amount} on order {order.order_number}")
        return updated

    async def cancel_order(self, store: Store, order_id: int, reason: Optional[str] = None,
                           cancelled_by: Optional[int] = None,
                           now: Optional[datetime] = None) -> Order:
        """Soft-cancel an order that has not shipped"""
        now = now or now_utc()
        order = await store.get_order(order_id, for_update=True)
        if not order:
            raise NotFoundError("Order not found")

        if order.status == OrderStatus.CANCELLED:
            raise ValidationError("Order is already cancelled")
        if order.status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            raise ValidationError("Cannot cancel an order that has already been shipped")

        reason = reason or "Cancelled by customer"
        updated = await store.update_order(
            order_id,
            status=OrderStatus.CANCELLED,
            cancellation_reason=reason,
            status_history=self._history_entry(
                order, OrderStatus.CANCELLED.value, now, cancelled_by, reason
            )
        )
        await self.design_order_service.mirror_order_status(store, updated)

        self.logger.info(f"Order {order.order_number} cancelled by {cancelled_by}")
        return updated
