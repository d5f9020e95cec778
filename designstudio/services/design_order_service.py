# designstudio/services/design_order_service.py
import logging
from typing import Any, Dict, List, Optional
from ..database.store import Store
from ..errors import NotFoundError, ValidationError
from ..models.address import Address
from ..models.checkout import DesignOrderPayload
from ..models.design_order import (
    PRINTING_TRANSITIONS, CustomerSnapshot, DesignOrder, PrintingStatus, validate_sizes
)
from ..models.order import Order, OrderStatus, PaymentStatus
from ..models.user import User

# Order status changes that carry over to the print queue
ORDER_TO_PRINTING_STATUS = {
    OrderStatus.PROCESSING: PrintingStatus.PROCESSING,
    OrderStatus.SHIPPED: PrintingStatus.SHIPPED,
    OrderStatus.DELIVERED: PrintingStatus.DELIVERED,
    OrderStatus.CANCELLED: PrintingStatus.CANCELLED,
}

class DesignOrderService:
    """Manufacturing records attached to design orders"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def snapshot_customer(user: User, address: Optional[Address] = None) -> CustomerSnapshot:
        """Copy of the customer's contact details as they are right now"""
        address = address or user.address
        return CustomerSnapshot(
            name=(address.name if address and address.name else None) or user.name or "Guest User",
            email=user.email,
            phone=(address.phone if address and address.phone else None) or user.phone or "",
            address=address.one_line() if address else ""
        )

    async def link(self, store: Store, order: Order, payload: DesignOrderPayload,
                   user: User, address: Optional[Address] = None) -> DesignOrder:
        """Create the design order for an order and record its id on the order"""
        try:
            sizes = validate_sizes(dict(payload.sizes))
        except ValueError as e:
            raise ValidationError(str(e), [{"field": "sizes", "message": str(e)}])

        design_data: Dict[str, Any] = dict(payload.design_info)
        if payload.color:
            design_data.setdefault('color', payload.color)
        if payload.product_name:
            design_data.setdefault('product_name', payload.product_name)

        design_order = await store.insert_design_order({
            'order_id': order.order_id,
            'order_number': order.order_number,
            'design_id': payload.design_id,
            'customer': self.snapshot_customer(user, address),
            'sizes': sizes,
            'total_quantity': sum(sizes.values()),
            'price_breakdown': order.price_breakdown,
            'status': PrintingStatus.PENDING,
            'payment_status': order.payment_status,
            'design_data': design_data
        })
        await store.link_design_order(order.order_id, design_order.design_order_id)

        self.logger.info(
            f"Design order {design_order.design_order_id} linked to order {order.order_number}"
        )
        return design_order

    async def reconcile(self, store: Store, order: Order) -> List[DesignOrder]:
        """Mirror the order's payment state onto its design orders"""
        updated = []
        for design_order in await store.get_design_orders_for_order(order.order_id):
            fields: Dict[str, Any] = {
                'payment_status': order.payment_status,
                'price_breakdown': order.price_breakdown
            }
            if (order.payment_status == PaymentStatus.PAID
                    and design_order.status == PrintingStatus.PENDING):
                fields['status'] = PrintingStatus.PROCESSING

            updated.append(await store.update_design_order(design_order.design_order_id, **fields))

        if updated:
            self.logger.info(f"Reconciled {len(updated)} design order(s) for {order.order_number}")
        return updated

    async def mirror_order_status(self, store: Store, order: Order) -> List[DesignOrder]:
        """Carry an order status change over to its design orders where the lifecycle allows"""
        target = ORDER_TO_PRINTING_STATUS.get(order.status)
        if target is None:
            return []

        updated = []
        for design_order in await store.get_design_orders_for_order(order.order_id):
            if design_order.status == target:
                continue
            allowed = set(PRINTING_TRANSITIONS[design_order.status])
            if design_order.status == PrintingStatus.PROCESSING:
                # shipping implies the print run finished
                allowed.add(PrintingStatus.SHIPPED)
            if target not in allowed:
                self.logger.warning(
                    f"Design order {design_order.design_order_id} left at {design_order.status.value}, "
                    f"cannot follow order to {target.value}"
                )
                continue

            updated.append(await store.update_design_order(design_order.design_order_id, status=target))
        return updated

    async def advance_printing_status(self, store: Store, design_order_id: int,
                                      status: PrintingStatus) -> DesignOrder:
        """Move a design order along pending, processing, printed, shipped"""
        design_order = await store.get_design_order(design_order_id)
        if not design_order:
            raise NotFoundError("Design order not found")

        if status not in PRINTING_TRANSITIONS[design_order.status]:
            raise ValidationError(
                f"Cannot change design order status from {design_order.status.value} to {status.value}"
            )

        if status != PrintingStatus.CANCELLED and design_order.payment_status != PaymentStatus.PAID:
            raise ValidationError("Design order has not been paid")

        updated = await store.update_design_order(design_order_id, status=status)
        self.logger.info(
            f"Design order {design_order_id} status {design_order.status.value} -> {status.value}"
        )
        return updated
