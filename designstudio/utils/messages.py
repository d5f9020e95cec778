# designstudio/utils/messages.py
from html import escape
from typing import Any, Dict, Optional
from ..config import Config
from ..models.order import DesignItem, Order
from ..models.user import User
from .formatters import format_datetime, format_price

EXISTING_ACCOUNT_MESSAGE = (
    "We found an existing account with this email. This order will be linked "
    "to your account. Please log in to view all your orders."
)

class Messages:
    @staticmethod
    def existing_account_notice(email: str) -> Dict[str, Any]:
        """Advisory returned when an express checkout email belongs to a registered user"""
        return {
            "type": "existing_user_express_checkout",
            "message": EXISTING_ACCOUNT_MESSAGE,
            "email": email,
            "suggestedAction": "login"
        }

    @staticmethod
    def _name(user: User) -> str:
        return escape(user.name) if user.name else "there"

    @staticmethod
    def _items_table(order: Order) -> str:
        rows = []
        for item in order.items:
            label = escape(item.product_name)
            if isinstance(item, DesignItem):
                label = f"{label} (sizes: {escape(item.size)})"
            rows.append(
                f"<tr><td>{label}</td><td>{item.quantity}</td>"
                f"<td>{format_price(item.line_total)} {Config.CURRENCY}</td></tr>"
            )
        return (
            "<table><tr><th>Item</th><th>Qty</th><th>Amount</th></tr>"
            + "".join(rows)
            + "</table>"
        )

    @staticmethod
    def _totals(order: Order) -> str:
        breakdown = order.price_breakdown
        lines = [f"<p>Subtotal: {format_price(breakdown.subtotal)} {Config.CURRENCY}</p>"]
        if breakdown.discount_amount:
            lines.append(f"<p>Discount: -{format_price(breakdown.discount_amount)} {Config.CURRENCY}</p>")
        lines.append(f"<p>Tax: {format_price(breakdown.tax)} {Config.CURRENCY}</p>")
        lines.append(f"<p>Shipping: {format_price(breakdown.shipping)} {Config.CURRENCY}</p>")
        lines.append(f"<p><strong>Total: {format_price(breakdown.total)} {Config.CURRENCY}</strong></p>")
        return "".join(lines)

    @staticmethod
    def order_received(order: Order, user: User) -> str:
        return (
            f"<h2>Thank you for your order, {Messages._name(user)}!</h2>"
            f"<p>Order <strong>{order.order_number}</strong> was placed on "
            f"{format_datetime(order.created_at)} and is awaiting payment.</p>"
            + Messages._items_table(order)
            + Messages._totals(order)
        )

    @staticmethod
    def payment_confirmed(order: Order, user: User, guest_token: Optional[str] = None) -> str:
        body = (
            f"<h2>Payment received</h2>"
            f"<p>Hi {Messages._name(user)}, we have received your payment for order "
            f"<strong>{order.order_number}</strong>. It is now being processed.</p>"
            + Messages._items_table(order)
            + Messages._totals(order)
        )
        if order.challan_url:
            body += f"<p>Your delivery challan: <a href=\"{escape(order.challan_url)}\">download</a></p>"
        if guest_token:
            body += (
                f"<p>Track this order or create an account: "
                f"<a href=\"{Config.FRONTEND_URL}/guest/{guest_token}\">view order</a></p>"
            )
        return body

    @staticmethod
    def order_cancelled(order: Order) -> str:
        reason = escape(order.cancellation_reason or "No reason given")
        return (
            f"<h2>Order cancelled</h2>"
            f"<p>Order <strong>{order.order_number}</strong> has been cancelled.</p>"
            f"<p>Reason: {reason}</p>"
        )

    @staticmethod
    def refund_processed(order: Order) -> str:
        refund = order.refund
        return (
            f"<h2>Refund processed</h2>"
            f"<p>A refund of {format_price(refund.amount)} {Config.CURRENCY} for order "
            f"<strong>{order.order_number}</strong> has been issued.</p>"
            f"<p>Reference: {refund.refund_id}</p>"
        )
