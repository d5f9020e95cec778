# designstudio/services/checkout_service.py
"""Checkout and payment verification workflow.

A checkout resolves the customer, then creates the order, takes the discount
use and links the design order in one transaction. The gateway session is
created after commit, so a gateway outage leaves a pending, payable order.
Emails and challans run last and are reported as flags, never as failures.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from ..errors import NotFoundError, ValidationError
from ..models.address import Address
from ..models.checkout import CheckoutRequest, VerificationRequest
from ..models.order import (
    CheckoutType, ExpressCheckoutMetadata, Order, OrderStatus, PaymentStatus, StatusChange
)
from ..models.user import User
from ..utils.formatters import now_utc
from ..utils.messages import Messages
from .identity_service import IdentityResult, IdentityService
from .notification_service import ChallanGenerator, EmailSender
from .order_service import AssembledOrder, OrderService
from .payment_service import PaymentService, VerificationResult

class CheckoutService:
    def __init__(self, db, identity_service: Optional[IdentityService] = None,
                 order_service: Optional[OrderService] = None,
                 payment_service: Optional[PaymentService] = None,
                 email_sender: Optional[EmailSender] = None,
                 challan_generator: Optional[ChallanGenerator] = None):
        self.db = db
        self.identity_service = identity_service or IdentityService()
        self.order_service = order_service or OrderService()
        self.payment_service = payment_service or PaymentService()
        self.email_sender = email_sender or EmailSender()
        self.challan_generator = challan_generator or ChallanGenerator()
        self.logger = logging.getLogger(__name__)

    async def checkout(self, request: CheckoutRequest, user_id: Optional[int] = None,
                       now: Optional[datetime] = None) -> Dict[str, Any]:
        """Regular checkout for a signed-in user or a guest with contact details"""
        now = now or now_utc()
        self._check_shape(request, user_id)

        async with self.db.transaction() as store:
            identity = await self.identity_service.resolve(store, user_id, request.guest_info, now)
            assembled = await self.order_service.assemble(store, request, identity, now)

        payment = await self._create_payment_session(assembled.order)
        email_sent = await self._notify_order_received(assembled.order, identity.user)

        response = self._checkout_response(assembled, payment, email_sent)
        if identity.account_message:
            response["userAccountMessage"] = identity.account_message
        return response

    async def express_checkout(self, request: CheckoutRequest, user_id: Optional[int] = None,
                               now: Optional[datetime] = None) -> Dict[str, Any]:
        """Checkout without account setup; the address comes from the gateway on payment"""
        now = now or now_utc()
        self._check_shape(request, user_id)

        async with self.db.transaction() as store:
            identity = await self.identity_service.resolve(store, user_id, request.guest_info, now)

            express_metadata = ExpressCheckoutMetadata(
                is_existing_user_express_checkout=identity.is_existing_user_express_checkout,
                user_account_message=(
                    identity.account_message["message"] if identity.account_message else None
                ),
                original_email=request.guest_info.email if request.guest_info else identity.user.email
            )
            guest_session = None
            if identity.is_guest_order:
                guest_session = self.identity_service.issue_guest_session(identity.user.user_id, now)

            assembled = await self.order_service.assemble(
                store, request, identity, now,
                checkout_type=CheckoutType.EXPRESS,
                express_metadata=express_metadata,
                guest_session=guest_session
            )

        payment = await self._create_payment_session(assembled.order)
        email_sent = await self._notify_order_received(assembled.order, identity.user)

        response = self._checkout_response(assembled, payment, email_sent)
        response.update(self._express_fields(identity, assembled.order))
        return response

    async def verify_payment(self, request: VerificationRequest,
                             now: Optional[datetime] = None) -> Dict[str, Any]:
        """Confirm a payment callback and settle the order"""
        now = now or now_utc()

        async with self.db.transaction() as store:
            located = await self.payment_service.locate_order(store, request)
            if not located:
                raise NotFoundError("Order not found for this payment")

            result = self.payment_service.verify(request)

            order = await store.get_order(located.order_id, for_update=True)
            if order.is_paid:
                self.logger.info(f"Payment for {order.order_number} already processed")
                return self._verification_response(order, already_processed=True)

            updated = await self._settle(store, order, request, result, now)
            user = await store.get_user(updated.user_id)

        challan_generated = await self._generate_challan(updated)
        if challan_generated:
            async with self.db.session() as store:
                updated = await store.get_order(updated.order_id)

        email_sent = False
        if user:
            guest_token = updated.guest_session.token if updated.guest_session else None
            email_sent = await self._send_email(
                user.email,
                f"Payment received for order {updated.order_number}",
                Messages.payment_confirmed(updated, user, guest_token)
            )

        response = self._verification_response(updated)
        response["challanGenerated"] = challan_generated
        response["emailSent"] = email_sent
        return response

    async def _settle(self, store, order: Order, request: VerificationRequest,
                      result: VerificationResult, now: datetime) -> Order:
        fields: Dict[str, Any] = {
            'gateway_payment_id': result.payment_id,
            'gateway_signature': result.signature,
            'payment_status': PaymentStatus.PAID,
            'payment_method': 'demo' if result.is_demo else 'razorpay'
        }
        if not order.gateway_order_id and result.gateway_order_id:
            fields['gateway_order_id'] = result.gateway_order_id

        if order.status == OrderStatus.PENDING:
            fields['status'] = OrderStatus.PROCESSING
            fields['status_history'] = order.status_history + [StatusChange(
                previous_status=order.status.value,
                new_status=OrderStatus.PROCESSING.value,
                changed_at=now,
                reason="Payment received"
            )]

        if order.discount_code_id is not None:
            still_valid = await self.order_service.discount_service.revalidate(
                store, order.discount_code_id, now
            )
            if not still_valid and order.price_breakdown.discount_amount > 0:
                fields['price_breakdown'] = self.order_service.pricing.reprice(
                    order.price_breakdown, Decimal(0)
                )
                self.logger.warning(
                    f"Discount on {order.order_number} expired before payment, discount removed"
                )

        billing = request.billing_address or request.customer_info
        if billing:
            known_gst = order.billing_address.gst_number if order.billing_address else None
            if known_gst and not billing.gst_number:
                billing = billing.model_copy(update={'gst_number': known_gst})
            fields['billing_address'] = billing
            if order.address is None or order.address.is_placeholder:
                shipping = request.shipping_address or billing
                fields['address'] = shipping
                fields['shipping_address'] = shipping
        elif request.shipping_address and (order.address is None or order.address.is_placeholder):
            fields['address'] = request.shipping_address
            fields['shipping_address'] = request.shipping_address

        if order.is_express and 'address' not in fields and order.address and order.address.is_placeholder:
            self.logger.warning(f"Express order {order.order_number} paid without a shipping address")

        updated = await store.update_order(order.order_id, **fields)

        if updated.is_guest_order and billing:
            await self.identity_service.update_guest_billing_info(store, updated.user_id, billing)

        await self.order_service.design_order_service.reconcile(store, updated)

        self.logger.info(f"Payment {result.payment_id} confirmed for {updated.order_number}")
        return updated

    @staticmethod
    def _check_shape(request: CheckoutRequest, user_id: Optional[int]):
        errors = []
        if user_id is None and request.guest_info is None:
            errors.append({"field": "guestInfo", "message": "userId or guestInfo is required"})
        if not request.items and request.design_order is None:
            errors.append({"field": "items", "message": "at least one item is required"})
        if errors:
            raise ValidationError("Invalid checkout request", errors)

    async def _create_payment_session(self, order: Order) -> Dict[str, Any]:
        async with self.db.session() as store:
            return await self.payment_service.create_session(store, order)

    async def _notify_order_received(self, order: Order, user: User) -> bool:
        return await self._send_email(
            user.email,
            f"Order {order.order_number} received",
            Messages.order_received(order, user)
        )

    async def _send_email(self, to: str, subject: str, html: str) -> bool:
        try:
            return await self.email_sender.send(to, subject, html)
        except Exception as e:
            self.logger.error(f"Error sending '{subject}' to {to}: {e}", exc_info=True)
            return False

    async def _generate_challan(self, order: Order) -> bool:
        try:
            url = await self.challan_generator.generate_challan(order.order_id)
            async with self.db.session() as store:
                await store.update_order(order.order_id, challan_url=url)
            return True
        except Exception as e:
            self.logger.error(f"Challan generation failed for {order.order_number}: {e}", exc_info=True)
            return False

    @staticmethod
    def _checkout_response(assembled: AssembledOrder, payment: Dict[str, Any],
                           email_sent: bool) -> Dict[str, Any]:
        order = assembled.order
        return {
            "success": True,
            "order": {
                "id": order.order_id,
                "orderId": order.order_number,
                "amount": order.total,
                "priceBreakdown": order.price_breakdown.model_dump()
            },
            "payment": {
                "sessionId": payment["session_id"],
                "amount": payment["amount"],
                "currency": payment["currency"],
                "publishableKey": payment["publishable_key"]
            },
            "designOrderLinked": assembled.design_order_linked,
            "emailSent": email_sent
        }

    @staticmethod
    def _express_fields(identity: IdentityResult, order: Order) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "isGuestOrder": order.is_guest_order,
            "isExistingUserExpressCheckout": identity.is_existing_user_express_checkout
        }
        if identity.account_message:
            fields["userAccountMessage"] = identity.account_message
        if order.guest_session:
            fields["guestSession"] = {
                "token": order.guest_session.token,
                "expiry": order.guest_session.expiry,
                "canClaimAccount": order.guest_session.allow_account_claim
            }
        return fields

    @staticmethod
    def _verification_response(order: Order, already_processed: bool = False) -> Dict[str, Any]:
        response = {
            "success": True,
            "message": "Payment already processed" if already_processed else "Payment verified successfully",
            "alreadyProcessed": already_processed,
            "order": {
                "id": order.order_id,
                "orderId": order.order_number,
                "status": order.status.value,
                "paymentStatus": order.payment_status.value,
                "amount": order.total,
                "challanUrl": order.challan_url
            }
        }
        if already_processed:
            response["challanGenerated"] = order.challan_url is not None
            response["emailSent"] = False
        return response
