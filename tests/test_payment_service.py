"""Tests for payment sessions and signature verification."""

import asyncio
from decimal import Decimal

import pytest

from designstudio.config import Config
from designstudio.errors import ExternalServiceError, SignatureMismatchError
from designstudio.models.checkout import CheckoutRequest, VerificationRequest
from designstudio.models.order import CheckoutType, OrderStatus
from designstudio.services.identity_service import IdentityResult, UserType
from designstudio.services.order_service import OrderService
from designstudio.services.payment_service import PaymentService
from designstudio.utils.security import sign_payment

ADDRESS = {"fullName": "Asha Rao", "streetAddress": "1 Main St", "city": "Pune", "state": "MH", "zipCode": "411001"}


@pytest.fixture
def service(gateway):
    return PaymentService(gateway)


def create_order(db, checkout_type=CheckoutType.REGULAR, price="500", quantity=2):
    user = db.add_user(f"buyer{len(db.state.users) + 1}@example.com")
    product = db.add_product(price=price)
    request = CheckoutRequest.model_validate({
        "items": [{"productId": product.product_id, "quantity": quantity}],
        "address": ADDRESS,
    })

    async def run():
        async with db.transaction() as store:
            return await OrderService().assemble(
                store, request, IdentityResult(user=user, user_type=UserType.AUTHENTICATED),
                checkout_type=checkout_type,
            )

    return asyncio.run(run()).order


def signed_payload(gateway_order_id="order_test1", payment_id="pay_123", **extra):
    body = {
        "razorpay_order_id": gateway_order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": sign_payment(gateway_order_id, payment_id, Config.RAZORPAY_KEY_SECRET),
    }
    body.update(extra)
    return VerificationRequest.model_validate(body)


class TestCreateSession:
    def test_session_amount_in_minor_units(self, db, service, gateway):
        order = create_order(db, price="333.33", quantity=1)

        async def run():
            async with db.session() as store:
                return await service.create_session(store, order)

        payment = asyncio.run(run())
        assert order.total == Decimal("416.66")
        assert payment["amount"] == 41666
        assert payment["currency"] == "INR"
        assert payment["publishable_key"] == Config.RAZORPAY_KEY_ID
        assert Config.RAZORPAY_KEY_SECRET not in payment.values()
        assert db.state.orders[order.order_id].gateway_order_id == payment["session_id"]
        assert gateway.calls[0]["notes"]["has_discount"] == "false"
        assert gateway.calls[0]["receipt"] == order.order_number

    def test_gateway_failure_surfaces(self, db, service, gateway):
        order = create_order(db)
        gateway.fail = True

        async def run():
            async with db.session() as store:
                await service.create_session(store, order)

        with pytest.raises(ExternalServiceError):
            asyncio.run(run())
        assert db.state.orders[order.order_id].gateway_order_id is None


class TestVerify:
    def test_valid_signature(self, service):
        result = service.verify(signed_payload())
        assert result.payment_id == "pay_123"
        assert result.is_demo is False

    def test_tampered_signature(self, service):
        payload = signed_payload()
        payload.signature = payload.signature[:-1] + ("0" if payload.signature[-1] != "0" else "1")
        with pytest.raises(SignatureMismatchError):
            service.verify(payload)

    def test_signature_for_other_payment(self, service):
        payload = signed_payload(payment_id="pay_123")
        payload.payment_id = "pay_456"
        with pytest.raises(SignatureMismatchError):
            service.verify(payload)

    def test_missing_signature(self, service):
        payload = VerificationRequest.model_validate({"razorpay_order_id": "order_x", "razorpay_payment_id": "pay_x"})
        with pytest.raises(SignatureMismatchError):
            service.verify(payload)

    def test_error_does_not_leak_expected_signature(self, service):
        payload = signed_payload()
        expected = payload.signature
        payload.signature = "0" * 64
        with pytest.raises(SignatureMismatchError) as exc_info:
            service.verify(payload)
        assert expected not in str(exc_info.value)


class TestDemoPayments:
    def test_demo_allowed_in_test_environment(self, service):
        result = service.verify(VerificationRequest.model_validate({"isDemoPayment": True, "gatewayOrderId": "order_test1"}))
        assert result.is_demo is True
        assert result.payment_id.startswith("demo_")

    def test_demo_blocked_in_production(self, service, monkeypatch):
        monkeypatch.setattr(Config, "ENVIRONMENT", "production")
        with pytest.raises(SignatureMismatchError):
            service.verify(VerificationRequest.model_validate({"isDemoPayment": True}))

    def test_demo_blocked_with_live_key(self, service, monkeypatch):
        monkeypatch.setattr(Config, "RAZORPAY_KEY_ID", "rzp_live_abc")
        with pytest.raises(SignatureMismatchError):
            service.verify(VerificationRequest.model_validate({"isDemoPayment": True}))

    def test_demo_blocked_when_flag_off(self, service, monkeypatch):
        monkeypatch.setattr(Config, "ALLOW_DEMO_PAYMENTS", False)
        with pytest.raises(SignatureMismatchError):
            service.verify(VerificationRequest.model_validate({"isDemoPayment": True}))


class TestLocateOrder:
    def locate(self, db, service, payload):
        async def run():
            async with db.session() as store:
                return await service.locate_order(store, payload)
        return asyncio.run(run())

    def test_by_gateway_order_id(self, db, service):
        order = create_order(db)
        db.state.orders[order.order_id].gateway_order_id = "order_abc"
        found = self.locate(db, service, signed_payload("order_abc"))
        assert found.order_id == order.order_id

    def test_by_payment_id(self, db, service):
        order = create_order(db)
        db.state.orders[order.order_id].gateway_payment_id = "pay_known"
        found = self.locate(db, service, signed_payload("order_unknown", "pay_known"))
        assert found.order_id == order.order_id

    def test_latest_pending_express_fallback(self, db, service):
        create_order(db, CheckoutType.EXPRESS)
        latest = create_order(db, CheckoutType.EXPRESS)
        found = self.locate(db, service, signed_payload("order_unknown", "pay_new", isExpressCheckout=True))
        assert found.order_id == latest.order_id

    def test_fallback_skips_cancelled_orders(self, db, service):
        live = create_order(db, CheckoutType.EXPRESS)
        cancelled = create_order(db, CheckoutType.EXPRESS)
        db.state.orders[cancelled.order_id].status = OrderStatus.CANCELLED
        found = self.locate(db, service, signed_payload("order_unknown", "pay_new", isExpressCheckout=True))
        assert found.order_id == live.order_id

    def test_no_fallback_for_regular_checkout(self, db, service):
        create_order(db, CheckoutType.EXPRESS)
        assert self.locate(db, service, signed_payload("order_unknown", "pay_new")) is None
