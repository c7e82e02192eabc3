"""
Mandate orders: a ₹1 token approval at checkout, the order value charged
against the token on dispatch, and refunds against that charge.
"""
import asyncio
from decimal import Decimal

import pytest

from snazzpay.exceptions import GatewayRejected, InvalidOrderDetails
from snazzpay.models.order import PaymentStatus


@pytest.fixture
def mandate_order(service):
    result = asyncio.run(service.create_authorization(
        amount="1000.00",
        customer_name="Asha Verma",
        contact_no="9876543210",
        product_ordered="Silk Saree",
        customer_email="asha@example.com",
        mandate=True,
    ))
    service.attach_payment(result.order.id, "pay_token_1")
    return service.get_order(result.order.id)


# ────────────────────────────────────────────
# AUTHORIZATION
# ────────────────────────────────────────────


def test_mandate_order_registers_token_for_full_amount(service, gateway, mandate_order):
    (call,) = gateway.calls_to("create_mandate_order")
    assert call[1] == 100000
    assert call[3]["type"] == "secure_cod_mandate"
    assert gateway.calls_to("create_order") == []

    assert mandate_order.payment_status == PaymentStatus.AUTHORIZED
    assert mandate_order.payment_method == "Secure COD Mandate"
    info = service.get_payment_info(mandate_order)
    assert info.mandate is True
    assert info.captured_amount is None


def test_mandate_and_immediate_charge_are_exclusive(service, gateway):
    with pytest.raises(InvalidOrderDetails):
        asyncio.run(service.create_authorization(
            amount="500",
            customer_name="Ravi",
            contact_no="9811111111",
            product_ordered="Kurta",
            capture_immediately=True,
            mandate=True,
        ))
    assert gateway.calls == []


# ────────────────────────────────────────────
# DISPATCH AND CANCELLATION
# ────────────────────────────────────────────


class TestMandateLifecycle:

    def test_dispatch_charges_the_mandate(self, service, gateway, mandate_order):
        result = asyncio.run(service.capture_on_dispatch(mandate_order.id, tracking_number="DL9"))

        assert gateway.calls_to("capture") == []
        (charge,) = gateway.calls_to("charge_mandate")
        assert charge[1:4] == ("pay_token_1", 100000, "INR")
        assert charge[4] == {"charge_reason": "Order dispatched"}

        assert result.captured_amount == Decimal("1000.00")
        assert result.order.payment_status == PaymentStatus.PAID
        assert service.get_payment_info(mandate_order).capture_id == result.capture_id

    def test_refund_goes_against_the_charge(self, service, gateway, mandate_order):
        gateway.refund_cap = True
        charged = asyncio.run(service.capture_on_dispatch(mandate_order.id))

        result = asyncio.run(service.refund_payment(mandate_order.id, "400"))

        (refund,) = gateway.calls_to("refund")
        assert refund[1] == charged.capture_id
        assert result.refunded_amount == Decimal("400.00")

    def test_cancel_with_fee_charges_then_refunds_remainder(self, service, gateway, mandate_order):
        gateway.refund_cap = True
        result = asyncio.run(service.cancel_with_fee(mandate_order.id, 300))

        (charge,) = gateway.calls_to("charge_mandate")
        assert charge[2] == 100000
        (refund,) = gateway.calls_to("refund")
        assert refund[1] == result.capture_id
        assert refund[2] == 70000
        assert result.order.payment_status == PaymentStatus.REFUNDED

    def test_cancel_before_dispatch_voids_without_gateway_call(self, service, gateway, mandate_order):
        result = asyncio.run(service.cancel_before_dispatch(mandate_order.id, mandate_order.cancellation_id))

        assert result.order.payment_status == PaymentStatus.VOIDED
        assert result.refunded_amount is None
        assert gateway.calls_to("refund") == []

    def test_declined_charge_leaves_order_authorized(self, service, gateway, mandate_order):
        gateway.fail_on["charge_mandate"] = GatewayRejected("Token is no longer active")

        with pytest.raises(GatewayRejected):
            asyncio.run(service.capture_on_dispatch(mandate_order.id))

        assert service.get_order(mandate_order.id).payment_status == PaymentStatus.AUTHORIZED
        assert service.get_payment_info(mandate_order).captured_amount is None
