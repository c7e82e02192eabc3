"""
Cancellation with a service fee: keep the fee, refund the remainder,
and surface a half-finished cancellation as a PartialFailure.
"""
import asyncio
from decimal import Decimal

import pytest

from snazzpay.exceptions import (
    FeeExceedsTotal,
    GatewayRejected,
    InvalidAmount,
    InvalidTransition,
    PartialFailure,
)
from snazzpay.models.order import PaymentStatus
from snazzpay.services.notification_service import NotificationType


class TestFeeSplit:

    def test_thousand_order_three_hundred_fee(self, service, gateway, notifier, authorized_order):
        order = authorized_order(price="1000.00")
        result = asyncio.run(service.cancel_with_fee(order.id, 300, reason="Cancelled after packing"))

        assert result.captured_amount == Decimal("300.00")
        assert result.refunded_amount == Decimal("700.00")
        assert result.captured_amount + result.refunded_amount == Decimal("1000.00")

        assert [c[0] for c in gateway.calls if c[0] != "create_order"] == ["capture", "refund"]
        assert gateway.calls_to("capture")[0][2] == 100000  # the whole hold
        assert gateway.calls_to("refund")[0][2] == 70000

        stored = service.get_order(order.id)
        assert stored.payment_status == PaymentStatus.REFUNDED
        assert stored.cancellation_fee == "300.00"
        assert stored.refund_amount == "700.00"
        assert notifier.templates() == [NotificationType.REFUND]

    @pytest.mark.parametrize("price,fee", [
        ("999.99", "333.33"),
        ("1500", "0.01"),
        ("250.50", "249.99"),
    ])
    def test_parts_always_sum_to_total(self, service, price, fee, authorized_order):
        order = authorized_order(price=price)
        result = asyncio.run(service.cancel_with_fee(order.id, fee))
        assert result.captured_amount + result.refunded_amount == Decimal(price).quantize(Decimal("0.01"))

    def test_refund_never_exceeds_what_was_captured(self, service, gateway, authorized_order):
        gateway.refund_cap = True
        order = authorized_order(price="1000.00")

        result = asyncio.run(service.cancel_with_fee(order.id, 300))

        assert result.refunded_amount == Decimal("700.00")
        assert gateway.captured["pay_test123"] == 30000
        assert service.get_order(order.id).payment_status == PaymentStatus.REFUNDED
        assert service.get_payment_info(order).captured_amount == "1000.00"

    def test_after_capture_only_refunds_remainder(self, service, gateway, authorized_order):
        order = authorized_order(price="1000.00")
        asyncio.run(service.capture_on_dispatch(order.id))

        result = asyncio.run(service.cancel_with_fee(order.id, "300"))

        assert len(gateway.calls_to("capture")) == 1  # the dispatch capture only
        assert gateway.calls_to("refund")[0][2] == 70000
        assert result.refunded_amount == Decimal("700.00")
        assert service.get_order(order.id).payment_status == PaymentStatus.REFUNDED


class TestValidation:

    @pytest.mark.parametrize("fee", ["1000", "1000.00", "1200", "999.995"])
    def test_fee_at_or_above_total_makes_no_gateway_call(self, service, gateway, authorized_order, fee):
        order = authorized_order(price="1000.00")
        calls_before = list(gateway.calls)

        with pytest.raises(FeeExceedsTotal):
            asyncio.run(service.cancel_with_fee(order.id, fee))

        assert gateway.calls == calls_before
        assert service.get_order(order.id).payment_status == PaymentStatus.AUTHORIZED

    def test_total_above_order_value_rejected(self, service, gateway, authorized_order):
        order = authorized_order(price="1000.00")
        with pytest.raises(InvalidAmount):
            asyncio.run(service.cancel_with_fee(order.id, 100, total_amount=2000))
        assert gateway.calls_to("capture") == []

    def test_voided_order_rejected(self, service, authorized_order):
        order = authorized_order(price="1000.00")
        asyncio.run(service.cancel_before_dispatch(order.id, order.cancellation_id))
        with pytest.raises(InvalidTransition):
            asyncio.run(service.cancel_with_fee(order.id, 100))


class TestPartialFailure:

    def test_refund_failure_after_fee_capture(self, service, gateway, notifier, authorized_order):
        order = authorized_order(price="1000.00")
        gateway.fail_on["refund"] = GatewayRejected("Refund request failed")

        with pytest.raises(PartialFailure) as exc:
            asyncio.run(service.cancel_with_fee(order.id, 300))

        err = exc.value
        assert err.completed_step == "capture_fee"
        assert err.failed_step == "refund_remainder"
        assert err.captured_amount == "300.00"
        assert err.pending_refund_amount == "700.00"
        assert isinstance(err.cause, GatewayRejected)
        assert err.to_dict()["details"]["order_id"] == order.order_id

        stored = service.get_order(order.id)
        assert stored.payment_status == PaymentStatus.FEE_CHARGED
        assert stored.refund_status == "Failed"
        assert notifier.sent == []

    def test_rerun_only_retries_refund(self, service, gateway, authorized_order):
        order = authorized_order(price="1000.00")
        gateway.fail_on["refund"] = GatewayRejected("temporarily unavailable")
        with pytest.raises(PartialFailure):
            asyncio.run(service.cancel_with_fee(order.id, 300))

        del gateway.fail_on["refund"]
        result = asyncio.run(service.cancel_with_fee(order.id, 300))

        assert len(gateway.calls_to("capture")) == 1
        assert len(gateway.calls_to("refund")) == 2
        assert result.refunded_amount == Decimal("700.00")
        assert service.get_order(order.id).payment_status == PaymentStatus.REFUNDED

    def test_rerun_with_different_fee_rejected(self, service, gateway, authorized_order):
        order = authorized_order(price="1000.00")
        gateway.fail_on["refund"] = GatewayRejected("temporarily unavailable")
        with pytest.raises(PartialFailure):
            asyncio.run(service.cancel_with_fee(order.id, 300))

        del gateway.fail_on["refund"]
        with pytest.raises(InvalidAmount):
            asyncio.run(service.cancel_with_fee(order.id, 200))
        assert len(gateway.calls_to("refund")) == 1

    def test_capture_failure_is_a_total_failure(self, service, gateway, authorized_order):
        order = authorized_order(price="1000.00")
        gateway.fail_on["capture"] = GatewayRejected("This payment has already been captured")

        with pytest.raises(GatewayRejected):
            asyncio.run(service.cancel_with_fee(order.id, 300))

        assert gateway.calls_to("refund") == []
        assert service.get_order(order.id).payment_status == PaymentStatus.AUTHORIZED
