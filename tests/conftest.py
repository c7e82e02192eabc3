"""
Shared fixtures: an in-memory document store and recording fakes for the
payment gateway and notification sender.
"""
import os

# Must be set before snazzpay.config is imported anywhere
os.environ["LOG_TO_FILE"] = "false"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RAZORPAY_KEY_ID"] = ""
os.environ["RAZORPAY_KEY_SECRET"] = ""
os.environ["WHATSAPP_WEBHOOK_URL"] = ""
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from snazzpay.connectors.base import PaymentGateway, GatewayOrder, CaptureResult, RefundResult
from snazzpay.exceptions import GatewayRejected
from snazzpay.models.base import init_db
from snazzpay.services.document_store import DocumentStore
from snazzpay.services.notification_service import DeliveryResult, NotificationType
from snazzpay.services.order_lifecycle_service import OrderLifecycleService
from snazzpay.utils.cache import clear_cache


class FakeGateway(PaymentGateway):
    """
    Records every call; `fail_on[method] = exc` makes that method raise.

    With `refund_cap = True` a refund larger than what is still captured on
    the payment is rejected the way Razorpay rejects it.
    """

    def __init__(self):
        super().__init__("Fake")
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}
        self.refund_cap = False
        self.captured: Dict[str, int] = {}

    def _record(self, *call):
        self.calls.append(call)
        self.call_count += 1
        error = self.fail_on.get(call[0])
        if error is not None:
            self.error_count += 1
            raise error

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    async def create_order(self, amount, currency, capture_immediately, metadata=None):
        self._record("create_order", amount, currency, capture_immediately, metadata)
        return GatewayOrder(
            gateway_order_id=f"order_{len(self.calls)}",
            amount=amount,
            currency=currency,
        )

    async def capture(self, payment_id, amount, currency):
        self._record("capture", payment_id, amount, currency)
        self.captured[payment_id] = self.captured.get(payment_id, 0) + amount
        return CaptureResult(capture_id=f"cap_{len(self.calls)}", amount=amount)

    async def refund(self, payment_id, amount, notes=None):
        self._record("refund", payment_id, amount, notes)
        if self.refund_cap:
            if amount > self.captured.get(payment_id, 0):
                raise GatewayRejected("The refund amount provided is greater than amount captured")
            self.captured[payment_id] -= amount
        return RefundResult(refund_id=f"rfnd_{len(self.calls)}", amount=amount)

    async def create_mandate_order(self, max_amount, currency, metadata=None):
        self._record("create_mandate_order", max_amount, currency, metadata)
        return GatewayOrder(
            gateway_order_id=f"order_{len(self.calls)}",
            amount=100,
            currency=currency,
        )

    async def charge_mandate(self, token_payment_id, amount, currency, notes=None):
        self._record("charge_mandate", token_payment_id, amount, currency, notes)
        charge_id = f"pay_charge_{len(self.calls)}"
        self.captured[charge_id] = amount
        return CaptureResult(capture_id=charge_id, amount=amount)

    async def validate_connection(self):
        return True


class FakeNotifier:
    """Records sends instead of delivering them."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.error: Optional[Exception] = None

    async def send(self, template_type: Any, recipient: Optional[str], context: Dict[str, Any]) -> DeliveryResult:
        template = NotificationType(template_type)
        self.sent.append((template, recipient, context))
        if self.error is not None:
            raise self.error
        return DeliveryResult(success=True, channel="fake", template=template.value, recipient=recipient or "")

    def templates(self) -> List[NotificationType]:
        return [t for t, _, _ in self.sent]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "email_configured": False,
            "whatsapp_configured": False,
            "total_sent": len(self.sent),
            "total_failed": 0,
        }


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(autouse=True)
def _fresh_report_cache():
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def store(db):
    return DocumentStore(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def service(store, gateway, notifier):
    return OrderLifecycleService(store, gateway, notifier, delete_converted_leads=False)


@pytest.fixture
def authorized_order(service):
    """Factory: an Authorized order with a payment id attached."""

    def _make(price="1000.00", payment_id="pay_test123", **fields):
        details = {
            "customer_name": "Asha Verma",
            "contact_no": "+91 98765-43210",
            "product_ordered": "Silk Saree",
            "customer_email": "asha@example.com",
        }
        details.update(fields)
        result = asyncio.run(service.create_authorization(amount=price, **details))
        if payment_id:
            service.attach_payment(result.order.id, payment_id)
        return service.get_order(result.order.id)

    return _make
