"""
Lead handling: capture, verification, push to seller and one-time
conversion into a Pending order.
"""
import asyncio

import pytest

from snazzpay.exceptions import AlreadyConverted, InvalidTransition, LeadNotFound
from snazzpay.models.order import OrderSource, PaymentStatus
from snazzpay.services.order_lifecycle_service import OrderLifecycleService


@pytest.fixture
def lead(service):
    return service.create_lead(
        customer_name="Nisha Rao",
        contact_no="98200 12345",
        product_ordered="Handloom Saree",
        price="2499",
        seller_id="S7",
        customer_address="12 MG Road",
        pincode="560001",
    )


def test_create_lead(service, lead):
    stored = service.get_lead(lead.id)
    assert stored.payment_status == PaymentStatus.LEAD
    assert stored.price == "2499.00"
    assert stored.source == OrderSource.SHOPIFY


def test_convert_copies_fields_into_pending_order(service, store, lead):
    order = service.convert_lead(lead.id)

    assert order.id == lead.id
    assert order.payment_status == PaymentStatus.PENDING
    assert order.source == OrderSource.MANUAL
    assert order.customer_name == "Nisha Rao"
    assert order.customer_address == "12 MG Road"
    assert order.seller_id == "S7"
    assert order.price == "2499.00"
    assert order.cancellation_id.startswith("CNCL-")

    assert service.get_lead(lead.id).payment_status == PaymentStatus.CONVERTED
    assert [o["id"] for o in store.get_collection("orders")] == [lead.id]


def test_convert_twice_fails_and_leaves_one_order(service, store, lead):
    service.convert_lead(lead.id)
    with pytest.raises(AlreadyConverted):
        service.convert_lead(lead.id)
    assert len(store.get_collection("orders")) == 1


def test_convert_with_delete_mode(store, gateway, notifier, lead):
    deleting = OrderLifecycleService(store, gateway, notifier, delete_converted_leads=True)
    deleting.convert_lead(lead.id)

    assert store.get_document("leads", lead.id) is None
    with pytest.raises(AlreadyConverted):
        deleting.convert_lead(lead.id)
    assert len(store.get_collection("orders")) == 1


@pytest.mark.parametrize("delete_converted_leads", [True, False])
def test_authorized_lead_cannot_be_converted(store, gateway, notifier, lead, delete_converted_leads):
    service = OrderLifecycleService(store, gateway, notifier, delete_converted_leads=delete_converted_leads)
    result = asyncio.run(service.create_authorization(source_id=lead.id))
    assert result.order.id == lead.id

    with pytest.raises(AlreadyConverted):
        service.convert_lead(lead.id)
    assert service.get_order(lead.id).payment_status == PaymentStatus.AUTHORIZED
    assert len(store.get_collection("orders")) == 1


def test_verify_then_push_to_seller(service, lead):
    assert service.verify_intent(lead.id).payment_status == PaymentStatus.INTENT_VERIFIED

    pushed = service.push_to_seller(lead.id, "S9", "Weaves of Kutch")
    assert pushed.payment_status == PaymentStatus.PUSHED_TO_SELLER
    assert pushed.seller_id == "S9"
    assert pushed.seller_name == "Weaves of Kutch"

    # Pushed leads can still be converted
    assert service.convert_lead(lead.id).payment_status == PaymentStatus.PENDING


def test_push_has_no_gateway_side_effects(service, gateway, lead):
    service.push_to_seller(lead.id, "S9")
    assert gateway.calls == []


def test_cancelled_lead_cannot_convert(service, lead):
    service.cancel_lead(lead.id, reason="Customer unreachable")
    with pytest.raises(InvalidTransition):
        service.convert_lead(lead.id)


def test_active_leads_exclude_converted(service, lead):
    other = service.create_lead(
        customer_name="Arun", contact_no="9000000002", product_ordered="Shawl", price="999",
    )
    service.convert_lead(lead.id)

    assert [l.id for l in service.list_leads()] == [other.id]
    assert len(service.list_leads(include_converted=True)) == 2


def test_unknown_lead(service):
    with pytest.raises(LeadNotFound):
        service.convert_lead("missing")
