"""
Shakti card issuance: one card per normalized phone number.
"""
import asyncio
import re
from datetime import datetime

from snazzpay.models.order import Order, PaymentStatus
from snazzpay.services.loyalty_service import LoyaltyService


def _order(phone, **extra):
    return Order.model_validate({
        "id": "o-" + phone,
        "orderId": "#" + phone,
        "price": "1000",
        "paymentStatus": PaymentStatus.PAID,
        "customerName": "Farah Khan",
        "contactNo": phone,
        **extra,
    })


def test_new_card_defaults(store):
    card = LoyaltyService(store).get_or_create_card(
        _order("9876543210", customerEmail="farah@example.com"),
        now=datetime(2026, 3, 15),
    )

    assert re.fullmatch(r"SHAKTI-[0-9A-F]{4}-[0-9A-F]{4}", card.card_number)
    assert card.customer_phone == "919876543210"
    assert card.valid_from == "03/26"
    assert card.valid_thru == "03/28"
    assert card.points == 100
    assert card.cashback == 0
    assert card.seller_name == "Snazzify"
    assert store.get_document("shakti_cards", card.card_number)["customerEmail"] == "farah@example.com"


def test_differently_formatted_phone_returns_existing_card(store):
    loyalty = LoyaltyService(store)
    first = loyalty.get_or_create_card(_order("+91 98765-43210"))
    second = loyalty.get_or_create_card(_order("9876543210"))

    assert second.card_number == first.card_number
    assert len(store.get_collection("shakti_cards")) == 1


def test_trunk_and_international_prefixes_return_existing_card(store):
    loyalty = LoyaltyService(store)
    first = loyalty.get_or_create_card(_order("9876543210"))

    for phone in ("09876543210", "0091 98765 43210"):
        assert loyalty.get_or_create_card(_order(phone)).card_number == first.card_number
    assert len(store.get_collection("shakti_cards")) == 1


def test_lookup_by_phone(store):
    loyalty = LoyaltyService(store)
    card = loyalty.get_or_create_card(_order("9876543210", sellerId="S1", sellerName="Weaves"))

    found = loyalty.get_card_by_phone("+91-98765 43210")
    assert found.card_number == card.card_number
    assert found.seller_id == "S1"
    assert loyalty.get_card_by_phone("9000000000") is None


def test_no_phone_no_card(store):
    assert LoyaltyService(store).get_or_create_card(_order("")) is None
    assert store.get_collection("shakti_cards") == []


def test_capture_issues_card_once_per_customer(service, store, authorized_order):
    first = authorized_order(price="100")
    second = authorized_order(price="200", contact_no="98765 43210")
    asyncio.run(service.capture_on_dispatch(first.id))
    asyncio.run(service.capture_on_dispatch(second.id))

    assert len(store.get_collection("shakti_cards")) == 1
