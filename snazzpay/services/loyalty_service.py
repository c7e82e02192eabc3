"""
Shakti Card (loyalty) service

One card per customer, keyed by the normalized phone number. Cards are
issued on the customer's first captured order and never duplicated.
"""
from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

from snazzpay.config import get_settings
from snazzpay.models.order import Order, ShaktiCard
from snazzpay.services.document_store import DocumentStore
from snazzpay.utils.helpers import normalize_phone, generate_card_number
from snazzpay.utils.logger import log

settings = get_settings()

SHAKTI_CARDS = "shakti_cards"


class LoyaltyService:
    """Issue and look up Shakti cards"""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get_card_by_phone(self, phone: str) -> Optional[ShaktiCard]:
        key = normalize_phone(phone)
        if not key:
            return None
        matches = self.store.find_by_field(SHAKTI_CARDS, "customerPhone", key)
        return ShaktiCard.from_record(matches[0]) if matches else None

    def get_or_create_card(self, order: Order, now: Optional[datetime] = None) -> Optional[ShaktiCard]:
        """
        Return the customer's card, issuing one if they don't have it yet.

        Orders without a usable phone number get no card.
        """
        key = normalize_phone(order.contact_no)
        if not key:
            log.info(f"Order {order.order_id} has no contact number, no Shakti card issued")
            return None

        existing = self.get_card_by_phone(key)
        if existing:
            return existing

        now = now or datetime.now(timezone.utc)
        card = ShaktiCard(
            card_number=generate_card_number(),
            customer_name=order.customer_name,
            customer_phone=key,
            customer_email=order.customer_email,
            customer_address=order.customer_address or None,
            valid_from=now.strftime("%m/%y"),
            valid_thru=(now + relativedelta(years=settings.shakti_validity_years)).strftime("%m/%y"),
            points=settings.shakti_welcome_points,
            seller_id=order.seller_id or "snazzify",
            seller_name=order.seller_name or "Snazzify",
        )
        self.store.save_document(SHAKTI_CARDS, card.to_record(), card.card_number)
        log.info(f"Issued Shakti card {card.card_number} for order {order.order_id}")
        return card
