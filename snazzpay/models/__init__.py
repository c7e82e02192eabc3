"""Database models and lifecycle records"""

from snazzpay.models.document import Document

from snazzpay.models.order import (
    PaymentStatus,
    DeliveryStatus,
    OrderSource,
    Order,
    Lead,
    PaymentInfo,
    ShaktiCard,
    LEAD_STATUSES,
    CAPTURED_STATUSES,
    ALLOWED_TRANSITIONS,
    can_transition,
    ensure_transition,
)
