"""
Order, lead, payment and loyalty records

Records are stored as camelCase JSON documents; these models validate them
on the way in and serialize them back with the same field names.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from snazzpay.exceptions import InvalidTransition
from snazzpay.utils.money import parse_amount


class PaymentStatus(str, Enum):
    LEAD = "Lead"
    INTENT_VERIFIED = "Intent Verified"
    PENDING = "Pending"
    AUTHORIZED = "Authorized"
    PAID = "Paid"
    FEE_CHARGED = "Fee Charged"
    REFUNDED = "Refunded"
    VOIDED = "Voided"
    CANCELLED = "Cancelled"
    PUSHED_TO_SELLER = "Pushed to Seller"
    CONVERTED = "Converted"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    PACKED = "packed"
    DISPATCHED = "dispatched"
    OUT_FOR_DELIVERY = "out-for-delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    RTO = "rto"


class OrderSource(str, Enum):
    SHOPIFY = "Shopify"
    MANUAL = "Manual"
    SELLER = "Seller"
    CATALOGUE = "Catalogue"
    SMART_MAGAZINE = "SmartMagazine"


LEAD_STATUSES: FrozenSet[PaymentStatus] = frozenset({
    PaymentStatus.LEAD,
    PaymentStatus.INTENT_VERIFIED,
    PaymentStatus.PUSHED_TO_SELLER,
    PaymentStatus.CONVERTED,
    PaymentStatus.CANCELLED,
})

CAPTURED_STATUSES: FrozenSet[PaymentStatus] = frozenset({
    PaymentStatus.PAID,
    PaymentStatus.FEE_CHARGED,
})

# Forward-only lifecycle. Anything not listed here is rejected.
ALLOWED_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.LEAD: frozenset({
        PaymentStatus.INTENT_VERIFIED,
        PaymentStatus.AUTHORIZED,
        PaymentStatus.PUSHED_TO_SELLER,
        PaymentStatus.CONVERTED,
        PaymentStatus.CANCELLED,
    }),
    PaymentStatus.INTENT_VERIFIED: frozenset({
        PaymentStatus.AUTHORIZED,
        PaymentStatus.PUSHED_TO_SELLER,
        PaymentStatus.CONVERTED,
        PaymentStatus.CANCELLED,
    }),
    PaymentStatus.PUSHED_TO_SELLER: frozenset({
        PaymentStatus.CONVERTED,
        PaymentStatus.CANCELLED,
    }),
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.AUTHORIZED,
        PaymentStatus.CANCELLED,
    }),
    PaymentStatus.AUTHORIZED: frozenset({
        PaymentStatus.PAID,
        PaymentStatus.FEE_CHARGED,
        PaymentStatus.VOIDED,
    }),
    PaymentStatus.PAID: frozenset({
        PaymentStatus.FEE_CHARGED,
        PaymentStatus.REFUNDED,
    }),
    PaymentStatus.FEE_CHARGED: frozenset({
        PaymentStatus.REFUNDED,
    }),
    PaymentStatus.REFUNDED: frozenset(),
    PaymentStatus.VOIDED: frozenset(),
    PaymentStatus.CANCELLED: frozenset(),
    PaymentStatus.CONVERTED: frozenset(),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    """Raise InvalidTransition unless current -> target is a lifecycle edge."""
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot move from '{current.value}' to '{target.value}'"
        )


class _Record(BaseModel):
    """Shared config: camelCase aliases, unknown keys kept as-is."""
    model_config = ConfigDict(populate_by_name=True, extra="allow", use_enum_values=False)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_record(cls, data: Dict[str, Any]):
        return cls.model_validate(data)


class Order(_Record):
    """An order (or lead) document"""

    id: str
    order_id: str = Field(alias="orderId")

    # Commercial
    product_ordered: str = Field("", alias="productOrdered")
    quantity: int = Field(1, ge=1)
    price: str

    # Customer
    customer_name: str = Field("", alias="customerName")
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    contact_no: str = Field("", alias="contactNo")
    customer_address: str = Field("", alias="customerAddress")
    pincode: str = ""

    # Status
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    date: Optional[str] = None

    # Fulfillment
    delivery_status: DeliveryStatus = Field(DeliveryStatus.PENDING, alias="deliveryStatus")
    tracking_number: Optional[str] = Field(None, alias="trackingNumber")
    courier_company_name: Optional[str] = Field(None, alias="courierCompanyName")
    est_delivery: Optional[str] = Field(None, alias="estDelivery")
    ready_for_dispatch_date: Optional[str] = Field(None, alias="readyForDispatchDate")

    # Attribution
    seller_id: Optional[str] = Field(None, alias="sellerId")
    seller_name: Optional[str] = Field(None, alias="sellerName")
    vendor_id: Optional[str] = Field(None, alias="vendorId")
    source: OrderSource = OrderSource.MANUAL

    # Audit
    cancellation_id: Optional[str] = Field(None, alias="cancellationId")
    cancellation_status: Optional[str] = Field(None, alias="cancellationStatus")
    cancellation_reason: Optional[str] = Field(None, alias="cancellationReason")
    cancellation_fee: Optional[str] = Field(None, alias="cancellationFee")
    refund_amount: Optional[str] = Field(None, alias="refundAmount")
    refund_reason: Optional[str] = Field(None, alias="refundReason")
    refund_status: Optional[str] = Field(None, alias="refundStatus")
    is_read: bool = Field(False, alias="isRead")

    @field_validator("price", mode="before")
    @classmethod
    def _price_as_string(cls, v):
        # Older documents stored price as a number
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def amount(self) -> Decimal:
        """Order total, rounded to paise. Raises InvalidAmount if unusable."""
        return parse_amount(self.price, "price")


class Lead(Order):
    """Pre-order intent record"""

    @field_validator("payment_status")
    @classmethod
    def _lead_status_only(cls, v: PaymentStatus) -> PaymentStatus:
        if v not in LEAD_STATUSES:
            raise ValueError(f"'{v.value}' is not a lead status")
        return v


class PaymentInfo(_Record):
    """Gateway identifiers for an order, keyed by the internal order id"""

    order_id: str = Field(alias="orderId")
    gateway_order_id: Optional[str] = Field(None, alias="gatewayOrderId")
    payment_id: Optional[str] = Field(None, alias="paymentId")
    amount: str
    currency: str = "INR"
    capture_immediately: bool = Field(False, alias="captureImmediately")
    mandate: bool = False
    captured_amount: Optional[str] = Field(None, alias="capturedAmount")
    capture_id: Optional[str] = Field(None, alias="captureId")
    refund_ids: List[str] = Field(default_factory=list, alias="refundIds")

    @property
    def refund_target(self) -> Optional[str]:
        """Payment a refund goes against: the mandate charge, else the checkout payment."""
        if self.mandate and self.capture_id:
            return self.capture_id
        return self.payment_id


class ShaktiCard(_Record):
    """Loyalty card, one per normalized phone number"""

    card_number: str = Field(alias="cardNumber")
    customer_name: str = Field("", alias="customerName")
    customer_phone: str = Field(alias="customerPhone")
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    customer_address: Optional[str] = Field(None, alias="customerAddress")
    valid_from: str = Field(alias="validFrom")
    valid_thru: str = Field(alias="validThru")
    points: int = Field(0, ge=0)
    cashback: Decimal = Field(Decimal("0"), ge=0)
    seller_id: Optional[str] = Field(None, alias="sellerId")
    seller_name: Optional[str] = Field(None, alias="sellerName")
