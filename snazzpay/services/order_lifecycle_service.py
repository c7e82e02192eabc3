"""
Order Lifecycle Service

Owns every payment-status change of an order, from lead capture through
authorization, capture on dispatch and the terminal refund/void states,
including the fee-split arithmetic for cancellations after capture.

Ordering rule for every money movement: call the gateway first, write the
new local status only after it succeeds. A failed gateway call leaves the
order exactly as it was.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from snazzpay.config import get_settings
from snazzpay.connectors.base import CaptureResult, PaymentGateway
from snazzpay.exceptions import (
    AlreadyCaptured,
    AlreadyConverted,
    InvalidAmount,
    InvalidCancellationToken,
    InvalidOrderDetails,
    InvalidTransition,
    LeadNotFound,
    OrderNotFound,
    PartialFailure,
    PaymentRecordMissing,
)
from snazzpay.models.order import (
    CAPTURED_STATUSES,
    DeliveryStatus,
    Lead,
    Order,
    OrderSource,
    PaymentInfo,
    PaymentStatus,
    ShaktiCard,
    ensure_transition,
)
from snazzpay.services.document_store import DocumentStore
from snazzpay.services.loyalty_service import LoyaltyService
from snazzpay.services.notification_service import DeliveryResult, NotificationService, NotificationType
from snazzpay.utils.helpers import generate_cancellation_id, new_order_id, normalize_phone, utc_now_iso
from snazzpay.utils.logger import log
from snazzpay.utils.money import format_inr, from_minor_units, parse_amount, split_fee, to_minor_units

settings = get_settings()

ORDERS = "orders"
LEADS = "leads"
PAYMENT_INFO = "payment_info"


def _payment_method(capture_immediately: bool, mandate: bool) -> str:
    if capture_immediately:
        return "Prepaid"
    if mandate:
        return "Secure COD Mandate"
    return "Secure Charge on Delivery"


@dataclass
class LifecycleResult:
    """What a lifecycle operation did"""
    order: Order
    gateway_order_id: Optional[str] = None
    captured_amount: Optional[Decimal] = None
    refunded_amount: Optional[Decimal] = None
    capture_id: Optional[str] = None
    refund_id: Optional[str] = None
    notification: Optional[DeliveryResult] = None
    shakti_card: Optional[ShaktiCard] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order": self.order.to_record(),
            "gateway_order_id": self.gateway_order_id,
            "captured_amount": str(self.captured_amount) if self.captured_amount is not None else None,
            "refunded_amount": str(self.refunded_amount) if self.refunded_amount is not None else None,
            "capture_id": self.capture_id,
            "refund_id": self.refund_id,
            "notification": self.notification.to_dict() if self.notification else None,
            "shakti_card": self.shakti_card.to_record() if self.shakti_card else None,
        }


class OrderLifecycleService:
    """State machine for Secure-COD orders and leads"""

    def __init__(
        self,
        store: DocumentStore,
        gateway: PaymentGateway,
        notifier: NotificationService,
        loyalty: Optional[LoyaltyService] = None,
        delete_converted_leads: Optional[bool] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.notifier = notifier
        self.loyalty = loyalty or LoyaltyService(store)
        self.currency = settings.currency
        self.delete_converted_leads = (
            settings.delete_converted_leads if delete_converted_leads is None else delete_converted_leads
        )

    # ------------------------------------------------------------------
    # Loading and saving
    # ------------------------------------------------------------------

    def get_order(self, order_ref: str) -> Order:
        """Find an order by internal id, falling back to the human-facing orderId."""
        record = self.store.get_document(ORDERS, order_ref)
        if not record:
            matches = self.store.find_by_field(ORDERS, "orderId", order_ref)
            record = matches[0] if matches else None
        if not record:
            raise OrderNotFound(f"Order {order_ref} not found")
        return Order.from_record(record)

    def get_lead(self, lead_id: str) -> Lead:
        record = self.store.get_document(LEADS, lead_id)
        if not record:
            raise LeadNotFound(f"Lead {lead_id} not found")
        return Lead.from_record(record)

    def list_orders(self) -> List[Order]:
        return [Order.from_record(r) for r in self.store.get_collection(ORDERS)]

    def list_leads(self, include_converted: bool = False) -> List[Lead]:
        leads = [Lead.from_record(r) for r in self.store.get_collection(LEADS)]
        if include_converted:
            return leads
        return [lead for lead in leads if lead.payment_status != PaymentStatus.CONVERTED]

    def get_payment_info(self, order: Order) -> Optional[PaymentInfo]:
        record = self.store.get_document(PAYMENT_INFO, order.id)
        if not record and order.order_id != order.id:
            # Older records were keyed by the human-facing order id
            record = self.store.get_document(PAYMENT_INFO, order.order_id)
        return PaymentInfo.from_record(record) if record else None

    def _save_order(self, order: Order) -> Order:
        self.store.save_document(ORDERS, order.to_record(), order.id)
        return order

    def _save_lead(self, lead: Lead) -> Lead:
        self.store.save_document(LEADS, lead.to_record(), lead.id)
        return lead

    def _save_payment_info(self, info: PaymentInfo) -> None:
        self.store.save_document(PAYMENT_INFO, info.to_record(), info.order_id)

    def _require_payment_id(self, order: Order) -> PaymentInfo:
        info = self.get_payment_info(order)
        if not info or not info.payment_id:
            raise PaymentRecordMissing(
                f"No payment authorization found for order {order.order_id}"
            )
        return info

    async def _collect(self, info: PaymentInfo, value: Decimal, reason: str) -> CaptureResult:
        """Take `value` from the customer: capture the hold, or charge the mandate."""
        if info.mandate:
            return await self.gateway.charge_mandate(
                info.payment_id,
                to_minor_units(value),
                info.currency,
                notes={"charge_reason": reason},
            )
        return await self.gateway.capture(info.payment_id, to_minor_units(value), info.currency)

    async def _notify(self, template: NotificationType, order: Order) -> DeliveryResult:
        """Best-effort customer notification; never undoes the operation."""
        recipient = order.customer_email or order.contact_no
        try:
            return await self.notifier.send(template, recipient, order.to_record())
        except Exception as e:
            log.error(f"'{template.value}' notification for order {order.order_id} failed: {str(e)}")
            return DeliveryResult(template=template.value, recipient=recipient or "", error=str(e))

    def _issue_card(self, order: Order) -> Optional[ShaktiCard]:
        try:
            return self.loyalty.get_or_create_card(order)
        except Exception as e:
            log.error(f"Failed to issue Shakti card for order {order.order_id}: {str(e)}")
            return None

    @staticmethod
    def _build_fields(
        base: Optional[Dict[str, Any]],
        overrides: Dict[str, Any],
    ) -> Dict[str, Any]:
        fields = dict(base or {})
        fields.update({k: v for k, v in overrides.items() if v is not None})
        return fields

    @staticmethod
    def _validate_customer(fields: Dict[str, Any]) -> None:
        missing = [
            label for key, label in (
                ("customerName", "customer name"),
                ("contactNo", "contact number"),
                ("productOrdered", "product"),
            )
            if not str(fields.get(key) or "").strip()
        ]
        if missing:
            raise InvalidOrderDetails(f"Missing {', '.join(missing)}")
        if not normalize_phone(fields["contactNo"]):
            raise InvalidOrderDetails(f"Invalid contact number: {fields['contactNo']!r}")

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    def create_lead(
        self,
        customer_name: str,
        contact_no: str,
        product_ordered: str,
        price: Any,
        quantity: int = 1,
        customer_email: Optional[str] = None,
        customer_address: str = "",
        pincode: str = "",
        seller_id: Optional[str] = None,
        source: OrderSource = OrderSource.SHOPIFY,
        order_id: Optional[str] = None,
    ) -> Lead:
        """Record a customer's intent before any payment step."""
        amount = parse_amount(price, "price")
        lead_id = new_order_id()
        fields = {
            "id": lead_id,
            "orderId": order_id or lead_id,
            "customerName": customer_name,
            "contactNo": contact_no,
            "productOrdered": product_ordered,
            "customerEmail": customer_email,
            "customerAddress": customer_address,
            "pincode": pincode,
            "quantity": quantity,
            "price": str(amount),
            "sellerId": seller_id,
            "source": source,
            "paymentStatus": PaymentStatus.LEAD,
            "date": utc_now_iso(),
        }
        self._validate_customer(fields)
        lead = Lead.model_validate(fields)
        self._save_lead(lead)
        log.info(f"Lead {lead.id} created for {product_ordered} ({format_inr(amount)})")
        return lead

    def verify_intent(self, lead_id: str) -> Lead:
        """Lead -> Intent Verified"""
        lead = self.get_lead(lead_id)
        ensure_transition(lead.payment_status, PaymentStatus.INTENT_VERIFIED)
        lead.payment_status = PaymentStatus.INTENT_VERIFIED
        self._save_lead(lead)
        log.info(f"Lead {lead.id} intent verified")
        return lead

    def push_to_seller(self, lead_id: str, seller_id: str, seller_name: Optional[str] = None) -> Lead:
        """Hand a lead to a seller's queue. No payment side effects."""
        if not seller_id:
            raise InvalidOrderDetails("seller_id is required")
        lead = self.get_lead(lead_id)
        ensure_transition(lead.payment_status, PaymentStatus.PUSHED_TO_SELLER)
        lead.payment_status = PaymentStatus.PUSHED_TO_SELLER
        lead.seller_id = seller_id
        if seller_name:
            lead.seller_name = seller_name
        self._save_lead(lead)
        log.info(f"Lead {lead.id} pushed to seller {seller_id}")
        return lead

    def cancel_lead(self, lead_id: str, reason: Optional[str] = None) -> Lead:
        lead = self.get_lead(lead_id)
        ensure_transition(lead.payment_status, PaymentStatus.CANCELLED)
        lead.payment_status = PaymentStatus.CANCELLED
        lead.cancellation_reason = reason
        self._save_lead(lead)
        log.info(f"Lead {lead.id} cancelled")
        return lead

    def _retire_lead(self, lead: Lead) -> None:
        if self.delete_converted_leads:
            self.store.delete_document(LEADS, lead.id)
        else:
            lead.payment_status = PaymentStatus.CONVERTED
            self._save_lead(lead)

    def convert_lead(self, lead_id: str) -> Order:
        """
        Copy a lead into a Pending order with the same id.

        One-time: the order is keyed by the lead id, so a second call finds
        it and fails with AlreadyConverted.
        """
        if self.store.get_document(ORDERS, lead_id):
            raise AlreadyConverted(f"Lead {lead_id} has already been converted to an order")

        lead = self.get_lead(lead_id)
        if lead.payment_status == PaymentStatus.CONVERTED:
            raise AlreadyConverted(f"Lead {lead_id} has already been converted to an order")
        ensure_transition(lead.payment_status, PaymentStatus.CONVERTED)

        record = lead.to_record()
        record.update({
            "paymentStatus": PaymentStatus.PENDING.value,
            "source": OrderSource.MANUAL.value,
            "cancellationId": lead.cancellation_id or generate_cancellation_id(),
        })
        order = Order.from_record(record)
        self._save_order(order)
        self._retire_lead(lead)

        log.info(f"Lead {lead_id} converted to Pending order {order.order_id}")
        return order

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        customer_name: str,
        contact_no: str,
        product_ordered: str,
        price: Any,
        quantity: int = 1,
        customer_email: Optional[str] = None,
        customer_address: str = "",
        pincode: str = "",
        seller_id: Optional[str] = None,
        seller_name: Optional[str] = None,
        source: OrderSource = OrderSource.SELLER,
        order_id: Optional[str] = None,
    ) -> Order:
        """Seller-created order awaiting admin pickup (Pending)."""
        amount = parse_amount(price, "price")
        internal_id = new_order_id()
        fields = {
            "id": internal_id,
            "orderId": order_id or internal_id,
            "customerName": customer_name,
            "contactNo": contact_no,
            "productOrdered": product_ordered,
            "customerEmail": customer_email,
            "customerAddress": customer_address,
            "pincode": pincode,
            "quantity": quantity,
            "price": str(amount),
            "sellerId": seller_id,
            "sellerName": seller_name,
            "source": source,
            "paymentStatus": PaymentStatus.PENDING,
            "cancellationId": generate_cancellation_id(),
            "date": utc_now_iso(),
        }
        self._validate_customer(fields)
        order = Order.model_validate(fields)
        self._save_order(order)
        log.info(f"Pending order {order.order_id} created by seller {seller_id or '-'}")
        return order

    def issue_cancellation_id(self, order_ref: str) -> str:
        """Return the order's cancellation token, creating one if it has none."""
        order = self.get_order(order_ref)
        if order.cancellation_id:
            return order.cancellation_id
        order.cancellation_id = generate_cancellation_id()
        self._save_order(order)
        return order.cancellation_id

    def mark_read(self, order_ref: str) -> Order:
        order = self.get_order(order_ref)
        if not order.is_read:
            order.is_read = True
            self._save_order(order)
        return order

    async def create_authorization(
        self,
        amount: Any = None,
        customer_name: Optional[str] = None,
        contact_no: Optional[str] = None,
        product_ordered: Optional[str] = None,
        customer_email: Optional[str] = None,
        customer_address: Optional[str] = None,
        pincode: Optional[str] = None,
        quantity: Optional[int] = None,
        seller_id: Optional[str] = None,
        source_id: Optional[str] = None,
        capture_immediately: bool = False,
        mandate: bool = False,
    ) -> LifecycleResult:
        """
        Lead/Pending -> Authorized (or Paid for an immediate prepaid charge).

        With `mandate` the customer approves a ₹1 token order instead of a
        hold on the full amount, and the order value is charged against that
        token on dispatch.

        `source_id` names an existing Pending order or Lead to authorize;
        its fields fill in anything not passed explicitly and the order keeps
        its id, so an authorized lead can no longer be converted. Without it a new
        order is created from the arguments alone. Nothing is written if the
        gateway call fails.
        """
        if mandate and capture_immediately:
            raise InvalidOrderDetails("A mandate order cannot also be charged immediately")

        base_order: Optional[Order] = None
        base_lead: Optional[Lead] = None
        base_record: Optional[Dict[str, Any]] = None
        current = PaymentStatus.LEAD

        if source_id:
            record = self.store.get_document(ORDERS, source_id)
            if record:
                base_order = Order.from_record(record)
                base_record = record
                current = base_order.payment_status
            else:
                base_lead = self.get_lead(source_id)
                base_record = base_lead.to_record()
                current = base_lead.payment_status

        if current in CAPTURED_STATUSES:
            raise AlreadyCaptured(f"Order {source_id} has already been captured")
        ensure_transition(current, PaymentStatus.AUTHORIZED)

        fields = self._build_fields(base_record, {
            "price": amount,
            "customerName": customer_name,
            "contactNo": contact_no,
            "productOrdered": product_ordered,
            "customerEmail": customer_email,
            "customerAddress": customer_address,
            "pincode": pincode,
            "quantity": quantity,
            "sellerId": seller_id,
        })
        value = parse_amount(fields.get("price"), "amount")
        self._validate_customer(fields)

        if base_order:
            internal_id = base_order.id
        elif base_lead:
            internal_id = base_lead.id
        else:
            internal_id = new_order_id()
        metadata = {
            "receipt": f"receipt_cod_{internal_id[:12]}",
            "product": fields.get("productOrdered"),
            "internal_order_id": internal_id,
            "original_amount": str(value),
        }
        if mandate:
            metadata["type"] = "secure_cod_mandate"
            gateway_order = await self.gateway.create_mandate_order(to_minor_units(value), self.currency, metadata)
        else:
            metadata["type"] = "prepaid" if capture_immediately else "secure_cod_authorization"
            gateway_order = await self.gateway.create_order(
                to_minor_units(value), self.currency, capture_immediately, metadata=metadata
            )

        fields.update({
            "id": internal_id,
            "orderId": fields.get("orderId") or internal_id,
            "price": str(value),
            "paymentStatus": PaymentStatus.PAID if capture_immediately else PaymentStatus.AUTHORIZED,
            "paymentMethod": _payment_method(capture_immediately, mandate),
            "cancellationId": fields.get("cancellationId") or generate_cancellation_id(),
            "source": fields.get("source") or OrderSource.SHOPIFY,
            "date": fields.get("date") or utc_now_iso(),
        })
        order = Order.model_validate(fields)

        info = PaymentInfo(
            order_id=internal_id,
            gateway_order_id=gateway_order.gateway_order_id,
            amount=str(value),
            currency=self.currency,
            capture_immediately=capture_immediately,
            mandate=mandate,
            captured_amount=str(value) if capture_immediately else None,
        )
        self._save_payment_info(info)
        self._save_order(order)
        if base_lead:
            self._retire_lead(base_lead)

        log.info(
            f"Order {order.order_id} {order.payment_status.value} for {format_inr(value)} "
            f"(gateway order {gateway_order.gateway_order_id})"
        )

        card = self._issue_card(order) if capture_immediately else None
        return LifecycleResult(
            order=order,
            gateway_order_id=gateway_order.gateway_order_id,
            captured_amount=value if capture_immediately else None,
            shakti_card=card,
        )

    def attach_payment(self, order_ref: str, payment_id: str) -> PaymentInfo:
        """Record the gateway payment id once the customer completes checkout."""
        if not payment_id:
            raise InvalidOrderDetails("payment_id is required")
        order = self.get_order(order_ref)
        info = self.get_payment_info(order)
        if not info:
            raise PaymentRecordMissing(f"Order {order.order_id} has no authorization to attach a payment to")
        info.payment_id = payment_id
        self._save_payment_info(info)
        log.info(f"Payment {payment_id} attached to order {order.order_id}")
        return info

    async def capture_on_dispatch(
        self,
        order_ref: str,
        courier_company_name: Optional[str] = None,
        tracking_number: Optional[str] = None,
        est_delivery: Optional[str] = None,
    ) -> LifecycleResult:
        """
        Authorized -> Paid: capture the full held amount (or charge the
        mandate for it) when the parcel ships.

        The status check happens before the gateway call, so a second
        capture fails with AlreadyCaptured instead of charging twice.
        """
        order = self.get_order(order_ref)
        if order.payment_status in CAPTURED_STATUSES:
            raise AlreadyCaptured(f"Payment for order {order.order_id} has already been captured")
        ensure_transition(order.payment_status, PaymentStatus.PAID)

        info = self._require_payment_id(order)
        value = order.amount
        capture = await self._collect(info, value, reason="Order dispatched")

        info.captured_amount = str(value)
        info.capture_id = capture.capture_id
        self._save_payment_info(info)

        order.payment_status = PaymentStatus.PAID
        order.delivery_status = DeliveryStatus.DISPATCHED
        if courier_company_name:
            order.courier_company_name = courier_company_name
        if tracking_number:
            order.tracking_number = tracking_number
        if est_delivery:
            order.est_delivery = est_delivery
        self._save_order(order)
        log.info(f"Captured {format_inr(value)} for order {order.order_id} on dispatch")

        notification = await self._notify(NotificationType.DISPATCH, order)
        card = self._issue_card(order)
        return LifecycleResult(
            order=order,
            captured_amount=value,
            capture_id=capture.capture_id,
            notification=notification,
            shakti_card=card,
        )

    async def update_delivery_status(
        self,
        order_ref: str,
        status: DeliveryStatus,
        courier_company_name: Optional[str] = None,
        tracking_number: Optional[str] = None,
        est_delivery: Optional[str] = None,
        ready_for_dispatch_date: Optional[str] = None,
    ) -> LifecycleResult:
        """Fulfillment update; dispatching an Authorized order captures it."""
        if not isinstance(status, DeliveryStatus):
            raise TypeError(f"status must be a DeliveryStatus, got {type(status).__name__}")

        order = self.get_order(order_ref)
        if status == DeliveryStatus.DISPATCHED and order.payment_status == PaymentStatus.AUTHORIZED:
            return await self.capture_on_dispatch(
                order.id,
                courier_company_name=courier_company_name,
                tracking_number=tracking_number,
                est_delivery=est_delivery,
            )

        order.delivery_status = status
        if courier_company_name:
            order.courier_company_name = courier_company_name
        if tracking_number:
            order.tracking_number = tracking_number
        if est_delivery:
            order.est_delivery = est_delivery
        if ready_for_dispatch_date:
            order.ready_for_dispatch_date = ready_for_dispatch_date
        self._save_order(order)
        log.info(f"Order {order.order_id} delivery status -> {status.value}")
        return LifecycleResult(order=order)

    async def cancel_before_dispatch(self, order_ref: str, cancellation_id: str) -> LifecycleResult:
        """
        Authorized -> Voided on the customer's request.

        The token is compared exactly (case-sensitive) before anything else;
        a mismatch never reaches the gateway. The hold is released by
        refunding the full authorized amount.
        """
        order = self.get_order(order_ref)
        if not order.cancellation_id or cancellation_id != order.cancellation_id:
            log.warning(f"Rejected cancellation for order {order.order_id}: token mismatch")
            raise InvalidCancellationToken("Invalid Order ID or Cancellation ID.")

        if order.payment_status in CAPTURED_STATUSES:
            raise InvalidTransition(
                f"Order {order.order_id} has already been dispatched and charged; "
                f"it can only be cancelled with a fee"
            )
        ensure_transition(order.payment_status, PaymentStatus.VOIDED)

        value = order.amount
        info = self.get_payment_info(order)
        refund_id = None
        refunded = None
        if info and info.payment_id and not info.mandate:
            refund = await self.gateway.refund(
                info.payment_id,
                to_minor_units(value),
                notes={"reason": f"Customer cancellation with ID: {cancellation_id}"},
            )
            refund_id = refund.refund_id
            refunded = value
            info.refund_ids.append(refund.refund_id)
            self._save_payment_info(info)
        elif info and info.mandate:
            log.info(f"Order {order.order_id} is a mandate order with nothing held, voiding locally")
        else:
            log.info(f"Order {order.order_id} has no completed authorization, voiding locally")

        order.payment_status = PaymentStatus.VOIDED
        order.cancellation_status = "Processed"
        if refunded is not None:
            order.refund_amount = str(refunded)
        self._save_order(order)
        log.info(f"Order {order.order_id} voided")

        notification = await self._notify(NotificationType.CANCELLATION, order)
        return LifecycleResult(
            order=order,
            refunded_amount=refunded,
            refund_id=refund_id,
            notification=notification,
        )

    async def cancel_with_fee(
        self,
        order_ref: str,
        fee_amount: Any,
        total_amount: Any = None,
        reason: Optional[str] = None,
    ) -> LifecycleResult:
        """
        Cancel with a service fee: keep `fee`, refund `total - fee`.

        Step (a) secures the fee: on an Authorized order the whole hold is
        captured (a mandate is charged for the order value), since Razorpay releases whatever a partial capture leaves
        behind and will not refund more than was captured; on a Paid order the
        full amount is already captured. Either way the fee is retained and
        step (b) refunds the remainder from the captured payment. When (a)
        went through and (b) did not, the order stays in Fee Charged and
        PartialFailure is raised; calling again on a Fee Charged order only
        retries the refund.
        """
        order = self.get_order(order_ref)
        total = order.price if total_amount is None else total_amount
        fee_minor, refund_minor = split_fee(total, fee_amount)
        fee_value = from_minor_units(fee_minor)
        refund_value = from_minor_units(refund_minor)

        status = order.payment_status
        if status not in (PaymentStatus.AUTHORIZED, PaymentStatus.PAID, PaymentStatus.FEE_CHARGED):
            raise InvalidTransition(
                f"Cannot charge a cancellation fee on an order in '{status.value}'"
            )
        if fee_value + refund_value > order.amount:
            raise InvalidAmount(
                f"Cancellation total {format_inr(fee_value + refund_value)} exceeds "
                f"order value {format_inr(order.amount)}"
            )
        if status == PaymentStatus.FEE_CHARGED and order.cancellation_fee is not None:
            if parse_amount(order.cancellation_fee, "cancellationFee") != fee_value:
                raise InvalidAmount(
                    f"A fee of ₹{order.cancellation_fee} was already charged for order {order.order_id}"
                )

        info = self._require_payment_id(order)
        capture_id = info.capture_id

        # Step (a)
        if status == PaymentStatus.AUTHORIZED:
            capture = await self._collect(info, order.amount, reason=reason or "Cancelled with fee")
            capture_id = capture.capture_id
            info.captured_amount = str(order.amount)
            info.capture_id = capture_id
            self._save_payment_info(info)

        if status != PaymentStatus.FEE_CHARGED:
            order.payment_status = PaymentStatus.FEE_CHARGED
            order.cancellation_fee = str(fee_value)
            order.cancellation_reason = reason
            order.refund_status = "Pending"
            self._save_order(order)
            log.info(f"Cancellation fee {format_inr(fee_value)} secured for order {order.order_id}")

        # Step (b)
        try:
            refund = await self.gateway.refund(
                info.refund_target,
                refund_minor,
                notes={"reason": reason or "Partial refund after cancellation fee."},
            )
        except Exception as e:
            log.error(
                f"PARTIAL FAILURE on order {order.order_id}: fee {format_inr(fee_value)} charged "
                f"but refund of {format_inr(refund_value)} failed: {str(e)}"
            )
            order.refund_status = "Failed"
            self._save_order(order)
            raise PartialFailure(
                f"Cancellation fee of {format_inr(fee_value)} was charged but the refund of "
                f"{format_inr(refund_value)} did not complete: {getattr(e, 'message', str(e))}",
                order_id=order.order_id,
                completed_step="capture_fee",
                failed_step="refund_remainder",
                captured_amount=str(fee_value),
                pending_refund_amount=str(refund_value),
                capture_id=capture_id,
                cause=e,
            ) from e

        info.refund_ids.append(refund.refund_id)
        self._save_payment_info(info)

        order.payment_status = PaymentStatus.REFUNDED
        order.refund_amount = str(refund_value)
        order.refund_status = "Processed"
        order.cancellation_status = "Processed"
        self._save_order(order)
        log.info(
            f"Order {order.order_id} cancelled with fee {format_inr(fee_value)}, "
            f"refunded {format_inr(refund_value)}"
        )

        notification = await self._notify(NotificationType.REFUND, order)
        return LifecycleResult(
            order=order,
            captured_amount=fee_value,
            refunded_amount=refund_value,
            capture_id=capture_id,
            refund_id=refund.refund_id,
            notification=notification,
        )

    async def refund_payment(
        self,
        order_ref: str,
        amount: Any = None,
        reason: Optional[str] = None,
    ) -> LifecycleResult:
        """Paid/Fee Charged -> Refunded, for the full order value or part of it."""
        order = self.get_order(order_ref)
        ensure_transition(order.payment_status, PaymentStatus.REFUNDED)

        value = order.amount if amount is None else parse_amount(amount, "amount")
        if value > order.amount:
            raise InvalidAmount(
                f"Refund {format_inr(value)} exceeds order value {format_inr(order.amount)}"
            )

        info = self._require_payment_id(order)
        refund = await self.gateway.refund(
            info.refund_target,
            to_minor_units(value),
            notes={"reason": reason or "Refund processed from SnazzPay dashboard."},
        )
        info.refund_ids.append(refund.refund_id)
        self._save_payment_info(info)

        order.payment_status = PaymentStatus.REFUNDED
        order.refund_amount = str(value)
        order.refund_reason = reason
        order.refund_status = "Processed"
        self._save_order(order)
        log.info(f"Refunded {format_inr(value)} for order {order.order_id}")

        notification = await self._notify(NotificationType.REFUND, order)
        return LifecycleResult(
            order=order,
            refunded_amount=value,
            refund_id=refund.refund_id,
            notification=notification,
        )
