"""
Reporting Service

Dashboard read-models derived from the order and lead collections:
commission totals, order stats, partner cancellations and invoices.

The compute_* functions are pure over a snapshot of records; ReportingService
loads the snapshot from the store and caches the results briefly.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from snazzpay.config import get_settings
from snazzpay.exceptions import InvalidAmount, OrderNotFound
from snazzpay.models.order import PaymentStatus
from snazzpay.services.document_store import DocumentStore
from snazzpay.utils.cache import get_cached, set_cached, _MISS
from snazzpay.utils.logger import log
from snazzpay.utils.money import parse_amount, round_minor

settings = get_settings()

ORDERS = "orders"
LEADS = "leads"
COMMISSION_SETTINGS = "commission_settings"

COMMISSIONABLE = {PaymentStatus.PAID.value, PaymentStatus.FEE_CHARGED.value}
SECURED = {PaymentStatus.AUTHORIZED.value}
REFUNDED_OR_VOIDED = {PaymentStatus.REFUNDED.value, PaymentStatus.VOIDED.value}
PARTNER_CANCELLED = {
    PaymentStatus.REFUNDED.value,
    PaymentStatus.VOIDED.value,
    PaymentStatus.CANCELLED.value,
}

SELLER_ADDRESS = (
    "114B,1st Floor, Robert Compound, Kalina Kolovery Village, "
    "Santacruz East, Mumbai 400098"
)


def _price(record: Dict[str, Any]) -> Optional[Decimal]:
    """Order price, or None (logged) when the stored value is unusable."""
    try:
        return parse_amount(record.get("price"), "price")
    except InvalidAmount as e:
        log.warning(f"Skipping order {record.get('orderId') or record.get('id')} in report: {e.message}")
        return None


def _sum_prices(records: Iterable[Dict[str, Any]]) -> Decimal:
    total = Decimal("0.00")
    for record in records:
        price = _price(record)
        if price is not None:
            total += price
    return total


def _status(record: Dict[str, Any]) -> Optional[str]:
    return record.get("paymentStatus")


def compute_commissions(
    orders: List[Dict[str, Any]],
    default_rate: Any,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Commission per seller: price x rate / 100, rounded half-up to paise.

    Only Paid / Fee Charged orders with a sellerId count. The rate is the
    seller's override if present, then the vendor's, then the default.
    """
    overrides = overrides or {}
    by_seller: Dict[str, Dict[str, Any]] = {}

    for record in orders:
        seller_id = record.get("sellerId")
        if not seller_id or _status(record) not in COMMISSIONABLE:
            continue
        price = _price(record)
        if price is None:
            continue

        rate = overrides.get(seller_id)
        if rate is None and record.get("vendorId"):
            rate = overrides.get(record["vendorId"])
        if rate is None:
            rate = default_rate
        rate = Decimal(str(rate))

        commission = round_minor(price * rate / 100)

        entry = by_seller.setdefault(seller_id, {
            "seller_id": seller_id,
            "seller_name": record.get("sellerName"),
            "orders": 0,
            "sales": Decimal("0.00"),
            "commission": Decimal("0.00"),
            "rate": rate,
        })
        entry["orders"] += 1
        entry["sales"] += price
        entry["commission"] += commission

    sellers = sorted(by_seller.values(), key=lambda e: e["commission"], reverse=True)
    total = sum((e["commission"] for e in sellers), Decimal("0.00"))
    total_sales = sum((e["sales"] for e in sellers), Decimal("0.00"))

    return {
        "total_commission": total,
        "total_sales": total_sales,
        "sellers": sellers,
    }


def compute_order_stats(orders: List[Dict[str, Any]], leads: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Dashboard totals over a snapshot of orders and leads."""
    active_leads = [l for l in leads if _status(l) != PaymentStatus.CONVERTED.value]
    secured = [o for o in orders if _status(o) in SECURED]
    charged = [o for o in orders if _status(o) in COMMISSIONABLE]
    refunded = [o for o in orders if _status(o) in REFUNDED_OR_VOIDED]

    status_counts: Dict[str, int] = {}
    for record in orders:
        status = _status(record) or "Unknown"
        status_counts[status] = status_counts.get(status, 0) + 1

    return {
        "active_leads": len(active_leads),
        "total_orders": len(orders),
        "total_secured_value": _sum_prices(secured),
        "secured_orders": len(secured),
        "successful_charges": _sum_prices(charged),
        "charged_orders": len(charged),
        "refunded_cancelled_value": _sum_prices(refunded),
        "refunded_cancelled_orders": len(refunded),
        "unread_orders": sum(1 for o in orders if not o.get("isRead")),
        "status_counts": status_counts,
    }


def partner_cancellations(orders: List[Dict[str, Any]], seller_id: str) -> Dict[str, Any]:
    """A seller's cancelled, voided and refunded orders."""
    cancelled = [
        o for o in orders
        if o.get("sellerId") == seller_id and _status(o) in PARTNER_CANCELLED
    ]

    refunded_value = Decimal("0.00")
    for record in cancelled:
        amount = record.get("refundAmount")
        if amount is None and _status(record) == PaymentStatus.VOIDED.value:
            amount = record.get("price")
        if amount is None:
            continue
        try:
            refunded_value += parse_amount(amount, "refundAmount")
        except InvalidAmount:
            log.warning(f"Order {record.get('orderId')} has unusable refundAmount {amount!r}")

    return {
        "seller_id": seller_id,
        "orders": cancelled,
        "count": len(cancelled),
        "refunded_value": refunded_value,
    }


def build_invoice(order: Dict[str, Any]) -> Dict[str, Any]:
    """
    Invoice for one order.

    `price` is the order total (checkout stores the cart total there), so the
    subtotal is the price itself and the unit price is derived from it.
    """
    total = parse_amount(order.get("price"), "price")
    quantity = int(order.get("quantity") or 1)
    unit_price = round_minor(total / quantity)

    return {
        "invoice_number": order.get("orderId"),
        "date": order.get("date"),
        "payment_status": order.get("paymentStatus"),
        "seller": {"name": "Snazzify.co.in", "address": SELLER_ADDRESS},
        "bill_to": {
            "name": order.get("customerName"),
            "address": order.get("customerAddress"),
            "pincode": order.get("pincode"),
            "email": order.get("customerEmail"),
            "phone": order.get("contactNo"),
        },
        "items": [{
            "description": order.get("productOrdered"),
            "quantity": quantity,
            "unit_price": unit_price,
            "total": total,
        }],
        "subtotal": total,
        "total": total,
        "note": "Price is inclusive of Shipping and Tax",
    }


class ReportingService:
    """Loads snapshots from the store and serves cached read-models"""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.cache_seconds = settings.report_cache_seconds

    def get_commission_overrides(self) -> Dict[str, Any]:
        overrides = {}
        for record in self.store.get_collection(COMMISSION_SETTINGS):
            rate = record.get("commissionRate")
            if rate is not None:
                overrides[record["id"]] = rate
        return overrides

    def set_commission_rate(self, principal_id: str, rate: Any) -> Dict[str, Any]:
        value = Decimal(str(rate))
        if not value.is_finite() or value < 0 or value > 100:
            raise InvalidAmount(f"commissionRate must be between 0 and 100, got {rate!r}")
        self.store.save_document(COMMISSION_SETTINGS, {"commissionRate": float(value)}, principal_id)
        log.info(f"Commission rate for {principal_id} set to {value}%")
        return {"id": principal_id, "commissionRate": float(value)}

    def get_summary(self) -> Dict[str, Any]:
        cached = get_cached("report_summary")
        if cached is not _MISS:
            return cached

        stats = compute_order_stats(
            self.store.get_collection(ORDERS),
            self.store.get_collection(LEADS),
        )
        set_cached("report_summary", stats, self.cache_seconds)
        return stats

    def get_commissions(self, seller_id: Optional[str] = None) -> Dict[str, Any]:
        key = f"report_commissions|{seller_id or 'all'}"
        cached = get_cached(key)
        if cached is not _MISS:
            return cached

        orders = self.store.get_collection(ORDERS)
        if seller_id:
            orders = [o for o in orders if o.get("sellerId") == seller_id]
        result = compute_commissions(
            orders,
            settings.default_commission_rate,
            self.get_commission_overrides(),
        )
        set_cached(key, result, self.cache_seconds)
        return result

    def get_partner_cancellations(self, seller_id: str) -> Dict[str, Any]:
        key = f"report_cancellations|{seller_id}"
        cached = get_cached(key)
        if cached is not _MISS:
            return cached

        result = partner_cancellations(self.store.get_collection(ORDERS), seller_id)
        set_cached(key, result, self.cache_seconds)
        return result

    def get_invoice(self, order_ref: str) -> Dict[str, Any]:
        record = self.store.get_document(ORDERS, order_ref)
        if not record:
            matches = self.store.find_by_field(ORDERS, "orderId", order_ref)
            record = matches[0] if matches else None
        if not record:
            raise OrderNotFound(f"Order {order_ref} not found")
        return build_invoice(record)
