"""
Orders API

Secure-COD lifecycle endpoints: authorize, capture on dispatch, cancel
(with or without a fee), refund, plus fulfillment and read-receipt updates.
Lifecycle errors are turned into JSON by the app-level SnazzPayError handler.
"""
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from snazzpay.api.deps import get_lifecycle_service, get_notifier, get_reporting_service
from snazzpay.models.order import DeliveryStatus, OrderSource, PaymentStatus
from snazzpay.services.notification_service import NotificationService, NotificationType, whatsapp_link, whatsapp_message
from snazzpay.services.order_lifecycle_service import OrderLifecycleService
from snazzpay.services.reporting_service import ReportingService
from snazzpay.utils.helpers import serialize_money

router = APIRouter(prefix="/orders", tags=["orders"])


class OrderCreate(BaseModel):
    customer_name: str
    contact_no: str
    product_ordered: str
    price: Decimal
    quantity: int = Field(1, ge=1)
    customer_email: Optional[str] = None
    customer_address: str = ""
    pincode: str = ""
    seller_id: Optional[str] = None
    seller_name: Optional[str] = None
    source: OrderSource = OrderSource.SELLER
    order_id: Optional[str] = None


class AuthorizationCreate(BaseModel):
    amount: Optional[Decimal] = None
    customer_name: Optional[str] = None
    contact_no: Optional[str] = None
    product_ordered: Optional[str] = None
    customer_email: Optional[str] = None
    customer_address: Optional[str] = None
    pincode: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=1)
    seller_id: Optional[str] = None
    source_id: Optional[str] = None  # existing Pending order or Lead
    capture_immediately: bool = False
    mandate: bool = False  # ₹1 token now, charge the full amount on dispatch


class PaymentAttach(BaseModel):
    payment_id: str


class DispatchDetails(BaseModel):
    courier_company_name: Optional[str] = None
    tracking_number: Optional[str] = None
    est_delivery: Optional[str] = None


class DeliveryUpdate(DispatchDetails):
    status: DeliveryStatus
    ready_for_dispatch_date: Optional[str] = None


class CancelRequest(BaseModel):
    cancellation_id: str


class CancelWithFeeRequest(BaseModel):
    fee_amount: Decimal
    total_amount: Optional[Decimal] = None
    reason: Optional[str] = None


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = None
    reason: Optional[str] = None


class NotifyRequest(BaseModel):
    template: NotificationType
    recipient: Optional[str] = None


@router.get("")
async def list_orders(
    status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    seller_id: Optional[str] = Query(None, description="Filter by seller"),
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """List orders, newest last."""
    orders = service.list_orders()
    if status:
        orders = [o for o in orders if o.payment_status == status]
    if seller_id:
        orders = [o for o in orders if o.seller_id == seller_id]

    return {
        "success": True,
        "data": {
            "orders": [o.to_record() for o in orders],
            "count": len(orders),
        }
    }


@router.post("")
async def create_order(
    payload: OrderCreate,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Seller-created order, Pending until an admin authorizes it."""
    order = service.create_order(**payload.model_dump())
    return {"success": True, "data": order.to_record()}


@router.post("/authorize")
async def create_authorization(
    payload: AuthorizationCreate,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """
    Place a hold for the order amount (or charge it right away for prepaid).

    Returns the gateway order id the checkout widget needs.
    """
    result = await service.create_authorization(**payload.model_dump())
    return {"success": True, "data": serialize_money(result.to_dict())}


@router.get("/{order_ref}")
async def get_order(
    order_ref: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    order = service.get_order(order_ref)
    return {"success": True, "data": order.to_record()}


@router.post("/{order_ref}/payment")
async def attach_payment(
    order_ref: str,
    payload: PaymentAttach,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Record the gateway payment id after checkout completes."""
    info = service.attach_payment(order_ref, payload.payment_id)
    return {"success": True, "data": info.to_record()}


@router.post("/{order_ref}/capture")
async def capture_on_dispatch(
    order_ref: str,
    payload: Optional[DispatchDetails] = None,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Capture the held amount as the order ships."""
    details = payload.model_dump() if payload else {}
    result = await service.capture_on_dispatch(order_ref, **details)
    return {
        "success": True,
        "data": serialize_money(result.to_dict()),
        "message": "Payment captured successfully!"
    }


@router.patch("/{order_ref}/delivery")
async def update_delivery_status(
    order_ref: str,
    payload: DeliveryUpdate,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Update fulfillment status; 'dispatched' on an Authorized order captures it."""
    result = await service.update_delivery_status(order_ref, **payload.model_dump())
    return {"success": True, "data": serialize_money(result.to_dict())}


@router.post("/{order_ref}/cancel")
async def cancel_before_dispatch(
    order_ref: str,
    payload: CancelRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Customer cancellation with the order's cancellation id."""
    result = await service.cancel_before_dispatch(order_ref, payload.cancellation_id)
    return {
        "success": True,
        "data": serialize_money(result.to_dict()),
        "message": "Order cancelled and payment authorization voided successfully."
    }


@router.post("/{order_ref}/cancel-with-fee")
async def cancel_with_fee(
    order_ref: str,
    payload: CancelWithFeeRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Keep a cancellation fee and refund the rest."""
    result = await service.cancel_with_fee(
        order_ref,
        payload.fee_amount,
        total_amount=payload.total_amount,
        reason=payload.reason,
    )
    return {
        "success": True,
        "data": serialize_money(result.to_dict()),
        "message": (
            f"Successfully charged ₹{result.captured_amount} and "
            f"refunded ₹{result.refunded_amount}."
        )
    }


@router.post("/{order_ref}/refund")
async def refund_payment(
    order_ref: str,
    payload: RefundRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    result = await service.refund_payment(order_ref, amount=payload.amount, reason=payload.reason)
    return {"success": True, "data": serialize_money(result.to_dict())}


@router.post("/{order_ref}/read")
async def mark_read(
    order_ref: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    order = service.mark_read(order_ref)
    return {"success": True, "data": order.to_record()}


@router.post("/{order_ref}/cancellation-id")
async def issue_cancellation_id(
    order_ref: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Return the order's cancellation id, generating one for older orders."""
    cancellation_id = service.issue_cancellation_id(order_ref)
    return {"success": True, "data": {"cancellation_id": cancellation_id}}


@router.get("/{order_ref}/invoice")
async def get_invoice(
    order_ref: str,
    reporting: ReportingService = Depends(get_reporting_service),
):
    invoice = reporting.get_invoice(order_ref)
    return {"success": True, "data": serialize_money(invoice)}


@router.get("/{order_ref}/whatsapp")
async def get_whatsapp_link(
    order_ref: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Status-appropriate WhatsApp message and click-to-chat link."""
    order = service.get_order(order_ref)
    message = whatsapp_message(order.to_record())
    return {
        "success": True,
        "data": {
            "message": message,
            "link": whatsapp_link(order.contact_no, message),
        }
    }


@router.post("/{order_ref}/notify")
async def resend_notification(
    order_ref: str,
    payload: NotifyRequest,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
    notifier: NotificationService = Depends(get_notifier),
):
    """Manually (re)send a customer notification. Single attempt."""
    if payload.template == NotificationType.INTERNAL_ALERT:
        return {"success": False, "error": "Internal alerts are sent from /reports/alerts"}

    order = service.get_order(order_ref)
    recipient = payload.recipient or order.customer_email or order.contact_no
    result = await notifier.send(payload.template, recipient, order.to_record())
    return {"success": result.success, "data": result.to_dict()}
