"""
Reports API

Dashboard read-models (summary stats, commissions, partner cancellations),
commission rate settings and internal alerts.
"""
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from snazzpay.api.deps import get_notifier, get_reporting_service
from snazzpay.config import get_settings
from snazzpay.services.notification_service import NotificationService, NotificationType
from snazzpay.services.reporting_service import ReportingService
from snazzpay.utils.helpers import serialize_money

settings = get_settings()

router = APIRouter(prefix="/reports", tags=["reports"])


class CommissionRateUpdate(BaseModel):
    commission_rate: Decimal


class InternalAlert(BaseModel):
    subject: str
    body: str
    recipient: Optional[str] = None


@router.get("/summary")
async def get_summary(reporting: ReportingService = Depends(get_reporting_service)):
    """Active leads, secured / charged / refunded value and the unread count."""
    return {"success": True, "data": serialize_money(reporting.get_summary())}


@router.get("/unread-count")
async def get_unread_count(reporting: ReportingService = Depends(get_reporting_service)):
    """Polled by the dashboard notification badge."""
    return {"success": True, "data": {"unread_orders": reporting.get_summary()["unread_orders"]}}


@router.get("/commissions")
async def get_commissions(
    seller_id: Optional[str] = Query(None, description="Limit to one seller"),
    reporting: ReportingService = Depends(get_reporting_service),
):
    return {"success": True, "data": serialize_money(reporting.get_commissions(seller_id))}


@router.put("/commissions/{principal_id}")
async def set_commission_rate(
    principal_id: str,
    payload: CommissionRateUpdate,
    reporting: ReportingService = Depends(get_reporting_service),
):
    """Override the default commission rate for a seller or vendor."""
    return {"success": True, "data": reporting.set_commission_rate(principal_id, payload.commission_rate)}


@router.get("/cancellations/{seller_id}")
async def get_partner_cancellations(
    seller_id: str,
    reporting: ReportingService = Depends(get_reporting_service),
):
    return {"success": True, "data": serialize_money(reporting.get_partner_cancellations(seller_id))}


@router.post("/alerts")
async def send_internal_alert(
    payload: InternalAlert,
    notifier: NotificationService = Depends(get_notifier),
):
    recipient = payload.recipient or settings.internal_alert_email
    result = await notifier.send(
        NotificationType.INTERNAL_ALERT,
        recipient,
        {"subject": payload.subject, "body": payload.body},
    )
    return {"success": result.success, "data": result.to_dict()}
