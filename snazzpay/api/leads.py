"""
Leads API

Pre-order intent records: capture, verify, push to a seller, convert to an
order or cancel.
"""
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from snazzpay.api.deps import get_lifecycle_service
from snazzpay.models.order import OrderSource
from snazzpay.services.order_lifecycle_service import OrderLifecycleService

router = APIRouter(prefix="/leads", tags=["leads"])


class LeadCreate(BaseModel):
    customer_name: str
    contact_no: str
    product_ordered: str
    price: Decimal
    quantity: int = Field(1, ge=1)
    customer_email: Optional[str] = None
    customer_address: str = ""
    pincode: str = ""
    seller_id: Optional[str] = None
    source: OrderSource = OrderSource.SHOPIFY
    order_id: Optional[str] = None


class PushToSeller(BaseModel):
    seller_id: str
    seller_name: Optional[str] = None


class LeadCancel(BaseModel):
    reason: Optional[str] = None


@router.get("")
async def list_leads(
    include_converted: bool = Query(False, description="Include leads already converted to orders"),
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    leads = service.list_leads(include_converted=include_converted)
    return {
        "success": True,
        "data": {
            "leads": [lead.to_record() for lead in leads],
            "count": len(leads),
        }
    }


@router.post("")
async def create_lead(
    payload: LeadCreate,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    lead = service.create_lead(**payload.model_dump())
    return {"success": True, "data": lead.to_record()}


@router.get("/{lead_id}")
async def get_lead(
    lead_id: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    lead = service.get_lead(lead_id)
    return {"success": True, "data": lead.to_record()}


@router.post("/{lead_id}/verify")
async def verify_intent(
    lead_id: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    lead = service.verify_intent(lead_id)
    return {"success": True, "data": lead.to_record()}


@router.post("/{lead_id}/push")
async def push_to_seller(
    lead_id: str,
    payload: PushToSeller,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Hand a collaborator-sourced lead to a seller's queue."""
    lead = service.push_to_seller(lead_id, payload.seller_id, payload.seller_name)
    return {"success": True, "data": lead.to_record()}


@router.post("/{lead_id}/convert")
async def convert_lead(
    lead_id: str,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    """Turn the lead into a Pending order (one time only)."""
    order = service.convert_lead(lead_id)
    return {
        "success": True,
        "data": order.to_record(),
        "message": f"Lead {lead_id} converted to order {order.order_id}"
    }


@router.post("/{lead_id}/cancel")
async def cancel_lead(
    lead_id: str,
    payload: Optional[LeadCancel] = None,
    service: OrderLifecycleService = Depends(get_lifecycle_service),
):
    lead = service.cancel_lead(lead_id, reason=payload.reason if payload else None)
    return {"success": True, "data": lead.to_record()}
