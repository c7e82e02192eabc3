"""
Shakti card lookup
"""
from fastapi import APIRouter, Depends

from snazzpay.api.deps import get_loyalty_service
from snazzpay.services.loyalty_service import LoyaltyService

router = APIRouter(prefix="/shakti-cards", tags=["shakti-cards"])


@router.get("/{phone}")
async def get_card(
    phone: str,
    loyalty: LoyaltyService = Depends(get_loyalty_service),
):
    """Find a customer's card by phone number, in any common format."""
    card = loyalty.get_card_by_phone(phone)
    if not card:
        return {"success": False, "error": "No Shakti Card found for this phone number."}
    return {"success": True, "data": card.to_record()}
