"""
Health check and status endpoints
"""
from fastapi import APIRouter, Depends
from datetime import datetime, timezone

from snazzpay.api.deps import get_gateway, get_notifier
from snazzpay.config import get_settings
from snazzpay.connectors import PaymentGateway
from snazzpay.services.notification_service import NotificationService
from snazzpay import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status(
    gateway: PaymentGateway = Depends(get_gateway),
    notifier: NotificationService = Depends(get_notifier),
):
    """Get system status"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "gateway": {
            "name": gateway.name,
            "configured": bool(settings.razorpay_key_id and settings.razorpay_key_secret),
        },
        "notifications": notifier.get_stats(),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
