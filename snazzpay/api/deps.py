"""
Shared FastAPI dependencies
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from snazzpay.connectors import PaymentGateway, RazorpayConnector
from snazzpay.models.base import get_db
from snazzpay.services.document_store import DocumentStore
from snazzpay.services.loyalty_service import LoyaltyService
from snazzpay.services.notification_service import NotificationService
from snazzpay.services.order_lifecycle_service import OrderLifecycleService
from snazzpay.services.reporting_service import ReportingService


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_gateway() -> PaymentGateway:
    return RazorpayConnector()


def get_notifier() -> NotificationService:
    return NotificationService()


def get_lifecycle_service(
    store: DocumentStore = Depends(get_store),
    gateway: PaymentGateway = Depends(get_gateway),
    notifier: NotificationService = Depends(get_notifier),
) -> OrderLifecycleService:
    return OrderLifecycleService(store, gateway, notifier, LoyaltyService(store))


def get_reporting_service(store: DocumentStore = Depends(get_store)) -> ReportingService:
    return ReportingService(store)


def get_loyalty_service(store: DocumentStore = Depends(get_store)) -> LoyaltyService:
    return LoyaltyService(store)
