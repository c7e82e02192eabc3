"""
Base Payment Gateway

All payment connectors implement this interface. Amounts are always integer
minor units (paise); the lifecycle does the rounding before calling in.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class GatewayOrder:
    """Result of creating an order on the gateway"""
    gateway_order_id: str
    amount: int
    currency: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CaptureResult:
    capture_id: str
    amount: int
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RefundResult:
    refund_id: str
    amount: int
    raw: Dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """
    Authorize / capture / refund, plus mandate (token) charges.

    Implementations raise ConfigurationError when credentials are missing or
    the gateway can't be reached, and GatewayRejected (with the gateway's own
    description) when it declines a request. They never retry.
    """

    def __init__(self, name: str):
        self.name = name
        self.call_count = 0
        self.error_count = 0

    @abstractmethod
    async def create_order(
        self,
        amount: int,
        currency: str,
        capture_immediately: bool,
        metadata: Optional[Dict[str, Any]] = None
    ) -> GatewayOrder:
        """Create an order; capture_immediately=False places a hold only"""
        pass

    @abstractmethod
    async def capture(self, payment_id: str, amount: int, currency: str) -> CaptureResult:
        """Capture a previously authorized payment (partially or fully)"""
        pass

    @abstractmethod
    async def refund(
        self,
        payment_id: str,
        amount: int,
        notes: Optional[Dict[str, Any]] = None
    ) -> RefundResult:
        """Refund (or release) part or all of a payment"""
        pass

    @abstractmethod
    async def create_mandate_order(
        self,
        max_amount: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> GatewayOrder:
        """Create a token order the customer approves once; later charges go up to max_amount"""
        pass

    @abstractmethod
    async def charge_mandate(
        self,
        token_payment_id: str,
        amount: int,
        currency: str,
        notes: Optional[Dict[str, Any]] = None
    ) -> CaptureResult:
        """Charge an approved mandate; capture_id is the new payment to refund against"""
        pass

    @abstractmethod
    async def validate_connection(self) -> bool:
        """Check credentials against the gateway"""
        pass

    def get_stats(self) -> Dict[str, Any]:
        return {
            "gateway": self.name,
            "call_count": self.call_count,
            "error_count": self.error_count,
        }
