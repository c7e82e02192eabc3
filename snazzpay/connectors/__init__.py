"""Payment gateway connectors"""

from snazzpay.connectors.base import (
    PaymentGateway,
    GatewayOrder,
    CaptureResult,
    RefundResult,
)
from snazzpay.connectors.razorpay_connector import RazorpayConnector
