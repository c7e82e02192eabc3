"""
Error taxonomy for the order lifecycle.

Every error carries an HTTP status and a short machine code so the API layer
can relay it without knowing each type. None of these are retried
automatically; a retry is always a new operator action.
"""
from typing import Any, Dict, Optional


class SnazzPayError(Exception):
    """Base class for all lifecycle errors"""

    status_code = 400
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


# Operator-facing / gateway errors

class ConfigurationError(SnazzPayError):
    """Missing or invalid gateway credentials, or the gateway is unreachable."""
    status_code = 500
    code = "configuration_error"


class GatewayRejected(SnazzPayError):
    """The payment gateway declined the request. Message is the gateway's own."""
    status_code = 502
    code = "gateway_rejected"

    def __init__(self, description: str, gateway_code: Optional[str] = None):
        super().__init__(description)
        self.description = description
        self.gateway_code = gateway_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.gateway_code:
            data["gateway_code"] = self.gateway_code
        return data


class PartialFailure(SnazzPayError):
    """
    A two-step money movement where step one went through and step two did not.

    Raised by cancel-with-fee when the fee was captured but the refund of the
    remainder failed. The order is left in `Fee Charged` so an operator can
    reconcile by hand (or re-run the cancellation, which then only retries
    the refund).
    """
    status_code = 502
    code = "partial_failure"

    def __init__(
        self,
        message: str,
        order_id: str,
        completed_step: str,
        failed_step: str,
        captured_amount: str,
        pending_refund_amount: str,
        capture_id: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.order_id = order_id
        self.completed_step = completed_step
        self.failed_step = failed_step
        self.captured_amount = captured_amount
        self.pending_refund_amount = pending_refund_amount
        self.capture_id = capture_id
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["details"] = {
            "order_id": self.order_id,
            "completed_step": self.completed_step,
            "failed_step": self.failed_step,
            "captured_amount": self.captured_amount,
            "pending_refund_amount": self.pending_refund_amount,
            "capture_id": self.capture_id,
            "cause": str(self.cause) if self.cause else None,
        }
        return data


# Caller-input errors

class InvalidCancellationToken(SnazzPayError):
    status_code = 403
    code = "invalid_cancellation_token"


class FeeExceedsTotal(SnazzPayError):
    status_code = 400
    code = "fee_exceeds_total"


class AlreadyCaptured(SnazzPayError):
    status_code = 409
    code = "already_captured"


class AlreadyConverted(SnazzPayError):
    status_code = 409
    code = "already_converted"


class InvalidAmount(SnazzPayError):
    status_code = 400
    code = "invalid_amount"


class InvalidOrderDetails(SnazzPayError):
    status_code = 400
    code = "invalid_order_details"


class InvalidTransition(SnazzPayError):
    status_code = 409
    code = "invalid_transition"


class OrderNotFound(SnazzPayError):
    status_code = 404
    code = "order_not_found"


class LeadNotFound(SnazzPayError):
    status_code = 404
    code = "lead_not_found"


class PaymentRecordMissing(SnazzPayError):
    status_code = 404
    code = "payment_record_missing"
