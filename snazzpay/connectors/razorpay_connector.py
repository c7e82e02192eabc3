"""
Razorpay payment connector.
Talks to the Razorpay REST API v1 with HTTP basic auth (key id / secret).

API structure:
  - POST /orders                      - create order (payment_capture 0 = hold, 1 = charge)
  - POST /payments/{id}/capture       - capture an authorized payment
  - POST /payments/{id}/refund        - refund part or all of a payment
  - POST /orders (with token)         - ₹1 mandate order, approves later charges up to max_amount
  - GET  /payments/{id}               - look up the customer behind a mandate token
  - POST /payments/create/recurring   - charge an approved mandate

Razorpay reports failures as
  {"error": {"code": "BAD_REQUEST_ERROR", "description": "..."}}
and the description is relayed to the caller unchanged.
"""
from typing import Any, Dict, Optional
import asyncio
import uuid
import aiohttp

from snazzpay.connectors.base import PaymentGateway, GatewayOrder, CaptureResult, RefundResult
from snazzpay.config import get_settings
from snazzpay.exceptions import ConfigurationError, GatewayRejected
from snazzpay.utils.logger import log

settings = get_settings()

# Token order amount for a mandate, in paise
MANDATE_TOKEN_AMOUNT = 100


def parse_error(status: int, body: Any) -> Exception:
    """Turn a non-2xx Razorpay response into the matching lifecycle error."""
    description = None
    code = None
    if isinstance(body, dict):
        err = body.get("error") or {}
        if isinstance(err, dict):
            description = err.get("description")
            code = err.get("code")
    elif isinstance(body, str) and body.strip():
        description = body.strip()

    if status == 401:
        return ConfigurationError(
            f"Razorpay rejected the API credentials: {description or 'authentication failed'}"
        )
    return GatewayRejected(description or f"Razorpay returned HTTP {status}", gateway_code=code)


class RazorpayConnector(PaymentGateway):
    """Connector for the Razorpay payment gateway"""

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        super().__init__("Razorpay")
        self.key_id = key_id if key_id is not None else settings.razorpay_key_id
        self.key_secret = key_secret if key_secret is not None else settings.razorpay_key_secret
        self.base_url = (base_url or settings.razorpay_api_base_url).rstrip("/")

    def _auth(self) -> aiohttp.BasicAuth:
        if not self.key_id or not self.key_secret:
            raise ConfigurationError("Server configuration error: Razorpay keys are missing.")
        return aiohttp.BasicAuth(self.key_id, self.key_secret)

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        auth = self._auth()
        url = f"{self.base_url}{path}"
        self.call_count += 1

        try:
            async with aiohttp.ClientSession(auth=auth) as session:
                async with session.request(
                    method,
                    url,
                    json=payload,
                    headers={"Accept": "application/json"},
                ) as response:
                    try:
                        body = await response.json(content_type=None)
                    except ValueError:
                        body = await response.text()

                    if response.status >= 400:
                        self.error_count += 1
                        error = parse_error(response.status, body)
                        log.error(f"Razorpay {method} {path} failed ({response.status}): {error}")
                        raise error

                    return body if isinstance(body, dict) else {}

        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            self.error_count += 1
            log.error(f"Razorpay unreachable for {method} {path}: {str(e)}")
            raise ConfigurationError(f"Razorpay is unreachable: {str(e)}") from e

    async def validate_connection(self) -> bool:
        """Fetch one order to check the credentials."""
        try:
            await self._request("GET", "/orders?count=1")
            log.info("Connected to Razorpay API")
            return True
        except (ConfigurationError, GatewayRejected) as e:
            log.warning(f"Razorpay connection check failed: {e}")
            return False

    async def create_order(
        self,
        amount: int,
        currency: str,
        capture_immediately: bool,
        metadata: Optional[Dict[str, Any]] = None
    ) -> GatewayOrder:
        metadata = metadata or {}
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": metadata.get("receipt") or f"receipt_cod_{uuid.uuid4().hex[:12]}",
            "payment_capture": 1 if capture_immediately else 0,
            # Razorpay notes must be flat string values
            "notes": {k: str(v) for k, v in metadata.items() if k != "receipt" and v is not None},
        }
        body = await self._request("POST", "/orders", payload)
        log.info(f"Created Razorpay order {body.get('id')} for {amount} {currency} (capture={capture_immediately})")
        return GatewayOrder(
            gateway_order_id=body.get("id", ""),
            amount=int(body.get("amount", amount)),
            currency=body.get("currency", currency),
            raw=body,
        )

    async def capture(self, payment_id: str, amount: int, currency: str) -> CaptureResult:
        body = await self._request(
            "POST",
            f"/payments/{payment_id}/capture",
            {"amount": amount, "currency": currency},
        )
        log.info(f"Captured {amount} {currency} on payment {payment_id}")
        return CaptureResult(capture_id=body.get("id", payment_id), amount=amount, raw=body)

    async def refund(
        self,
        payment_id: str,
        amount: int,
        notes: Optional[Dict[str, Any]] = None
    ) -> RefundResult:
        payload = {
            "amount": amount,
            "speed": "normal",
            "notes": {k: str(v) for k, v in (notes or {}).items() if v is not None},
            "receipt": f"refund-{payment_id}-{uuid.uuid4().hex[:6]}",
        }
        body = await self._request("POST", f"/payments/{payment_id}/refund", payload)
        log.info(f"Refunded {amount} on payment {payment_id} (refund {body.get('id')})")
        return RefundResult(refund_id=body.get("id", ""), amount=int(body.get("amount", amount)), raw=body)

    async def create_mandate_order(
        self,
        max_amount: int,
        currency: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> GatewayOrder:
        """
        Charge ₹1 now and register a token for up to `max_amount` later.

        Nothing beyond the token amount is held; the order value is taken by
        charge_mandate when the parcel ships.
        """
        metadata = dict(metadata or {}, max_amount=max_amount)
        payload = {
            "amount": MANDATE_TOKEN_AMOUNT,
            "currency": currency,
            "receipt": metadata.get("receipt") or f"receipt_cod_{uuid.uuid4().hex[:12]}",
            "payment_capture": 1,
            "notes": {k: str(v) for k, v in metadata.items() if k != "receipt" and v is not None},
            "token": {"max_amount": max_amount},
        }
        body = await self._request("POST", "/orders", payload)
        log.info(f"Created Razorpay mandate order {body.get('id')} (max {max_amount} {currency})")
        return GatewayOrder(
            gateway_order_id=body.get("id", ""),
            amount=int(body.get("amount", MANDATE_TOKEN_AMOUNT)),
            currency=body.get("currency", currency),
            raw=body,
        )

    async def charge_mandate(
        self,
        token_payment_id: str,
        amount: int,
        currency: str,
        notes: Optional[Dict[str, Any]] = None
    ) -> CaptureResult:
        payment = await self._request("GET", f"/payments/{token_payment_id}")
        customer_id = payment.get("customer_id")
        if not customer_id:
            raise GatewayRejected("Could not find a customer associated with this payment token.")

        payload = {
            "amount": amount,
            "currency": currency,
            "customer_id": customer_id,
            "token": payment.get("token_id") or token_payment_id,
            "recurring": "1",
            "receipt": f"rcpt_charge_{uuid.uuid4().hex[:8]}",
            "description": "Charging mandate for order.",
            "notes": {k: str(v) for k, v in (notes or {}).items() if v is not None},
        }
        body = await self._request("POST", "/payments/create/recurring", payload)
        charge_id = body.get("razorpay_payment_id") or body.get("id", "")
        log.info(f"Charged mandate {token_payment_id} for {amount} {currency} (payment {charge_id})")
        return CaptureResult(capture_id=charge_id, amount=amount, raw=body)
