"""
Helper utilities
"""
from datetime import datetime, timezone
from decimal import Decimal
import re
import uuid

_NON_DIGITS = re.compile(r"\D")

INDIA_COUNTRY_CODE = "91"


def normalize_phone(phone: str) -> str:
    """
    Canonical form of an Indian mobile number, used as a lookup key.

    Strips everything but digits and any international "00" or trunk "0"
    prefix, then:
      - 12 digits starting with 91 -> kept as is
      - 10 digits -> prefixed with 91
      - anything else -> the bare digits
    "+91 98765-43210", "0091 98765 43210", "09876543210" and "9876543210"
    all become "919876543210". Applying it twice gives the same result.
    """
    if not phone:
        return ""
    digits = _NON_DIGITS.sub("", phone)

    while digits.startswith("00"):
        digits = digits[2:]
    if digits.startswith("0") and len(digits) == 11:
        digits = digits[1:]

    if digits.startswith(INDIA_COUNTRY_CODE) and len(digits) == 12:
        return digits
    if len(digits) == 10:
        return f"{INDIA_COUNTRY_CODE}{digits}"
    return digits


def new_order_id() -> str:
    """Globally unique internal order id"""
    return str(uuid.uuid4())


def generate_cancellation_id() -> str:
    """CNCL-1A2B3C4D"""
    return f"CNCL-{uuid.uuid4().hex[:8].upper()}"


def generate_card_number() -> str:
    """SHAKTI-1A2B-3C4D"""
    return f"SHAKTI-{uuid.uuid4().hex[:4].upper()}-{uuid.uuid4().hex[:4].upper()}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def serialize_money(value):
    """Recursively turn Decimals into strings for JSON responses (no float rounding)."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize_money(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_money(v) for v in value]
    return value
