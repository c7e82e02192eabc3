#!/usr/bin/env python3
"""
Partial Failure Report

Lists orders stuck in 'Fee Charged': the cancellation fee was captured but
the refund of the remainder never went through. Each one needs a manual
refund (or a re-run of cancel-with-fee, which only retries the refund).

Usage:
    python scripts/list_partial_failures.py
    python scripts/list_partial_failures.py --seller S1
    python scripts/list_partial_failures.py --json   # machine-readable output
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import argparse
import json
from datetime import datetime, timezone
from decimal import Decimal

from snazzpay.models.base import SessionLocal, init_db
from snazzpay.models.order import PaymentStatus
from snazzpay.services.document_store import DocumentStore
from snazzpay.utils.money import format_inr, parse_amount


def find_partial_failures(store, seller_id=None):
    rows = []
    for order in store.find_by_field("orders", "paymentStatus", PaymentStatus.FEE_CHARGED.value):
        if seller_id and order.get("sellerId") != seller_id:
            continue
        price = parse_amount(order.get("price"), "price")
        fee = parse_amount(order["cancellationFee"], "cancellationFee") if order.get("cancellationFee") else Decimal("0.00")
        payment = store.get_document("payment_info", order["id"]) or {}
        rows.append({
            "id": order["id"],
            "order_id": order.get("orderId"),
            "customer": order.get("customerName"),
            "seller_id": order.get("sellerId"),
            "price": price,
            "fee_charged": fee,
            "pending_refund": price - fee,
            "payment_id": payment.get("paymentId"),
            "refund_status": order.get("refundStatus"),
        })
    return rows


def run(seller_id=None, as_json=False):
    init_db()
    db = SessionLocal()
    try:
        rows = find_partial_failures(DocumentStore(db), seller_id)
    finally:
        db.close()

    now = datetime.now(timezone.utc)
    if as_json:
        print(json.dumps({
            "checked_at": now.isoformat(),
            "count": len(rows),
            "orders": rows,
        }, indent=2, default=str))
        return

    print(f"\n{'='*90}")
    print(f"  PARTIAL FAILURES (Fee Charged, refund outstanding)  -  {now.strftime('%Y-%m-%d %H:%M:%S')} UTC")
    print(f"{'='*90}\n")

    if not rows:
        print("  Nothing to reconcile.")
        return

    header = f"{'Order':<20} {'Customer':<22} {'Fee':>12} {'To refund':>12} {'Payment':<20}"
    print(header)
    print("-" * len(header))
    total = Decimal("0.00")
    for r in rows:
        total += r["pending_refund"]
        print(
            f"{str(r['order_id'])[:20]:<20} {str(r['customer'] or '')[:22]:<22} "
            f"{format_inr(r['fee_charged']):>12} {format_inr(r['pending_refund']):>12} "
            f"{r['payment_id'] or '-':<20}"
        )

    print(f"\n  {len(rows)} order(s), {format_inr(total)} waiting to be refunded.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="List orders with a captured fee but no refund")
    parser.add_argument("--seller", help="Only orders for this seller id")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args()
    run(seller_id=args.seller, as_json=args.json)
