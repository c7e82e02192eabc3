"""
Notification templates and best-effort delivery.
"""
import asyncio

import pytest

from snazzpay.services import notification_service
from snazzpay.services.notification_service import (
    NotificationService,
    NotificationType,
    render_template,
    whatsapp_link,
    whatsapp_message,
)

ORDER = {
    "orderId": "1042",
    "customerName": "Asha",
    "productOrdered": "Silk Saree",
    "price": "1000.00",
    "contactNo": "9876543210",
    "paymentStatus": "Paid",
    "deliveryStatus": "dispatched",
    "courierCompanyName": "Delhivery",
    "trackingNumber": "DL123",
}


class TestTemplates:

    def test_dispatch(self):
        subject, html, text = render_template(NotificationType.DISPATCH, ORDER)
        assert subject == "Shipped! Your Snazzify Order #1042 is on its way."
        assert "Delhivery" in html and "DL123" in html
        assert "Shakti Card" in html
        assert "DL123" in text

    def test_cancellation(self):
        subject, html, _ = render_template(NotificationType.CANCELLATION, ORDER)
        assert subject == "Confirmation of Cancellation for Order #1042"
        assert "₹1000.00" in html

    def test_refund_uses_refund_amount(self):
        subject, html, _ = render_template(NotificationType.REFUND, {**ORDER, "refundAmount": "700.00"})
        assert subject == "Refund Processed for Order #1042"
        assert "₹700.00" in html

    def test_customer_fields_are_escaped(self):
        _, html, _ = render_template(NotificationType.CANCELLATION, {**ORDER, "customerName": "<b>x</b>"})
        assert "<b>x</b>" not in html
        assert "&lt;b&gt;x&lt;/b&gt;" in html

    def test_internal_alert_needs_subject_and_body(self):
        assert render_template(NotificationType.INTERNAL_ALERT, {"subject": "S", "body": "B"})[0] == "S"
        with pytest.raises(ValueError):
            render_template(NotificationType.INTERNAL_ALERT, {"subject": "S"})


class TestWhatsApp:

    def test_link_uses_normalized_phone(self):
        link = whatsapp_link("+91 98765-43210", "Hi there")
        assert link == "https://wa.me/919876543210?text=Hi%20there"

    def test_message_follows_status(self):
        assert "DL123" in whatsapp_message(ORDER)
        pending = whatsapp_message({**ORDER, "paymentStatus": "Pending", "deliveryStatus": "pending"})
        assert "Trust Wallet" in pending
        voided = whatsapp_message({**ORDER, "paymentStatus": "Voided", "deliveryStatus": "pending"})
        assert "cancellation" in voided


class TestDelivery:

    def test_unknown_template_rejected(self):
        with pytest.raises(ValueError):
            asyncio.run(NotificationService().send("sms", "a@b.com", ORDER))

    def test_missing_recipient_is_reported(self):
        result = asyncio.run(NotificationService().send(NotificationType.DISPATCH, None, ORDER))
        assert result.success is False
        assert result.error == "No recipient"

    def test_unconfigured_channels_report_instead_of_raising(self):
        service = NotificationService()
        service.smtp_configured = False
        service.whatsapp_configured = False

        email = asyncio.run(service.send("dispatch", "asha@example.com", ORDER))
        assert (email.channel, email.success, email.error) == ("email", False, "Email not configured")

        wa = asyncio.run(service.send("dispatch", "9876543210", ORDER))
        assert (wa.channel, wa.recipient, wa.error) == ("whatsapp", "919876543210", "WhatsApp not configured")
        assert service.get_stats()["total_failed"] == 2

    def test_email_single_attempt(self, monkeypatch):
        sent = []

        class FakeSMTP:
            def __init__(self, host, port, timeout=None):
                pass

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def starttls(self):
                pass

            def login(self, user, password):
                pass

            def send_message(self, msg):
                sent.append(msg)

        monkeypatch.setattr(notification_service.smtplib, "SMTP", FakeSMTP)
        service = NotificationService()
        service.smtp_configured = True

        result = asyncio.run(service.send(NotificationType.REFUND, "asha@example.com", ORDER))

        assert result.success is True
        assert len(sent) == 1
        assert sent[0]["Subject"] == "Refund Processed for Order #1042"
        assert sent[0]["To"] == "asha@example.com"
