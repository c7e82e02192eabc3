"""
Notification Service
Sends customer and internal notifications via email and WhatsApp.

Delivery is best-effort: every send is a single attempt, and a failure is
reported back in the DeliveryResult instead of being raised.
"""
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from enum import Enum
from html import escape
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote, urlencode
import aiohttp
from dataclasses import dataclass

from snazzpay.config import get_settings
from snazzpay.utils.helpers import normalize_phone
from snazzpay.utils.logger import log

settings = get_settings()


class NotificationType(str, Enum):
    DISPATCH = "dispatch"
    CANCELLATION = "cancellation"
    REFUND = "refund"
    INTERNAL_ALERT = "internal_alert"


@dataclass
class DeliveryResult:
    """Outcome of a single delivery attempt."""
    success: bool = False
    channel: str = ""
    template: str = ""
    recipient: str = ""
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "channel": self.channel,
            "template": self.template,
            "recipient": self.recipient,
            "error": self.error,
        }


def _support_html() -> str:
    return (
        f'<p>If you have any questions, please contact our support team at '
        f'<a href="mailto:{settings.support_email}">{settings.support_email}</a> '
        f'or message us on WhatsApp at {settings.support_whatsapp}.</p>'
    )


_SHAKTI_FOOTER = (
    '<p style="font-size: 12px; color: #555; border-top: 1px solid #eee; padding-top: 10px; margin-top: 20px;">'
    'Your <strong>Shakti Card</strong> is active! Use it with our Partner Pay agents to get exclusive '
    'discounts and rewards on your next purchase.</p>'
)


def render_template(template: NotificationType, context: Dict[str, Any]) -> Tuple[str, str, str]:
    """
    Build (subject, html, text) for a notification.

    Customer templates read the order record (camelCase keys). The internal
    alert takes `subject` and `body` straight from the context.
    """
    if template == NotificationType.INTERNAL_ALERT:
        subject = context.get("subject")
        body = context.get("body")
        if not subject or not body:
            raise ValueError("Missing subject or body for internal alert.")
        return subject, body, body

    order_id = escape(str(context.get("orderId", "")))
    name = escape(str(context.get("customerName", "")))
    product = escape(str(context.get("productOrdered", "")))
    price = escape(str(context.get("price", "")))

    if template == NotificationType.DISPATCH:
        courier = escape(context.get("courierCompanyName") or "Our Logistics Partner")
        tracking = escape(str(context.get("trackingNumber") or ""))
        eta = escape(context.get("estDelivery") or "3-7 business days")
        subject = f"Shipped! Your Snazzify Order #{context.get('orderId', '')} is on its way."
        html = f"""
            <div style="font-family: Arial, sans-serif; line-height: 1.6;">
                <h2>Your Order is on its way!</h2>
                <p>Dear {name},</p>
                <p>Great news! Your order #{order_id} for <strong>{product}</strong> has been dispatched. As part of our Secure COD process, the funds held in your Trust Wallet have now been transferred to us.</p>
                <p><strong>Tracking Details:</strong></p>
                <ul>
                    <li><strong>Courier:</strong> {courier}</li>
                    <li><strong>Tracking Number:</strong> {tracking}</li>
                    <li><strong>Estimated Delivery:</strong> {eta}</li>
                </ul>
                <p>You can typically start tracking your order within 24 hours.</p>
                {_SHAKTI_FOOTER}
                {_support_html()}
                <p>Thank you for shopping with us,<br/>The Snazzify Team</p>
            </div>
        """
        text = (
            f"Great news, {context.get('customerName', '')}! Your Snazzify order #{context.get('orderId', '')} "
            f"has been shipped with {context.get('courierCompanyName') or 'our courier'}, "
            f"tracking no. {context.get('trackingNumber') or ''}. Your secure payment has now been finalized. "
            f"Thank you for shopping with us!"
        )
        return subject, html, text

    if template == NotificationType.CANCELLATION:
        subject = f"Confirmation of Cancellation for Order #{context.get('orderId', '')}"
        html = f"""
            <div style="font-family: Arial, sans-serif; line-height: 1.6;">
                <h2>Order Cancellation Confirmed</h2>
                <p>Dear {name},</p>
                <p>This email confirms that your order #{order_id} for <strong>{product}</strong> has been successfully cancelled as per your request.</p>
                <p>The payment authorization for ₹{price} has been voided, and the funds have been released back to your account. You will not be charged.</p>
                <p style="font-size: 12px; color: #555; border-top: 1px solid #eee; padding-top: 10px; margin-top: 20px;">We are sorry to see you go. Your Shakti Card remains active for any future purchases, giving you access to exclusive rewards.</p>
                {_support_html()}
                <p>We hope to see you again soon,<br/>The Snazzify Team</p>
            </div>
        """
        text = (
            f"Hi {context.get('customerName', '')}, this confirms the cancellation of your Snazzify order "
            f"#{context.get('orderId', '')}. Your payment authorization has been voided. We hope to see you again!"
        )
        return subject, html, text

    if template == NotificationType.REFUND:
        refund_amount = escape(str(context.get("refundAmount") or context.get("price", "")))
        subject = f"Refund Processed for Order #{context.get('orderId', '')}"
        html = f"""
            <div style="font-family: Arial, sans-serif; line-height: 1.6;">
                <h2>Refund Processed</h2>
                <p>Dear {name},</p>
                <p>We have processed a refund for your order #{order_id} for the product <strong>{product}</strong>.</p>
                <p><strong>Refund Amount:</strong> ₹{refund_amount}</p>
                <p>Please allow 5-7 business days for the amount to reflect in your original payment account. The exact time can vary depending on your bank.</p>
                {_SHAKTI_FOOTER}
                {_support_html()}
                <p>Thank you,<br/>The Snazzify Team</p>
            </div>
        """
        text = (
            f"Hi {context.get('customerName', '')}, your refund for order #{context.get('orderId', '')} "
            f"has been processed. You should see the amount in your account within 5-7 business days."
        )
        return subject, html, text

    raise ValueError(f"Invalid notification type specified: {template}")


def whatsapp_message(order: Dict[str, Any]) -> str:
    """Status-appropriate WhatsApp text for an order record."""
    name = order.get("customerName", "")
    order_id = order.get("orderId", "")
    status = order.get("paymentStatus")

    if status == "Pending":
        message = (
            f"Hi {name}! Thanks for your order #{order_id} from Snazzify. Please click this link to confirm "
            f"your payment with our modern & secure COD process. Your funds are held in a Trust Wallet and "
            f"only released on dispatch for 100% safety."
        )
        if settings.public_base_url:
            query = urlencode({
                "amount": order.get("price", ""),
                "name": order.get("productOrdered", ""),
                "order_id": order_id,
            })
            message += f" {settings.public_base_url.rstrip('/')}/secure-cod?{query}"
        return message
    if order.get("deliveryStatus") == "dispatched" and order.get("trackingNumber"):
        return render_template(NotificationType.DISPATCH, order)[2]
    if order.get("cancellationStatus") == "Processed" or status == "Voided":
        return render_template(NotificationType.CANCELLATION, order)[2]
    if order.get("refundStatus") == "Processed" or status == "Refunded":
        return render_template(NotificationType.REFUND, order)[2]
    return f"Hi {name}, this is a notification regarding your Snazzify order #{order_id}."


def whatsapp_link(phone: str, message: str) -> str:
    """Click-to-chat link for manual sending"""
    return f"https://wa.me/{normalize_phone(phone)}?text={quote(message)}"


class NotificationService:
    """
    Best-effort sender for lifecycle notifications.

    Recipients containing '@' go out by email, anything else is treated as a
    phone number and sent through the WhatsApp webhook.
    """

    def __init__(self):
        self.smtp_configured = all([
            settings.smtp_host,
            settings.smtp_user,
            settings.smtp_password,
        ])
        self.whatsapp_configured = bool(settings.whatsapp_webhook_url)

        # Track delivery stats
        self.total_sent = 0
        self.total_failed = 0

    async def send(
        self,
        template_type: Any,
        recipient: Optional[str],
        context: Dict[str, Any]
    ) -> DeliveryResult:
        """
        Render and deliver one notification.

        Raises ValueError for an unknown template type or an internal alert
        without subject/body; delivery problems come back in the result.
        """
        template = NotificationType(template_type)
        subject, html, text = render_template(template, context)

        if not recipient:
            log.warning(f"No recipient for '{template.value}' notification, skipping")
            return DeliveryResult(channel="none", template=template.value, error="No recipient")

        if "@" in recipient:
            result = await self.send_email(recipient, subject, html, text)
        else:
            result = await self.send_whatsapp(recipient, text)
        result.template = template.value

        if result.success:
            self.total_sent += 1
        else:
            self.total_failed += 1
        return result

    async def send_email(self, recipient: str, subject: str, html: str, text: str) -> DeliveryResult:
        """Send an HTML email with a plain-text alternative. Single attempt."""
        result = DeliveryResult(channel="email", recipient=recipient)

        if not self.smtp_configured:
            log.warning("Email not configured, skipping email notification")
            result.error = "Email not configured"
            return result

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f'"{settings.email_from_name}" <{settings.smtp_user}>'
            msg['To'] = recipient

            msg.attach(MIMEText(text, 'plain'))
            msg.attach(MIMEText(html, 'html'))

            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(settings.smtp_user, settings.smtp_password)
                server.send_message(msg)

            result.success = True
            log.info(f"Email sent to {recipient}: {subject}")

        except smtplib.SMTPAuthenticationError as e:
            result.error = f"Incorrect email credentials: {str(e)}"
            log.error(f"Email notification failed: {result.error}")
        except Exception as e:
            result.error = f"{type(e).__name__}: {str(e)}"
            log.error(f"Email notification failed: {result.error}")

        return result

    async def send_whatsapp(self, phone: str, text: str) -> DeliveryResult:
        """Post a message to the WhatsApp webhook. Single attempt."""
        to = normalize_phone(phone)
        result = DeliveryResult(channel="whatsapp", recipient=to)

        if not self.whatsapp_configured:
            log.warning("WhatsApp webhook not configured, skipping WhatsApp notification")
            result.error = "WhatsApp not configured"
            return result

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=30)) as session:
                async with session.post(
                    settings.whatsapp_webhook_url,
                    json={"to": to, "message": text}
                ) as response:
                    if 200 <= response.status < 300:
                        result.success = True
                        log.info(f"WhatsApp message sent to {to}")
                    else:
                        result.error = f"HTTP {response.status}"
                        log.error(f"WhatsApp notification failed with status {response.status}")
        except Exception as e:
            result.error = f"{type(e).__name__}: {str(e)}"
            log.error(f"WhatsApp notification failed: {result.error}")

        return result

    def get_stats(self) -> Dict[str, Any]:
        return {
            "email_configured": self.smtp_configured,
            "whatsapp_configured": self.whatsapp_configured,
            "total_sent": self.total_sent,
            "total_failed": self.total_failed,
        }
