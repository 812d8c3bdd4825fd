"""Best-effort notifications: order confirmations, low-stock alerts, webhooks.

Everything here is fire-and-forget. Callers hand over plain dicts (never ORM
objects, the session is gone by the time a background task runs) and every
public ``send_*`` function logs and swallows its own failures.
"""

import html
import logging
import smtplib
from dataclasses import dataclass
from email import policy
from email.message import EmailMessage
from ssl import create_default_context

import httpx

from inventory_api.config import settings
from inventory_api.models.order import Order
from inventory_api.services.ledger_service import StockChange

logger = logging.getLogger(__name__)


@dataclass
class SMTPConfig:
    host: str
    port: int
    username: str | None
    password: str | None
    use_tls: bool
    use_ssl: bool
    sender: str | None


def load_smtp_config() -> SMTPConfig | None:
    if not settings.SMTP_HOST:
        return None
    return SMTPConfig(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME or None,
        password=settings.SMTP_PASSWORD or None,
        use_tls=settings.SMTP_USE_TLS,
        use_ssl=settings.SMTP_USE_SSL,
        sender=settings.EMAIL_FROM or settings.SMTP_USERNAME or None,
    )


def _value(v) -> str:
    return v.value if hasattr(v, "value") else str(v)


def order_payload(order: Order) -> dict:
    """Detached snapshot of an order for notification templates and webhooks."""
    return {
        "id": order.id,
        "order_number": order.order_number,
        "type": _value(order.type),
        "status": _value(order.status),
        "payment_status": _value(order.payment_status),
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "supplier": order.supplier.name if order.supplier else None,
        "items": [
            {
                "product_id": item.product_id,
                "sku": item.sku,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "price": item.price,
                "total": item.total,
            }
            for item in order.items
        ],
        "subtotal": order.subtotal,
        "tax": order.tax,
        "discount": order.discount,
        "total_amount": order.total_amount,
    }


def low_stock_payload(change: StockChange) -> dict:
    return {
        "product_id": change.product_id,
        "sku": change.sku,
        "name": change.name,
        "quantity": change.balance_after,
        "min_stock_level": change.min_stock_level,
    }


def render_order_confirmation(order: dict) -> str:
    esc = html.escape
    items = "".join(
        f"<li>{esc(i['product_name'])} - Qty: {i['quantity']} - Price: ${i['price']:.2f}"
        f" - Total: ${i['total']:.2f}</li>"
        for i in order["items"]
    )
    return (
        "<h2>Order Confirmation</h2>"
        f"<p>Order Number: <strong>{esc(order['order_number'])}</strong></p>"
        f"<p>Order Type: <strong>{esc(order['type'])}</strong></p>"
        f"<p>Status: <strong>{esc(order['status'])}</strong></p>"
        f"<h3>Items:</h3><ul>{items}</ul>"
        f"<p><strong>Subtotal:</strong> ${order['subtotal']:.2f}</p>"
        f"<p><strong>Tax:</strong> ${order['tax']:.2f}</p>"
        f"<p><strong>Discount:</strong> ${order['discount']:.2f}</p>"
        f"<p><strong>Total Amount:</strong> ${order['total_amount']:.2f}</p>"
        "<p>Thank you for your order!</p>"
    )


def render_low_stock_alert(products: list[dict]) -> str:
    esc = html.escape
    rows = "".join(
        f"<li><strong>{esc(p['name'])}</strong> (SKU: {esc(p['sku'])}) - Current Stock: {p['quantity']}"
        f" (Min: {p['min_stock_level']})</li>"
        for p in products
    )
    return (
        "<h2>Low Stock Alert</h2>"
        "<p>The following products are running low on stock:</p>"
        f"<ul>{rows}</ul>"
        "<p>Please reorder these items soon.</p>"
    )


def build_message(subject: str, recipient: str, html_body: str) -> EmailMessage:
    message = EmailMessage(policy=policy.default)
    message["Subject"] = subject
    message["To"] = recipient
    message.set_content("Open this message in an HTML-capable mail client.")
    message.add_alternative(html_body, subtype="html")
    return message


def send_email(message: EmailMessage, smtp_config: SMTPConfig | None = None) -> bool:
    """Deliver one message over SMTP. Returns False when email is not configured."""
    config = smtp_config or load_smtp_config()
    if config is None:
        logger.debug("SMTP not configured, dropping email %r", message["Subject"])
        return False
    if not config.sender:
        raise RuntimeError("EMAIL_FROM or SMTP_USERNAME must be configured for sending email")

    if "From" not in message:
        message["From"] = f"Inventory System <{config.sender}>"

    smtp_class = smtplib.SMTP_SSL if config.use_ssl else smtplib.SMTP
    with smtp_class(config.host, config.port, timeout=10) as client:
        client.ehlo()
        if config.use_tls and not config.use_ssl:
            client.starttls(context=create_default_context())
            client.ehlo()
        if config.username and config.password:
            client.login(config.username, config.password)
        client.send_message(message)
    return True


def send_order_confirmation(email: str, order: dict) -> bool:
    if not email:
        return False
    message = build_message(
        f"Order Confirmation - {order['order_number']}", email, render_order_confirmation(order)
    )
    try:
        sent = send_email(message)
    except Exception:
        logger.exception("Failed to send order confirmation for %s to %s", order["order_number"], email)
        return False
    if sent:
        logger.info("Order confirmation for %s sent to %s", order["order_number"], email)
    return sent


def send_low_stock_alert(recipients: list[str], products: list[dict]) -> int:
    """Email each recipient separately; one bad address does not stop the rest."""
    if not products:
        return 0
    delivered = 0
    body = render_low_stock_alert(products)
    for email in recipients:
        message = build_message("Low Stock Alert - Inventory Management", email, body)
        try:
            if send_email(message):
                delivered += 1
        except Exception:
            logger.exception("Failed to send low stock alert to %s", email)
    return delivered


def _webhook_urls() -> list[str]:
    if not settings.WEBHOOK_URLS:
        return []
    return [u.strip() for u in settings.WEBHOOK_URLS.split(",") if u.strip()]


def send_webhook(event: str, payload: dict) -> list[dict]:
    """POST an order event to every configured webhook URL."""
    urls = _webhook_urls()
    if not urls:
        return []

    body = {"event": event, "data": payload}
    results = []
    with httpx.Client(timeout=10.0) as client:
        for url in urls:
            try:
                resp = client.post(url, json=body)
                results.append({"url": url, "status": resp.status_code, "success": resp.is_success})
            except Exception as e:
                logger.error(f"Webhook failed for {url}: {e}")
                results.append({"url": url, "status": 0, "success": False, "error": str(e)})

    return results
