# storefront/services/notification_service.py
from html import escape

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.data.models.order import OrderModel, format_order_number
from storefront.services.mail_client import GraphMailClient
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def format_money(cents: int, currency: str = "USD") -> str:
    symbol = "$" if currency == "USD" else f"{currency} "
    return f"{symbol}{cents / 100:.2f}"


class NotificationService:
    """
    Serwis do wysylania powiadomien.
    Uzywa Celery do asynchronicznego przetwarzania - wywolanie tylko kolejkuje task.
    """

    @staticmethod
    def send_order_confirmation(order_id: str):
        send_order_confirmation_task.delay(order_id)

    @staticmethod
    def send_verification_code(email: str, code: str):
        send_verification_code_task.delay(email, code)

    @staticmethod
    def send_password_reset_code(email: str, code: str):
        send_password_reset_code_task.delay(email, code)


def render_order_confirmation(order: OrderModel) -> str:
    number = format_order_number(order.id, order.created_at)
    rows = "".join(
        f"<tr><td>{escape(i.name)} ({escape(i.variant_name)})</td>"
        f"<td>{i.quantity}</td><td>{format_money(i.unit_price * i.quantity, order.currency)}</td></tr>"
        for i in order.items
    )
    address = next((a for a in order.addresses if a.type == "shipping"), None)
    address_html = ""
    if address:
        address_html = (
            f"<p>{escape(address.first_name)} {escape(address.last_name)}<br>"
            f"{escape(address.address1)}<br>"
            + (f"{escape(address.address2)}<br>" if address.address2 else "")
            + f"{escape(address.postal_code)} {escape(address.city)}<br>{escape(address.country)}</p>"
        )

    return (
        f"<h1>Thank you for your order {number}</h1>"
        f"<table>{rows}</table>"
        f"<p>Subtotal: {format_money(order.subtotal, order.currency)}<br>"
        f"Discount: -{format_money(order.discount_amount, order.currency)}<br>"
        f"Shipping: {format_money(order.shipping_amount, order.currency)}<br>"
        f"Tax: {format_money(order.tax_amount, order.currency)}<br>"
        f"<strong>Total: {format_money(order.total, order.currency)}</strong></p>"
        f"{address_html}"
    )


@celery_app.task(name="storefront.services.notification_service.send_email_task")
def send_email_task(to: str, subject: str, html: str):
    sent = GraphMailClient().send(to, subject, html)
    return {"to": to, "subject": subject, "status": "sent" if sent else "logged"}


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(order_id: str):
    db = SessionLocal()
    try:
        order = db.get(OrderModel, order_id)
        if not order:
            logger.warning(f"[NOTIFICATION] Order {order_id} not found, confirmation skipped")
            return {"order_id": order_id, "status": "missing"}

        number = format_order_number(order.id, order.created_at)
        html = render_order_confirmation(order)
        email = order.email
    finally:
        db.close()

    logger.info(f"[NOTIFICATION] Sending confirmation for order {number}")
    return send_email_task(email, f"Order confirmation {number}", html)


@celery_app.task(name="storefront.services.notification_service.send_verification_code_task")
def send_verification_code_task(email: str, code: str):
    html = f"<p>Your verification code is <strong>{escape(code)}</strong>. It expires in 10 minutes.</p>"
    return send_email_task(email, "Verify your email", html)


@celery_app.task(name="storefront.services.notification_service.send_password_reset_code_task")
def send_password_reset_code_task(email: str, code: str):
    html = f"<p>Your password reset code is <strong>{escape(code)}</strong>. It expires in 10 minutes.</p>"
    return send_email_task(email, "Reset your password", html)
