from flask import current_app
from markupsafe import escape
import resend
import logging

logger = logging.getLogger(__name__)


class MailError(Exception):
    pass


def send_mail(to, subject, html, text=None):
    """Send one transactional email through Resend.

    ``to`` may be a single address or a list. Raises MailError when the
    provider rejects the message; callers running as side effects catch it.
    Without an API key the message is logged and skipped.
    """
    recipients = [to] if isinstance(to, str) else [r for r in to if r]
    if not recipients:
        return False

    api_key = (current_app.config.get('RESEND_API_KEY') or '').strip()
    if not api_key:
        logger.info(
            "RESEND_API_KEY not configured, skipping mail to %s: %s",
            recipients,
            subject,
        )
        return False

    store_name = current_app.config.get('STORE_NAME')
    payload = {
        'from': f"{store_name} <{current_app.config['MAIL_FROM']}>",
        'to': recipients,
        'subject': subject,
        'html': html,
    }
    if text:
        payload['text'] = text

    resend.api_key = api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        raise MailError(str(exc)) from exc

    if not isinstance(response, dict) or not response.get('id'):
        raise MailError(f"Unexpected Resend response: {response}")

    logger.info("Mail sent to %s: %s (id=%s)",
                recipients, subject, response.get('id'))
    return True


def _items_table(items):
    rows = []
    for item in items:
        label = escape(item['title'])
        if item.get('variant'):
            label = f"{label} ({escape(item['variant'])})"
        rows.append(
            f"<tr><td>{label}</td>"
            f"<td>{item['qty']}</td><td>{item['price']:.2f}</td></tr>"
        )
    return (
        '<table cellpadding="6" border="1" style="border-collapse:collapse">'
        '<tr><th>Product</th><th>Qty</th><th>Price</th></tr>'
        f"{''.join(rows)}</table>"
    )


def _shipping_line(summary):
    return f"{escape(summary['address'])}, {escape(summary['city'])}"


def order_placed_buyer_html(summary):
    return (
        f"<h2>Thank you for your order, "
        f"{escape(summary['buyer_name'])}!</h2>"
        f"<p>Order <b>#{summary['order_id']}</b> has been placed.</p>"
        f"{_items_table(summary['items'])}"
        f"<p>Total: <b>{summary['total']:.2f}</b></p>"
        f"<p>Shipping to: {_shipping_line(summary)}</p>"
    )


def order_placed_seller_html(summary, seller_items):
    return (
        f"<h2>New order #{summary['order_id']}</h2>"
        f"<p>Customer: {escape(summary['buyer_name'])} "
        f"({escape(summary['phone'])})</p>"
        f"<p>Address: {_shipping_line(summary)}</p>"
        f"{_items_table(seller_items)}"
    )


def order_placed_admin_html(summary):
    return (
        f"<h2>New order #{summary['order_id']}</h2>"
        f"<p>Customer: {escape(summary['buyer_name'])} "
        f"&lt;{escape(summary['buyer_email'])}&gt; "
        f"({escape(summary['phone'])})</p>"
        f"<p>Address: {_shipping_line(summary)}</p>"
        f"{_items_table(summary['items'])}"
        f"<p>Total: <b>{summary['total']:.2f}</b></p>"
    )


def order_status_html(buyer_name, order_id, status, message=None):
    extra = f"<p>{escape(message)}</p>" if message else ''
    return (
        f"<p>Hi {escape(buyer_name)},</p>"
        f"<p>Your order <b>#{order_id}</b> is now "
        f"<b>{escape(status)}</b>.</p>"
        f"{extra}"
    )


def text_html(text):
    """Escape free text and keep its line breaks."""
    return f"<p>{escape(text or '')}</p>".replace('\n', '<br>')
