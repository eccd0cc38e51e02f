from flask import current_app
from markupsafe import escape
from marketplace.extensions import db
from marketplace.models import Notification, UserRole
from marketplace.services.mail_service import (
    send_mail,
    order_placed_buyer_html,
    order_placed_seller_html,
    order_placed_admin_html,
    order_status_html,
    text_html,
)
from marketplace.services.whatsapp_service import send_whatsapp
import logging

logger = logging.getLogger(__name__)

ADMIN_MAILBOX = UserRole.ADMIN.value


def create_notification(message, user_id=None, seller_id=None, role=None,
                        link=None, commit=True):
    recipients = [r for r in (user_id, seller_id, role) if r is not None]
    if len(recipients) != 1:
        raise ValueError(
            'A notification needs exactly one of user_id, seller_id, role')

    notification = Notification(
        user_id=user_id,
        seller_id=seller_id,
        role=role,
        message=message,
        link=link,
    )
    db.session.add(notification)
    if commit:
        db.session.commit()
    return notification


def _safely(channel, func, *args, **kwargs):
    """Run one delivery channel; failures are logged, never raised."""
    try:
        return func(*args, **kwargs)
    except Exception:
        db.session.rollback()
        logger.exception("%s delivery failed", channel)
        return None


def notify_order_placed(summary):
    """In-app, email and WhatsApp fan-out after a successful checkout.

    ``summary`` is a plain dict built right after the checkout commit, so
    this can run on a background thread without touching the request's ORM
    objects.
    """
    order_id = summary['order_id']
    total = summary['total']

    def _in_app():
        create_notification(
            f"Your order #{order_id} has been placed successfully.",
            user_id=summary['user_id'],
            link=f"/orders/{order_id}",
            commit=False,
        )
        for seller_id in summary['sellers']:
            create_notification(
                f"New order #{order_id} includes your products.",
                seller_id=seller_id,
                link=f"/seller/orders/{order_id}",
                commit=False,
            )
        create_notification(
            f"New Order #{order_id} placed by {summary['buyer_name']}. "
            f"Total: Rs {total:,.2f}",
            role=ADMIN_MAILBOX,
            link=f"/admin/orders/{order_id}",
            commit=False,
        )
        db.session.commit()

    _safely('Checkout notification', _in_app)

    _safely(
        'Buyer email',
        send_mail,
        summary['buyer_email'],
        f"Order Confirmation: #{order_id}",
        order_placed_buyer_html(summary),
    )
    for seller in summary['sellers'].values():
        _safely(
            'Seller email',
            send_mail,
            seller['email'],
            f"New Order Received: #{order_id}",
            order_placed_seller_html(summary, seller['items']),
        )
    admin_emails = current_app.config.get('ADMIN_EMAILS') or []
    if admin_emails:
        _safely(
            'Admin email',
            send_mail,
            admin_emails,
            f"New Order Placed: #{order_id}",
            order_placed_admin_html(summary),
        )

    admin_phone = current_app.config.get('WHATSAPP_ADMIN_PHONE')
    admin_key = current_app.config.get('WHATSAPP_ADMIN_API_KEY')
    if admin_phone and admin_key:
        _safely(
            'Admin WhatsApp',
            send_whatsapp,
            admin_phone,
            f"New Order #{order_id}\n"
            f"Customer: {summary['buyer_name']}\n"
            f"Total: Rs {total:,.2f}\n"
            f"City: {summary['city']}\n"
            f"Phone: {summary['phone']}\n\n"
            "Check dashboard for details.",
            admin_key,
        )
    for seller in summary['sellers'].values():
        if seller.get('phone') and seller.get('whatsapp_api_key'):
            lines = '\n'.join(
                f"{item['title']} x{item['qty']}" for item in seller['items'])
            _safely(
                'Seller WhatsApp',
                send_whatsapp,
                seller['phone'],
                f"New Order Notification\n"
                f"Order #{order_id} includes your items:\n{lines}\n\n"
                "Please check your seller dashboard.",
                seller['whatsapp_api_key'],
            )


def notify_status_changed(order_id, user_id, buyer_name, buyer_email,
                          status, message=None):
    _safely(
        'Status email',
        send_mail,
        buyer_email,
        f"Order #{order_id} Status Updated",
        order_status_html(buyer_name, order_id, status, message),
    )
    _safely(
        'Status notification',
        create_notification,
        f"Your order #{order_id} status updated to: {status}.",
        user_id=user_id,
        link=f"/orders/{order_id}",
    )


def notify_review_created(review_id, seller_id, seller_email, author_name,
                          product_title, rating, comment):
    if seller_email:
        _safely(
            'Review email',
            send_mail,
            seller_email,
            f"New Review for {product_title}",
            f"<p>{escape(author_name)} rated <b>{escape(product_title)}</b> "
            f"{rating}/5.</p>{text_html(comment)}",
        )
    if seller_id:
        _safely(
            'Review notification',
            create_notification,
            f"{author_name} posted a review for {product_title}",
            seller_id=seller_id,
            link=f"/seller/reviews/{review_id}",
        )


def notify_review_reply(review_id, user_id, product_title):
    _safely(
        'Review reply notification',
        create_notification,
        f"Seller replied to your review on {product_title}",
        user_id=user_id,
        link=f"/reviews/{review_id}",
    )


def notify_complaint_created(complaint_id, author_name, subject, message):
    admin_emails = current_app.config.get('ADMIN_EMAILS') or []
    if admin_emails:
        _safely(
            'Complaint email',
            send_mail,
            admin_emails,
            f"New Complaint: {subject} from {author_name}",
            text_html(message),
        )
    _safely(
        'Complaint notification',
        create_notification,
        f"New complaint submitted by {author_name}: {subject}",
        role=ADMIN_MAILBOX,
        link=f"/admin/complaints/{complaint_id}",
    )


def notify_complaint_reply(user_id, user_email, subject, reply):
    if user_email:
        _safely(
            'Complaint reply email',
            send_mail,
            user_email,
            f"Reply to your complaint: {subject}",
            text_html(reply),
        )
    _safely(
        'Complaint reply notification',
        create_notification,
        f"There's a reply to your complaint: {subject}",
        user_id=user_id,
        link='/dashboard/complaints',
    )


def notify_complaint_user_reply(complaint_id, author_name):
    _safely(
        'Complaint user reply notification',
        create_notification,
        f"User {author_name} replied to complaint #{complaint_id}",
        role=ADMIN_MAILBOX,
        link=f"/admin/complaints/{complaint_id}",
    )


def notify_seller_decision(seller_id, seller_email, seller_name, approved):
    store_name = current_app.config.get('STORE_NAME')
    if approved:
        subject = "Your Seller Account has been Approved!"
        body = (
            f"<p>Hi {escape(seller_name)},</p><p>Your seller account on "
            f"{escape(store_name)} has been approved. You can now log in.</p>"
        )
    else:
        subject = "Seller Account Update"
        body = (
            f"<p>Hi {escape(seller_name)},</p><p>Unfortunately your seller "
            f"account on {escape(store_name)} was not approved.</p>"
        )
    _safely('Seller decision email', send_mail, seller_email, subject, body)
    if approved:
        _safely(
            'Seller decision notification',
            create_notification,
            "Your account has been approved by the admin. Welcome aboard!",
            seller_id=seller_id,
            link='/seller',
        )
