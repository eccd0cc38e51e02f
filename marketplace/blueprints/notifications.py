from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from marketplace.extensions import db
from marketplace.models import Notification, UserRole
from marketplace.serializers import notification_to_dict
from marketplace.services.notification_service import (
    ADMIN_MAILBOX,
    create_notification,
)
from marketplace.utils import parse_bool, parse_int
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('notifications', __name__)


def _mailbox_filter():
    role = current_user.role
    if role == UserRole.USER:
        return Notification.user_id == current_user.id
    if role == UserRole.SELLER:
        return Notification.seller_id == current_user.id
    return Notification.role == ADMIN_MAILBOX


def _owns(notification):
    role = current_user.role
    if role == UserRole.USER:
        return notification.user_id == current_user.id
    if role == UserRole.SELLER:
        return notification.seller_id == current_user.id
    return notification.role == ADMIN_MAILBOX


@bp.route('/api/notifications', methods=['GET'])
@login_required
def list_notifications():
    query = Notification.query.filter(_mailbox_filter())
    if not parse_bool(request.args.get('all')):
        query = query.filter(Notification.read.is_(False))

    notifications = query.order_by(
        Notification.created_at.desc(), Notification.id.desc()
    ).all()
    unread = Notification.query.filter(
        _mailbox_filter(), Notification.read.is_(False)
    ).count()

    return jsonify({
        'notifications': [notification_to_dict(n) for n in notifications],
        'unreadCount': unread,
    })


@bp.route('/api/notifications/read/<int:notification_id>', methods=['PUT'])
@login_required
def mark_read(notification_id):
    notification = db.session.get(Notification, notification_id)
    if notification is None:
        return jsonify({'error': 'Notification not found'}), 404
    if not _owns(notification):
        return jsonify({'error': 'Not allowed'}), 403

    notification.read = True
    db.session.commit()
    return jsonify({
        'message': 'Notification marked as read',
        'notification': notification_to_dict(notification),
    })


@bp.route('/api/notifications', methods=['POST'])
@login_required
def post_notification():
    data = request.get_json(silent=True) or {}
    message = (data.get('message') or '').strip()
    if not message:
        return jsonify({'error': 'Message cannot be empty'}), 400

    role = (data.get('role') or '').strip().upper() or None
    if role is not None and role != ADMIN_MAILBOX:
        return jsonify({'error': 'Only the ADMIN role mailbox exists'}), 400

    try:
        notification = create_notification(
            message,
            user_id=parse_int(data.get('userId')),
            seller_id=parse_int(data.get('sellerId')),
            role=role,
            link=data.get('link'),
        )
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'message': 'Notification created',
        'notification': notification_to_dict(notification),
    }), 201
