from flask import Blueprint, current_app, request, jsonify
from flask_login import login_required, current_user
from sqlalchemy import func
from marketplace.extensions import db
from marketplace.models import (
    Order,
    OrderItem,
    OrderStatus,
    Product,
    Seller,
    StoreSetting,
    User,
    UserRole,
)
from marketplace.middleware import role_required
from marketplace.serializers import seller_to_dict, settings_to_dict
from marketplace.services.audit_service import log_audit
from marketplace.services.mail_service import (
    MailError,
    send_mail,
    text_html,
)
from marketplace.services.notification_service import notify_seller_decision
from marketplace.services.side_effects import dispatch
from marketplace.utils import iso, money, parse_date, parse_int
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__)

SETTINGS_FIELDS = {
    'storeName': 'store_name',
    'logoUrl': 'logo_url',
    'bannerUrl': 'banner_url',
    'primaryColor': 'primary_color',
    'categoriesLimit': 'categories_limit',
}


def get_store_settings():
    settings = db.session.get(StoreSetting, 1)
    if settings is None:
        settings = StoreSetting(
            id=1,
            store_name=current_app.config.get('STORE_NAME'),
        )
        db.session.add(settings)
        db.session.commit()
    return settings


def _set_seller_approval(seller_id, approved):
    seller = db.session.get(Seller, seller_id)
    if seller is None:
        return None

    seller.approved = approved
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='SELLER_APPROVE' if approved else 'SELLER_REJECT',
        target_type='SELLER',
        target_id=seller.id,
    )

    dispatch(
        notify_seller_decision,
        seller.id,
        seller.email,
        seller.name,
        approved,
    )
    return seller


@bp.route('/api/admin/sellers/<int:seller_id>/approve', methods=['PUT'])
@login_required
@role_required('ADMIN')
def approve_seller(seller_id):
    seller = _set_seller_approval(seller_id, True)
    if seller is None:
        return jsonify({'error': 'Seller not found'}), 404
    return jsonify({
        'message': 'Seller approved, email and notification sent',
        'seller': seller_to_dict(seller),
    })


@bp.route('/api/admin/sellers/<int:seller_id>/reject', methods=['PUT'])
@login_required
@role_required('ADMIN')
def reject_seller(seller_id):
    seller = _set_seller_approval(seller_id, False)
    if seller is None:
        return jsonify({'error': 'Seller not found'}), 404
    return jsonify({
        'message': 'Seller rejected',
        'seller': seller_to_dict(seller),
    })


@bp.route('/api/admin/sellers', methods=['GET'])
@login_required
@role_required('ADMIN')
def list_sellers():
    query = Seller.query
    approved = request.args.get('approved')
    if approved is not None:
        query = query.filter(Seller.approved.is_(approved == 'true'))
    sellers = query.order_by(Seller.created_at.desc()).all()

    product_counts = dict(
        db.session.query(Product.seller_id, func.count(Product.id))
        .group_by(Product.seller_id).all()
    )
    payload = []
    for s in sellers:
        item = seller_to_dict(s)
        item['productCount'] = product_counts.get(s.id, 0)
        payload.append(item)
    return jsonify({'sellers': payload})


@bp.route('/api/admin/users', methods=['GET'])
@login_required
@role_required('ADMIN', 'SELLER')
def list_users():
    """Customer list with lifetime order count and spend."""
    totals = {
        user_id: (count, total)
        for user_id, count, total in db.session.query(
            Order.user_id,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
        ).group_by(Order.user_id).all()
    }

    users = User.query.filter(
        User.role == UserRole.USER
    ).order_by(User.created_at.desc()).all()

    payload = []
    for user in users:
        count, total = totals.get(user.id, (0, 0))
        payload.append({
            'id': user.id,
            'name': user.name,
            'email': user.email,
            'address': user.address,
            'city': user.city,
            'phone': user.phone,
            'createdAt': iso(user.created_at),
            'totalSales': money(total),
            'orderCount': count,
        })
    return jsonify({'users': payload})


@bp.route('/api/admin/revenue-report', methods=['GET'])
@login_required
@role_required('ADMIN')
def revenue_report():
    query = OrderItem.query.join(Order, OrderItem.order_id == Order.id).filter(
        Order.status == OrderStatus.DELIVERED.value
    )

    start = parse_date(request.args.get('startDate'))
    end = parse_date(request.args.get('endDate'))
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at <= end)
    product_id = parse_int(request.args.get('productId'))
    if product_id:
        query = query.filter(OrderItem.product_id == product_id)

    items = query.all()
    report = {}
    for item in items:
        entry = report.setdefault(item.product_id, {
            'productId': item.product_id,
            'title': item.product.title if item.product else 'Deleted product',
            'totalQty': 0,
            'totalRevenue': Decimal('0'),
        })
        entry['totalQty'] += item.qty
        entry['totalRevenue'] += item.price * item.qty

    products = sorted(
        report.values(), key=lambda e: e['totalRevenue'], reverse=True)
    for entry in products:
        entry['totalRevenue'] = money(entry['totalRevenue'])

    return jsonify({
        'totalItems': len(items),
        'totalRevenue': round(sum(e['totalRevenue'] for e in products), 2),
        'products': products,
    })


@bp.route('/api/settings', methods=['GET'])
def public_settings():
    return jsonify({'settings': settings_to_dict(get_store_settings())})


@bp.route('/api/admin/settings', methods=['PUT'])
@login_required
@role_required('ADMIN')
def update_settings():
    data = request.get_json(silent=True) or {}
    settings = get_store_settings()

    for key, attr in SETTINGS_FIELDS.items():
        if key not in data:
            continue
        value = data.get(key)
        if attr == 'categories_limit':
            value = parse_int(value)
            if value is None or value < 0:
                return jsonify(
                    {'error': 'categoriesLimit must be a positive integer'}
                ), 400
        setattr(settings, attr, value)

    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='SETTINGS_UPDATE',
        target_type='STORE_SETTING',
        target_id=settings.id,
        payload={k: data[k] for k in SETTINGS_FIELDS if k in data}
    )

    return jsonify({
        'message': 'Settings updated successfully',
        'settings': settings_to_dict(settings),
    })


@bp.route('/api/test-mail', methods=['POST'])
@login_required
@role_required('ADMIN')
def test_mail():
    data = request.get_json(silent=True) or {}
    to = (data.get('to') or '').strip()
    subject = (data.get('subject') or '').strip()
    message = (data.get('message') or '').strip()
    if not to or not subject or not message:
        return jsonify({'error': 'to, subject, and message required'}), 400

    recipients = [to] + [
        e for e in current_app.config.get('ADMIN_EMAILS', []) if e != to]
    try:
        sent = send_mail(recipients, subject, text_html(message), message)
    except MailError as e:
        logger.error("Test mail failed: %s", e)
        return jsonify({'error': 'Failed to send email'}), 500

    if not sent:
        return jsonify({
            'message': 'Mail provider not configured, email skipped'
        })
    return jsonify({'message': 'Test email sent successfully'})
