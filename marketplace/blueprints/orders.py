from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from sqlalchemy.exc import SQLAlchemyError
from marketplace.extensions import db
from marketplace.models import (
    Order,
    OrderItem,
    Product,
    UserRole,
)
from marketplace.middleware import role_required
from marketplace.serializers import (
    order_to_dict,
    ordered_tracking,
    tracking_to_dict,
)
from marketplace.services.audit_service import log_audit
from marketplace.services.notification_service import (
    notify_order_placed,
    notify_status_changed,
)
from marketplace.services.order_service import (
    CHECKOUT_FIELDS,
    OrderError,
    checkout_cart,
    delete_pending_order,
    seller_can_manage,
    update_order_status,
)
from marketplace.services.side_effects import dispatch
from marketplace.utils import (
    iso,
    money,
    paginate_query,
    pagination_args,
    parse_date,
    parse_int,
)
from datetime import datetime, timedelta
from collections import OrderedDict
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('orders', __name__)


def _apply_order_filters(query, args):
    status = (args.get('status') or '').strip()
    if status:
        query = query.filter(Order.status == status.upper())

    start = parse_date(args.get('startDate'))
    end = parse_date(args.get('endDate'))
    if start and end:
        query = query.filter(Order.created_at >= start,
                             Order.created_at <= end)

    search = (args.get('search') or '').strip()
    if search:
        matching = db.select(OrderItem.order_id).join(
            Product, OrderItem.product_id == Product.id
        ).where(Product.title.ilike(f'%{search}%'))
        query = query.filter(Order.id.in_(matching))

    return query


def _seller_order_ids(seller_id):
    return db.select(OrderItem.order_id).join(
        Product, OrderItem.product_id == Product.id
    ).where(Product.seller_id == seller_id)


def _managed_order(order_id):
    """Order a SELLER/ADMIN may update, or an error response."""
    order = db.session.get(Order, order_id)
    if order is None:
        return None, (jsonify({'error': 'Order not found'}), 404)
    if (current_user.role == UserRole.SELLER
            and not seller_can_manage(order, current_user.id)):
        return None, (jsonify({'error': 'Not allowed'}), 403)
    return order, None


def _change_status(order, status, message):
    """Shared by the status and tracking endpoints."""
    previous = order.status
    try:
        update_order_status(order, status, message)
    except OrderError as e:
        return None, (jsonify({'error': e.message}), e.status_code)
    except SQLAlchemyError as e:
        logger.error("Status update for order %s failed: %s",
                     order.id, e, exc_info=True)
        return None, (jsonify({
            'error': 'Failed to update status',
            'message': str(getattr(e, 'orig', None) or e),
        }), 500)

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='ORDER_STATUS_UPDATE',
        target_type='ORDER',
        target_id=order.id,
        payload={'from': previous, 'to': order.status}
    )

    buyer = order.user
    dispatch(
        notify_status_changed,
        order.id,
        buyer.id,
        buyer.name or buyer.email,
        buyer.email,
        order.status,
        message,
    )
    return order, None


@bp.route('/api/orders', methods=['GET'])
@login_required
@role_required('USER', 'SELLER', 'ADMIN')
def list_orders():
    query = Order.query
    if current_user.role == UserRole.USER:
        query = query.filter(Order.user_id == current_user.id)
    else:
        user_id = parse_int(request.args.get('userId'))
        if user_id:
            query = query.filter(Order.user_id == user_id)

    query = _apply_order_filters(query, request.args)
    page, limit = pagination_args()
    result = paginate_query(
        query.order_by(Order.created_at.desc(), Order.id.desc()),
        page,
        limit)

    return jsonify({
        'orders': [order_to_dict(o) for o in result['items']],
        'total': result['total'],
        'page': result['page'],
        'pages': result['pages'],
        'limit': limit,
    })


@bp.route('/api/orders/checkout', methods=['POST'])
@login_required
@role_required('USER')
def checkout():
    data = request.get_json(silent=True) or {}
    fields = {f: (str(data.get(f) or '')).strip() for f in CHECKOUT_FIELDS}
    if not all(fields.values()):
        return jsonify({
            'error': 'All fields (method, address, city, phone) are required'
        }), 400

    logger.info("Checkout initiated for user %s", current_user.id)
    try:
        order, summary = checkout_cart(current_user, **fields)
    except OrderError as e:
        return jsonify({'error': e.message}), e.status_code
    except SQLAlchemyError as e:
        logger.error("Checkout failed for user %s: %s",
                     current_user.id, e, exc_info=True)
        return jsonify({
            'error': 'Checkout Process Failed',
            'message': str(getattr(e, 'orig', None) or e),
            'code': getattr(e, 'code', None),
        }), 500

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='ORDER_CREATE',
        target_type='ORDER',
        target_id=order.id,
        payload={
            'total': summary['total'],
            'method': fields['method'],
            'seller_ids': sorted(summary['sellers'].keys()),
        }
    )

    dispatch(notify_order_placed, summary)

    return jsonify({
        'success': True,
        'message': 'Order placed successfully!',
        'order': {'id': order.id, 'total': money(order.total)},
    })


@bp.route('/api/orders/seller', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def seller_orders():
    """Orders grouped by product for the seller's catalog."""
    page, limit = pagination_args()

    products = Product.query
    if current_user.role == UserRole.SELLER:
        products = products.filter(Product.seller_id == current_user.id)
    result = paginate_query(products.order_by(Product.id), page, limit)

    order_filter = _apply_order_filters(Order.query, request.args)
    order_ids = order_filter.with_entities(Order.id).statement

    payload = []
    for product in result['items']:
        items = product.order_items.filter(
            OrderItem.order_id.in_(order_ids)
        ).order_by(OrderItem.id.desc()).all()
        payload.append({
            'productId': product.id,
            'title': product.title,
            'orders': [
                {
                    'orderId': oi.order_id,
                    'qty': oi.qty,
                    'price': money(oi.price),
                    'variantName': oi.variant_name,
                    'userId': oi.order.user_id,
                    'status': oi.order.status,
                    'createdAt': iso(oi.order.created_at),
                }
                for oi in items
            ],
        })

    total_items = OrderItem.query.join(
        Product, OrderItem.product_id == Product.id)
    if current_user.role == UserRole.SELLER:
        total_items = total_items.filter(
            Product.seller_id == current_user.id)

    return jsonify({
        'products': payload,
        'totalOrders': total_items.count(),
        'page': result['page'],
        'pages': result['pages'],
        'limit': limit,
    })


@bp.route('/api/orders/stats', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def order_stats():
    now = datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    range_name = request.args.get('range')

    if range_name == 'daily':
        start = today
        end = today + timedelta(days=1)
    elif range_name == 'weekly':
        # Week starts on Sunday
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        end = start + timedelta(days=7)
    elif range_name == 'monthly':
        start = today.replace(day=1)
        end = (start + timedelta(days=32)).replace(day=1)
    elif range_name == 'yearly':
        start = today.replace(month=1, day=1)
        end = start.replace(year=start.year + 1)
    else:
        return jsonify({'error': 'Invalid range'}), 400

    query = Order.query.filter(
        Order.created_at >= start,
        Order.created_at < end,
    )
    if current_user.role == UserRole.SELLER:
        query = query.filter(Order.id.in_(_seller_order_ids(current_user.id)))

    buckets = OrderedDict()
    for order in query.order_by(Order.created_at).all():
        if range_name == 'yearly':
            key = order.created_at.strftime('%Y-%m')
        elif range_name == 'daily':
            key = order.created_at.strftime('%Y-%m-%dT%H:00')
        else:
            key = order.created_at.date().isoformat()
        bucket = buckets.setdefault(key, {'period': key, 'total': 0.0,
                                          'orders': 0})
        bucket['total'] += money(order.total)
        bucket['orders'] += 1

    return jsonify({
        'range': range_name,
        'start': iso(start),
        'end': iso(end),
        'stats': list(buckets.values()),
    })


@bp.route('/api/orders/user/<int:user_id>', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def orders_for_user(user_id):
    query = Order.query.filter(Order.user_id == user_id)
    if current_user.role == UserRole.SELLER:
        query = query.filter(Order.id.in_(_seller_order_ids(current_user.id)))
    orders = query.order_by(Order.created_at.desc()).all()
    return jsonify({'orders': [order_to_dict(o) for o in orders]})


@bp.route('/api/orders/tracking', methods=['POST'])
@login_required
@role_required('SELLER', 'ADMIN')
def add_tracking():
    data = request.get_json(silent=True) or {}
    order_id = parse_int(data.get('orderId'))
    if not order_id or not data.get('status'):
        return jsonify({'error': 'orderId and status are required'}), 400

    order, error = _managed_order(order_id)
    if error:
        return error

    order, error = _change_status(order, data.get('status'),
                                  data.get('message'))
    if error:
        return error

    latest = ordered_tracking(order)[-1]
    return jsonify({
        'success': True,
        'message': 'Tracking updated and payment synced',
        'track': tracking_to_dict(latest),
    })


@bp.route('/api/orders/<int:order_id>', methods=['GET'])
@login_required
@role_required('USER')
def order_detail(order_id):
    order = db.session.get(Order, order_id)
    if order is None:
        return jsonify({'error': 'Order not found'}), 404
    if order.user_id != current_user.id:
        return jsonify({'error': 'Not allowed'}), 403
    return jsonify({'order': order_to_dict(order, with_tracking=True)})


@bp.route('/api/orders/<int:order_id>', methods=['DELETE'])
@login_required
@role_required('USER')
def delete_order(order_id):
    order = db.session.get(Order, order_id)
    if order is None:
        return jsonify({'error': 'Order not found'}), 404
    if order.user_id != current_user.id:
        return jsonify({'error': 'Not allowed'}), 403

    try:
        delete_pending_order(order)
    except OrderError as e:
        return jsonify({'error': e.message}), e.status_code

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='ORDER_DELETE',
        target_type='ORDER',
        target_id=order_id,
    )
    return jsonify({'message': 'Order deleted successfully'})


@bp.route('/api/orders/<int:order_id>/status', methods=['PUT'])
@login_required
@role_required('SELLER', 'ADMIN')
def change_order_status(order_id):
    data = request.get_json(silent=True) or {}
    if not data.get('status'):
        return jsonify({'error': 'Status is required'}), 400

    order, error = _managed_order(order_id)
    if error:
        return error

    order, error = _change_status(order, data.get('status'), None)
    if error:
        return error

    return jsonify({
        'success': True,
        'message': 'Order status updated successfully',
        'order': order_to_dict(order, with_tracking=True),
    })


@bp.route('/api/orders/<int:order_id>/tracking', methods=['GET'])
@login_required
@role_required('USER', 'SELLER', 'ADMIN')
def order_tracking(order_id):
    order = db.session.get(Order, order_id)
    if order is None:
        return jsonify({'error': 'Order not found'}), 404

    role = current_user.role
    if role == UserRole.USER and order.user_id != current_user.id:
        return jsonify({'error': 'Not allowed'}), 403
    if role == UserRole.SELLER and not seller_can_manage(
            order, current_user.id):
        return jsonify({'error': 'Not allowed'}), 403

    return jsonify({
        'orderId': order.id,
        'currentStatus': order.status,
        'tracking': [tracking_to_dict(t) for t in ordered_tracking(order)],
    })
