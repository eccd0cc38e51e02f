from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from sqlalchemy import func, or_
from marketplace.extensions import db
from marketplace.models import (
    Category,
    Complaint,
    ComplaintStatus,
    Notification,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
    Product,
    Review,
    Seller,
    User,
    UserRole,
)
from marketplace.middleware import role_required
from marketplace.serializers import order_to_dict
from marketplace.utils import daily_buckets, iso, money
from datetime import datetime, timedelta
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('dashboard', __name__)


def _count_orders(*criteria):
    return Order.query.filter(*criteria).count()


def _sales_chart(days=7):
    """Order totals per day for the last ``days`` days, oldest first."""
    buckets = {day: 0.0 for day in daily_buckets(days)}
    start = datetime.utcnow().replace(
        hour=0, minute=0, second=0, microsecond=0
    ) - timedelta(days=days - 1)

    for created_at, total in db.session.query(
        Order.created_at, Order.total
    ).filter(Order.created_at >= start).all():
        day = created_at.date().isoformat()
        if day in buckets:
            buckets[day] += money(total)

    return [{'date': day, 'sales': round(total, 2)}
            for day, total in buckets.items()]


@bp.route('/api/dashboard/user', methods=['GET'])
@login_required
@role_required('USER')
def user_dashboard():
    user_id = current_user.id
    total_spent = db.session.query(
        func.coalesce(func.sum(Order.total), 0)
    ).filter(Order.user_id == user_id).scalar()

    return jsonify({
        'user': {
            'id': user_id,
            'name': current_user.name,
            'role': current_user.role.value,
        },
        'stats': {
            'totalOrders': _count_orders(Order.user_id == user_id),
            'pendingOrders': _count_orders(
                Order.user_id == user_id,
                Order.status == OrderStatus.PENDING.value),
            'deliveredOrders': _count_orders(
                Order.user_id == user_id,
                Order.status == OrderStatus.DELIVERED.value),
            'totalSpent': money(total_spent),
            'reviews': {
                'total': Review.query.filter_by(user_id=user_id).count(),
            },
            'complaints': {
                'total': Complaint.query.filter_by(user_id=user_id).count(),
            },
            'unreadNotifications': Notification.query.filter_by(
                user_id=user_id, read=False).count(),
        },
    })


@bp.route('/api/dashboard/seller', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def seller_dashboard():
    """Store-wide figures; only the notification count is personal."""
    revenue = db.session.query(
        func.coalesce(func.sum(Order.total), 0)).scalar()
    customers = db.session.query(
        func.count(func.distinct(Order.user_id))).scalar()

    if current_user.role == UserRole.SELLER:
        mailbox = Notification.seller_id == current_user.id
    else:
        mailbox = or_(Notification.user_id == current_user.id,
                      Notification.role == UserRole.ADMIN.value)
    unread = Notification.query.filter(
        mailbox, Notification.read.is_(False)).count()

    recent = Order.query.order_by(
        Order.created_at.desc(), Order.id.desc()).limit(5).all()

    return jsonify({
        'seller': {
            'id': current_user.id,
            'role': current_user.role.value,
        },
        'stats': {
            'totalProducts': Product.query.count(),
            'totalCategories': Category.query.count(),
            'totalOrders': _count_orders(),
            'pendingOrders': _count_orders(
                Order.status == OrderStatus.PENDING.value),
            'deliveredOrders': _count_orders(
                Order.status == OrderStatus.DELIVERED.value),
            'totalRevenue': money(revenue),
            'totalCustomers': customers,
            'chartData': _sales_chart(),
            'reviews': {'total': Review.query.count()},
            'complaints': {
                'total': Complaint.query.count(),
                'open': Complaint.query.filter_by(
                    status=ComplaintStatus.PENDING.value).count(),
            },
            'unreadNotifications': unread,
        },
        'recentOrders': [order_to_dict(o) for o in recent],
    })


@bp.route('/api/dashboard/admin', methods=['GET'])
@login_required
@role_required('ADMIN')
def admin_dashboard():
    total_orders = _count_orders()
    delivered = _count_orders(Order.status == OrderStatus.DELIVERED.value)
    revenue = db.session.query(
        func.coalesce(func.sum(Payment.amount), 0)
    ).filter(Payment.status == PaymentStatus.SUCCESS).scalar()
    success_rate = (
        f'{delivered / total_orders * 100:.1f}' if total_orders else '0')

    orders_by_status = {
        status.value: _count_orders(Order.status == status.value)
        for status in OrderStatus
    }

    recent_users = User.query.order_by(User.created_at.desc()).limit(5).all()
    recent_orders = Order.query.order_by(
        Order.created_at.desc(), Order.id.desc()).limit(5).all()
    pending_sellers = Seller.query.filter_by(approved=False).order_by(
        Seller.created_at.desc()).limit(5).all()

    return jsonify({
        'admin': {
            'id': current_user.id,
            'role': current_user.role.value,
        },
        'stats': {
            'users': {'total': User.query.count()},
            'sellers': {
                'total': Seller.query.count(),
                'approved': Seller.query.filter_by(approved=True).count(),
                'pending': Seller.query.filter_by(approved=False).count(),
            },
            'catalog': {
                'totalProducts': Product.query.count(),
                'totalCategories': Category.query.count(),
            },
            'orders': {
                'total': total_orders,
                'pending': orders_by_status['PENDING'],
                'processing': orders_by_status['PROCESSING'],
                'shipped': orders_by_status['SHIPPED'],
                'delivered': delivered,
                'cancelled': orders_by_status['CANCELLED'],
                'paymentFailed': orders_by_status['PAYMENT_FAILED'],
            },
            'revenue': {'totalRevenue': money(revenue)},
            'successRate': success_rate,
            'chartData': _sales_chart(),
            'reviews': {'total': Review.query.count()},
            'complaints': {
                'total': Complaint.query.count(),
                'open': Complaint.query.filter_by(
                    status=ComplaintStatus.PENDING.value).count(),
            },
        },
        'recent': {
            'users': [
                {'id': u.id, 'name': u.name, 'email': u.email,
                 'createdAt': iso(u.created_at)}
                for u in recent_users
            ],
            'orders': [order_to_dict(o) for o in recent_orders],
            'pendingSellers': [
                {'id': s.id, 'name': s.name, 'email': s.email,
                 'createdAt': iso(s.created_at)}
                for s in pending_sellers
            ],
        },
    })
