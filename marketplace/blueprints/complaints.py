from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from sqlalchemy import or_
from marketplace.extensions import db
from marketplace.models import (
    Complaint,
    ComplaintStatus,
    Order,
    Product,
    UserRole,
)
from marketplace.middleware import role_required
from marketplace.serializers import complaint_to_dict
from marketplace.services.notification_service import (
    notify_complaint_created,
    notify_complaint_reply,
    notify_complaint_user_reply,
)
from marketplace.services.side_effects import dispatch
from marketplace.utils import append_thread_message, parse_int
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('complaints', __name__)


def _seller_scope(query):
    """Complaints addressed to the seller or about one of their products."""
    owned = db.select(Product.id).where(Product.seller_id == current_user.id)
    return query.filter(or_(
        Complaint.seller_id == current_user.id,
        Complaint.product_id.in_(owned),
    ))


def _handled_complaint(complaint_id):
    query = Complaint.query.filter(Complaint.id == complaint_id)
    if current_user.role == UserRole.SELLER:
        query = _seller_scope(query)
    return query.first()


@bp.route('/api/complaints/my', methods=['GET'])
@login_required
@role_required('USER')
def my_complaints():
    complaints = Complaint.query.filter_by(
        user_id=current_user.id
    ).order_by(Complaint.created_at.desc()).all()
    return jsonify({'complaints': [complaint_to_dict(c) for c in complaints]})


@bp.route('/api/complaints', methods=['POST'])
@login_required
@role_required('USER')
def create_complaint():
    data = request.get_json(silent=True) or {}
    subject = (data.get('subject') or '').strip()
    message = (data.get('message') or '').strip()
    if not subject or not message:
        return jsonify({'error': 'Subject and message are required'}), 400

    complaint = Complaint(
        user_id=current_user.id,
        subject=subject,
        message=message,
        status=ComplaintStatus.PENDING.value,
    )

    product_id = parse_int(data.get('productId'))
    if product_id:
        product = db.session.get(Product, product_id)
        if product is None:
            return jsonify({'error': 'Product not found'}), 404
        complaint.product_id = product.id
        complaint.seller_id = product.seller_id

    order_id = parse_int(data.get('orderId'))
    if order_id:
        order = db.session.get(Order, order_id)
        if order is None or order.user_id != current_user.id:
            return jsonify({'error': 'Order not found'}), 404
        complaint.order_id = order.id

    seller_id = parse_int(data.get('sellerId'))
    if seller_id and complaint.seller_id is None:
        complaint.seller_id = seller_id

    db.session.add(complaint)
    db.session.commit()

    dispatch(
        notify_complaint_created,
        complaint.id,
        current_user.name or current_user.email,
        subject,
        message,
    )

    return jsonify({
        'message': 'Complaint submitted & Admin notified',
        'complaint': complaint_to_dict(complaint),
    }), 201


@bp.route('/api/complaints/seller', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def seller_complaints():
    query = Complaint.query
    if current_user.role == UserRole.SELLER:
        query = _seller_scope(query)
    status = (request.args.get('status') or '').strip().upper()
    if status:
        query = query.filter(Complaint.status == status)

    complaints = query.order_by(Complaint.created_at.desc()).all()
    payload = []
    for c in complaints:
        item = complaint_to_dict(c)
        item['product'] = (
            {'id': c.product.id, 'title': c.product.title}
            if c.product else None)
        item['order'] = (
            {'id': c.order.id, 'status': c.order.status}
            if c.order else None)
        payload.append(item)
    return jsonify({'complaints': payload})


@bp.route('/api/complaints/reply/<int:complaint_id>', methods=['PUT'])
@login_required
@role_required('SELLER', 'ADMIN')
def reply_complaint(complaint_id):
    data = request.get_json(silent=True) or {}
    reply = (data.get('sellerReply') or '').strip()
    status = (data.get('status') or '').strip().upper()
    if not reply and not status:
        return jsonify({'error': 'Reply or status update required'}), 400

    complaint = _handled_complaint(complaint_id)
    if complaint is None:
        return jsonify({'error': 'Complaint not found'}), 404

    if reply:
        complaint.conversation = append_thread_message(
            complaint.conversation,
            current_user.role.value,
            current_user.name,
            reply,
        )
    complaint.status = status or ComplaintStatus.PROCESSING.value
    db.session.commit()

    user = complaint.user
    dispatch(
        notify_complaint_reply,
        user.id,
        user.email,
        complaint.subject,
        reply or f'Status changed to {complaint.status}',
    )

    return jsonify({
        'message': 'Reply added & user notified',
        'complaint': complaint_to_dict(complaint),
    })


@bp.route('/api/complaints/user-reply/<int:complaint_id>', methods=['PUT'])
@login_required
@role_required('USER')
def user_reply_complaint(complaint_id):
    data = request.get_json(silent=True) or {}
    reply = (data.get('userReply') or '').strip()
    if not reply:
        return jsonify({'error': 'Reply cannot be empty'}), 400

    complaint = db.session.get(Complaint, complaint_id)
    if complaint is None or complaint.user_id != current_user.id:
        return jsonify({'error': 'Not allowed'}), 403

    # Users add to the thread but cannot change the status
    complaint.conversation = append_thread_message(
        complaint.conversation,
        UserRole.USER.value,
        current_user.name,
        reply,
    )
    db.session.commit()

    dispatch(
        notify_complaint_user_reply,
        complaint.id,
        current_user.name or current_user.email,
    )

    return jsonify({
        'message': 'Reply sent & Admin notified',
        'complaint': complaint_to_dict(complaint),
    })


@bp.route('/api/complaints/seller/<int:complaint_id>', methods=['DELETE'])
@login_required
@role_required('SELLER', 'ADMIN')
def seller_delete_complaint(complaint_id):
    complaint = _handled_complaint(complaint_id)
    if complaint is None:
        return jsonify({'error': 'Complaint not found'}), 404

    db.session.delete(complaint)
    db.session.commit()
    return jsonify({'message': 'Complaint deleted'})


@bp.route('/api/complaints/<int:complaint_id>', methods=['DELETE'])
@login_required
@role_required('USER')
def delete_complaint(complaint_id):
    deleted = Complaint.query.filter_by(
        id=complaint_id,
        user_id=current_user.id,
    ).delete(synchronize_session=False)
    db.session.commit()

    if not deleted:
        return jsonify({'error': 'Complaint not found or not yours'}), 404
    return jsonify({'message': 'Complaint deleted'})
