from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from sqlalchemy.exc import IntegrityError
from marketplace.extensions import db
from marketplace.models import User, UserRole, Seller, Cart
from marketplace.middleware import issue_token, role_required
from marketplace.serializers import user_to_dict, seller_to_dict
from marketplace.services.audit_service import log_audit
from datetime import datetime
import logging
import re

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _credentials():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    return data, email, password


def _login_failed(action, reason, status_code, message):
    log_audit(
        actor_id=None,
        actor_role='ANONYMOUS',
        action=action,
        payload={'reason': reason}
    )
    return jsonify({'error': message}), status_code


@bp.route('/api/auth/register', methods=['POST'])
def register():
    data, email, password = _credentials()
    name = (data.get('name') or '').strip()

    if not name or not email or not password:
        return jsonify({'error': 'All fields required'}), 400
    if not EMAIL_RE.match(email):
        return jsonify({'error': 'Invalid email address'}), 400
    if len(password) < 6:
        return jsonify(
            {'error': 'Password must be at least 6 characters'}), 400

    user = User(name=name, email=email, role=UserRole.USER)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.flush()
        db.session.add(Cart(user_id=user.id))
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Email already exists'}), 400

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='REGISTER',
        target_type='USER',
        target_id=user.id,
    )

    return jsonify({'message': 'User created', 'user': user_to_dict(user)}), 201


@bp.route('/api/auth/login', methods=['POST'])
def login():
    _, email, password = _credentials()
    if not email or not password:
        return jsonify({'error': 'Email and password required'}), 400

    user = User.query.filter_by(email=email).first()
    if not user:
        return _login_failed(
            'LOGIN_FAILED', 'user_not_found', 404, 'User not found')
    if not user.check_password(password):
        return _login_failed(
            'LOGIN_FAILED', 'invalid_credentials', 401, 'Incorrect password')

    user.last_login_at = datetime.utcnow()
    db.session.commit()

    log_audit(
        actor_id=user.id,
        actor_role=user.role.value,
        action='LOGIN_SUCCESS',
        target_type='USER',
        target_id=user.id,
    )

    return jsonify({
        'message': 'Login successful',
        'token': issue_token(user),
        'user': user_to_dict(user),
    })


@bp.route('/api/auth/seller-register', methods=['POST'])
def seller_register():
    data, email, password = _credentials()
    name = (data.get('name') or '').strip()

    if not name or not email or not password:
        return jsonify({'error': 'All fields required'}), 400
    if not EMAIL_RE.match(email):
        return jsonify({'error': 'Invalid email address'}), 400

    seller = Seller(
        name=name,
        email=email,
        phone=(data.get('phone') or '').strip() or None,
        whatsapp_api_key=(data.get('whatsappApiKey') or '').strip() or None,
        approved=False,
    )
    seller.set_password(password)
    db.session.add(seller)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Email already exists'}), 400

    log_audit(
        actor_id=seller.id,
        actor_role=UserRole.SELLER.value,
        action='REGISTER_SELLER',
        target_type='SELLER',
        target_id=seller.id,
    )

    return jsonify({
        'message': 'Seller registered, wait for admin approval',
        'seller': seller_to_dict(seller),
    }), 201


@bp.route('/api/auth/seller-login', methods=['POST'])
def seller_login():
    _, email, password = _credentials()
    if not email or not password:
        return jsonify({'error': 'Email and password required'}), 400

    seller = Seller.query.filter_by(email=email).first()
    if not seller:
        return _login_failed(
            'LOGIN_FAILED', 'seller_not_found', 404, 'Seller not found')
    if not seller.check_password(password):
        return _login_failed(
            'LOGIN_FAILED', 'invalid_credentials', 401, 'Incorrect password')
    if not seller.approved:
        return _login_failed(
            'LOGIN_FAILED', 'seller_not_approved', 403,
            'Seller not approved yet')

    log_audit(
        actor_id=seller.id,
        actor_role=UserRole.SELLER.value,
        action='LOGIN_SUCCESS',
        target_type='SELLER',
        target_id=seller.id,
    )

    return jsonify({
        'message': 'Seller login successful',
        'token': issue_token(seller),
        'seller': seller_to_dict(seller),
    })


@bp.route('/api/auth/admin-login', methods=['POST'])
def admin_login():
    _, email, password = _credentials()
    if not email or not password:
        return jsonify({'error': 'Email and password required'}), 400

    user = User.query.filter_by(email=email, role=UserRole.ADMIN).first()
    if not user or not user.check_password(password):
        return _login_failed(
            'LOGIN_FAILED', 'invalid_admin_credentials', 401,
            'Invalid admin credentials')

    user.last_login_at = datetime.utcnow()
    db.session.commit()

    log_audit(
        actor_id=user.id,
        actor_role=UserRole.ADMIN.value,
        action='LOGIN_SUCCESS',
        target_type='USER',
        target_id=user.id,
    )

    return jsonify({
        'message': 'Admin login successful',
        'token': issue_token(user),
    })


@bp.route('/api/user/profile', methods=['GET'])
@login_required
def get_profile():
    if isinstance(current_user, Seller):
        return jsonify({'user': seller_to_dict(current_user)})
    return jsonify({'user': user_to_dict(current_user)})


@bp.route('/api/user/profile', methods=['PUT'])
@login_required
@role_required('USER', 'ADMIN')
def update_profile():
    data = request.get_json(silent=True) or {}

    for field in ('name', 'address', 'city', 'phone'):
        if field in data:
            value = data.get(field)
            setattr(
                current_user,
                field,
                value.strip() if isinstance(value, str) else value)

    if not current_user.name:
        db.session.rollback()
        return jsonify({'error': 'Name cannot be empty'}), 400

    db.session.commit()
    return jsonify({
        'message': 'Profile updated',
        'user': user_to_dict(current_user),
    })


@bp.route('/api/seller/profile', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def seller_profile():
    if isinstance(current_user, Seller):
        return jsonify({'seller': seller_to_dict(current_user)})
    return jsonify({'seller': None, 'user': user_to_dict(current_user)})
