from flask import jsonify
from flask_login import current_user
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from functools import wraps
from marketplace.extensions import db
from marketplace.models import User, Seller, UserRole
import logging

logger = logging.getLogger(__name__)


def role_value(principal) -> str:
    role = getattr(principal, 'role', None)
    return getattr(role, 'value', role)


def issue_token(principal):
    """Sign a bearer token carrying the principal id and role."""
    return create_access_token(
        identity=str(principal.id),
        additional_claims={
            'role': role_value(principal),
            'name': principal.name,
        },
    )


def _bearer_token(request):
    header = request.headers.get('Authorization', '') or ''
    if not header.startswith('Bearer '):
        return None
    token = header[len('Bearer '):].strip()
    return token or None


def load_principal_from_request(request):
    """Resolve the Authorization header to a User or Seller.

    Returns None for missing, malformed, expired or revoked credentials so
    that Flask-Login answers with the unauthorized handler.
    """
    token = _bearer_token(request)
    if not token:
        return None

    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException) as e:
        logger.info("Rejected bearer token: %s", e)
        return None

    try:
        principal_id = int(claims.get('sub'))
    except (TypeError, ValueError):
        return None

    role = claims.get('role')
    if role == UserRole.SELLER.value:
        seller = db.session.get(Seller, principal_id)
        # Approval can be revoked after the token was issued
        if seller is None or not seller.approved:
            return None
        return seller

    user = db.session.get(User, principal_id)
    if user is None or user.role.value != role:
        return None
    return user


def role_required(*allowed_roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({
                    'error': 'No token provided or token invalid'
                }), 401

            # allowed_roles is a list of role names.
            if role_value(current_user) not in allowed_roles:
                logger.warning(
                    "Principal %s attempted to access roles %s, "
                    "current role: %s",
                    current_user.id,
                    allowed_roles,
                    role_value(current_user),
                )
                return jsonify({'error': 'Forbidden: Access denied'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
