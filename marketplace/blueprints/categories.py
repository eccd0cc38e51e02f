from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from marketplace.extensions import db
from marketplace.models import Category, Product, UserRole
from marketplace.middleware import role_required
from marketplace.serializers import category_to_dict
from marketplace.services.audit_service import log_audit
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('categories', __name__)


def _is_admin():
    return current_user.role == UserRole.ADMIN


def _editable_category_or_404(category_id):
    category = db.get_or_404(Category, category_id)
    # Sellers cannot edit global or foreign categories
    if not _is_admin() and category.seller_id != current_user.id:
        return None
    return category


@bp.route('/api/categories/all', methods=['GET'])
def list_all_categories():
    categories = Category.query.order_by(
        Category.is_starred.desc(), Category.name.asc()
    ).all()
    return jsonify({'categories': [category_to_dict(c) for c in categories]})


@bp.route('/api/categories', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def list_categories():
    query = Category.query
    if not _is_admin():
        query = query.filter(Category.seller_id == current_user.id)
    categories = query.order_by(Category.name.asc()).all()

    payload = []
    for c in categories:
        item = category_to_dict(c)
        item['seller'] = {'name': c.seller.name} if c.seller else None
        item['productCount'] = c.products.count()
        payload.append(item)
    return jsonify({'categories': payload})


@bp.route('/api/categories', methods=['POST'])
@login_required
@role_required('SELLER', 'ADMIN')
def create_category():
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Category name cannot be empty'}), 400

    category = Category(
        name=name,
        image=data.get('image'),
        seller_id=None if _is_admin() else current_user.id,
        is_starred=bool(data.get('isStarred')) if _is_admin() else False,
    )
    db.session.add(category)
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='CATEGORY_CREATE',
        target_type='CATEGORY',
        target_id=category.id,
        payload={'name': name}
    )

    return jsonify({
        'message': 'Category created',
        'category': category_to_dict(category),
    }), 201


@bp.route('/api/categories/<int:category_id>', methods=['PUT'])
@login_required
@role_required('SELLER', 'ADMIN')
def update_category(category_id):
    category = _editable_category_or_404(category_id)
    if category is None:
        return jsonify({'error': 'Not allowed'}), 403

    data = request.get_json(silent=True) or {}
    if 'name' in data:
        name = (data.get('name') or '').strip()
        if not name:
            return jsonify({'error': 'Category name cannot be empty'}), 400
        category.name = name
    if 'image' in data:
        category.image = data.get('image')
    if 'isStarred' in data and _is_admin():
        category.is_starred = bool(data.get('isStarred'))

    db.session.commit()
    return jsonify({
        'message': 'Category updated',
        'category': category_to_dict(category),
    })


@bp.route('/api/categories/<int:category_id>', methods=['DELETE'])
@login_required
@role_required('SELLER', 'ADMIN')
def delete_category(category_id):
    category = _editable_category_or_404(category_id)
    if category is None:
        return jsonify({'error': 'Not allowed'}), 403

    if category.products.count():
        return jsonify({
            'error': 'Category still has products, move or delete them first'
        }), 400

    db.session.delete(category)
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='CATEGORY_DELETE',
        target_type='CATEGORY',
        target_id=category_id,
    )
    return jsonify({'message': 'Category deleted'})


@bp.route('/api/categories/delete-many', methods=['POST'])
@login_required
@role_required('SELLER', 'ADMIN')
def delete_many_categories():
    data = request.get_json(silent=True) or {}
    ids = data.get('ids')
    if not isinstance(ids, list):
        return jsonify({'error': 'Invalid IDs'}), 400
    try:
        ids = [int(i) for i in ids]
    except (TypeError, ValueError):
        return jsonify({'error': 'Invalid IDs'}), 400

    query = Category.query.filter(Category.id.in_(ids))
    if not _is_admin():
        query = query.filter(Category.seller_id == current_user.id)

    in_use = {
        cid for (cid,) in db.session.query(Product.category_id).filter(
            Product.category_id.in_(ids)
        ).distinct()
    }

    count = 0
    for category in query.all():
        if category.id in in_use:
            continue
        db.session.delete(category)
        count += 1
    db.session.commit()

    return jsonify({
        'message': 'Categories deleted',
        'count': count,
        'skippedInUse': sorted(in_use),
    })
