from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from marketplace.extensions import db
from marketplace.models import Cart, CartItem, Product, ProductVariant
from marketplace.middleware import role_required
from marketplace.serializers import cart_item_to_dict
from marketplace.utils import money, parse_int
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('cart', __name__)


def _get_or_create_cart():
    cart = Cart.query.filter_by(user_id=current_user.id).first()
    if not cart:
        cart = Cart(user_id=current_user.id)
        db.session.add(cart)
        db.session.flush()
    return cart


def _available_stock(product, variant):
    if variant is not None:
        return min(product.stock, variant.stock)
    return product.stock


def _own_cart_item(item_id):
    item = db.session.get(CartItem, item_id)
    if item is None:
        return None, (jsonify({'error': 'Cart item not found'}), 404)
    if item.cart.user_id != current_user.id:
        return None, (jsonify({'error': 'Not allowed'}), 403)
    return item, None


@bp.route('/api/cart', methods=['GET'])
@login_required
@role_required('USER')
def get_cart():
    cart = _get_or_create_cart()
    db.session.commit()

    items = cart.items.order_by(CartItem.id).all()
    total = sum(
        (Decimal(str(i.unit_price)) * i.qty for i in items), Decimal('0'))

    return jsonify({
        'cart': {
            'id': cart.id,
            'items': [cart_item_to_dict(i) for i in items],
            'totalItems': sum(i.qty for i in items),
            'total': money(total),
        }
    })


@bp.route('/api/cart/items', methods=['POST'])
@login_required
@role_required('USER')
def add_cart_item():
    data = request.get_json(silent=True) or {}
    product_id = parse_int(data.get('productId'))
    variant_id = parse_int(data.get('variantId'))
    qty = parse_int(data.get('qty'), 1)

    if not product_id or qty is None or qty <= 0:
        return jsonify({'error': 'Invalid product or quantity'}), 400

    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({'error': 'Product not found'}), 404

    variant = None
    if variant_id:
        variant = db.session.get(ProductVariant, variant_id)
        if variant is None or variant.product_id != product.id:
            return jsonify({'error': 'Variant not found'}), 404

    cart = _get_or_create_cart()

    # Same product and variant merge into one line
    cart_item = CartItem.query.filter_by(
        cart_id=cart.id,
        product_id=product.id,
        variant_id=variant.id if variant else None,
    ).first()

    new_qty = qty + (cart_item.qty if cart_item else 0)
    if new_qty > _available_stock(product, variant):
        db.session.rollback()
        return jsonify({'error': 'Insufficient stock'}), 400

    if cart_item:
        cart_item.qty = new_qty
    else:
        cart_item = CartItem(
            cart_id=cart.id,
            product_id=product.id,
            variant_id=variant.id if variant else None,
            qty=qty,
        )
        db.session.add(cart_item)

    db.session.commit()

    return jsonify({
        'message': 'Product added to cart',
        'item': cart_item_to_dict(cart_item),
    }), 201


@bp.route('/api/cart/items/<int:item_id>', methods=['PUT'])
@login_required
@role_required('USER')
def update_cart_item(item_id):
    data = request.get_json(silent=True) or {}
    qty = parse_int(data.get('qty'))
    if qty is None or qty <= 0:
        return jsonify({'error': 'Quantity must be greater than 0'}), 400

    item, error = _own_cart_item(item_id)
    if error:
        return error

    if qty > _available_stock(item.product, item.variant):
        return jsonify({'error': 'Insufficient stock'}), 400

    item.qty = qty
    db.session.commit()

    return jsonify({
        'message': 'Cart item updated',
        'item': cart_item_to_dict(item),
    })


@bp.route('/api/cart/items/<int:item_id>', methods=['DELETE'])
@login_required
@role_required('USER')
def delete_cart_item(item_id):
    item, error = _own_cart_item(item_id)
    if error:
        return error

    db.session.delete(item)
    db.session.commit()

    return jsonify({'message': 'Cart item removed'})
