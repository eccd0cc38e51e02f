from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from marketplace.extensions import db
from marketplace.models import (
    CartItem,
    Category,
    Complaint,
    Product,
    ProductImage,
    ProductVariant,
    UserRole,
)
from marketplace.middleware import role_required
from marketplace.serializers import product_to_dict
from marketplace.services.audit_service import log_audit
from marketplace.services.search_service import (
    filter_products,
    search_suggestions,
)
from marketplace.utils import (
    get_product_rating_summary,
    paginate_query,
    pagination_args,
    parse_bool,
    parse_decimal,
    parse_int,
)
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('products', __name__)


def _listing_response(query):
    page, limit = pagination_args()
    result = paginate_query(filter_products(query, request.args), page, limit)
    ratings = get_product_rating_summary([p.id for p in result['items']])

    products = []
    for p in result['items']:
        item = product_to_dict(p)
        item['rating'] = ratings.get(p.id, {'avg': 0, 'count': 0})
        products.append(item)

    return jsonify({
        'products': products,
        'total': result['total'],
        'page': result['page'],
        'pages': result['pages'],
        'limit': limit,
    })


def _normalize_tags(tags):
    if tags is None:
        return None
    if isinstance(tags, str):
        tags = tags.split(',')
    cleaned = [str(t).strip().lower() for t in tags if str(t).strip()]
    return ','.join(cleaned) or None


def _sync_images(product, images):
    if product.id:
        ProductImage.query.filter_by(product_id=product.id).delete(
            synchronize_session=False)
    for url in images or []:
        if url:
            db.session.add(ProductImage(product=product, url=url))


def _sync_variants(product, variants):
    """Bring the variant set in line with ``variants``.

    Existing variants are matched by ``id``, then by name, and updated in
    place so cart lines keep pointing at the same option. Variants left out
    are deleted along with the cart lines that reference them. Returns an
    error message or None.
    """
    existing = product.variants.all() if product.id else []
    by_id = {v.id: v for v in existing}
    by_name = {v.name: v for v in existing}

    matched = []
    kept = set()
    for raw in variants or []:
        name = (raw.get('name') or '').strip()
        price = parse_decimal(raw.get('price'))
        stock = parse_int(raw.get('stock'), 0)
        if not name or price is None or price < 0 or stock < 0:
            return 'Each variant needs a name, a price and a stock >= 0'

        variant = by_id.get(parse_int(raw.get('id')))
        if variant is None:
            variant = by_name.get(name)
        if variant is not None and variant.id in kept:
            variant = None
        if variant is not None:
            kept.add(variant.id)
        matched.append((variant, name, price, stock, raw.get('image')))

    removed = [v.id for v in existing if v.id not in kept]
    if removed:
        dropped = CartItem.query.filter(
            CartItem.variant_id.in_(removed)).delete(
                synchronize_session=False)
        ProductVariant.query.filter(ProductVariant.id.in_(removed)).delete(
            synchronize_session=False)
        logger.info("Product %s: removed variants %s, dropped %s cart lines",
                    product.id, removed, dropped)

    for variant, name, price, stock, image in matched:
        if variant is None:
            variant = ProductVariant(product=product)
            db.session.add(variant)
        variant.name = name
        variant.price = price
        variant.stock = stock
        variant.image = image
    return None


def _apply_product_fields(product, data, partial):
    """Copy request fields onto ``product``; returns an error or None."""
    if not partial or 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            return 'Title cannot be empty'
        product.title = title

    if not partial or 'price' in data:
        price = parse_decimal(data.get('price'))
        if price is None or price < 0:
            return 'Price must be a non-negative number'
        product.price = price

    if not partial or 'stock' in data:
        stock = parse_int(data.get('stock'), 0)
        if stock < 0:
            return 'Stock cannot be negative'
        product.stock = stock

    if not partial or 'categoryId' in data:
        category = db.session.get(
            Category, parse_int(data.get('categoryId'), 0))
        if category is None:
            return 'Category not found'
        product.category_id = category.id

    if 'description' in data:
        product.description = data.get('description')
    if 'image' in data:
        product.image = data.get('image')
    if 'oldPrice' in data:
        product.old_price = parse_decimal(data.get('oldPrice'))
    if 'tags' in data:
        product.tags = _normalize_tags(data.get('tags'))
    for key, attr in (('isFeatured', 'is_featured'),
                      ('isTrending', 'is_trending'),
                      ('isOnSale', 'is_on_sale')):
        if key in data:
            setattr(product, attr, parse_bool(data.get(key)))
    return None


def _owned_product(product_id):
    product = db.get_or_404(Product, product_id)
    if (current_user.role != UserRole.ADMIN
            and product.seller_id != current_user.id):
        return None
    return product


@bp.route('/api/products', methods=['GET'])
def list_products():
    return _listing_response(Product.query)


@bp.route('/api/products/suggestions', methods=['GET'])
def product_suggestions():
    return jsonify(search_suggestions(request.args.get('q', '')))


@bp.route('/api/products/<int:product_id>', methods=['GET'])
def product_detail(product_id):
    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({'error': 'Product not found'}), 404

    data = product_to_dict(product, detail=True)
    data['rating'] = get_product_rating_summary([product.id]).get(
        product.id, {'avg': 0, 'count': 0})
    return jsonify({'product': data})


@bp.route('/api/seller/products', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def seller_products():
    query = Product.query
    if current_user.role != UserRole.ADMIN:
        query = query.filter(Product.seller_id == current_user.id)
    return _listing_response(query)


@bp.route('/api/products', methods=['POST'])
@login_required
@role_required('SELLER', 'ADMIN')
def create_product():
    data = request.get_json(silent=True) or {}

    product = Product(
        seller_id=(
            None if current_user.role == UserRole.ADMIN
            else current_user.id),
    )
    error = _apply_product_fields(product, data, partial=False)
    if error:
        return jsonify({'error': error}), 400

    db.session.add(product)
    _sync_images(product, data.get('images'))
    error = _sync_variants(product, data.get('variants'))
    if error:
        db.session.rollback()
        return jsonify({'error': error}), 400
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='PRODUCT_CREATE',
        target_type='PRODUCT',
        target_id=product.id,
        payload={'title': product.title, 'price': float(product.price)}
    )

    return jsonify({
        'message': 'Product created',
        'product': product_to_dict(product, detail=True),
    }), 201


@bp.route('/api/products/<int:product_id>', methods=['PUT'])
@login_required
@role_required('SELLER', 'ADMIN')
def update_product(product_id):
    product = _owned_product(product_id)
    if product is None:
        return jsonify({'error': 'Not allowed'}), 403

    data = request.get_json(silent=True) or {}
    error = _apply_product_fields(product, data, partial=True)
    if error:
        db.session.rollback()
        return jsonify({'error': error}), 400

    # Images are replaced wholesale, variants synced in place
    if 'images' in data:
        _sync_images(product, data.get('images'))
    if 'variants' in data:
        error = _sync_variants(product, data.get('variants'))
        if error:
            db.session.rollback()
            return jsonify({'error': error}), 400

    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='PRODUCT_UPDATE',
        target_type='PRODUCT',
        target_id=product.id,
        payload={'fields': sorted(data.keys())}
    )

    return jsonify({
        'message': 'Product updated',
        'product': product_to_dict(product, detail=True),
    })


@bp.route('/api/products/<int:product_id>', methods=['DELETE'])
@login_required
@role_required('SELLER', 'ADMIN')
def delete_product(product_id):
    product = _owned_product(product_id)
    if product is None:
        return jsonify({'error': 'Not allowed'}), 403

    # Order history keeps its snapshot; the link is cleared
    for item in product.order_items:
        item.product_id = None
    Complaint.query.filter_by(product_id=product.id).update(
        {Complaint.product_id: None}, synchronize_session=False)
    db.session.delete(product)
    db.session.commit()

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='PRODUCT_DELETE',
        target_type='PRODUCT',
        target_id=product_id,
    )
    return jsonify({'message': 'Product deleted'})
