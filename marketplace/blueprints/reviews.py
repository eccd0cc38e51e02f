from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from sqlalchemy import func
from marketplace.extensions import db
from marketplace.models import Product, Review, UserRole
from marketplace.middleware import role_required
from marketplace.serializers import review_to_dict
from marketplace.services.notification_service import (
    notify_review_created,
    notify_review_reply,
)
from marketplace.services.side_effects import dispatch
from marketplace.utils import (
    append_thread_message,
    paginate_query,
    pagination_args,
    parse_int,
)
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('reviews', __name__)


def _filtered_reviews(query):
    search = (request.args.get('search') or '').strip()
    if search:
        query = query.filter(Review.comment.ilike(f'%{search}%'))

    min_rating = parse_int(request.args.get('minRating'), 0)
    max_rating = parse_int(request.args.get('maxRating'), 5)
    query = query.filter(Review.rating >= min_rating,
                         Review.rating <= max_rating)

    if (request.args.get('sort') or 'desc').lower() == 'asc':
        return query.order_by(Review.created_at.asc(), Review.id.asc())
    return query.order_by(Review.created_at.desc(), Review.id.desc())


def _review_page(query):
    page, limit = pagination_args()
    result = paginate_query(_filtered_reviews(query), page, limit)
    return jsonify({
        'page': result['page'],
        'limit': limit,
        'total': result['total'],
        'pages': result['pages'],
        'reviews': [review_to_dict(r) for r in result['items']],
    })


@bp.route('/api/reviews', methods=['POST'])
@login_required
@role_required('USER')
def create_review():
    data = request.get_json(silent=True) or {}
    product_id = parse_int(data.get('productId'))
    rating = parse_int(data.get('rating'))

    if not product_id or rating is None:
        return jsonify({'error': 'Product and rating required'}), 400
    if not 1 <= rating <= 5:
        return jsonify({'error': 'Rating must be between 1 and 5'}), 400

    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({'error': 'Product not found'}), 404

    review = Review(
        user_id=current_user.id,
        product_id=product.id,
        rating=rating,
        comment=(data.get('comment') or '').strip() or None,
    )
    db.session.add(review)
    db.session.commit()

    seller = product.seller
    dispatch(
        notify_review_created,
        review.id,
        seller.id if seller else None,
        seller.email if seller else None,
        current_user.name or current_user.email,
        product.title,
        rating,
        review.comment,
    )

    return jsonify({
        'message': 'Review created & seller notified',
        'review': review_to_dict(review),
    }), 201


@bp.route('/api/reviews/product/<int:product_id>', methods=['GET'])
@login_required
def product_reviews(product_id):
    return _review_page(Review.query.filter(Review.product_id == product_id))


@bp.route('/api/reviews/me', methods=['GET'])
@login_required
@role_required('USER')
def my_reviews():
    return _review_page(Review.query.filter(Review.user_id == current_user.id))


@bp.route('/api/reviews/seller', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def seller_reviews():
    products = Product.query
    if current_user.role == UserRole.SELLER:
        products = products.filter(Product.seller_id == current_user.id)
    products = products.order_by(Product.id).all()

    stats = dict(
        (pid, (count, avg)) for pid, count, avg in db.session.query(
            Review.product_id,
            func.count(Review.id),
            func.avg(Review.rating),
        ).filter(
            Review.product_id.in_([p.id for p in products])
        ).group_by(Review.product_id).all()
    )

    result = []
    for p in products:
        count, avg = stats.get(p.id, (0, 0))
        reviews = p.reviews.order_by(Review.created_at.desc()).all()
        result.append({
            'productId': p.id,
            'title': p.title,
            'totalReviews': count,
            'avgRating': round(float(avg or 0), 2),
            'reviews': [review_to_dict(r) for r in reviews],
        })

    return jsonify({'products': result})


@bp.route('/api/reviews/<int:review_id>/reply', methods=['POST'])
@login_required
@role_required('SELLER', 'ADMIN')
def reply_review(review_id):
    data = request.get_json(silent=True) or {}
    reply = (data.get('reply') or '').strip()
    if not reply:
        return jsonify({'error': 'Reply cannot be empty'}), 400

    review = db.session.get(Review, review_id)
    if review is None:
        return jsonify({'error': 'Review not found'}), 404
    if (current_user.role == UserRole.SELLER
            and review.product.seller_id != current_user.id):
        return jsonify({'error': 'Not allowed'}), 403

    review.reply = append_thread_message(
        review.reply,
        current_user.role.value,
        current_user.name,
        reply,
    )
    db.session.commit()

    dispatch(
        notify_review_reply,
        review.id,
        review.user_id,
        review.product.title,
    )

    return jsonify({
        'message': 'Reply added & user notified',
        'review': review_to_dict(review),
    })
