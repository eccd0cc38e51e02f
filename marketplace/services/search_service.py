from marketplace.models import Category, Product
from marketplace.utils import parse_decimal, parse_int
from sqlalchemy import or_
import re
import logging

logger = logging.getLogger(__name__)


def _sanitize_query(query):
    if not query:
        return None
    q = str(query).replace('\x00', '').strip()
    if not q:
        return None
    q = re.sub(r'(--|/\*|\*/|;|["\'`\\#])', ' ', q)
    q = re.sub(r'\s+', ' ', q).strip()
    return q[:80] if len(q) > 80 else q


def filter_products(query, args):
    """Apply the categoryId/minPrice/maxPrice/search listing filters."""
    category_id = parse_int(args.get('categoryId'))
    if category_id:
        query = query.filter(Product.category_id == category_id)

    min_price = parse_decimal(args.get('minPrice'))
    if min_price is not None:
        query = query.filter(Product.price >= min_price)

    max_price = parse_decimal(args.get('maxPrice'))
    if max_price is not None:
        query = query.filter(Product.price <= max_price)

    search = _sanitize_query(args.get('search'))
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            Product.title.ilike(pattern),
            Product.tags.ilike(pattern),
        ))

    return query.order_by(Product.created_at.desc(), Product.id.desc())


def search_suggestions(query, limit=8):
    """Product titles and category names matching ``query``.

    Prefix matches rank before substring matches.
    """
    q = _sanitize_query(query)
    if not q:
        return {'products': [], 'categories': []}

    q_lower = q.lower()
    pattern = f'%{q}%'

    products = Product.query.filter(
        Product.title.ilike(pattern)
    ).order_by(Product.title).limit(limit * 3).all()
    categories = Category.query.filter(
        Category.name.ilike(pattern)
    ).order_by(Category.name).limit(limit * 3).all()

    def _rank(text):
        return (0 if text.lower().startswith(q_lower) else 1, text.lower())

    products = sorted(products, key=lambda p: _rank(p.title))[:limit]

    seen = set()
    category_names = []
    for category in sorted(categories, key=lambda c: _rank(c.name)):
        key = category.name.lower()
        if key in seen:
            continue
        seen.add(key)
        category_names.append({'id': category.id, 'name': category.name})
        if len(category_names) >= limit:
            break

    return {
        'products': [
            {'id': p.id, 'title': p.title, 'image': p.image}
            for p in products
        ],
        'categories': category_names,
    }
