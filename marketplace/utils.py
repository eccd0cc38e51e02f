from flask import current_app, request
from sqlalchemy import func
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from marketplace.extensions import db
from marketplace.models import Review
import logging

logger = logging.getLogger(__name__)

THREAD_SEPARATOR = '\n\n'


def parse_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_decimal(value, default=None):
    if value is None or value == '':
        return default
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'y')


def parse_date(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None


def money(value) -> float:
    return float(value or 0)


def iso(dt):
    return dt.isoformat() if dt else None


def pagination_args(default_limit=None):
    """Read ``page`` and ``limit``; ``limit`` is capped at MAX_PER_PAGE."""
    if default_limit is None:
        default_limit = current_app.config.get('ITEMS_PER_PAGE', 10)
    max_limit = current_app.config.get('MAX_PER_PAGE', 100)
    page = max(parse_int(request.args.get('page'), 1), 1)
    limit = parse_int(request.args.get('limit'), default_limit)
    limit = min(max(limit, 1), max_limit)
    return page, limit


def paginate_query(query, page=1, per_page=20):
    """Page a query; past-the-end pages come back empty instead of 404."""
    page_obj = query.paginate(page=page, per_page=per_page, error_out=False)
    return {
        'items': page_obj.items,
        'page': page_obj.page,
        'pages': page_obj.pages,
        'total': page_obj.total,
    }


def append_thread_message(existing, role, name, text):
    """Append one ``[ROLE - Name]: text`` block to a conversation field."""
    entry = f"[{role} - {name or role}]: {text}"
    if not existing:
        return entry
    return existing + THREAD_SEPARATOR + entry


def get_product_rating_summary(product_ids):
    """Map product id to ``{'avg', 'count'}``; unrated products are absent."""
    if not product_ids:
        return {}

    rows = db.session.query(
        Review.product_id,
        func.avg(Review.rating),
        func.count(Review.id),
    ).filter(
        Review.product_id.in_(product_ids)
    ).group_by(Review.product_id).all()

    return {
        product_id: {'avg': round(float(avg or 0), 2), 'count': count}
        for product_id, avg, count in rows
    }


def daily_buckets(days=7, now=None):
    """Return the last ``days`` dates (oldest first) as ISO strings."""
    now = now or datetime.utcnow()
    start = (now - timedelta(days=days - 1)).date()
    return [(start + timedelta(days=i)).isoformat() for i in range(days)]
