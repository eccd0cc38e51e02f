"""CSV import and export for products and categories.

Headers are matched case-insensitively against a small alias table, so
files exported here round-trip and hand-made sheets with slightly
different column names still import. Each product row is committed on its
own; a bad row is rolled back and skipped without stopping the batch.
"""
from marketplace.extensions import db
from marketplace.models import Category, Product, UserRole
from marketplace.utils import parse_bool, parse_decimal, parse_int
from sqlalchemy import func
from decimal import Decimal
import csv
import io
import re
import logging

logger = logging.getLogger(__name__)

PRODUCT_EXPORT_HEADERS = [
    'ID', 'Title', 'Description', 'Price', 'Stock', 'Image URL',
    'Category', 'Featured', 'Trending', 'On Sale', 'Old Price', 'Tags',
]

CATEGORY_EXPORT_HEADERS = ['id', 'name', 'image']

PRODUCT_ALIASES = {
    'id': ('id', 'product id', 'productid'),
    'title': ('title', 'name', 'product', 'product name'),
    'description': ('description', 'desc'),
    'price': ('price',),
    'stock': ('stock', 'qty', 'quantity'),
    'image': ('image url', 'imageurl', 'image'),
    'category': ('category', 'category name'),
    'is_featured': ('featured', 'is featured', 'isfeatured'),
    'is_trending': ('trending', 'is trending', 'istrending'),
    'is_on_sale': ('on sale', 'onsale', 'is on sale', 'isonsale'),
    'old_price': ('old price', 'oldprice'),
    'tags': ('tags',),
}

CATEGORY_ALIASES = {
    'id': ('id',),
    'name': ('name', 'category', 'category name'),
    'image': ('image', 'image url', 'imageurl'),
}


class BulkImportError(Exception):
    pass


def _to_text(value):
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, Decimal):
        return f'{value:.2f}'
    return str(value)


def _render_csv(headers, rows):
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_to_text(v) for v in row])
    return buffer.getvalue()


def _read_rows(raw, aliases):
    """Yield dicts keyed by canonical field name."""
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8-sig')
    reader = csv.DictReader(io.StringIO(raw))
    if not reader.fieldnames:
        raise BulkImportError('CSV file has no header row')

    lookup = {}
    for header in reader.fieldnames:
        key = (header or '').strip().lower()
        for field, names in aliases.items():
            if key in names and field not in lookup:
                lookup[field] = header

    for row in reader:
        yield {
            field: (row.get(header) or '').strip()
            for field, header in lookup.items()
        }


def _normalize_tags(raw):
    parts = [t.strip().lower() for t in re.split(r'[,|]', raw or '')]
    return ','.join(t for t in parts if t)


def _owner_scope(principal):
    if principal.role == UserRole.ADMIN:
        return None
    return principal.id


def export_products(principal):
    query = Product.query
    seller_id = _owner_scope(principal)
    if seller_id is not None:
        query = query.filter(Product.seller_id == seller_id)

    rows = []
    for p in query.order_by(Product.id).all():
        rows.append([
            p.id, p.title, p.description, p.price, p.stock, p.image,
            p.category.name if p.category else '',
            p.is_featured, p.is_trending, p.is_on_sale, p.old_price,
            ', '.join(p.tag_list),
        ])
    return _render_csv(PRODUCT_EXPORT_HEADERS, rows)


def export_categories(principal):
    query = Category.query
    seller_id = _owner_scope(principal)
    if seller_id is not None:
        query = query.filter(Category.seller_id == seller_id)
    rows = [[c.id, c.name, c.image] for c in query.order_by(Category.id)]
    return _render_csv(CATEGORY_EXPORT_HEADERS, rows)


def _find_or_create_category(name, seller_id):
    category = Category.query.filter(
        func.lower(Category.name) == name.lower()
    ).first()
    if category:
        return category
    category = Category(name=name, image='', seller_id=seller_id)
    db.session.add(category)
    db.session.flush()
    return category


def _match_product(row, seller_id):
    product_id = parse_int(row.get('id'))
    if product_id:
        product = db.session.get(Product, product_id)
        # An explicit ID only matches something the caller may edit
        if product and (seller_id is None or product.seller_id == seller_id):
            return product
    if row.get('title'):
        query = Product.query.filter(
            func.lower(Product.title) == row['title'].lower())
        if seller_id is None:
            query = query.filter(Product.seller_id.is_(None))
        else:
            query = query.filter(Product.seller_id == seller_id)
        return query.first()
    return None


def _apply_product_row(product, row, category):
    if row.get('title'):
        product.title = row['title']
    if 'description' in row:
        product.description = row['description'] or None
    price = parse_decimal(row.get('price'))
    if price is not None:
        product.price = price
    elif product.price is None:
        product.price = Decimal('0')
    stock = parse_int(row.get('stock'))
    if stock is not None:
        product.stock = max(stock, 0)
    elif product.stock is None:
        product.stock = 0
    if row.get('image'):
        product.image = row['image']
    if category is not None:
        product.category_id = category.id
    for field in ('is_featured', 'is_trending', 'is_on_sale'):
        if field in row:
            setattr(product, field, parse_bool(row[field]))
    if 'old_price' in row:
        product.old_price = parse_decimal(row['old_price'])
    if 'tags' in row:
        product.tags = _normalize_tags(row['tags']) or None


def import_products(principal, raw):
    """Create or update products from CSV. Returns counts per outcome."""
    seller_id = _owner_scope(principal)
    result = {'created': 0, 'updated': 0, 'skipped': 0}

    for line_no, row in enumerate(_read_rows(raw, PRODUCT_ALIASES), start=2):
        try:
            category = None
            if row.get('category'):
                category = _find_or_create_category(
                    row['category'], seller_id)

            product = _match_product(row, seller_id)
            if product is None:
                if not row.get('title') or category is None:
                    logger.warning(
                        "Bulk import line %s skipped: title and category "
                        "are required for new products", line_no)
                    result['skipped'] += 1
                    db.session.rollback()
                    continue
                product = Product(seller_id=seller_id)
                db.session.add(product)
                outcome = 'created'
            else:
                outcome = 'updated'

            _apply_product_row(product, row, category)
            db.session.commit()
            result[outcome] += 1
        except Exception as e:
            db.session.rollback()
            logger.warning("Bulk import line %s failed: %s", line_no, e)
            result['skipped'] += 1

    logger.info("Product import by %s %s: %s",
                principal.role.value, principal.id, result)
    return result


def import_categories(principal, raw):
    seller_id = _owner_scope(principal)
    result = {'created': 0, 'updated': 0, 'skipped': 0}

    for line_no, row in enumerate(_read_rows(raw, CATEGORY_ALIASES), start=2):
        name = row.get('name')
        if not name:
            result['skipped'] += 1
            continue
        try:
            query = Category.query.filter(
                func.lower(Category.name) == name.lower())
            if seller_id is not None:
                query = query.filter(Category.seller_id == seller_id)
            category = query.first()
            if category:
                if row.get('image'):
                    category.image = row['image']
                outcome = 'updated'
            else:
                db.session.add(Category(
                    name=name,
                    image=row.get('image') or '',
                    seller_id=seller_id,
                ))
                outcome = 'created'
            db.session.commit()
            result[outcome] += 1
        except Exception as e:
            db.session.rollback()
            logger.warning("Category import line %s failed: %s", line_no, e)
            result['skipped'] += 1

    return result
