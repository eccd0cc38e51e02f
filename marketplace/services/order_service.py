from marketplace.extensions import db
from marketplace.models import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
    Product,
    ProductVariant,
    TrackingHistory,
)
from decimal import Decimal
import logging

logger = logging.getLogger(__name__)

CHECKOUT_FIELDS = ('method', 'address', 'city', 'phone')


class OrderError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _line_unit_price(item: CartItem) -> Decimal:
    return Decimal(str(item.unit_price))


def _check_stock(items):
    for item in items:
        product = item.product
        if item.variant_id is not None and item.variant is None:
            raise OrderError(
                f'The selected option for {product.title} is no longer '
                f'available, please remove it from your cart')
        if item.qty > product.stock:
            raise OrderError(f'Not enough stock for {product.title}')
        if item.variant is not None and item.qty > item.variant.stock:
            raise OrderError(
                f'Not enough stock for {product.title} '
                f'({item.variant.name})')


def _decrement_stock(model, object_id, qty, title):
    # Guarded update: never lets a concurrent checkout oversell.
    updated = model.query.filter(
        model.id == object_id,
        model.stock >= qty,
    ).update(
        {model.stock: model.stock - qty},
        synchronize_session=False,
    )
    if updated != 1:
        raise OrderError(f'Not enough stock for {title}')


def build_order_summary(order, buyer, lines):
    """Plain-data snapshot of a placed order for the notification fan-out."""
    sellers = {}
    items = []
    for product, variant_name, qty, price in lines:
        entry = {
            'title': product.title,
            'variant': variant_name,
            'qty': qty,
            'price': float(price),
        }
        items.append(entry)
        seller = product.seller
        if seller is None:
            continue
        bucket = sellers.setdefault(seller.id, {
            'email': seller.email,
            'phone': seller.phone,
            'whatsapp_api_key': seller.whatsapp_api_key,
            'items': [],
        })
        bucket['items'].append(entry)

    return {
        'order_id': order.id,
        'user_id': buyer.id,
        'buyer_name': buyer.name or buyer.email,
        'buyer_email': buyer.email,
        'total': float(order.total),
        'address': order.shipping_address,
        'city': order.shipping_city,
        'phone': order.shipping_phone,
        'items': items,
        'sellers': sellers,
    }


def checkout_cart(user, method, address, city, phone):
    """Turn the user's cart into an order in a single transaction.

    Creates the order with snapshotted line prices, a PENDING payment for the
    same amount, decrements stock, appends the first tracking entry and
    empties the cart. Nothing is written if any step fails.

    Returns ``(order, summary)``.
    """
    cart = Cart.query.filter_by(user_id=user.id).first()
    items = cart.items.all() if cart else []
    if not items:
        raise OrderError('Cart is empty')

    _check_stock(items)

    lines = []
    for item in items:
        variant_name = item.variant.name if item.variant is not None else None
        lines.append(
            (item.product, variant_name, item.qty, _line_unit_price(item)))
    total = sum((price * qty for _, _, qty, price in lines), Decimal('0'))

    try:
        order = Order(
            user_id=user.id,
            total=total,
            status=OrderStatus.PENDING.value,
            shipping_address=address,
            shipping_city=city,
            shipping_phone=phone,
        )
        db.session.add(order)
        db.session.flush()

        for item, (product, variant_name, qty, price) in zip(items, lines):
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                variant_name=variant_name,
                qty=qty,
                price=price,
            ))
            _decrement_stock(Product, product.id, qty, product.title)
            if item.variant_id is not None:
                _decrement_stock(
                    ProductVariant, item.variant_id, qty, product.title)

        db.session.add(Payment(
            order_id=order.id,
            method=method,
            amount=total,
            status=PaymentStatus.PENDING,
        ))
        db.session.add(TrackingHistory(
            order_id=order.id,
            status=OrderStatus.PENDING.value,
            message='Order placed',
        ))

        CartItem.query.filter_by(cart_id=cart.id).delete(
            synchronize_session=False)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Order %s placed by user %s, total %s",
                order.id, user.id, total)
    return order, build_order_summary(order, user, lines)


def seller_can_manage(order, seller_id) -> bool:
    return seller_id in order.seller_ids()


def update_order_status(order, status, message=None):
    """Move an order to ``status`` and append a tracking entry.

    A DELIVERED order is final. Reaching DELIVERED marks the payment
    SUCCESS. Status, payment and tracking commit together.
    """
    status = (status or '').strip().upper()
    if not status:
        raise OrderError('Status is required')
    if order.status == OrderStatus.DELIVERED.value:
        raise OrderError('Delivered orders cannot be changed')

    try:
        order.status = status
        if status == OrderStatus.DELIVERED.value and order.payment is not None:
            if order.payment.status != PaymentStatus.SUCCESS:
                order.payment.status = PaymentStatus.SUCCESS
        db.session.add(TrackingHistory(
            order_id=order.id,
            status=status,
            message=message or f'Order moved to {status}',
        ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Order %s moved to %s", order.id, status)
    return order


def restore_order_stock(order: Order):
    for item in order.items:
        if item.product_id is None:
            continue
        product = db.session.get(Product, item.product_id)
        if product:
            product.stock += item.qty
        if item.variant_name and product:
            variant = product.variants.filter_by(
                name=item.variant_name).first()
            if variant:
                variant.stock += item.qty


def delete_pending_order(order: Order):
    if order.status != OrderStatus.PENDING.value:
        raise OrderError('Only pending orders can be deleted')
    try:
        restore_order_stock(order)
        db.session.delete(order)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
