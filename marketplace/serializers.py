"""JSON shapes shared by several blueprints.

Keys are camelCase; the storefront and dashboards consume them as-is.
"""
from marketplace.models import TrackingHistory
from marketplace.utils import iso, money


def user_to_dict(user):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'role': user.role.value,
        'address': user.address,
        'city': user.city,
        'phone': user.phone,
        'createdAt': iso(user.created_at),
    }


def seller_to_dict(seller):
    return {
        'id': seller.id,
        'name': seller.name,
        'email': seller.email,
        'role': seller.role.value,
        'approved': seller.approved,
        'phone': seller.phone,
        'hasWhatsapp': bool(seller.whatsapp_api_key),
        'createdAt': iso(seller.created_at),
    }


def category_to_dict(category):
    return {
        'id': category.id,
        'name': category.name,
        'image': category.image,
        'sellerId': category.seller_id,
        'isStarred': category.is_starred,
        'createdAt': iso(category.created_at),
    }


def variant_to_dict(variant):
    return {
        'id': variant.id,
        'name': variant.name,
        'price': money(variant.price),
        'stock': variant.stock,
        'image': variant.image,
    }


def product_to_dict(product, detail=False):
    data = {
        'id': product.id,
        'title': product.title,
        'description': product.description,
        'price': money(product.price),
        'oldPrice': (
            money(product.old_price) if product.old_price is not None
            else None),
        'stock': product.stock,
        'image': product.image,
        'tags': product.tag_list,
        'isFeatured': product.is_featured,
        'isTrending': product.is_trending,
        'isOnSale': product.is_on_sale,
        'sellerId': product.seller_id,
        'categoryId': product.category_id,
        'category': (
            {'id': product.category.id, 'name': product.category.name}
            if product.category else None),
        'seller': (
            {'id': product.seller.id, 'name': product.seller.name}
            if product.seller else None),
        'images': [
            {'id': img.id, 'url': img.url} for img in product.images
        ],
        'createdAt': iso(product.created_at),
    }
    if detail:
        data['variants'] = [variant_to_dict(v) for v in product.variants]
    return data


def cart_item_to_dict(item):
    product = item.product
    return {
        'id': item.id,
        'productId': item.product_id,
        'variantId': item.variant_id,
        'qty': item.qty,
        'unitPrice': money(item.unit_price),
        'product': {
            'id': product.id,
            'title': product.title,
            'price': money(product.price),
            'stock': product.stock,
            'image': product.image,
        },
        'variant': (
            variant_to_dict(item.variant) if item.variant is not None
            else None),
    }


def tracking_to_dict(entry):
    return {
        'id': entry.id,
        'status': entry.status,
        'message': entry.message,
        'createdAt': iso(entry.created_at),
    }


def order_item_to_dict(item):
    product = item.product
    return {
        'id': item.id,
        'productId': item.product_id,
        'variantName': item.variant_name,
        'qty': item.qty,
        'price': money(item.price),
        'product': (
            {
                'id': product.id,
                'title': product.title,
                'image': product.image,
                'sellerId': product.seller_id,
            } if product else None),
    }


def payment_to_dict(payment):
    if payment is None:
        return None
    return {
        'id': payment.id,
        'method': payment.method,
        'amount': money(payment.amount),
        'status': payment.status.value,
        'transactionId': payment.transaction_id,
        'createdAt': iso(payment.created_at),
    }


def order_to_dict(order, with_tracking=False):
    data = {
        'id': order.id,
        'userId': order.user_id,
        'total': money(order.total),
        'status': order.status,
        'shippingAddress': order.shipping_address,
        'shippingCity': order.shipping_city,
        'shippingPhone': order.shipping_phone,
        'createdAt': iso(order.created_at),
        'user': (
            {'id': order.user.id, 'name': order.user.name,
             'email': order.user.email}
            if order.user else None),
        'items': [order_item_to_dict(i) for i in order.items],
        'payment': payment_to_dict(order.payment),
    }
    if with_tracking:
        data['trackingHistory'] = [
            tracking_to_dict(t) for t in ordered_tracking(order)
        ]
    return data


def ordered_tracking(order):
    return order.tracking_history.order_by(
        TrackingHistory.created_at.asc(), TrackingHistory.id.asc()
    ).all()


def review_to_dict(review):
    return {
        'id': review.id,
        'userId': review.user_id,
        'productId': review.product_id,
        'rating': review.rating,
        'comment': review.comment,
        'reply': review.reply,
        'createdAt': iso(review.created_at),
        'user': {'id': review.user.id, 'name': review.user.name},
        'product': (
            {'id': review.product.id, 'title': review.product.title}
            if review.product else None),
    }


def complaint_to_dict(complaint):
    return {
        'id': complaint.id,
        'userId': complaint.user_id,
        'sellerId': complaint.seller_id,
        'productId': complaint.product_id,
        'orderId': complaint.order_id,
        'subject': complaint.subject,
        'message': complaint.message,
        'status': complaint.status,
        'sellerReply': complaint.conversation,
        'createdAt': iso(complaint.created_at),
        'user': (
            {'id': complaint.user.id, 'name': complaint.user.name,
             'email': complaint.user.email}
            if complaint.user else None),
    }


def notification_to_dict(notification):
    return {
        'id': notification.id,
        'userId': notification.user_id,
        'sellerId': notification.seller_id,
        'role': notification.role,
        'message': notification.message,
        'link': notification.link,
        'read': notification.read,
        'createdAt': iso(notification.created_at),
    }


def settings_to_dict(settings):
    return {
        'storeName': settings.store_name,
        'logoUrl': settings.logo_url,
        'bannerUrl': settings.banner_url,
        'primaryColor': settings.primary_color,
        'categoriesLimit': settings.categories_limit,
        'updatedAt': iso(settings.updated_at),
    }
