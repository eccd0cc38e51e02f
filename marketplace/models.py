from marketplace.extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from sqlalchemy import CheckConstraint
import enum
import json


class UserRole(enum.Enum):
    USER = 'USER'
    SELLER = 'SELLER'
    ADMIN = 'ADMIN'


class OrderStatus(enum.Enum):
    # Order.status is stored as a plain string; these are the values the
    # workflow itself writes or counts.
    PENDING = 'PENDING'
    PROCESSING = 'PROCESSING'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'
    PAYMENT_FAILED = 'PAYMENT_FAILED'


class PaymentStatus(enum.Enum):
    PENDING = 'PENDING'
    SUCCESS = 'SUCCESS'
    FAILED = 'FAILED'
    REFUNDED = 'REFUNDED'


class ComplaintStatus(enum.Enum):
    PENDING = 'PENDING'
    PROCESSING = 'PROCESSING'
    RESOLVED = 'RESOLVED'


class PasswordMixin:

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)


class User(UserMixin, PasswordMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    role = db.Column(
        db.Enum(UserRole),
        nullable=False,
        default=UserRole.USER)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    cart = db.relationship(
        'Cart',
        backref='user',
        uselist=False,
        cascade='all, delete-orphan')
    orders = db.relationship('Order', backref='user', lazy='dynamic')
    reviews = db.relationship('Review', backref='user', lazy='dynamic')
    complaints = db.relationship('Complaint', backref='user', lazy='dynamic')

    def __repr__(self):
        return f'<User {self.email}>'


class Seller(UserMixin, PasswordMixin, db.Model):
    __tablename__ = 'sellers'

    # Sellers live in their own table; the principal role is fixed.
    role = UserRole.SELLER

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    approved = db.Column(db.Boolean, default=False, nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    # CallMeBot key for WhatsApp order alerts
    whatsapp_api_key = db.Column(db.String(100), nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    products = db.relationship('Product', backref='seller', lazy='dynamic')
    categories = db.relationship('Category', backref='seller', lazy='dynamic')

    def __repr__(self):
        return f'<Seller {self.email} approved={self.approved}>'


class Category(db.Model):
    __tablename__ = 'categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    image = db.Column(db.Text, nullable=True)
    # NULL seller means a global (admin) category
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'sellers.id',
            ondelete='SET NULL'),
        nullable=True,
        index=True)
    is_starred = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    products = db.relationship('Product', backref='category', lazy='dynamic')

    def __repr__(self):
        return f'<Category {self.name}>'


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    old_price = db.Column(db.Numeric(10, 2), nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0)
    # Featured image (URL or data URI)
    image = db.Column(db.Text, nullable=True)
    # Comma separated, lower case
    tags = db.Column(db.Text, nullable=True)
    is_featured = db.Column(db.Boolean, default=False, nullable=False)
    is_trending = db.Column(db.Boolean, default=False, nullable=False)
    is_on_sale = db.Column(db.Boolean, default=False, nullable=False)
    # NULL seller means a global catalog item
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey('sellers.id'),
        nullable=True,
        index=True)
    category_id = db.Column(
        db.Integer,
        db.ForeignKey('categories.id'),
        nullable=False,
        index=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    # Relationships
    images = db.relationship(
        'ProductImage',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')
    variants = db.relationship(
        'ProductVariant',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')
    cart_items = db.relationship(
        'CartItem',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')
    order_items = db.relationship(
        'OrderItem',
        backref='product',
        lazy='dynamic')
    reviews = db.relationship(
        'Review',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_product_stock'),
    )

    @property
    def tag_list(self):
        return [t for t in (self.tags or '').split(',') if t]

    def __repr__(self):
        return f'<Product {self.title}>'


class ProductImage(db.Model):
    __tablename__ = 'product_images'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    url = db.Column(db.Text, nullable=False)

    def __repr__(self):
        return f'<ProductImage {self.id} product={self.product_id}>'


class ProductVariant(db.Model):
    __tablename__ = 'product_variants'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    image = db.Column(db.Text, nullable=True)

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_variant_stock'),
    )

    def __repr__(self):
        return f'<ProductVariant {self.name} product={self.product_id}>'


class Cart(db.Model):
    __tablename__ = 'carts'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        unique=True,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    items = db.relationship(
        'CartItem',
        backref='cart',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Cart {self.id} for user {self.user_id}>'


class CartItem(db.Model):
    __tablename__ = 'cart_items'

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'carts.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False)
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'product_variants.id',
            ondelete='SET NULL'),
        nullable=True)
    qty = db.Column(db.Integer, nullable=False, default=1)

    variant = db.relationship('ProductVariant')

    __table_args__ = (
        CheckConstraint('qty > 0', name='check_cart_qty_positive'),
    )

    @property
    def unit_price(self):
        if self.variant is not None:
            return self.variant.price
        return self.product.price

    def __repr__(self):
        return (
            f"<CartItem cart={self.cart_id} product={self.product_id} "
            f"qty={self.qty}>"
        )


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True)
    total = db.Column(db.Numeric(10, 2), nullable=False)
    # Open set of values, see OrderStatus
    status = db.Column(
        db.String(30),
        default=OrderStatus.PENDING.value,
        nullable=False,
        index=True)
    shipping_address = db.Column(db.Text, nullable=True)
    shipping_city = db.Column(db.String(100), nullable=True)
    shipping_phone = db.Column(db.String(30), nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    items = db.relationship(
        'OrderItem',
        backref='order',
        lazy='dynamic',
        cascade='all, delete-orphan')
    payment = db.relationship(
        'Payment',
        backref='order',
        uselist=False,
        cascade='all, delete-orphan')
    tracking_history = db.relationship(
        'TrackingHistory',
        backref='order',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def seller_ids(self):
        return {
            item.product.seller_id
            for item in self.items
            if item.product is not None and item.product.seller_id
        }

    def __repr__(self):
        return f'<Order {self.id} status={self.status}>'


class OrderItem(db.Model):
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='SET NULL'),
        nullable=True,
        index=True)
    variant_name = db.Column(db.String(100), nullable=True)
    qty = db.Column(db.Integer, nullable=False)
    # Order snapshot price.
    price = db.Column(db.Numeric(10, 2), nullable=False)

    __table_args__ = (
        CheckConstraint('qty > 0', name='check_order_qty_positive'),
    )

    def __repr__(self):
        return (
            f"<OrderItem {self.id} order={self.order_id} "
            f"product={self.product_id}>"
        )


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        unique=True,
        nullable=False)
    method = db.Column(db.String(30), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(
        db.Enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False)
    transaction_id = db.Column(db.String(100), nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return f'<Payment {self.id} status={self.status}>'


class TrackingHistory(db.Model):
    __tablename__ = 'tracking_history'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    status = db.Column(db.String(30), nullable=False)
    message = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return f'<TrackingHistory order={self.order_id} {self.status}>'


class Review(db.Model):
    __tablename__ = 'reviews'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    # Seller/admin replies, appended as "[ROLE - Name]: text" blocks
    reply = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint(
            'rating >= 1 AND rating <= 5',
            name='check_rating_range'),
    )

    def __repr__(self):
        return f'<Review {self.id} for product {self.product_id}>'


class Complaint(db.Model):
    __tablename__ = 'complaints'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'sellers.id',
            ondelete='SET NULL'),
        nullable=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='SET NULL'),
        nullable=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='SET NULL'),
        nullable=True)
    subject = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    status = db.Column(
        db.String(30),
        default=ComplaintStatus.PENDING.value,
        nullable=False)
    # Shared user/seller/admin thread
    conversation = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    seller = db.relationship('Seller')
    product = db.relationship('Product')
    order = db.relationship('Order')

    def __repr__(self):
        return f'<Complaint {self.id} status={self.status}>'


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    # Exactly one recipient: user, seller, or a role mailbox ("ADMIN")
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True,
        index=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'sellers.id',
            ondelete='SET NULL'),
        nullable=True,
        index=True)
    role = db.Column(db.String(20), nullable=True, index=True)
    message = db.Column(db.Text, nullable=False)
    link = db.Column(db.String(255), nullable=True)
    read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return f'<Notification {self.id} read={self.read}>'


class StoreSetting(db.Model):
    __tablename__ = 'store_settings'

    # Singleton row
    id = db.Column(db.Integer, primary_key=True, default=1)
    store_name = db.Column(db.String(120), nullable=True)
    logo_url = db.Column(db.Text, nullable=True)
    banner_url = db.Column(db.Text, nullable=True)
    primary_color = db.Column(
        db.String(20),
        nullable=False,
        default='#80B500')
    categories_limit = db.Column(db.Integer, nullable=False, default=10)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return f'<StoreSetting {self.store_name}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    # users.id or sellers.id depending on actor_role
    actor_id = db.Column(db.Integer, nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    # e.g., ORDER_CREATE, SELLER_APPROVE
    action = db.Column(db.String(100), nullable=False)
    # ORDER, PRODUCT, SELLER, etc.
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    ip = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    # JSON format key field snapshot
    payload_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    def set_payload(self, data):
        self.payload_json = json.dumps(data, ensure_ascii=False, default=str)

    def __repr__(self):
        return f'<AuditLog {self.id} action={self.action}>'
