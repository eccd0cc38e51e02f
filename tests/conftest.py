import pytest
from decimal import Decimal
from flask import g

from marketplace import create_app
from marketplace.config import Config
from marketplace.extensions import db
from marketplace.middleware import issue_token
from marketplace.models import (
    Cart,
    Category,
    Product,
    ProductVariant,
    Seller,
    User,
    UserRole,
)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_SECRET_KEY = 'test-secret-key-with-enough-length-for-hs256'
    SIDE_EFFECTS_INLINE = True
    RESEND_API_KEY = ''
    WHATSAPP_ADMIN_PHONE = ''
    WHATSAPP_ADMIN_API_KEY = ''
    ADMIN_EMAILS = ['ops@example.com']


@pytest.fixture
def app():
    app = create_app(TestConfig)

    # Requests share the fixture's app context, so drop the principal
    # Flask-Login cached on g by the previous request.
    @app.before_request
    def _forget_principal():
        g.pop('_login_user', None)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def auth_header(principal):
    return {'Authorization': f'Bearer {issue_token(principal)}'}


def fresh(model, object_id):
    db.session.expire_all()
    return db.session.get(model, object_id)


@pytest.fixture
def make_user(app):
    def _make(email='buyer@example.com', name='Buyer', role=UserRole.USER,
              password='secret123'):
        user = User(name=name, email=email, role=role, city='Lahore')
        user.set_password(password)
        db.session.add(user)
        db.session.flush()
        db.session.add(Cart(user_id=user.id))
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_seller(app):
    def _make(email='seller@example.com', name='Seller', approved=True,
              password='secret123', phone=None, whatsapp_api_key=None):
        seller = Seller(name=name, email=email, approved=approved,
                        phone=phone, whatsapp_api_key=whatsapp_api_key)
        seller.set_password(password)
        db.session.add(seller)
        db.session.commit()
        return seller
    return _make


@pytest.fixture
def make_category(app):
    def _make(name='Groceries', seller=None):
        category = Category(
            name=name, seller_id=seller.id if seller else None)
        db.session.add(category)
        db.session.commit()
        return category
    return _make


@pytest.fixture
def make_product(app, make_category):
    def _make(seller=None, title='Basmati Rice', price='10.00', stock=5,
              category=None, variants=None):
        category = category or make_category()
        product = Product(
            title=title,
            price=Decimal(price),
            stock=stock,
            seller_id=seller.id if seller else None,
            category_id=category.id,
        )
        db.session.add(product)
        db.session.flush()
        for name, v_price, v_stock in variants or []:
            db.session.add(ProductVariant(
                product_id=product.id,
                name=name,
                price=Decimal(v_price),
                stock=v_stock,
            ))
        db.session.commit()
        return product
    return _make


@pytest.fixture
def buyer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email='admin@example.com', name='Admin',
                     role=UserRole.ADMIN)


@pytest.fixture
def seller(make_seller):
    return make_seller()


def add_to_cart(client, user, product, qty, variant=None):
    payload = {'productId': product.id, 'qty': qty}
    if variant is not None:
        payload['variantId'] = variant.id
    return client.post('/api/cart/items', json=payload,
                       headers=auth_header(user))


CHECKOUT_BODY = {
    'method': 'COD',
    'address': '12 Mall Road',
    'city': 'Lahore',
    'phone': '03001234567',
}
