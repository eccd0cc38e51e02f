from conftest import auth_header, fresh
from marketplace.extensions import db
from marketplace.models import Cart, Seller, User


def test_register_creates_user_and_cart(client):
    response = client.post('/api/auth/register', json={
        'name': 'Ayesha',
        'email': 'Ayesha@Example.com',
        'password': 'secret123',
    })
    assert response.status_code == 201
    body = response.get_json()
    assert body['user']['email'] == 'ayesha@example.com'
    assert body['user']['role'] == 'USER'

    user = User.query.filter_by(email='ayesha@example.com').one()
    assert Cart.query.filter_by(user_id=user.id).count() == 1


def test_register_rejects_duplicate_email(client, buyer):
    response = client.post('/api/auth/register', json={
        'name': 'Again',
        'email': buyer.email,
        'password': 'secret123',
    })
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Email already exists'


def test_register_requires_all_fields(client):
    response = client.post('/api/auth/register', json={'email': 'a@b.co'})
    assert response.status_code == 400


def test_login_returns_token(client, buyer):
    response = client.post('/api/auth/login', json={
        'email': buyer.email,
        'password': 'secret123',
    })
    assert response.status_code == 200
    body = response.get_json()
    assert body['token']
    assert body['user']['id'] == buyer.id

    profile = client.get(
        '/api/user/profile',
        headers={'Authorization': f"Bearer {body['token']}"})
    assert profile.status_code == 200
    assert profile.get_json()['user']['email'] == buyer.email


def test_login_unknown_email(client):
    response = client.post('/api/auth/login', json={
        'email': 'nobody@example.com',
        'password': 'secret123',
    })
    assert response.status_code == 404
    assert response.get_json()['error'] == 'User not found'


def test_login_wrong_password(client, buyer):
    response = client.post('/api/auth/login', json={
        'email': buyer.email,
        'password': 'wrong-password',
    })
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Incorrect password'


def test_seller_cannot_login_before_approval(client):
    response = client.post('/api/auth/seller-register', json={
        'name': 'Shop',
        'email': 'shop@example.com',
        'password': 'secret123',
        'phone': '923001112222',
    })
    assert response.status_code == 201
    assert response.get_json()['seller']['approved'] is False

    response = client.post('/api/auth/seller-login', json={
        'email': 'shop@example.com',
        'password': 'secret123',
    })
    assert response.status_code == 403
    assert response.get_json()['error'] == 'Seller not approved yet'


def test_approved_seller_login(client, seller):
    response = client.post('/api/auth/seller-login', json={
        'email': seller.email,
        'password': 'secret123',
    })
    assert response.status_code == 200
    assert response.get_json()['token']


def test_admin_login_rejects_regular_user(client, buyer):
    response = client.post('/api/auth/admin-login', json={
        'email': buyer.email,
        'password': 'secret123',
    })
    assert response.status_code == 401
    assert response.get_json()['error'] == 'Invalid admin credentials'


def test_admin_login(client, admin):
    response = client.post('/api/auth/admin-login', json={
        'email': admin.email,
        'password': 'secret123',
    })
    assert response.status_code == 200
    assert response.get_json()['token']


def test_missing_token_is_unauthorized(client):
    response = client.get('/api/cart')
    assert response.status_code == 401


def test_garbage_token_is_unauthorized(client):
    response = client.get(
        '/api/cart', headers={'Authorization': 'Bearer not-a-jwt'})
    assert response.status_code == 401


def test_wrong_role_is_forbidden(client, seller):
    response = client.get('/api/cart', headers=auth_header(seller))
    assert response.status_code == 403
    assert response.get_json()['error'] == 'Forbidden: Access denied'


def test_revoked_seller_token_is_rejected(client, seller):
    headers = auth_header(seller)
    seller.approved = False
    db.session.commit()

    response = client.get('/api/seller/products', headers=headers)
    assert response.status_code == 401
    assert fresh(Seller, seller.id).approved is False


def test_update_profile(client, buyer):
    response = client.put('/api/user/profile', headers=auth_header(buyer),
                          json={'address': ' 5 Canal Road ', 'phone': '0300'})
    assert response.status_code == 200
    assert fresh(User, buyer.id).address == '5 Canal Road'
