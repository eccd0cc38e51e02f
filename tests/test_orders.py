from conftest import CHECKOUT_BODY, add_to_cart, auth_header, fresh
from marketplace.models import Notification, Order, PaymentStatus, Product


def _place_order(client, buyer, product, qty=1):
    add_to_cart(client, buyer, product, qty)
    response = client.post('/api/orders/checkout', headers=auth_header(buyer),
                           json=CHECKOUT_BODY)
    assert response.status_code == 200
    return response.get_json()['order']['id']


def _set_status(client, principal, order_id, status):
    return client.put(f'/api/orders/{order_id}/status',
                      headers=auth_header(principal), json={'status': status})


def test_buyer_sees_only_own_orders(client, buyer, make_user, make_product):
    other = make_user(email='other@example.com')
    _place_order(client, buyer, make_product(title='Mine', stock=5))
    _place_order(client, other, make_product(title='Theirs', stock=5))

    response = client.get('/api/orders', headers=auth_header(buyer))
    body = response.get_json()
    assert body['total'] == 1
    assert body['orders'][0]['userId'] == buyer.id


def test_order_detail_is_private(client, buyer, make_user, make_product):
    order_id = _place_order(client, buyer, make_product(stock=5))
    other = make_user(email='other@example.com')

    response = client.get(f'/api/orders/{order_id}',
                          headers=auth_header(buyer))
    assert response.status_code == 200
    assert response.get_json()['order']['trackingHistory'][0]['status'] == (
        'PENDING')

    response = client.get(f'/api/orders/{order_id}',
                          headers=auth_header(other))
    assert response.status_code == 403


def test_delivered_marks_payment_success(client, buyer, admin, make_product):
    order_id = _place_order(client, buyer, make_product(stock=5))

    response = _set_status(client, admin, order_id, 'delivered')
    assert response.status_code == 200
    order = fresh(Order, order_id)
    assert order.status == 'DELIVERED'
    assert order.payment.status == PaymentStatus.SUCCESS


def test_delivered_order_is_final(client, buyer, admin, make_product):
    order_id = _place_order(client, buyer, make_product(stock=5))
    _set_status(client, admin, order_id, 'DELIVERED')

    response = _set_status(client, admin, order_id, 'CANCELLED')
    assert response.status_code == 400
    assert fresh(Order, order_id).status == 'DELIVERED'
    assert fresh(Order, order_id).tracking_history.count() == 2


def test_tracking_is_chronological(client, buyer, admin, make_product):
    order_id = _place_order(client, buyer, make_product(stock=5))
    for status in ('PROCESSING', 'SHIPPED'):
        response = client.post('/api/orders/tracking',
                               headers=auth_header(admin),
                               json={'orderId': order_id, 'status': status,
                                     'message': f'{status.lower()} now'})
        assert response.status_code == 200
        assert response.get_json()['track']['status'] == status

    response = client.get(f'/api/orders/{order_id}/tracking',
                          headers=auth_header(buyer))
    body = response.get_json()
    assert body['currentStatus'] == 'SHIPPED'
    assert [t['status'] for t in body['tracking']] == [
        'PENDING', 'PROCESSING', 'SHIPPED']


def test_status_change_notifies_buyer(client, buyer, admin, make_product):
    order_id = _place_order(client, buyer, make_product(stock=5))
    _set_status(client, admin, order_id, 'SHIPPED')

    messages = [n.message for n in
                Notification.query.filter_by(user_id=buyer.id).all()]
    assert any('SHIPPED' in m for m in messages)


def test_seller_can_only_manage_own_orders(client, buyer, make_seller,
                                           make_product):
    owner = make_seller(email='owner@example.com')
    outsider = make_seller(email='outsider@example.com')
    order_id = _place_order(client, buyer, make_product(seller=owner,
                                                         stock=5))

    assert _set_status(client, outsider, order_id,
                       'SHIPPED').status_code == 403
    assert _set_status(client, owner, order_id,
                       'SHIPPED').status_code == 200


def test_buyer_cannot_change_status(client, buyer, make_product):
    order_id = _place_order(client, buyer, make_product(stock=5))
    assert _set_status(client, buyer, order_id, 'SHIPPED').status_code == 403


def test_deleting_pending_order_restores_stock(client, buyer, make_product):
    product = make_product(stock=5)
    order_id = _place_order(client, buyer, product, qty=2)
    assert fresh(Product, product.id).stock == 3

    response = client.delete(f'/api/orders/{order_id}',
                             headers=auth_header(buyer))
    assert response.status_code == 200
    assert fresh(Order, order_id) is None
    assert fresh(Product, product.id).stock == 5


def test_only_pending_orders_can_be_deleted(client, buyer, admin,
                                            make_product):
    order_id = _place_order(client, buyer, make_product(stock=5))
    _set_status(client, admin, order_id, 'PROCESSING')

    response = client.delete(f'/api/orders/{order_id}',
                             headers=auth_header(buyer))
    assert response.status_code == 400


def test_order_stats_range(client, buyer, admin, make_product):
    _place_order(client, buyer, make_product(price='12.00', stock=5))

    response = client.get('/api/orders/stats?range=monthly',
                          headers=auth_header(admin))
    body = response.get_json()
    assert body['range'] == 'monthly'
    assert sum(s['orders'] for s in body['stats']) == 1
    assert sum(s['total'] for s in body['stats']) == 12.0

    response = client.get('/api/orders/stats?range=hourly',
                          headers=auth_header(admin))
    assert response.status_code == 400


def test_seller_orders_grouped_by_product(client, buyer, seller,
                                          make_product):
    product = make_product(seller=seller, stock=5)
    order_id = _place_order(client, buyer, product, qty=2)

    response = client.get('/api/orders/seller', headers=auth_header(seller))
    body = response.get_json()
    assert body['totalOrders'] == 1
    assert body['products'][0]['orders'][0]['orderId'] == order_id
    assert body['products'][0]['orders'][0]['qty'] == 2
