from conftest import CHECKOUT_BODY, add_to_cart, auth_header, fresh
from marketplace.models import Notification, Seller


def _order(client, buyer, product, qty=1):
    add_to_cart(client, buyer, product, qty)
    response = client.post('/api/orders/checkout', headers=auth_header(buyer),
                           json=CHECKOUT_BODY)
    return response.get_json()['order']['id']


def test_approve_seller_notifies(client, admin, make_seller):
    pending = make_seller(email='new@example.com', approved=False)

    response = client.put(f'/api/admin/sellers/{pending.id}/approve',
                          headers=auth_header(admin))
    assert response.status_code == 200
    assert fresh(Seller, pending.id).approved is True
    assert Notification.query.filter_by(seller_id=pending.id).count() == 1

    response = client.put(f'/api/admin/sellers/{pending.id}/reject',
                          headers=auth_header(admin))
    assert response.status_code == 200
    assert fresh(Seller, pending.id).approved is False

    assert client.put('/api/admin/sellers/9999/approve',
                      headers=auth_header(admin)).status_code == 404


def test_list_sellers_by_approval(client, admin, seller, make_seller):
    make_seller(email='waiting@example.com', approved=False)
    response = client.get('/api/admin/sellers?approved=false',
                          headers=auth_header(admin))
    emails = [s['email'] for s in response.get_json()['sellers']]
    assert emails == ['waiting@example.com']


def test_user_list_has_sales_totals(client, admin, buyer, make_product):
    _order(client, buyer, make_product(price='15.00', stock=5), qty=2)

    response = client.get('/api/admin/users', headers=auth_header(admin))
    users = response.get_json()['users']
    assert len(users) == 1
    assert users[0]['email'] == buyer.email
    assert users[0]['totalSales'] == 30.0
    assert users[0]['orderCount'] == 1


def test_revenue_report_counts_delivered_only(client, admin, buyer,
                                              make_product):
    product = make_product(title='Tea', price='5.00', stock=10)
    delivered = _order(client, buyer, product, qty=2)
    _order(client, buyer, product, qty=1)
    client.put(f'/api/orders/{delivered}/status', headers=auth_header(admin),
               json={'status': 'DELIVERED'})

    body = client.get('/api/admin/revenue-report',
                      headers=auth_header(admin)).get_json()
    assert body['totalRevenue'] == 10.0
    assert body['products'][0]['totalQty'] == 2


def test_store_settings(client, admin, buyer):
    response = client.get('/api/settings')
    assert response.status_code == 200
    assert response.get_json()['settings']['primaryColor'] == '#80B500'

    response = client.put('/api/admin/settings', headers=auth_header(admin),
                          json={'storeName': 'Corner Shop',
                                'categoriesLimit': 6})
    assert response.status_code == 200
    settings = client.get('/api/settings').get_json()['settings']
    assert settings['storeName'] == 'Corner Shop'
    assert settings['categoriesLimit'] == 6

    response = client.put('/api/admin/settings', headers=auth_header(buyer),
                          json={'storeName': 'Hijacked'})
    assert response.status_code == 403


def test_test_mail_without_provider(client, admin):
    response = client.post('/api/test-mail', headers=auth_header(admin),
                           json={'to': 'qa@example.com', 'subject': 'Ping',
                                 'message': 'Hello'})
    assert response.status_code == 200
    assert 'skipped' in response.get_json()['message']


def test_admin_dashboard(client, admin, buyer, make_product):
    order_id = _order(client, buyer, make_product(price='8.00', stock=5))
    client.put(f'/api/orders/{order_id}/status', headers=auth_header(admin),
               json={'status': 'DELIVERED'})
    _order(client, buyer, make_product(title='Salt', price='2.00', stock=5))

    body = client.get('/api/dashboard/admin',
                      headers=auth_header(admin)).get_json()
    stats = body['stats']
    assert stats['orders']['total'] == 2
    assert stats['orders']['delivered'] == 1
    assert stats['orders']['pending'] == 1
    assert stats['revenue']['totalRevenue'] == 8.0
    assert stats['successRate'] == '50.0'
    assert len(stats['chartData']) == 7
    assert stats['chartData'][-1]['sales'] == 10.0


def test_user_dashboard(client, buyer, make_product):
    _order(client, buyer, make_product(price='4.50', stock=5), qty=2)

    body = client.get('/api/dashboard/user',
                      headers=auth_header(buyer)).get_json()
    assert body['stats']['totalOrders'] == 1
    assert body['stats']['pendingOrders'] == 1
    assert body['stats']['totalSpent'] == 9.0
    assert body['stats']['unreadNotifications'] == 1


def test_seller_dashboard(client, buyer, seller, make_product):
    _order(client, buyer, make_product(seller=seller, price='6.00', stock=5))

    body = client.get('/api/dashboard/seller',
                      headers=auth_header(seller)).get_json()
    assert body['stats']['totalOrders'] == 1
    assert body['stats']['totalRevenue'] == 6.0
    assert body['stats']['unreadNotifications'] == 1
    assert len(body['recentOrders']) == 1
