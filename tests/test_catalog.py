from conftest import CHECKOUT_BODY, add_to_cart, auth_header, fresh
from marketplace.models import (
    CartItem,
    Category,
    OrderItem,
    Product,
    ProductVariant,
)


def test_public_category_list(client, make_category):
    make_category('Spices')
    make_category('Beverages')

    response = client.get('/api/categories/all')
    assert response.status_code == 200
    names = [c['name'] for c in response.get_json()['categories']]
    assert names == ['Beverages', 'Spices']


def test_seller_category_is_owned(client, seller):
    response = client.post('/api/categories', headers=auth_header(seller),
                           json={'name': 'Dry Fruits'})
    assert response.status_code == 201
    assert response.get_json()['category']['sellerId'] == seller.id


def test_admin_category_is_global(client, admin):
    response = client.post('/api/categories', headers=auth_header(admin),
                           json={'name': 'Dairy', 'isStarred': True})
    assert response.status_code == 201
    category = response.get_json()['category']
    assert category['sellerId'] is None
    assert category['isStarred'] is True


def test_seller_cannot_edit_foreign_category(client, make_seller,
                                             make_category):
    owner = make_seller(email='owner@example.com')
    other = make_seller(email='other@example.com')
    category = make_category('Owned', seller=owner)

    response = client.put(f'/api/categories/{category.id}',
                          headers=auth_header(other), json={'name': 'Mine'})
    assert response.status_code == 403


def test_category_with_products_cannot_be_deleted(client, admin,
                                                  make_product):
    product = make_product()
    response = client.delete(f'/api/categories/{product.category_id}',
                             headers=auth_header(admin))
    assert response.status_code == 400
    assert fresh(Category, product.category_id) is not None


def test_delete_many_skips_categories_in_use(client, admin, make_category,
                                             make_product):
    used = make_category('Used')
    empty = make_category('Empty')
    make_product(category=used)

    response = client.post('/api/categories/delete-many',
                           headers=auth_header(admin),
                           json={'ids': [used.id, empty.id]})
    assert response.status_code == 200
    body = response.get_json()
    assert body['count'] == 1
    assert body['skippedInUse'] == [used.id]
    assert fresh(Category, empty.id) is None


def test_product_listing_filters(client, make_category, make_product):
    rice = make_category('Rice')
    oil = make_category('Oil')
    make_product(title='Basmati Rice', price='12.00', category=rice)
    make_product(title='Brown Rice', price='30.00', category=rice)
    make_product(title='Olive Oil', price='25.00', category=oil)

    response = client.get(f'/api/products?categoryId={rice.id}&maxPrice=20')
    body = response.get_json()
    assert body['total'] == 1
    assert body['products'][0]['title'] == 'Basmati Rice'
    assert body['products'][0]['rating'] == {'avg': 0, 'count': 0}

    response = client.get('/api/products?search=oil')
    assert [p['title'] for p in response.get_json()['products']] == [
        'Olive Oil']


def test_product_listing_paginates(client, make_category, make_product):
    category = make_category()
    for i in range(3):
        make_product(title=f'Item {i}', category=category)

    response = client.get('/api/products?page=2&limit=2')
    body = response.get_json()
    assert body['total'] == 3
    assert body['pages'] == 2
    assert body['page'] == 2
    assert len(body['products']) == 1


def test_suggestions(client, make_category, make_product):
    category = make_category('Tea')
    make_product(title='Green Tea', category=category)
    make_product(title='Teapot', category=category)

    response = client.get('/api/products/suggestions?q=tea')
    body = response.get_json()
    assert body['products'][0]['title'] == 'Teapot'
    assert {p['title'] for p in body['products']} == {'Green Tea', 'Teapot'}
    assert body['categories'] == [{'id': category.id, 'name': 'Tea'}]


def test_product_detail_includes_variants(client, make_product):
    product = make_product(variants=[('1kg', '11.00', 3)])
    response = client.get(f'/api/products/{product.id}')
    assert response.status_code == 200
    variants = response.get_json()['product']['variants']
    assert variants[0]['name'] == '1kg'
    assert variants[0]['price'] == 11.0

    assert client.get('/api/products/9999').status_code == 404


def test_seller_creates_product(client, seller, make_category):
    category = make_category()
    response = client.post('/api/products', headers=auth_header(seller), json={
        'title': 'Saffron',
        'price': '499.99',
        'stock': 4,
        'categoryId': category.id,
        'tags': 'Spice, Premium',
        'images': ['https://cdn.example.com/s1.jpg'],
        'variants': [{'name': '5g', 'price': '499.99', 'stock': 4}],
    })
    assert response.status_code == 201
    product = response.get_json()['product']
    assert product['sellerId'] == seller.id
    assert product['price'] == 499.99
    assert product['tags'] == ['spice', 'premium']
    assert len(product['images']) == 1
    assert len(product['variants']) == 1


def test_product_validation(client, seller, make_category):
    category = make_category()
    response = client.post('/api/products', headers=auth_header(seller), json={
        'title': 'Bad',
        'price': '-1',
        'categoryId': category.id,
    })
    assert response.status_code == 400


def test_seller_cannot_update_foreign_product(client, make_seller,
                                              make_product):
    owner = make_seller(email='owner@example.com')
    other = make_seller(email='other@example.com')
    product = make_product(seller=owner)

    response = client.put(f'/api/products/{product.id}',
                          headers=auth_header(other), json={'price': '1'})
    assert response.status_code == 403


def test_deleting_product_keeps_order_history(client, admin, buyer,
                                             make_product):
    product = make_product(price='10.00', stock=5)
    add_to_cart(client, buyer, product, 2)
    client.post('/api/orders/checkout', headers=auth_header(buyer),
                json=CHECKOUT_BODY)

    response = client.delete(f'/api/products/{product.id}',
                              headers=auth_header(admin))
    assert response.status_code == 200
    assert fresh(Product, product.id) is None

    item = OrderItem.query.one()
    assert item.product_id is None
    assert item.qty == 2


def _oil_with_sizes(make_product, seller):
    return make_product(seller=seller, title='Oil', price='3.00', stock=20,
                        variants=[('1L', '4.00', 10), ('2L', '7.50', 10)])


def test_variant_update_keeps_cart_lines(client, buyer, seller, make_product):
    oil = _oil_with_sizes(make_product, seller)
    two_litre = oil.variants.filter_by(name='2L').one()
    add_to_cart(client, buyer, oil, 1, variant=two_litre)

    response = client.put(f'/api/products/{oil.id}',
                          headers=auth_header(seller), json={'variants': [
                              {'name': '2L', 'price': '8.00', 'stock': 6},
                              {'name': '1L', 'price': '4.00', 'stock': 10},
                          ]})
    assert response.status_code == 200

    cart = client.get('/api/cart', headers=auth_header(buyer)).get_json()[
        'cart']
    variant = cart['items'][0]['variant']
    assert variant['id'] == two_litre.id
    assert variant['name'] == '2L'
    assert variant['price'] == 8.0
    assert fresh(ProductVariant, two_litre.id).stock == 6


def test_variant_update_matches_by_id_for_renames(client, seller,
                                                  make_product):
    oil = _oil_with_sizes(make_product, seller)
    one_litre = oil.variants.filter_by(name='1L').one()

    client.put(f'/api/products/{oil.id}', headers=auth_header(seller),
               json={'variants': [
                   {'id': one_litre.id, 'name': '1 Litre', 'price': '4.00',
                    'stock': 10},
               ]})

    assert fresh(ProductVariant, one_litre.id).name == '1 Litre'
    assert ProductVariant.query.filter_by(product_id=oil.id).count() == 1


def test_removed_variant_drops_its_cart_lines(client, buyer, seller,
                                              make_product):
    oil = _oil_with_sizes(make_product, seller)
    one_litre = oil.variants.filter_by(name='1L').one()
    two_litre = oil.variants.filter_by(name='2L').one()
    one_litre_id, two_litre_id = one_litre.id, two_litre.id
    add_to_cart(client, buyer, oil, 1, variant=two_litre)
    add_to_cart(client, buyer, oil, 2, variant=one_litre)

    client.put(f'/api/products/{oil.id}', headers=auth_header(seller),
               json={'variants': [
                   {'name': '1L', 'price': '4.00', 'stock': 10},
               ]})

    assert fresh(ProductVariant, two_litre_id) is None
    assert [item.variant_id for item in CartItem.query.all()] == [
        one_litre_id]

    response = client.post('/api/orders/checkout',
                           headers=auth_header(buyer), json=CHECKOUT_BODY)
    assert response.status_code == 200
    assert fresh(Product, oil.id).stock == 18


def test_page_size_is_capped(client, make_product):
    make_product()
    response = client.get('/api/products?limit=1000000000')
    body = response.get_json()
    assert body['limit'] == 100
    assert body['total'] == 1
