import io

from conftest import auth_header
from marketplace.models import Category, Product
from marketplace.services.bulk_service import PRODUCT_EXPORT_HEADERS


def _upload(client, principal, url, text):
    return client.post(
        url,
        headers=auth_header(principal),
        data={'file': (io.BytesIO(text.encode('utf-8')), 'import.csv')},
        content_type='multipart/form-data',
    )


def test_product_import_creates_updates_and_skips(client, admin):
    csv_text = (
        'Title,Price,Stock,Category,Tags\n'
        'Basmati Rice,10.00,5,Grains,Rice|Staple\n'
        ',4.00,1,Grains,\n'
        'Lentils,abc,3,,\n'
    )
    response = _upload(client, admin, '/api/bulk/products/import', csv_text)
    assert response.status_code == 200
    body = response.get_json()
    assert body['created'] == 1
    assert body['updated'] == 0
    assert body['skipped'] == 2
    assert body['count'] == 1

    rice = Product.query.filter_by(title='Basmati Rice').one()
    assert rice.tags == 'rice,staple'
    assert rice.category.name == 'Grains'

    response = _upload(client, admin, '/api/bulk/products/import',
                       'title,price,stock,category\n'
                       'basmati rice,12.00,7,grains\n')
    body = response.get_json()
    assert body['updated'] == 1
    assert body['created'] == 0
    assert Product.query.count() == 1
    assert Category.query.count() == 1


def test_seller_import_is_scoped(client, seller, admin):
    _upload(client, admin, '/api/bulk/products/import',
            'Title,Price,Stock,Category\nHoney,8.00,2,Pantry\n')
    admin_product = Product.query.filter_by(title='Honey').one()

    response = _upload(
        client, seller, '/api/bulk/products/import',
        f'ID,Title,Price,Stock,Category\n{admin_product.id},Honey,1.00,2,'
        'Pantry\n')
    body = response.get_json()
    assert body['created'] == 1
    assert body['updated'] == 0

    honeys = Product.query.filter_by(title='Honey').order_by(Product.id).all()
    assert [p.seller_id for p in honeys] == [None, seller.id]


def test_category_import(client, seller):
    response = _upload(client, seller, '/api/bulk/categories/import',
                       'name,image\nSnacks,\nsnacks,https://img/x.png\n,\n')
    body = response.get_json()
    assert body['created'] == 1
    assert body['updated'] == 1
    assert body['skipped'] == 1
    assert Category.query.one().image == 'https://img/x.png'


def test_import_without_file(client, admin):
    response = client.post('/api/bulk/products/import',
                           headers=auth_header(admin))
    assert response.status_code == 400
    assert response.get_json()['error'] == 'No file uploaded'


def test_product_export(client, admin, make_product):
    make_product(title='Ghee', price='20.00')
    response = client.get('/api/bulk/products/export',
                          headers=auth_header(admin))
    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'attachment' in response.headers['Content-Disposition']

    lines = response.get_data(as_text=True).splitlines()
    assert lines[0] == ','.join(PRODUCT_EXPORT_HEADERS)
    assert 'Ghee' in lines[1]


def test_buyer_cannot_export(client, buyer):
    response = client.get('/api/bulk/products/export',
                          headers=auth_header(buyer))
    assert response.status_code == 403
