from conftest import auth_header, fresh
from marketplace.models import Complaint, Notification, Review
from marketplace.services import notification_service


def _review(client, buyer, product, rating=5, comment='Great'):
    return client.post('/api/reviews', headers=auth_header(buyer), json={
        'productId': product.id,
        'rating': rating,
        'comment': comment,
    })


def test_review_notifies_seller(client, buyer, seller, make_product):
    product = make_product(seller=seller)
    response = _review(client, buyer, product)
    assert response.status_code == 201
    assert response.get_json()['review']['rating'] == 5

    note = Notification.query.filter_by(seller_id=seller.id).one()
    assert product.title in note.message


def test_rating_must_be_in_range(client, buyer, make_product):
    product = make_product()
    assert _review(client, buyer, product, rating=6).status_code == 400
    assert _review(client, buyer, product, rating=0).status_code == 400
    assert Review.query.count() == 0


def test_product_reviews_and_rating_summary(client, buyer, make_user,
                                            make_product):
    product = make_product()
    _review(client, buyer, product, rating=4)
    _review(client, make_user(email='two@example.com'), product, rating=2)

    response = client.get(f'/api/reviews/product/{product.id}',
                          headers=auth_header(buyer))
    assert response.get_json()['total'] == 2

    response = client.get(f'/api/products/{product.id}')
    rating = response.get_json()['product']['rating']
    assert rating['avg'] == 3.0
    assert rating['count'] == 2


def test_review_reply_thread(client, buyer, seller, admin, make_product):
    product = make_product(seller=seller)
    review_id = _review(client, buyer, product).get_json()['review']['id']

    client.post(f'/api/reviews/{review_id}/reply',
                headers=auth_header(seller), json={'reply': 'Thanks!'})
    client.post(f'/api/reviews/{review_id}/reply',
                headers=auth_header(admin), json={'reply': 'Noted.'})

    assert fresh(Review, review_id).reply == (
        '[SELLER - Seller]: Thanks!\n\n[ADMIN - Admin]: Noted.')
    assert Notification.query.filter_by(user_id=buyer.id).count() == 2


def test_other_seller_cannot_reply(client, buyer, make_seller, make_product):
    owner = make_seller(email='owner@example.com')
    other = make_seller(email='other@example.com')
    review_id = _review(client, buyer, make_product(seller=owner)).get_json()[
        'review']['id']

    response = client.post(f'/api/reviews/{review_id}/reply',
                           headers=auth_header(other), json={'reply': 'Hi'})
    assert response.status_code == 403


def test_complaint_lifecycle(client, buyer, seller, make_product):
    product = make_product(seller=seller)
    response = client.post('/api/complaints', headers=auth_header(buyer),
                           json={'subject': 'Damaged',
                                 'message': 'Bag was torn',
                                 'productId': product.id})
    assert response.status_code == 201
    complaint = response.get_json()['complaint']
    assert complaint['status'] == 'PENDING'
    assert complaint['sellerId'] == seller.id
    assert Notification.query.filter_by(role='ADMIN').count() == 1

    response = client.get('/api/complaints/seller',
                          headers=auth_header(seller))
    assert [c['id'] for c in response.get_json()['complaints']] == [
        complaint['id']]

    response = client.put(f"/api/complaints/reply/{complaint['id']}",
                          headers=auth_header(seller),
                          json={'sellerReply': 'Sending a new one'})
    assert response.status_code == 200
    assert response.get_json()['complaint']['status'] == 'PROCESSING'

    response = client.put(f"/api/complaints/user-reply/{complaint['id']}",
                          headers=auth_header(buyer),
                          json={'userReply': 'Thank you'})
    assert response.status_code == 200

    saved = fresh(Complaint, complaint['id'])
    assert saved.status == 'PROCESSING'
    assert saved.conversation == (
        '[SELLER - Seller]: Sending a new one\n\n[USER - Buyer]: Thank you')


def test_complaint_requires_subject_and_message(client, buyer):
    response = client.post('/api/complaints', headers=auth_header(buyer),
                           json={'subject': 'Only subject'})
    assert response.status_code == 400


def test_unrelated_seller_cannot_see_complaint(client, buyer, make_seller,
                                               make_product):
    owner = make_seller(email='owner@example.com')
    other = make_seller(email='other@example.com')
    product = make_product(seller=owner)
    complaint_id = client.post(
        '/api/complaints', headers=auth_header(buyer),
        json={'subject': 'Late', 'message': 'Still waiting',
              'productId': product.id}).get_json()['complaint']['id']

    response = client.get('/api/complaints/seller',
                          headers=auth_header(other))
    assert response.get_json()['complaints'] == []

    response = client.put(f'/api/complaints/reply/{complaint_id}',
                          headers=auth_header(other),
                          json={'sellerReply': 'Hi'})
    assert response.status_code == 404


def test_user_deletes_only_own_complaint(client, buyer, make_user):
    complaint_id = client.post(
        '/api/complaints', headers=auth_header(buyer),
        json={'subject': 'Refund', 'message': 'Please refund'}
    ).get_json()['complaint']['id']
    other = make_user(email='other@example.com')

    response = client.delete(f'/api/complaints/{complaint_id}',
                             headers=auth_header(other))
    assert response.status_code == 404

    response = client.delete(f'/api/complaints/{complaint_id}',
                             headers=auth_header(buyer))
    assert response.status_code == 200
    assert fresh(Complaint, complaint_id) is None


def test_complaint_email_escapes_message(client, buyer, monkeypatch):
    mails = []
    monkeypatch.setattr(
        notification_service, 'send_mail',
        lambda to, subject, html, text=None: mails.append(html))

    client.post('/api/complaints', headers=auth_header(buyer),
                json={'subject': 'Spam',
                      'message': '<img src=x onerror=alert(1)>\nsecond line'})

    assert mails == [
        '<p>&lt;img src=x onerror=alert(1)&gt;<br>second line</p>']
