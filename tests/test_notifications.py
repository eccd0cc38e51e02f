import pytest

from conftest import auth_header, fresh
from marketplace.models import Notification
from marketplace.services.notification_service import create_notification


def test_mailboxes_are_separate(client, buyer, seller, admin):
    create_notification('for buyer', user_id=buyer.id)
    create_notification('for seller', seller_id=seller.id)
    create_notification('for admins', role='ADMIN')

    def messages(principal):
        response = client.get('/api/notifications',
                              headers=auth_header(principal))
        return [n['message'] for n in response.get_json()['notifications']]

    assert messages(buyer) == ['for buyer']
    assert messages(seller) == ['for seller']
    assert messages(admin) == ['for admins']


def test_mark_read_hides_from_unread_list(client, buyer):
    note = create_notification('hello', user_id=buyer.id)

    response = client.put(f'/api/notifications/read/{note.id}',
                          headers=auth_header(buyer))
    assert response.status_code == 200
    assert fresh(Notification, note.id).read is True

    body = client.get('/api/notifications',
                      headers=auth_header(buyer)).get_json()
    assert body['notifications'] == []
    assert body['unreadCount'] == 0

    body = client.get('/api/notifications?all=1',
                      headers=auth_header(buyer)).get_json()
    assert len(body['notifications']) == 1


def test_cannot_read_someone_elses_notification(client, buyer, make_user):
    note = create_notification('private', user_id=buyer.id)
    other = make_user(email='other@example.com')

    response = client.put(f'/api/notifications/read/{note.id}',
                          headers=auth_header(other))
    assert response.status_code == 403
    assert fresh(Notification, note.id).read is False


def test_post_notification(client, admin, buyer):
    response = client.post('/api/notifications', headers=auth_header(admin),
                           json={'message': 'Sale starts today',
                                 'userId': buyer.id})
    assert response.status_code == 201
    assert Notification.query.filter_by(user_id=buyer.id).count() == 1

    response = client.post('/api/notifications', headers=auth_header(admin),
                           json={'message': 'Nobody'})
    assert response.status_code == 400


def test_notification_needs_exactly_one_recipient(buyer, seller):
    with pytest.raises(ValueError):
        create_notification('ambiguous', user_id=buyer.id,
                            seller_id=seller.id)
