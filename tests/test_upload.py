import io

import pytest

from conftest import auth_header
from marketplace.models import AuditLog

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 64


@pytest.fixture
def upload_dir(app, tmp_path):
    app.config['UPLOAD_FOLDER'] = str(tmp_path)
    return tmp_path


def _upload(client, principal, data, filename, mimetype='image/png'):
    return client.post(
        '/api/upload',
        headers=auth_header(principal),
        data={'image': (io.BytesIO(data), filename, mimetype)},
        content_type='multipart/form-data',
    )


def test_upload_stores_image_and_serves_it(client, seller, upload_dir):
    response = _upload(client, seller, PNG_BYTES, '../../etc/photo.png')
    assert response.status_code == 200
    body = response.get_json()
    assert body['message'] == 'File uploaded successfully'
    assert body['url'].startswith('http://localhost/uploads/')
    assert body['url'].endswith('.png')

    stored = list(upload_dir.iterdir())
    assert len(stored) == 1
    assert stored[0].read_bytes() == PNG_BYTES

    served = client.get(body['url'].replace('http://localhost', ''))
    assert served.status_code == 200
    assert served.data == PNG_BYTES
    assert AuditLog.query.filter_by(action='IMAGE_UPLOAD').count() == 1


def test_upload_requires_login(client, upload_dir):
    response = client.post(
        '/api/upload',
        data={'image': (io.BytesIO(PNG_BYTES), 'photo.png', 'image/png')},
        content_type='multipart/form-data',
    )
    assert response.status_code == 401


def test_upload_without_file(client, buyer, upload_dir):
    response = client.post('/api/upload', headers=auth_header(buyer),
                           data={}, content_type='multipart/form-data')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Please upload a file'


@pytest.mark.parametrize('filename, mimetype', [
    ('notes.txt', 'text/plain'),
    ('photo.gif', 'image/gif'),
    ('photo.png', 'text/html'),
])
def test_upload_rejects_non_images(client, seller, upload_dir, filename,
                                   mimetype):
    response = _upload(client, seller, PNG_BYTES, filename, mimetype)
    assert response.status_code == 400
    assert list(upload_dir.iterdir()) == []


def test_upload_rejects_large_files(client, app, seller, upload_dir):
    app.config['UPLOAD_MAX_BYTES'] = 32
    response = _upload(client, seller, PNG_BYTES, 'photo.png')
    assert response.status_code == 400
    assert 'too large' in response.get_json()['error']
    assert list(upload_dir.iterdir()) == []
