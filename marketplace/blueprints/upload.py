from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
    send_from_directory,
    url_for,
)
from flask_login import login_required, current_user
from werkzeug.utils import secure_filename
from marketplace.services.audit_service import log_audit
from datetime import datetime
import logging
import os
import uuid

logger = logging.getLogger(__name__)

bp = Blueprint('upload', __name__)


def _file_size(storage):
    stream = storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


@bp.route('/api/upload', methods=['POST'])
@login_required
def upload_image():
    f = request.files.get('image')
    if not f or not f.filename:
        return jsonify({'error': 'Please upload a file'}), 400

    filename = secure_filename(f.filename)
    ext = (filename.rsplit('.', 1)[-1] if '.' in filename else '').lower()
    mimetype = (f.mimetype or '').lower()
    if (ext not in current_app.config['UPLOAD_EXTENSIONS']
            or mimetype not in current_app.config['UPLOAD_MIMETYPES']):
        return jsonify(
            {'error': 'Only images (jpeg, jpg, png, webp) are allowed!'}), 400

    size = _file_size(f)
    if size > current_app.config['UPLOAD_MAX_BYTES']:
        return jsonify({'error': 'File too large'}), 400

    upload_dir = current_app.config['UPLOAD_FOLDER']
    os.makedirs(upload_dir, exist_ok=True)

    new_name = (
        f"{datetime.utcnow().strftime('%Y%m%d%H%M%S')}-"
        f"{uuid.uuid4().hex}.{ext}"
    )
    f.save(os.path.join(upload_dir, new_name))
    logger.info("Stored upload %s (%s bytes) for %s %s",
                new_name, size, current_user.role.value, current_user.id)

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='IMAGE_UPLOAD',
        target_type='UPLOAD',
        payload={'file': new_name, 'size': size}
    )

    return jsonify({
        'message': 'File uploaded successfully',
        'url': url_for('upload.uploaded_file', filename=new_name,
                       _external=True),
    })


@bp.route('/uploads/<path:filename>', methods=['GET'])
def uploaded_file(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)
