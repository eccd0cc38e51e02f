from flask import Blueprint, Response, request, jsonify
from flask_login import login_required, current_user
from marketplace.middleware import role_required
from marketplace.services.audit_service import log_audit
from marketplace.services.bulk_service import (
    BulkImportError,
    export_categories,
    export_products,
    import_categories,
    import_products,
)
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('bulk', __name__)


def _csv_response(body, prefix):
    stamp = datetime.utcnow().strftime('%Y%m%d%H%M%S')
    return Response(
        body,
        mimetype='text/csv',
        headers={
            'Content-Disposition':
                f'attachment; filename={prefix}-export-{stamp}.csv'
        },
    )


def _uploaded_csv():
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return None
    return upload.read()


def _run_import(importer, target_type):
    raw = _uploaded_csv()
    if raw is None:
        return jsonify({'error': 'No file uploaded'}), 400

    try:
        result = importer(current_user, raw)
    except (BulkImportError, UnicodeDecodeError) as e:
        return jsonify({'error': f'Invalid CSV file: {e}'}), 400

    log_audit(
        actor_id=current_user.id,
        actor_role=current_user.role.value,
        action='BULK_IMPORT',
        target_type=target_type,
        payload=result
    )

    imported = result['created'] + result['updated']
    return jsonify({
        'message': f'{imported} rows imported successfully',
        'count': imported,
        **result,
    })


@bp.route('/api/bulk/products/export', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def products_export():
    return _csv_response(export_products(current_user), 'products')


@bp.route('/api/bulk/products/import', methods=['POST'])
@login_required
@role_required('SELLER', 'ADMIN')
def products_import():
    return _run_import(import_products, 'PRODUCT')


@bp.route('/api/bulk/categories/export', methods=['GET'])
@login_required
@role_required('SELLER', 'ADMIN')
def categories_export():
    return _csv_response(export_categories(current_user), 'categories')


@bp.route('/api/bulk/categories/import', methods=['POST'])
@login_required
@role_required('SELLER', 'ADMIN')
def categories_import():
    return _run_import(import_categories, 'CATEGORY')
