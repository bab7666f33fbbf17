"""Services blueprint - JSON API for service records (órdenes de servicio)."""
from flask import Blueprint, request, send_file, current_app, g, jsonify

from servicedesk.database import get_session
from servicedesk.middleware import require_owner
from servicedesk.services.pdf_service import render_service_ticket_pdf, business_info_from_config
from servicedesk.services.service_record_service import (
    create_service_record,
    update_status,
    get_service_document,
    share_service,
    delete_service_record
)

services_bp = Blueprint('services', __name__, url_prefix='/services')


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


@services_bp.route('/', methods=['POST'])
@require_owner
def create():
    """Create a service record with the next order number."""
    config = current_app.config
    db_session = get_session()
    record_id = create_service_record(
        db_session, g.owner_id, _payload(),
        prefix=config['SERVICE_ORDER_PREFIX'],
        tax_rate=config['TAX_RATE'],
        max_attempts=config['SEQUENCE_MAX_ATTEMPTS']
    )
    document = get_service_document(db_session, record_id, g.owner_id, config['TAX_RATE'])
    return jsonify({'id': record_id, **document.to_dict()}), 201


@services_bp.route('/<int:record_id>')
@require_owner
def view(record_id):
    """Internal service document."""
    document = get_service_document(get_session(), record_id, g.owner_id, current_app.config['TAX_RATE'])
    return jsonify({'id': record_id, **document.to_dict()})


@services_bp.route('/<int:record_id>', methods=['DELETE'])
@require_owner
def remove(record_id):
    """Delete a service record; its tracking link stops working."""
    folio = delete_service_record(get_session(), record_id, g.owner_id)
    return jsonify({'id': record_id, 'order_folio': folio, 'deleted': True})


@services_bp.route('/<int:record_id>/status', methods=['POST'])
@require_owner
def change_status(record_id):
    """Move the record through the status catalogue."""
    data = _payload()
    status = update_status(get_session(), record_id, g.owner_id, data.get('status'), data.get('diagnosis'))
    document = get_service_document(get_session(), record_id, g.owner_id, current_app.config['TAX_RATE'])
    return jsonify({'id': record_id, 'status': status,
                    'status_label': document.status_label, 'progress': document.progress})


@services_bp.route('/<int:record_id>/share', methods=['POST'])
@require_owner
def share(record_id):
    """Tracking link for the customer; the same link every time."""
    token, url = share_service(get_session(), record_id, g.owner_id, current_app.config['PUBLIC_BASE_URL'])
    return jsonify({'token': token, 'url': url})


@services_bp.route('/<int:record_id>/ticket.pdf')
@require_owner
def ticket_pdf(record_id):
    """Drop-off ticket with a QR code of the tracking link."""
    config = current_app.config
    db_session = get_session()
    _, url = share_service(db_session, record_id, g.owner_id, config['PUBLIC_BASE_URL'])
    document = get_service_document(db_session, record_id, g.owner_id, config['TAX_RATE'])
    pdf_buffer = render_service_ticket_pdf(document.public, url, business_info_from_config(config))

    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=False,
        download_name=f"orden_{document.order_folio}.pdf"
    )
