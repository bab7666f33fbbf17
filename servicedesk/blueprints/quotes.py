"""Quotes blueprint - JSON API for cotizaciones (owner-scoped)."""
from flask import Blueprint, request, send_file, current_app, g, jsonify

from servicedesk.database import get_session
from servicedesk.middleware import require_owner
from servicedesk.services.pdf_service import render_quote_pdf, business_info_from_config
from servicedesk.services.quote_service import (
    preview_quote,
    next_folio,
    create_quote,
    update_quote,
    get_quote_document,
    delete_quote
)

quotes_bp = Blueprint('quotes', __name__, url_prefix='/quotes')


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


@quotes_bp.route('/preview', methods=['POST'])
@require_owner
def preview():
    """Compute an unsaved quote; the folio shown is only a suggestion."""
    config = current_app.config
    document = preview_quote(
        get_session(), g.owner_id, _payload(),
        prefix=config['QUOTE_FOLIO_PREFIX'],
        valid_days=config['QUOTE_PREVIEW_VALID_DAYS'],
        tax_rate=config['TAX_RATE']
    )
    return jsonify(document.to_dict())


@quotes_bp.route('/next-folio')
@require_owner
def suggested_folio():
    """Placeholder folio for a new quote (not reserved)."""
    year = request.args.get('year', type=int)
    folio = next_folio(get_session(), g.owner_id, current_app.config['QUOTE_FOLIO_PREFIX'], year)
    return jsonify({'folio': folio})


@quotes_bp.route('/', methods=['POST'])
@require_owner
def create():
    """Create a quote with a newly allocated folio."""
    config = current_app.config
    db_session = get_session()
    quote_id = create_quote(
        db_session, g.owner_id, _payload(),
        prefix=config['QUOTE_FOLIO_PREFIX'],
        valid_days=config['QUOTE_VALID_DAYS'],
        tax_rate=config['TAX_RATE'],
        max_attempts=config['SEQUENCE_MAX_ATTEMPTS']
    )
    document = get_quote_document(db_session, quote_id, g.owner_id, config['TAX_RATE'])
    return jsonify({'id': quote_id, **document.to_dict()}), 201


@quotes_bp.route('/<int:quote_id>', methods=['GET'])
@require_owner
def view(quote_id):
    """Internal quote document, with cost and margin."""
    document = get_quote_document(get_session(), quote_id, g.owner_id, current_app.config['TAX_RATE'])
    return jsonify({'id': quote_id, **document.to_dict()})


@quotes_bp.route('/<int:quote_id>', methods=['PUT'])
@require_owner
def edit(quote_id):
    """Replace customer data and items; the folio stays the same."""
    config = current_app.config
    db_session = get_session()
    update_quote(
        db_session, quote_id, g.owner_id, _payload(),
        valid_days=config['QUOTE_VALID_DAYS'],
        tax_rate=config['TAX_RATE']
    )
    document = get_quote_document(db_session, quote_id, g.owner_id, config['TAX_RATE'])
    return jsonify({'id': quote_id, **document.to_dict()})


@quotes_bp.route('/<int:quote_id>', methods=['DELETE'])
@require_owner
def remove(quote_id):
    """Delete a quote; its folio is not reused."""
    folio = delete_quote(get_session(), quote_id, g.owner_id)
    return jsonify({'id': quote_id, 'folio': folio, 'deleted': True})


@quotes_bp.route('/<int:quote_id>/pdf')
@require_owner
def download_pdf(quote_id):
    """Customer copy of the quote as PDF (no cost or margin)."""
    config = current_app.config
    document = get_quote_document(get_session(), quote_id, g.owner_id, config['TAX_RATE'])
    pdf_buffer = render_quote_pdf(document.customer_view(), business_info_from_config(config))

    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"cotizacion_{document.folio}.pdf"
    )
