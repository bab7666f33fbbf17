"""
Public tracking blueprint - anonymous, read-only service status.

The token in the URL is the only credential. Every failure (unknown,
malformed or removed token) gets the same 404 response.
"""
import logging

from flask import Blueprint, Response, render_template, current_app, jsonify, request

from servicedesk.database import get_session
from servicedesk.exceptions import RecordNotFound
from servicedesk.services.pdf_service import render_qr_svg
from servicedesk.services.public_token_service import build_public_url
from servicedesk.services.service_record_service import get_public_service_document

logger = logging.getLogger(__name__)

tracking_bp = Blueprint('tracking', __name__, url_prefix='/track')

NOT_FOUND_BODY = {'status': 'error', 'message': 'Not Found'}


@tracking_bp.errorhandler(RecordNotFound)
def handle_not_found(error):
    logger.info(f"[TRACK] Lookup failed on {request.endpoint}")
    if request.endpoint == 'tracking.data':
        return jsonify(NOT_FOUND_BODY), 404
    return render_template('errors/404.html'), 404


@tracking_bp.after_request
def no_store(response):
    response.headers['Cache-Control'] = 'no-store'
    response.headers['Referrer-Policy'] = 'no-referrer'
    response.headers['X-Robots-Tag'] = 'noindex, nofollow'
    return response


def _public_document(token):
    return get_public_service_document(get_session(), token, current_app.config['TAX_RATE'])


@tracking_bp.route('/<token>')
def detail(token):
    """Tracking page: status, progress and balance, with a QR of this link."""
    document = _public_document(token)
    public_url = build_public_url(current_app.config['PUBLIC_BASE_URL'], token)
    svg = render_qr_svg(public_url, size=160)
    return render_template(
        'tracking/detail.html',
        service=document,
        public_url=public_url,
        # inline: drop the XML prolog
        qr_svg=svg[svg.find('<svg'):],
        business_name=current_app.config.get('BUSINESS_NAME'),
        business_phone=current_app.config.get('BUSINESS_PHONE'),
    )


@tracking_bp.route('/<token>/data')
def data(token):
    """Public projection as JSON."""
    return jsonify(_public_document(token).to_dict())


@tracking_bp.route('/<token>/qr.svg')
def qr(token):
    """QR code of the share link."""
    _public_document(token)
    svg = render_qr_svg(build_public_url(current_app.config['PUBLIC_BASE_URL'], token))
    return Response(svg, mimetype='image/svg+xml')
