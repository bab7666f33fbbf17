"""Liveness check for load balancers and uptime monitors."""
from flask import Blueprint, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from servicedesk.database import get_session
from servicedesk.models import DocumentSequence

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Report whether the database and the folio counter table are reachable.

    Folios cannot be issued without the counter table, so a missing table
    counts as unhealthy even when the connection itself works.

    Returns:
        200: {'status': 'healthy', ...}
        503: {'status': 'unhealthy', ...}
    """
    try:
        get_session().query(DocumentSequence.id).limit(1).all()
    except SQLAlchemyError as e:
        current_app.logger.error(f"[HEALTH] Database check failed: {e}")
        return jsonify({
            'status': 'unhealthy',
            'database': 'unavailable',
            'sequences': 'unknown',
        }), 503

    return jsonify({
        'status': 'healthy',
        'database': 'connected',
        'sequences': 'ready',
    }), 200
