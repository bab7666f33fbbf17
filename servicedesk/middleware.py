"""Middleware for the owner (business account) context."""
from functools import wraps
from flask import session, g, current_app
from servicedesk.exceptions import UnauthorizedError


def load_owner():
    """
    Load the current owner into g (Flask's per-request global).

    The upstream login stores the owner id in the session under
    SESSION_OWNER_KEY. Sets g.owner_id, or None for anonymous requests.
    """
    owner_id = session.get(current_app.config.get('SESSION_OWNER_KEY', 'owner_id'))
    g.owner_id = str(owner_id) if owner_id not in (None, '') else None


def require_owner(f):
    """
    Decorator: Require an owner session.

    Raises UnauthorizedError, rendered by the app error handler.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('owner_id') is None:
            raise UnauthorizedError()
        return f(*args, **kwargs)
    return decorated_function
