"""
Custom route decorators for access control.

- api_login_required: rejects anonymous requests with Unauthenticated (401).
- permission_required: login + role permission check, Unauthorized (403).

Both raise instead of returning responses; the app-level BoardError
handler renders them as JSON.
"""

from functools import wraps

from flask_login import current_user

from taskboard.errors import Unauthenticated, Unauthorized
from taskboard.permissions import has_permission


def api_login_required(f):
    """Require an authenticated, active user."""

    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_user.is_authenticated:
            raise Unauthenticated()
        return f(*args, **kwargs)

    return decorated


def permission_required(permission):
    """Require login + a role that grants ``permission``."""

    def decorator(f):
        @wraps(f)
        @api_login_required
        def decorated(*args, **kwargs):
            if not has_permission(current_user.role, permission):
                raise Unauthorized()
            return f(*args, **kwargs)

        return decorated

    return decorator
