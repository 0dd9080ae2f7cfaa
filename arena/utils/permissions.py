"""
Role → capability rules.

Every authorization decision goes through one of the ``can_*`` helpers so
the rules live in one place.
"""
from functools import wraps

from arena.utils.auth_utils import get_current_user
from arena.utils.exceptions import AuthorizationError

PLAYER = "player"
MODERATOR = "moderator"
ADMIN = "admin"
ROLES = (PLAYER, MODERATOR, ADMIN)

STAFF_ROLES = (MODERATOR, ADMIN)


def is_admin_role(role):
    return role == ADMIN


def can_review_wallet_requests(role):
    return role in STAFF_ROLES


def can_adjust_balances(role):
    return role == ADMIN


def can_set_conversion_rate(role):
    return role == ADMIN


def can_manage_users(role):
    return role == ADMIN


def can_manage_tournaments(role):
    return role in STAFF_ROLES


def ensure(capability, user, message=None):
    if not user or not capability(user.role):
        raise AuthorizationError(message or "Admin privileges required")
    return user


def require_capability(capability, message=None):
    """Route decorator; place below ``@jwt_required()``."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            ensure(capability, get_current_user(), message)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
