from flask import g, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from flask_limiter.util import get_remote_address
from jwt.exceptions import PyJWTError

from arena.extensions import bcrypt, db
from arena.utils.exceptions import ServiceError


def hash_password(password: str) -> str:
    return bcrypt.generate_password_hash(password).decode("utf-8")

def check_password(password, hashed_password):
    return bcrypt.check_password_hash(hashed_password, password)


def get_current_user():
    """
    The authenticated profile for this request, loaded once and kept on ``g``.

    Must be called after ``@jwt_required()``.
    """
    uid = get_jwt_identity()
    cached = g.get("current_user")
    if cached is None or cached.id != uid:
        from arena.models.user import User

        user = db.session.get(User, uid) if uid else None
        if not user:
            raise ServiceError("UNAUTHORIZED", "Invalid user", status=401)
        g.current_user = user
    return g.current_user


def user_or_ip_key():
    """Rate-limit bucket: the JWT identity when present, otherwise the client address."""
    try:
        verify_jwt_in_request(optional=True)
        identity = get_jwt_identity()
    except (JWTExtendedException, PyJWTError):
        identity = None
    if identity:
        return f"user:{identity}:{request.endpoint}"
    return f"ip:{get_remote_address()}:{request.endpoint}"
