import logging
from datetime import timedelta

from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token
from sqlalchemy import func

from arena.extensions import db
from arena.models.user import User
from arena.models.token_blocklist import TokenBlocklist
from arena.utils.auth_utils import hash_password, check_password
from arena.utils.exceptions import AuthorizationError, NotFoundError, ServiceError, ValidationError
from arena.utils.permissions import ADMIN, PLAYER, ROLES, can_manage_users, ensure, is_admin_role
from arena.utils.validation import (
    sanitize_text, validate_password, validate_phone_number, validate_username,
)

logger = logging.getLogger(__name__)


def register_user(email, password, display_name=None):
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", field="email")
    validate_password(password)

    if User.query.filter(func.lower(User.email) == email).first():
        raise ServiceError(
            code="USER_EXISTS",
            message="User with that email already exists",
            details={"field": "email"},
            status=409,
        )

    user = User(
        email=email,
        password_hash=hash_password(password),
        display_name=sanitize_text(display_name, "Display name", 0, 100) or None,
        role=PLAYER,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("Registered user %s", user.id)
    return user


def authenticate_user(email, password):
    user = User.query.filter(func.lower(User.email) == (email or "").strip().lower()).first()
    if not user or not password or not check_password(password, user.password_hash):
        raise ServiceError(code="AUTH_FAILED", message="Invalid credentials", status=401)
    return user


def generate_tokens_for_user(user):
    claims = {"role": user.role}
    access = create_access_token(
        identity=user.id,
        additional_claims=claims,
        expires_delta=timedelta(seconds=current_app.config.get("ACCESS_EXPIRES", 86400)),
    )
    refresh = create_refresh_token(
        identity=user.id,
        expires_delta=timedelta(seconds=current_app.config.get("REFRESH_EXPIRES", 604800)),
    )
    return access, refresh


def revoke_token(jti, user_id=None):
    if not TokenBlocklist.query.filter_by(jti=jti).first():
        db.session.add(TokenBlocklist(jti=jti, user_id=user_id))
        db.session.commit()


def is_token_revoked(jti):
    return db.session.query(TokenBlocklist.id).filter_by(jti=jti).scalar() is not None


def update_profile(user, data):
    """
    Apply a partial profile update.

    Every field is validated before any is written. Usernames are stored
    lowercase and must be unique; phone numbers use the Pakistani formats
    accepted by ``validate_phone_number``.
    """
    changes = {}
    if "username" in data:
        username = validate_username(data.get("username"))
        taken = User.query.filter(User.username == username, User.id != user.id).first()
        if taken:
            raise ValidationError("This username is already taken", field="username", code="USERNAME_TAKEN")
        changes["username"] = username

    if "display_name" in data:
        changes["display_name"] = sanitize_text(data.get("display_name"), "Display name", 0, 100) or None
    if "in_game_name" in data:
        changes["in_game_name"] = sanitize_text(data.get("in_game_name"), "In-game name", 0, 100) or None

    for field in ("phone", "whatsapp_number"):
        if field in data:
            value = data.get(field)
            changes[field] = validate_phone_number(value, field=field) if value else None

    if "avatar_url" in data:
        changes["avatar_url"] = data.get("avatar_url") or None

    for key, value in changes.items():
        setattr(user, key, value)
    db.session.commit()
    return user


def update_user_role(admin, target_user_id, new_role):
    ensure(can_manage_users, admin)
    if new_role not in ROLES:
        raise ValidationError(f"Role must be one of {', '.join(ROLES)}", field="role")

    target = db.session.get(User, target_user_id)
    if not target:
        raise NotFoundError("User not found")
    if target.id == admin.id and new_role != ADMIN:
        raise AuthorizationError("You cannot remove your own admin role", code="SELF_DEMOTION")

    previous = target.role
    target.role = new_role
    db.session.commit()
    logger.info("Role of %s changed %s -> %s by %s", target.id, previous, new_role, admin.id)
    return target


def is_admin(user_id):
    user = db.session.get(User, user_id) if user_id else None
    return bool(user and is_admin_role(user.role))


def list_users(search=None):
    q = User.query
    if search:
        like = f"%{search}%"
        q = q.filter(
            (User.email.ilike(like))
            | (User.username.ilike(like))
            | (User.display_name.ilike(like))
        )
    return q.order_by(User.joined_at.desc())
