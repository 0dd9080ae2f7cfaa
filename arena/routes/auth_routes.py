from flask import Blueprint, current_app
from flask_jwt_extended import get_jwt, get_jwt_identity, jwt_required

from arena.extensions import db
from arena.models.user import User
from arena.schemas.user_schema import UserProfileSchema
from arena.services.auth_service import (
    authenticate_user,
    generate_tokens_for_user,
    register_user,
    revoke_token,
)
from arena.utils.auth_utils import get_current_user
from arena.utils.response_formatter import success_response, error_response
from arena.utils.validation import json_body

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")

profile_schema = UserProfileSchema()


@bp.route("/register", methods=["POST"])
def register():
    data = json_body()
    if not all([data.get("email"), data.get("password")]):
        return error_response("VALIDATION_ERROR", "Missing required fields", status=422)

    user = register_user(data["email"], data["password"], display_name=data.get("display_name"))
    access, refresh = generate_tokens_for_user(user)
    return success_response({
        "user": profile_schema.dump(user),
        "access_token": access,
        "refresh_token": refresh,
    }, status=201)


@bp.route("/login", methods=["POST"])
def login():
    data = json_body()
    user = authenticate_user(data.get("email"), data.get("password"))
    access, refresh = generate_tokens_for_user(user)
    return success_response({
        "user": profile_schema.dump(user),
        "access_token": access,
        "refresh_token": refresh,
    })


@bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh():
    user = db.session.get(User, get_jwt_identity())
    if not user:
        return error_response("UNAUTHORIZED", "Invalid user", status=401)
    access, _ = generate_tokens_for_user(user)
    return success_response({"access_token": access})


# ----------------------------------------------------------
# Sign-out: the presented token is revoked server-side
# ----------------------------------------------------------
@bp.route("/logout", methods=["POST"])
@jwt_required(verify_type=False)
def logout():
    revoke_token(get_jwt()["jti"], user_id=get_jwt_identity())
    current_app.logger.info("User %s signed out", get_jwt_identity())
    return success_response({"message": "Successfully logged out"})


@bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    return success_response({"user": profile_schema.dump(get_current_user())})
