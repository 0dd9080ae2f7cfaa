from flask import Blueprint
from flask_jwt_extended import jwt_required

from arena.schemas.tournament_schema import RegistrationSchema
from arena.schemas.user_schema import UserProfileSchema
from arena.services.auth_service import update_profile
from arena.services.tournament_service import user_registrations
from arena.utils.auth_utils import get_current_user
from arena.utils.response_formatter import success_response
from arena.utils.validation import json_body

bp = Blueprint("profile", __name__, url_prefix="/api/v1/profile")

profile_schema = UserProfileSchema()


@bp.route("", methods=["GET"])
@jwt_required()
def get_profile():
    return success_response({"profile": profile_schema.dump(get_current_user())})


@bp.route("", methods=["PATCH"])
@jwt_required()
def patch_profile():
    user = update_profile(get_current_user(), json_body())
    return success_response({"profile": profile_schema.dump(user)}, message="Profile updated")


@bp.route("/registrations", methods=["GET"])
@jwt_required()
def my_registrations():
    regs = user_registrations(get_current_user().id)
    return success_response({"registrations": RegistrationSchema(many=True).dump(regs)})
