from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from arena.schemas.user_schema import UserProfileSchema
from arena.services.auth_service import list_users, update_user_role
from arena.utils.auth_utils import get_current_user
from arena.utils.pagination import page_args, paginate_query
from arena.utils.permissions import can_manage_users, require_capability
from arena.utils.response_formatter import paginated_response, success_response
from arena.utils.validation import json_body

bp = Blueprint("admin_users", __name__, url_prefix="/api/v1/admin/users")


@bp.route("", methods=["GET"])
@jwt_required()
@require_capability(can_manage_users)
def get_users():
    page, limit = page_args(request.args)
    items, pagination = paginate_query(list_users(request.args.get("search")), page, limit)
    return paginated_response("users", UserProfileSchema(many=True).dump(items), pagination)


@bp.route("/<user_id>/role", methods=["PATCH"])
@jwt_required()
def change_role(user_id):
    data = json_body()
    user = update_user_role(get_current_user(), user_id, data.get("role"))
    return success_response({"user": UserProfileSchema().dump(user)}, message="Role updated")
