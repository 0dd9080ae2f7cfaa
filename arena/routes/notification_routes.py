from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from arena.schemas.notification_schema import NotificationSchema
from arena.services.notification_service import (
    get_user_notifications,
    mark_notification_read,
    mark_all_read_for_user,
    unread_count,
)
from arena.utils.auth_utils import get_current_user
from arena.utils.pagination import page_args, paginate_query
from arena.utils.response_formatter import paginated_response, success_response
from arena.utils.validation import parse_bool

bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")


@bp.route("", methods=["GET"])
@jwt_required()
def get_notifications():
    user = get_current_user()
    page, limit = page_args(request.args)
    is_read = parse_bool(request.args.get("is_read"), default=None)

    items, pagination = paginate_query(get_user_notifications(user.id, is_read), page, limit)
    return paginated_response(
        "notifications",
        NotificationSchema(many=True).dump(items),
        pagination,
        unread=unread_count(user.id),
    )


@bp.route("/<notif_id>/read", methods=["POST"])
@jwt_required()
def read_one(notif_id):
    notif = mark_notification_read(get_current_user().id, notif_id)
    return success_response({"notification": NotificationSchema().dump(notif)})


@bp.route("/read-all", methods=["POST"])
@jwt_required()
def read_all():
    updated = mark_all_read_for_user(get_current_user().id)
    return success_response({"updated": updated})
