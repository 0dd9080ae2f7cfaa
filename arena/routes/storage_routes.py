import os

from flask import Blueprint, current_app, request, send_file
from flask_jwt_extended import jwt_required
from werkzeug.utils import secure_filename

from arena.models.user import gen_uuid
from arena.services import storage_service
from arena.services.storage_service import COVERS_BUCKET, PROOFS_BUCKET
from arena.utils.auth_utils import get_current_user
from arena.utils.permissions import can_manage_tournaments, can_review_wallet_requests, ensure
from arena.utils.response_formatter import success_response, error_response
from arena.utils.validation import json_body

bp = Blueprint("storage", __name__, url_prefix="/api/v1/storage")


def _owner_path(user, requested, filename):
    name = requested or f"{gen_uuid()}-{secure_filename(filename or 'upload')}"
    name = storage_service.clean_path(name)
    if name.split("/", 1)[0] != user.id:
        name = f"{user.id}/{name}"
    return name


# ==========================================================
#  POST /storage/<bucket>   multipart: file, path (optional)
# ==========================================================
@bp.route("/<bucket>", methods=["POST"])
@jwt_required()
def upload(bucket):
    user = get_current_user()
    if bucket == COVERS_BUCKET:
        ensure(can_manage_tournaments, user, "Moderator or admin privileges required")

    file = request.files.get("file")
    if file is None:
        return error_response("VALIDATION_ERROR", "No file provided", {"field": "file"}, status=422)

    path = storage_service.upload(bucket, _owner_path(user, request.form.get("path"), file.filename), file)
    data = {"bucket": bucket, "path": path}
    if storage_service.is_public_bucket(bucket):
        data["url"] = storage_service.get_public_url(bucket, path)
    else:
        data["signed_url"] = storage_service.create_signed_url(bucket, path)
    return success_response(data, status=201)


@bp.route("/<bucket>/signed-url", methods=["POST"])
@jwt_required()
def signed_url(bucket):
    user = get_current_user()
    data = json_body()
    path = storage_service.clean_path(data.get("path"))
    if bucket == PROOFS_BUCKET and path.split("/", 1)[0] != user.id:
        ensure(can_review_wallet_requests, user, "You can only view your own receipts")
    url = storage_service.create_signed_url(bucket, path, data.get("expires_in"))
    return success_response({"signed_url": url})


@bp.route("/public/<bucket>/<path:path>", methods=["GET"])
def public_object(bucket, path):
    if not storage_service.is_public_bucket(bucket):
        return error_response("FORBIDDEN", "This bucket is private", status=403)
    return _send(bucket, path)


@bp.route("/signed/<token>", methods=["GET"])
def signed_object(token):
    bucket, path = storage_service.resolve_signed_token(token)
    return _send(bucket, path)


def _send(bucket, path):
    target = storage_service.object_file_path(bucket, path)
    if not os.path.isfile(target):
        current_app.logger.warning("Missing object %s/%s", bucket, path)
        return error_response("NOT_FOUND", "Object not found", status=404)
    return send_file(target)
