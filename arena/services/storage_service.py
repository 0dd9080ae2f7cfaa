"""
Bucketed file storage on the local filesystem.

``avatars`` and ``covers`` are public; ``proofs`` (deposit receipts) is private
and only reachable through time-limited signed URLs. Object paths are always
``<owner_id>/<filename>`` inside a bucket.
"""
import logging
import os
from datetime import datetime, timezone

from flask import current_app, url_for
from itsdangerous import BadSignature, URLSafeTimedSerializer
from werkzeug.utils import secure_filename

from arena.utils.exceptions import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

PROOFS_BUCKET = "proofs"
AVATARS_BUCKET = "avatars"
COVERS_BUCKET = "covers"

SIGNED_URL_SALT = "storage-signed-url"


def _serializer():
    return URLSafeTimedSerializer(current_app.config["JWT_SECRET_KEY"])


def is_public_bucket(bucket):
    return bucket in current_app.config["PUBLIC_BUCKETS"]


def _check_bucket(bucket):
    cfg = current_app.config
    if bucket not in cfg["PUBLIC_BUCKETS"] and bucket not in cfg["PRIVATE_BUCKETS"]:
        raise NotFoundError(f"Unknown bucket '{bucket}'")


def clean_path(path):
    """Normalise an object path; every segment goes through ``secure_filename``."""
    if not path:
        raise ValidationError("path is required", field="path")
    segments = [secure_filename(s) for s in str(path).split("/") if s]
    if not segments or any(not s for s in segments):
        raise ValidationError("Invalid object path", field="path")
    return "/".join(segments)


def object_file_path(bucket, path):
    _check_bucket(bucket)
    return os.path.join(current_app.config["STORAGE_ROOT"], bucket, *clean_path(path).split("/"))


def upload(bucket, path, file):
    """
    Store ``file`` (a werkzeug ``FileStorage``) at ``bucket/path``.

    Only images are accepted: jpeg, png or webp, up to ``MAX_UPLOAD_BYTES``.
    Returns the cleaned object path.
    """
    _check_bucket(bucket)
    cfg = current_app.config
    if not file or not file.filename:
        raise ValidationError("No file provided", field="file")

    if file.mimetype not in cfg["PROOF_MIME_TYPES"]:
        raise ValidationError(
            "Only JPEG, PNG and WEBP images are allowed",
            field="file",
            code="UNSUPPORTED_FILE_TYPE",
            details={"mimetype": file.mimetype},
        )

    data = file.read()
    if len(data) > cfg["MAX_UPLOAD_BYTES"]:
        raise ValidationError(
            f"File exceeds the {cfg['MAX_UPLOAD_BYTES'] // (1024 * 1024)} MB limit",
            field="file",
            code="FILE_TOO_LARGE",
        )
    if not data:
        raise ValidationError("File is empty", field="file")

    path = clean_path(path)
    target = object_file_path(bucket, path)
    os.makedirs(os.path.dirname(target), exist_ok=True)
    with open(target, "wb") as fh:
        fh.write(data)

    logger.info("Stored %s/%s (%d bytes)", bucket, path, len(data))
    return path


def ensure_owned_object(bucket, path, owner_id):
    """The object must exist and live under the owner's folder."""
    path = clean_path(path)
    if path.split("/", 1)[0] != secure_filename(owner_id):
        raise AuthorizationError("You can only attach your own uploads")
    if not os.path.isfile(object_file_path(bucket, path)):
        raise ValidationError("Uploaded file not found", field="screenshot_path")
    return path


def get_public_url(bucket, path):
    _check_bucket(bucket)
    if not is_public_bucket(bucket):
        raise AuthorizationError(f"Bucket '{bucket}' is private; use a signed URL")
    return url_for("storage.public_object", bucket=bucket, path=clean_path(path), _external=True)


def create_signed_url(bucket, path, expires_in=None):
    _check_bucket(bucket)
    try:
        ttl = int(expires_in or current_app.config["SIGNED_URL_EXPIRES"])
    except (TypeError, ValueError):
        raise ValidationError("expires_in must be a whole number of seconds", field="expires_in")
    if ttl <= 0:
        raise ValidationError("expires_in must be positive", field="expires_in")
    token = _serializer().dumps(
        {"bucket": bucket, "path": clean_path(path), "ttl": ttl},
        salt=SIGNED_URL_SALT,
    )
    return url_for("storage.signed_object", token=token, _external=True)


def resolve_signed_token(token):
    """Return ``(bucket, path)`` for a valid, unexpired signed token."""
    try:
        data, signed_at = _serializer().loads(token, salt=SIGNED_URL_SALT, return_timestamp=True)
    except BadSignature:
        raise AuthorizationError("Invalid signed URL", code="INVALID_SIGNATURE")

    age = (datetime.now(timezone.utc) - signed_at).total_seconds()
    if age > data["ttl"]:
        raise AuthorizationError("Signed URL has expired", code="SIGNED_URL_EXPIRED")
    return data["bucket"], data["path"]
