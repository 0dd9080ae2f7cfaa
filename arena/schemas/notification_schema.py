from marshmallow import fields

from arena.extensions import ma
from arena.schemas.user_schema import ISO_FORMAT


class NotificationSchema(ma.Schema):
    id = fields.String()
    type = fields.String()
    title = fields.String()
    message = fields.String()
    details = fields.Dict(allow_none=True)
    is_read = fields.Boolean()
    created_at = fields.DateTime(format=ISO_FORMAT)
