from marshmallow import fields

from arena.extensions import ma
from arena.schemas.user_schema import ISO_FORMAT, UserPublicSchema


class RegistrationSchema(ma.Schema):
    id = fields.String()
    tournament_id = fields.String()
    captain_id = fields.String()
    team_name = fields.String()
    contact_phone = fields.String(allow_none=True)
    whatsapp_number = fields.String(allow_none=True)
    status = fields.String()
    transaction_id = fields.String(allow_none=True)
    created_at = fields.DateTime(format=ISO_FORMAT)


class AdminRegistrationSchema(RegistrationSchema):
    captain = fields.Nested(UserPublicSchema)
