from marshmallow import fields

from arena.extensions import ma

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class UserPublicSchema(ma.Schema):
    id = fields.String()
    username = fields.String(allow_none=True)
    display_name = fields.String(allow_none=True)
    in_game_name = fields.String(allow_none=True)
    avatar_url = fields.String(allow_none=True)
    role = fields.String()


class UserProfileSchema(UserPublicSchema):
    email = fields.String()
    phone = fields.String(allow_none=True)
    whatsapp_number = fields.String(allow_none=True)
    joined_at = fields.DateTime(format=ISO_FORMAT)
    profile_complete = fields.Method("get_profile_complete")
    missing_fields = fields.Method("get_missing_fields")

    def get_profile_complete(self, obj):
        return not obj.missing_profile_fields()

    def get_missing_fields(self, obj):
        return obj.missing_profile_fields()
