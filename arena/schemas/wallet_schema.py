from marshmallow import fields

from arena.extensions import ma
from arena.schemas.user_schema import ISO_FORMAT, UserPublicSchema
from arena.utils.formatting import format_zcred_display


class TransactionSchema(ma.Schema):
    id = fields.String()
    user_id = fields.String()
    amount = fields.Decimal(as_string=True)
    amount_display = fields.Method("get_amount_display")
    type = fields.String()
    status = fields.String()
    reason = fields.String(allow_none=True)
    reference = fields.String(allow_none=True)
    source_type = fields.String(allow_none=True)
    source_id = fields.String(allow_none=True)
    created_by = fields.String(allow_none=True)
    created_at = fields.DateTime(format=ISO_FORMAT)

    def get_amount_display(self, obj):
        return format_zcred_display(obj.amount)


class _ReviewedRequestSchema(ma.Schema):
    id = fields.String()
    user_id = fields.String()
    status = fields.String()
    notes = fields.String(allow_none=True)
    approved_credits = fields.Decimal(as_string=True, allow_none=True)
    reviewed_by = fields.String(allow_none=True)
    reviewed_at = fields.DateTime(format=ISO_FORMAT, allow_none=True)
    rejection_reason = fields.String(allow_none=True)
    transaction_id = fields.String(allow_none=True)
    created_at = fields.DateTime(format=ISO_FORMAT)


class DepositRequestSchema(_ReviewedRequestSchema):
    amount_money = fields.Decimal(as_string=True)
    currency = fields.String()
    bank_sender_name = fields.String()
    sender_bank = fields.String()
    sender_account_no = fields.String()
    transfer_timestamp = fields.DateTime(format=ISO_FORMAT, allow_none=True)
    screenshot_path = fields.String(allow_none=True)


class WithdrawalRequestSchema(_ReviewedRequestSchema):
    amount_zcreds = fields.Decimal(as_string=True)
    recipient_name = fields.String()
    recipient_bank = fields.String()
    recipient_account_no = fields.String()
    iban_optional = fields.String(allow_none=True)


class AdminDepositRequestSchema(DepositRequestSchema):
    user = fields.Nested(UserPublicSchema)


class AdminWithdrawalRequestSchema(WithdrawalRequestSchema):
    user = fields.Nested(UserPublicSchema)
