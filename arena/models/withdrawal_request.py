from arena.extensions import db
from arena.models.user import gen_uuid, utcnow

SUBMITTED = "submitted"
PAID = "paid"
REJECTED = "rejected"
WITHDRAWAL_STATUSES = (SUBMITTED, PAID, REJECTED)

class WithdrawalRequest(db.Model):
    __tablename__ = "zcred_withdrawal_forms"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("wd"))
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False, index=True)

    amount_zcreds = db.Column(db.Numeric(14, 2), nullable=False)
    recipient_name = db.Column(db.String(100), nullable=False)
    recipient_bank = db.Column(db.String(100), nullable=False)
    recipient_account_no = db.Column(db.String(20), nullable=False)
    iban_optional = db.Column(db.String(34))
    notes = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default=SUBMITTED, index=True)
    approved_credits = db.Column(db.Numeric(14, 2))
    reviewed_by = db.Column(db.String(50), db.ForeignKey("users.id"))
    reviewed_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.String(500))
    transaction_id = db.Column(db.String(50), db.ForeignKey("zcred_transactions.id"), unique=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship("User", foreign_keys=[user_id], backref="withdrawal_requests")
    transaction = db.relationship("LedgerTransaction", foreign_keys=[transaction_id])
