from arena.extensions import db
from arena.models.user import gen_uuid, utcnow

SUBMITTED = "submitted"
VERIFIED = "verified"
REJECTED = "rejected"
DEPOSIT_STATUSES = (SUBMITTED, VERIFIED, REJECTED)

class DepositRequest(db.Model):
    __tablename__ = "zcred_deposit_forms"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("dep"))
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False, index=True)

    amount_money = db.Column(db.Numeric(14, 2), nullable=False)
    currency = db.Column(db.String(10), default="PKR")

    bank_sender_name = db.Column(db.String(100), nullable=False)
    sender_bank = db.Column(db.String(100), nullable=False)
    sender_account_no = db.Column(db.String(20), nullable=False)
    transfer_timestamp = db.Column(db.DateTime)
    screenshot_path = db.Column(db.String(1024))
    notes = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default=SUBMITTED, index=True)
    approved_credits = db.Column(db.Numeric(14, 2))
    reviewed_by = db.Column(db.String(50), db.ForeignKey("users.id"))
    reviewed_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.String(500))
    transaction_id = db.Column(db.String(50), db.ForeignKey("zcred_transactions.id"), unique=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    user = db.relationship("User", foreign_keys=[user_id], backref="deposit_requests")
    transaction = db.relationship("LedgerTransaction", foreign_keys=[transaction_id])
