from sqlalchemy import event, inspect

from arena.extensions import db
from arena.models.user import gen_uuid, utcnow

DEPOSIT_CREDIT = "deposit_credit"
WITHDRAWAL_PAYOUT = "withdrawal_payout"
ADJUST = "adjust"
TOURNAMENT_ENTRY = "tournament_entry"
TRANSACTION_TYPES = (DEPOSIT_CREDIT, WITHDRAWAL_PAYOUT, ADJUST, TOURNAMENT_ENTRY)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
TRANSACTION_STATUSES = (PENDING, APPROVED, REJECTED)


class LedgerTransaction(db.Model):
    """
    One signed balance change. Positive amounts credit, negative amounts debit.

    Approved rows are never edited; corrections are new offsetting rows.
    """
    __tablename__ = "zcred_transactions"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("ztx"))
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(14, 2), nullable=False)
    type = db.Column(db.String(30), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=APPROVED)

    reason = db.Column(db.String(500))
    reference = db.Column(db.String(255))

    # deposit | withdrawal | registration | None for manual adjustments
    source_type = db.Column(db.String(30))
    source_id = db.Column(db.String(50), index=True)
    created_by = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("transactions", lazy="dynamic"))

    __table_args__ = (
        db.Index("ix_zcred_transactions_user_status", "user_id", "status"),
    )


class ImmutableTransactionError(Exception):
    pass


@event.listens_for(LedgerTransaction, "before_update")
def _block_history_rewrite(mapper, connection, target):
    state = inspect(target)
    was_approved = state.attrs.status.history.deleted or [target.status]
    if APPROVED not in was_approved:
        return
    for attr in ("amount", "type", "user_id", "status"):
        if state.attrs[attr].history.has_changes():
            raise ImmutableTransactionError(
                f"Approved ledger transaction {target.id} cannot change {attr}"
            )


@event.listens_for(LedgerTransaction, "before_delete")
def _block_history_delete(mapper, connection, target):
    if target.status == APPROVED:
        raise ImmutableTransactionError(f"Approved ledger transaction {target.id} cannot be deleted")
