"""
Z-Credits ledger.

``zcred_transactions`` is append-only. A user's balance is the sum of their
approved transaction amounts and is always computed from the table, never
stored. Writers that debit must hold the user's row lock (``lock_user``) while
checking and appending so two debits cannot both pass the balance check.

Functions that only stage rows (``append_transaction``) leave the commit to the
caller so a status change and its ledger entry land in one database transaction.
"""
import logging
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from arena.extensions import db
from arena.models.user import User
from arena.models.ledger_transaction import (
    LedgerTransaction, APPROVED, ADJUST, TRANSACTION_TYPES, TRANSACTION_STATUSES,
)
from arena.models.deposit_request import DepositRequest, VERIFIED, SUBMITTED as DEPOSIT_SUBMITTED
from arena.models.withdrawal_request import WithdrawalRequest, PAID, SUBMITTED as WITHDRAWAL_SUBMITTED
from arena.services.notification_service import notify_user
from arena.utils.exceptions import BusinessRuleError, NotFoundError, ServiceError, ValidationError
from arena.utils.formatting import format_zcreds
from arena.utils.pagination import paginate_query
from arena.utils.permissions import can_adjust_balances, ensure
from arena.utils.validation import parse_signed_amount, sanitize_text

logger = logging.getLogger(__name__)


def lock_user(user_id):
    """Fetch the user row FOR UPDATE; this serialises balance changes per user."""
    user = (
        User.query
        .filter_by(id=user_id)
        .with_for_update()
        .first()
    )
    if not user:
        raise NotFoundError("User not found")
    return user


def current_balance(user_id) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(LedgerTransaction.amount), 0))
        .filter(
            LedgerTransaction.user_id == user_id,
            LedgerTransaction.status == APPROVED,
        )
        .scalar()
    )
    return Decimal(str(total or 0))


def append_transaction(user_id, amount, tx_type, status=APPROVED, reason=None, reference=None,
                       source_type=None, source_id=None, created_by=None):
    if tx_type not in TRANSACTION_TYPES:
        raise ValueError(f"Unknown transaction type: {tx_type}")
    if status not in TRANSACTION_STATUSES:
        raise ValueError(f"Unknown transaction status: {status}")

    tx = LedgerTransaction(
        user_id=user_id,
        amount=Decimal(str(amount)),
        type=tx_type,
        status=status,
        reason=reason,
        reference=reference,
        source_type=source_type,
        source_id=source_id,
        created_by=created_by,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def ensure_sufficient_balance(user_id, delta, allow_negative=False, code="INSUFFICIENT_BALANCE"):
    """
    Check that ``balance + delta`` stays non-negative and return the new balance.

    Caller must already hold ``lock_user(user_id)``.
    """
    balance = current_balance(user_id)
    new_balance = balance + Decimal(str(delta))
    if new_balance < 0 and not allow_negative:
        raise BusinessRuleError(
            code,
            "Insufficient Z-Credits for this operation" if code == "INSUFFICIENT_BALANCE"
            else f"This adjustment would result in a negative balance ({format_zcreds(new_balance)} ZC)",
            details={
                "balance": str(balance),
                "delta": str(delta),
                "new_balance": str(new_balance),
            },
        )
    return new_balance


def transaction_history(user_id, status=None, tx_type=None, page=1, limit=20):
    q = LedgerTransaction.query.filter_by(user_id=user_id)
    if status:
        q = q.filter(LedgerTransaction.status == status)
    if tx_type:
        q = q.filter(LedgerTransaction.type == tx_type)
    q = q.order_by(LedgerTransaction.created_at.desc(), LedgerTransaction.id.desc())
    return paginate_query(q, page, limit)


def manual_zcred_adjustment(admin, user_id, delta, reason, reference=None, allow_negative=False):
    """Apply an out-of-band signed balance change with a mandatory reason."""
    ensure(can_adjust_balances, admin)
    delta = parse_signed_amount(delta, field="delta_zc")
    reason = sanitize_text(reason, "Reason", min_length=3, max_length=500)
    reference = sanitize_text(reference, "Reference", max_length=255) or None

    try:
        user = lock_user(user_id)
        new_balance = ensure_sufficient_balance(
            user.id, delta, allow_negative=allow_negative, code="NEGATIVE_BALANCE"
        )
        tx = append_transaction(
            user.id,
            delta,
            ADJUST,
            reason=reason,
            reference=reference,
            created_by=admin.id,
        )
        notify_user(
            user.id,
            title="Balance adjusted",
            message=f"Your balance was {'credited' if delta > 0 else 'debited'} "
                    f"{format_zcreds(abs(delta))} ZC: {reason}",
            notif_type="success" if delta > 0 else "warning",
            details={"transaction_id": tx.id},
            sender_id=admin.id,
        )
        db.session.commit()
    except ServiceError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        logger.exception("Manual adjustment for %s failed", user_id)
        db.session.rollback()
        raise

    logger.info(
        "Manual adjustment %s ZC for %s by %s (allow_negative=%s)",
        delta, user_id, admin.id, allow_negative,
    )
    return tx, new_balance


def list_balances(search=None, page=1, limit=20):
    """Admin wallet listing: every user with their approved balance."""
    balance_col = func.coalesce(func.sum(LedgerTransaction.amount), 0).label("balance")
    q = (
        db.session.query(User, balance_col)
        .outerjoin(
            LedgerTransaction,
            (LedgerTransaction.user_id == User.id) & (LedgerTransaction.status == APPROVED),
        )
        .group_by(User.id)
    )
    if search:
        q = q.filter(
            or_(
                User.username.ilike(f"%{search}%"),
                User.display_name.ilike(f"%{search}%"),
                User.email.ilike(f"%{search}%"),
                User.id == search,
            )
        )
    q = q.order_by(balance_col.desc(), User.id)
    rows = q.offset((page - 1) * limit).limit(limit).all()
    total = q.order_by(None).count()
    return [(user, Decimal(str(balance))) for user, balance in rows], {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


def wallet_overview():
    circulating = (
        db.session.query(func.coalesce(func.sum(LedgerTransaction.amount), 0))
        .filter(LedgerTransaction.status == APPROVED)
        .scalar()
    )
    return {
        "credits_in_circulation": str(Decimal(str(circulating or 0))),
        "pending_deposits": DepositRequest.query.filter_by(status=DEPOSIT_SUBMITTED).count(),
        "pending_withdrawals": WithdrawalRequest.query.filter_by(status=WITHDRAWAL_SUBMITTED).count(),
        "transactions": LedgerTransaction.query.count(),
    }


def _check_requests(model, done_status, source_type):
    problems = []
    for req in model.query.filter(model.status == done_status).all():
        linked = (
            LedgerTransaction.query
            .filter_by(source_type=source_type, source_id=req.id, status=APPROVED)
            .all()
        )
        if len(linked) != 1 or not req.transaction_id or linked[0].id != req.transaction_id:
            problems.append({
                "source_type": source_type,
                "request_id": req.id,
                "issue": "expected exactly one linked approved transaction",
                "linked_transactions": [t.id for t in linked],
            })

    orphans = (
        LedgerTransaction.query
        .outerjoin(model, model.id == LedgerTransaction.source_id)
        .filter(LedgerTransaction.source_type == source_type)
        .filter(or_(model.id.is_(None), model.status != done_status))
        .all()
    )
    for tx in orphans:
        problems.append({
            "source_type": source_type,
            "transaction_id": tx.id,
            "issue": f"transaction points at a request that is not {done_status}",
        })
    return problems


def ledger_integrity_report():
    """
    Cross-check requests against the ledger.

    Every verified deposit and paid withdrawal must have exactly one linked
    approved transaction, and no request-sourced transaction may point at a
    request in any other state.
    """
    problems = (
        _check_requests(DepositRequest, VERIFIED, "deposit")
        + _check_requests(WithdrawalRequest, PAID, "withdrawal")
    )
    return {
        "status": "healthy" if not problems else "integrity_compromised",
        "problem_count": len(problems),
        "problems": problems,
    }


def parse_history_filters(args):
    status = args.get("status")
    tx_type = args.get("type")
    if status and status not in TRANSACTION_STATUSES:
        raise ValidationError(f"Unknown status '{status}'", field="status")
    if tx_type and tx_type not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown type '{tx_type}'", field="type")
    return status, tx_type
