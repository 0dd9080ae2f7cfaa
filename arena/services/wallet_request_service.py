"""
Deposit and withdrawal request lifecycle.

    submitted ──approve──▶ verified (deposit) / paid (withdrawal)
        │
        └──────reject────▶ rejected

Terminal states never change again. Each disposition is a single conditional
UPDATE (``status = 'submitted'`` in the WHERE clause) committed together with
its ledger entry, so concurrent reviewers cannot both apply a request.
"""
import logging

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from arena.extensions import db
from arena.models.user import User, utcnow
from arena.models.deposit_request import DepositRequest, DEPOSIT_STATUSES
from arena.models import deposit_request as deposit_states
from arena.models.withdrawal_request import WithdrawalRequest, WITHDRAWAL_STATUSES
from arena.models import withdrawal_request as withdrawal_states
from arena.models.ledger_transaction import DEPOSIT_CREDIT, WITHDRAWAL_PAYOUT
from arena.services import ledger_service
from arena.services.conversion_service import quote_deposit
from arena.services.notification_service import notify_user
from arena.services.storage_service import ensure_owned_object, PROOFS_BUCKET
from arena.utils.exceptions import (
    AuthorizationError, ConflictError, NotFoundError, ServiceError, ValidationError,
)
from arena.utils.formatting import format_currency, format_zcreds
from arena.utils.pagination import paginate_query
from arena.utils.permissions import can_adjust_balances, can_review_wallet_requests, ensure
from arena.utils.validation import (
    parse_amount, parse_timestamp, sanitize_text, validate_account_number, validate_iban,
)

logger = logging.getLogger(__name__)

SUBMITTED = "submitted"


# ----------------------------------------------------------
# Submission
# ----------------------------------------------------------

def submit_deposit(user, data):
    cfg = current_app.config
    amount = parse_amount(
        data.get("amount_money"),
        field="amount_money",
        minimum=cfg["MIN_DEPOSIT_PKR"],
        allow_zero=False,
    )
    currency = (data.get("currency") or "PKR").strip().upper()
    if currency != "PKR":
        raise ValidationError("Only PKR deposits are accepted", field="currency")

    transfer_at = parse_timestamp(data.get("transfer_timestamp"), field="transfer_timestamp")

    screenshot_path = data.get("screenshot_path") or None
    if screenshot_path:
        ensure_owned_object(PROOFS_BUCKET, screenshot_path, user.id)

    dep = DepositRequest(
        user_id=user.id,
        amount_money=amount,
        currency=currency,
        bank_sender_name=sanitize_text(data.get("bank_sender_name"), "Sender name", 2, 100),
        sender_bank=sanitize_text(data.get("sender_bank"), "Sender bank", 2, 100),
        sender_account_no=validate_account_number(data.get("sender_account_no"), field="sender_account_no"),
        transfer_timestamp=transfer_at,
        screenshot_path=screenshot_path,
        notes=sanitize_text(data.get("notes"), "Notes", 0, 500) or None,
    )
    db.session.add(dep)
    db.session.commit()

    implied_zc, quote = quote_deposit(amount)
    logger.info("Deposit %s submitted by %s for %s", dep.id, user.id, format_currency(amount, "PKR"))
    return dep, implied_zc, quote


def submit_withdrawal(user, data):
    cfg = current_app.config
    amount = parse_amount(
        data.get("amount_zcreds"),
        field="amount_zcreds",
        minimum=cfg["MIN_WITHDRAWAL_ZC"],
        allow_zero=False,
    )

    balance = ledger_service.current_balance(user.id)
    if amount > balance:
        raise ValidationError(
            "You don't have enough Z-Credits for this withdrawal",
            field="amount_zcreds",
            code="INSUFFICIENT_BALANCE",
            details={"balance": str(balance)},
        )

    wr = WithdrawalRequest(
        user_id=user.id,
        amount_zcreds=amount,
        recipient_name=sanitize_text(data.get("recipient_name"), "Recipient name", 2, 100),
        recipient_bank=sanitize_text(data.get("recipient_bank"), "Recipient bank", 2, 100),
        recipient_account_no=validate_account_number(
            data.get("recipient_account_no"), field="recipient_account_no"
        ),
        iban_optional=validate_iban(data.get("iban_optional"), field="iban_optional"),
        notes=sanitize_text(data.get("notes"), "Notes", 0, 500) or None,
    )
    db.session.add(wr)
    db.session.commit()

    logger.info("Withdrawal %s submitted by %s for %s ZC", wr.id, user.id, format_zcreds(amount))
    return wr


# ----------------------------------------------------------
# Disposition
# ----------------------------------------------------------

def _claim(model, request_id, values):
    """
    Move a request out of ``submitted`` with one conditional UPDATE.

    Raises ``NotFoundError`` if the request does not exist and
    ``ConflictError`` if it is no longer ``submitted``.
    """
    updated = (
        db.session.query(model)
        .filter(model.id == request_id, model.status == SUBMITTED)
        .update(values, synchronize_session=False)
    )
    if updated == 1:
        return db.session.get(model, request_id, populate_existing=True)

    current = db.session.query(model.status).filter(model.id == request_id).scalar()
    if current is None:
        raise NotFoundError("Request not found")
    logger.warning("%s %s already %s; disposition refused", model.__name__, request_id, current)
    raise ConflictError(details={"request_id": request_id, "status": current})


def _dispose(action, fn):
    try:
        result = fn()
        db.session.commit()
        return result
    except ServiceError:
        db.session.rollback()
        raise
    except SQLAlchemyError:
        logger.exception("%s failed", action)
        db.session.rollback()
        raise


def approve_deposit(reviewer, request_id, approved_credits):
    """
    Credit the reviewer-entered amount and mark the deposit ``verified``.

    The credited amount is explicit; it may differ from the naive PKR/rate
    conversion (bonuses, corrections).
    """
    ensure(can_review_wallet_requests, reviewer)
    credits = parse_amount(approved_credits, field="approved_credits", allow_zero=False)

    def apply():
        dep = _claim(DepositRequest, request_id, {
            "status": deposit_states.VERIFIED,
            "approved_credits": credits,
            "reviewed_by": reviewer.id,
            "reviewed_at": utcnow(),
        })
        tx = ledger_service.append_transaction(
            dep.user_id,
            credits,
            DEPOSIT_CREDIT,
            reason="Deposit verified",
            reference=dep.id,
            source_type="deposit",
            source_id=dep.id,
            created_by=reviewer.id,
        )
        dep.transaction_id = tx.id
        notify_user(
            dep.user_id,
            title="Deposit verified",
            message=f"Your deposit of {format_currency(dep.amount_money, 'PKR')} was verified. "
                    f"{format_zcreds(credits)} Z-Credits were added to your wallet.",
            notif_type="success",
            details={"deposit_id": dep.id, "transaction_id": tx.id},
            sender_id=reviewer.id,
        )
        return dep

    dep = _dispose(f"Approving deposit {request_id}", apply)
    logger.info("Deposit %s verified by %s: +%s ZC to %s", dep.id, reviewer.id, credits, dep.user_id)
    return dep


def approve_withdrawal(reviewer, request_id, allow_negative=False):
    """Pay out a withdrawal: debit the requested Z-Credits and mark it ``paid``."""
    ensure(can_review_wallet_requests, reviewer)
    if allow_negative and not can_adjust_balances(reviewer.role):
        raise AuthorizationError("Only admins may override the negative balance guard")

    def apply():
        wr = _claim(WithdrawalRequest, request_id, {
            "status": withdrawal_states.PAID,
            "reviewed_by": reviewer.id,
            "reviewed_at": utcnow(),
        })
        ledger_service.lock_user(wr.user_id)
        ledger_service.ensure_sufficient_balance(
            wr.user_id, -wr.amount_zcreds, allow_negative=allow_negative
        )
        tx = ledger_service.append_transaction(
            wr.user_id,
            -wr.amount_zcreds,
            WITHDRAWAL_PAYOUT,
            reason="Withdrawal paid",
            reference=wr.id,
            source_type="withdrawal",
            source_id=wr.id,
            created_by=reviewer.id,
        )
        wr.approved_credits = wr.amount_zcreds
        wr.transaction_id = tx.id
        notify_user(
            wr.user_id,
            title="Withdrawal paid",
            message=f"Your withdrawal of {format_zcreds(wr.amount_zcreds)} Z-Credits has been processed.",
            notif_type="success",
            details={"withdrawal_id": wr.id, "transaction_id": tx.id},
            sender_id=reviewer.id,
        )
        return wr

    wr = _dispose(f"Paying withdrawal {request_id}", apply)
    logger.info("Withdrawal %s paid by %s: -%s ZC from %s", wr.id, reviewer.id, wr.amount_zcreds, wr.user_id)
    return wr


def _reject(model, kind, reviewer, request_id, reason):
    ensure(can_review_wallet_requests, reviewer)
    reason = sanitize_text(reason, "Rejection reason", min_length=1, max_length=500)

    def apply():
        req = _claim(model, request_id, {
            "status": "rejected",
            "rejection_reason": reason,
            "reviewed_by": reviewer.id,
            "reviewed_at": utcnow(),
        })
        notify_user(
            req.user_id,
            title=f"{kind.capitalize()} rejected",
            message=f"Your {kind} request was rejected: {reason}",
            notif_type="error",
            details={f"{kind}_id": req.id},
            sender_id=reviewer.id,
        )
        return req

    req = _dispose(f"Rejecting {kind} {request_id}", apply)
    logger.info("%s %s rejected by %s", kind.capitalize(), req.id, reviewer.id)
    return req


def reject_deposit(reviewer, request_id, reason):
    return _reject(DepositRequest, "deposit", reviewer, request_id, reason)


def reject_withdrawal(reviewer, request_id, reason):
    return _reject(WithdrawalRequest, "withdrawal", reviewer, request_id, reason)


# ----------------------------------------------------------
# Listing
# ----------------------------------------------------------

def _list(model, statuses, status=None, search=None, user_id=None, page=1, limit=20):
    q = model.query.join(User, User.id == model.user_id)
    if user_id:
        q = q.filter(model.user_id == user_id)
    if status:
        if status not in statuses:
            raise ValidationError(f"Unknown status '{status}'", field="status")
        q = q.filter(model.status == status)
    if search:
        q = q.filter(
            or_(
                User.username.ilike(f"%{search}%"),
                User.display_name.ilike(f"%{search}%"),
                User.email.ilike(f"%{search}%"),
            )
        )
    q = q.order_by(model.created_at.desc(), model.id.desc())
    return paginate_query(q, page, limit)


def list_deposits(status=None, search=None, page=1, limit=20):
    return _list(DepositRequest, DEPOSIT_STATUSES, status, search, page=page, limit=limit)


def list_withdrawals(status=None, search=None, page=1, limit=20):
    return _list(WithdrawalRequest, WITHDRAWAL_STATUSES, status, search, page=page, limit=limit)


def user_deposits(user_id, page=1, limit=20):
    return _list(DepositRequest, DEPOSIT_STATUSES, user_id=user_id, page=page, limit=limit)


def user_withdrawals(user_id, page=1, limit=20):
    return _list(WithdrawalRequest, WITHDRAWAL_STATUSES, user_id=user_id, page=page, limit=limit)


def get_deposit(request_id):
    dep = db.session.get(DepositRequest, request_id)
    if not dep:
        raise NotFoundError("Deposit request not found")
    return dep


def get_withdrawal(request_id):
    wr = db.session.get(WithdrawalRequest, request_id)
    if not wr:
        raise NotFoundError("Withdrawal request not found")
    return wr
