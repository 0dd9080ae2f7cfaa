from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func

from arena.extensions import db
from arena.models.deposit_request import DepositRequest, VERIFIED
from arena.models.ledger_transaction import (
    LedgerTransaction, ImmutableTransactionError, ADJUST, APPROVED, DEPOSIT_CREDIT, PENDING, REJECTED,
)
from arena.models.notification import Notification
from arena.services import ledger_service, wallet_request_service
from arena.utils.exceptions import AuthorizationError, BusinessRuleError, NotFoundError, ValidationError


def approved_sum(user_id):
    total = (
        db.session.query(func.coalesce(func.sum(LedgerTransaction.amount), 0))
        .filter_by(user_id=user_id, status=APPROVED)
        .scalar()
    )
    return Decimal(str(total))


def test_balance_is_sum_of_approved_transactions(app, player, admin):
    ledger_service.append_transaction(player.id, "100", DEPOSIT_CREDIT)
    ledger_service.append_transaction(player.id, "-30.50", ADJUST, created_by=admin.id)
    ledger_service.append_transaction(player.id, "999", DEPOSIT_CREDIT, status=PENDING)
    ledger_service.append_transaction(player.id, "500", DEPOSIT_CREDIT, status=REJECTED)
    db.session.commit()

    assert ledger_service.current_balance(player.id) == Decimal("69.50")
    assert ledger_service.current_balance(player.id) == approved_sum(player.id)


def test_balance_of_user_without_transactions_is_zero(app, player):
    assert ledger_service.current_balance(player.id) == Decimal("0")


def test_append_rejects_unknown_type(app, player):
    with pytest.raises(ValueError):
        ledger_service.append_transaction(player.id, "10", "bonus")


def test_manual_adjustment_credits_and_notifies(app, admin, player):
    tx, balance = ledger_service.manual_zcred_adjustment(admin, player.id, "25", "Tournament prize")

    assert balance == Decimal("25")
    assert tx.type == ADJUST
    assert tx.status == APPROVED
    assert tx.created_by == admin.id
    assert ledger_service.current_balance(player.id) == Decimal("25")
    notif = Notification.query.filter_by(user_id=player.id).one()
    assert notif.details["transaction_id"] == tx.id


def test_negative_adjustment_refused_when_balance_would_go_negative(app, admin, player, fund):
    fund(player, 100)
    with pytest.raises(BusinessRuleError) as exc:
        ledger_service.manual_zcred_adjustment(admin, player.id, "-500", "Chargeback")

    assert exc.value.code == "NEGATIVE_BALANCE"
    assert ledger_service.current_balance(player.id) == Decimal("100")
    assert LedgerTransaction.query.filter_by(user_id=player.id).count() == 1


def test_negative_adjustment_allowed_with_override(app, admin, player, fund):
    fund(player, 100)
    _, balance = ledger_service.manual_zcred_adjustment(
        admin, player.id, "-500", "Chargeback", allow_negative=True
    )
    assert balance == Decimal("-400")
    assert ledger_service.current_balance(player.id) == Decimal("-400")


def test_negative_adjustment_down_to_exactly_zero_is_allowed(app, admin, player, fund):
    fund(player, 100)
    _, balance = ledger_service.manual_zcred_adjustment(admin, player.id, "-100", "Correction")
    assert balance == Decimal("0")


def test_adjustment_requires_admin(app, moderator, player):
    with pytest.raises(AuthorizationError):
        ledger_service.manual_zcred_adjustment(moderator, player.id, "10", "Bonus")
    assert LedgerTransaction.query.count() == 0


@pytest.mark.parametrize("delta, reason", [("0", "Bonus"), ("abc", "Bonus"), ("10", ""), ("10", "ok")])
def test_adjustment_validates_delta_and_reason(app, admin, player, delta, reason):
    with pytest.raises(ValidationError):
        ledger_service.manual_zcred_adjustment(admin, player.id, delta, reason)


def test_adjustment_for_unknown_user(app, admin):
    with pytest.raises(NotFoundError):
        ledger_service.manual_zcred_adjustment(admin, "usr-missing", "10", "Bonus")


def test_approved_transactions_are_immutable(app, player):
    tx = ledger_service.append_transaction(player.id, "10", DEPOSIT_CREDIT)
    db.session.commit()

    tx.amount = Decimal("1000")
    with pytest.raises(ImmutableTransactionError):
        db.session.commit()
    db.session.rollback()

    db.session.delete(db.session.get(LedgerTransaction, tx.id))
    with pytest.raises(ImmutableTransactionError):
        db.session.commit()
    db.session.rollback()
    assert ledger_service.current_balance(player.id) == Decimal("10")


def test_history_is_newest_first_and_filterable(app, player):
    base = datetime(2025, 1, 1)
    for i, status in enumerate([APPROVED, PENDING, APPROVED]):
        db.session.add(LedgerTransaction(
            user_id=player.id, amount=Decimal(i + 1), type=DEPOSIT_CREDIT,
            status=status, created_at=base + timedelta(hours=i),
        ))
    db.session.commit()

    items, pagination = ledger_service.transaction_history(player.id)
    assert [t.amount for t in items] == [Decimal("3"), Decimal("2"), Decimal("1")]
    assert pagination["total"] == 3

    items, _ = ledger_service.transaction_history(player.id, status=APPROVED, limit=1)
    assert [t.amount for t in items] == [Decimal("3")]


def test_list_balances_orders_by_balance(app, make_user, fund):
    rich, poor = make_user(), make_user()
    fund(rich, 500)
    fund(poor, 5)
    rows, pagination = ledger_service.list_balances()
    balances = {user.id: balance for user, balance in rows}
    assert balances[rich.id] == Decimal("500")
    assert balances[poor.id] == Decimal("5")
    assert rows[0][0].id == rich.id


def test_integrity_report_flags_verified_request_without_transaction(app, player):
    assert ledger_service.ledger_integrity_report()["status"] == "healthy"

    db.session.add(DepositRequest(
        user_id=player.id, amount_money=Decimal("200"), bank_sender_name="Ali",
        sender_bank="HBL", sender_account_no="12345678", status=VERIFIED,
    ))
    db.session.commit()

    report = ledger_service.ledger_integrity_report()
    assert report["status"] == "integrity_compromised"
    assert report["problem_count"] == 1


def test_integrity_report_flags_orphan_transaction(app, player):
    ledger_service.append_transaction(
        player.id, "5", DEPOSIT_CREDIT, source_type="deposit", source_id="dep-missing"
    )
    db.session.commit()
    report = ledger_service.ledger_integrity_report()
    assert report["problems"][0]["transaction_id"]


def test_wallet_overview_totals(app, admin, player, make_user, deposit_payload):
    ledger_service.append_transaction(player.id, "100", DEPOSIT_CREDIT)
    ledger_service.append_transaction(player.id, "-30.50", ADJUST, created_by=admin.id)
    ledger_service.append_transaction(player.id, "999", DEPOSIT_CREDIT, status=PENDING)
    db.session.commit()
    wallet_request_service.submit_deposit(make_user(), deposit_payload())

    overview = ledger_service.wallet_overview()
    assert Decimal(overview["credits_in_circulation"]) == Decimal("69.5")
    assert overview["pending_deposits"] == 1
    assert overview["pending_withdrawals"] == 0
    assert overview["transactions"] == 3
