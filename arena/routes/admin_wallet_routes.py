from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from arena.schemas.user_schema import UserPublicSchema
from arena.schemas.wallet_schema import (
    AdminDepositRequestSchema,
    AdminWithdrawalRequestSchema,
    TransactionSchema,
)
from arena.services import ledger_service, wallet_request_service
from arena.services.conversion_service import quote_to_dict, set_conversion_rate
from arena.services.storage_service import PROOFS_BUCKET, create_signed_url
from arena.utils.auth_utils import get_current_user
from arena.utils.formatting import format_zcreds
from arena.utils.pagination import page_args
from arena.utils.permissions import can_review_wallet_requests, require_capability
from arena.utils.response_formatter import error_response, paginated_response, success_response
from arena.utils.validation import json_body, parse_bool

bp = Blueprint("admin_wallet", __name__, url_prefix="/api/v1/admin/wallet")

STAFF_ONLY = "Moderator or admin privileges required"


# ==========================================================
#  GET /admin/wallet/deposits
#  Filters: status=submitted|verified|rejected, search, page, limit
# ==========================================================
@bp.route("/deposits", methods=["GET"])
@jwt_required()
@require_capability(can_review_wallet_requests, STAFF_ONLY)
def list_deposits():
    page, limit = page_args(request.args)
    items, pagination = wallet_request_service.list_deposits(
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
    )
    return paginated_response("deposits", AdminDepositRequestSchema(many=True).dump(items), pagination)


@bp.route("/deposits/<request_id>", methods=["GET"])
@jwt_required()
@require_capability(can_review_wallet_requests, STAFF_ONLY)
def get_deposit(request_id):
    dep = wallet_request_service.get_deposit(request_id)
    data = AdminDepositRequestSchema().dump(dep)
    data["screenshot_url"] = (
        create_signed_url(PROOFS_BUCKET, dep.screenshot_path) if dep.screenshot_path else None
    )
    return success_response({"deposit": data})


@bp.route("/deposits/<request_id>/approve", methods=["POST"])
@jwt_required()
def approve_deposit(request_id):
    data = json_body()
    dep = wallet_request_service.approve_deposit(
        get_current_user(), request_id, data.get("approved_credits")
    )
    return success_response({
        "deposit": AdminDepositRequestSchema().dump(dep),
        "balance": format_zcreds(ledger_service.current_balance(dep.user_id)),
    }, message="Deposit verified")


@bp.route("/deposits/<request_id>/reject", methods=["POST"])
@jwt_required()
def reject_deposit(request_id):
    data = json_body()
    dep = wallet_request_service.reject_deposit(get_current_user(), request_id, data.get("reason"))
    return success_response({"deposit": AdminDepositRequestSchema().dump(dep)}, message="Deposit rejected")


# ==========================================================
#  GET /admin/wallet/withdrawals
#  Filters: status=submitted|paid|rejected, search, page, limit
# ==========================================================
@bp.route("/withdrawals", methods=["GET"])
@jwt_required()
@require_capability(can_review_wallet_requests, STAFF_ONLY)
def list_withdrawals():
    page, limit = page_args(request.args)
    items, pagination = wallet_request_service.list_withdrawals(
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        limit=limit,
    )
    return paginated_response("withdrawals", AdminWithdrawalRequestSchema(many=True).dump(items), pagination)


@bp.route("/withdrawals/<request_id>", methods=["GET"])
@jwt_required()
@require_capability(can_review_wallet_requests, STAFF_ONLY)
def get_withdrawal(request_id):
    wr = wallet_request_service.get_withdrawal(request_id)
    return success_response({"withdrawal": AdminWithdrawalRequestSchema().dump(wr)})


@bp.route("/withdrawals/<request_id>/payout", methods=["POST"])
@jwt_required()
def payout_withdrawal(request_id):
    data = json_body()
    wr = wallet_request_service.approve_withdrawal(
        get_current_user(), request_id, allow_negative=parse_bool(data.get("allow_negative", False))
    )
    return success_response({
        "withdrawal": AdminWithdrawalRequestSchema().dump(wr),
        "balance": format_zcreds(ledger_service.current_balance(wr.user_id)),
    }, message="Withdrawal paid")


@bp.route("/withdrawals/<request_id>/reject", methods=["POST"])
@jwt_required()
def reject_withdrawal(request_id):
    data = json_body()
    wr = wallet_request_service.reject_withdrawal(get_current_user(), request_id, data.get("reason"))
    return success_response({"withdrawal": AdminWithdrawalRequestSchema().dump(wr)}, message="Withdrawal rejected")


# ==========================================================
#  Manual adjustments and conversion rate (admin only)
# ==========================================================
@bp.route("/adjustments", methods=["POST"])
@jwt_required()
def manual_adjustment():
    data = json_body()
    if not data.get("user_id"):
        return error_response("VALIDATION_ERROR", "user_id is required", {"field": "user_id"}, status=422)

    # the admin form sends prevent_negative (checked by default)
    if "prevent_negative" in data:
        allow_negative = not parse_bool(data["prevent_negative"])
    else:
        allow_negative = parse_bool(data.get("allow_negative", False))

    tx, new_balance = ledger_service.manual_zcred_adjustment(
        get_current_user(),
        data["user_id"],
        data.get("delta_zc"),
        data.get("reason"),
        reference=data.get("reference"),
        allow_negative=allow_negative,
    )
    return success_response({
        "transaction": TransactionSchema().dump(tx),
        "balance": format_zcreds(new_balance),
    }, message="Adjustment applied", status=201)


@bp.route("/conversion-rate", methods=["PUT"])
@jwt_required()
def update_conversion_rate():
    data = json_body()
    quote = set_conversion_rate(get_current_user(), data.get("rate"))
    return success_response({"conversion_rate": quote_to_dict(quote)}, message="Conversion rate updated")


# ==========================================================
#  Balances, dashboard and audit
# ==========================================================
@bp.route("/balances", methods=["GET"])
@jwt_required()
@require_capability(can_review_wallet_requests, STAFF_ONLY)
def list_balances():
    page, limit = page_args(request.args)
    rows, pagination = ledger_service.list_balances(search=request.args.get("search"), page=page, limit=limit)
    user_schema = UserPublicSchema()
    balances = [
        {"user": user_schema.dump(user), "balance": format_zcreds(balance)}
        for user, balance in rows
    ]
    return paginated_response("balances", balances, pagination)


@bp.route("/users/<user_id>/transactions", methods=["GET"])
@jwt_required()
@require_capability(can_review_wallet_requests, STAFF_ONLY)
def user_transactions(user_id):
    status, tx_type = ledger_service.parse_history_filters(request.args)
    page, limit = page_args(request.args)
    items, pagination = ledger_service.transaction_history(
        user_id, status=status, tx_type=tx_type, page=page, limit=limit
    )
    return paginated_response(
        "transactions",
        TransactionSchema(many=True).dump(items),
        pagination,
        balance=format_zcreds(ledger_service.current_balance(user_id)),
    )


@bp.route("/overview", methods=["GET"])
@jwt_required()
@require_capability(can_review_wallet_requests, STAFF_ONLY)
def overview():
    return success_response({"overview": ledger_service.wallet_overview()})


@bp.route("/integrity", methods=["GET"])
@jwt_required()
@require_capability(can_review_wallet_requests, STAFF_ONLY)
def integrity():
    return success_response({"report": ledger_service.ledger_integrity_report()})
