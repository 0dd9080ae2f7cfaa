from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required

from arena.extensions import limiter
from arena.schemas.wallet_schema import (
    DepositRequestSchema,
    TransactionSchema,
    WithdrawalRequestSchema,
)
from arena.services import ledger_service, wallet_request_service
from arena.services.conversion_service import get_current_rate, quote_to_dict
from arena.utils.auth_utils import get_current_user, user_or_ip_key
from arena.utils.formatting import format_zcred_display, format_zcreds
from arena.utils.pagination import page_args
from arena.utils.response_formatter import paginated_response, success_response
from arena.utils.validation import json_body

bp = Blueprint("wallet", __name__, url_prefix="/api/v1/wallet")


def submission_limit():
    return current_app.config["SUBMISSION_RATE_LIMIT"]


def _created(response):
    return response.status_code == 201


# ==========================================================
#  GET /wallet/balance
# ==========================================================
@bp.route("/balance", methods=["GET"])
@jwt_required()
def get_balance():
    user = get_current_user()
    balance = ledger_service.current_balance(user.id)
    return success_response({
        "balance": format_zcreds(balance),
        "balance_display": format_zcred_display(balance),
        "conversion_rate": quote_to_dict(get_current_rate()),
    })


# ==========================================================
#  GET /wallet/transactions
#  Filters: status, type, page, limit
# ==========================================================
@bp.route("/transactions", methods=["GET"])
@jwt_required()
def get_transactions():
    user = get_current_user()
    status, tx_type = ledger_service.parse_history_filters(request.args)
    page, limit = page_args(request.args)
    items, pagination = ledger_service.transaction_history(
        user.id, status=status, tx_type=tx_type, page=page, limit=limit
    )
    return paginated_response("transactions", TransactionSchema(many=True).dump(items), pagination)


@bp.route("/conversion-rate", methods=["GET"])
def conversion_rate():
    return success_response({"conversion_rate": quote_to_dict(get_current_rate())})


# ==========================================================
#  Deposits
# ==========================================================
@bp.route("/deposits", methods=["POST"])
@jwt_required()
@limiter.limit(submission_limit, key_func=user_or_ip_key, deduct_when=_created)
def create_deposit():
    user = get_current_user()
    dep, implied_zc, quote = wallet_request_service.submit_deposit(user, json_body())
    return success_response({
        "deposit": DepositRequestSchema().dump(dep),
        "implied_zcreds": format_zcreds(implied_zc),
        "conversion_rate": quote_to_dict(quote),
    }, message="Deposit request submitted for review", status=201)


@bp.route("/deposits", methods=["GET"])
@jwt_required()
def my_deposits():
    page, limit = page_args(request.args)
    items, pagination = wallet_request_service.user_deposits(get_current_user().id, page=page, limit=limit)
    return paginated_response("deposits", DepositRequestSchema(many=True).dump(items), pagination)


# ==========================================================
#  Withdrawals
# ==========================================================
@bp.route("/withdrawals", methods=["POST"])
@jwt_required()
@limiter.limit(submission_limit, key_func=user_or_ip_key, deduct_when=_created)
def create_withdrawal():
    user = get_current_user()
    wr = wallet_request_service.submit_withdrawal(user, json_body())
    return success_response({
        "withdrawal": WithdrawalRequestSchema().dump(wr),
    }, message="Withdrawal request submitted for review", status=201)


@bp.route("/withdrawals", methods=["GET"])
@jwt_required()
def my_withdrawals():
    page, limit = page_args(request.args)
    items, pagination = wallet_request_service.user_withdrawals(get_current_user().id, page=page, limit=limit)
    return paginated_response("withdrawals", WithdrawalRequestSchema(many=True).dump(items), pagination)
