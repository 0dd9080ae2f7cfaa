"""
Named atomic procedures, callable as ``POST /api/v1/rpc/<name>`` with a JSON
argument object. Each one runs in a single database transaction.
"""
from flask import Blueprint
from flask_jwt_extended import jwt_required

from arena.schemas.tournament_schema import RegistrationSchema
from arena.schemas.wallet_schema import TransactionSchema
from arena.services import ledger_service
from arena.services.auth_service import is_admin as user_is_admin, update_user_role as change_role
from arena.services.tournament_service import register_for_tournament as register_team
from arena.utils.auth_utils import get_current_user
from arena.utils.formatting import format_zcreds
from arena.utils.response_formatter import success_response, error_response
from arena.utils.validation import json_body, parse_bool

bp = Blueprint("rpc", __name__, url_prefix="/api/v1/rpc")


@bp.route("/register_for_tournament", methods=["POST"])
@jwt_required()
def register_for_tournament():
    data = json_body()
    if not data.get("tournament_id"):
        return error_response("VALIDATION_ERROR", "tournament_id is required", {"field": "tournament_id"}, status=422)

    user = get_current_user()
    registration = register_team(
        user,
        data["tournament_id"],
        data.get("team_name"),
        entry_fee=data.get("entry_fee"),
        contact_phone=data.get("contact_phone"),
        whatsapp_number=data.get("whatsapp_number"),
    )
    return success_response({
        "registration": RegistrationSchema().dump(registration),
        "balance": format_zcreds(ledger_service.current_balance(user.id)),
    }, status=201)


@bp.route("/manual_zcred_adjustment", methods=["POST"])
@jwt_required()
def manual_zcred_adjustment():
    data = json_body()
    if not data.get("user_id"):
        return error_response("VALIDATION_ERROR", "user_id is required", {"field": "user_id"}, status=422)

    tx, new_balance = ledger_service.manual_zcred_adjustment(
        get_current_user(),
        data["user_id"],
        data.get("delta_zc"),
        data.get("reason"),
        reference=data.get("reference"),
        allow_negative=parse_bool(data.get("allow_negative")),
    )
    return success_response({
        "transaction": TransactionSchema().dump(tx),
        "balance": format_zcreds(new_balance),
    })


@bp.route("/update_user_role", methods=["POST"])
@jwt_required()
def update_user_role():
    data = json_body()
    user = change_role(get_current_user(), data.get("target_user_id"), data.get("new_role"))
    return success_response({"user_id": user.id, "role": user.role})


@bp.route("/is_admin", methods=["POST"])
@jwt_required()
def is_admin():
    user_id = json_body().get("user_id") or get_current_user().id
    return success_response({"result": user_is_admin(user_id)})
