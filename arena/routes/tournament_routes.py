from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from arena.schemas.tournament_schema import AdminRegistrationSchema, RegistrationSchema
from arena.schemas.wallet_schema import TransactionSchema
from arena.services import tournament_service
from arena.services.ledger_service import current_balance
from arena.utils.auth_utils import get_current_user
from arena.utils.formatting import format_zcreds
from arena.utils.response_formatter import success_response
from arena.utils.validation import json_body

bp = Blueprint("tournaments", __name__, url_prefix="/api/v1/tournaments")


@bp.route("", methods=["GET"])
def list_tournaments():
    rows = tournament_service.list_tournaments(state=request.args.get("state"))
    return success_response({
        "tournaments": [t.to_dict(registered_count=count) for t, count in rows],
    })


@bp.route("/<tournament_id>", methods=["GET"])
def get_tournament(tournament_id):
    tournament = tournament_service.get_tournament(tournament_id)
    count = tournament_service.active_registration_count(tournament.id)
    return success_response({"tournament": tournament.to_dict(registered_count=count)})


# ----------------------------------------------------------
# Player registration (same procedure as the RPC endpoint)
# ----------------------------------------------------------
@bp.route("/<tournament_id>/register", methods=["POST"])
@jwt_required()
def register(tournament_id):
    data = json_body()
    user = get_current_user()
    registration = tournament_service.register_for_tournament(
        user,
        tournament_id,
        data.get("team_name"),
        entry_fee=data.get("entry_fee"),
        contact_phone=data.get("contact_phone"),
        whatsapp_number=data.get("whatsapp_number"),
    )
    return success_response({
        "registration": RegistrationSchema().dump(registration),
        "balance": format_zcreds(current_balance(user.id)),
    }, message="Registration submitted", status=201)


@bp.route("/registrations/<registration_id>/withdraw", methods=["POST"])
@jwt_required()
def withdraw(registration_id):
    reg = tournament_service.withdraw_registration(get_current_user(), registration_id)
    return success_response({"registration": RegistrationSchema().dump(reg)}, message="Registration withdrawn")


# ----------------------------------------------------------
# Staff management
# ----------------------------------------------------------
@bp.route("", methods=["POST"])
@jwt_required()
def create_tournament():
    tournament = tournament_service.create_tournament(get_current_user(), json_body())
    return success_response({"tournament": tournament.to_dict()}, status=201)


@bp.route("/<tournament_id>", methods=["PATCH"])
@jwt_required()
def update_tournament(tournament_id):
    tournament = tournament_service.update_tournament(
        get_current_user(), tournament_id, json_body()
    )
    return success_response({"tournament": tournament.to_dict()})


@bp.route("/<tournament_id>/state", methods=["PATCH"])
@jwt_required()
def update_state(tournament_id):
    data = json_body()
    tournament = tournament_service.update_tournament_state(
        get_current_user(), tournament_id, data.get("state")
    )
    return success_response({"tournament": tournament.to_dict()})


@bp.route("/<tournament_id>/registrations", methods=["GET"])
@jwt_required()
def registrations(tournament_id):
    regs = tournament_service.list_registrations(get_current_user(), tournament_id)
    return success_response({"registrations": AdminRegistrationSchema(many=True).dump(regs)})


@bp.route("/registrations/<registration_id>", methods=["PATCH"])
@jwt_required()
def update_registration(registration_id):
    data = json_body()
    reg = tournament_service.update_registration_status(
        get_current_user(), registration_id, data.get("status")
    )
    return success_response({"registration": AdminRegistrationSchema().dump(reg)})


@bp.route("/registrations/<registration_id>/charges", methods=["GET"])
@jwt_required()
def registration_charges(registration_id):
    charges = tournament_service.registration_charges(get_current_user(), registration_id)
    return success_response({"transactions": TransactionSchema(many=True).dump(charges)})
