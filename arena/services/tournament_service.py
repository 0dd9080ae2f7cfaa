import logging
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from arena.extensions import db
from arena.models.user import utcnow
from arena.models.tournament import (
    Tournament, TOURNAMENT_STATES, TOURNAMENT_FORMATS, DRAFT, REGISTRATION_OPEN,
)
from arena.models.registration import (
    Registration, ACTIVE_STATUSES, PENDING, APPROVED, REJECTED, WITHDRAWN,
)
from arena.models.ledger_transaction import LedgerTransaction, TOURNAMENT_ENTRY
from arena.services import ledger_service
from arena.utils.exceptions import (
    BusinessRuleError, ConflictError, NotFoundError, ServiceError, ValidationError,
)
from arena.utils.formatting import format_zcreds
from arena.utils.permissions import can_manage_tournaments, ensure
from arena.utils.validation import (
    parse_amount, parse_timestamp, sanitize_text, validate_phone_number,
)

logger = logging.getLogger(__name__)


def active_registration_count(tournament_id):
    return (
        db.session.query(func.count(Registration.id))
        .filter(
            Registration.tournament_id == tournament_id,
            Registration.status.in_(ACTIVE_STATUSES),
        )
        .scalar()
    )


def list_tournaments(state=None):
    q = Tournament.query
    if state:
        if state not in TOURNAMENT_STATES:
            raise ValidationError(f"Unknown state '{state}'", field="state")
        q = q.filter(Tournament.state == state)
    else:
        q = q.filter(Tournament.state != DRAFT)
    tournaments = q.order_by(Tournament.starts_at.asc(), Tournament.created_at.desc()).all()
    return [(t, active_registration_count(t.id)) for t in tournaments]


def get_tournament(tournament_id):
    tournament = db.session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFoundError("Tournament not found")
    return tournament


def _tournament_fields(data, partial=False):
    fields = {}
    if not partial or "title" in data:
        fields["title"] = sanitize_text(data.get("title"), "Title", 3, 200)
    if "game" in data:
        fields["game"] = sanitize_text(data.get("game"), "Game", 0, 100) or None
    if "format" in data:
        if data["format"] not in TOURNAMENT_FORMATS:
            raise ValidationError("Unknown tournament format", field="format")
        fields["format"] = data["format"]
    if "entry_fee_credits" in data:
        fields["entry_fee_credits"] = parse_amount(data.get("entry_fee_credits"), field="entry_fee_credits")
    if "slots" in data:
        slots = data.get("slots")
        if slots is not None:
            try:
                slots = int(slots)
            except (TypeError, ValueError):
                raise ValidationError("Slots must be a whole number", field="slots")
            if slots < 1:
                raise ValidationError("Slots must be at least 1", field="slots")
        fields["slots"] = slots
    for key in ("starts_at", "reg_closes_at"):
        if key in data:
            fields[key] = parse_timestamp(data[key], field=key) if data[key] else None
    if "rules_md" in data:
        fields["rules_md"] = data.get("rules_md") or None
    if "cover_url" in data:
        fields["cover_url"] = data.get("cover_url") or None
    return fields


def create_tournament(staff, data):
    ensure(can_manage_tournaments, staff, "Moderator or admin privileges required")
    tournament = Tournament(**_tournament_fields(data))
    db.session.add(tournament)
    db.session.commit()
    logger.info("Tournament %s created by %s", tournament.id, staff.id)
    return tournament


def update_tournament(staff, tournament_id, data):
    ensure(can_manage_tournaments, staff, "Moderator or admin privileges required")
    tournament = get_tournament(tournament_id)
    for key, value in _tournament_fields(data, partial=True).items():
        setattr(tournament, key, value)
    db.session.commit()
    return tournament


def update_tournament_state(staff, tournament_id, state):
    ensure(can_manage_tournaments, staff, "Moderator or admin privileges required")
    if state not in TOURNAMENT_STATES:
        raise ValidationError(f"Unknown state '{state}'", field="state")
    tournament = get_tournament(tournament_id)
    previous = tournament.state
    tournament.state = state
    db.session.commit()
    logger.info("Tournament %s moved %s -> %s by %s", tournament.id, previous, state, staff.id)
    return tournament


def register_for_tournament(user, tournament_id, team_name, entry_fee=None,
                            contact_phone=None, whatsapp_number=None):
    """
    Charge the entry fee and create the registration in one transaction.

    The fee charged is the tournament's current ``entry_fee_credits``. When the
    caller passes the fee it saw, a mismatch is refused with
    ``ENTRY_FEE_CHANGED`` rather than charging a different amount.
    """
    team_name = sanitize_text(team_name, "Team name", 2, 100)
    contact_phone = validate_phone_number(contact_phone, field="contact_phone") if contact_phone else None
    whatsapp_number = validate_phone_number(whatsapp_number, field="whatsapp_number") if whatsapp_number else None
    expected_fee = parse_amount(entry_fee, field="entry_fee") if entry_fee is not None else None

    try:
        captain = ledger_service.lock_user(user.id)
        missing = captain.missing_profile_fields()
        if missing:
            raise BusinessRuleError(
                "PROFILE_INCOMPLETE",
                "Please complete your profile (username, in-game name, WhatsApp) before registering",
                details={"missing_fields": missing},
            )

        tournament = (
            Tournament.query
            .filter_by(id=tournament_id)
            .with_for_update()
            .first()
        )
        if not tournament:
            raise NotFoundError("Tournament not found")

        deadline = tournament.registration_deadline()
        if tournament.state != REGISTRATION_OPEN or (deadline and utcnow() >= deadline):
            raise BusinessRuleError("REGISTRATION_CLOSED", "Registration for this tournament has closed")

        fee = Decimal(tournament.entry_fee_credits or 0)
        if expected_fee is not None and expected_fee != fee:
            raise ConflictError(
                "The entry fee has changed since you opened this tournament",
                code="ENTRY_FEE_CHANGED",
                details={"entry_fee": str(fee)},
            )

        registration = Registration.query.filter_by(
            tournament_id=tournament.id, captain_id=captain.id
        ).first()
        if registration and registration.status in ACTIVE_STATUSES:
            raise BusinessRuleError("ALREADY_REGISTERED", "You are already registered for this tournament")

        if tournament.slots is not None and active_registration_count(tournament.id) >= tournament.slots:
            raise BusinessRuleError("TOURNAMENT_FULL", "This tournament is full")

        if fee > 0:
            ledger_service.ensure_sufficient_balance(captain.id, -fee)

        # a withdrawn or rejected captain re-registers on the same row; transaction_id
        # tracks the latest charge and earlier ones stay linked through source_id
        if registration is None:
            registration = Registration(tournament_id=tournament.id, captain_id=captain.id)
            db.session.add(registration)
        registration.team_name = team_name
        registration.contact_phone = contact_phone or captain.phone
        registration.whatsapp_number = whatsapp_number or captain.whatsapp_number
        registration.status = PENDING
        registration.transaction_id = None
        db.session.flush()

        if fee > 0:
            tx = ledger_service.append_transaction(
                captain.id,
                -fee,
                TOURNAMENT_ENTRY,
                reason=f"Entry fee: {tournament.title}",
                reference=tournament.id,
                source_type="registration",
                source_id=registration.id,
                created_by=captain.id,
            )
            registration.transaction_id = tx.id

        db.session.commit()
    except ServiceError:
        db.session.rollback()
        raise
    except IntegrityError:
        db.session.rollback()
        raise BusinessRuleError("ALREADY_REGISTERED", "You are already registered for this tournament")
    except SQLAlchemyError:
        logger.exception("Registration of %s for %s failed", user.id, tournament_id)
        db.session.rollback()
        raise

    logger.info(
        "Captain %s registered '%s' for %s (fee %s ZC)",
        user.id, team_name, tournament_id, format_zcreds(fee),
    )
    return registration


def list_registrations(staff, tournament_id):
    ensure(can_manage_tournaments, staff, "Moderator or admin privileges required")
    get_tournament(tournament_id)
    return (
        Registration.query
        .filter_by(tournament_id=tournament_id)
        .order_by(Registration.created_at.asc())
        .all()
    )


def user_registrations(user_id):
    return (
        Registration.query
        .filter_by(captain_id=user_id)
        .order_by(Registration.created_at.desc())
        .all()
    )


def update_registration_status(staff, registration_id, status):
    """Approve or reject a pending registration. Fees are not refunded here."""
    ensure(can_manage_tournaments, staff, "Moderator or admin privileges required")
    if status not in (APPROVED, REJECTED):
        raise ValidationError("Status must be 'approved' or 'rejected'", field="status")

    updated = (
        Registration.query
        .filter(Registration.id == registration_id, Registration.status == PENDING)
        .update({"status": status}, synchronize_session=False)
    )
    if not updated:
        if not db.session.get(Registration, registration_id):
            raise NotFoundError("Registration not found")
        db.session.rollback()
        raise ConflictError("This registration was already processed")
    db.session.commit()
    logger.info("Registration %s %s by %s", registration_id, status, staff.id)
    return db.session.get(Registration, registration_id, populate_existing=True)


def withdraw_registration(user, registration_id):
    """Captain pulls their team out. The entry fee is not refunded."""
    updated = (
        Registration.query
        .filter(
            Registration.id == registration_id,
            Registration.captain_id == user.id,
            Registration.status.in_(ACTIVE_STATUSES),
        )
        .update({"status": WITHDRAWN}, synchronize_session=False)
    )
    if not updated:
        registration = db.session.get(Registration, registration_id)
        owned = registration is not None and registration.captain_id == user.id
        db.session.rollback()
        if not owned:
            raise NotFoundError("Registration not found")
        raise ConflictError("This registration is no longer active")
    db.session.commit()
    logger.info("Registration %s withdrawn by captain %s", registration_id, user.id)
    return db.session.get(Registration, registration_id, populate_existing=True)


def registration_charges(staff, registration_id):
    """Every entry-fee debit made for a registration row, oldest first."""
    ensure(can_manage_tournaments, staff, "Moderator or admin privileges required")
    if not db.session.get(Registration, registration_id):
        raise NotFoundError("Registration not found")
    return (
        LedgerTransaction.query
        .filter_by(source_type="registration", source_id=registration_id)
        .order_by(LedgerTransaction.created_at.asc())
        .all()
    )
