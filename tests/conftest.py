import itertools
from datetime import timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from arena.extensions import db
from arena.main import create_app
from arena.models.ledger_transaction import ADJUST
from arena.models.tournament import Tournament, REGISTRATION_OPEN
from arena.models.user import User, utcnow
from arena.services import ledger_service
from arena.services.conversion_service import clear_rate_cache
from arena.utils.auth_utils import hash_password

_counter = itertools.count(1)

PASSWORD = "Str0ng!pass"


def _build_app(tmp_path, **overrides):
    config = {"STORAGE_ROOT": str(tmp_path / "uploads")}
    config.update(overrides)
    app = create_app("testing", config)
    with app.app_context():
        db.create_all()
        clear_rate_cache()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app(request, tmp_path):
    # Tests asking for limited_app share this single app (and its in-memory DB)
    # with the user/auth fixtures, which depend on `app`.
    overrides = {"RATELIMIT_ENABLED": True} if "limited_app" in request.fixturenames else {}
    yield from _build_app(tmp_path, **overrides)


@pytest.fixture
def limited_app(app):
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(role="player", complete=True, email=None, password=PASSWORD):
        n = next(_counter)
        user = User(
            email=email or f"user{n}@example.com",
            password_hash=hash_password(password),
            display_name=f"User {n}",
            role=role,
        )
        if complete:
            user.username = f"player{n}"
            user.in_game_name = f"IGN{n}"
            user.whatsapp_number = "03001234567"
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def player(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def moderator(make_user):
    return make_user(role="moderator")


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(identity=user.id)}"}
    return _headers


@pytest.fixture
def fund(app, admin):
    """Seed a balance with an approved adjustment."""
    def _fund(user, amount):
        ledger_service.append_transaction(
            user.id, Decimal(str(amount)), ADJUST, reason="seed", created_by=admin.id
        )
        db.session.commit()
    return _fund


@pytest.fixture
def tournament(app):
    t = Tournament(
        title="Spring Cup",
        game="Tekken 8",
        state=REGISTRATION_OPEN,
        entry_fee_credits=Decimal("50"),
        slots=8,
        starts_at=utcnow() + timedelta(days=7),
    )
    db.session.add(t)
    db.session.commit()
    return t


def _deposit_payload(**overrides):
    data = {
        "amount_money": "200",
        "bank_sender_name": "Ali Khan",
        "sender_bank": "HBL",
        "sender_account_no": "12345678901",
        "transfer_timestamp": "2025-01-05T10:30:00Z",
    }
    data.update(overrides)
    return data


def _withdrawal_payload(**overrides):
    data = {
        "amount_zcreds": "150",
        "recipient_name": "Ali Khan",
        "recipient_bank": "Meezan Bank",
        "recipient_account_no": "01234567890",
    }
    data.update(overrides)
    return data


@pytest.fixture
def deposit_payload():
    return _deposit_payload


@pytest.fixture
def withdrawal_payload():
    return _withdrawal_payload
