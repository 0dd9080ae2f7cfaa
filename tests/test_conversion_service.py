from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from arena.extensions import db
from arena.models.conversion_rate import ConversionRate
from arena.services import conversion_service
from arena.services.conversion_service import (
    get_current_rate, quote_deposit, quote_to_dict, set_conversion_rate, to_pkr, to_zc,
)
from arena.utils.exceptions import AuthorizationError, ValidationError


def test_to_zc_and_to_pkr_known_values():
    assert to_zc(450, 90) == Decimal("5")
    assert to_pkr(5, 90) == Decimal("450")


@pytest.mark.parametrize("amount", ["200", "180", "999.99", "1", "12345.67"])
@pytest.mark.parametrize("rate", ["90", "87.5", "3"])
def test_round_trip_within_tolerance(amount, rate):
    back = to_pkr(to_zc(Decimal(amount), Decimal(rate)), Decimal(rate))
    assert abs(back - Decimal(amount)) < Decimal("1e-20")


def test_conversion_keeps_full_precision():
    assert to_zc(200, 90) != Decimal("2.22")
    assert str(to_zc(200, 90)).startswith("2.2222222")


@pytest.mark.parametrize("rate", [0, -1, "-90"])
def test_non_positive_rate_is_rejected(rate):
    with pytest.raises(ValueError):
        to_zc(100, rate)


def test_empty_table_falls_back_to_default(app):
    quote = get_current_rate()
    assert quote.rate == Decimal("90")
    assert quote.is_fallback is True
    assert quote_to_dict(quote)["label"] == "1 ZC = 90 PKR"


def test_latest_rate_wins(app, admin):
    now = datetime(2025, 1, 1)
    db.session.add_all([
        ConversionRate(rate=Decimal("85"), effective_date=now - timedelta(days=2), set_by=admin.id),
        ConversionRate(rate=Decimal("95"), effective_date=now, set_by=admin.id),
        ConversionRate(rate=Decimal("80"), effective_date=now - timedelta(days=1), set_by=admin.id),
    ])
    db.session.commit()

    quote = get_current_rate()
    assert quote.rate == Decimal("95")
    assert quote.is_fallback is False


def test_lookup_failure_falls_back(app, monkeypatch):
    class BrokenModel:
        @property
        def query(self):
            raise OperationalError("SELECT", {}, Exception("database is down"))

    monkeypatch.setattr(conversion_service, "ConversionRate", BrokenModel())
    quote = get_current_rate()
    assert quote.rate == Decimal("90")
    assert quote.is_fallback is True


def test_rate_is_cached_until_changed(app, admin):
    app.config["CONVERSION_RATE_CACHE_SECONDS"] = 300
    set_conversion_rate(admin, "100")
    assert get_current_rate().rate == Decimal("100")

    # written behind the service's back: the cached value is still served
    db.session.add(ConversionRate(rate=Decimal("120"), effective_date=datetime(2100, 1, 1)))
    db.session.commit()
    assert get_current_rate().rate == Decimal("100")

    set_conversion_rate(admin, "110")
    assert get_current_rate().rate == Decimal("120")


def test_quote_deposit_reports_implied_credits(app, admin):
    set_conversion_rate(admin, "90")
    implied, quote = quote_deposit(Decimal("200"))
    assert implied.quantize(Decimal("0.01")) == Decimal("2.22")
    assert quote.is_fallback is False


def test_only_admins_set_the_rate(app, moderator, player):
    for user in (moderator, player):
        with pytest.raises(AuthorizationError):
            set_conversion_rate(user, "100")
    assert ConversionRate.query.count() == 0


@pytest.mark.parametrize("rate", ["0", "-5", "abc", "1000000"])
def test_set_rate_validates_input(app, admin, rate):
    with pytest.raises(ValidationError):
        set_conversion_rate(admin, rate)
