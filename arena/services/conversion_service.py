"""
PKR ⇄ Z-Credit conversion.

The current rate is the most recently recorded ``ConversionRate`` row. Lookups
never raise: on a database error or an empty table the configured default is
returned with ``is_fallback`` set so callers can flag the degraded rate.
"""
import logging
import time
from collections import namedtuple
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from arena.extensions import db
from arena.models.conversion_rate import ConversionRate
from arena.models.user import utcnow
from arena.utils.permissions import can_set_conversion_rate, ensure
from arena.utils.validation import parse_amount
from arena.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

RateQuote = namedtuple("RateQuote", ["rate", "is_fallback", "effective_date"])

_cache = {"quote": None, "fetched_at": 0.0}


def clear_rate_cache():
    _cache["quote"] = None
    _cache["fetched_at"] = 0.0


def _fallback_quote():
    return RateQuote(Decimal(str(current_app.config["DEFAULT_CONVERSION_RATE"])), True, None)


def get_current_rate() -> RateQuote:
    ttl = current_app.config.get("CONVERSION_RATE_CACHE_SECONDS", 0)
    cached = _cache["quote"]
    if cached and ttl and time.monotonic() - _cache["fetched_at"] < ttl:
        return cached

    try:
        row = (
            ConversionRate.query
            .order_by(ConversionRate.effective_date.desc(), ConversionRate.id.desc())
            .first()
        )
    except SQLAlchemyError:
        logger.exception("Conversion rate lookup failed; using default rate")
        db.session.rollback()
        return _fallback_quote()

    if not row or row.rate is None or Decimal(row.rate) <= 0:
        logger.warning("No conversion rate recorded; using default rate")
        return _fallback_quote()

    quote = RateQuote(Decimal(row.rate), False, row.effective_date)
    _cache["quote"] = quote
    _cache["fetched_at"] = time.monotonic()
    return quote


def _check_rate(rate):
    rate = Decimal(str(rate))
    if rate <= 0:
        raise ValueError("Conversion rate must be positive")
    return rate


def to_zc(pkr_amount, rate) -> Decimal:
    return Decimal(str(pkr_amount)) / _check_rate(rate)


def to_pkr(zc_amount, rate) -> Decimal:
    return Decimal(str(zc_amount)) * _check_rate(rate)


def quote_deposit(pkr_amount):
    """Implied Z-Credits for a PKR amount at the current rate (display only)."""
    quote = get_current_rate()
    return to_zc(pkr_amount, quote.rate), quote


def set_conversion_rate(admin, rate):
    ensure(can_set_conversion_rate, admin)
    rate = parse_amount(rate, field="rate", allow_zero=False)
    if rate > Decimal("100000"):
        raise ValidationError("Conversion rate is unrealistically high", field="rate")

    row = ConversionRate(rate=rate, effective_date=utcnow(), set_by=admin.id)
    db.session.add(row)
    db.session.commit()
    clear_rate_cache()

    logger.info("Conversion rate set to %s PKR/ZC by %s", rate, admin.id)
    return RateQuote(Decimal(row.rate), False, row.effective_date)


def quote_to_dict(quote):
    return {
        "rate": str(quote.rate),
        "is_fallback": quote.is_fallback,
        "effective_date": quote.effective_date.isoformat() + "Z" if quote.effective_date else None,
        "label": f"1 ZC = {quote.rate.normalize():f} PKR",
    }
