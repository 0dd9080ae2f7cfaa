"""
Input validation for wallet forms and profiles.

All helpers raise ``ValidationError`` with the offending field in
``details`` and return the cleaned value otherwise.
"""
import re
from datetime import timezone
from decimal import Decimal, InvalidOperation

from dateutil import parser as date_parser
from flask import request

from arena.utils.exceptions import ValidationError

AMOUNT_RE = re.compile(r"^\d+(\.\d{1,2})?$")
# largest value a Numeric(14, 2) column holds
MAX_AMOUNT = Decimal("999999999999.99")
UNSAFE_CHARS_RE = re.compile(r"[<>\"';&]")
WHITESPACE_RE = re.compile(r"\s+")
USERNAME_RE = re.compile(r"^[a-z0-9_]+$")
IBAN_RE = re.compile(r"^PK[0-9]{2}[A-Z0-9]{4}[0-9]{16}$")
PHONE_PATTERNS = (
    re.compile(r"^\+92[0-9]{10}$"),
    re.compile(r"^0[0-9]{10}$"),
    re.compile(r"^03[0-9]{9}$"),
)

RESERVED_USERNAMES = {
    "admin", "administrator", "root", "system", "null", "undefined",
    "api", "www", "ftp", "mail", "email", "support", "help",
    "test", "guest", "user", "demo", "sample",
}


def parse_amount(value, field="amount", minimum=None, maximum=None, allow_zero=True):
    """
    Parse a non-negative amount with at most two decimal places.

    ``minimum``/``maximum`` are inclusive bounds.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, bool):
        raise ValidationError("Please enter a valid number", field=field)

    raw = str(value).strip()
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError("Please enter a valid number", field=field)
    if not amount.is_finite():
        raise ValidationError("Please enter a valid number", field=field)
    if amount < 0:
        raise ValidationError("Amount cannot be negative", field=field)
    if amount.as_tuple().exponent < -2:
        raise ValidationError("Amount cannot have more than 2 decimal places", field=field)
    if not AMOUNT_RE.fullmatch(raw):
        raise ValidationError("Please enter a valid number", field=field)
    if amount > MAX_AMOUNT:
        raise ValidationError("Amount is too large", field=field, details={"maximum": str(MAX_AMOUNT)})
    if not allow_zero and amount == 0:
        raise ValidationError("Amount must be greater than zero", field=field)

    if minimum is not None and amount < Decimal(str(minimum)):
        raise ValidationError(
            f"Minimum amount is {minimum}",
            field=field,
            code="BELOW_MINIMUM",
            details={"minimum": str(minimum)},
        )
    if maximum is not None and amount > Decimal(str(maximum)):
        raise ValidationError(f"Maximum amount is {maximum}", field=field, details={"maximum": str(maximum)})
    return amount


def parse_signed_amount(value, field="amount"):
    """A non-zero delta, positive or negative, with at most two decimal places."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required", field=field)
    raw = str(value).strip()
    negative = raw.startswith("-")
    magnitude = parse_amount(raw[1:] if negative else raw.lstrip("+"), field=field)
    if magnitude == 0:
        raise ValidationError("Please enter a valid non-zero amount", field=field)
    return -magnitude if negative else magnitude


def sanitize_text(text, field, min_length=0, max_length=500):
    if not text:
        if min_length > 0:
            raise ValidationError(f"{field} is required", field=field)
        return ""

    sanitized = UNSAFE_CHARS_RE.sub("", str(text))
    sanitized = WHITESPACE_RE.sub(" ", sanitized).strip()

    if len(sanitized) < min_length:
        raise ValidationError(f"{field} must be at least {min_length} characters long", field=field)
    if len(sanitized) > max_length:
        raise ValidationError(f"{field} cannot exceed {max_length} characters", field=field)
    return sanitized


def validate_account_number(value, field="account_number"):
    if not value or not str(value).strip():
        raise ValidationError("Account number is required", field=field)

    cleaned = re.sub(r"[\s\-]", "", str(value))
    if not cleaned.isdigit():
        raise ValidationError("Account number can only contain digits", field=field)
    if len(cleaned) < 8 or len(cleaned) > 20:
        raise ValidationError("Account number must be between 8 and 20 digits", field=field)
    return cleaned


def validate_iban(value, field="iban"):
    # optional
    if not value or not str(value).strip():
        return None

    cleaned = re.sub(r"\s", "", str(value)).upper()
    if not IBAN_RE.match(cleaned):
        raise ValidationError(
            "Invalid IBAN format. Pakistani IBAN should be: PK##BANK################",
            field=field,
        )
    return cleaned


def validate_phone_number(value, field="phone"):
    if not value or not str(value).strip():
        raise ValidationError("Phone number is required", field=field)

    cleaned = re.sub(r"[\s\-\(\)]", "", str(value))
    if not any(p.match(cleaned) for p in PHONE_PATTERNS):
        raise ValidationError(
            "Invalid phone number. Use Pakistani format: +92XXXXXXXXXX or 03XXXXXXXXX",
            field=field,
        )
    return cleaned


def validate_username(value, field="username"):
    if not value or not str(value).strip():
        raise ValidationError("Username is required", field=field)

    username = str(value).strip().lower()
    if len(username) < 3:
        raise ValidationError("Username must be at least 3 characters long", field=field)
    if len(username) > 20:
        raise ValidationError("Username cannot exceed 20 characters", field=field)
    if not USERNAME_RE.match(username):
        raise ValidationError("Username can only contain letters, numbers, and underscores", field=field)
    if username in RESERVED_USERNAMES:
        raise ValidationError("This username is reserved. Please choose another one.", field=field)
    return username


def password_strength(password):
    """Return ``(score, feedback)``; score counts satisfied rules out of 5."""
    feedback = []
    score = 0
    checks = (
        (len(password) >= 8, "Password must be at least 8 characters long"),
        (re.search(r"[a-z]", password), "Add lowercase letters"),
        (re.search(r"[A-Z]", password), "Add uppercase letters"),
        (re.search(r"[0-9]", password), "Add numbers"),
        (re.search(r"[^a-zA-Z0-9]", password), "Add special characters (!@#$%^&*)"),
    )
    for ok, hint in checks:
        if ok:
            score += 1
        else:
            feedback.append(hint)
    return score, feedback


def validate_password(password, field="password"):
    if not password:
        raise ValidationError("Password is required", field=field)
    score, feedback = password_strength(password)
    if score < 3 or len(password) < 8:
        raise ValidationError(
            "Password does not meet security requirements",
            field=field,
            details={"feedback": feedback, "score": score},
        )
    return password


def parse_timestamp(value, field="timestamp"):
    """ISO 8601 string to a naive UTC datetime (the storage convention)."""
    if not value:
        raise ValidationError(f"{field} is required", field=field)
    try:
        parsed = date_parser.isoparse(str(value))
    except (ValueError, OverflowError):
        raise ValidationError(f"{field} must be an ISO 8601 timestamp", field=field)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def json_body():
    """The request's JSON object; an absent body reads as ``{}``."""
    data = request.get_json(silent=True)
    if data is None:
        if request.get_data(cache=True):
            raise ValidationError("Request body must be valid JSON", field="body")
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", field="body")
    return data
