import logging
import re

import phonenumbers

from app.mappers.countries import (
    ADDRESS_CITY_RE,
    CITY_NAME_RE,
    CITY_COUNTRIES,
    COUNTRY_NAME_RE,
    country_code_for_name,
)
from app.schemas.contacts import EmailType

logger = logging.getLogger(__name__)

# Local parts / fragments of generic or test addresses
_EMAIL_FILTERS = (
    "noreply", "donotreply", "no-reply", "no_reply", "do-not-reply",
    "mailer-daemon", "postmaster", "abuse", "webmaster",
)
_EMAIL_TEST_LOCALS = frozenset({"test", "example", "sample", "demo", "email", "user", "name"})
_EMAIL_TEST_DOMAIN_PREFIXES = ("example.", "test.", "sample.", "domain.", "email.", "yourdomain.")

_EMAIL_TYPE_PATTERNS: dict[EmailType, tuple[str, ...]] = {
    EmailType.sales: ("sales", "commercial", "vente", "business"),
    EmailType.support: ("support", "help", "aide", "assistance"),
    EmailType.booking: ("booking", "reservation", "réservation", "reserve", "resa"),
    EmailType.press: ("press", "media", "presse", "communication"),
    EmailType.billing: ("billing", "facturation", "compta", "accounting", "invoice"),
}

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
_WS_RE = re.compile(r"\s+")
_EXPLICIT_PREFIX_RE = re.compile(r"(?:\+\s?\(?|\b00)(\d{1,3})")


def digits_only(value: str | None) -> str:
    return "".join(c for c in value or "" if c.isdigit())


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def clean_snippet(snippet: str | None, max_len: int = 240) -> str | None:
    """Single-line, bounded snippet suitable for JSON output."""
    if not snippet:
        return None
    cleaned = collapse_whitespace(_CONTROL_CHARS_RE.sub(" ", str(snippet)))
    if not cleaned:
        return None
    if len(cleaned) > max_len:
        return f"{cleaned[: max_len - 1]}…"
    return cleaned


# --- Emails ---


def normalize_email(email: str | None) -> str | None:
    """Lowercase, trim, drop trailing punctuation and digit runs glued before the local part."""
    if not email:
        return None
    normalized = email.strip().lower()
    normalized = re.sub(r"[.,;:]$", "", normalized)
    # "00hotel@x.com" -> "hotel@x.com"
    normalized = re.sub(r"^\d+([a-z])", r"\1", normalized)
    return normalized or None


def should_filter_email(email: str | None) -> bool:
    normalized = normalize_email(email)
    if not normalized or "@" not in normalized:
        return True
    local, _, domain = normalized.partition("@")
    if any(f in local for f in _EMAIL_FILTERS):
        return True
    if local in _EMAIL_TEST_LOCALS or local.startswith("test"):
        return True
    return domain.startswith(_EMAIL_TEST_DOMAIN_PREFIXES)


def detect_email_type(email: str, context: str = "") -> EmailType:
    combined = f"{email.lower()} {context.lower()}"
    for email_type, patterns in _EMAIL_TYPE_PATTERNS.items():
        if any(p in combined for p in patterns):
            return email_type
    return EmailType.general


# --- Phones ---


def _region_for_calling_code(code: str) -> str | None:
    region = phonenumbers.region_code_for_country_code(int(code))
    return None if region == phonenumbers.UNKNOWN_REGION else region


def _to_e164(value: str, region: str | None) -> str | None:
    try:
        number = phonenumbers.parse(value, region)
    except phonenumbers.NumberParseException:
        logger.debug("Unparseable phone %s (region=%s)", value, region)
        return None
    if not phonenumbers.is_valid_number(number):
        return None
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def normalize_phone(
    raw: str | None,
    url_country: str | None = None,
    context_country: str | None = None,
) -> tuple[str | None, str | None]:
    """Return ``(value_raw, value_e164)``.

    Conservative: without an explicit international prefix and without a
    country hint the number is kept raw, so a local number from one country is
    never rewritten into another country's format.
    """
    if not raw:
        return None, None

    cleaned = collapse_whitespace(raw)
    # "+33 (0)1 42 ..." -> "+33 1 42 ..."
    cleaned = re.sub(r"^(\+\d{1,3})\s?\(0\)\s?", r"\1 ", cleaned)
    country = context_country or url_country

    if cleaned.startswith("00") and len(digits_only(cleaned)) > 2:
        cleaned = f"+{cleaned[2:].lstrip()}"

    if cleaned.startswith("+"):
        return cleaned, _to_e164(cleaned, None)

    digits = digits_only(cleaned)
    # Calling code written without "+" ("441483276699")
    if len(digits) >= 11 and not digits.startswith("0"):
        e164 = _to_e164(f"+{digits}", None)
        if e164:
            return f"+{digits}", e164

    if country:
        return cleaned, _to_e164(cleaned, country.upper())
    return cleaned, None


def detect_country_from_context(snippet: str | None) -> str | None:
    """Country hint from the text around a phone number.

    Explicit calling-code prefix, then a city/capital name, then a country name.
    """
    if not snippet:
        return None

    prefix = _EXPLICIT_PREFIX_RE.search(snippet)
    if prefix:
        code = prefix.group(1)
        for length in range(len(code), 0, -1):
            region = _region_for_calling_code(code[:length])
            if region:
                return region

    city = CITY_NAME_RE.search(snippet) or ADDRESS_CITY_RE.search(snippet)
    if city:
        return CITY_COUNTRIES[" ".join(city.group(1).lower().split())]

    country = COUNTRY_NAME_RE.search(snippet)
    if country:
        return country_code_for_name(country.group(1))
    return None
