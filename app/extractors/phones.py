import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import unquote

from app.extractors.html import make_soup, strip_non_visible
from app.mappers.deduplication import phone_key
from app.mappers.normalization import (
    clean_snippet,
    detect_country_from_context,
    digits_only,
    normalize_phone,
)
from app.mappers.url_utils import detect_country_from_url, url_path
from app.schemas.contacts import PhoneFact

logger = logging.getLogger(__name__)

# No newline in the separator class: numbers on separate lines never merge
_PHONE_RE = re.compile(r"(?<![\w@+])(?:\+|\()?\d[\d \t().\-/]{6,}\d(?![\w@])")
_JOINED_SPLIT_RE = re.compile(r"\s+[-/|–]\s+|\s*\|\s*|\s{2,}")

_MIN_DIGITS = 9
_MAX_DIGITS = 15
_SNIPPET_RADIUS = 50
_LABEL_WINDOW = 60

_DATE_RE = re.compile(r"^\d{1,4}[./\-]\d{1,2}[./\-]\d{1,4}(?:\s+\d{1,2}[:h.]\d{2})?$")
_SEPARATOR_RE = re.compile(r"[ .\-()/]")
_FRENCH_NATIONAL_RE = re.compile(r"^0\d{9}$")
_RCS_SHAPE_RE = re.compile(r"^\d{3}[ .]\d{3}[ .]\d{3}$")
_GPS_DECIMAL_RE = re.compile(r"\d{1,3}\.\d{4,}")
_VAT_PREFIX_RE = re.compile(r"\bFR\s?$", re.IGNORECASE)

_TEL_LABEL_RE = re.compile(
    r"\bt[ée]l(?:[ée]phone)?\b|phone|mobile|portable|call|appel|standard|réception|reception",
    re.IGNORECASE,
)
_FAX_LABEL_RE = re.compile(r"fax|t[ée]l[ée]copie|fac-?simil[ée]", re.IGNORECASE)
_REGISTRATION_LABEL_RE = re.compile(
    r"\bsiret\b|\bsiren\b|\btva\b|\bvat\b|\br\.?c\.?s\b|\bnaf\b|\bape\b|intracom|"
    r"registration|company (?:number|no)|n° d'identification|immatricul|capital",
    re.IGNORECASE,
)
_GPS_LABEL_RE = re.compile(r"gps|latitude|longitude|\blat\b|\blng\b|\blong\b|coordinates|coordonn[ée]es", re.IGNORECASE)

_FOOTER_SELECTORS = "footer, .footer, .contact, #contact"


@dataclass
class _Candidate:
    raw: str
    digits: str
    label: str  # text between the previous number and this one
    snippet: str
    from_text: bool
    french_context: bool


def _last_position(pattern: re.Pattern, text: str) -> int:
    positions = [m.start() for m in pattern.finditer(text)]
    return positions[-1] if positions else -1


def _label_wins(pattern: re.Pattern, label: str) -> bool:
    """True when ``pattern`` is the nearest label before the number (after any tel label)."""
    position = _last_position(pattern, label)
    return position >= 0 and position > _last_position(_TEL_LABEL_RE, label)


# --- Rejection rules: each returns a reason or None ---


def _reject_digit_count(c: _Candidate) -> str | None:
    if not _MIN_DIGITS <= len(c.digits) <= _MAX_DIGITS:
        return "digit count"
    return None


def _reject_date(c: _Candidate) -> str | None:
    return "date" if _DATE_RE.match(c.raw.strip()) else None


def _reject_registration_number(c: _Candidate) -> str | None:
    if re.match(r"^FR\d{2}", c.raw, re.IGNORECASE) or _VAT_PREFIX_RE.search(c.label):
        return "VAT number"
    if len(c.digits) == 14 and not c.raw.startswith("+"):
        return "SIRET"
    if _label_wins(_REGISTRATION_LABEL_RE, c.label):
        return "registration label"
    if _RCS_SHAPE_RE.match(c.raw.strip()) and (
        c.french_context or _REGISTRATION_LABEL_RE.search(c.snippet)
    ):
        return "RCS shape"
    return None


def _reject_fax(c: _Candidate) -> str | None:
    return "fax" if _label_wins(_FAX_LABEL_RE, c.label) else None


def _reject_gps(c: _Candidate) -> str | None:
    if _GPS_DECIMAL_RE.search(c.raw) and _GPS_LABEL_RE.search(c.snippet):
        return "GPS coordinate"
    return None


def _reject_missing_separator(c: _Candidate) -> str | None:
    if not c.from_text:
        return None
    raw = c.raw.strip()
    if raw.startswith("+") or _SEPARATOR_RE.search(raw) or _FRENCH_NATIONAL_RE.match(raw):
        return None
    return "no separator"


_REJECTION_RULES: tuple[Callable[[_Candidate], str | None], ...] = (
    _reject_digit_count,
    _reject_date,
    _reject_registration_number,
    _reject_fax,
    _reject_gps,
    _reject_missing_separator,
)


def _rejection_reason(candidate: _Candidate) -> str | None:
    for rule in _REJECTION_RULES:
        reason = rule(candidate)
        if reason:
            return reason
    return None


def _label_before(text: str, start: int) -> str:
    window = text[max(0, start - _LABEL_WINDOW):start]
    last_digit = max((i for i, ch in enumerate(window) if ch.isdigit()), default=-1)
    return window[last_digit + 1:]


def _split_joined(raw: str, start: int) -> list[tuple[str, int]]:
    """Split "01 42 60 94 90 - 01 42 60 94 91" style runs into single numbers."""
    # "(01 42 60 94 90" is a number inside brackets, not an area code
    if raw.startswith("(") and raw.count("(") > raw.count(")"):
        raw, start = raw[1:], start + 1
    if len(digits_only(raw)) <= _MAX_DIGITS:
        return [(raw, start)]
    parts: list[tuple[str, int]] = []
    cursor = 0
    for part in _JOINED_SPLIT_RE.split(raw):
        offset = raw.find(part, cursor)
        cursor = offset + len(part)
        if part.strip():
            parts.append((part.strip(), start + offset))
    return parts


def _footer_digit_runs(soup) -> list[str]:
    return [digits_only(node.get_text(" ")) for node in soup.select(_FOOTER_SELECTORS)]


def _build_fact(
    candidate: _Candidate,
    signals: list[str],
    source_url: str,
    url_country: str | None,
) -> PhoneFact | None:
    value_raw, value_e164 = normalize_phone(
        candidate.raw, url_country, detect_country_from_context(candidate.snippet),
    )
    if not value_raw:
        return None
    return PhoneFact(
        valueRaw=value_raw,
        valueE164=value_e164,
        signals=signals,
        sourceUrl=source_url,
        snippet=clean_snippet(candidate.snippet),
    )


def extract_phones(html: str, source_url: str) -> list[PhoneFact]:
    """Phones of one page from tel: links and visible text, false positives filtered."""
    soup = strip_non_visible(make_soup(html))
    url_country = detect_country_from_url(source_url)
    french_context = url_country == "FR"
    is_contact_page = "contact" in url_path(source_url)

    found: dict[str, PhoneFact] = {}

    def accept(fact: PhoneFact | None) -> None:
        if fact is None:
            return
        key = phone_key(fact)
        if key and key not in found:
            found[key] = fact

    for anchor in soup.select('a[href^="tel:" i]'):
        href = unquote(anchor.get("href", ""))
        raw = href.split(":", 1)[1].split("?", 1)[0].split(";", 1)[0].strip()
        parent = anchor.parent or anchor
        context = parent.get_text(" ", strip=True)
        candidate = _Candidate(
            raw=raw,
            digits=digits_only(raw),
            label=context.split(anchor.get_text(" ", strip=True) or raw, 1)[0][-_LABEL_WINDOW:],
            snippet=context or raw,
            from_text=False,
            french_context=french_context,
        )
        reason = _rejection_reason(candidate)
        if reason:
            logger.debug("Rejected tel link %s (%s)", raw, reason)
            continue
        accept(_build_fact(candidate, ["tel"], source_url, url_country))

    footer_digits = _footer_digit_runs(soup)
    text = soup.get_text("\n")
    for match in _PHONE_RE.finditer(text):
        for raw, start in _split_joined(match.group(), match.start()):
            candidate = _Candidate(
                raw=raw,
                digits=digits_only(raw),
                label=_label_before(text, start),
                snippet=text[max(0, start - _SNIPPET_RADIUS): start + len(raw) + _SNIPPET_RADIUS],
                from_text=True,
                french_context=french_context,
            )
            reason = _rejection_reason(candidate)
            if reason:
                logger.debug("Rejected phone candidate %s (%s)", raw, reason)
                continue
            signals = ["text"]
            if is_contact_page or any(candidate.digits in run for run in footer_digits):
                signals.append("footer_or_contact")
            accept(_build_fact(candidate, signals, source_url, url_country))

    return list(found.values())
