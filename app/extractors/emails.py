import logging
import re
from urllib.parse import unquote

from app.extractors.html import closest, make_soup, strip_non_visible
from app.extractors.schema_org import collect_emails, load_json_ld
from app.mappers.normalization import (
    clean_snippet,
    detect_email_type,
    digits_only,
    normalize_email,
    should_filter_email,
)
from app.mappers.url_utils import get_registrable_domain
from app.schemas.contacts import EmailFact

logger = logging.getLogger(__name__)

# End boundary keeps "contact@hotel.frDirecteur" from matching as a .frdirecteur TLD
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,24}(?![a-zA-Z])")

# Data-protection authorities and placeholder providers quoted in legal pages
_EXCLUDED_DOMAINS = frozenset({
    "agpd.es", "cnil.fr", "ico.org.uk", "mail.com",
    "example.com", "test.com", "mailservice.com",
})

_LEADING_DIGITS_RE = re.compile(r"^\d+")
_PHONE_TAIL_RE = re.compile(r"[\d\s().+\-/]*$")
_MIN_GLUED_PHONE_DIGITS = 7
_SNIPPET_RADIUS = 50


def _email_domain(email: str) -> str:
    return email.rpartition("@")[2]


def _is_valid_email_domain(domain: str) -> bool:
    """The domain must be a registrable domain itself (``hotel.fr``, not ``hotel.frdirecteur``)."""
    if not domain or re.search(r"[\s\"'<>()]", domain):
        return False
    return get_registrable_domain(domain) == domain


def _is_excluded_domain(domain: str) -> bool:
    return any(domain == d or domain.endswith(f".{d}") for d in _EXCLUDED_DOMAINS)


def _is_glued_to_phone(text: str, start: int, match: str) -> bool:
    """True when the match looks like the tail of a phone number run into an address."""
    leading = _LEADING_DIGITS_RE.match(match)
    if not leading:
        return False
    if len(leading.group()) >= _MIN_GLUED_PHONE_DIGITS:
        return True
    tail = _PHONE_TAIL_RE.search(text[max(0, start - 30):start])
    tail_digits = digits_only(tail.group()) if tail else ""
    return len(tail_digits) + len(leading.group()) >= _MIN_GLUED_PHONE_DIGITS


def _signals(source: str, email: str, page_domain: str | None) -> list[str]:
    signals = [source]
    if page_domain and get_registrable_domain(_email_domain(email)) == page_domain:
        signals.append("same_domain")
    return signals


def extract_emails(html: str, source_url: str) -> list[EmailFact]:
    """Emails of one page: mailto links, then visible text, then JSON-LD.

    An address already found by an earlier source is not repeated.
    """
    soup = make_soup(html)
    page_domain = get_registrable_domain(source_url)
    json_ld = load_json_ld(soup)
    strip_non_visible(soup)

    found: dict[str, EmailFact] = {}

    # mailto links
    for anchor in soup.select('a[href^="mailto:" i]'):
        href = unquote(anchor.get("href", ""))
        value = href.split(":", 1)[1].split("?", 1)[0].split("&", 1)[0].strip()
        if should_filter_email(value):
            continue
        normalized = normalize_email(value)
        if not normalized or normalized in found:
            continue
        text = anchor.get_text(" ", strip=True)
        section = closest(anchor, names=("section", "div", "article"))
        context = section.get_text(" ", strip=True)[:200] if section else ""
        found[normalized] = EmailFact(
            value=normalized,
            type=detect_email_type(normalized, f"{text} {context}"),
            signals=_signals("mailto", normalized, page_domain),
            sourceUrl=source_url,
            snippet=clean_snippet(text or normalized),
        )

    # Free text
    text = soup.get_text(" ")
    for match in _EMAIL_RE.finditer(text):
        raw = match.group()
        if should_filter_email(raw):
            continue
        normalized = normalize_email(raw)
        if not normalized or normalized in found:
            continue
        domain = _email_domain(normalized)
        if not _is_valid_email_domain(domain) or _is_excluded_domain(domain):
            continue
        if _is_glued_to_phone(text, match.start(), raw):
            logger.debug("Rejecting email glued to a phone number: %s", raw)
            continue
        snippet = text[max(0, match.start() - _SNIPPET_RADIUS): match.end() + _SNIPPET_RADIUS]
        found[normalized] = EmailFact(
            value=normalized,
            type=detect_email_type(normalized, snippet),
            signals=_signals("text", normalized, page_domain),
            sourceUrl=source_url,
            snippet=clean_snippet(snippet),
        )

    # schema.org
    for value in collect_emails(json_ld):
        if should_filter_email(value):
            continue
        normalized = normalize_email(value)
        if not normalized or normalized in found:
            continue
        if _is_excluded_domain(_email_domain(normalized)):
            continue
        found[normalized] = EmailFact(
            value=normalized,
            type=detect_email_type(normalized),
            signals=_signals("schema", normalized, page_domain),
            sourceUrl=source_url,
            snippet=normalized,
        )

    return list(found.values())
