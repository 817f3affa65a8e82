"""Company identity extraction: name, legal name, address, country, opening hours.

Each field is resolved by an ordered tuple of independent matchers; the first
one returning a value wins. Matchers only ever see one page.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

from app.extractors import schema_org
from app.extractors.html import layout_lines, make_soup, strip_non_visible
from app.mappers.company_merger import apply_country_rules
from app.mappers.countries import (
    COUNTRY_NAME_ALTERNATION,
    COUNTRY_NAME_RE,
    country_code_for_name,
    is_french_city,
    is_paris_region_postal_code,
)
from app.mappers.normalization import collapse_whitespace
from app.mappers.url_utils import country_for_tld, get_public_suffix, url_path
from app.schemas.company import Address, CompanyFact

logger = logging.getLogger(__name__)

_TITLE_SEPARATORS_RE = re.compile(r"\s+[|\-–—·•:]\s+|\s*\|\s*")
_GENERIC_TITLES = frozenset({
    "home", "homepage", "accueil", "page d'accueil", "welcome", "bienvenue",
    "privacy policy", "politique de confidentialité", "confidentialité",
    "mentions légales", "mentions legales", "legal notice", "legal", "imprint",
    "impressum", "contact", "contact us", "contactez-nous", "nous contacter",
    "about", "about us", "à propos", "a propos", "qui sommes-nous",
    "team", "our team", "notre équipe", "cookies", "terms", "terms and conditions",
    "cgv", "official site", "official website", "site officiel", "404",
    "page not found", "page introuvable",
})

_LEGAL_SUFFIXES = (
    r"SASU|SAS|SARL|EURL|SCI|SNC|SCA|SA|LTD|Ltd|LIMITED|Limited|LLC|LLP|PLC|"
    r"GMBH|GmbH|AG|KG|BV|B\.V\.|NV|SL|S\.L\.|SRL|S\.R\.L\.|SPA|S\.p\.A\.|"
    r"S\.A\.S\.?|S\.A\.R\.L\.?|S\.A\.?"
)
_CAP_WORD = r"[A-ZÀ-Þ0-9][\w&'’.\-]*"

_LEGAL_NAME_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"Raison\s+sociale\s*[:\-]\s*([^.\n]{2,100})", re.IGNORECASE),
    re.compile(r"Dénomination(?:\s+sociale)?\s*[:\-]\s*([^.\n]{2,100})", re.IGNORECASE),
    re.compile(r"(?:Nom\s+de\s+la\s+)?Soci[ée]t[ée]\s*[:\-]\s*([^.\n]{2,100})", re.IGNORECASE),
    re.compile(r"(?:Legal|Company)\s+name\s*[:\-]\s*([^.\n]{2,100})", re.IGNORECASE),
    re.compile(r"propri[ée]t[ée]\s+exclusive\s+de\s+(?:la\s+soci[ée]t[ée]\s+)?([^,]{2,100}?)(?:\s*,\s*qui|\s+qui)\b", re.IGNORECASE),
    re.compile(r"owned\s+by\s+([^,(]{2,100}?)(?:\s*,\s*a\s+company|\s+\(|,|$)", re.IGNORECASE),
)
_SUFFIX_AFTER_RE = re.compile(rf"\b((?:{_CAP_WORD}\s+){{0,4}}{_CAP_WORD})\s+({_LEGAL_SUFFIXES})(?![\w])")
_SUFFIX_BEFORE_RE = re.compile(rf"\b(SARL|SASU|SAS|EURL|SCI|SNC)\s+((?:{_CAP_WORD}\s?){{1,4}})")
_LEGAL_NAME_CUT_RE = re.compile(
    r"\s+(?:au\s+capital|with\s+(?:a\s+)?capital|immatricul|registered|dont\s+le|"
    r"whose|RCS|SIRET|SIREN|TVA|VAT|Si[eè]ge|domicili)|\s*[,;(]|\s+-\s+",
    re.IGNORECASE,
)
_NOT_A_NAME_WORDS = frozenset({
    "la", "le", "les", "une", "un", "the", "a", "by", "de", "du", "des", "par",
    "est", "is", "société", "company", "mentions", "légales",
})

_ADDRESS_STOP_RE = re.compile(
    r"\b(?:Immatricul|RCS|R\.C\.S|SIRET|SIREN|Num[ée]ro|N°|Adresse\s+(?:de\s+courrier|e-?mail|électronique)|"
    r"E-?mail|Courriel|T[ée]l[ée]?phone|T[ée]l\b|Phone|Fax|Directeur|Directrice|H[ée]bergement|H[ée]bergeur|"
    r"Propri[ée]t[ée]|Capital|TVA|VAT|Registered\s+in|Company\s+number|Responsable)",
    re.IGNORECASE,
)
_ADDRESS_LABEL_RE = re.compile(
    r"(?:Si[eè]ge\s+social|Adresse\s+du\s+si[eè]ge|Adresse\s+postale|Registered\s+(?:office|address)|"
    r"Adresse|Address)\s*[:\-]\s*(.+)",
    re.IGNORECASE,
)
_REGISTERED_OFFICE_RE = re.compile(
    r"registered\s+office\s+is\s+(?:at|located\s+at)\s+(.+?)(?=\s*,\s*(?:with\s+(?:a\s+)?capital|registered|VAT)|\.\s|$)",
    re.IGNORECASE,
)
_STREET_RUN_RE = re.compile(
    r"(\d{1,4}(?:\s?(?i:bis|ter))?,?\s+(?i:rue|avenue|av\.|boulevard|bd|place|quai|chemin|all[ée]e|impasse|"
    r"route|cours|square|passage|esplanade|street|st\.|road|rd\.?|lane|calle|via)\b[^,\n]{2,60}?)"
    r"[,\s]+((?:F-|FR-)?\d{5})\s+([A-ZÀ-Þ][\w'’\-]+(?:[ \-][A-ZÀ-Þ][\w'’\-]+){0,3})",
)
_POSTAL_CODE_RE = re.compile(r"(?:\b(?:F|FR)-)?\b(\d{5})\b")
_CAMEL_GLUE_RE = re.compile(r"([a-zà-ÿ])([A-ZÀ-Þ])")

_PARASITE_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\b(?:SIRET|SIREN)\s*(?:n°|:)?\s*[\d\s]{9,17}\d", re.IGNORECASE),
    re.compile(r"\bR\.?C\.?S\.?\s+[A-ZÀ-Þ][\w\-]+\s+(?:[AB]\s+)?[\d\s]{9,11}\d", re.IGNORECASE),
    re.compile(r"(?:au\s+)?capital\s+(?:social\s+)?(?:de\s+)?[\d\s.,]+\s*(?:€|euros?|EUR)", re.IGNORECASE),
    re.compile(r"repr[ée]sent[ée]e?\s+par\s+.*$", re.IGNORECASE),
    re.compile(r"(?:\+33\s?(?:\(0\)\s?)?|\b0)[1-9](?:[\s.\-]?\d{2}){4}\b"),
    re.compile(r"\+\d[\d\s().\-]{8,}\d"),
)

_LEGAL_COUNTRY_PHRASE_RE = re.compile(
    rf"\b(?:registered\s+in|incorporated\s+in|immatricul[ée]e?\s+en|based\s+in|in|at|en)\s+"
    rf"({COUNTRY_NAME_ALTERNATION})(?![\w-])",
    re.IGNORECASE,
)
_LEGAL_PAGE_PATHS = ("legal", "mentions", "imprint", "impressum", "privacy", "confidentialite", "terms", "cgv")
_LEGAL_MARKERS_RE = re.compile(
    r"mentions\s+l[ée]gales|legal\s+notice|si[eè]ge\s+social|registered\s+office|\bSIRET\b|\bRCS\b|"
    r"raison\s+sociale|company\s+number|imprint|impressum",
    re.IGNORECASE,
)
_COUNTRY_WINDOW = 300


@dataclass
class _Page:
    source_url: str
    dom: BeautifulSoup
    org_nodes: list[dict[str, Any]]
    lines: list[str]
    text: str
    is_legal: bool
    address_country_hint: str | None = field(default=None)


# --- Text cleanup ---


def _clean_value(value: str | None, max_len: int = 120) -> str | None:
    if not value:
        return None
    cleaned = collapse_whitespace(value).strip(" ,;:.-–|")
    if not cleaned or len(cleaned) > max_len:
        return None
    return cleaned


def _clean_legal_name(value: str | None) -> str | None:
    if not value:
        return None
    cut = _LEGAL_NAME_CUT_RE.search(value)
    if cut and cut.start() > 1:
        value = value[: cut.start()]
    cleaned = _clean_value(value, max_len=100)
    if not cleaned or cleaned.lower() in _NOT_A_NAME_WORDS or len(cleaned) < 2:
        return None
    return cleaned


# --- Name matchers ---


def _name_from_og(page: _Page) -> str | None:
    meta = page.dom.find("meta", attrs={"property": "og:site_name"})
    return _clean_value(meta.get("content")) if meta else None


def _name_from_title(page: _Page) -> str | None:
    title = page.dom.find("title")
    if not title:
        return None
    for segment in _TITLE_SEPARATORS_RE.split(title.get_text(" ")):
        cleaned = _clean_value(segment, max_len=80)
        if cleaned and cleaned.lower() not in _GENERIC_TITLES:
            return cleaned
    return None


def _name_from_logo(page: _Page) -> str | None:
    img = page.dom.select_one('img[alt*="logo" i], .logo img[alt], header img[alt]')
    if not img:
        return None
    alt = re.sub(r"\blogo\b", "", img.get("alt", ""), flags=re.IGNORECASE)
    cleaned = _clean_value(alt, max_len=100)
    if cleaned and cleaned.lower() not in _GENERIC_TITLES:
        return cleaned
    return None


def _name_from_schema(page: _Page) -> str | None:
    for node in page.org_nodes:
        if name := schema_org.text_value(node, "name"):
            return _clean_value(name)
    return None


_NAME_MATCHERS: tuple[Callable[[_Page], str | None], ...] = (
    _name_from_og,
    _name_from_title,
    _name_from_logo,
    _name_from_schema,
)


# --- Legal name matchers ---


def _legal_name_from_schema(page: _Page) -> str | None:
    for node in page.org_nodes:
        if legal_name := schema_org.text_value(node, "legalName"):
            return _clean_value(legal_name)
    return None


def _legal_name_from_phrases(page: _Page) -> str | None:
    for pattern in _LEGAL_NAME_PATTERNS:
        for line in page.lines:
            match = pattern.search(line)
            if match and (name := _clean_legal_name(match.group(1))):
                return name
    return None


def _legal_name_from_suffix(page: _Page) -> str | None:
    """Bare "<Name> SAS" / "SARL <Name>" entities, legal pages only."""
    if not page.is_legal:
        return None
    for line in page.lines:
        match = _SUFFIX_AFTER_RE.search(line)
        if match:
            words = match.group(1).split()
            while words and words[0].lower() in _NOT_A_NAME_WORDS:
                words.pop(0)
            if words:
                return _clean_value(f"{' '.join(words)} {match.group(2)}", max_len=100)
        match = _SUFFIX_BEFORE_RE.search(line)
        if match and (name := _clean_legal_name(f"{match.group(1)} {match.group(2)}")):
            return name
    return None


_LEGAL_NAME_MATCHERS: tuple[Callable[[_Page], str | None], ...] = (
    _legal_name_from_schema,
    _legal_name_from_phrases,
    _legal_name_from_suffix,
)


# --- Address parsing ---


def _strip_parasites(text: str) -> str:
    for pattern in _PARASITE_PATTERNS:
        text = pattern.sub(" ", text)
    return collapse_whitespace(text).strip(" ,;.-")


def _cut_at_stop(text: str) -> str:
    for match in _ADDRESS_STOP_RE.finditer(text):
        if match.start() > 0:
            return text[: match.start()]
    return text


def _country_in(text: str) -> tuple[str | None, re.Match | None]:
    match = COUNTRY_NAME_RE.search(text)
    if not match:
        return None, None
    return country_code_for_name(match.group(1)), match


_CITY_JOINERS = frozenset({
    "sur", "sous", "en", "de", "la", "le", "les", "lès", "du", "des", "am", "an", "der", "upon", "on",
})


def _city_name(fragment: str) -> str | None:
    """Leading capitalized words of ``fragment`` ("Saint-Ouen sur Seine", "Paris Cedex 08")."""
    words: list[str] = []
    for word in fragment.split():
        bare = word.rstrip(".;:")
        if not bare:
            break
        if bare[0].isupper() or (words and (bare.lower() in _CITY_JOINERS or bare.isdigit())):
            words.append(bare)
        else:
            break
        if bare != word or len(words) == 4:
            break
    while words and words[-1].lower() in _CITY_JOINERS:
        words.pop()
    return _clean_value(" ".join(words), max_len=60)


def parse_address(fragment: str, following: str = "") -> Address | None:
    """Split a free-text address into street / postal code / city / country.

    ``following`` is the text right after the fragment, searched for a
    country name when the fragment itself has none.
    """
    text = _CAMEL_GLUE_RE.sub(r"\1 \2", collapse_whitespace(fragment))
    text = _strip_parasites(_cut_at_stop(text))
    if not text:
        return None

    postal = _POSTAL_CODE_RE.search(text)
    if not postal:
        street = _clean_value(text, max_len=150)
        if not street or not re.search(r"\d", street):
            return None
        country, _ = _country_in(f"{street} {following[:_COUNTRY_WINDOW]}")
        return Address(street=street, country=country)

    postal_code = postal.group(1)
    street = _clean_value(text[: postal.start()])
    after = text[postal.end():].strip(" ,-")

    country, country_match = _country_in(after)
    city_fragment = after
    if country_match:
        city_fragment = after[: country_match.start()] + after[country_match.end():]
    city_fragment = re.split(r",|\s-\s|\s–\s|/", city_fragment, maxsplit=1)[0]
    city = _city_name(city_fragment)

    if country is None and following:
        country, _ = _country_in(following[:_COUNTRY_WINDOW])

    # French bias: Paris-region postal codes and known French cities win
    if is_paris_region_postal_code(postal_code) or is_french_city(city):
        if country not in (None, "FR"):
            logger.debug("Preferring FR over %s for %s %s", country, postal_code, city)
        country = "FR"

    return Address(street=street, postalCode=postal_code, city=city, country=country)


# --- Address matchers ---


def _address_from_schema(page: _Page) -> Address | None:
    for node in page.org_nodes:
        raw = schema_org.postal_address(node)
        if not raw:
            continue
        if "text" in raw:
            return parse_address(raw["text"])
        country = country_code_for_name(raw.get("country"))
        address = Address(
            street=_clean_value(raw.get("street")),
            postalCode=raw.get("postalCode"),
            city=_clean_value(raw.get("city")),
            country=country,
        )
        if address.country is None and (
            is_paris_region_postal_code(address.postalCode) or is_french_city(address.city)
        ):
            address.country = "FR"
        page.address_country_hint = country
        return address
    return None


def _address_from_registered_office(page: _Page) -> Address | None:
    match = _REGISTERED_OFFICE_RE.search(page.text)
    if not match:
        return None
    return parse_address(match.group(1), page.text[match.end():])


def _address_from_labels(page: _Page) -> Address | None:
    for index, line in enumerate(page.lines):
        match = _ADDRESS_LABEL_RE.search(line)
        if not match:
            continue
        fragment = match.group(1)
        consumed = index + 1
        # "Siège social : 12 rue X" / "75008 Paris" on the next lines
        if not _POSTAL_CODE_RE.search(fragment):
            fragment = ", ".join([fragment, *page.lines[consumed: consumed + 2]])
            consumed += 2
        following = " ".join(page.lines[consumed:])[:_COUNTRY_WINDOW]
        address = parse_address(fragment, following)
        if address and (address.postalCode or address.city):
            return address
    return None


def _address_from_street_run(page: _Page) -> Address | None:
    match = _STREET_RUN_RE.search(page.text)
    if not match:
        return None
    fragment = match.group(0)
    return parse_address(fragment, page.text[match.end():])


_ADDRESS_MATCHERS: tuple[Callable[[_Page], Address | None], ...] = (
    _address_from_schema,
    _address_from_registered_office,
    _address_from_labels,
    _address_from_street_run,
)


# --- Country matchers: (iso2, source) ---


def _country_from_schema(page: _Page, address: Address | None) -> str | None:
    return page.address_country_hint


def _country_from_address(page: _Page, address: Address | None) -> str | None:
    return address.country if address else None


def _country_from_legal_phrase(page: _Page, address: Address | None) -> str | None:
    if not page.is_legal:
        return None
    match = _LEGAL_COUNTRY_PHRASE_RE.search(page.text)
    return country_code_for_name(match.group(1)) if match else None


def _country_from_legal_token(page: _Page, address: Address | None) -> str | None:
    if not page.is_legal:
        return None
    country, _ = _country_in(page.text)
    return country


def _country_from_french_city(page: _Page, address: Address | None) -> str | None:
    return "FR" if address and is_french_city(address.city) else None


def _country_from_tld(page: _Page, address: Address | None) -> str | None:
    return country_for_tld(get_public_suffix(page.source_url))


_COUNTRY_MATCHERS: tuple[tuple[str, Callable[[_Page, Address | None], str | None]], ...] = (
    ("schema", _country_from_schema),
    ("address", _country_from_address),
    ("legal_text", _country_from_legal_phrase),
    ("legal_text", _country_from_legal_token),
    ("french_city", _country_from_french_city),
    ("tld", _country_from_tld),
)


def _first(matchers, page: _Page):
    for matcher in matchers:
        value = matcher(page)
        if value:
            return value
    return None


def _is_legal_page(source_url: str, text: str) -> bool:
    path = url_path(source_url)
    return any(p in path for p in _LEGAL_PAGE_PATHS) or bool(_LEGAL_MARKERS_RE.search(text))


def extract_company(html: str, source_url: str) -> CompanyFact:
    """Company facts of one page. Never raises; unknown fields stay None."""
    soup = make_soup(html)
    blocks = schema_org.load_json_ld(soup)
    strip_non_visible(soup)
    dom = make_soup(str(soup))
    lines = layout_lines(soup)
    text = " ".join(lines)

    page = _Page(
        source_url=source_url,
        dom=dom,
        org_nodes=schema_org.organization_nodes(blocks),
        lines=lines,
        text=text,
        is_legal=_is_legal_page(source_url, text),
    )

    name = _first(_NAME_MATCHERS, page)
    legal_name = _first(_LEGAL_NAME_MATCHERS, page)
    if not name and legal_name:
        name = legal_name
    address = _first(_ADDRESS_MATCHERS, page)

    country = None
    country_source = None
    for source, matcher in _COUNTRY_MATCHERS:
        country = matcher(page, address)
        if country:
            country_source = source
            break

    opening_hours = None
    for node in page.org_nodes:
        opening_hours = schema_org.opening_hours(node)
        if opening_hours:
            break

    company = CompanyFact(
        name=name,
        legalName=legal_name,
        country=country,
        address=address,
        openingHours=opening_hours,
    )
    company.countrySource = country_source
    return apply_country_rules(company)
