import copy
import logging
import re
from urllib.parse import unquote

from bs4 import Tag

from app.extractors.html import layout_lines, make_soup, strip_non_visible
from app.mappers.normalization import collapse_whitespace, digits_only, normalize_email
from app.schemas.team import TeamMemberFact

logger = logging.getLogger(__name__)

_CARD_SELECTORS = (
    ".team-member", ".team-member-card", ".person-card", ".member-card",
    ".staff-member", ".employee", ".team-item", '[class*="team-member"]',
    '[class*="member"]', '[class*="person"]', '[class*="team"]', '[class*="staff"]',
)
_FALLBACK_CONTAINERS = ("div", "article", "li", "section", "figure")
_FALLBACK_MAX_TEXT = 300
_CARD_MAX_TEXT = 600

_NAME_WORD_RE = re.compile(r"^(?:[A-ZÀ-Þ][a-zà-ÿ'’]+(?:-[A-ZÀ-Þ][a-zà-ÿ'’]+)?|[A-ZÀ-Þ]{2,}(?:-[A-ZÀ-Þ]{2,})?)$")
_NAME_PARTICLES = frozenset({"de", "du", "da", "di", "van", "von", "der", "le", "la", "d'", "del", "dos"})
_HONORIFICS_RE = re.compile(r"^(?:M\.|Mme\.?|Mlle\.?|Mr\.?|Mrs\.?|Ms\.?|Dr\.?|Monsieur|Madame)\s+", re.IGNORECASE)
_SEGMENT_SPLIT_RE = re.compile(r",|\s[-–|]\s|\|")

# Section titles, UI labels and department names that look like names
_NAME_BLOCKLIST = frozenset({
    "team", "our", "notre", "nos", "équipe", "equipe", "leadership", "management",
    "sales", "marketing", "send", "message", "contact", "contactez", "us", "about",
    "read", "more", "learn", "view", "profile", "book", "now", "reserve", "réserver",
    "services", "service", "department", "finance", "human", "resources", "operations",
    "reception", "réception", "restaurant", "bar", "spa", "room", "rooms", "chambre",
    "chambres", "suite", "suites", "hotel", "hôtel", "welcome", "bienvenue", "meet",
    "the", "board", "directors", "news", "events", "gallery", "galerie", "home",
    "accueil", "menu", "privacy", "policy", "follow", "share", "email", "e-mail",
    "phone", "call", "client", "customer", "support", "press", "media", "accounting",
    "engineering", "technology", "partners", "careers", "jobs", "testimonials",
    "linkedin", "facebook", "instagram", "twitter", "découvrir", "discover", "offres",
    "offers", "group", "groupe", "direction", "staff", "people", "members", "membres",
})

_ROLE_RE = re.compile(
    r"\b(?:CEO|CTO|CFO|CMO|COO|CHRO|Founder|Co-?founder|Fondat(?:eur|rice)|Co-?fondat(?:eur|rice)|"
    r"Pr[ée]sident(?:e)?|President|Directeur|Directrice|Director|General\s+Manager|Managing\s+Director|"
    r"Manager|G[ée]rant(?:e)?|Owner|Propri[ée]taire|Partner|Associ[ée](?:e)?|Head\s+of\s+\w+|"
    r"Responsable|Chef|Lead|Sommelier|Concierge|Gouvernante|Governess)\b",
    re.IGNORECASE,
)
_MAX_ROLE_LEN = 60

_PUBLICATION_LABEL_RE = re.compile(
    r"((?:Directeur|Directrice|Responsable)\s+(?:de\s+(?:la\s+)?)?publication|"
    r"Head\s+of\s+publication|Publication\s+director)\s*[:\-]?\s*(.*)",
    re.IGNORECASE,
)
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,24}(?![a-zA-Z])")
_PHONE_LABEL_RE = re.compile(r"(?:T[ée]l(?:[ée]phone)?|Phone)\s*[:.\-]?\s*(\+?\d[\d\s.()\-]{7,}\d)", re.IGNORECASE)
_LINKEDIN_PROFILE_RE = re.compile(r"linkedin\.com/in/([^/?#]+)", re.IGNORECASE)


def is_person_name(text: str | None, min_words: int = 2, max_words: int = 3) -> bool:
    """"First Last" shaped: capitalized words (or uppercase surnames), no UI/section words."""
    if not text:
        return False
    words = text.split()
    significant = [w for w in words if w.lower() not in _NAME_PARTICLES]
    if not min_words <= len(significant) <= max_words:
        return False
    if words[0].lower() in _NAME_PARTICLES or _ROLE_RE.search(text):
        return False
    for word in significant:
        if word.lower() in _NAME_BLOCKLIST or not _NAME_WORD_RE.match(word):
            return False
    return True


def _clean_name(text: str) -> str:
    return _HONORIFICS_RE.sub("", collapse_whitespace(text)).strip(" .:;")


def _segments(card: Tag) -> list[str]:
    segments: list[str] = []
    for line in card.get_text("\n").split("\n"):
        for part in _SEGMENT_SPLIT_RE.split(line):
            part = collapse_whitespace(part)
            if part:
                segments.append(part)
    return segments


def linkedin_profile_url(href: str | None) -> str | None:
    if not href:
        return None
    match = _LINKEDIN_PROFILE_RE.search(unquote(href))
    return f"https://linkedin.com/in/{match.group(1)}" if match else None


def _role_from(segments: list[str], name: str) -> str | None:
    for segment in segments:
        if segment == name:
            continue
        match = _ROLE_RE.search(segment)
        if not match:
            continue
        if len(segment) <= _MAX_ROLE_LEN:
            return segment.strip(" .:;")
        return match.group(0)
    return None


def _find_name(segments: list[str], min_words: int) -> str | None:
    for segment in segments:
        cleaned = _clean_name(segment)
        if is_person_name(cleaned, min_words=min_words):
            return cleaned
    return None


def _member_from_card(card: Tag, source_url: str) -> TeamMemberFact | None:
    if len(card.get_text(" ", strip=True)) > _CARD_MAX_TEXT:
        return None

    email = None
    mailto = card.select_one('a[href^="mailto:" i]')
    if mailto:
        email = normalize_email(unquote(mailto["href"]).split(":", 1)[1].split("?", 1)[0])

    phone = None
    tel = card.select_one('a[href^="tel:" i]')
    if tel:
        phone = unquote(tel["href"]).split(":", 1)[1].strip() or None

    linkedin = None
    for anchor in card.select('a[href*="linkedin.com/in/" i]'):
        linkedin = linkedin_profile_url(anchor.get("href"))
        if linkedin:
            break

    segments = _segments(card)
    name = _find_name(segments, min_words=2)
    # A lone first name only counts next to a personal email or LinkedIn link
    if not name and (email or linkedin):
        name = _find_name(segments, min_words=1)
    if not name:
        return None
    role = _role_from(segments, name)

    signals = []
    if card.find("img"):
        signals.append("has_image")
    if email:
        signals.append("has_email")
    if linkedin:
        signals.append("has_linkedin")
    if role:
        signals.append("has_role")
    if not signals:
        return None

    return TeamMemberFact(
        name=name,
        role=role,
        email=email,
        phone=phone,
        linkedin=linkedin,
        sourceUrl=source_url,
        signals=signals,
    )


def _innermost(elements: list[Tag]) -> list[Tag]:
    """Drop elements that contain another element of the list."""
    ids = {id(e) for e in elements}
    return [
        e for e in elements
        if not any(id(d) in ids for d in e.find_all(True))
    ]


def _names_in(element: Tag) -> set[str]:
    names = set()
    for segment in _segments(element):
        cleaned = _clean_name(segment)
        if is_person_name(cleaned):
            names.add(cleaned)
    return names


def _merge_blocks(group: list[Tag]) -> Tag:
    if len(group) == 1:
        return group[0]
    block = Tag(name="div")
    for element in group:
        block.append(copy.copy(element))
    return block


def _split_wrapper(card: Tag) -> list[Tag]:
    """One block per person when a matched wrapper lists several people.

    Each child naming a person opens a block; following unnamed children (role,
    links) join it.
    """
    if len(_names_in(card)) < 2:
        return [card]
    blocks: list[Tag] = []
    group: list[Tag] = []
    for child in card.find_all(True, recursive=False):
        count = len(_names_in(child))
        if count > 1:
            if group:
                blocks.append(_merge_blocks(group))
                group = []
            blocks.extend(_split_wrapper(child))
        elif count == 1:
            if group:
                blocks.append(_merge_blocks(group))
            group = [child]
        elif group:
            group.append(child)
    if group:
        blocks.append(_merge_blocks(group))
    return blocks or [card]


def _card_candidates(soup) -> list[Tag]:
    for selector in _CARD_SELECTORS:
        found = soup.select(selector)
        if found:
            return [block for card in _innermost(found) for block in _split_wrapper(card)]

    fallback = []
    for element in soup.find_all(_FALLBACK_CONTAINERS):
        text = element.get_text(" ", strip=True)
        if not text or len(text) > _FALLBACK_MAX_TEXT:
            continue
        has_image = element.find("img") is not None
        has_linkedin = element.select_one('a[href*="linkedin.com/in/" i]') is not None
        if has_image or has_linkedin:
            fallback.append(element)
    return _innermost(fallback)


def _publication_director(lines: list[str], source_url: str) -> TeamMemberFact | None:
    """Legal notices name the publication director; adjacent lines carry email/phone."""
    for index, line in enumerate(lines):
        match = _PUBLICATION_LABEL_RE.search(line)
        if not match:
            continue
        value = match.group(2) or (lines[index + 1] if index + 1 < len(lines) else "")
        name = _clean_name(_SEGMENT_SPLIT_RE.split(value)[0].split("(")[0])
        if not is_person_name(name, min_words=2, max_words=4):
            continue

        nearby = " ".join(lines[index: index + 4])
        email_match = _EMAIL_RE.search(nearby)
        phone_match = _PHONE_LABEL_RE.search(nearby)
        phone = phone_match.group(1).strip() if phone_match else None
        if phone and not 9 <= len(digits_only(phone)) <= 15:
            phone = None

        signals = ["legal_notice", "has_role"]
        if email_match:
            signals.append("has_email")
        return TeamMemberFact(
            name=name,
            role=collapse_whitespace(match.group(1)),
            email=normalize_email(email_match.group()) if email_match else None,
            phone=phone,
            sourceUrl=source_url,
            signals=signals,
        )
    return None


def extract_team(html: str, source_url: str) -> list[TeamMemberFact]:
    """Team members of one page.

    A publication director named in a legal notice is returned alone. Otherwise
    team-card structures are scanned, falling back to small containers with an
    image or a personal LinkedIn link. Every member needs a name and at least one
    corroborating signal (image, email, LinkedIn, role).
    """
    soup = strip_non_visible(make_soup(html))

    cards = _card_candidates(soup)
    members: list[TeamMemberFact] = []
    seen: set[str] = set()
    for card in cards:
        member = _member_from_card(card, source_url)
        if member is None:
            continue
        key = member.name.lower()
        if key not in seen:
            seen.add(key)
            members.append(member)

    director = _publication_director(layout_lines(soup), source_url)
    if director is not None:
        logger.debug("Publication director found on %s: %s", source_url, director.name)
        return [director]
    return members
