"""Page discovery for a domain crawl: key-page detection, link ranking, tiering."""

import re

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict

from app.extractors.html import closest, make_soup, strip_non_visible
from app.mappers.url_utils import is_asset, is_same_domain, normalize_url, resolve_url, url_path
from app.schemas.company import CompanyFact
from app.schemas.domain import CrawlOptions, KeyPageType


class CrawlTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    max_pages: int


STANDARD = CrawlTier(name="standard", max_pages=8)
DEEP = CrawlTier(name="deep", max_pages=15)

DEFAULT_KEY_PATHS: dict[KeyPageType, tuple[str, ...]] = {
    KeyPageType.contact: ("/contact", "/contact-us", "/nous-contacter", "/contactez-nous"),
    KeyPageType.about: ("/about", "/about-us", "/a-propos", "/qui-sommes-nous"),
    KeyPageType.team: ("/team", "/equipe", "/notre-equipe", "/our-team", "/staff", "/leadership"),
    KeyPageType.legal: ("/legal", "/mentions-legales", "/imprint", "/mentions", "/legal-notice"),
    KeyPageType.privacy: ("/privacy", "/politique-de-confidentialite", "/confidentialite", "/privacy-policy"),
}

# Looser substrings used once a page has actually been fetched
EXTENDED_KEY_PATTERNS: dict[KeyPageType, tuple[str, ...]] = {
    KeyPageType.contact: ("contact", "nous-contacter", "contactez"),
    KeyPageType.about: ("about", "story", "a-propos", "qui-sommes", "our-story", "histoire"),
    KeyPageType.team: ("team", "equipe", "staff", "leadership", "people", "direction"),
    KeyPageType.legal: ("legal", "disclaimer", "mentions", "imprint", "impressum"),
    KeyPageType.privacy: ("privacy", "confidentialite", "cookies", "rgpd", "gdpr"),
}

_LINK_SCORES: tuple[tuple[KeyPageType, int], ...] = (
    (KeyPageType.contact, 120),
    (KeyPageType.legal, 110),
    (KeyPageType.team, 100),
    (KeyPageType.privacy, 90),
    (KeyPageType.about, 80),
)
_NAV_SCORE = 50
_KEYWORD_SCORE = 40
_KEYWORD_RE = re.compile(r"legal|imprint|mentions|privacy|cookies|contact|about|team|equipe", re.IGNORECASE)
_NAV_CLASSES = ("header", "nav", "footer")
_SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:", "#", "data:")
_PAGINATION_QUERY_RE = re.compile(r"[?&](?:page|p)=\d+", re.IGNORECASE)
_PAGINATION_PATH_RE = re.compile(r"/page/\d+/?$", re.IGNORECASE)


class ScoredLink(BaseModel):
    url: str  # normalized
    score: int


def _internal_links(soup: BeautifulSoup, base_url: str):
    """(anchor, absolute url) for same-domain, non-asset links."""
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.lower().startswith(_SKIPPED_SCHEMES):
            continue
        url = resolve_url(base_url, href)
        if not url or not is_same_domain(url, base_url) or is_asset(url):
            continue
        yield anchor, url


def _matches_key_paths(url: str, paths: tuple[str, ...]) -> bool:
    lower = url.lower()
    path = url_path(url)
    return any(path == p or p in path or p in lower for p in paths)


def detect_key_pages(html: str, base_url: str) -> dict[str, str]:
    """First link per category, in document order, matched against DEFAULT_KEY_PATHS."""
    key_pages: dict[str, str] = {}
    for _, url in _internal_links(make_soup(html), base_url):
        for page_type, paths in DEFAULT_KEY_PATHS.items():
            if page_type.value not in key_pages and _matches_key_paths(url, paths):
                key_pages[page_type.value] = url
    return key_pages


def classify_page(url: str) -> list[KeyPageType]:
    """Every category a fetched page belongs to, using the extended patterns too."""
    lower = url.lower()
    return [
        page_type for page_type in KeyPageType
        if _matches_key_paths(url, DEFAULT_KEY_PATHS[page_type])
        or any(p in lower for p in EXTENDED_KEY_PATTERNS[page_type])
    ]


def update_key_pages(key_pages: dict[str, str], url: str) -> dict[str, str]:
    """Return ``key_pages`` with ``url`` added to any category still empty."""
    updated = dict(key_pages)
    for page_type in classify_page(url):
        updated.setdefault(page_type.value, url)
    return updated


def score_links(html: str, base_url: str) -> list[ScoredLink]:
    """Internal links ranked by how likely they lead to contact/legal/team facts.

    Pagination links are skipped; each URL keeps its best score.
    """
    soup = strip_non_visible(make_soup(html))
    best: dict[str, int] = {}

    for anchor, url in _internal_links(soup, base_url):
        if _PAGINATION_QUERY_RE.search(url) or _PAGINATION_PATH_RE.search(url_path(url)):
            continue

        score = 0
        if closest(anchor, names=_NAV_CLASSES, classes=_NAV_CLASSES):
            score += _NAV_SCORE

        combined = f"{url_path(url)} {anchor.get_text(' ', strip=True).lower()}"
        for page_type, points in _LINK_SCORES:
            if any(p.lstrip("/") in combined for p in DEFAULT_KEY_PATHS[page_type]):
                score += points
        if _KEYWORD_RE.search(combined):
            score += _KEYWORD_SCORE

        key = normalize_url(url)
        if score > best.get(key, -1):
            best[key] = score

    ranked = [ScoredLink(url=url, score=score) for url, score in best.items()]
    # Stable: equal scores keep document order
    return sorted(ranked, key=lambda link: -link.score)


def should_escalate(
    *,
    key_pages: dict[str, str],
    visited: list[str],
    used_browser: bool,
    options: CrawlOptions,
    emails_count: int,
    phones_count: int,
    team_count: int,
    company: CompanyFact | None,
) -> str | None:
    """Reason to move from the STANDARD to the DEEP tier, or None."""
    visited_keys = {normalize_url(u) for u in visited}
    team_page = key_pages.get(KeyPageType.team.value)

    if team_page and normalize_url(team_page) not in visited_keys:
        return "team page not visited"
    if len(key_pages) >= 4:
        return "richly structured site"
    if used_browser:
        return "headless fallback used"
    if options.includeContacts and emails_count == 0 and phones_count == 0:
        return "no contacts found"
    if options.includeTeam and team_page and team_count == 0:
        return "team page without members"
    if options.includeCompany and (
        company is None or not company.legalName or company.address is None
    ):
        return "company identity incomplete"
    return None
