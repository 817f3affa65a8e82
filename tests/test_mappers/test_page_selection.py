"""Tests for key-page detection, link scoring and tier escalation."""

import pytest
from pydantic import ValidationError

from app.mappers.page_selection import (
    DEEP,
    STANDARD,
    classify_page,
    detect_key_pages,
    score_links,
    should_escalate,
    update_key_pages,
)
from app.schemas.company import Address, CompanyFact
from app.schemas.domain import CrawlOptions, KeyPageType

BASE = "https://www.hotel.fr/"

HOMEPAGE = """
<html><body>
  <header><nav>
    <a href="/chambres">Chambres</a>
    <a href="/contact">Contact</a>
    <a href="/a-propos">À propos</a>
  </nav></header>
  <main>
    <a href="/blog/page/2">Older</a>
    <a href="/actualites?page=3">Plus</a>
    <a href="/equipe">Notre équipe</a>
    <a href="mailto:info@hotel.fr">Mail</a>
    <a href="tel:+33142609490">Tel</a>
    <a href="https://www.booking.com/hotel">Booking</a>
    <a href="/brochure.pdf">Brochure</a>
    <a href="/contact/">Contact again</a>
  </main>
  <footer>
    <a href="/mentions-legales">Mentions légales</a>
    <a href="/politique-de-confidentialite">Confidentialité</a>
  </footer>
</body></html>
"""


def _options(**kwargs) -> CrawlOptions:
    return CrawlOptions(**kwargs)


def test_tier_caps():
    assert STANDARD.max_pages == 8
    assert DEEP.max_pages == 15


def test_tiers_are_immutable():
    assert len({STANDARD, DEEP}) == 2
    with pytest.raises(ValidationError):
        STANDARD.max_pages = 99


# --- Key pages ---


def test_detect_key_pages_first_match_per_category():
    key_pages = detect_key_pages(HOMEPAGE, BASE)
    assert key_pages == {
        "contact": "https://www.hotel.fr/contact",
        "about": "https://www.hotel.fr/a-propos",
        "team": "https://www.hotel.fr/equipe",
        "legal": "https://www.hotel.fr/mentions-legales",
        "privacy": "https://www.hotel.fr/politique-de-confidentialite",
    }


def test_detect_key_pages_ignores_other_domains():
    html = '<a href="https://other.fr/contact">Contact</a>'
    assert detect_key_pages(html, BASE) == {}


def test_classify_page_extended_patterns():
    assert KeyPageType.legal in classify_page("https://hotel.fr/impressum")
    assert KeyPageType.about in classify_page("https://hotel.fr/notre-histoire")
    assert classify_page("https://hotel.fr/chambres") == []


def test_update_key_pages_only_fills_missing():
    key_pages = {"contact": "https://hotel.fr/contact"}
    updated = update_key_pages(key_pages, "https://hotel.fr/contactez-nous")
    assert updated["contact"] == "https://hotel.fr/contact"
    updated = update_key_pages(key_pages, "https://hotel.fr/disclaimer")
    assert updated["legal"] == "https://hotel.fr/disclaimer"
    assert "legal" not in key_pages


# --- Link scoring ---


def test_score_links_ranks_contact_first():
    links = score_links(HOMEPAGE, BASE)
    assert links[0].url == "https://www.hotel.fr/contact"
    # nav + contact path + keyword
    assert links[0].score == 50 + 120 + 40


def test_score_links_skips_pagination_assets_and_external():
    urls = {link.url for link in score_links(HOMEPAGE, BASE)}
    assert "https://www.hotel.fr/blog/page/2" not in urls
    assert "https://www.hotel.fr/actualites?page=3" not in urls
    assert "https://www.hotel.fr/brochure.pdf" not in urls
    assert not any("booking.com" in u for u in urls)


def test_score_links_dedups_by_normalized_url():
    urls = [link.url for link in score_links(HOMEPAGE, BASE)]
    assert urls.count("https://www.hotel.fr/contact") == 1


def test_score_links_plain_page_low_score():
    links = {link.url: link.score for link in score_links(HOMEPAGE, BASE)}
    assert links["https://www.hotel.fr/chambres"] == 50


# --- Escalation ---


def _escalate(**overrides):
    args = dict(
        key_pages={},
        visited=[BASE],
        used_browser=False,
        options=_options(includeCompany=False, includeTeam=False),
        emails_count=1,
        phones_count=1,
        team_count=0,
        company=None,
    )
    args.update(overrides)
    return should_escalate(**args)


def test_no_escalation_when_satisfied():
    assert _escalate() is None


def test_escalate_when_team_page_not_visited():
    assert _escalate(key_pages={"team": "https://hotel.fr/equipe"}) is not None


def test_escalate_on_rich_site():
    key_pages = {k: f"https://hotel.fr/{k}" for k in ("contact", "about", "legal", "privacy")}
    visited = list(key_pages.values())
    assert _escalate(key_pages=key_pages, visited=visited) is not None


def test_escalate_after_browser_fallback():
    assert _escalate(used_browser=True) is not None


def test_escalate_without_contacts():
    assert _escalate(emails_count=0, phones_count=0) is not None
    assert _escalate(
        emails_count=0, phones_count=0, options=_options(includeContacts=False, includeCompany=False, includeTeam=False)
    ) is None


def test_escalate_team_page_without_members():
    team_url = "https://hotel.fr/equipe"
    assert _escalate(
        key_pages={"team": team_url}, visited=[team_url],
        options=_options(includeCompany=False),
    ) is not None


def test_escalate_incomplete_company():
    options = _options(includeTeam=False)
    assert _escalate(options=options, company=CompanyFact(name="Hotel")) is not None
    complete = CompanyFact(name="Hotel", legalName="HOTEL SAS", address=Address(city="Paris"))
    assert _escalate(options=options, company=complete) is None
