import re
from typing import Any

from app.extractors.team import is_person_name, linkedin_profile_url
from app.mappers.normalization import digits_only, normalize_email
from app.mappers.url_utils import get_registrable_domain
from app.schemas.contacts import EmailFact, EmailType, PhoneFact, Priority
from app.schemas.socials import SocialLink
from app.schemas.team import TeamMemberFact

# Cross-TLD twins collapsed into one address (contact@hotel.fr == contact@hotel.com)
_TLD_TWINS = ((".fr", ".com"), (".com", ".fr"))

_CONTACT_OR_LEGAL_PATHS = ("/contact", "/legal", "/mentions", "/imprint", "/impressum")


def _email_variants(normalized: str) -> list[str]:
    local, _, domain = normalized.partition("@")
    variants = []
    for old, new in _TLD_TWINS:
        if domain.endswith(old):
            variants.append(f"{local}@{domain[: -len(old)]}{new}")
    return variants


def deduplicate_emails(emails: list[EmailFact]) -> list[EmailFact]:
    """One fact per normalized address; cross-TLD twins collapse, keeping the primary."""
    kept: list[EmailFact] = []
    index: dict[str, int] = {}

    for email in emails:
        normalized = normalize_email(email.value)
        if not normalized:
            continue
        if normalized in index:
            continue

        twin = next((v for v in _email_variants(normalized) if v in index), None)
        if twin is not None:
            existing = kept[index[twin]]
            if email.priority == Priority.primary and existing.priority != Priority.primary:
                kept[index[twin]] = email
                index[normalized] = index.pop(twin)
            continue

        index[normalized] = len(kept)
        kept.append(email)

    return kept


def phone_key(phone: PhoneFact) -> str:
    return phone.valueE164 or digits_only(phone.valueRaw)


def deduplicate_phones(phones: list[PhoneFact]) -> list[PhoneFact]:
    seen: set[str] = set()
    kept: list[PhoneFact] = []
    for phone in phones:
        key = phone_key(phone)
        if key and key not in seen:
            seen.add(key)
            kept.append(phone)
    return kept


def team_key(member: TeamMemberFact) -> str:
    return "|".join(
        (part or "").lower() for part in (member.name, member.role, member.linkedin)
    )


def deduplicate_team(team: list[TeamMemberFact]) -> list[TeamMemberFact]:
    """Drop repeated members; a member without role/linkedin folds into a richer twin."""
    by_key: dict[str, TeamMemberFact] = {}
    for member in team:
        by_key.setdefault(team_key(member), member)

    names_with_detail = {
        m.name.lower() for m in by_key.values() if m.role or m.linkedin
    }
    return [
        m for m in by_key.values()
        if m.role or m.linkedin or m.name.lower() not in names_with_detail
    ]


def _social_url_key(url: str) -> str:
    key = re.sub(r"^https?://", "", url.strip().lower())
    key = re.sub(r"^(?:www\.|m\.|mobile\.)", "", key)
    key = key.split("#", 1)[0]
    if "google." not in key and "goo.gl" not in key:
        key = key.split("?", 1)[0]
    return key.rstrip("/")


def deduplicate_socials(socials: dict[str, list[SocialLink]]) -> dict[str, list[SocialLink]]:
    """Per platform: unique by handle and by normalized URL. The ``x`` slot keeps one link."""
    result: dict[str, list[SocialLink]] = {}
    for platform, links in socials.items():
        seen_urls: set[str] = set()
        seen_handles: set[str] = set()
        kept: list[SocialLink] = []
        for link in links:
            url_key = _social_url_key(link.url)
            handle_key = link.handle.lower()
            if url_key in seen_urls or handle_key in seen_handles:
                continue
            seen_urls.add(url_key)
            seen_handles.add(handle_key)
            kept.append(link)
        if platform == "x":
            kept = kept[:1]
        result[platform] = kept
    return result


# --- Primary selection ---


def _is_contact_or_legal_page(url: str) -> bool:
    lower = url.lower()
    return any(p in lower for p in _CONTACT_OR_LEGAL_PATHS)


def _pick_primary_email(emails: list[EmailFact]) -> EmailFact | None:
    same_domain = [e for e in emails if "same_domain" in e.signals]
    rules = (
        lambda e: "mailto" in e.signals,
        lambda e: _is_contact_or_legal_page(e.sourceUrl),
        lambda e: e.type == EmailType.general,
        lambda e: True,
    )
    for pool in (same_domain, emails):
        for rule in rules:
            match = next((e for e in pool if rule(e)), None)
            if match is not None:
                return match
    return None


def select_primary_email(emails: list[EmailFact], domain: str | None = None) -> list[EmailFact]:
    """Return copies of ``emails`` with exactly one marked primary.

    Same-domain addresses win over foreign ones; within each pool the order is
    mailto > contact/legal page > "general" type > first found. ``domain``
    re-derives the same-domain signal when an address lacks it.
    """
    if not emails:
        return []
    if domain:
        emails = [
            e if "same_domain" in e.signals
            or get_registrable_domain(e.value.partition("@")[2]) != domain
            else e.model_copy(update={"signals": [*e.signals, "same_domain"]})
            for e in emails
        ]
    primary = _pick_primary_email(emails)
    return [
        e.model_copy(update={
            "priority": Priority.primary if e is primary else Priority.secondary,
        })
        for e in emails
    ]


def select_primary_phone(phones: list[PhoneFact]) -> list[PhoneFact]:
    """Return copies of ``phones`` with exactly one primary: tel link > footer/contact > E.164 > first."""
    if not phones:
        return []
    rules = (
        lambda p: "tel" in p.signals,
        lambda p: "footer_or_contact" in p.signals,
        lambda p: p.valueE164 is not None,
    )
    primary = phones[0]
    for rule in rules:
        match = next((p for p in phones if rule(p)), None)
        if match is not None:
            primary = match
            break
    return [
        p.model_copy(update={
            "priority": Priority.primary if p is primary else Priority.secondary,
        })
        for p in phones
    ]


def merge_llm_team(
    team: list[TeamMemberFact], data: dict[str, Any] | None, source_url: str
) -> list[TeamMemberFact]:
    """Append LLM-found members whose name is not already known. Never removes."""
    if not isinstance(data, dict) or not isinstance(data.get("team"), list):
        return list(team)

    known = {m.name.lower() for m in team}
    merged = list(team)
    for raw in data["team"]:
        if not isinstance(raw, dict):
            continue
        name = raw.get("name")
        if not isinstance(name, str) or not is_person_name(name.strip(), min_words=2, max_words=4):
            continue
        name = name.strip()
        if name.lower() in known:
            continue
        role = raw.get("role") if isinstance(raw.get("role"), str) else None
        known.add(name.lower())
        merged.append(TeamMemberFact(
            name=name,
            role=role or None,
            linkedin=linkedin_profile_url(raw.get("linkedin") if isinstance(raw.get("linkedin"), str) else None),
            sourceUrl=source_url,
            signals=["llm"],
        ))
    return merged
