from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from app.schemas.company import CompanyFact
from app.schemas.contacts import EmailFact, PhoneFact, Priority
from app.schemas.socials import SocialLink, empty_socials
from app.schemas.team import TeamMemberFact


class KeyPageType(StrEnum):
    contact = "contact"
    about = "about"
    team = "team"
    legal = "legal"
    privacy = "privacy"


class PageError(BaseModel):
    url: str
    error: str


class CrawlOptions(BaseModel):
    timeoutSecs: float = 30
    usePlaywrightFallback: bool = True
    includeCompany: bool = True
    includeContacts: bool = True
    includeSocials: bool = True
    includeTeam: bool = True
    keyPaths: list[str] = []  # reserved, not used yet
    useOpenAI: bool = False
    openAIModel: str = "gpt-4o-mini"


class DomainRecord(BaseModel):
    domain: str
    finalUrl: str | None = None
    keyPages: dict[str, str] = {}
    pagesVisited: list[str] = []
    errors: list[PageError] = []
    emails: list[EmailFact] = []
    phones: list[PhoneFact] = []
    socials: dict[str, list[SocialLink]] = {}
    company: CompanyFact | None = None
    team: list[TeamMemberFact] = []
    tier: str = "standard"
    usedBrowser: bool = False

    def model_post_init(self, _context: Any) -> None:
        if not self.socials:
            self.socials = empty_socials()

    @property
    def primary_email(self) -> EmailFact | None:
        return next((e for e in self.emails if e.priority == Priority.primary), None)

    @property
    def primary_phone(self) -> PhoneFact | None:
        return next((p for p in self.phones if p.priority == Priority.primary), None)

    def to_output(self, options: CrawlOptions) -> dict[str, Any]:
        """Build the emitted record: only the sections enabled by ``options``."""
        record: dict[str, Any] = {
            "domain": self.domain,
            "finalUrl": self.finalUrl,
            "keyPages": dict(self.keyPages),
            "pagesVisited": list(self.pagesVisited),
        }
        if self.errors:
            record["errors"] = [e.model_dump() for e in self.errors]

        if options.includeCompany and self.company is not None and not self.company.is_empty():
            record["company"] = self.company.model_dump()

        if options.includeContacts:
            record["emails"] = [e.model_dump(mode="json") for e in self.emails]
            record["phones"] = [p.model_dump(mode="json") for p in self.phones]
            if email := self.primary_email:
                record["primaryEmail"] = email.value
            if phone := self.primary_phone:
                record["primaryPhone"] = phone.valueE164 or phone.valueRaw

        if options.includeSocials:
            socials = {
                platform: [link.model_dump() for link in links]
                for platform, links in self.socials.items()
                if links
            }
            if socials:
                record["socials"] = socials

        if options.includeTeam:
            record["team"] = [m.model_dump() for m in self.team]

        return record


def error_record(domain: str, url: str, error: str) -> dict[str, Any]:
    """Minimal record emitted when a domain could not be crawled at all."""
    return {
        "domain": domain,
        "finalUrl": url,
        "errors": [PageError(url=url, error=error).model_dump()],
    }
