"""Per-domain crawl: page selection, tiering, extraction and final adjudication."""

import logging
from dataclasses import dataclass, field

from app.exceptions.custom import FetchError, HomepageUnreachableError, InvalidDomainError
from app.extractors.company import extract_company
from app.extractors.emails import extract_emails
from app.extractors.phones import extract_phones
from app.extractors.socials import extract_socials
from app.extractors.team import extract_team
from app.mappers.company_merger import merge_company, merge_llm_company
from app.mappers.deduplication import (
    deduplicate_emails,
    deduplicate_phones,
    deduplicate_socials,
    deduplicate_team,
    merge_llm_team,
    select_primary_email,
    select_primary_phone,
)
from app.mappers.page_selection import (
    DEEP,
    STANDARD,
    CrawlTier,
    ScoredLink,
    classify_page,
    detect_key_pages,
    score_links,
    should_escalate,
    update_key_pages,
)
from app.mappers.url_utils import ensure_scheme, get_registrable_domain, normalize_url, url_variants
from app.schemas.domain import CrawlOptions, DomainRecord, KeyPageType, PageError
from app.services.fetcher import FetchResult, PageFetcher
from app.services.llm_extractor import LLMExtractor

logger = logging.getLogger(__name__)

# Pages where people are listed by name, besides the homepage
_TEAM_PAGE_TYPES = frozenset({
    KeyPageType.team, KeyPageType.about, KeyPageType.legal, KeyPageType.contact,
})
# Failed fetches count towards this bound, pages visited towards the tier cap
_DEEP_ATTEMPT_FACTOR = 2


@dataclass
class _CrawlSession:
    """Mutable state of one domain crawl. Never shared between domains."""

    record: DomainRecord
    options: CrawlOptions
    site_domains: set[str]
    tier: CrawlTier = STANDARD
    used_browser: bool = False
    visited: set[str] = field(default_factory=set)
    attempted: set[str] = field(default_factory=set)
    candidates: list[ScoredLink] = field(default_factory=list)
    candidate_seen: set[str] = field(default_factory=set)
    html_by_url: dict[str, str] = field(default_factory=dict)

    def add_candidates(self, links: list[ScoredLink]) -> None:
        for link in links:
            if link.url not in self.candidate_seen:
                self.candidate_seen.add(link.url)
                self.candidates.append(link)

    def next_candidate(self) -> str | None:
        """Highest-scored candidate not tried yet; ties keep discovery order."""
        best: ScoredLink | None = None
        for link in self.candidates:
            if link.url in self.attempted or link.url in self.visited:
                continue
            if best is None or link.score > best.score:
                best = link
        return best.url if best else None

    def is_on_site(self, url: str) -> bool:
        return get_registrable_domain(url) in self.site_domains

    def html_for(self, url: str | None) -> str | None:
        return self.html_by_url.get(normalize_url(url)) if url else None


class DomainCrawler:
    def __init__(self, fetcher: PageFetcher, llm: LLMExtractor | None = None):
        self._fetcher = fetcher
        self._llm = llm

    async def crawl(self, start_url: str, options: CrawlOptions | None = None) -> DomainRecord:
        """Crawl one domain and return its deduplicated record.

        Raises InvalidDomainError when no registrable domain can be derived from
        ``start_url`` and HomepageUnreachableError when every homepage variant
        fails. Any other page failure lands in ``record.errors``.
        """
        options = options or CrawlOptions()
        start_url = ensure_scheme(start_url)
        domain = get_registrable_domain(start_url)
        if not domain:
            raise InvalidDomainError(start_url)

        homepage = await self._fetch_homepage(start_url, options)
        session = _CrawlSession(
            record=DomainRecord(domain=domain, finalUrl=homepage.final_url),
            options=options,
            site_domains={domain, get_registrable_domain(homepage.final_url) or domain},
        )
        home_key = normalize_url(homepage.final_url)

        key_pages = detect_key_pages(homepage.html, homepage.final_url)
        session.record.keyPages = dict(key_pages)

        initial = [home_key]
        for url in key_pages.values():
            if normalize_url(url) not in initial:
                initial.append(normalize_url(url))
        session.candidate_seen.update(initial)
        session.add_candidates(score_links(homepage.html, homepage.final_url))
        for link in session.candidates:
            if len(initial) >= STANDARD.max_pages:
                break
            initial.append(link.url)

        for url in initial[: STANDARD.max_pages]:
            if url == home_key:
                session.attempted.add(url)
                self._process_page(session, homepage)
            else:
                await self._visit(session, url)

        reason = should_escalate(
            key_pages=session.record.keyPages,
            visited=session.record.pagesVisited,
            used_browser=session.used_browser,
            options=options,
            emails_count=len(session.record.emails),
            phones_count=len(session.record.phones),
            team_count=len(session.record.team),
            company=session.record.company,
        )
        if reason:
            logger.info("Escalating %s to %s tier: %s", domain, DEEP.name, reason)
            session.tier = DEEP
            await self._crawl_deep(session)

        if options.useOpenAI:
            try:
                await self._enrich_with_llm(session)
            except Exception as e:
                logger.exception("LLM enrichment failed for %s", domain)
                session.record.errors.append(
                    PageError(url=session.record.finalUrl, error=f"LLM enrichment failed: {e}")
                )

        return self._finalize(session)

    async def _fetch_homepage(self, start_url: str, options: CrawlOptions) -> FetchResult:
        last_error: FetchError | None = None
        for variant in url_variants(start_url):
            try:
                return await self._fetcher.fetch_with_retry(
                    variant,
                    options.timeoutSecs,
                    use_browser_fallback=options.usePlaywrightFallback,
                    retries=0,
                )
            except FetchError as e:
                logger.debug("Homepage variant %s failed: %s", variant, e)
                last_error = e
        raise HomepageUnreachableError(start_url, str(last_error) if last_error else None)

    async def _crawl_deep(self, session: _CrawlSession) -> None:
        max_attempts = DEEP.max_pages * _DEEP_ATTEMPT_FACTOR
        attempts = 0
        while len(session.record.pagesVisited) < DEEP.max_pages and attempts < max_attempts:
            url = session.next_candidate()
            if url is None:
                break
            attempts += 1
            await self._visit(session, url)

    async def _visit(self, session: _CrawlSession, url: str) -> None:
        session.attempted.add(url)
        try:
            result = await self._fetcher.fetch_with_retry(
                url,
                session.options.timeoutSecs,
                use_browser_fallback=session.options.usePlaywrightFallback,
            )
        except FetchError as e:
            logger.warning("Failed to fetch %s: %s", url, e)
            session.record.errors.append(PageError(url=url, error=str(e)))
            return
        self._process_page(session, result)

    def _process_page(self, session: _CrawlSession, page: FetchResult) -> None:
        record = session.record
        options = session.options
        url = page.final_url
        key = normalize_url(url)

        if page.via_browser:
            session.used_browser = True
        if not session.is_on_site(url):
            logger.debug("Skipping %s: redirected off site", url)
            return
        if key in session.visited:
            return
        session.visited.add(key)
        session.attempted.add(key)
        record.pagesVisited.append(url)
        session.html_by_url[key] = page.html

        record.keyPages = update_key_pages(record.keyPages, url)
        session.add_candidates(score_links(page.html, url))

        try:
            if options.includeContacts:
                record.emails.extend(extract_emails(page.html, url))
                record.phones.extend(extract_phones(page.html, url))
            if options.includeSocials:
                for platform, links in extract_socials(page.html, url).items():
                    record.socials.setdefault(platform, []).extend(links)
            if options.includeCompany:
                record.company = merge_company(record.company, extract_company(page.html, url))
            is_homepage = key == normalize_url(record.finalUrl)
            if options.includeTeam and (is_homepage or _TEAM_PAGE_TYPES.intersection(classify_page(url))):
                record.team.extend(extract_team(page.html, url))
        except Exception as e:
            logger.exception("Extraction failed on %s", url)
            record.errors.append(PageError(url=url, error=f"Extraction failed: {e}"))

    async def _enrich_with_llm(self, session: _CrawlSession) -> None:
        """Fill missing company identity and team from the LLM. Additive only."""
        if self._llm is None:
            logger.debug("LLM enrichment requested but no extractor is configured")
            return
        record = session.record
        options = session.options

        company = record.company
        if options.includeCompany and (
            company is None or not company.legalName or company.address is None
        ):
            # Legal notice first; a key page that failed to load has no html
            for page_type in (KeyPageType.legal, KeyPageType.contact):
                url = record.keyPages.get(page_type)
                html = session.html_for(url)
                if html:
                    break
            if html:
                data = await self._llm.extract(html, url, page_type.value, options.openAIModel)
                record.company = merge_llm_company(record.company, data)

        if options.includeTeam and not record.team:
            url = record.keyPages.get(KeyPageType.team)
            html = session.html_for(url)
            if html:
                data = await self._llm.extract(html, url, KeyPageType.team.value, options.openAIModel)
                record.team = merge_llm_team(record.team, data, url)

    def _finalize(self, session: _CrawlSession) -> DomainRecord:
        record = session.record
        if session.options.includeContacts:
            record.emails = select_primary_email(deduplicate_emails(record.emails), record.domain)
            record.phones = select_primary_phone(deduplicate_phones(record.phones))
        if session.options.includeSocials:
            record.socials = deduplicate_socials(record.socials)
        if session.options.includeTeam:
            record.team = deduplicate_team(record.team)
        record.tier = session.tier.name
        record.usedBrowser = session.used_browser

        logger.info(
            "Crawled %s (%s tier): %d pages, %d emails, %d phones, %d team members, %d errors",
            record.domain, record.tier, len(record.pagesVisited), len(record.emails),
            len(record.phones), len(record.team), len(record.errors),
        )
        return record
