import logging
from collections.abc import Callable
from typing import Any

import httpx

from app.config import Settings
from app.exceptions.custom import CrawlerError, NoStartUrlsError
from app.mappers.url_utils import ensure_scheme, get_registrable_domain, normalize_url
from app.schemas.domain import CrawlOptions, error_record
from app.schemas.job import JobInput, JobSummary, StartUrl
from app.services.crawler import DomainCrawler
from app.services.fetcher import BrowserRenderer, PageFetcher
from app.services.llm_extractor import build_llm_extractor

logger = logging.getLogger(__name__)

Emit = Callable[[dict[str, Any]], None]


def parse_start_urls(start_urls: list[str | StartUrl | dict] | str | None) -> list[str]:
    """Flatten job input URLs: a list of strings / ``{"url": ...}`` objects, or a newline-delimited string."""
    if isinstance(start_urls, str):
        items: list = start_urls.splitlines()
    else:
        items = list(start_urls or [])

    urls: list[str] = []
    for item in items:
        if isinstance(item, StartUrl):
            value = item.url
        elif isinstance(item, dict):
            value = item.get("url")
        else:
            value = item
        if isinstance(value, str) and value.strip():
            urls.append(value.strip())

    if not urls:
        raise NoStartUrlsError()
    return urls


def _preference(url: str) -> tuple[bool, int]:
    host = url.split("://", 1)[-1]
    return host.startswith("www."), len(url)


def group_by_domain(urls: list[str]) -> dict[str, str]:
    """One start URL per registrable domain, preferring non-www then the shorter URL.

    Invalid URLs are logged and dropped. Keys keep first-seen order.
    """
    grouped: dict[str, str] = {}
    for raw in urls:
        url = normalize_url(ensure_scheme(raw))
        domain = get_registrable_domain(url)
        if not domain:
            logger.warning("Skipping invalid URL: %s", raw)
            continue
        current = grouped.get(domain)
        if current is None or _preference(url) < _preference(current):
            grouped[domain] = url
    return grouped


class JobRunner:
    def __init__(self, crawler: DomainCrawler):
        self._crawler = crawler

    async def run(self, job_input: JobInput, emit: Emit) -> JobSummary:
        """Crawl every input domain and emit exactly one record per domain.

        Domains are crawled one after another. A domain that cannot be crawled
        at all still yields a minimal error record.
        """
        options: CrawlOptions = job_input.crawl_options()
        domains = group_by_domain(parse_start_urls(job_input.startUrls))
        logger.info("Crawling %d domain(s)", len(domains))

        succeeded = 0
        failed = 0
        records: list[dict[str, Any]] = []
        for domain, url in domains.items():
            try:
                record = await self._crawler.crawl(url, options)
                output = record.to_output(options)
                succeeded += 1
            except CrawlerError as e:
                logger.warning("Domain %s failed: %s", domain, e.message)
                output = error_record(domain, url, e.message)
                failed += 1
            except Exception as e:
                logger.exception("Unexpected error crawling %s", domain)
                output = error_record(domain, url, str(e) or type(e).__name__)
                failed += 1
            emit(output)
            records.append(output)

        logger.info("Job finished: %d succeeded, %d failed", succeeded, failed)
        return JobSummary(
            total_domains=len(domains),
            succeeded=succeeded,
            failed=failed,
            records=records,
        )


def build_job_runner(client: httpx.AsyncClient, settings: Settings) -> JobRunner:
    """Wire fetcher, headless renderer and the optional LLM into a runner."""
    fetcher = PageFetcher(
        client,
        user_agent=settings.user_agent,
        max_body_bytes=settings.max_body_bytes,
        renderer=BrowserRenderer(settings.user_agent),
    )
    return JobRunner(DomainCrawler(fetcher, llm=build_llm_extractor(settings)))
