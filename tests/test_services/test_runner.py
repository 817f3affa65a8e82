"""Tests for JobRunner and start URL handling."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.config import Settings
from app.exceptions.custom import HomepageUnreachableError, NoStartUrlsError
from app.schemas.domain import DomainRecord
from app.schemas.job import JobInput, StartUrl
from app.services.runner import JobRunner, build_job_runner, group_by_domain, parse_start_urls


def _crawler(side_effect) -> MagicMock:
    crawler = MagicMock()
    crawler.crawl = AsyncMock(side_effect=side_effect)
    return crawler


async def _record_for(url, options):
    from app.mappers.url_utils import get_registrable_domain

    return DomainRecord(domain=get_registrable_domain(url), finalUrl=url, pagesVisited=[url])


# --- parse_start_urls ---


def test_parse_mixed_list():
    urls = parse_start_urls(["hotel-a.fr", StartUrl(url="https://hotel-b.com"), {"url": " hotel-c.de "}, "  "])
    assert urls == ["hotel-a.fr", "https://hotel-b.com", "hotel-c.de"]


def test_parse_newline_delimited_string():
    assert parse_start_urls("hotel-a.fr\n\nhotel-b.com\n") == ["hotel-a.fr", "hotel-b.com"]


def test_parse_empty_raises():
    with pytest.raises(NoStartUrlsError):
        parse_start_urls([])
    with pytest.raises(NoStartUrlsError):
        parse_start_urls("  \n ")


# --- group_by_domain ---


def test_group_keeps_one_url_per_domain():
    grouped = group_by_domain([
        "https://www.hotel-a.fr/fr/accueil",
        "hotel-a.fr",
        "https://hotel-b.com/",
    ])
    assert grouped == {
        "hotel-a.fr": "https://hotel-a.fr/",
        "hotel-b.com": "https://hotel-b.com/",
    }


def test_group_prefers_shorter_url_without_www():
    grouped = group_by_domain(["https://hotel-a.fr/rooms/suite", "https://hotel-a.fr/rooms"])
    assert grouped == {"hotel-a.fr": "https://hotel-a.fr/rooms"}


def test_group_skips_invalid_urls():
    assert group_by_domain(["http://localhost", "hotel-a.fr"]) == {"hotel-a.fr": "https://hotel-a.fr/"}


# --- JobRunner ---


async def test_run_emits_one_record_per_domain():
    crawler = _crawler(_record_for)
    emitted = []
    job = JobInput(startUrls=["hotel-a.fr", "https://www.hotel-a.fr/contact", "hotel-b.com"])

    summary = await JobRunner(crawler).run(job, emitted.append)

    assert [r["domain"] for r in emitted] == ["hotel-a.fr", "hotel-b.com"]
    assert summary.total_domains == 2
    assert summary.succeeded == 2
    assert summary.failed == 0
    assert summary.records == emitted
    assert crawler.crawl.await_count == 2


async def test_run_passes_options_to_crawler():
    crawler = _crawler(_record_for)
    job = JobInput(startUrls=["hotel-a.fr"], includeTeam=False, timeoutSecs=5)

    summary = await JobRunner(crawler).run(job, lambda record: None)

    options = crawler.crawl.await_args.args[1]
    assert options.includeTeam is False
    assert options.timeoutSecs == 5
    assert "team" not in summary.records[0]


async def test_failed_domain_yields_error_record():
    async def crawl(url, options):
        if "hotel-b" in url:
            raise HomepageUnreachableError(url, "HTTP 503")
        return await _record_for(url, options)

    emitted = []
    summary = await JobRunner(_crawler(crawl)).run(
        JobInput(startUrls=["hotel-a.fr", "hotel-b.com"]), emitted.append
    )

    assert summary.succeeded == 1
    assert summary.failed == 1
    failed = emitted[1]
    assert failed["domain"] == "hotel-b.com"
    assert failed["finalUrl"] == "https://hotel-b.com/"
    assert failed["errors"][0]["error"] == "All URL variants failed. Last error: HTTP 503"


async def test_unexpected_error_does_not_stop_job():
    async def crawl(url, options):
        if "hotel-a" in url:
            raise RuntimeError("boom")
        return await _record_for(url, options)

    emitted = []
    summary = await JobRunner(_crawler(crawl)).run(
        JobInput(startUrls=["hotel-a.fr", "hotel-b.com"]), emitted.append
    )

    assert [r["domain"] for r in emitted] == ["hotel-a.fr", "hotel-b.com"]
    assert emitted[0]["errors"][0]["error"] == "boom"
    assert summary.failed == 1


async def test_empty_job_raises():
    with pytest.raises(NoStartUrlsError):
        await JobRunner(_crawler(_record_for)).run(JobInput(startUrls=[]), lambda record: None)


async def test_build_job_runner():
    async with httpx.AsyncClient() as client:
        runner = build_job_runner(client, Settings(openai_api_key=""))
    assert isinstance(runner, JobRunner)
