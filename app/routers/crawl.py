import asyncio
import logging

from fastapi import APIRouter, HTTPException

from app.dependencies import JobRunnerDep, JobStoreDep
from app.exceptions.custom import InvalidDomainError
from app.jobs import JobStore
from app.schemas.job import JobInput, JobStatusResponse, JobSubmittedResponse, JobSummary
from app.services.runner import JobRunner, group_by_domain, parse_start_urls

logger = logging.getLogger(__name__)

router = APIRouter()


def _validate_start_urls(job_input: JobInput) -> int:
    """Number of distinct domains in the job. Rejects jobs with nothing crawlable."""
    urls = parse_start_urls(job_input.startUrls)
    domains = group_by_domain(urls)
    if not domains:
        raise InvalidDomainError(urls[0])
    return len(domains)


async def _run_crawl(job_id: str, runner: JobRunner, store: JobStore, job_input: JobInput) -> None:
    store.mark_running(job_id)
    try:
        result = await runner.run(job_input, emit=lambda record: store.record_emitted(job_id, record))
        store.mark_completed(job_id, result)
    except Exception as exc:
        logger.exception("Crawl job %s failed", job_id)
        store.mark_failed(job_id, str(exc))


@router.post("/crawl", response_model=JobSubmittedResponse, status_code=202)
async def submit_crawl(
    job_input: JobInput,
    runner: JobRunnerDep,
    store: JobStoreDep,
) -> JobSubmittedResponse:
    total = _validate_start_urls(job_input)
    job = store.create_job(total_domains=total)
    asyncio.create_task(_run_crawl(job.job_id, runner, store, job_input))
    return JobSubmittedResponse(
        job_id=job.job_id,
        status=job.status,
        message=f"Crawl job submitted for {total} domain(s)",
    )


@router.post("/crawl/sync", response_model=JobSummary)
async def crawl_sync(job_input: JobInput, runner: JobRunnerDep) -> JobSummary:
    _validate_start_urls(job_input)
    return await runner.run(job_input, emit=lambda record: None)


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, store: JobStoreDep) -> JobStatusResponse:
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(**job.model_dump())
