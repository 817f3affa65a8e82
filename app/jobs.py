from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from app.schemas.job import JobSummary


class JobStatus(StrEnum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


_FINISHED = (JobStatus.completed, JobStatus.failed)


class CrawlJob(BaseModel):
    """One submitted crawl. Progress moves as each domain record is emitted."""

    job_id: str
    status: JobStatus
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    total_domains: int = 0
    domains_done: int = 0
    last_domain: str | None = None
    result: JobSummary | None = None
    error: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in _FINISHED


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    def __init__(self, max_jobs: int = 1000) -> None:
        self._jobs: dict[str, CrawlJob] = {}
        self._max_jobs = max_jobs

    def _evict(self) -> None:
        if len(self._jobs) <= self._max_jobs:
            return
        # Jobs that finished longest ago go first; active crawls are never evicted
        finished = sorted(
            (j for j in self._jobs.values() if j.finished),
            key=lambda j: j.finished_at or j.created_at,
        )
        while len(self._jobs) > self._max_jobs and finished:
            self._jobs.pop(finished.pop(0).job_id, None)

    def create_job(self, total_domains: int) -> CrawlJob:
        job = CrawlJob(
            job_id=uuid.uuid4().hex[:12],
            status=JobStatus.pending,
            created_at=_now(),
            total_domains=total_domains,
        )
        self._jobs[job.job_id] = job
        self._evict()
        return job

    def get_job(self, job_id: str) -> CrawlJob | None:
        return self._jobs.get(job_id)

    def mark_running(self, job_id: str) -> None:
        if job := self._jobs.get(job_id):
            job.status = JobStatus.running
            job.started_at = _now()

    def record_emitted(self, job_id: str, record: dict[str, Any]) -> None:
        """Count one finished domain; used as the runner's emit callback."""
        if job := self._jobs.get(job_id):
            job.domains_done += 1
            job.last_domain = record.get("domain")

    def mark_completed(self, job_id: str, result: JobSummary) -> None:
        if job := self._jobs.get(job_id):
            job.status = JobStatus.completed
            job.result = result
            job.domains_done = result.total_domains
            job.finished_at = _now()

    def mark_failed(self, job_id: str, error: str) -> None:
        if job := self._jobs.get(job_id):
            job.status = JobStatus.failed
            job.error = error
            job.finished_at = _now()
