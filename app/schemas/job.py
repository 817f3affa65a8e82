from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from app.schemas.domain import CrawlOptions


class StartUrl(BaseModel):
    url: str


class JobInput(CrawlOptions):
    # A list of URLs / {"url": ...} objects, or one newline-delimited string
    startUrls: list[str | StartUrl] | str = []

    def crawl_options(self) -> CrawlOptions:
        return CrawlOptions(**self.model_dump(exclude={"startUrls"}))


class JobSummary(BaseModel):
    total_domains: int
    succeeded: int
    failed: int
    records: list[dict[str, Any]] = []


class JobSubmittedResponse(BaseModel):
    job_id: str
    status: str
    message: str


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    total_domains: int = 0
    domains_done: int = 0
    last_domain: str | None = None
    result: JobSummary | None = None
    error: str | None = None
