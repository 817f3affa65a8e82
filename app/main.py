import logging
import sys
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.config import Settings
from app.exceptions.custom import InvalidDomainError, NoStartUrlsError
from app.exceptions.handlers import invalid_domain_error_handler, no_start_urls_error_handler
from app.jobs import JobStore
from app.routers.crawl import router as crawl_router
from app.services.runner import build_job_runner


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        app.state.job_runner = build_job_runner(client, settings)
        app.state.job_store = JobStore()
        yield


app = FastAPI(title="Hotel Contact Crawler", lifespan=lifespan)

app.add_exception_handler(NoStartUrlsError, no_start_urls_error_handler)
app.add_exception_handler(InvalidDomainError, invalid_domain_error_handler)

app.include_router(crawl_router)
