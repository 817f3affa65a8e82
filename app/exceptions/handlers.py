import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from .custom import InvalidDomainError, NoStartUrlsError

logger = logging.getLogger(__name__)


async def no_start_urls_error_handler(_request: Request, exc: NoStartUrlsError) -> JSONResponse:
    logger.warning("Rejected job: %s", exc.message)
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message},
    )


async def invalid_domain_error_handler(_request: Request, exc: InvalidDomainError) -> JSONResponse:
    logger.warning("Invalid domain: %s", exc.url)
    return JSONResponse(
        status_code=400,
        content={"detail": exc.message},
    )
