from typing import Annotated

from fastapi import Depends, Request

from app.jobs import JobStore
from app.services.runner import JobRunner


def get_job_runner(request: Request) -> JobRunner:
    return request.app.state.job_runner


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


JobRunnerDep = Annotated[JobRunner, Depends(get_job_runner)]
JobStoreDep = Annotated[JobStore, Depends(get_job_store)]
