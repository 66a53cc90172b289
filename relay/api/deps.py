from typing import Annotated

from fastapi import Depends, Request

from relay.services.jobs import JobSystem
from relay.services.publisher import StatusPublisher
from relay.settings import settings

def get_job_system(request: Request) -> JobSystem:
    return request.app.state.jobs

# Dependency for the upstream job system
Jobs = Annotated[JobSystem, Depends(get_job_system)]

def get_publisher(jobs: Jobs) -> StatusPublisher:
    return StatusPublisher(jobs, idle_timeout=settings.STREAM_IDLE_TIMEOUT_SECONDS)

Publisher = Annotated[StatusPublisher, Depends(get_publisher)]
