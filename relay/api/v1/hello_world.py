from typing import Any, Optional

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from relay.api.deps import Jobs, Publisher
from relay.domain.models import JobHandle
from relay.services.jobs import trigger_task
from relay.settings import settings
from relay.wire.sse import MEDIA_TYPE, STREAM_HEADERS

router = APIRouter()

TRIGGER_MESSAGE = "Task triggered successfully. The task will complete in about 5 seconds."

class TriggerResponse(BaseModel):
    taskId: str
    message: str
    status: str = "triggered"

class StreamRequest(BaseModel):
    taskId: Any = None

@router.get("", response_model=TriggerResponse)
async def trigger_hello_world(jobs: Jobs):
    handle = await trigger_task(jobs, settings.TASK_NAME, settings.DEFAULT_PAYLOAD)
    return TriggerResponse(taskId=handle.id, message=TRIGGER_MESSAGE)

@router.post("")
async def stream_status(publisher: Publisher, body: Optional[StreamRequest] = None):
    # InvalidHandle is turned into a 400 by the app-level handler
    handle = JobHandle.parse(body.taskId if body else None)
    return StreamingResponse(
        publisher.stream(handle),
        media_type=MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )
