import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from relay.api.deps import Jobs
from relay.domain.errors import TriggerFailed
from relay.services.jobs import trigger_task
from relay.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("")
async def receive_webhook(request: Request, jobs: Jobs):
    try:
        payload = await request.json()
        if _is_empty(payload):
            return JSONResponse(status_code=400, content={"error": "No payload provided"})

        handle = await trigger_task(jobs, settings.TASK_NAME, payload)
    except (ValueError, TriggerFailed) as e:
        logger.error("Webhook error: %s", e)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process webhook", "details": str(e)},
        )

    return {
        "success": True,
        "taskId": handle.id,
        "message": "Webhook received and task triggered successfully",
        "receivedPayload": payload,
    }

@router.get("")
async def webhook_info():
    return {
        "message": "Webhook endpoint ready",
        "method": "POST",
        "description": f"Send a POST request with a JSON payload to trigger the {settings.TASK_NAME} task",
        "example": {"payload": "Your webhook data here"},
    }

def _is_empty(payload) -> bool:
    # null, "", false and 0 carry nothing to run the task with
    if payload is None or payload is False:
        return True
    if isinstance(payload, bool):
        return False
    return payload == "" or (isinstance(payload, (int, float)) and payload == 0)
