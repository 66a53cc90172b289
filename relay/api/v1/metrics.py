from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response

router = APIRouter()

# Metrics Definitions
STREAMS_OPENED = Counter('relay_streams_opened_total', 'Status streams opened by clients')
STREAMS_ACTIVE = Gauge('relay_streams_active', 'Status streams currently open')

EVENTS_PUBLISHED = Counter(
    "relay_events_published_total",
    "Status events written to client streams",
    ["status"]
)

JOBS_TRIGGERED = Counter(
    "relay_jobs_triggered_total",
    "Trigger attempts against the job system",
    ["task", "outcome"] # triggered vs failed
)

@router.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
