import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from relay.settings import settings
from relay.api.v1.hello_world import router as hello_world_router
from relay.api.v1.webhook import router as webhook_router
from relay.api.v1.metrics import router as metrics_router
from relay.domain.errors import InvalidHandle, TriggerFailed

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    from relay.services.jobs import LocalJobSystem
    from relay.tasks.hello_world import hello_world

    logger = logging.getLogger("uvicorn")

    jobs = LocalJobSystem(retention_seconds=settings.RUN_RETENTION_SECONDS)
    jobs.register(settings.TASK_NAME, hello_world)
    app.state.jobs = jobs
    logger.info(f"Job system ready (tasks: {settings.TASK_NAME})")

    yield

    # Shutdown
    await jobs.close()

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

app.include_router(hello_world_router, prefix="/api/hello-world", tags=["hello-world"])
app.include_router(webhook_router, prefix="/api/webhook", tags=["webhook"])
app.include_router(metrics_router, tags=["metrics"])

@app.exception_handler(InvalidHandle)
async def invalid_handle_handler(request: Request, exc: InvalidHandle):
    return JSONResponse(status_code=400, content={"error": str(exc)})

@app.exception_handler(TriggerFailed)
async def trigger_failed_handler(request: Request, exc: TriggerFailed):
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to trigger task", "details": exc.reason},
    )

@app.get("/health")
async def health():
    return {"status": "ok"}
