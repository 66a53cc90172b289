import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Coroutine, Dict, List, Optional, Protocol
from uuid import uuid4

from relay.api.v1.metrics import JOBS_TRIGGERED
from relay.domain.errors import TriggerFailed, UpstreamSubscriptionError
from relay.domain.models import JobHandle, UpstreamRecord
from relay.domain.states import RunStatus

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Coroutine[Any, Any, Any]]

class JobSystem(Protocol):
    async def trigger(self, task_name: str, payload: Any) -> JobHandle:
        ...

    def subscribe(self, handle: JobHandle) -> AsyncIterator[UpstreamRecord]:
        ...

@dataclass
class RunDomain:
    handle: JobHandle
    task_name: str
    payload: Any
    record: UpstreamRecord
    listeners: List[asyncio.Queue] = field(default_factory=list)
    task: Optional[asyncio.Task] = None

class LocalJobSystem:
    """
    Runs registered task handlers as asyncio tasks inside the relay process.

    Every subscriber gets its own queue of status records: the current snapshot
    first, then each later change, ending with the terminal record.
    """

    def __init__(self, retention_seconds: float = 300.0):
        self.retention_seconds = retention_seconds
        self._handlers: Dict[str, Handler] = {}
        self._runs: Dict[str, RunDomain] = {}

    def register(self, task_name: str, handler: Handler):
        self._handlers[task_name] = handler

    def task(self, task_name: str):
        def decorator(handler: Handler) -> Handler:
            self.register(task_name, handler)
            return handler
        return decorator

    async def trigger(self, task_name: str, payload: Any) -> JobHandle:
        handler = self._handlers.get(task_name)
        if handler is None:
            raise TriggerFailed(task_name, "no task registered under that name")

        handle = JobHandle(f"run_{uuid4().hex}")
        run = RunDomain(
            handle=handle,
            task_name=task_name,
            payload=payload,
            record=UpstreamRecord(status=RunStatus.TRIGGERED),
        )
        self._runs[handle.id] = run
        run.task = asyncio.create_task(self._execute(run, handler))

        logger.info("Triggered %s as %s", task_name, handle)
        return handle

    async def subscribe(self, handle: JobHandle) -> AsyncIterator[UpstreamRecord]:
        run = self._runs.get(JobHandle.parse(handle).id)
        if run is None:
            raise UpstreamSubscriptionError(f"Run {handle} not found")

        queue: asyncio.Queue = asyncio.Queue()
        run.listeners.append(queue)
        try:
            record = run.record
            while True:
                yield record
                if RunStatus.parse(record.status).is_terminal:
                    return
                record = await queue.get()
        finally:
            run.listeners.remove(queue)

    async def close(self):
        pending = [run.task for run in self._runs.values() if run.task and not run.task.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("LocalJobSystem stopped (%d runs canceled).", len(pending))

    async def _execute(self, run: RunDomain, handler: Handler):
        self._publish(run, UpstreamRecord(status=RunStatus.EXECUTING))
        try:
            output = await handler(run.payload)
        except asyncio.CancelledError:
            self._publish(run, UpstreamRecord(status=RunStatus.FAILED, error="Run canceled"))
            raise
        except Exception as e:
            error_msg = f"{type(e).__name__}: {str(e)}"
            logger.error(f"Run {run.handle} failed: {error_msg}")
            self._publish(run, UpstreamRecord(status=RunStatus.FAILED, error=error_msg))
        else:
            logger.info(f"Run {run.handle} completed")
            self._publish(run, UpstreamRecord(status=RunStatus.COMPLETED, output=output))
        finally:
            asyncio.get_running_loop().call_later(
                self.retention_seconds, self._runs.pop, run.handle.id, None
            )

    def _publish(self, run: RunDomain, record: UpstreamRecord):
        run.record = record
        for queue in run.listeners:
            queue.put_nowait(record)

async def trigger_task(jobs: JobSystem, task_name: str, payload: Any) -> JobHandle:
    try:
        handle = await jobs.trigger(task_name, payload)
    except TriggerFailed as e:
        JOBS_TRIGGERED.labels(task=task_name, outcome="failed").inc()
        logger.warning("Trigger rejected: %s", e)
        raise
    except Exception as e:
        JOBS_TRIGGERED.labels(task=task_name, outcome="failed").inc()
        logger.error("Trigger of %s failed: %s", task_name, e, exc_info=True)
        raise TriggerFailed(task_name, f"{type(e).__name__}: {str(e)}") from e

    JOBS_TRIGGERED.labels(task=task_name, outcome="triggered").inc()
    return handle
