import asyncio
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Mapping, Optional

from relay.api.v1.metrics import EVENTS_PUBLISHED, STREAMS_ACTIVE, STREAMS_OPENED
from relay.domain.errors import UpstreamSubscriptionError
from relay.domain.models import JobHandle, UpstreamRecord
from relay.domain.states import LIFECYCLE_RANK
from relay.services.jobs import JobSystem
from relay.wire.events import StatusEvent
from relay.wire.sse import encode_frame

logger = logging.getLogger(__name__)

_END = object()

class StatusPublisher:
    """
    Relays one upstream run subscription to one client as framed status events.

    The stream ends right after the first terminal event. Anything that goes wrong
    while following the run is reported to the client as a single synthetic ERROR
    event instead of a silent disconnect.
    """

    def __init__(self, jobs: JobSystem, idle_timeout: Optional[float] = None):
        self.jobs = jobs
        self.idle_timeout = idle_timeout

    async def stream(self, handle: Any) -> AsyncIterator[bytes]:
        handle = JobHandle.parse(handle)

        STREAMS_OPENED.inc()
        STREAMS_ACTIVE.inc()
        logger.info("Status stream opened for %s", handle)
        last_status = None
        try:
            async with aclosing(self.events(handle)) as events:
                async for event in events:
                    last_status = event.status
                    EVENTS_PUBLISHED.labels(status=event.status).inc()
                    yield encode_frame(event)
        finally:
            STREAMS_ACTIVE.dec()
            logger.info("Status stream closed for %s (last status: %s)", handle, last_status)

    async def events(self, handle: JobHandle) -> AsyncIterator[StatusEvent]:
        try:
            subscription = aiter(self.jobs.subscribe(handle))
        except Exception as e:
            yield self._failure(handle, e)
            return

        highest = -1
        try:
            while True:
                try:
                    record = await self._next_record(subscription)
                    if record is _END:
                        raise UpstreamSubscriptionError(
                            f"Status feed for {handle} ended without a terminal status"
                        )
                    event = StatusEvent.from_record(_coerce_record(record))
                except Exception as e:
                    yield self._failure(handle, e)
                    return

                rank = LIFECYCLE_RANK.get(event.status)
                if rank is not None:
                    if rank < highest:
                        logger.debug("Dropping regressed status %s for %s", event.status, handle)
                        continue
                    highest = rank

                yield event
                if event.is_terminal:
                    return
        finally:
            aclose = getattr(subscription, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _next_record(self, subscription: AsyncIterator[Any]) -> Any:
        if self.idle_timeout is None:
            return await anext(subscription, _END)
        try:
            return await asyncio.wait_for(_pull(subscription), timeout=self.idle_timeout)
        except asyncio.TimeoutError:
            raise UpstreamSubscriptionError(
                f"No status update received within {self.idle_timeout:g} seconds"
            )

    def _failure(self, handle: JobHandle, error: Exception) -> StatusEvent:
        if isinstance(error, UpstreamSubscriptionError):
            message = str(error)
        else:
            message = f"{type(error).__name__}: {str(error)}"
        logger.warning("Status stream for %s failed: %s", handle, message)
        return StatusEvent.synthetic_error(message)

async def _pull(subscription: AsyncIterator[Any]) -> Any:
    return await anext(subscription, _END)

def _coerce_record(record: Any) -> UpstreamRecord:
    if isinstance(record, UpstreamRecord):
        return record
    if isinstance(record, Mapping) and record.get("status") is not None:
        return UpstreamRecord(
            status=record["status"],
            output=record.get("output"),
            error=record.get("error"),
        )
    raise UpstreamSubscriptionError(f"Malformed upstream record: {record!r}"[:200])
