import codecs
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from typing import AsyncIterable, Callable, Optional

import httpx

from relay.domain.errors import (
    IncompleteStream,
    MalformedEvent,
    RelayError,
    TransportError,
    UpstreamSubscriptionError,
)
from relay.domain.states import RunStatus
from relay.wire.events import StatusEvent
from relay.wire.sse import FrameDecoder, decode_event

logger = logging.getLogger(__name__)

class ConsumerStatus(StrEnum):
    INITIAL = "INITIAL"
    TRIGGERED = "TRIGGERED"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ERRORED = "ERRORED"    # Relay, transport or stream problem; never a job outcome
    UNKNOWN = "UNKNOWN"

TERMINAL = frozenset({ConsumerStatus.COMPLETED, ConsumerStatus.FAILED, ConsumerStatus.ERRORED})

_STATUS_FOR_EVENT = {
    RunStatus.TRIGGERED: ConsumerStatus.TRIGGERED,
    RunStatus.EXECUTING: ConsumerStatus.EXECUTING,
    RunStatus.COMPLETED: ConsumerStatus.COMPLETED,
    RunStatus.FAILED: ConsumerStatus.FAILED,
    RunStatus.ERROR: ConsumerStatus.ERRORED,
}

@dataclass(frozen=True)
class ConsumerState:
    status: ConsumerStatus = ConsumerStatus.INITIAL
    task_id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    # Why the state is ERRORED: relay-side failure, incomplete stream or transport error.
    condition: Optional[RelayError] = None
    malformed_events: int = 0
    updated_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL

def mark_triggered(state: ConsumerState, task_id: str, message: Optional[str] = None) -> ConsumerState:
    if state.is_terminal:
        return state
    return replace(state, status=ConsumerStatus.TRIGGERED, task_id=task_id, message=message, error=None)

def apply_event(state: ConsumerState, event: StatusEvent) -> ConsumerState:
    """Returns the state after ``event``; terminal states absorb everything."""
    if state.is_terminal:
        return state

    status = _STATUS_FOR_EVENT.get(event.status, ConsumerStatus.UNKNOWN)
    condition = state.condition
    if status is ConsumerStatus.ERRORED:
        condition = UpstreamSubscriptionError(event.error or "Unknown error")

    return replace(
        state,
        status=status,
        message=event.message if event.message else state.message,
        error=event.error if event.error else state.error,
        condition=condition,
        updated_at=event.timestamp,
    )

def mark_errored(state: ConsumerState, condition: RelayError) -> ConsumerState:
    if state.is_terminal:
        return state
    return replace(state, status=ConsumerStatus.ERRORED, error=str(condition), condition=condition)

def skip_malformed(state: ConsumerState) -> ConsumerState:
    return replace(state, malformed_events=state.malformed_events + 1)

class StatusConsumer:
    """
    Drives a ConsumerState from a relay byte stream.

    Reading stops, and the stream is closed, as soon as a terminal event has been
    applied. ``on_update`` is called once with every new state.
    """

    def __init__(
        self,
        state: Optional[ConsumerState] = None,
        on_update: Optional[Callable[[ConsumerState], None]] = None,
    ):
        self.state = state or ConsumerState()
        self.on_update = on_update

    def _set(self, state: ConsumerState):
        if state is self.state:
            return
        self.state = state
        if self.on_update:
            self.on_update(state)

    def triggered(self, task_id: str, message: Optional[str] = None):
        self._set(mark_triggered(self.state, task_id, message))

    def fail(self, condition: RelayError):
        self._set(mark_errored(self.state, condition))

    async def consume(self, chunks: AsyncIterable[bytes]) -> ConsumerState:
        if self.state.is_terminal:
            return self.state

        decoder = FrameDecoder()
        text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        iterator = aiter(chunks)
        try:
            async for chunk in iterator:
                self._apply_payloads(decoder.feed(text.decode(chunk)))
                if self.state.is_terminal:
                    return self.state

            self._apply_payloads(decoder.feed(text.decode(b"", final=True)) + decoder.close())
            if not self.state.is_terminal:
                logger.warning("Stream for %s ended without a terminal status", self.state.task_id)
                self.fail(IncompleteStream(self.state.status))
        except (httpx.HTTPError, OSError) as e:
            logger.error("Transport error while reading %s: %s", self.state.task_id, e)
            self.fail(TransportError(f"{type(e).__name__}: {str(e)}"))
        except TransportError as e:
            logger.error("Transport error while reading %s: %s", self.state.task_id, e)
            self.fail(e)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        return self.state

    def _apply_payloads(self, payloads):
        for payload in payloads:
            if self.state.is_terminal:
                return
            try:
                event = decode_event(payload)
            except MalformedEvent as e:
                logger.warning("Skipping event: %s", e)
                self._set(skip_malformed(self.state))
                continue
            self._set(apply_event(self.state, event))
