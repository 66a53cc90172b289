"""
Server-sent-events framing for status events.

A frame is a single ``data: <json>`` line followed by an empty line. Decoding is
incremental: text can be fed in arbitrary pieces and complete payloads come out
as soon as their terminating blank line has arrived.
"""
import logging
from typing import List, Optional

from pydantic import ValidationError

from relay.domain.errors import MalformedEvent
from relay.wire.events import StatusEvent

logger = logging.getLogger(__name__)

MEDIA_TYPE = "text/event-stream"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

DATA_PREFIX = "data:"
FRAME_TERMINATOR = "\n\n"


def encode_frame(event: StatusEvent) -> bytes:
    return f"{DATA_PREFIX} {event.model_dump_json()}{FRAME_TERMINATOR}".encode("utf-8")


def decode_event(payload: str) -> StatusEvent:
    try:
        return StatusEvent.model_validate_json(payload)
    except ValidationError as e:
        raise MalformedEvent(payload, e.errors(include_url=False)[0]["msg"]) from e


class FrameDecoder:
    def __init__(self):
        self._buffer = ""
        self._data: List[str] = []

    def feed(self, text: str) -> List[str]:
        """
        Buffers ``text`` and returns the payloads of every frame it completed.

        Blank lines end a frame; comment lines and unknown fields are skipped.
        """
        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")

        payloads = []
        for line in lines:
            payload = self._process_line(line.rstrip("\r"))
            if payload is not None:
                payloads.append(payload)
        return payloads

    def close(self) -> List[str]:
        """Flushes a trailing frame the producer did not terminate."""
        payloads = self.feed("\n") if self._buffer else []
        if self._data:
            payloads.append(self._dispatch())
        return payloads

    def _process_line(self, line: str) -> Optional[str]:
        if not line:
            return self._dispatch() if self._data else None

        if line.startswith(DATA_PREFIX):
            value = line[len(DATA_PREFIX):]
            if value.startswith(" "):
                value = value[1:]
            self._data.append(value)
        elif not line.startswith(":"):
            logger.debug("Ignoring unrecognized stream line: %r", line[:80])
        return None

    def _dispatch(self) -> str:
        payload = "\n".join(self._data)
        self._data = []
        return payload
