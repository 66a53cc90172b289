"""Pytest configuration: project root on sys.path plus scripted upstream and stream fakes."""

import asyncio
import os
import sys

import pytest

# Project root = parent directory of this tests/ folder
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from relay.domain.models import JobHandle, UpstreamRecord  # noqa: E402
from relay.wire.events import StatusEvent  # noqa: E402
from relay.wire.sse import encode_frame  # noqa: E402


class ScriptedJobs:
    """Job system whose single run replays a fixed list of upstream records."""

    def __init__(self, records=(), error=None, hang=False):
        self.records = list(records)
        self.error = error
        self.hang = hang
        self.subscriptions = 0
        self.pulled = 0
        self.closed = False

    async def trigger(self, task_name, payload):
        return JobHandle("run_scripted")

    async def subscribe(self, handle):
        self.subscriptions += 1
        try:
            for record in self.records:
                self.pulled += 1
                yield record
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True


class ChunkStream:
    """Byte stream fake that records how far it was read and whether it was closed."""

    def __init__(self, *chunks, error=None, hang=False):
        self.chunks = list(chunks)
        self.error = error
        self.hang = hang
        self.reads = 0
        self.closed = False

    def __aiter__(self):
        return self._read()

    async def _read(self):
        try:
            for chunk in self.chunks:
                self.reads += 1
                yield chunk
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True


def record(status, output=None, error=None):
    return UpstreamRecord(status=status, output=output, error=error)


def frame(status, **fields):
    return encode_frame(StatusEvent(status=status, **fields))


@pytest.fixture
def scripted_jobs():
    return ScriptedJobs


@pytest.fixture
def chunk_stream():
    return ChunkStream


@pytest.fixture
def make_record():
    return record


@pytest.fixture
def make_frame():
    return frame
