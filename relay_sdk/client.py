import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional

import httpx

from relay.domain.errors import InvalidHandle, TransportError, TriggerFailed
from relay_sdk.consumer import ConsumerState, StatusConsumer

logger = logging.getLogger(__name__)

class RelayClient:
    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        # Reads on a status stream may legitimately wait forever.
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, read=None),
            transport=transport,
        )

    async def trigger(self) -> Dict[str, Any]:
        """
        Triggers the hello-world task.
        """
        try:
            resp = await self.client.get("/api/hello-world")
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {str(e)}") from e
        return self._trigger_result(resp)

    async def send_webhook(self, payload: Any) -> Dict[str, Any]:
        try:
            resp = await self.client.post("/api/webhook", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {str(e)}") from e
        return self._trigger_result(resp)

    @asynccontextmanager
    async def stream(self, task_id: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Opens the status stream for ``task_id`` and yields its raw byte chunks.

        The connection is released when the block exits, whether or not the
        stream was read to the end.
        """
        if not task_id:
            raise InvalidHandle(task_id)

        try:
            async with self.client.stream("POST", "/api/hello-world", json={"taskId": task_id}) as resp:
                if resp.status_code == 400:
                    await resp.aread()
                    raise InvalidHandle(task_id)
                if resp.status_code != 200:
                    raise TransportError(
                        f"Failed to start listening to task updates (HTTP {resp.status_code})"
                    )
                yield resp.aiter_bytes()
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {str(e)}") from e

    async def watch(self, task_id: str, consumer: Optional[StatusConsumer] = None) -> ConsumerState:
        consumer = consumer or StatusConsumer(state=ConsumerState(task_id=task_id))
        try:
            async with self.stream(task_id) as chunks:
                return await consumer.consume(chunks)
        except TransportError as e:
            logger.error("Failed to listen to %s: %s", task_id, e)
            consumer.fail(e)
            return consumer.state

    async def run(self, on_update: Optional[Callable[[ConsumerState], None]] = None) -> ConsumerState:
        """
        Triggers a task and follows it to a terminal state.
        """
        consumer = StatusConsumer(on_update=on_update)
        try:
            data = await self.trigger()
        except (TransportError, TriggerFailed) as e:
            consumer.fail(e)
            return consumer.state

        consumer.triggered(data["taskId"], data.get("message"))
        return await self.watch(data["taskId"], consumer)

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    @staticmethod
    def _trigger_result(resp: httpx.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if resp.status_code >= 400 or "taskId" not in data:
            details = data.get("details") or data.get("error") or f"HTTP {resp.status_code}"
            raise TriggerFailed("hello-world", details)
        return data
