import asyncio
from typing import Any

from relay.settings import settings


async def hello_world(payload: Any, delay: float = None) -> dict:
    await asyncio.sleep(settings.HELLO_WORLD_DELAY_SECONDS if delay is None else delay)
    return {"message": f"Hello, {payload}!"}
