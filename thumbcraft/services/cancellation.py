# FILE: thumbcraft/services/cancellation.py
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from thumbcraft.core.errors import ClientDisconnectedError

logger = logging.getLogger("thumbcraft.cancellation")

T = TypeVar("T")


async def cancel_on_disconnect(
        work: Awaitable[T],
        is_disconnected: Callable[[], Awaitable[bool]],
        poll_interval: float = 0.5,
) -> T:
    """
    Await ``work`` while polling ``is_disconnected``.
    If the caller leaves first, ``work`` is cancelled and ClientDisconnectedError raised.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await is_disconnected():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                logger.info("Client disconnected, in-flight generation cancelled")
                raise ClientDisconnectedError("Request cancelled by client")
    finally:
        if not task.done():
            task.cancel()
