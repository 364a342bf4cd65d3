"""
WebSocket plumbing for observers: pump frames to the client, listen for
client messages, and unsubscribe as soon as either side is done.
"""

import asyncio
import logging
from typing import AsyncGenerator, Callable

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


async def stream_frames(
    websocket: WebSocket,
    frames: AsyncGenerator[dict, None],
    on_client_message: Callable[[dict], None] | None = None,
) -> None:
    async def send() -> None:
        async for frame in frames:
            await websocket.send_json(frame)

    async def receive() -> None:
        while True:
            message = await websocket.receive_json()
            if on_client_message is not None and isinstance(message, dict):
                on_client_message(message)

    sender = asyncio.create_task(send())
    receiver = asyncio.create_task(receive())
    try:
        await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # runs to completion even if this handler is being cancelled, so the
        # subscriptions behind `frames` are always released
        await asyncio.shield(_stop(sender, receiver, frames))

    for task in (sender, receiver):
        error = _failure(task)
        if error is not None and not isinstance(error, WebSocketDisconnect):
            logger.error("Live stream failed: %s", error)

    if _finished_cleanly(sender):
        # stream ended on its own (terminal error frame); let the client go
        await websocket.close()


async def _stop(sender: asyncio.Task, receiver: asyncio.Task, frames: AsyncGenerator[dict, None]) -> None:
    for task in (sender, receiver):
        task.cancel()
    await asyncio.gather(sender, receiver, return_exceptions=True)
    # only after the sender stopped iterating it
    await frames.aclose()


def _failure(task: asyncio.Task) -> BaseException | None:
    if task.cancelled():
        return None
    return task.exception()


def _finished_cleanly(task: asyncio.Task) -> bool:
    return not task.cancelled() and task.exception() is None
