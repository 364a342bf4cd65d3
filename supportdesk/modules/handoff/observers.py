"""
Observers: each UI surface re-derives its view from the latest snapshot it
receives. Subscriptions are opened before the first read so no change is
missed, and closed when the frame stream is closed.
"""

import asyncio
import logging
from dataclasses import asdict
from typing import AsyncIterator
from uuid import UUID

from supportdesk.models.live_chat import Role
from supportdesk.modules.handoff.coordinator import STORE_ERRORS, HandoffCoordinator
from supportdesk.modules.handoff.errors import AccessDenied, HandoffError, NotFound, ReadFailed
from supportdesk.modules.handoff.machine import Actor
from supportdesk.modules.handoff.redirect import REDIRECT_NOTICE, pending_redirect
from supportdesk.modules.stores.base import (
    MESSAGES_CHANNEL,
    SESSIONS_CHANNEL,
    TICKETS_CHANNEL,
    ChangeFeed,
    Subscription,
    TicketStore,
)

logger = logging.getLogger(__name__)


def error_frame(error: HandoffError) -> dict:
    return {
        "type": "error",
        "notice": asdict(error.notice),
        "navigate": error.navigate_to,
    }


async def merge_subscriptions(*subscriptions: Subscription) -> AsyncIterator[dict]:
    """Interleave events from several subscriptions as they arrive."""
    queue: asyncio.Queue = asyncio.Queue()

    async def pump(sub: Subscription) -> None:
        async for event in sub:
            await queue.put(event)

    tasks = [asyncio.create_task(pump(sub)) for sub in subscriptions]
    try:
        while True:
            yield await queue.get()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class TicketListObserver:
    """Ticket list for one user. Customers also get their live-chat redirect, once per target."""

    def __init__(self, tickets: TicketStore, feed: ChangeFeed, actor: Actor, current_view: str | None = None):
        self.tickets = tickets
        self.feed = feed
        self.actor = actor
        self.current_view = current_view

    async def snapshot(self) -> list[dict]:
        customer_id = None if self.actor.role == Role.ADMIN else self.actor.user_id
        tickets = await self.tickets.list(customer_id=customer_id)
        frames = [{
            "type": "tickets",
            "tickets": [t.model_dump(mode="json") for t in tickets],
        }]

        if self.actor.role == Role.CUSTOMER:
            redirect = pending_redirect(tickets, self.actor.user_id, self.current_view)
            if redirect is not None:
                logger.info("Redirecting customer %s to %s", self.actor.user_id, redirect.view)
                self.current_view = redirect.view
                frames.append({
                    "type": "navigate",
                    "view": redirect.view,
                    "notice": asdict(REDIRECT_NOTICE),
                })
        return frames

    async def frames(self) -> AsyncIterator[dict]:
        subscription = await self.feed.subscribe(TICKETS_CHANNEL)
        try:
            for frame in await self._safe_snapshot():
                yield frame
            async for _ in subscription:
                for frame in await self._safe_snapshot():
                    yield frame
        finally:
            await subscription.close()

    async def _safe_snapshot(self) -> list[dict]:
        try:
            return await self.snapshot()
        except STORE_ERRORS as e:
            logger.error("Ticket list for %s failed to load: %s", self.actor.user_id, e)
            return [error_frame(ReadFailed("Failed to load support tickets."))]


class SessionObserver:
    """One live-chat view: session document plus its ordered messages."""

    def __init__(self, coordinator: HandoffCoordinator, feed: ChangeFeed, session_id: UUID, actor: Actor):
        self.coordinator = coordinator
        self.feed = feed
        self.session_id = session_id
        self.actor = actor

    async def snapshot(self) -> dict:
        outcome = await self.coordinator.open_session(self.session_id, self.actor)
        return {
            "type": "session",
            "state": outcome.state.value,
            "session": outcome.session.model_dump(mode="json"),
            "messages": [m.model_dump(mode="json") for m in outcome.messages],
        }

    async def frames(self) -> AsyncIterator[dict]:
        key = str(self.session_id)
        session_sub = await self.feed.subscribe(SESSIONS_CHANNEL, key)
        message_sub = await self.feed.subscribe(MESSAGES_CHANNEL, key)
        events = merge_subscriptions(session_sub, message_sub)
        try:
            frame = await self._safe_snapshot()
            yield frame
            if frame["type"] == "error" and frame["navigate"]:
                return
            async for _ in events:
                frame = await self._safe_snapshot()
                yield frame
                if frame["type"] == "error" and frame["navigate"]:
                    return
        finally:
            await session_sub.close()
            await message_sub.close()
            await events.aclose()

    async def _safe_snapshot(self) -> dict:
        try:
            return await self.snapshot()
        except (NotFound, AccessDenied) as e:
            logger.warning("Live chat %s closed for %s: %s", self.session_id, self.actor.user_id, e.description)
            return error_frame(e)
        except HandoffError as e:
            logger.error("Live chat %s refresh failed: %s", self.session_id, e.description)
            return error_frame(e)
