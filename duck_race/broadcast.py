from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Dict, Optional

from duck_race.config import get_config
from duck_race.events import RaceEvent

log = logging.getLogger(__name__)

DEFAULT_MAILBOX_SIZE = int(get_config("broadcast.mailbox_size", 64))


class Subscription:
    """
    One observer's bounded mailbox.

    When the mailbox is full the oldest undelivered event is dropped, so a
    slow reader only ever loses history, never blocks the publisher.
    """

    def __init__(self, channel: "BroadcastChannel", subscriber_id: int, maxsize: int):
        self.channel = channel
        self.subscriber_id = subscriber_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def deliver(self, event: RaceEvent) -> None:
        if self.closed:
            return
        while True:
            try:
                self.queue.put_nowait(event)
                return
            except asyncio.QueueFull:
                try:
                    self.queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                self.dropped += 1
                log.debug("[Broadcast] Observer %d is lagging; dropped oldest event", self.subscriber_id)

    async def get(self) -> RaceEvent:
        return await self.queue.get()

    def get_nowait(self) -> Optional[RaceEvent]:
        try:
            return self.queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.channel.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> RaceEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self.get()


class BroadcastChannel:
    """Fire-and-forget fan-out of race events to every subscribed observer."""

    def __init__(self, mailbox_size: int = DEFAULT_MAILBOX_SIZE):
        self.mailbox_size = mailbox_size
        self._subscribers: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, mailbox_size: Optional[int] = None) -> Subscription:
        subscription = Subscription(self, next(self._ids), mailbox_size or self.mailbox_size)
        self._subscribers[subscription.subscriber_id] = subscription
        log.info("[Broadcast] Observer %d connected (%d total)", subscription.subscriber_id, self.subscriber_count)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscribers.pop(subscription.subscriber_id, None) is not None:
            log.info(
                "[Broadcast] Observer %d disconnected (%d remaining)",
                subscription.subscriber_id,
                self.subscriber_count,
            )

    def publish(self, event: RaceEvent) -> None:
        for subscription in list(self._subscribers.values()):
            subscription.deliver(event)
