"""In-process live change feed, one bounded queue per connected client.

Delivery is best effort: a subscriber whose queue is full misses the event
and is expected to catch up from the sync log.
"""
import asyncio
import logging
import queue
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

logger = logging.getLogger(__name__)


class LoopChannel:
    """A subscriber channel drained by a coroutine on ``loop``.

    Broadcasts arrive on request threads and are handed to the loop with
    ``call_soon_threadsafe``; the awaiting side never holds a thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int):
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def put_nowait(self, event: dict) -> None:
        # qsize is read off-loop, so a burst can still overflow in _offer
        if self._queue.full():
            raise queue.Full
        try:
            self._loop.call_soon_threadsafe(self._offer, event)
        except RuntimeError:
            # Loop closed before the subscription was removed
            raise queue.Full

    def _offer(self, event: dict) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.debug("Dropped live event: subscriber queue full")

    async def get(self) -> dict:
        return await self._queue.get()


class Hub:
    def __init__(self, queue_size: int = 64):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        # user_id -> channels (queue.Queue or LoopChannel)
        self._subscribers: Dict[int, List] = {}

    def new_channel(self) -> queue.Queue:
        return queue.Queue(maxsize=self.queue_size)

    def register_subscription(self, user_id: int, channel: queue.Queue) -> None:
        with self._lock:
            self._subscribers.setdefault(user_id, []).append(channel)

    def unregister_subscription(self, user_id: int, channel: queue.Queue) -> None:
        with self._lock:
            channels = self._subscribers.get(user_id)
            if not channels or channel not in channels:
                return
            channels.remove(channel)
            if not channels:
                del self._subscribers[user_id]

    def subscriber_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(user_id, []))

    def broadcast_to_user(self, user_id: int, event: dict) -> int:
        """Offer ``event`` to every channel of the user; returns how many took it."""
        with self._lock:
            channels = list(self._subscribers.get(user_id, []))

        delivered = 0
        for channel in channels:
            try:
                channel.put_nowait(event)
                delivered += 1
            except queue.Full:
                logger.debug(f"Dropped live event for user {user_id}: subscriber queue full")
        return delivered

    @contextmanager
    def subscribe(self, user_id: int) -> Iterator[queue.Queue]:
        channel = self.new_channel()
        self.register_subscription(user_id, channel)
        try:
            yield channel
        finally:
            self.unregister_subscription(user_id, channel)

    @contextmanager
    def subscribe_async(
        self, user_id: int, loop: asyncio.AbstractEventLoop
    ) -> Iterator[LoopChannel]:
        channel = LoopChannel(loop, self.queue_size)
        self.register_subscription(user_id, channel)
        try:
            yield channel
        finally:
            self.unregister_subscription(user_id, channel)
