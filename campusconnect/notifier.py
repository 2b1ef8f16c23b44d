"""
Fan-out of "bookings changed" hints to live dashboards.

Events carry no booking state; observers re-fetch on every signal, so a
dropped or duplicated event only costs an extra reload.
"""
import asyncio
import time
import uuid

from .config import NOTIFIER_QUEUE_SIZE
from .logging_config import get_logger

logger = get_logger(__name__)

EVENT_TYPE = "bookings-updated"


def build_change_event(reason: str, booking_id: str | None, **extra) -> dict:
    return {
        "type": EVENT_TYPE,
        "reason": reason,
        "bookingId": booking_id,
        "timestamp": int(time.time() * 1000),
        **extra,
    }


class Channel:
    def __init__(self, maxsize: int = NOTIFIER_QUEUE_SIZE):
        self.channel_id = str(uuid.uuid4())
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def offer(self, event: dict) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            # a backlog already tells the observer to reload
            return False

    async def receive(self, timeout: float | None = None) -> dict | None:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self):
        self.closed = True


class ChangeNotifier:
    def __init__(self, queue_size: int = NOTIFIER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._channels: dict[str, Channel] = {}

    def subscribe(self) -> Channel:
        channel = Channel(self.queue_size)
        self._channels[channel.channel_id] = channel
        logger.info("observer_subscribed", channel_id=channel.channel_id, observers=len(self._channels))
        return channel

    def unsubscribe(self, channel: Channel) -> None:
        channel.close()
        if self._channels.pop(channel.channel_id, None) is not None:
            logger.info("observer_unsubscribed", channel_id=channel.channel_id, observers=len(self._channels))

    @property
    def subscriber_count(self) -> int:
        return len(self._channels)

    def broadcast(self, event: dict) -> int:
        delivered = 0
        # snapshot: channels may unsubscribe while we iterate
        for channel in list(self._channels.values()):
            if channel.closed:
                self._channels.pop(channel.channel_id, None)
                continue
            try:
                if channel.offer(event):
                    delivered += 1
                else:
                    logger.debug("observer_backlogged", channel_id=channel.channel_id)
            except Exception as e:
                logger.warning("observer_delivery_failed", channel_id=channel.channel_id, error=str(e))
        return delivered

    def notify(self, reason: str, booking_id: str | None, **extra) -> int:
        return self.broadcast(build_change_event(reason, booking_id, **extra))
