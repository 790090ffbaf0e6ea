"""In-process fan-out of live events to connected stream subscribers.

Every connected client owns one :class:`Subscriber` with a bounded queue.
Producers call :meth:`EventBroadcaster.broadcast`; each stream handler drains
its own subscriber. Delivery never blocks the producer: a subscriber whose
queue is full is dropped and is expected to reconnect and refetch state.
"""
import json
import logging
import queue
import threading
import uuid
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


def format_event(event_type: str, data: str) -> str:
    """Frame an already JSON-encoded payload for the event stream."""
    return f"event: {event_type}\ndata: {data}\n\n"


class Subscriber:
    """Handle for one live connection.

    ``offer`` and ``close`` share a per-subscriber lock, so once ``close``
    returns no further message can land in the queue.
    """

    def __init__(self, maxsize: int, subscriber_id: Optional[str] = None):
        self.id = subscriber_id or uuid.uuid4().hex
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, message: str) -> bool:
        """Queue a message without blocking.

        Returns False when the subscriber is already closed. Raises
        ``queue.Full`` when the consumer has fallen behind.
        """
        with self._lock:
            if self._closed:
                return False
            self._queue.put_nowait(message)
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next message, or None once the subscriber has been closed.

        Raises ``queue.Empty`` if nothing arrived within ``timeout``.
        """
        message = self._queue.get(timeout=timeout)
        if message is _CLOSED:
            return None
        return message

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            while True:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    break
            # Wakes a reader blocked in get()
            self._queue.put_nowait(_CLOSED)

    def __repr__(self):
        return f"<Subscriber {self.id}{' closed' if self._closed else ''}>"


class EventBroadcaster:
    """Registry of live subscribers plus the broadcast fan-out.

    The live set is only mutated by ``register``/``unregister`` under
    ``_lock``; ``broadcast`` takes a snapshot under the same lock and then
    delivers with the lock released.
    """

    def __init__(self, queue_size: int = 32):
        if queue_size < 1:
            raise ValueError('queue_size must be at least 1')
        self.queue_size = queue_size
        self._subscribers: Dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def register(self) -> Subscriber:
        subscriber = Subscriber(self.queue_size)
        with self._lock:
            self._subscribers[subscriber.id] = subscriber
            total = len(self._subscribers)
        logger.info(f"[sse] subscriber {subscriber.id} added, total={total}")
        return subscriber

    def unregister(self, subscriber: Subscriber) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscriber.id, None)
            total = len(self._subscribers)
        subscriber.close()
        if removed is not None:
            logger.info(f"[sse] subscriber {subscriber.id} removed, total={total}")

    def broadcast(self, event_type: str, payload: Any) -> int:
        """Deliver one event to every subscriber. Returns the delivery count."""
        try:
            data = json.dumps(payload)
        except (TypeError, ValueError):
            logger.error(f"[sse] cannot encode payload for event {event_type!r}", exc_info=True)
            return 0
        message = format_event(event_type, data)

        with self._lock:
            subscribers = list(self._subscribers.values())

        delivered = 0
        stalled: List[Subscriber] = []
        for subscriber in subscribers:
            try:
                if subscriber.offer(message):
                    delivered += 1
            except queue.Full:
                stalled.append(subscriber)

        for subscriber in stalled:
            logger.warning(f"[sse] subscriber {subscriber.id} queue full, dropping")
            self.unregister(subscriber)
        return delivered

    def close(self) -> None:
        """Drop every subscriber. Open streams end on their next read."""
        with self._lock:
            subscribers = list(self._subscribers.values())
            self._subscribers.clear()
        for subscriber in subscribers:
            subscriber.close()
        if subscribers:
            logger.info(f"[sse] broadcaster closed, dropped {len(subscribers)} subscribers")
