"""
Notification Log

Ordered, append-only channel of change records. The registry appends
synchronously at the end of each successful mutation; observers either read
the history by sequence number or subscribe to a queue of their own.
"""

import asyncio
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional

import structlog

from etix.models.notifications import Notification


logger = structlog.get_logger(__name__)


class NotificationLog:
    """Append-only log of registry change records"""

    def __init__(self, max_history: int = 0, subscriber_queue_size: int = 1000):
        """
        Initialize the log.

        Args:
            max_history: Number of records kept for replay, 0 keeps everything.
                Sequence numbers keep increasing when old records are dropped.
            subscriber_queue_size: Default bound of each subscriber queue, 0 for
                unbounded. A full queue drops its oldest record to make room;
                the gap shows in ``seq`` and can be refilled from ``history``.
        """
        self._history: Deque[Notification] = deque(maxlen=max_history or None)
        self._subscribers: Dict[asyncio.Queue, int] = {}  # queue -> dropped count
        self._subscriber_queue_size = subscriber_queue_size
        self._last_seq = 0
        self.logger = logger.bind(component="notification_log")

    @property
    def last_seq(self) -> int:
        return self._last_seq

    def append(self, notification: Notification) -> Notification:
        """Assign the next sequence number, store and fan out a record"""
        self._last_seq += 1
        notification.seq = self._last_seq
        self._history.append(notification)

        for queue in self._subscribers:
            self._deliver(queue, notification)

        self.logger.debug(
            "Notification appended",
            kind=notification.kind,
            seq=notification.seq,
            subscribers=len(self._subscribers),
        )
        return notification.model_copy()

    def history(self, after: int = 0, kinds: Optional[Iterable[str]] = None) -> List[Notification]:
        """Copies of records with ``seq > after``, optionally filtered by kind, in order"""
        wanted = set(kinds) if kinds else None
        return [
            n.model_copy() for n in self._history
            if n.seq > after and (wanted is None or n.kind in wanted)
        ]

    def subscribe(self, maxsize: Optional[int] = None) -> asyncio.Queue:
        """Return a queue receiving every record appended from now on"""
        if maxsize is None:
            maxsize = self._subscriber_queue_size
        queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._subscribers[queue] = 0
        self.logger.info("Subscriber added", subscribers=len(self._subscribers), maxsize=maxsize)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.pop(queue, None)
        self.logger.info("Subscriber removed", subscribers=len(self._subscribers))

    def dropped(self, queue: asyncio.Queue) -> int:
        """Records discarded from a subscriber queue because it was full"""
        return self._subscribers.get(queue, 0)

    def _deliver(self, queue: asyncio.Queue, notification: Notification) -> None:
        if queue.full():
            queue.get_nowait()
            self._subscribers[queue] += 1
            self.logger.warning(
                "Subscriber queue full, oldest record dropped",
                seq=notification.seq,
                dropped=self._subscribers[queue],
            )
        queue.put_nowait(notification.model_copy())

    def __len__(self) -> int:
        return len(self._history)
