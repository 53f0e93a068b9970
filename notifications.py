"""
Structured notifications for external subscribers (indexers, dashboards).

Writes queue notifications once their transaction has committed. Every
subscriber has its own queue, delivered in emission order by ``flush``. A
note stays at the head of a subscriber's queue until that subscriber accepts
it, so delivery is at-least-once; a failing subscriber only holds back its
own queue. After ``max_attempts`` failures the note is dropped and logged,
and a queue longer than ``max_pending`` drops its oldest note.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List

logger = logging.getLogger(__name__)

PRODUCT_REGISTERED = "product_registered"
STATUS_UPDATED = "status_updated"
HISTORY_ADDED = "history_added"
USER_REGISTERED = "user_registered"
USER_VERIFIED = "user_verified"

KINDS = (PRODUCT_REGISTERED, STATUS_UPDATED, HISTORY_ADDED, USER_REGISTERED, USER_VERIFIED)


@dataclass(frozen=True)
class Notification:
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[Notification], None]

MAX_PENDING = 1000  # per subscriber; oldest note is dropped beyond this
MAX_ATTEMPTS = 5    # failed deliveries of one note before it is dropped


@dataclass(eq=False)
class _Subscription:
    subscriber: Subscriber
    queue: Deque[Notification] = field(default_factory=deque)
    attempts: int = 0  # failures of the note at the head of queue


class Notifier:
    def __init__(self, max_pending: int = MAX_PENDING, max_attempts: int = MAX_ATTEMPTS):
        self.max_pending = max_pending
        self.max_attempts = max_attempts
        self._subscriptions: List[_Subscription] = []
        self._lock = threading.Lock()
        self._flushing = False

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscriptions.append(_Subscription(subscriber))

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s.subscriber != subscriber]

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(len(s.queue) for s in self._subscriptions)

    def pending_for(self, subscriber: Subscriber) -> int:
        with self._lock:
            return sum(len(s.queue) for s in self._subscriptions if s.subscriber == subscriber)

    def emit(self, kind: str, **data: Any) -> None:
        if kind not in KINDS:
            raise ValueError(f"unknown notification kind {kind!r}")
        note = Notification(kind, data)
        with self._lock:
            for sub in self._subscriptions:
                sub.queue.append(note)
                if len(sub.queue) > self.max_pending:
                    dropped = sub.queue.popleft()
                    sub.attempts = 0
                    logger.error("Outbox full for %r, dropped %s", sub.subscriber, dropped.kind)

    def flush(self) -> int:
        """
        Deliver queued notifications; returns the number of deliveries made.

        Subscribers are called without the lock held, so a subscriber may
        write to the chain. A flush started while another is running returns
        at once; the running one picks up whatever was queued meanwhile.
        A failing subscriber is skipped for the rest of this flush and keeps
        its note at the head of its own queue.
        """
        with self._lock:
            if self._flushing:
                return 0
            self._flushing = True
        delivered = 0
        failed = set()
        finished = False
        try:
            while True:
                with self._lock:
                    sub = next((s for s in self._subscriptions
                                if s.queue and id(s) not in failed), None)
                    if sub is None:
                        # cleared together with the emptiness check so no emit is missed
                        self._flushing = False
                        finished = True
                        return delivered
                    note = sub.queue[0]
                try:
                    sub.subscriber(note)
                except Exception:
                    failed.add(id(sub))
                    self._record_failure(sub, note)
                    continue
                with self._lock:
                    if sub.queue and sub.queue[0] is note:
                        sub.queue.popleft()
                    sub.attempts = 0
                delivered += 1
        finally:
            if not finished:
                with self._lock:
                    self._flushing = False

    def _record_failure(self, sub: _Subscription, note: Notification) -> None:
        with self._lock:
            sub.attempts += 1
            attempts = sub.attempts
            if attempts >= self.max_attempts:
                if sub.queue and sub.queue[0] is note:
                    sub.queue.popleft()
                sub.attempts = 0
            left = len(sub.queue)
        if attempts >= self.max_attempts:
            logger.exception("Subscriber %r failed on %s %d times, dropped it",
                             sub.subscriber, note.kind, attempts)
        else:
            logger.exception("Subscriber %r failed on %s (attempt %d), %d left queued",
                             sub.subscriber, note.kind, attempts, left)
