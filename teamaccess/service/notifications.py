"""
Change notifications for user groups.

Notifications are best-effort and at-most-once: they are only sent once the
transaction that made the change has committed, and a notification that
cannot be delivered is logged and dropped. Losing one never means losing the
change itself.
"""

import asyncio
from collections import defaultdict
from typing import Any, Protocol

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from teamaccess.core.uuid import UUID

GROUP_UPDATED = "updated"
MEMBER_ADDED = "member_added"
MEMBER_REMOVED = "member_removed"
TEAM_ACCESS_CHANGED = "team_access_changed"

_PENDING_KEY = "teamaccess_pending_notifications"


def group_topic(group_id: UUID, name: str) -> str:
    return f"user_group/{group_id}/{name}"


class Notifier(Protocol):
    def publish(self, topic: str, payload: Any) -> None: ...


class Subscription:
    """
    A subscription to a single topic. Iterate over it (asynchronously) to
    receive payloads; close it to stop receiving them.
    """

    topic: str
    queue: asyncio.Queue

    def __init__(self, pubsub: "PubSub", topic: str, max_queue_size: int):
        self.pubsub = pubsub
        self.topic = topic
        self.queue = asyncio.Queue(maxsize=max_queue_size)

    async def get(self) -> Any:
        return await self.queue.get()

    def close(self):
        self.pubsub._unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        return await self.get()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc):
        self.close()


class PubSub:
    """
    In-process publish/subscribe. Each subscriber has a bounded queue; if it
    is full the payload is dropped for that subscriber.
    """

    def __init__(
        self, log: FilteringBoundLogger | None = None, max_queue_size: int = 128
    ):
        self.log = log or get_logger()
        self.max_queue_size = max_queue_size
        self._subscribers: dict[str, set[Subscription]] = defaultdict(set)

    def subscribe(self, topic: str) -> Subscription:
        subscription = Subscription(
            pubsub=self, topic=topic, max_queue_size=self.max_queue_size
        )
        self._subscribers[topic].add(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription):
        subscribers = self._subscribers.get(subscription.topic)

        if subscribers is None:
            return

        subscribers.discard(subscription)

        if not subscribers:
            del self._subscribers[subscription.topic]

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))

    def publish(self, topic: str, payload: Any) -> None:
        for subscription in list(self._subscribers.get(topic, ())):
            try:
                subscription.queue.put_nowait(payload)
            except asyncio.QueueFull:
                self.log.warning("pubsub.subscriber_full", topic=topic)


def _pending(session: Session) -> list[tuple[Notifier, str, Any, FilteringBoundLogger]]:
    return session.info.setdefault(_PENDING_KEY, [])


def _after_commit(session: Session):
    # Also fired when a SAVEPOINT is released; only the outermost commit
    # makes the change visible.
    if session.in_nested_transaction():
        return

    pending = _pending(session)
    session.info[_PENDING_KEY] = []

    for notifier, topic, payload, log in pending:
        try:
            notifier.publish(topic, payload)
        except Exception as e:
            log.warning("notification.publish_failed", topic=topic, error=str(e))
        else:
            log.debug("notification.published", topic=topic)


def _after_soft_rollback(session: Session, previous_transaction):
    if previous_transaction.nested:
        return

    session.info[_PENDING_KEY] = []


def publish_after_commit(
    conn: AsyncSession,
    notifier: Notifier | None,
    topic: str,
    payload: Any,
    log: FilteringBoundLogger,
) -> None:
    """
    Queue a notification to be published once the transaction currently
    open on `conn` commits. Dropped if it rolls back instead.
    """
    if notifier is None:
        return

    session = conn.sync_session

    if not event.contains(session, "after_commit", _after_commit):
        event.listen(session, "after_commit", _after_commit)
        event.listen(session, "after_soft_rollback", _after_soft_rollback)

    _pending(session).append((notifier, topic, payload, log))
