"""
Live queries over the index engine.

A Subscription keeps the current result of one query shape and hands it
to a consumer callback. The hub recomputes affected subscriptions inside
the commit (after the index update) and each subscription delivers from
its own task, so a slow consumer only ever receives the newest state.

Invariants:
    - Subscription.current always equals a fresh query at the last commit
    - Deliveries within one subscription carry non-decreasing seq
    - Intermediate states may be skipped, the final one never is
    - No callback fires after unsubscribe()

How to change safely:
    - Never await inside notify(); it runs under the commit lock
    - Callback failures are logged, never raised into the commit
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union

from .index import IndexEngine, IndexRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveResult:
    """Result set delivered to subscribers.

    Attributes:
        rows: Ordered index rows
        seq: Store sequence the result was computed at
    """

    rows: tuple[IndexRow, ...]
    seq: int

    @property
    def docs(self) -> list[dict[str, Any]]:
        return [row.doc for row in self.rows]

    @property
    def ids(self) -> list[str]:
        return [row.id for row in self.rows]

    @property
    def signature(self) -> tuple[tuple[str, Any], ...]:
        """Membership, order and member revisions."""
        return tuple((row.id, row.doc.get("_rev")) for row in self.rows)

    def __len__(self) -> int:
        return len(self.rows)


LiveCallback = Callable[[LiveResult], Union[None, Awaitable[None]]]


class Subscription:
    """Handle for one live query.

    Attributes:
        index: Index name
        key: Index key (None for all keys)
        descending: Result order
        limit: Maximum rows
        current: Latest computed result
        delivered: Latest result handed to the callback
    """

    def __init__(
        self,
        hub: LiveQueryHub,
        index: str,
        callback: LiveCallback,
        key: Any = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> None:
        self.index = index
        self.key = key
        self.descending = descending
        self.limit = limit
        self.current: LiveResult | None = None
        self.delivered: LiveResult | None = None
        self._hub = hub
        self._callback = callback
        self._pending: LiveResult | None = None
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._task: asyncio.Task | None = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def idle(self) -> bool:
        return self._idle.is_set()

    def offer(self, result: LiveResult) -> bool:
        """Record a freshly computed result and schedule its delivery.

        Returns:
            True if the result differs from the current one
        """
        if not self._active:
            return False
        changed = self.current is None or result.signature != self.current.signature
        self.current = result
        if changed:
            self._pending = result
            self._idle.clear()
            self._wakeup.set()
        return changed

    async def _deliver(self, result: LiveResult) -> None:
        self.delivered = result
        try:
            outcome = self._callback(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception(
                "Live query callback failed",
                extra={"index": self.index, "key": self.key, "seq": result.seq},
            )

    async def _run(self) -> None:
        while self._active:
            await self._wakeup.wait()
            self._wakeup.clear()
            result, self._pending = self._pending, None
            if result is not None and self._active:
                await self._deliver(result)
            if self._pending is None:
                self._idle.set()
        self._idle.set()

    async def start(self) -> None:
        """Deliver the current result, then start the delivery task."""
        result = self._hub.compute(self)
        self.current = result
        await self._deliver(result)
        if self._active:
            self._task = asyncio.create_task(self._run(), name=f"live-query:{self.index}")

    async def wait_delivered(self) -> None:
        """Wait until the newest result has been handed to the callback."""
        await self._idle.wait()

    def unsubscribe(self) -> None:
        """Stop deliveries. Safe to call from inside the callback."""
        if not self._active:
            return
        self._active = False
        self._pending = None
        self._wakeup.set()
        self._idle.set()
        self._hub.discard(self)

    async def close(self) -> None:
        """Unsubscribe and wait for the delivery task to finish."""
        self.unsubscribe()
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass


class LiveQueryHub:
    """Tracks subscriptions per index and feeds them after each commit.

    Example:
        >>> hub = LiveQueryHub(engine)
        >>> sub = await hub.subscribe("createdAt", print, descending=True)
        >>> hub.notify({"createdAt"})
        >>> sub.unsubscribe()
    """

    def __init__(self, engine: IndexEngine) -> None:
        self.engine = engine
        self._subscriptions: dict[str, set[Subscription]] = defaultdict(set)

    def compute(self, subscription: Subscription) -> LiveResult:
        rows = self.engine.query(
            subscription.index,
            key=subscription.key,
            descending=subscription.descending,
            limit=subscription.limit,
        )
        return LiveResult(rows=tuple(rows), seq=self.engine.seq)

    async def subscribe(
        self,
        index: str,
        callback: LiveCallback,
        key: Any = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> Subscription:
        """Subscribe to a query; the current result is delivered before returning.

        Raises:
            NotFoundError: If the index is not registered
        """
        self.engine.get_index(index)
        subscription = Subscription(self, index, callback, key, descending, limit)
        self._subscriptions[index].add(subscription)
        await subscription.start()

        logger.debug(
            "Live query subscribed",
            extra={"index": index, "key": key, "descending": descending},
        )
        return subscription

    def notify(self, changed: set[str]) -> int:
        """Recompute subscriptions of the touched indexes.

        Runs synchronously inside the commit.

        Returns:
            Number of subscriptions whose result changed
        """
        count = 0
        for name in changed:
            for subscription in list(self._subscriptions.get(name, ())):
                if subscription.offer(self.compute(subscription)):
                    count += 1
        return count

    def discard(self, subscription: Subscription) -> None:
        subs = self._subscriptions.get(subscription.index)
        if subs is not None:
            subs.discard(subscription)
            if not subs:
                del self._subscriptions[subscription.index]

    @property
    def subscription_count(self) -> int:
        return sum(len(subs) for subs in self._subscriptions.values())

    async def flush(self) -> None:
        """Wait until every subscription has delivered its newest result."""
        # Deliveries may trigger further commits; loop until quiescent
        while True:
            pending = [
                s
                for subs in self._subscriptions.values()
                for s in subs
                if not s.idle
            ]
            if not pending:
                return
            await asyncio.gather(*(s.wait_delivered() for s in pending))

    async def close(self) -> None:
        """Close every subscription."""
        subscriptions = [s for subs in self._subscriptions.values() for s in subs]
        for subscription in subscriptions:
            await subscription.close()
        self._subscriptions.clear()
