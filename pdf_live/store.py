"""
Artifact store and broadcast hub for PDF Live Server.

The store holds exactly one "current" artifact (the latest bytes of the
served PDF) plus a generation counter.  Publishing swaps the value and
wakes every waiter at once; nothing is queued per subscriber, so a slow
subscriber simply lands on the latest version the next time it looks.

All state is owned by a single asyncio event loop.  Every method must be
called from that loop; the watcher thread hands off through
:meth:`pdf_live.refresher.ArtifactRefresher.notify` instead.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class StoreClosedError(Exception):
    """The store has been shut down; no further artifacts will arrive."""


class StaleWriteError(Exception):
    """A publish was based on an older version than the store now holds."""


class SubscriptionClosed(Exception):
    """The subscription was dropped (disconnect or shutdown)."""


@dataclass(frozen=True)
class Artifact:
    """One immutable version of the served file."""
    data: bytes = field(repr=False)
    version: int
    published_at: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        return len(self.data)


class SubscriptionState(enum.Enum):
    ATTACHED = "attached"  # registered, nothing observed yet
    HAS_DATA = "has_data"
    CLOSED = "closed"


class ArtifactStore:
    """Single-slot latest-value cell with wake-all notification."""

    def __init__(self) -> None:
        self._current: Artifact | None = None
        self._closed = False
        # Replaced on every wake; waiters hold the instance they started on.
        self._changed = asyncio.Event()
        self._subscriptions: set[Subscription] = set()

    # ---- reads ----

    @property
    def current(self) -> Artifact | None:
        return self._current

    @property
    def version(self) -> int:
        """Return the current generation (0 before the first publish)."""
        return self._current.version if self._current else 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def current_or_wait(self, timeout: float | None = None) -> Artifact:
        """Return the current artifact, suspending until the first publish.

        Raises :class:`StoreClosedError` if the store is closed before any
        artifact exists and :class:`TimeoutError` once *timeout* elapses.
        """
        if self._current is not None:
            return self._current

        async def _wait() -> Artifact:
            while True:
                if self._current is not None:
                    return self._current
                if self._closed:
                    raise StoreClosedError("store closed before any artifact was published")
                await self._changed.wait()

        if timeout is None:
            return await _wait()
        return await asyncio.wait_for(_wait(), timeout)

    # ---- writes ----

    def publish(self, data: bytes, *, expected_version: int | None = None) -> Artifact:
        """Make *data* the new current artifact and wake every waiter.

        When *expected_version* is given the write is rejected with
        :class:`StaleWriteError` unless it still matches the current version.
        """
        if self._closed:
            raise StoreClosedError("cannot publish to a closed store")
        if expected_version is not None and expected_version != self.version:
            raise StaleWriteError(
                f"write based on version {expected_version}, store is at {self.version}"
            )
        artifact = Artifact(data=bytes(data), version=self.version + 1)
        self._current = artifact
        self._wake()
        logger.debug(
            "Published version %d (%d bytes) to %d subscriber(s).",
            artifact.version,
            artifact.size,
            len(self._subscriptions),
        )
        return artifact

    def subscribe(self) -> Subscription:
        """Register and return a new :class:`Subscription`."""
        if self._closed:
            raise StoreClosedError("cannot subscribe to a closed store")
        sub = Subscription(self)
        self._subscriptions.add(sub)
        logger.debug("Subscription added (%d active).", len(self._subscriptions))
        return sub

    def close(self) -> None:
        """Shut the store down, releasing every waiter and subscription."""
        if self._closed:
            return
        self._closed = True
        for sub in list(self._subscriptions):
            sub._mark_closed()
        self._subscriptions.clear()
        self._wake()
        logger.debug("Artifact store closed.")

    # ---- internals ----

    def _wake(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def _discard(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.discard(sub)
            logger.debug("Subscription released (%d active).", len(self._subscriptions))
            # Let a task blocked in sub.next() observe the close.
            self._wake()


class Subscription:
    """An observer's handle on the store's current and future artifacts.

    Usage:
        async with store.subscribe() as sub:
            async for artifact in sub:
                ...
    """

    def __init__(self, store: ArtifactStore):
        self._store = store
        self._seen_version = 0
        self._closed = False

    @property
    def state(self) -> SubscriptionState:
        if self._closed:
            return SubscriptionState.CLOSED
        if self._seen_version:
            return SubscriptionState.HAS_DATA
        return SubscriptionState.ATTACHED

    @property
    def closed(self) -> bool:
        return self._closed

    async def next(self) -> Artifact:
        """Return the newest artifact this subscription has not returned yet.

        Returns immediately if the store already holds one, otherwise waits
        for the next publish.  Raises :class:`SubscriptionClosed` once the
        subscription or the store is closed.
        """
        store = self._store
        while True:
            if self._closed:
                raise SubscriptionClosed()
            current = store._current
            if current is not None and current.version > self._seen_version:
                self._seen_version = current.version
                return current
            await store._changed.wait()

    def close(self) -> None:
        """Drop the subscription; idempotent."""
        if self._closed:
            return
        self._mark_closed()
        self._store._discard(self)

    def _mark_closed(self) -> None:
        self._closed = True

    # ---- protocol sugar ----

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Artifact:
        try:
            return await self.next()
        except SubscriptionClosed:
            raise StopAsyncIteration from None

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()
