"""
Artifact refresher for PDF Live Server.

The refresher is the only writer of the :class:`~pdf_live.store.ArtifactStore`.
It runs as one asyncio task: once at startup, then once per tick handed
over from the watcher thread.  Each cycle is double-gated, first on the
file's modification time and then on a byte-for-byte comparison, so
touch-only saves never reach the viewers.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from pdf_live.store import Artifact, ArtifactStore, StaleWriteError

logger = logging.getLogger(__name__)


def _modified_time(path: Path) -> int:
    return os.stat(path).st_mtime_ns


class ArtifactRefresher:
    """Re-reads the served PDF on demand and publishes real changes.

    Parameters
    ----------
    served_pdf : str or Path
        The file whose bytes are served.
    store : ArtifactStore
        The store to publish into.  Nothing else may publish to it.
    """

    def __init__(self, served_pdf: str | Path, store: ArtifactStore):
        self.served_pdf = Path(served_pdf)
        self.store = store
        self._last_modified: int | None = None
        self._lock = asyncio.Lock()
        self._tick = asyncio.Event()
        self._stopping = False
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self.reads = 0
        self.publishes = 0

    # ---- single refresh cycle ----

    async def refresh(self) -> Artifact | None:
        """Run one check-and-publish cycle.  Returns the new artifact, if any."""
        async with self._lock:
            try:
                modified = await asyncio.to_thread(_modified_time, self.served_pdf)
            except OSError as exc:
                logger.error("Getting modified time of %s failed: %s", self.served_pdf, exc)
                return None

            if modified == self._last_modified:
                logger.debug("No change in the modified time of %s.", self.served_pdf)
                return None
            self._last_modified = modified

            base_version = self.store.version
            try:
                data = await asyncio.to_thread(self.served_pdf.read_bytes)
            except OSError as exc:
                logger.warning("Reading %s failed: %s", self.served_pdf, exc)
                return None
            self.reads += 1

            current = self.store.current
            if current is not None and current.data == data:
                logger.debug("No change in the contents of %s. Not updating.", self.served_pdf)
                return None

            try:
                artifact = self.store.publish(data, expected_version=base_version)
            except StaleWriteError as exc:
                logger.warning("Discarded stale read of %s: %s", self.served_pdf, exc)
                return None
            self.publishes += 1
            logger.info(
                "Sent the updated bytes of %s (version %d, %d bytes).",
                self.served_pdf,
                artifact.version,
                artifact.size,
            )
            return artifact

    # ---- tick hand-off ----

    def notify(self) -> None:
        """Request a refresh.  Safe to call from any thread; never blocks.

        Ticks that arrive while one is already pending are merged into it.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Tick dropped: refresher is not running.")
            return
        try:
            loop.call_soon_threadsafe(self._tick.set)
        except RuntimeError:
            # Loop closed between the check and the call.
            logger.debug("Tick dropped: event loop is closed.")

    # ---- lifecycle ----

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background task on the running event loop."""
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._stopping = False
        self._task = asyncio.create_task(self._run(), name="ArtifactRefresher")

    async def stop(self) -> None:
        """Signal the background task to exit and wait for it."""
        if self._task is None:
            return
        self._stopping = True
        self._tick.set()
        try:
            await self._task
        finally:
            self._task = None
            self._loop = None
        logger.debug("Refresher stopped.")

    async def _run(self) -> None:
        await self._cycle()
        while True:
            await self._tick.wait()
            self._tick.clear()
            if self._stopping:
                return
            await self._cycle()

    async def _cycle(self) -> None:
        try:
            await self.refresh()
        except Exception:
            logger.exception("Unexpected error while refreshing %s", self.served_pdf)
