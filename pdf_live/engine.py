"""
Change-detection-and-broadcast engine for PDF Live Server.

Owns one store, one refresher and one watcher, and starts and stops them
in the order that keeps shutdown clean: the watcher stops first, then
the refresher task is awaited, then the store is closed so that any
endpoint still waiting is released instead of hanging.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from pdf_live.refresher import ArtifactRefresher
from pdf_live.store import ArtifactStore
from pdf_live.watcher import DEFAULT_DEBOUNCE_SECONDS, ChangeDetector

logger = logging.getLogger(__name__)


class LiveEngine:
    """Wires watcher → refresher → store for a single served PDF."""

    def __init__(
        self,
        watch_dir: str | os.PathLike,
        served_pdf: str | os.PathLike,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        self.served_pdf = Path(served_pdf)
        self.store = ArtifactStore()
        self.refresher = ArtifactRefresher(self.served_pdf, self.store)
        self.detector = ChangeDetector(
            watch_dir, on_tick=self.refresher.notify, debounce_seconds=debounce_seconds
        )
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start the refresher task, then the watcher.

        A watcher failure (missing directory, OS watch limit) stops the
        refresher again and propagates to the caller.
        """
        if self._started:
            return
        self.refresher.start()
        try:
            self.detector.start()
        except Exception:
            await self.refresher.stop()
            self.store.close()
            raise
        self._started = True
        logger.info("Serving %s", self.served_pdf)

    async def stop(self) -> None:
        """Tear down in order: watcher, refresher, store."""
        if not self._started:
            return
        self._started = False
        await asyncio.to_thread(self.detector.stop)
        await self.refresher.stop()
        self.store.close()
        logger.info("Engine stopped.")

    async def __aenter__(self) -> LiveEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
