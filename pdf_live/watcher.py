"""File system watcher for PDF Live Server.

Uses the watchdog library to monitor a directory (recursively) and
coalesces bursts of raw events into payload-free "tick" signals, at most
one per debounce window.  Consumers re-check the file themselves; raw
events are too noisy and platform-dependent to trust directly.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from typing import Any

from watchdog.events import (
    EVENT_TYPE_CLOSED_NO_WRITE,
    EVENT_TYPE_OPENED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.1

# Reading the served file produces these; they never mean a change.
_IGNORED_EVENT_TYPES = frozenset({EVENT_TYPE_OPENED, EVENT_TYPE_CLOSED_NO_WRITE})


class _Debouncer:
    """Collects pokes and emits one tick per window on its own thread."""

    def __init__(self, window: float, on_tick: Callable[[], None]):
        self._window = window
        self._on_tick = on_tick
        self._dirty = threading.Event()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._health_check: Callable[[], bool] | None = None
        self.ticks = 0

    @property
    def window(self) -> float:
        return self._window

    def start(self, health_check: Callable[[], bool] | None = None) -> None:
        self._health_check = health_check
        self._stop.clear()
        self._dirty.clear()
        self._thread = threading.Thread(
            target=self._run, daemon=True, name="ChangeDebouncer"
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._dirty.set()  # unblock the wait
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def poke(self) -> None:
        """Record that something happened; cheap and callable from any thread."""
        self._dirty.set()

    def _run(self) -> None:
        reported_dead = False
        while not self._stop.is_set():
            if not self._dirty.wait(timeout=1.0):
                if self._health_check and not self._health_check():
                    if not reported_dead:
                        logger.error("File watcher observer stopped unexpectedly.")
                        reported_dead = True
                continue
            # Let the burst settle, then fold everything seen into one tick.
            if self._stop.wait(timeout=self._window):
                break
            self._dirty.clear()
            self.ticks += 1
            try:
                self._on_tick()
            except Exception:
                logger.exception("file watcher: tick handler failed")


class ChangeEventHandler(FileSystemEventHandler):
    """Watchdog handler that turns every relevant event into a poke."""

    def __init__(self, debouncer: _Debouncer):
        super().__init__()
        self._debouncer = debouncer

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in _IGNORED_EVENT_TYPES:
            return
        logger.debug("Raw event: %s %s", event.event_type, event.src_path)
        self._debouncer.poke()


class ChangeDetector:
    """Debounced recursive directory watcher.

    Usage:
        detector = ChangeDetector("./build", on_tick=refresher.notify)
        detector.start()
        ...
        detector.stop()
    """

    def __init__(
        self,
        watch_dir: str | os.PathLike,
        on_tick: Callable[[], None],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        """Create a detector; nothing is watched until :meth:`start`."""
        self.watch_dir = os.fspath(watch_dir)
        self._debouncer = _Debouncer(debounce_seconds, on_tick)
        self._handler = ChangeEventHandler(self._debouncer)
        self._observer: Any | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching.  Errors installing the watch propagate."""
        if not os.path.isdir(self.watch_dir):
            logger.error("Watch directory does not exist: %s", self.watch_dir)
            raise FileNotFoundError(f"Watch directory does not exist: {self.watch_dir}")

        observer = Observer()
        observer.schedule(self._handler, self.watch_dir, recursive=True)
        observer.start()
        self._observer = observer
        self._debouncer.start(health_check=observer.is_alive)
        logger.info(
            "Watching '%s' (recursive, debounce=%dms)",
            self.watch_dir,
            round(self._debouncer.window * 1000),
        )

    def stop(self) -> None:
        """Stop watching and release resources; safe to call twice."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            self._debouncer.stop()
            logger.info("Watcher stopped.")

    # ---- status ----

    @property
    def is_running(self) -> bool:
        """Return whether the watcher is currently active."""
        return self._observer is not None and self._observer.is_alive()

    @property
    def ticks(self) -> int:
        """Return the number of ticks emitted so far."""
        return self._debouncer.ticks
