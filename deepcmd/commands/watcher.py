"""Command directory watcher for hot-reloading the registry.

The watcher observes the commands directory with watchdog and feeds every
relevant event into a ``Debouncer``. Editors tend to produce bursts of events
for a single save (temp file, rename, modify), so the debouncer waits until no
new event has arrived for the quiet period and then fires one reload for the
whole batch.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from deepcmd.commands.load import is_command_file
from deepcmd.config import DEFAULT_DEBOUNCE_MS
from deepcmd.errors import RegistryError

if TYPE_CHECKING:
    from deepcmd.commands.registry import CommandRegistry

logger = logging.getLogger(__name__)

_RELEVANT_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}


class Debouncer:
    """Coalesce bursts of path notifications into single callback invocations.

    Each ``notify`` records the path with the current monotonic time and
    re-arms the quiet-period timer. The callback runs on the debouncer's own
    thread, outside the internal lock, with the set of paths collected since
    the previous fire.
    """

    def __init__(
        self,
        quiet_period: float,
        callback: Callable[[set[str]], None],
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = "deepcmd-debouncer",
    ) -> None:
        """Initialize the debouncer.

        Args:
            quiet_period: Seconds without new events before the callback fires.
            callback: Called with the batch of changed paths.
            clock: Monotonic time source.
            name: Name of the background thread.
        """
        self.quiet_period = quiet_period
        self._callback = callback
        self._clock = clock
        self._name = name
        self._condition = threading.Condition()
        self._pending: dict[str, float] = {}
        self._stopped = False
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        """Number of paths waiting for the quiet period to elapse."""
        with self._condition:
            return len(self._pending)

    def start(self) -> None:
        """Start the background thread. Calling it on a running debouncer does nothing."""
        with self._condition:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stopped = False
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def notify(self, path: str) -> None:
        """Record an event for ``path`` and re-arm the quiet-period timer."""
        with self._condition:
            self._pending[path] = self._clock()
            self._condition.notify()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the thread, abandoning any batch that has not fired yet.

        A callback already running is allowed to finish.

        Args:
            timeout: Seconds to wait for the thread to exit.
        """
        with self._condition:
            self._stopped = True
            self._pending.clear()
            self._condition.notify_all()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _next_batch(self) -> set[str] | None:
        with self._condition:
            while True:
                if self._stopped:
                    return None
                if not self._pending:
                    self._condition.wait()
                    continue
                newest = max(self._pending.values())
                remaining = newest + self.quiet_period - self._clock()
                if remaining > 0:
                    self._condition.wait(remaining)
                    continue
                batch = set(self._pending)
                self._pending.clear()
                return batch

    def _run(self) -> None:
        while True:
            batch = self._next_batch()
            if batch is None:
                return
            try:
                self._callback(batch)
            except Exception:
                logger.exception("Debounced callback failed for %d path(s)", len(batch))


class _CommandFileEventHandler(FileSystemEventHandler):
    """Forward create/modify/delete/move events on definition files to a debouncer."""

    def __init__(self, debouncer: Debouncer) -> None:
        super().__init__()
        self._debouncer = debouncer

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELEVANT_EVENTS:
            return

        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(dest_path)

        for path in paths:
            path = os.fsdecode(path)
            if is_command_file(path):
                logger.debug("File event %s for command file %s", event.event_type, path)
                self._debouncer.notify(path)


class CommandWatcher:
    """Watch a commands directory and reload the registry when definitions change.

    Reload failures are logged and the registry keeps serving its last good
    snapshot; the watcher keeps running.

    Attributes:
        registry: Registry to reload.
        directory: Directory being watched.
        reload_count: Number of reloads fired so far.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        directory: Path | None = None,
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        on_reload: Callable[[set[str]], None] | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            registry: Registry to reload on changes.
            directory: Directory to watch; defaults to the registry's commands directory.
            debounce_ms: Quiet period in milliseconds.
            on_reload: Called with the changed paths after each successful reload.

        Raises:
            ValueError: If no directory is given and the registry has none.
        """
        directory = directory if directory is not None else registry.commands_dir
        if directory is None:
            raise ValueError("CommandWatcher needs a directory to watch")
        self.registry = registry
        self.directory = Path(directory).expanduser()
        self.reload_count = 0
        self._on_reload = on_reload
        self._debouncer = Debouncer(debounce_ms / 1000.0, self._reload)
        self._observer: Observer | None = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start observing the directory. Calling it on a running watcher does nothing."""
        with self._lock:
            if self._observer is not None:
                return
            self.directory.mkdir(parents=True, exist_ok=True)
            observer = Observer()
            observer.schedule(
                _CommandFileEventHandler(self._debouncer),
                str(self.directory),
                recursive=self.registry.recursive,
            )
            self._debouncer.start()
            observer.start()
            self._observer = observer
        logger.info("Command watcher started for directory: %s", self.directory)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop observing and join the background threads.

        Safe to call more than once. A reload already in progress completes
        before this returns (within ``timeout``).

        Args:
            timeout: Seconds to wait for each background thread.
        """
        with self._lock:
            observer = self._observer
            self._observer = None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout)
        self._debouncer.stop(timeout)
        logger.info("Command watcher stopped for directory: %s", self.directory)

    def _reload(self, paths: set[str]) -> None:
        logger.debug("Reloading registry after changes to %d file(s)", len(paths))
        try:
            self.registry.reload()
        except RegistryError:
            logger.exception("Failed to reload commands from %s", self.directory)
            return
        self.reload_count += 1
        if self._on_reload is not None:
            self._on_reload(paths)

    def __enter__(self) -> CommandWatcher:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
