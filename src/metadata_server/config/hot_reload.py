"""
Answers file watching.

Reloads the answers when the file changes on disk, without a SIGHUP or an
admin call. Bursts of events (editors often write a file several times) are
debounced into a single reload request.
"""

import threading
from pathlib import Path
from typing import Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..monitoring import get_logger
from ..store import AnswersStore, ReloadSource

logger = get_logger("hot_reload")


class AnswersFileHandler(FileSystemEventHandler):
    """File system event handler for the answers file."""

    def __init__(self, watcher: "AnswersFileWatcher"):
        """
        Initialize file handler.

        Args:
            watcher: Watcher to notify about relevant changes
        """
        self.watcher = watcher

    def on_modified(self, event: FileSystemEvent):
        """Handle file modification events."""
        if not event.is_directory:
            self._handle(event.src_path)

    def on_created(self, event: FileSystemEvent):
        """Handle file creation events."""
        if not event.is_directory:
            self._handle(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        """Handle file move events (atomic replace via rename)."""
        if not event.is_directory:
            self._handle(event.dest_path)

    def _handle(self, file_path: Union[str, bytes]):
        if isinstance(file_path, bytes):
            file_path = file_path.decode()
        if self.watcher.is_answers_file(file_path):
            self.watcher.schedule_reload()


class AnswersFileWatcher:
    """Requests a store reload whenever the answers file changes."""

    def __init__(self, store: AnswersStore, debounce_time: float = 1.0):
        """
        Initialize the watcher.

        Args:
            store: Store to reload
            debounce_time: Time to wait for further changes before reloading (seconds)
        """
        self.store = store
        self.debounce_time = debounce_time
        self.answers_file = store.answers_file.resolve()

        self._observer: Optional[Observer] = None
        self._reload_timer: Optional[threading.Timer] = None
        self._reload_lock = threading.Lock()

    def start(self) -> None:
        """Start watching the answers file's directory."""
        if self._observer is not None:
            return

        self._observer = Observer()
        self._observer.schedule(
            AnswersFileHandler(self), str(self.answers_file.parent), recursive=False
        )
        self._observer.start()
        logger.info(
            "Watching answers file",
            event_type="watch_started",
            path=str(self.answers_file),
        )

    def stop(self) -> None:
        """Stop watching and drop any pending reload."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

        with self._reload_lock:
            if self._reload_timer is not None:
                self._reload_timer.cancel()
                self._reload_timer = None

    def is_watching(self) -> bool:
        """Check if the watcher is running."""
        return self._observer is not None and self._observer.is_alive()

    def is_answers_file(self, file_path: Union[str, Path]) -> bool:
        """Check whether an event path is the watched answers file."""
        return Path(file_path).resolve() == self.answers_file

    def schedule_reload(self) -> None:
        """Request a reload once changes settle."""
        with self._reload_lock:
            if self._reload_timer is not None:
                self._reload_timer.cancel()

            self._reload_timer = threading.Timer(self.debounce_time, self._fire)
            self._reload_timer.daemon = True
            self._reload_timer.start()

    def _fire(self) -> None:
        with self._reload_lock:
            self._reload_timer = None
        logger.info("Answers file changed", event_type="file_changed", path=str(self.answers_file))
        self.store.request_reload(ReloadSource.FILE)
