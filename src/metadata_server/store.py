"""
Answers store and reload coordination.

The store owns the single published answers snapshot. Readers take the
current reference without locking; the reference is only ever replaced as a
whole by the reload worker, so a reader sees either the old tree or the new
one, never a partial load.

Reloads from every trigger (SIGHUP, the admin endpoint, file changes, the
subscription client) go through one queue and are processed one at a time by
a single worker thread, in arrival order. Each request gets a
:class:`concurrent.futures.Future`; fire-and-forget triggers ignore it and
the admin endpoint waits on it.
"""

import queue
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from .answers import Versions, load_answers
from .exceptions import AnswersLoadError
from .monitoring import MetricsCollector, get_logger

logger = get_logger("store")


class StoreState(str, Enum):
    """Observable store states."""
    READY = "ready"
    RELOADING = "reloading"


class ReloadSource(str, Enum):
    """Reload trigger sources."""
    STARTUP = "startup"
    SIGNAL = "signal"
    ADMIN = "admin"
    FILE = "file"
    SUBSCRIPTION = "subscription"


@dataclass
class ReloadRequest:
    """A queued reload and the future its outcome is reported on."""
    source: str
    future: Future


class AnswersStore:
    """Holds the published answers and serializes reloads."""

    def __init__(
        self,
        answers_file: Union[str, Path],
        loader: Callable[[Path], Versions] = load_answers,
        metrics: Optional[MetricsCollector] = None
    ):
        """
        Initialize the store.

        Args:
            answers_file: Path of the answers YAML file
            loader: Function that reads, parses and merges the file
            metrics: Optional metrics collector for reload outcomes
        """
        self.answers_file = Path(answers_file)
        self._loader = loader
        self._metrics = metrics

        self._snapshot: Versions = {}
        self._state = StoreState.READY

        self._queue: "queue.Queue[Optional[ReloadRequest]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None

        self.reload_count = 0
        self.last_reload_at: Optional[float] = None
        self.last_error: Optional[Exception] = None

    @property
    def snapshot(self) -> Versions:
        """Currently published answers."""
        return self._snapshot

    @property
    def state(self) -> StoreState:
        """Whether a reload is being processed."""
        return self._state

    def load_initial(self) -> Versions:
        """
        Load the answers file synchronously.

        Raises:
            AnswersLoadError: If the file cannot be loaded
        """
        return self._load(ReloadSource.STARTUP.value)

    def start(self) -> None:
        """Start the reload worker."""
        if self._worker is not None:
            return
        self._worker = threading.Thread(
            target=self._run, name="answers-reload", daemon=True
        )
        self._worker.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the reload worker after the queued reloads have run."""
        if self._worker is None:
            return
        self._queue.put(None)
        self._worker.join(timeout)
        self._worker = None

    def is_running(self) -> bool:
        """Check whether the reload worker is alive."""
        return self._worker is not None and self._worker.is_alive()

    def request_reload(self, source: Union[str, ReloadSource] = ReloadSource.SIGNAL) -> Future:
        """
        Queue a reload.

        Args:
            source: What triggered the reload

        Returns:
            Future resolved with the new answers, or failed with the load error
        """
        if isinstance(source, ReloadSource):
            source = source.value
        future: Future = Future()
        logger.debug("Reload requested", event_type="reload_requested", source=source)
        self._queue.put(ReloadRequest(source=source, future=future))
        return future

    def reload(
        self,
        source: Union[str, ReloadSource] = ReloadSource.ADMIN,
        timeout: Optional[float] = None
    ) -> Versions:
        """
        Queue a reload and wait for it.

        Raises:
            AnswersLoadError: If the reload fails
        """
        return self.request_reload(source).result(timeout)

    def _run(self) -> None:
        while True:
            request = self._queue.get()
            try:
                if request is None:
                    return
                self._process(request)
            finally:
                self._queue.task_done()

    def _process(self, request: ReloadRequest) -> None:
        if not request.future.set_running_or_notify_cancel():
            return
        try:
            versions = self._load(request.source)
        except Exception as e:
            request.future.set_exception(e)
        else:
            request.future.set_result(versions)

    def _load(self, source: str) -> Versions:
        self._state = StoreState.RELOADING
        start_time = time.time()
        try:
            versions = self._loader(self.answers_file)
        except Exception as e:
            self._state = StoreState.READY
            duration = time.time() - start_time
            self.last_error = e
            if self._metrics is not None:
                self._metrics.record_reload(source, "error", duration)
            logger.log_reload(
                source=source,
                status="error",
                duration_ms=duration * 1000,
                error=str(e),
                error_type=type(e).__name__,
                path=str(self.answers_file),
            )
            if not isinstance(e, AnswersLoadError):
                logger.error("Unexpected reload failure", exc_info=True, source=source)
            raise

        duration = time.time() - start_time
        self._snapshot = versions
        self.reload_count += 1
        self.last_reload_at = time.time()
        self.last_error = None

        # Ready only once the new answers are published and reported
        try:
            if self._metrics is not None:
                self._metrics.record_reload(source, "success", duration, versions=len(versions))
            logger.log_reload(
                source=source,
                status="success",
                duration_ms=duration * 1000,
                versions=sorted(versions),
                path=str(self.answers_file),
            )
        finally:
            self._state = StoreState.READY
        return versions
