"""Incremental tailing of an append-only log file."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from dumper_runner.config import TailSettings

logger = logging.getLogger(__name__)

_LOCK_RETRY_INITIAL_DELAY_SECONDS = 0.05


@dataclass(slots=True)
class TailState:
    """Read progress; owned by the tailer thread."""

    last_read_line_count: int = 0
    stalls: int = 0


class FileChangeWatcher(FileSystemEventHandler):
    """Forwards filesystem write notifications for one path.

    The parent directory is watched so that a file that does not exist yet
    is reported once it is created.
    """

    _WRITE_EVENTS = frozenset(
        {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED},
    )

    def __init__(self, path: Path, on_change: Callable[[], None]) -> None:
        super().__init__()
        self._path = path
        self._target = os.path.realpath(path)
        self._on_change = on_change
        self._lock = threading.Lock()
        self._observer: BaseObserver | None = None

    def start(self) -> None:
        with self._lock:
            if self._observer is not None:
                return
            observer = Observer()
            observer.schedule(self, str(self._path.parent), recursive=False)
            observer.daemon = True
            observer.start()
            self._observer = observer

    def stop(self) -> None:
        with self._lock:
            observer = self._observer
            if observer is None or not observer.is_alive():
                return
            observer.stop()
        if observer is not threading.current_thread():
            observer.join(timeout=5)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in self._WRITE_EVENTS:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(path and os.path.realpath(os.fsdecode(path)) == self._target for path in paths):
            self._on_change()


class LogTailer:
    """Surfaces newly appended complete lines of a single text file.

    Each filesystem change notification triggers a full re-read from the
    last delivered line, so notification bursts coalesce into one batch.
    ``quiet_seconds`` without a notification counts as a read without growth. ``stall_threshold`` consecutive reads without
    growth call ``on_stalled`` once and end tailing. A file locked by its
    writer is re-read with backoff and never counts as a stall.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        stall_threshold: int = 5,
        stall_delay_seconds: float = 0.5,
        quiet_seconds: float = 2.0,
        lock_retry_max_delay_seconds: float = 1.0,
        encoding: str = "utf-8",
    ) -> None:
        self._stall_threshold = stall_threshold
        self._stall_delay = stall_delay_seconds
        self._quiet_seconds = quiet_seconds
        self._lock_retry_max_delay = lock_retry_max_delay_seconds
        self._encoding = encoding
        self._lock = threading.Lock()
        self._wakeup = threading.Event()
        self._stop = threading.Event()
        self._flush_on_stop = False
        self._thread: threading.Thread | None = None
        self._watcher: FileChangeWatcher | None = None
        self._state = TailState()

    @classmethod
    def from_settings(cls, settings: TailSettings) -> LogTailer:
        return cls(
            stall_threshold=settings.stall_threshold,
            stall_delay_seconds=settings.stall_delay_seconds,
            quiet_seconds=settings.quiet_seconds,
            lock_retry_max_delay_seconds=settings.lock_retry_max_delay_seconds,
        )

    def start(
        self,
        path: Path,
        on_lines: Callable[[list[str]], None],
        on_stalled: Callable[[], None],
        on_finished: Callable[[], None] | None = None,
    ) -> None:
        """Begin watching ``path``; callbacks run on the tailer thread."""

        if self._thread is not None:
            raise RuntimeError("LogTailer instances are single-use")
        self._path = Path(path)
        self._on_lines = on_lines
        self._on_stalled = on_stalled
        self._on_finished = on_finished
        self._watcher = FileChangeWatcher(self._path, self._wakeup.set)
        self._watcher.start()
        self._thread = threading.Thread(target=self._run, daemon=True, name="dumper-log-tailer")
        self._thread.start()
        logger.debug("Tailing %s", self._path)

    def stop(self) -> None:
        """Stop without a final read. Idempotent."""

        self._halt(flush=False)

    def finish(self) -> None:
        """Deliver whatever is left in the file, then stop."""

        self._halt(flush=True)

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    @property
    def line_count(self) -> int:
        return self._state.last_read_line_count

    def _halt(self, *, flush: bool) -> None:
        with self._lock:
            if self._stop.is_set():
                return
            self._flush_on_stop = flush
            self._stop.set()
        self._wakeup.set()

    def _claim_stall(self) -> bool:
        with self._lock:
            if self._stop.is_set():
                return False
            self._stop.set()
            return True

    def _run(self) -> None:
        try:
            while not self._stop.is_set():
                self._wakeup.wait(timeout=self._quiet_seconds)
                if self._stop.is_set():
                    break
                self._wakeup.clear()
                if self._deliver_new_lines(final=False):
                    continue

                self._state.stalls += 1
                logger.debug(
                    "No new output in %s (stall %d/%d)",
                    self._path,
                    self._state.stalls,
                    self._stall_threshold,
                )
                if self._state.stalls >= self._stall_threshold:
                    if self._claim_stall():
                        logger.info("Log %s stalled after %d reads", self._path, self._state.stalls)
                        self._on_stalled()
                    break
                self._stop.wait(self._stall_delay)

            if self._flush_on_stop:
                self._deliver_new_lines(final=True)
        except Exception:
            logger.exception("Log tailer failed on %s", self._path)
        finally:
            if self._watcher is not None:
                self._watcher.stop()
            if self._on_finished is not None:
                self._on_finished()

    def _deliver_new_lines(self, *, final: bool) -> bool:
        lines = self._read_lines(include_partial=final)
        already_read = self._state.last_read_line_count
        if len(lines) <= already_read:
            return False
        batch = lines[already_read:]
        self._state.last_read_line_count = len(lines)
        self._state.stalls = 0
        self._on_lines(batch)
        return True

    def _read_lines(self, *, include_partial: bool) -> list[str]:
        delay = _LOCK_RETRY_INITIAL_DELAY_SECONDS
        while True:
            try:
                content = self._path.read_text(encoding=self._encoding, errors="replace")
                break
            except FileNotFoundError:
                return []
            except OSError as error:
                if self._stop.is_set() and not include_partial:
                    return []
                logger.debug("Log %s is busy (%s), retrying in %.2fs", self._path, error, delay)
                time.sleep(delay)
                delay = min(delay * 2, self._lock_retry_max_delay)

        parts = content.split("\n")
        trailing = parts.pop()
        if include_partial and trailing:
            parts.append(trailing)
        return parts
