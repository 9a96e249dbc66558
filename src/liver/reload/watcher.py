"""
File watcher for the source root, built on watchdog.

A single observer watches the root recursively. Whoever calls ``register``
last owns the broadcast hook; re-registering only swaps the hook.
"""

import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileClosedEvent, FileModifiedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.utils import platform

from liver.core.exceptions import WatchError
from liver.utils.logging_config import StructuredLogger

ChangeHook = Callable[[str], None]

logger = StructuredLogger(__name__)


class ReloadEventHandler(FileSystemEventHandler):
    """Forwards content writes to the currently installed hook.

    Where the backend reports close-after-write (inotify), that event is the
    only trigger: it fires once per write session and never for chmod or
    utime. Elsewhere modification events are used instead.
    """

    def __init__(self, watcher: "FileWatcher", use_close_events: Optional[bool] = None):
        self._watcher = watcher
        if use_close_events is None:
            use_close_events = platform.is_linux()
        self.use_close_events = use_close_events

    def on_closed(self, event: FileSystemEvent):
        if self.use_close_events and isinstance(event, FileClosedEvent) and not event.is_directory:
            self._fire(event.src_path)

    def on_modified(self, event: FileSystemEvent):
        if not self.use_close_events and isinstance(event, FileModifiedEvent) and not event.is_directory:
            self._fire(event.src_path)

    def _fire(self, src_path: str) -> None:
        hook = self._watcher.current_hook()
        if hook is None:
            return

        logger.debug(f"Detected change in {src_path}", src_path=src_path)
        try:
            hook(src_path)
        except Exception:
            # Keep the observer thread alive for the next event
            logger.error("Change hook failed", src_path=src_path, exc_info=True)


class FileWatcher:
    """Owns the watchdog observer and the single broadcast hook slot."""

    def __init__(self, source_root):
        self.source_root = Path(source_root)
        self.handler = ReloadEventHandler(self)
        self._observer: Optional[Observer] = None
        self._hook: Optional[ChangeHook] = None
        self._lock = threading.Lock()

    @property
    def is_watching(self) -> bool:
        with self._lock:
            return self._observer is not None and self._observer.is_alive()

    def current_hook(self) -> Optional[ChangeHook]:
        with self._lock:
            return self._hook

    def register(self, hook: ChangeHook) -> None:
        """Install ``hook`` and start watching the root if not already watching.

        Safe to call repeatedly; later calls replace the hook.
        """
        with self._lock:
            if self._observer is None:
                self._observer = self._start_observer()
            self._hook = hook

    def _start_observer(self) -> Observer:
        root = str(self.source_root)
        if not self.source_root.is_dir():
            raise WatchError(root, "source root does not exist or is not a directory")

        observer = Observer()
        try:
            observer.schedule(self.handler, root, recursive=True)
            observer.start()
        except OSError as e:
            # inotify watch limits and vanished paths end up here
            raise WatchError(root, str(e), original_error=e)

        logger.info(f"Watching {root} for changes", source_root=root)
        return observer

    def stop(self) -> None:
        with self._lock:
            observer, self._observer = self._observer, None
            self._hook = None
        if observer is not None:
            observer.stop()
            observer.join()
