# orchestrator/auto_deploy.py
"""
Auto-deploy: redeploy the application whenever its exploded build
directory changes.

File events arrive in bursts while a build writes classes and resources,
so they are debounced: a redeploy runs once the directory has been quiet
for `debounce` seconds.
"""

import logging
import threading
import time
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger("serverpilot.auto_deploy")

DEFAULT_DEBOUNCE = 1.0
WATCH_SERVICE_ERROR_MESSAGE = (
    "File watch limit reached; auto-deploy cannot observe all changes. "
    "Increase fs.inotify.max_user_watches (e.g. sysctl fs.inotify.max_user_watches=524288)."
)
IGNORED_SUFFIXES = (".swp", ".tmp", "~", ".part")


class _RedeployEventHandler(FileSystemEventHandler):
    """Records the time of the latest relevant change."""

    def __init__(self, watcher: "AutoDeployWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent):
        path = str(getattr(event, "dest_path", "") or event.src_path)
        if path.endswith(IGNORED_SUFFIXES):
            return
        self.watcher.notify_change(path)


class AutoDeployWatcher:
    def __init__(
        self,
        directory: str,
        on_change: Callable[[], object],
        debounce: float = DEFAULT_DEBOUNCE,
    ):
        self.directory = str(directory)
        self.on_change = on_change
        self.debounce = debounce
        self.deploy_count = 0
        self._observer: Optional[Observer] = None
        self._stopped = threading.Event()
        self._changed = threading.Event()
        self._last_change = 0.0
        self._lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> bool:
        """Start watching. Returns False when the watch could not be set up."""
        observer = Observer()
        handler = _RedeployEventHandler(self)
        try:
            observer.schedule(handler, self.directory, recursive=True)
            observer.start()
        except OSError as e:
            if "inotify" in str(e).lower() or getattr(e, "errno", None) == 28:
                logger.error(WATCH_SERVICE_ERROR_MESSAGE)
            else:
                logger.error("Unable to watch %s: %s", self.directory, e)
            return False

        self._observer = observer
        self._worker = threading.Thread(target=self._run, name="auto-deploy", daemon=True)
        self._worker.start()
        logger.info("Watching %s for changes", self.directory)
        return True

    def stop(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        self._changed.set()
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
        if self._worker is not None and self._worker is not threading.current_thread():
            self._worker.join(timeout=5)

    @property
    def is_alive(self) -> bool:
        return not self._stopped.is_set() and self._worker is not None and self._worker.is_alive()

    # ------------------------------------------------------------------
    # Debounce
    # ------------------------------------------------------------------
    def notify_change(self, path: str) -> None:
        logger.debug("Change detected: %s", path)
        with self._lock:
            self._last_change = time.monotonic()
        self._changed.set()

    def _quiet_for(self) -> float:
        with self._lock:
            return time.monotonic() - self._last_change

    def _run(self) -> None:
        while not self._stopped.is_set():
            if not self._changed.wait(0.5):
                continue
            self._changed.clear()
            # Wait until the burst of events is over
            while not self._stopped.is_set() and self._quiet_for() < self.debounce:
                self._stopped.wait(self.debounce - self._quiet_for())
            if self._stopped.is_set():
                break
            self.redeploy()

    def redeploy(self) -> None:
        logger.info("Auto-deploying the application")
        try:
            self.on_change()
            self.deploy_count += 1
        except Exception:
            logger.exception("Auto-deploy failed")
