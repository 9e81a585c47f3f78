# logstream/tailers.py
"""
Line sources for the log multiplexer.

Each reader runs on its own thread (started by the multiplexer) and pushes
LogEvents through `emit` until its input ends or `cancel` is set.
"""

import logging
import os
import threading
from typing import IO, Callable, Optional

from connectors.errors import NetworkError
from connectors.schema import LogEvent, LogSource

logger = logging.getLogger("serverpilot.logstream")

FILE_POLL_INTERVAL = 1.0
REMOTE_POLL_INTERVAL = 2.0

Emit = Callable[[LogEvent], None]


class BaseLogReader:
    source: LogSource = LogSource.STDOUT

    def attach(self) -> None:
        """Called once, on the caller's thread, before run() starts."""

    def run(self, emit: Emit, cancel: threading.Event) -> None:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return self.source.value


# ----------------------------------------------------------------------
# Child process pipes
# ----------------------------------------------------------------------
class PipeReader(BaseLogReader):
    """Reads a child's stdout/stderr until EOF."""

    def __init__(self, stream: IO[bytes], source: LogSource = LogSource.STDOUT, encoding: str = "utf-8"):
        self.stream = stream
        self.source = source
        self.encoding = encoding

    def run(self, emit: Emit, cancel: threading.Event) -> None:
        try:
            for raw in iter(self.stream.readline, b""):
                if cancel.is_set():
                    break
                line = raw.decode(self.encoding, errors="replace") if isinstance(raw, bytes) else raw
                emit(LogEvent(line.rstrip("\r\n"), self.source))
        except (ValueError, OSError):
            # Stream closed underneath us during shutdown
            logger.debug("%s stream closed", self.source.value)


# ----------------------------------------------------------------------
# Local log file
# ----------------------------------------------------------------------
class FileTailer(BaseLogReader):
    """
    Follows a growing file from the position it had at attach time.

    Zero-length reads mean "no data yet": the tailer sleeps for
    poll_interval and tries again until cancelled. A file that shrinks
    (rotation) is reopened from the beginning.
    """

    source = LogSource.FILE

    def __init__(self, path: str, poll_interval: float = FILE_POLL_INTERVAL, encoding: str = "utf-8"):
        self.path = str(path)
        self.poll_interval = poll_interval
        self.encoding = encoding
        self._start_offset: Optional[int] = None

    def attach(self) -> None:
        try:
            self._start_offset = os.path.getsize(self.path)
        except OSError:
            # Not created yet: everything written later is new
            self._start_offset = 0

    def run(self, emit: Emit, cancel: threading.Event) -> None:
        if self._start_offset is None:
            self.attach()

        fh = None
        pending = ""
        try:
            while not cancel.is_set():
                if fh is None:
                    fh = self._open()
                    if fh is None:
                        cancel.wait(self.poll_interval)
                        continue

                chunk = fh.readline()
                if chunk:
                    pending += chunk
                    if pending.endswith("\n"):
                        emit(LogEvent(pending.rstrip("\r\n"), self.source))
                        pending = ""
                    continue

                if self._rotated(fh):
                    logger.debug("%s was truncated; reopening", self.path)
                    fh.close()
                    fh = None
                    self._start_offset = 0
                    continue
                cancel.wait(self.poll_interval)
        finally:
            if fh is not None:
                fh.close()

    def _open(self):
        try:
            fh = open(self.path, "r", encoding=self.encoding, errors="replace")
        except OSError:
            return None
        fh.seek(self._start_offset or 0)
        return fh

    def _rotated(self, fh) -> bool:
        try:
            return os.path.getsize(self.path) < fh.tell()
        except OSError:
            return False


# ----------------------------------------------------------------------
# Remote log endpoint
# ----------------------------------------------------------------------
class RemoteLogPoller(BaseLogReader):
    """Polls manager.fetch_logs() on a fixed interval."""

    source = LogSource.REMOTE

    def __init__(self, manager, instance_id: Optional[str] = None, interval: float = REMOTE_POLL_INTERVAL):
        self.manager = manager
        self.instance_id = instance_id
        self.interval = interval

    def poll_once(self, emit: Emit) -> int:
        """Fetch once and emit each new line. Returns the number of lines."""
        try:
            text = self.manager.fetch_logs(self.instance_id)
        except NetworkError as e:
            logger.debug("Remote log fetch failed: %s", e)
            return 0
        if not text:
            return 0
        count = 0
        for line in text.splitlines():
            emit(LogEvent(line, self.source))
            count += 1
        return count

    def run(self, emit: Emit, cancel: threading.Event) -> None:
        while not cancel.is_set():
            self.poll_once(emit)
            cancel.wait(self.interval)
