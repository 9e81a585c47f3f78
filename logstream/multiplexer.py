# logstream/multiplexer.py
"""
Log Stream Multiplexer.

Consumes any number of line sources (child pipes, the server log file, the
remote view-log endpoint), one thread per source. Every line goes through
the same pipeline:

  1. optional trim, then the sink (console by default)
  2. trigger patterns, first match wins (deployment failed / deployed /
     file-watch limit)
  3. readiness latch, when the run is waiting for the server to come up

A failing callback is logged and the line is dropped from further
processing; the reader keeps going.
"""

import logging
import sys
import threading
from typing import Callable, List, Optional, Tuple

from connectors.schema import LogEvent
from logstream.log_trim import trim_log
from logstream.tailers import BaseLogReader
from supervisor.process_supervisor import ReadinessLatch

logger = logging.getLogger("serverpilot.logstream")

JOIN_TIMEOUT = 5.0

Sink = Callable[[str], None]
Trigger = Callable[[str], None]


def console_sink(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


class LogStreamMultiplexer:
    def __init__(
        self,
        sink: Optional[Sink] = None,
        trim: bool = False,
        latch: Optional[ReadinessLatch] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.sink = sink or console_sink
        self.trim = trim
        self.latch = latch
        self.cancel = cancel or threading.Event()
        self._triggers: List[Tuple[str, Trigger]] = []
        self._threads: List[threading.Thread] = []
        self._sink_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------
    def add_trigger(self, marker: Optional[str], callback: Trigger) -> None:
        """Register callback for lines containing marker. Order matters."""
        if marker:
            self._triggers.append((marker, callback))

    def attach(self, reader: BaseLogReader) -> threading.Thread:
        reader.attach()
        thread = threading.Thread(
            target=self._run_reader,
            args=(reader,),
            name=f"log-{reader.name}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()
        logger.debug("Attached %s log reader", reader.name)
        return thread

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _run_reader(self, reader: BaseLogReader) -> None:
        try:
            reader.run(self.handle, self.cancel)
        except Exception:
            logger.exception("Log reader %s stopped unexpectedly", reader.name)

    def handle(self, event: LogEvent) -> None:
        line = event.line
        try:
            text = trim_log(line) if self.trim else line
            with self._sink_lock:
                self.sink(text)

            for marker, callback in self._triggers:
                if marker in line:
                    callback(line)
                    break

            if self.latch is not None and not self.latch.is_set():
                if self.latch.offer(line):
                    logger.debug("Readiness marker seen on %s", event.source.value)
        except Exception:
            logger.exception("Error while processing %s line", event.source.value)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------
    def stop(self, timeout: float = JOIN_TIMEOUT) -> None:
        """Cancel all readers and wait briefly for their threads."""
        self.cancel.set()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current and thread.is_alive():
                thread.join(timeout)
