# orchestrator/run_context.py
"""
RunContext: everything one supervised run owns, and the single routine
that releases it.

release() can be reached from the `exit` command, the signal handler and
the run's own `finally`, possibly at the same time. Only the first call
does the work; later calls wait for it to finish and return.
"""

import logging
import threading
from typing import Optional

from supervisor.process_supervisor import DEFAULT_GRACE_PERIOD

logger = logging.getLogger("serverpilot.run")


class RunContext:
    def __init__(
        self,
        config,
        manager,
        supervisor=None,
        multiplexer=None,
        orchestrator=None,
        watcher=None,
        cancel: Optional[threading.Event] = None,
        stop_process: bool = True,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ):
        self.config = config
        self.manager = manager
        self.supervisor = supervisor
        self.multiplexer = multiplexer
        self.orchestrator = orchestrator
        self.watcher = watcher
        self.cancel = cancel or threading.Event()
        self.stop_process = stop_process
        self.grace_period = grace_period
        self._release_lock = threading.Lock()
        self._released = threading.Event()
        self._releasing = False

    @property
    def released(self) -> bool:
        return self._released.is_set()

    def _process_alive(self) -> bool:
        process = self.supervisor.process if self.supervisor is not None else None
        return process is not None and process.is_alive()

    def release(self) -> None:
        with self._release_lock:
            if self._releasing:
                owner = False
            else:
                self._releasing = True
                owner = True
        if not owner:
            self._released.wait(self.grace_period + 10)
            return

        try:
            self.cancel.set()
            self._step("stop auto-deploy watcher", self._stop_watcher)
            if self.stop_process:
                self._step("undeploy application", self._undeploy_if_running)
                self._step("stop server process", self._stop_process)
            self._step("stop log readers", self._stop_readers)
            self._step("close browser", self._close_browser)
            self._step("close instance manager", self.manager.close)
        finally:
            self._released.set()
            logger.debug("Run resources released")

    def _step(self, name: str, action) -> None:
        try:
            action()
        except Exception:
            logger.exception("Failed to %s", name)

    def _stop_watcher(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()

    def _undeploy_if_running(self) -> None:
        if not self.manager.is_local or not self._process_alive():
            return
        app = self.config.application
        if app.name:
            self.manager.undeploy(app.name, app.instance)

    def _stop_process(self) -> None:
        if self.supervisor is not None:
            self.supervisor.stop(self.grace_period)

    def _stop_readers(self) -> None:
        if self.multiplexer is None:
            return
        if self.stop_process:
            self.multiplexer.stop()
        else:
            # Pipes of a server left running never reach EOF
            self.multiplexer.stop(timeout=0)

    def _close_browser(self) -> None:
        if self.orchestrator is not None:
            self.orchestrator.close_browser()
