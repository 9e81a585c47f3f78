# supervisor/process_supervisor.py
"""Process Supervisor: owns the server child process, its streams, and its termination."""

from __future__ import annotations

import logging
import os
import re
import signal
import subprocess
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import IO, Dict, List, Optional

from connectors.errors import LaunchError

logger = logging.getLogger("serverpilot.supervisor")

DEFAULT_GRACE_PERIOD = 15.0
KILL_WAIT = 5.0


class ProcessState(str, Enum):
    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL_STATES = (ProcessState.STOPPED, ProcessState.FAILED)


@dataclass
class ManagedProcess:
    """One OS child process plus its standard streams."""

    command: List[str]
    pid: Optional[int] = None
    exit_code: Optional[int] = None
    start_time: float = field(default_factory=time.time)
    stop_time: Optional[float] = None
    _popen: Optional[subprocess.Popen] = field(default=None, repr=False)
    _streams_closed: bool = field(default=False, repr=False)

    @property
    def stdout(self) -> Optional[IO[bytes]]:
        return self._popen.stdout if self._popen else None

    @property
    def stderr(self) -> Optional[IO[bytes]]:
        return self._popen.stderr if self._popen else None

    def is_alive(self) -> bool:
        return self._popen is not None and self._popen.poll() is None

    def close_streams(self) -> None:
        if self._streams_closed or self._popen is None:
            return
        self._streams_closed = True
        for stream in (self._popen.stdout, self._popen.stderr, self._popen.stdin):
            if stream is None:
                continue
            try:
                stream.close()
            except (OSError, ValueError):
                pass


class ReadinessLatch:
    """Released exactly once, by the first line matching the readiness marker."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self._regex = re.compile(re.escape(pattern))
        self._event = threading.Event()
        self._lock = threading.Lock()

    def offer(self, line: str) -> bool:
        """True only for the line that released the latch."""
        if self._event.is_set() or not self._regex.search(line):
            return False
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def is_set(self) -> bool:
        return self._event.is_set()


class ProcessSupervisor:
    """
    Spawns and terminates the one server process of a run.

    stop() may be called from any thread, any number of times, including
    concurrently with wait(); only the first caller sends signals.
    """

    def __init__(self, daemon: bool = False, auto_deploy: bool = False):
        self.daemon = daemon
        self.auto_deploy = auto_deploy
        self.process: Optional[ManagedProcess] = None
        self._state = ProcessState.NOT_STARTED
        self._lock = threading.RLock()
        self._stopped = threading.Event()
        self._latch: Optional[ReadinessLatch] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> ProcessState:
        with self._lock:
            return self._state

    def _transition(self, new_state: ProcessState) -> None:
        with self._lock:
            if self._state != new_state:
                logger.debug("Process state %s -> %s", self._state.value, new_state.value)
                self._state = new_state

    @property
    def tolerates_nonzero_exit(self) -> bool:
        return self.daemon or self.auto_deploy

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------
    def start(
        self,
        command: List[str],
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
    ) -> ManagedProcess:
        with self._lock:
            if self._state not in (ProcessState.NOT_STARTED,) + TERMINAL_STATES:
                raise LaunchError(f"Process already {self._state.value}")
            self._state = ProcessState.STARTING
            self._stopped.clear()

        spawn_env = os.environ.copy()
        if env:
            spawn_env.update(env)

        managed = ManagedProcess(command=list(command))
        logger.info("Starting server with these arguments: %s", " ".join(command))
        try:
            popen = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                cwd=cwd,
                env=spawn_env,
                # Own process group so the whole server tree can be signalled
                start_new_session=(os.name == "posix"),
            )
        except (OSError, ValueError) as e:
            self._transition(ProcessState.FAILED)
            self._stopped.set()
            raise LaunchError(f"Failed to start {command[0]}: {e}") from e

        managed._popen = popen
        managed.pid = popen.pid
        with self._lock:
            self.process = managed
            self._state = ProcessState.RUNNING
        return managed

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------
    def readiness_latch(self, pattern: str) -> ReadinessLatch:
        """The latch for pattern; create it before output starts flowing."""
        with self._lock:
            if self._latch is None or self._latch.pattern != pattern:
                self._latch = ReadinessLatch(pattern)
            return self._latch

    def await_ready(self, pattern: str, timeout: float) -> bool:
        """
        Block until the readiness marker is seen or timeout elapses.

        Advisory: on timeout the process keeps running and False is
        returned. Returns early (False) if the process exits first.
        """
        latch = self.readiness_latch(pattern)
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning("Server did not report readiness within %.0fs; continuing", timeout)
                return False
            if latch.wait(min(0.5, remaining)):
                return True
            if self.process is not None and not self.process.is_alive():
                return latch.is_set()

    # ------------------------------------------------------------------
    # Wait / stop
    # ------------------------------------------------------------------
    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """
        Block until the process exits and apply the exit-code policy.
        Raises LaunchError for a non-zero exit outside daemon/auto-deploy mode.
        """
        managed = self.process
        if managed is None or managed._popen is None:
            return None
        try:
            code = managed._popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None

        with self._lock:
            if managed.exit_code is None:
                managed.exit_code = code
                managed.stop_time = time.time()
            if self._state in (ProcessState.STOPPING, ProcessState.STOPPED):
                # Exit was requested through stop()
                return code
            if code == 0 or self.tolerates_nonzero_exit:
                if code != 0:
                    logger.warning("Server exited with code %s (tolerated in daemon/auto-deploy mode)", code)
                self._state = ProcessState.STOPPED
                self._stopped.set()
                return code
            self._state = ProcessState.FAILED
            self._stopped.set()
        raise LaunchError("Errors occurred while executing the server.", exit_code=code)

    def stop(self, grace_period: float = DEFAULT_GRACE_PERIOD) -> Optional[int]:
        """
        SIGTERM the process group, wait up to grace_period, then SIGKILL.
        Repeated and concurrent calls are no-ops returning the exit code.
        """
        with self._lock:
            managed = self.process
            if managed is None or self._state in TERMINAL_STATES:
                return managed.exit_code if managed else None
            if self._state == ProcessState.STOPPING:
                owner = False
            else:
                self._state = ProcessState.STOPPING
                owner = True

        if not owner:
            self._stopped.wait(grace_period + KILL_WAIT)
            return managed.exit_code

        popen = managed._popen
        try:
            if popen is not None and popen.poll() is None:
                logger.info("Stopping server (pid=%s)", managed.pid)
                _send_signal(popen, signal.SIGTERM)
                try:
                    popen.wait(timeout=grace_period)
                except subprocess.TimeoutExpired:
                    logger.warning("Server did not stop within %.0fs; killing it", grace_period)
                    _send_signal(popen, getattr(signal, "SIGKILL", signal.SIGTERM))
                    try:
                        popen.wait(timeout=KILL_WAIT)
                    except subprocess.TimeoutExpired:
                        logger.error("Server process %s survived SIGKILL", managed.pid)
        finally:
            with self._lock:
                if popen is not None and managed.exit_code is None:
                    managed.exit_code = popen.poll()
                managed.stop_time = managed.stop_time or time.time()
                self._state = ProcessState.STOPPED
            managed.close_streams()
            self._stopped.set()
            logger.info("Terminated server process.")
        return managed.exit_code


def _send_signal(popen: subprocess.Popen, sig) -> None:
    """Signal the child's process group (POSIX) or the child itself."""
    try:
        if os.name == "posix":
            os.killpg(os.getpgid(popen.pid), sig)
        elif sig == signal.SIGTERM:
            popen.terminate()
        else:
            popen.kill()
    except (ProcessLookupError, PermissionError, OSError):
        # Already gone
        pass
