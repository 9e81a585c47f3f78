# tests/test_process_supervisor.py
import os
import sys
import threading

import pytest

from connectors.errors import LaunchError
from supervisor import ProcessState, ProcessSupervisor, ReadinessLatch

posix_only = pytest.mark.skipif(os.name != "posix", reason="process groups are POSIX only")


def _python(code):
    return [sys.executable, "-c", code]


def test_clean_exit_ends_stopped():
    supervisor = ProcessSupervisor()
    supervisor.start(_python("print('hello')"))
    assert supervisor.wait(timeout=30) == 0
    assert supervisor.state == ProcessState.STOPPED


def test_nonzero_exit_is_a_launch_error():
    supervisor = ProcessSupervisor()
    supervisor.start(_python("import sys; sys.exit(3)"))
    with pytest.raises(LaunchError) as exc:
        supervisor.wait(timeout=30)
    assert exc.value.exit_code == 3
    assert supervisor.state == ProcessState.FAILED


@pytest.mark.parametrize("kwargs", [{"daemon": True}, {"auto_deploy": True}])
def test_nonzero_exit_tolerated_in_daemon_and_auto_deploy(kwargs):
    supervisor = ProcessSupervisor(**kwargs)
    supervisor.start(_python("import sys; sys.exit(3)"))
    assert supervisor.wait(timeout=30) == 3
    assert supervisor.state == ProcessState.STOPPED


def test_unlaunchable_command():
    supervisor = ProcessSupervisor()
    with pytest.raises(LaunchError):
        supervisor.start(["/nonexistent/asadmin", "start-domain"])
    assert supervisor.state == ProcessState.FAILED


def test_stop_is_idempotent():
    supervisor = ProcessSupervisor()
    supervisor.start(_python("import time; time.sleep(60)"))
    first = supervisor.stop(grace_period=10)
    second = supervisor.stop(grace_period=10)
    assert first == second
    assert first is not None and first != 0
    assert supervisor.state == ProcessState.STOPPED
    assert not supervisor.process.is_alive()


def test_concurrent_stops_agree():
    supervisor = ProcessSupervisor()
    supervisor.start(_python("import time; time.sleep(60)"))
    results = []
    threads = [threading.Thread(target=lambda: results.append(supervisor.stop(grace_period=10))) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)
    assert len(results) == 4
    assert len(set(results)) == 1
    assert supervisor.state == ProcessState.STOPPED


def test_wait_after_stop_returns_without_raising():
    supervisor = ProcessSupervisor()
    supervisor.start(_python("import time; time.sleep(60)"))
    supervisor.stop(grace_period=10)
    assert supervisor.wait(timeout=5) is not None
    assert supervisor.state == ProcessState.STOPPED


@posix_only
def test_stop_escalates_to_kill():
    supervisor = ProcessSupervisor()
    managed = supervisor.start(_python(
        "import signal, sys, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "print('armed', flush=True)\n"
        "time.sleep(60)\n"
    ))
    assert managed.stdout.readline().strip() == b"armed"
    code = supervisor.stop(grace_period=0.5)
    assert code == -9
    assert supervisor.state == ProcessState.STOPPED


def test_readiness_latch_releases_once():
    latch = ReadinessLatch("startup time :")
    assert latch.offer("booting") is False
    assert latch.offer("Payara Server startup time : Embedded (1,234ms)") is True
    assert latch.offer("startup time : again") is False
    assert latch.wait(0)


def test_await_ready_sees_marker_from_output():
    supervisor = ProcessSupervisor()
    latch = supervisor.readiness_latch("startup time :")
    managed = supervisor.start(_python(
        "import time\n"
        "print('starting', flush=True)\n"
        "print('Server startup time : 10ms', flush=True)\n"
        "time.sleep(60)\n"
    ))

    def pump():
        for raw in iter(managed.stdout.readline, b""):
            latch.offer(raw.decode())

    threading.Thread(target=pump, daemon=True).start()
    try:
        assert supervisor.await_ready("startup time :", timeout=30) is True
    finally:
        supervisor.stop(grace_period=10)


def test_await_ready_returns_early_when_process_dies():
    supervisor = ProcessSupervisor(daemon=True)
    supervisor.start(_python("print('nothing to see')"))
    assert supervisor.await_ready("startup time :", timeout=30) is False
    supervisor.wait(timeout=10)
