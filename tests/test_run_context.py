# tests/test_run_context.py
import threading
from unittest.mock import MagicMock

from config.run_config import RunConfig
from orchestrator.run_context import RunContext


def _context(fake_manager, stop_process=True, alive=True):
    config = RunConfig.from_dict({"application": {"path": "shop.war", "instance": "server"}})
    parent = MagicMock()
    parent.manager = fake_manager
    supervisor = parent.supervisor
    supervisor.process.is_alive.return_value = alive
    context = RunContext(
        config,
        fake_manager,
        supervisor=supervisor,
        multiplexer=parent.multiplexer,
        orchestrator=parent.orchestrator,
        watcher=parent.watcher,
        stop_process=stop_process,
        grace_period=1,
    )
    return context, parent


def _names(parent):
    return [c[0] for c in parent.mock_calls if not c[0].startswith("supervisor.process")]


def test_release_order(fake_manager):
    context, parent = _context(fake_manager)
    context.release()
    assert _names(parent) == [
        "watcher.stop",
        "manager.undeploy",
        "supervisor.stop",
        "multiplexer.stop",
        "orchestrator.close_browser",
        "manager.close",
    ]
    fake_manager.undeploy.assert_called_once_with("shop", "server")
    assert context.cancel.is_set()
    assert context.released


def test_release_is_idempotent(fake_manager):
    context, parent = _context(fake_manager)
    context.release()
    context.release()
    assert parent.supervisor.stop.call_count == 1
    assert fake_manager.close.call_count == 1


def test_concurrent_release_runs_once(fake_manager):
    context, parent = _context(fake_manager)
    gate = threading.Event()
    parent.watcher.stop.side_effect = lambda: gate.wait(2)
    threads = [threading.Thread(target=context.release) for _ in range(3)]
    for t in threads:
        t.start()
    gate.set()
    for t in threads:
        t.join(5)
    assert parent.watcher.stop.call_count == 1
    assert parent.supervisor.stop.call_count == 1


def test_daemon_run_leaves_the_server_running(fake_manager):
    context, parent = _context(fake_manager, stop_process=False)
    context.release()
    parent.supervisor.stop.assert_not_called()
    fake_manager.undeploy.assert_not_called()
    parent.multiplexer.stop.assert_called_once_with(timeout=0)


def test_no_undeploy_when_process_is_gone(fake_manager):
    context, parent = _context(fake_manager, alive=False)
    context.release()
    fake_manager.undeploy.assert_not_called()
    parent.supervisor.stop.assert_called_once_with(1)


def test_failing_step_does_not_block_the_rest(fake_manager):
    context, parent = _context(fake_manager)
    parent.supervisor.stop.side_effect = RuntimeError("stuck")
    context.release()
    parent.multiplexer.stop.assert_called_once_with()
    fake_manager.close.assert_called_once_with()
