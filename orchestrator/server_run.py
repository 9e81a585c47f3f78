# orchestrator/server_run.py
import os
import sys
import signal
import logging
import logging.handlers
import threading
from pathlib import Path
from typing import Optional

from browser.browser_session import create_browser_session
from browser.last_page import LastPageStore
from client.assistant_client import get_assistant_client
from config.run_config import RunConfig
from connectors.errors import ConfigurationError, LaunchError
from connectors.registry import create_instance_manager
from connectors.schema import LogSource
from logstream.multiplexer import LogStreamMultiplexer
from logstream.tailers import FileTailer, PipeReader, RemoteLogPoller
from orchestrator.auto_deploy import AutoDeployWatcher, WATCH_SERVICE_ERROR_MESSAGE
from orchestrator.deployment_orchestrator import DeploymentOrchestrator
from orchestrator.run_context import RunContext
from orchestrator.server_source import resolve_server_source
from router.command_router import CommandRouter
from supervisor.process_supervisor import ProcessSupervisor
from utils.print_utils import divider


# ================================================================
# >>>> Central logging setup
# ================================================================
LOG_DIR = Path("logs")
LOG_FILE = LOG_DIR / "serverpilot.log"

REMOTE_INSTANCE_NOT_RUNNING_MESSAGE = "Remote instance is not running or not reachable."


def configure_root_logger(level=None):
    level = level or logging.getLevelName(os.environ.get("SERVERPILOT_LOG_LEVEL", "INFO").upper())
    logger = logging.getLogger("serverpilot")

    if logger.handlers:
        return logger        # Already set up

    logger.setLevel(level)
    fmt = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
    formatter = logging.Formatter(fmt)

    # File handler
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    fh = logging.handlers.RotatingFileHandler(
        filename=str(LOG_FILE),
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8"
    )
    fh.setFormatter(formatter)
    fh.setLevel(level)
    logger.addHandler(fh)

    # Console handler
    ch = logging.StreamHandler(stream=sys.stdout)
    ch.setFormatter(formatter)
    ch.setLevel(level)
    logger.addHandler(ch)

    logger.propagate = False
    return logger


logger = logging.getLogger("serverpilot.run")


# ================================================================
# Signal handling (installed once per process)
# ================================================================
_signal_lock = threading.Lock()
_signals_installed = False
_active_context: Optional[RunContext] = None


def _handle_signal(signum, frame):
    context = _active_context
    if context is None:
        raise KeyboardInterrupt
    logger.info("Received signal %s, shutting down", signum)
    # The main thread may be inside Popen.wait(); release from another thread
    threading.Thread(target=context.release, name="shutdown", daemon=True).start()


def install_signal_handlers(context: RunContext) -> None:
    global _signals_installed, _active_context
    with _signal_lock:
        _active_context = context
        if _signals_installed or threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGINT, _handle_signal)
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, _handle_signal)
        _signals_installed = True


def clear_signal_context(context: RunContext) -> None:
    global _active_context
    with _signal_lock:
        if _active_context is context:
            _active_context = None


# ================================================================
# Run lifecycle
# ================================================================
class ServerRun:
    """
    One supervised run: resolve the server, start (or attach to) it, deploy
    the application, stream logs, and serve interactive commands until
    the server exits or the operator types `exit`.
    """

    def __init__(self, config: RunConfig, input_lines=None, sink=None):
        self.config = config
        self.input_lines = input_lines
        self.sink = sink
        self.context: Optional[RunContext] = None

    # ------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------
    def build_manager(self):
        config = self.config
        if config.server.is_local:
            install_path = resolve_server_source(config.server.source)
            logger.info("Using server installation %s", install_path)
            return create_instance_manager("local", config.descriptor, config.local_server(install_path))
        return create_instance_manager("remote", config.descriptor)

    def build_orchestrator(self, manager) -> DeploymentOrchestrator:
        app = self.config.require_application()
        return DeploymentOrchestrator(
            manager,
            self.config.descriptor,
            app_name=app.name,
            artifact_path=app.path,
            instance_id=app.instance,
            context_root=app.context_root,
            exploded=app.exploded,
            hot_deploy=app.hot_deploy,
            browser_factory=create_browser_session if self.config.run.browser else None,
            page_store=LastPageStore() if self.config.run.browser else None,
        )

    def _wire_triggers(self, multiplexer: LogStreamMultiplexer, orchestrator: DeploymentOrchestrator) -> None:
        run, markers = self.config.run, self.config.markers
        if not run.live_reload:
            return
        multiplexer.add_trigger(markers.deploy_failed, orchestrator.on_deployment_failed)
        multiplexer.add_trigger(markers.deployed, orchestrator.on_deployed)
        if run.auto_deploy:
            multiplexer.add_trigger(markers.watch_limit, lambda line: logger.error(WATCH_SERVICE_ERROR_MESSAGE))

    def _start_watcher(self, orchestrator: DeploymentOrchestrator) -> Optional[AutoDeployWatcher]:
        app = self.config.application
        directory = app.exploded_path or (app.path if app.path and os.path.isdir(app.path) else None)
        if not directory:
            logger.warning("Auto-deploy needs application.exploded_path; not watching")
            return None
        watcher = AutoDeployWatcher(directory, orchestrator.deploy_application)
        if not watcher.start():
            return None
        return watcher

    # ------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------
    def execute(self) -> int:
        config = self.config
        manager = self.build_manager()
        orchestrator = self.build_orchestrator(manager)
        supervisor = ProcessSupervisor(daemon=config.run.daemon, auto_deploy=config.run.auto_deploy)
        cancel = threading.Event()
        multiplexer = LogStreamMultiplexer(sink=self.sink, trim=config.run.trim_log, cancel=cancel)
        self._wire_triggers(multiplexer, orchestrator)

        context = RunContext(
            config,
            manager,
            supervisor=supervisor,
            multiplexer=multiplexer,
            orchestrator=orchestrator,
            cancel=cancel,
            stop_process=not config.run.daemon,
        )
        self.context = context
        install_signal_handlers(context)

        try:
            if manager.is_local:
                return self._run_local(context)
            return self._run_remote(context)
        finally:
            context.release()
            clear_signal_context(context)

    def _run_remote(self, context: RunContext) -> int:
        manager = context.manager
        if not manager.is_already_running():
            raise LaunchError(REMOTE_INSTANCE_NOT_RUNNING_MESSAGE)

        context.multiplexer.attach(RemoteLogPoller(manager, self.config.application.instance))
        self._deploy_and_serve(context)
        context.cancel.wait()
        return 0

    def _run_local(self, context: RunContext) -> int:
        config, manager = self.config, context.manager
        supervisor, multiplexer = context.supervisor, context.multiplexer

        if manager.is_already_running():
            logger.info("Server already running; streaming %s", manager.server.server_log_path)
            multiplexer.attach(FileTailer(str(manager.server.server_log_path)))
            self._deploy_and_serve(context)
            context.cancel.wait()
            return 0

        command, env = manager.build_start_command(
            debug=config.server.debug,
            debug_port=config.server.debug_port,
            jvm_options=config.server.jvm_options,
            server_options=config.server.server_options,
        )
        multiplexer.latch = supervisor.readiness_latch(config.markers.ready)
        process = supervisor.start(command, env=env)
        multiplexer.attach(PipeReader(process.stdout, LogSource.STDOUT))
        multiplexer.attach(PipeReader(process.stderr, LogSource.STDERR))

        if config.run.daemon and config.run.immediate_exit:
            logger.info("Server started in the background (pid=%s)", process.pid)
            return 0

        supervisor.await_ready(config.markers.ready, config.run.ready_timeout)
        if not process.is_alive():
            return supervisor.wait() or 0

        self._deploy_and_serve(context)
        if config.run.daemon:
            logger.info("Server running in the background (pid=%s)", process.pid)
            return 0
        code = supervisor.wait()
        # Shutdown requested by exit or a signal
        if context.cancel.is_set():
            return 0
        return code or 0

    def _deploy_and_serve(self, context: RunContext) -> None:
        """Deploy, open the application, start auto-deploy and the command loop."""
        orchestrator = context.orchestrator
        divider()
        orchestrator.open_if_already_running()
        orchestrator.deploy_application()

        if self.config.run.auto_deploy:
            context.watcher = self._start_watcher(orchestrator)

        if not self.config.run.daemon:
            router = CommandRouter(
                context.manager,
                self.config.application.name,
                orchestrator=orchestrator,
                assistant=get_assistant_client(self.config.assistant) if self.config.run.ai_agent else None,
                instance_id=self.config.application.instance,
                on_exit=context.release,
                max_child_depth=self.config.max_child_depth,
                cancel=context.cancel,
            )
            router.start(self.input_lines)


# ================================================================
# One-shot commands
# ================================================================
def run_deploy(config: RunConfig) -> int:
    manager = _connect(config)
    try:
        orchestrator = DeploymentOrchestrator(
            manager,
            config.descriptor,
            app_name=config.require_application().name,
            artifact_path=config.application.path,
            instance_id=config.application.instance,
            context_root=config.application.context_root,
            exploded=config.application.exploded,
            hot_deploy=config.application.hot_deploy,
        )
        resource = orchestrator.deploy_application()
        if resource is None or resource.url is None:
            return 1
        print(f"Deployed {resource.name}: {resource.url}")
        return 0
    finally:
        manager.close()


def run_undeploy(config: RunConfig) -> int:
    manager = _connect(config)
    try:
        app = config.application
        if not app.name:
            raise ConfigurationError("application.name is required")
        manager.undeploy(app.name, app.instance)
        print(f"Undeployed {app.name}")
        return 0
    finally:
        manager.close()


def run_status(config: RunConfig) -> int:
    manager = _connect(config, require_running=False)
    try:
        running = manager.is_already_running()
        print(f"Server {config.descriptor.admin_base_url}: {'running' if running else 'not running'}")
        if not running:
            return 1
        for name, resource in sorted(manager.list_applications().items()):
            print(f"  {name:<30} {resource.status or 'UNKNOWN':<10} {resource.url or ''}")
        return 0
    finally:
        manager.close()


def _connect(config: RunConfig, require_running: bool = True):
    if config.server.is_local:
        install_path = resolve_server_source(config.server.source)
        manager = create_instance_manager("local", config.descriptor, config.local_server(install_path))
    else:
        manager = create_instance_manager("remote", config.descriptor)
    if require_running and not manager.is_already_running():
        manager.close()
        raise LaunchError(f"Server at {config.descriptor.admin_base_url} is not running")
    return manager
