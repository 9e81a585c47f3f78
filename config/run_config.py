# config/run_config.py
"""
Typed view of the merged YAML configuration.

ConfigLoader produces a plain dict; RunConfig.from_dict() validates it and
turns it into the descriptor and settings objects the run works with.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from connectors.errors import ConfigurationError
from connectors.schema import InstanceDescriptor, LocalServerInfo

TOPOLOGIES = ("local", "remote")
DEBUG_MODES = ("false", "true", "suspend")
DEFAULT_MAX_CHILD_DEPTH = 8


def _as_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _seconds(millis, default: float) -> float:
    if millis is None:
        return default
    try:
        value = float(millis)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Timeout must be a number of milliseconds, got {millis!r}")
    if value <= 0:
        raise ConfigurationError(f"Timeout must be positive, got {millis!r}")
    return value / 1000.0


@dataclass
class ApplicationSettings:
    name: Optional[str] = None
    path: Optional[str] = None
    exploded_path: Optional[str] = None
    context_root: Optional[str] = None
    instance: Optional[str] = None
    exploded: bool = False
    hot_deploy: bool = False


@dataclass
class RunOptions:
    daemon: bool = False
    immediate_exit: bool = False
    auto_deploy: bool = False
    live_reload: bool = False
    trim_log: bool = False
    browser: bool = True
    ai_agent: bool = False
    ready_timeout: float = 300.0


@dataclass
class Markers:
    ready: str = "startup time :"
    deployed: str = "was successfully deployed"
    deploy_failed: str = "Exception while deploying the app"
    watch_limit: str = "User limit of inotify watches reached"


@dataclass
class ServerSettings:
    topology: str = "local"
    java_home: Optional[str] = None
    domain: str = "domain1"
    debug: str = "false"
    debug_port: Optional[int] = None
    jvm_options: List[str] = field(default_factory=list)
    server_options: Dict[str, Optional[str]] = field(default_factory=dict)
    # Raw source keys (server_path, artifact, version) for resolve_server_source
    source: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_local(self) -> bool:
        return self.topology == "local"


@dataclass
class RunConfig:
    descriptor: InstanceDescriptor
    server: ServerSettings
    application: ApplicationSettings
    run: RunOptions
    markers: Markers
    assistant: Dict[str, Any]

    @property
    def max_child_depth(self) -> int:
        return int(self.assistant.get("max_child_depth") or DEFAULT_MAX_CHILD_DEPTH)

    def local_server(self, install_path: str) -> LocalServerInfo:
        return LocalServerInfo(
            install_path=str(install_path),
            domain_name=self.server.domain,
            java_home=self.server.java_home,
        )

    def require_application(self) -> ApplicationSettings:
        """The application section, checked for what a deployment needs."""
        app = self.application
        if not app.path:
            raise ConfigurationError("application.path is required")
        if not app.name:
            raise ConfigurationError("application.name is required")
        return app

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], remote: Optional[bool] = None) -> "RunConfig":
        data = data or {}
        server = dict(data.get("server") or {})
        application = dict(data.get("application") or {})
        run = dict(data.get("run") or {})
        markers = dict(data.get("markers") or {})
        assistant = dict(data.get("assistant") or {})

        topology = "remote" if remote else str(server.get("topology") or "local").strip().lower()
        if topology not in TOPOLOGIES:
            raise ConfigurationError(f"server.topology must be one of {', '.join(TOPOLOGIES)}, got {topology!r}")

        descriptor = InstanceDescriptor(
            host=server.get("host") or "localhost",
            admin_port=server.get("admin_port"),
            http_port=server.get("http_port"),
            https_port=server.get("https_port"),
            protocol=str(server.get("protocol") or "http").lower(),
            admin_user=server.get("admin_user") or "admin",
            admin_password_ref=server.get("admin_password"),
            connect_timeout=_seconds(server.get("connect_timeout"), 3.0),
            read_timeout=_seconds(server.get("read_timeout"), 3.0),
        )

        debug = str(server.get("debug") if server.get("debug") is not None else "false").strip().lower()
        if debug not in DEBUG_MODES:
            raise ConfigurationError(f"server.debug must be one of {', '.join(DEBUG_MODES)}, got {debug!r}")

        debug_port = server.get("debug_port")
        if debug_port is not None:
            try:
                debug_port = int(debug_port)
            except (TypeError, ValueError):
                raise ConfigurationError(f"server.debug_port must be an integer, got {debug_port!r}")

        server_settings = ServerSettings(
            topology=topology,
            java_home=server.get("java_home"),
            domain=server.get("domain") or "domain1",
            debug=debug,
            debug_port=debug_port,
            jvm_options=[str(o) for o in (server.get("jvm_options") or [])],
            server_options=dict(server.get("server_options") or {}),
            source={k: server.get(k) for k in ("server_path", "artifact", "version")},
        )

        path = application.get("path")
        name = application.get("name") or (Path(path).stem if path else None)
        app_settings = ApplicationSettings(
            name=name,
            path=path,
            exploded_path=application.get("exploded_path"),
            context_root=application.get("context_root"),
            instance=application.get("instance"),
            exploded=_as_bool(application.get("exploded")),
            hot_deploy=_as_bool(application.get("hot_deploy")),
        )

        defaults = RunOptions()
        run_options = RunOptions(
            daemon=_as_bool(run.get("daemon"), defaults.daemon),
            immediate_exit=_as_bool(run.get("immediate_exit"), defaults.immediate_exit),
            auto_deploy=_as_bool(run.get("auto_deploy"), defaults.auto_deploy),
            live_reload=_as_bool(run.get("live_reload"), defaults.live_reload),
            trim_log=_as_bool(run.get("trim_log"), defaults.trim_log),
            browser=_as_bool(run.get("browser"), defaults.browser),
            ai_agent=_as_bool(run.get("ai_agent"), defaults.ai_agent),
            ready_timeout=float(run.get("ready_timeout") or defaults.ready_timeout),
        )

        marker_defaults = Markers()
        marker_settings = Markers(
            ready=markers.get("ready") or marker_defaults.ready,
            deployed=markers.get("deployed") or marker_defaults.deployed,
            deploy_failed=markers.get("deploy_failed") or marker_defaults.deploy_failed,
            watch_limit=markers.get("watch_limit") or marker_defaults.watch_limit,
        )

        return cls(
            descriptor=descriptor,
            server=server_settings,
            application=app_settings,
            run=run_options,
            markers=marker_settings,
            assistant=assistant,
        )
