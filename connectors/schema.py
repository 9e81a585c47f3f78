# connectors/schema.py

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypedDict, List, Optional, Dict, Any

from connectors.errors import ConfigurationError

HTTP = "http"
HTTPS = "https"

DEFAULT_ADMIN_PORT = 4848
DEFAULT_HTTP_PORT = 8080
DEFAULT_HTTPS_PORT = 8181

RUNNING_STATUS = "RUNNING"
APPLICATION_ENDPOINT_PARAM = "applicationEndpoint"
STATUS_PARAM = "status"


# --------------------------
# Raw YAML shapes
# --------------------------

class ServerSection(TypedDict, total=False):
    topology: str               # "local" | "remote"
    host: str
    admin_port: Optional[int]
    http_port: Optional[int]
    https_port: Optional[int]
    protocol: str
    admin_user: str
    admin_password: str         # literal, "env:NAME" or "file:PATH"
    connect_timeout: int        # milliseconds
    read_timeout: int           # milliseconds
    java_home: Optional[str]
    server_path: Optional[str]
    artifact: Optional[str]     # group:artifact:version[:type]
    version: Optional[str]
    domain: str


class ApplicationSection(TypedDict, total=False):
    name: str
    path: str
    exploded_path: Optional[str]
    context_root: Optional[str]
    instance: Optional[str]
    exploded: bool
    hot_deploy: bool


class EnvironmentConfig(TypedDict, total=False):
    server: ServerSection
    application: ApplicationSection
    run: dict
    markers: dict
    assistant: dict


# --------------------------
# Instance descriptor
# --------------------------

def _check_port(name: str, value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if port <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {port}")
    return port


@dataclass(frozen=True)
class InstanceDescriptor:
    """Connection facts for one server. Built once per run, never mutated."""

    host: str = "localhost"
    admin_port: Optional[int] = None
    http_port: Optional[int] = None
    https_port: Optional[int] = None
    protocol: str = HTTP
    admin_user: str = "admin"
    admin_password_ref: Optional[str] = None
    connect_timeout: float = 3.0
    read_timeout: float = 3.0

    def __post_init__(self):
        if self.protocol not in (HTTP, HTTPS):
            raise ConfigurationError(f"protocol must be 'http' or 'https', got {self.protocol!r}")
        for name in ("admin_port", "http_port", "https_port"):
            object.__setattr__(self, name, _check_port(name, getattr(self, name)))

    @property
    def effective_admin_port(self) -> int:
        return self.admin_port or DEFAULT_ADMIN_PORT

    @property
    def effective_http_port(self) -> int:
        return self.http_port or DEFAULT_HTTP_PORT

    @property
    def effective_https_port(self) -> int:
        return self.https_port or DEFAULT_HTTPS_PORT

    @property
    def admin_base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.effective_admin_port}"

    @property
    def application_base_url(self) -> str:
        port = self.effective_http_port if self.protocol == HTTP else self.effective_https_port
        return f"{self.protocol}://{self.host}:{port}"

    @property
    def timeouts(self) -> tuple:
        """(connect, read) tuple in seconds, as accepted by requests."""
        return (self.connect_timeout, self.read_timeout)

    def resolve_admin_password(self) -> Optional[str]:
        """
        Resolve admin_password_ref:
          env:NAME  -> os.environ[NAME]
          file:PATH -> first line of PATH
          other     -> literal value
        """
        ref = self.admin_password_ref
        if not ref:
            return None
        if ref.startswith("env:"):
            return os.environ.get(ref[4:])
        if ref.startswith("file:"):
            path = Path(ref[5:]).expanduser()
            if not path.exists():
                raise ConfigurationError(f"Admin password file not found: {path}")
            lines = path.read_text(encoding="utf-8").splitlines()
            return lines[0].strip() if lines else ""
        return ref


@dataclass(frozen=True)
class LocalServerInfo:
    """Extra facts for a server installed on this machine."""

    install_path: str
    domain_name: str = "domain1"
    java_home: Optional[str] = None

    @property
    def domain_dir(self) -> Path:
        return Path(self.install_path) / "glassfish" / "domains" / self.domain_name

    @property
    def server_log_path(self) -> Path:
        return self.domain_dir / "logs" / "server.log"

    @property
    def domain_config_path(self) -> Path:
        return self.domain_dir / "config" / "domain.xml"

    @property
    def pid_file_path(self) -> Path:
        return self.domain_dir / "config" / "pid"

    @property
    def asadmin_path(self) -> Path:
        name = "asadmin.bat" if os.name == "nt" else "asadmin"
        return Path(self.install_path) / "bin" / name


# --------------------------
# Admin protocol results
# --------------------------

@dataclass
class AdminResponse:
    """Structured body returned by the admin REST surface."""

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300 and self.exit_code != "FAILURE"

    @property
    def exit_code(self) -> Optional[str]:
        return self.body.get("exit_code")

    @property
    def message(self) -> str:
        return self.body.get("message") or ""

    @property
    def extra_properties(self) -> Dict[str, Any]:
        return self.body.get("extraProperties") or {}


@dataclass(frozen=True)
class ApplicationResource:
    """
    Deployment result contract. representation carries at least
    applicationEndpoint and status when the server reports them.
    """

    name: str
    representation: Optional[Dict[str, Any]] = None

    @property
    def endpoint(self) -> Optional[str]:
        if not self.representation:
            return None
        return self.representation.get(APPLICATION_ENDPOINT_PARAM)

    @property
    def status(self) -> Optional[str]:
        if not self.representation:
            return None
        return self.representation.get(STATUS_PARAM)

    @property
    def is_running(self) -> bool:
        return self.status == RUNNING_STATUS

    @property
    def url(self) -> Optional[str]:
        """Application URL when the server reports RUNNING, otherwise None."""
        if self.is_running and self.endpoint:
            return self.endpoint
        return None


@dataclass
class DeploymentRecord:
    artifact_path: str
    application_name: str
    context_root: Optional[str] = None
    exploded: bool = False
    hot_deploy: bool = False
    result_url: Optional[str] = None


# --------------------------
# Log events
# --------------------------

class LogSource(str, enum.Enum):
    STDOUT = "stdout"
    STDERR = "stderr"
    REMOTE = "remote"
    FILE = "file"


@dataclass(frozen=True)
class LogEvent:
    line: str
    source: LogSource
