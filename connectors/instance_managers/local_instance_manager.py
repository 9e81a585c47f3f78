# connectors/instance_managers/local_instance_manager.py

from __future__ import annotations

import logging
import os
import shlex
import socket
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from connectors.admin_rest import AdminRestClient
from connectors.errors import NetworkError
from connectors.instance_managers import applications
from connectors.instance_managers.base_instance_manager import BaseInstanceManager
from connectors.schema import (
    ApplicationResource,
    AdminResponse,
    InstanceDescriptor,
    LocalServerInfo,
    APPLICATION_ENDPOINT_PARAM,
    STATUS_PARAM,
    RUNNING_STATUS,
)
from utils.data_masking import mask_secrets

logger = logging.getLogger("serverpilot.managers.local")

ADMIN_COMMAND_TIMEOUT = 300
FAILED_STATUS = "FAILED"

MONITORING_COMMANDS = [
    "set-monitoring-level --level=HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH:HIGH"
    " --module=jvm:transactionService:connectorService:jmsService:security:webContainer:jersey"
    ":webServicesContainer:jpa:jdbcConnectionPool:threadPool:ejbContainer:orb:connectorConnectionPool"
    ":deployment:httpService --target=server-config",
    "set-monitoring-service-configuration --mbeanEnabled=true --monitoringEnabled=true"
    " --dtraceEnabled=false --target=server-config",
    "set-rest-monitoring-configuration --enabled=true",
]

NOT_DEPLOYED_MARKERS = ("not registered", "no such application", "is not deployed", "does not exist")


class LocalInstanceManager(BaseInstanceManager):
    """
    Server installed on this machine.

    Admin commands run as `asadmin` subprocesses; structured reads go
    through the admin REST API of the same server.
    """

    topology = "local"

    def __init__(self, descriptor: InstanceDescriptor, server: LocalServerInfo, rest: Optional[AdminRestClient] = None):
        super().__init__(descriptor)
        self.server = server
        self.rest = rest or AdminRestClient(descriptor)
        self._monitoring_enabled = False

    # ------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------
    def is_already_running(self) -> bool:
        pid = self._read_pid()
        if pid is not None and _pid_alive(pid):
            logger.info("Found running server (pid=%s)", pid)
            return True
        return self._admin_port_open()

    def _read_pid(self) -> Optional[int]:
        try:
            text = self.server.pid_file_path.read_text(encoding="utf-8").strip()
            return int(text) if text else None
        except (OSError, ValueError):
            return None

    def _admin_port_open(self) -> bool:
        try:
            with socket.create_connection(
                (self.descriptor.host, self.descriptor.effective_admin_port),
                timeout=self.descriptor.connect_timeout,
            ):
                return True
        except OSError:
            return False

    def build_start_command(
        self,
        debug: str = "false",
        debug_port: Optional[int] = None,
        jvm_options: Optional[List[str]] = None,
        server_options: Optional[Dict[str, Optional[str]]] = None,
    ) -> Tuple[List[str], Dict[str, str]]:
        """
        Command line and extra environment for `asadmin start-domain`.

        debug: "false", "true" (attach debugger) or "suspend" (wait for it).
        server_options are appended as --key=value (or --key for None).
        """
        argv = [str(self.server.asadmin_path), "start-domain", "--verbose"]
        debug = (debug or "false").strip().lower()
        if debug in ("true", "suspend"):
            argv.append("--debug=true")
        if debug == "suspend":
            argv.append("--suspend=true")
        for key, value in (server_options or {}).items():
            key = key if key.startswith("--") else f"--{key}"
            argv.append(key if value is None else f"{key}={value}")
        argv.append(self.server.domain_name)

        env: Dict[str, str] = {}
        if self.server.java_home:
            env["AS_JAVA"] = self.server.java_home
            env["JAVA_HOME"] = self.server.java_home
        java_opts = list(jvm_options or [])
        if debug_port and debug in ("true", "suspend"):
            suspend = "y" if debug == "suspend" else "n"
            java_opts.append(f"-agentlib:jdwp=transport=dt_socket,server=y,suspend={suspend},address=*:{debug_port}")
        if java_opts:
            env["JAVA_TOOL_OPTIONS"] = " ".join(java_opts)
        return argv, env

    # ------------------------------------------------------------
    # ADMIN COMMANDS
    # ------------------------------------------------------------
    def run_admin_command(self, cmd: str) -> str:
        """
        Run `asadmin <cmd>` against this server and return its combined output.
        Non-zero exits are logged and their output still returned.
        """
        return self._run_asadmin(cmd)[1]

    def _run_asadmin(self, cmd: str) -> Tuple[int, str]:
        """Run asadmin and return (exit code, output); 124 on timeout, 127 when it cannot start."""
        password = self.descriptor.resolve_admin_password()
        argv = [
            str(self.server.asadmin_path),
            "--host", self.descriptor.host,
            "--port", str(self.descriptor.effective_admin_port),
            "--user", self.descriptor.admin_user,
            "--interactive=false",
        ]
        if self.descriptor.protocol == "https":
            argv.append("--secure")

        password_file = None
        try:
            if password:
                fd, password_file = tempfile.mkstemp(prefix="serverpilot-", suffix=".pwd")
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(f"AS_ADMIN_PASSWORD={password}\n")
                argv[1:1] = ["--passwordfile", password_file]
            argv.extend(shlex.split(cmd))

            logger.info("asadmin %s", mask_secrets(cmd, [password] if password else None))
            try:
                proc = subprocess.run(
                    argv,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    timeout=ADMIN_COMMAND_TIMEOUT,
                    env=self._command_env(),
                )
            except subprocess.TimeoutExpired:
                logger.warning("asadmin %s timed out after %ss", cmd.split(" ")[0], ADMIN_COMMAND_TIMEOUT)
                return 124, f"timeout after {ADMIN_COMMAND_TIMEOUT}s"
            except OSError as e:
                logger.error("Unable to run asadmin: %s", e)
                return 127, f"asadmin unavailable: {e}"

            output = proc.stdout or ""
            if proc.returncode != 0:
                logger.warning("asadmin %s exited with %s", cmd.split(" ")[0], proc.returncode)
            return proc.returncode, output
        finally:
            if password_file:
                try:
                    os.unlink(password_file)
                except OSError:
                    pass

    def _command_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        if self.server.java_home:
            env["AS_JAVA"] = self.server.java_home
        return env

    def enable_monitoring(self) -> None:
        if self._monitoring_enabled:
            return
        for command in MONITORING_COMMANDS:
            logger.info(self.run_admin_command(command).strip())
        self._monitoring_enabled = True

    # ------------------------------------------------------------
    # DEPLOYMENT
    # ------------------------------------------------------------
    def deploy(
        self,
        app_name: str,
        artifact_path: str,
        instance_id: Optional[str] = None,
        context_root: Optional[str] = None,
        exploded: bool = False,
        hot_deploy: bool = False,
    ) -> Optional[ApplicationResource]:
        parts = ["deploy", "--force=true", f"--name={shlex.quote(app_name)}"]
        if context_root:
            parts.append(f"--contextroot={shlex.quote(context_root)}")
        if instance_id:
            parts.append(f"--target={shlex.quote(instance_id)}")
        if hot_deploy:
            parts.append("--hotDeploy=true")
        parts.append(shlex.quote(str(Path(artifact_path).resolve())))

        exit_code, output = self._run_asadmin(" ".join(parts))
        if exit_code != 0:
            return ApplicationResource(
                name=app_name,
                representation={STATUS_PARAM: FAILED_STATUS, "message": output.strip()},
            )

        try:
            return applications.read_application(self.rest, app_name)
        except NetworkError as e:
            logger.debug("Application entity unavailable after deploy: %s", e)

        # asadmin reported success but the admin endpoint could not be reached
        return ApplicationResource(
            name=app_name,
            representation={
                "name": app_name,
                STATUS_PARAM: RUNNING_STATUS,
                APPLICATION_ENDPOINT_PARAM: applications.application_endpoint(
                    self.descriptor, context_root or app_name
                ),
            },
        )

    def undeploy(self, app_name: str, instance_id: Optional[str] = None) -> None:
        parts = ["undeploy"]
        if instance_id:
            parts.append(f"--target={shlex.quote(instance_id)}")
        parts.append(shlex.quote(app_name))
        exit_code, output = self._run_asadmin(" ".join(parts))
        if exit_code != 0:
            lowered = output.lower()
            if any(marker in lowered for marker in NOT_DEPLOYED_MARKERS):
                logger.debug("Application %s was not deployed", app_name)
            else:
                logger.warning("Undeploy of %s reported: %s", app_name, output.strip())

    def list_applications(self) -> Dict[str, ApplicationResource]:
        return applications.list_applications(self.rest)

    # ------------------------------------------------------------
    # REST / MONITORING
    # ------------------------------------------------------------
    def run_endpoint(self, path: str) -> AdminResponse:
        return self.rest.get(path)

    def query_mbean(self, bean_name: str) -> str:
        return applications.read_mbean(self.rest, bean_name)

    # ------------------------------------------------------------
    # FILES
    # ------------------------------------------------------------
    def read_server_log(self) -> str:
        return _read_file(self.server.server_log_path)

    def read_domain_config(self) -> str:
        return _read_file(self.server.domain_config_path)

    def close(self) -> None:
        self.rest.session.close()


def _read_file(path: Path) -> str:
    with open(path, "r", encoding="utf-8", errors="ignore") as f:
        return f.read()


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True
