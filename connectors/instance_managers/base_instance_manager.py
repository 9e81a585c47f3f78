# connectors/instance_managers/base_instance_manager.py

from typing import Dict, Optional

from connectors.errors import UnsupportedOperationError
from connectors.schema import AdminResponse, ApplicationResource, InstanceDescriptor


class BaseInstanceManager:
    """
    Capability contract for managing one server instance.

    LocalInstanceManager drives a server installed on this machine
    (asadmin subprocess + admin REST); RemoteInstanceManager drives a
    server reachable only over the admin REST API. Capabilities a variant
    does not offer raise UnsupportedOperationError.

    Every admin call of a run goes through a single manager object, so
    credentials, timeouts and the remote log cursor stay consistent.
    """

    topology = "abstract"

    def __init__(self, descriptor: InstanceDescriptor):
        self.descriptor = descriptor

    @property
    def is_local(self) -> bool:
        return self.topology == "local"

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------
    def is_already_running(self) -> bool:
        """Check the server; must return False (not raise) when unreachable."""
        raise NotImplementedError()

    # ------------------------------------------------------------
    # Deployment
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
        raise NotImplementedError()

    def undeploy(self, app_name: str, instance_id: Optional[str] = None) -> None:
        raise NotImplementedError()

    def list_applications(self) -> Dict[str, ApplicationResource]:
        raise NotImplementedError()

    # ------------------------------------------------------------
    # Admin / monitoring
    # ------------------------------------------------------------
    def run_admin_command(self, cmd: str) -> str:
        raise UnsupportedOperationError(f"Admin commands are not supported by {self.topology} instances")

    def run_endpoint(self, path: str) -> AdminResponse:
        raise NotImplementedError()

    def query_mbean(self, bean_name: str) -> str:
        raise NotImplementedError()

    def enable_monitoring(self) -> None:
        raise UnsupportedOperationError(f"Monitoring configuration is not supported by {self.topology} instances")

    # ------------------------------------------------------------
    # Logs / files
    # ------------------------------------------------------------
    def fetch_logs(self, instance_id: Optional[str] = None) -> str:
        raise UnsupportedOperationError(f"Log polling is not supported by {self.topology} instances")

    def read_server_log(self) -> str:
        raise UnsupportedOperationError(f"server.log is not available for {self.topology} instances")

    def read_domain_config(self) -> str:
        raise UnsupportedOperationError(f"domain.xml is not available for {self.topology} instances")

    def close(self) -> None:
        pass
