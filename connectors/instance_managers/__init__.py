from connectors.instance_managers.base_instance_manager import BaseInstanceManager
from connectors.instance_managers.local_instance_manager import LocalInstanceManager
from connectors.instance_managers.remote_instance_manager import RemoteInstanceManager

__all__ = ["BaseInstanceManager", "LocalInstanceManager", "RemoteInstanceManager"]
