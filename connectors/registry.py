# connectors/registry.py
"""
Instance manager registry.
Maps deployment topology -> manager class, and builds the one manager a
run uses.
"""

import logging
from typing import Dict, Optional, Type

from connectors.errors import ConfigurationError
from connectors.instance_managers import (
    BaseInstanceManager,
    LocalInstanceManager,
    RemoteInstanceManager,
)
from connectors.schema import InstanceDescriptor, LocalServerInfo

logger = logging.getLogger("serverpilot.registry")

MANAGER_REGISTRY: Dict[str, Type[BaseInstanceManager]] = {
    "local": LocalInstanceManager,
    "remote": RemoteInstanceManager,
}


def create_instance_manager(
    topology: str,
    descriptor: InstanceDescriptor,
    server: Optional[LocalServerInfo] = None,
) -> BaseInstanceManager:
    """
    Build the manager for a topology.
    A local manager needs LocalServerInfo (install path, domain).
    """
    key = (topology or "local").strip().lower()
    manager_cls = MANAGER_REGISTRY.get(key)
    if manager_cls is None:
        raise ConfigurationError(
            f"Unknown topology '{topology}'. Expected one of: {', '.join(sorted(MANAGER_REGISTRY))}"
        )

    if manager_cls is LocalInstanceManager:
        if server is None:
            raise ConfigurationError("A local instance needs a resolved server installation path")
        manager = LocalInstanceManager(descriptor, server)
    else:
        manager = manager_cls(descriptor)

    logger.info("Using %s instance manager for %s", key, descriptor.admin_base_url)
    return manager
