# connectors/instance_managers/applications.py
"""
Application-entity helpers shared (by composition) between the local and
remote instance managers. All calls go through an AdminRestClient.
"""

import json
import logging
from typing import Dict, Optional
from urllib.parse import quote

from connectors.admin_rest import AdminRestClient, REST_MONITORING_PREFIX
from connectors.errors import NetworkError, ProtocolParseError
from connectors.schema import (
    ApplicationResource,
    InstanceDescriptor,
    APPLICATION_ENDPOINT_PARAM,
    STATUS_PARAM,
    RUNNING_STATUS,
)

logger = logging.getLogger("serverpilot.applications")

APPLICATIONS_PATH = "applications/application"
STOPPED_STATUS = "STOPPED"


def application_endpoint(descriptor: InstanceDescriptor, context_root: Optional[str]) -> str:
    url = descriptor.application_base_url
    if context_root:
        url = f"{url}/{context_root.strip('/')}"
    return url


def _is_enabled(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def read_application(rest: AdminRestClient, app_name: str) -> Optional[ApplicationResource]:
    """
    Read one application entity.

    Returns None when the server has no such application, an
    ApplicationResource with representation=None when the entity exists
    but carries no usable body.
    """
    try:
        response = rest.get(f"{APPLICATIONS_PATH}/{quote(app_name)}")
    except ProtocolParseError as e:
        logger.debug("Unparseable application entity for %s: %s", app_name, e)
        return ApplicationResource(name=app_name, representation=None)

    if response.status_code == 404:
        return None
    if not response.ok:
        logger.debug("Application lookup for %s returned %s", app_name, response.status_code)
        return ApplicationResource(name=app_name, representation=None)

    entity = response.extra_properties.get("entity") or {}
    if not entity:
        return ApplicationResource(name=app_name, representation=None)

    representation = {
        "name": entity.get("name", app_name),
        STATUS_PARAM: RUNNING_STATUS if _is_enabled(entity.get("enabled")) else STOPPED_STATUS,
    }
    context_root = entity.get("contextRoot")
    if context_root is not None:
        representation["contextRoot"] = context_root
        representation[APPLICATION_ENDPOINT_PARAM] = application_endpoint(rest.descriptor, context_root)
    return ApplicationResource(name=app_name, representation=representation)


def list_applications(rest: AdminRestClient) -> Dict[str, ApplicationResource]:
    """Every deployed application, keyed by name. Empty on network failure."""
    try:
        response = rest.get(APPLICATIONS_PATH)
    except (NetworkError, ProtocolParseError) as e:
        logger.warning("Unable to list applications: %s", e)
        return {}

    children = response.extra_properties.get("childResources") or {}
    result = {}
    for name in children:
        resource = read_application(rest, name)
        if resource is not None:
            result[name] = resource
    return result


def read_mbean(rest: AdminRestClient, bean_name: str) -> str:
    """
    Read an MBean through the server's REST monitoring service.
    Returns the JSON-encoded value, or the raw body if it is not JSON.
    """
    url = rest.application_url_for(f"{REST_MONITORING_PREFIX}/read/{quote(bean_name, safe=':=,')}")
    response = rest.request("GET", "", absolute_url=url)
    if response.status_code >= 400:
        raise NetworkError(f"MBean read failed for {bean_name} ({response.status_code})", status_code=response.status_code)
    try:
        data = response.json()
    except ValueError:
        return response.text or ""
    value = data.get("value", data) if isinstance(data, dict) else data
    return json.dumps(value, indent=2, sort_keys=True)
