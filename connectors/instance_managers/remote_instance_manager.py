# connectors/instance_managers/remote_instance_manager.py
"""
Admin-REST-backed instance manager.

Behavior:
 - Reachability, deployment, undeployment and monitoring all go through the
   admin listener (protocol://host:adminPort/management/domain/...).
 - Logs are pulled from /management/domain/view-log; the server hands back
   the next start offset in the X-Text-Append-Next header, which this
   manager keeps as its cursor.
 - Admin CLI commands and on-disk files are not available.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import parse_qs, quote, urlparse

from connectors.admin_rest import AdminRestClient
from connectors.errors import NetworkError, ProtocolParseError
from connectors.instance_managers import applications
from connectors.instance_managers.base_instance_manager import BaseInstanceManager
from connectors.schema import AdminResponse, ApplicationResource, InstanceDescriptor, STATUS_PARAM

logger = logging.getLogger("serverpilot.managers.remote")

VIEW_LOG_PATH = "view-log"
NEXT_LOG_HEADER = "X-Text-Append-Next"
FAILED_STATUS = "FAILED"
# Uploads can be large; the descriptor's read timeout is meant for admin queries
UPLOAD_READ_TIMEOUT = 300


class RemoteInstanceManager(BaseInstanceManager):
    topology = "remote"

    def __init__(self, descriptor: InstanceDescriptor, rest: Optional[AdminRestClient] = None):
        super().__init__(descriptor)
        self.rest = rest or AdminRestClient(descriptor)
        self._log_cursor = 0

    # ------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------
    def is_already_running(self) -> bool:
        return self.rest.ping()

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
        data = {"name": app_name, "force": "true"}
        if context_root:
            data["contextroot"] = context_root
        if instance_id:
            data["target"] = instance_id
        if hot_deploy:
            data["hotDeploy"] = "true"

        archive = Path(artifact_path)
        packed = None
        if archive.is_dir():
            # Directories cannot be uploaded; ship them as a war
            packed = _pack_directory(archive, app_name)
            archive = packed

        try:
            with open(archive, "rb") as fh:
                logger.info("Uploading %s to %s", archive.name, self.descriptor.admin_base_url)
                response = self.rest.post(
                    applications.APPLICATIONS_PATH,
                    data=data,
                    files={"id": (archive.name, fh, "application/octet-stream")},
                    timeout=(self.descriptor.connect_timeout, UPLOAD_READ_TIMEOUT),
                )
        except (NetworkError, ProtocolParseError) as e:
            logger.error("Deployment of %s failed: %s", app_name, e)
            return None
        finally:
            if packed is not None:
                shutil.rmtree(packed.parent, ignore_errors=True)

        if not response.ok:
            return ApplicationResource(
                name=app_name,
                representation={STATUS_PARAM: FAILED_STATUS, "message": response.message},
            )

        try:
            return applications.read_application(self.rest, app_name)
        except NetworkError as e:
            logger.warning("Deployed %s but could not read it back: %s", app_name, e)
            return ApplicationResource(name=app_name, representation=None)

    def undeploy(self, app_name: str, instance_id: Optional[str] = None) -> None:
        params = {"target": instance_id} if instance_id else None
        try:
            response = self.rest.delete(f"{applications.APPLICATIONS_PATH}/{quote(app_name)}", params=params)
        except ProtocolParseError as e:
            logger.debug("Undeploy of %s returned a non-JSON body: %s", app_name, e)
            return
        except NetworkError as e:
            logger.warning("Undeploy of %s failed: %s", app_name, e)
            return

        if response.status_code == 404:
            logger.debug("Application %s was not deployed", app_name)
        elif not response.ok:
            logger.warning("Undeploy of %s reported: %s", app_name, response.message)

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
    # LOGS
    # ------------------------------------------------------------
    def fetch_logs(self, instance_id: Optional[str] = None) -> str:
        """Return log text appended since the previous call ("" when none)."""
        params = {"start": self._log_cursor}
        if instance_id:
            params["instanceName"] = instance_id
        try:
            response = self.rest.get_text(VIEW_LOG_PATH, params=params)
        except NetworkError as e:
            logger.debug("Log fetch failed: %s", e)
            return ""
        if response.status_code >= 400:
            logger.debug("Log fetch returned %s", response.status_code)
            return ""

        text = response.text or ""
        next_start = _next_start(response.headers.get(NEXT_LOG_HEADER))
        if next_start is not None:
            self._log_cursor = next_start
        elif text:
            self._log_cursor += len(text.encode("utf-8"))
        return text

    @property
    def log_cursor(self) -> int:
        return self._log_cursor

    def close(self) -> None:
        self.rest.session.close()


def _next_start(header_value: Optional[str]) -> Optional[int]:
    if not header_value:
        return None
    values = parse_qs(urlparse(header_value).query).get("start")
    if not values:
        return None
    try:
        return int(values[0])
    except ValueError:
        return None


def _pack_directory(directory: Path, app_name: str) -> Path:
    workdir = tempfile.mkdtemp(prefix="serverpilot-upload-")
    base = os.path.join(workdir, app_name)
    zipped = shutil.make_archive(base, "zip", root_dir=str(directory))
    war = Path(base + ".war")
    os.replace(zipped, war)
    return war
