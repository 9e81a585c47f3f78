# connectors/admin_rest.py
"""
HTTP plumbing for the server's admin/monitoring REST surface.

Both instance managers compose one AdminRestClient; it owns the
requests.Session (credentials, timeouts, retry adapter) so every admin call
of a run goes through the same connection settings.
"""

import json
import logging
from typing import Optional, Dict, Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from connectors.errors import NetworkError, ProtocolParseError
from connectors.schema import AdminResponse, InstanceDescriptor

logger = logging.getLogger("serverpilot.admin_rest")

MANAGEMENT_PREFIX = "/management/domain"
MONITORING_PREFIX = "/monitoring/domain"
REST_MONITORING_PREFIX = "/rest-monitoring/rest"


class AdminRestClient:
    """
    Authenticated JSON client bound to one InstanceDescriptor.

    Paths may be given absolute ("/management/domain/applications") or
    relative to the management root ("applications/application").
    """

    def __init__(self, descriptor: InstanceDescriptor, session: Optional[requests.Session] = None):
        self.descriptor = descriptor

        self.session = session or requests.Session()
        if session is None:
            retry_strategy = Retry(
                total=3,
                backoff_factor=0.5,
                status_forcelist=[502, 503, 504],
                allowed_methods=["GET", "DELETE"],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

        password = descriptor.resolve_admin_password()
        if descriptor.admin_user:
            self.session.auth = (descriptor.admin_user, password or "")
        self.session.headers.update({
            # GlassFish rejects mutating REST calls without this header
            "X-Requested-By": "serverpilot",
            "Accept": "application/json",
        })

    # ------------------------------------------------------------
    # URL helpers
    # ------------------------------------------------------------
    def url_for(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        path = path.strip()
        if not path.startswith("/"):
            path = f"{MANAGEMENT_PREFIX}/{path}"
        return f"{self.descriptor.admin_base_url}{path}"

    def application_url_for(self, path: str) -> str:
        """URL on the HTTP listener rather than the admin listener."""
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.descriptor.application_base_url}{path}"

    # ------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------
    def request(self, method: str, path: str, *, absolute_url: Optional[str] = None, **kwargs) -> requests.Response:
        url = absolute_url or self.url_for(path)
        kwargs.setdefault("timeout", self.descriptor.timeouts)
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"Request to {url} timed out: {e}")
        except requests.exceptions.ConnectionError as e:
            raise NetworkError(f"Unable to connect to {url}: {e}")
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request to {url} failed: {e}")

        if response.status_code in (401, 403):
            raise NetworkError(
                f"Authentication rejected by {url} ({response.status_code})",
                status_code=response.status_code,
            )
        return response

    def call(self, method: str, path: str, **kwargs) -> AdminResponse:
        """Issue a call and parse the JSON body into an AdminResponse."""
        response = self.request(method, path, **kwargs)
        return self._to_admin_response(response)

    def get(self, path: str, **kwargs) -> AdminResponse:
        return self.call("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> AdminResponse:
        return self.call("POST", path, **kwargs)

    def delete(self, path: str, **kwargs) -> AdminResponse:
        return self.call("DELETE", path, **kwargs)

    def get_text(self, path: str, **kwargs) -> requests.Response:
        """Raw GET for text payloads (log viewer, monitoring reads)."""
        headers = dict(kwargs.pop("headers", {}) or {})
        headers.setdefault("Accept", "text/plain, application/json")
        return self.request("GET", path, headers=headers, **kwargs)

    def ping(self) -> bool:
        """True when the admin listener answers; never raises."""
        try:
            response = self.request("GET", "location")
            return response.status_code < 400
        except NetworkError as e:
            logger.debug("Admin endpoint not reachable: %s", e)
            return False

    @staticmethod
    def _to_admin_response(response: requests.Response) -> AdminResponse:
        text = response.text or ""
        body: Dict[str, Any] = {}
        if text.strip():
            try:
                body = response.json()
            except (ValueError, json.JSONDecodeError):
                raise ProtocolParseError(
                    f"Non-JSON response from {response.url} ({response.status_code})",
                    raw=text,
                )
            if not isinstance(body, dict):
                body = {"extraProperties": {"value": body}}
        return AdminResponse(
            status_code=response.status_code,
            body=body,
            headers=dict(response.headers or {}),
        )
