# tests/conftest.py
import json
from unittest.mock import MagicMock

import pytest
import requests

from connectors.schema import InstanceDescriptor, LocalServerInfo


def _make_response(status=200, body=None, text=None, headers=None, url="http://localhost:4848/management/domain"):
    response = requests.Response()
    response.status_code = status
    if text is None:
        text = json.dumps(body) if body is not None else ""
    response._content = text.encode("utf-8")
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    response.url = url
    return response


class FakeSession:
    """Stands in for requests.Session; replies from a queue or a handler."""

    def __init__(self, responses=None, handler=None):
        self.calls = []
        self.responses = list(responses or [])
        self.handler = handler
        self.headers = {}
        self.auth = None
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        result = self.handler(method, url, kwargs) if self.handler else self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def mount(self, prefix, adapter):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def make_response():
    return _make_response


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def session_factory():
    return FakeSession


@pytest.fixture
def descriptor():
    return InstanceDescriptor(
        host="localhost",
        admin_port=4848,
        http_port=8080,
        admin_user="admin",
        admin_password_ref="secret-pw",
    )


@pytest.fixture
def server_info(tmp_path):
    install = tmp_path / "payara6"
    (install / "bin").mkdir(parents=True)
    (install / "glassfish" / "domains" / "domain1" / "config").mkdir(parents=True)
    (install / "glassfish" / "domains" / "domain1" / "logs").mkdir(parents=True)
    return LocalServerInfo(install_path=str(install), domain_name="domain1", java_home="/opt/jdk")


@pytest.fixture
def fake_manager():
    manager = MagicMock()
    manager.is_local = True
    manager.list_applications.return_value = {}
    return manager
