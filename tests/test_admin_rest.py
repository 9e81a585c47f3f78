# tests/test_admin_rest.py
import pytest
import requests

from connectors.admin_rest import AdminRestClient
from connectors.errors import NetworkError, ProtocolParseError


def test_session_carries_credentials_and_headers(descriptor, fake_session):
    AdminRestClient(descriptor, session=fake_session)
    assert fake_session.auth == ("admin", "secret-pw")
    assert fake_session.headers["X-Requested-By"] == "serverpilot"


def test_url_for_relative_and_absolute_paths(descriptor, fake_session):
    rest = AdminRestClient(descriptor, session=fake_session)
    assert rest.url_for("applications/application") == "http://localhost:4848/management/domain/applications/application"
    assert rest.url_for("/monitoring/domain/server") == "http://localhost:4848/monitoring/domain/server"
    assert rest.url_for("http://elsewhere/x") == "http://elsewhere/x"
    assert rest.application_url_for("app") == "http://localhost:8080/app"


def test_get_parses_json_body(descriptor, session_factory, make_response):
    session = session_factory([make_response(body={"exit_code": "SUCCESS", "extraProperties": {"k": "v"}})])
    rest = AdminRestClient(descriptor, session=session)
    response = rest.get("version")
    assert response.ok
    assert response.extra_properties == {"k": "v"}
    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert kwargs["timeout"] == descriptor.timeouts


def test_non_json_body_raises_parse_error(descriptor, session_factory, make_response):
    session = session_factory([make_response(text="<html>oops</html>")])
    rest = AdminRestClient(descriptor, session=session)
    with pytest.raises(ProtocolParseError) as exc:
        rest.get("version")
    assert "oops" in exc.value.raw


def test_authentication_failure_is_network_error(descriptor, session_factory, make_response):
    session = session_factory([make_response(status=401, body={})])
    rest = AdminRestClient(descriptor, session=session)
    with pytest.raises(NetworkError) as exc:
        rest.get("version")
    assert exc.value.status_code == 401


def test_connection_errors_are_wrapped(descriptor, session_factory):
    session = session_factory([requests.exceptions.ConnectionError("refused")])
    rest = AdminRestClient(descriptor, session=session)
    with pytest.raises(NetworkError):
        rest.get("version")


def test_ping_never_raises(descriptor, session_factory, make_response):
    down = AdminRestClient(descriptor, session=session_factory([requests.exceptions.Timeout("slow")]))
    up = AdminRestClient(descriptor, session=session_factory([make_response(body={})]))
    assert down.ping() is False
    assert up.ping() is True
