# tests/test_classifier.py
import pytest

from router.classifier import DirectiveKind, classify, is_read_only, rest_endpoints


@pytest.mark.parametrize("reply, kind", [
    ("asadmin list-applications", DirectiveKind.ADMIN_COMMAND),
    ("Try this:\n```\n$ asadmin get server.monitoring-service.*\n```", DirectiveKind.ADMIN_COMMAND),
    ("/monitoring/domain/server/jvm/memory", DirectiveKind.REST_ENDPOINT),
    ("java.lang:type=Memory", DirectiveKind.JMX_QUERY),
    ("I need to look at server.log first.", DirectiveKind.SERVER_LOG_REQUEST),
    ("Please share domain.xml", DirectiveKind.DOMAIN_CONFIG_REQUEST),
    ("Your application looks healthy.", DirectiveKind.PLAIN_TEXT),
    ("", DirectiveKind.PLAIN_TEXT),
])
def test_classification(reply, kind):
    assert classify(reply).kind == kind


def test_admin_command_outranks_endpoint():
    directive = classify("asadmin list-applications\nor read /management/domain/applications/application")
    assert directive.kind == DirectiveKind.ADMIN_COMMAND
    assert directive.command == "list-applications"


def test_backtick_wrapped_command():
    directive = classify("`asadmin uptime`")
    assert directive.command == "uptime"
    assert directive.read_only


def test_endpoints_are_extracted_in_order_without_duplicates():
    reply = (
        "/monitoring/domain/server/jvm/memory\n"
        "http://localhost:4848/monitoring/domain/server/http-service.\n"
        "/monitoring/domain/server/jvm/memory\n"
        "/management/domain/applications/application/${appname}"
    )
    assert rest_endpoints(reply) == [
        "/monitoring/domain/server/jvm/memory",
        "/monitoring/domain/server/http-service",
        "/management/domain/applications/application/${appname}",
    ]


def test_mbean_payload():
    directive = classify("java.lang:type=Memory\njava.lang:type=Threading")
    assert directive.payload == ("java.lang:type=Memory", "java.lang:type=Threading")


@pytest.mark.parametrize("command, expected", [
    ("list-applications", True),
    ("get server.*", True),
    ("version", True),
    ("asadmin show-component-status shop", True),
    ("undeploy shop", False),
    ("stop-domain", False),
    ("set configs.config.server-config.x=1", False),
    ("", False),
])
def test_read_only(command, expected):
    assert is_read_only(command) is expected
