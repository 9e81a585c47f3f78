# tests/test_assistant_client.py
from unittest.mock import MagicMock

import pytest
import requests

from client.assistant_client import AssistantClient, get_assistant_client
from connectors.errors import AssistantError


def _reply(make_response, content):
    return make_response(body={"choices": [{"message": {"content": content}}]})


@pytest.fixture
def client():
    c = AssistantClient("http://assistant.local/v1/", api_key="sk-test", retry_delays=[0])
    c.session = MagicMock()
    return c


def test_query_sends_prompt_and_question(client, make_response):
    client.session.post.return_value = _reply(make_response, "  asadmin list-applications \n")

    assert client.query("what is deployed?", "shop") == "asadmin list-applications"

    url = client.session.post.call_args.args[0]
    kwargs = client.session.post.call_args.kwargs
    assert url == "http://assistant.local/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    messages = kwargs["json"]["messages"]
    assert "'shop'" in messages[0]["content"]
    assert messages[1] == {"role": "user", "content": "what is deployed?"}


def test_error_status_raises(client, make_response):
    client.session.post.return_value = make_response(status=401, body={"error": {"message": "bad key"}})
    with pytest.raises(AssistantError) as exc:
        client.process_file_data("q", "log")
    assert "bad key" in str(exc.value)


def test_connection_problem_is_retried(client, make_response):
    client.session.post.side_effect = [
        requests.exceptions.ConnectionError("reset"),
        _reply(make_response, '{"response": "ok", "childResource": []}'),
    ]
    assert client.process_monitoring_data("q", "data") == '{"response": "ok", "childResource": []}'
    assert client.session.post.call_count == 2


def test_retries_exhausted(client):
    client.session.post.side_effect = requests.exceptions.Timeout("slow")
    with pytest.raises(AssistantError):
        client.process_mbean_data("q", "data")


def test_unexpected_body(client, make_response):
    client.session.post.return_value = make_response(body={"choices": []})
    with pytest.raises(AssistantError):
        client.process_admin_output("q", "out")


def test_factory_needs_url_or_key(monkeypatch):
    monkeypatch.delenv("SERVERPILOT_ASSISTANT_URL", raising=False)
    monkeypatch.delenv("SERVERPILOT_ASSISTANT_KEY", raising=False)
    assert get_assistant_client({"model": "m"}) is None

    monkeypatch.setenv("SERVERPILOT_ASSISTANT_KEY", "sk-env")
    client = get_assistant_client({"model": "m", "timeout": 30})
    assert client.api_key == "sk-env"
    assert client.base_url == "https://api.openai.com/v1"
    assert client.model == "m" and client.timeout == 30
    client.close()
