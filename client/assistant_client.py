# client/assistant_client.py
"""
Assistant Client - HTTP client wrapper for an OpenAI-compatible chat service.

The assistant is a black box that turns an operator's question into either
a directive (admin command, REST endpoints, MBean names, "server.log",
"domain.xml") or plain text, and later turns collected server data into a
narrative answer. Classification of the replies lives in router/.
"""

import os
import logging
import time
from typing import Optional, Dict, Any, List
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from connectors.errors import AssistantError

logger = logging.getLogger("serverpilot.assistant")

DEFAULT_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
CHAT_PATH = "/chat/completions"

DIRECTIVE_PROMPT = """You help a developer operate a Payara application server while their application '{project}' runs on it.
Answer with exactly one of:
- a single read-only admin command line starting with "asadmin " when an admin command answers the question;
- one or more admin REST endpoints, one per line, starting with /management/domain/ or /monitoring/domain/ (use ${{appname}} for the application name);
- one or more JMX MBean object names, one per line (for example java.lang:type=Memory);
- the word server.log when the server log is needed, or domain.xml when the domain configuration is needed;
- otherwise a short plain-text answer in Markdown."""

ADMIN_OUTPUT_PROMPT = """The developer asked: {question}
You proposed an admin command and it was executed. Explain the result in Markdown."""

MONITORING_PROMPT = """The developer asked: {question}
Below are admin REST responses (endpoint, then its extraProperties JSON).
Reply ONLY with a JSON object: {{"response": "<Markdown answer>", "childResource": ["<endpoint>", ...]}}.
List childResource endpoints only if reading them is needed to answer; otherwise return an empty list."""

MBEAN_PROMPT = """The developer asked: {question}
Below are JMX MBean attribute values. Explain them in Markdown."""

FILE_PROMPT = """The developer asked: {question}
Below is the content of a server file. Answer using it, in Markdown."""


class AssistantClient:
    """
    HTTP client for the assistant service.
    One session per client, retried on gateway errors.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: int = 120,
        retry_delays: Optional[List[int]] = None,
    ):
        """
        Initialize Assistant Client.

        Args:
            base_url: Service URL up to the API version (e.g., "https://api.openai.com/v1")
            api_key: Bearer token, omitted for local providers
            model: Model name sent with every request
            timeout: Request timeout in seconds
            retry_delays: Extra attempts after a timeout/connection error, in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.retry_delays = [2, 5] if retry_delays is None else list(retry_delays)

        # Create session with retry strategy
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[502, 503, 504],
            allowed_methods=["POST"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    # ------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------
    def _chat(self, system_prompt: str, user_content: str) -> str:
        """
        Send one chat completion request and return the reply text.

        Raises:
            AssistantError: on client errors, exhausted retries or an unusable body
        """
        url = f"{self.base_url}{CHAT_PATH}"
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "temperature": 0,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        for attempt in range(len(self.retry_delays) + 1):
            try:
                logger.debug(f"Calling assistant: {url} (attempt {attempt + 1})")
                start_time = time.time()
                response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
                elapsed = time.time() - start_time
                logger.debug(f"Assistant response: {response.status_code} ({elapsed:.2f}s)")
            except requests.exceptions.RetryError as e:
                logger.warning(f"Retry error after all attempts: {e}")
                raise AssistantError("Assistant service is currently unavailable. Please try again later.") from e
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                logger.warning(f"Assistant connection problem: {e}")
                if attempt < len(self.retry_delays):
                    delay = self.retry_delays[attempt]
                    logger.info(f"Retrying in {delay} seconds...")
                    time.sleep(delay)
                    continue
                raise AssistantError("Unable to connect to the assistant service.") from e
            except requests.exceptions.RequestException as e:
                raise AssistantError(f"Assistant request failed: {e}") from e

            if response.status_code != 200:
                detail = response.text
                try:
                    detail = response.json().get("error", {}).get("message", detail)
                except (ValueError, AttributeError):
                    pass
                raise AssistantError(f"Assistant error {response.status_code}: {detail}")

            return _extract_content(response)

        raise AssistantError("Assistant request failed after all retries")

    # ------------------------------------------------------------
    # Conversation steps
    # ------------------------------------------------------------
    def query(self, question: str, project_name: str) -> str:
        """First step: ask for a directive or a direct answer."""
        return self._chat(DIRECTIVE_PROMPT.format(project=project_name), question).strip()

    def process_admin_output(self, question: str, command_and_output: str) -> str:
        return self._chat(ADMIN_OUTPUT_PROMPT.format(question=question), command_and_output)

    def process_monitoring_data(self, question: str, data: str) -> str:
        """Returns the raw reply; it is expected (not guaranteed) to be JSON."""
        return self._chat(MONITORING_PROMPT.format(question=question), data).strip()

    def process_mbean_data(self, question: str, data: str) -> str:
        return self._chat(MBEAN_PROMPT.format(question=question), data)

    def process_file_data(self, question: str, content: str) -> str:
        return self._chat(FILE_PROMPT.format(question=question), content)

    def close(self) -> None:
        self.session.close()


def _extract_content(response: requests.Response) -> str:
    try:
        body: Dict[str, Any] = response.json()
        return body["choices"][0]["message"]["content"] or ""
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise AssistantError(f"Unexpected assistant response: {response.text[:200]}") from e


def get_assistant_client(settings: Optional[Dict[str, Any]] = None) -> Optional[AssistantClient]:
    """
    Factory function to create AssistantClient from the `assistant` config
    section, with environment overrides.

    Args:
        settings: assistant config section (url, api_key, model, timeout)

    Returns:
        AssistantClient, or None when neither a URL nor an API key is configured
    """
    settings = settings or {}
    base_url = os.getenv("SERVERPILOT_ASSISTANT_URL") or settings.get("url")
    api_key = os.getenv("SERVERPILOT_ASSISTANT_KEY") or settings.get("api_key")

    if not base_url and not api_key:
        logger.info("No assistant configured")
        return None

    return AssistantClient(
        base_url=base_url or DEFAULT_URL,
        api_key=api_key,
        model=settings.get("model") or DEFAULT_MODEL,
        timeout=int(settings.get("timeout") or 120),
    )
