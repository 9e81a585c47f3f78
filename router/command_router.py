# router/command_router.py
"""
Interactive command loop.

Built-in commands (exit, deploy, undeploy, asadmin ...) are handled
directly; anything else is sent to the assistant and its reply is
dispatched on the classified directive. A failure while handling one line
is logged and the loop moves on to the next.
"""

import json
import logging
import sys
import threading
from typing import Callable, Iterable, List, Optional

from connectors.errors import NetworkError, ProtocolParseError, ServerPilotError
from router.classifier import ADMIN_PREFIX, AssistantDirective, DirectiveKind, classify
from utils.print_utils import markdown_to_ansi

logger = logging.getLogger("serverpilot.router")

EXIT_COMMAND = "exit"
DEPLOY_COMMAND = "deploy"
UNDEPLOY_COMMAND = "undeploy"
APP_NAME_PLACEHOLDER = "${appname}"
RESULT_SEPARATOR = "\n=================\n"
DEFAULT_MAX_CHILD_DEPTH = 8
REMOTE_UNAVAILABLE = "not available for remote instances"


def strip_code_fence(text: str) -> str:
    text = (text or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    else:
        return text
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def default_output(text: str) -> None:
    print(markdown_to_ansi(text))


class CommandRouter:
    def __init__(
        self,
        manager,
        project_name: str,
        orchestrator=None,
        assistant=None,
        instance_id: Optional[str] = None,
        on_exit: Optional[Callable[[], None]] = None,
        output: Optional[Callable[[str], None]] = None,
        max_child_depth: int = DEFAULT_MAX_CHILD_DEPTH,
        cancel: Optional[threading.Event] = None,
    ):
        self.manager = manager
        self.project_name = project_name
        self.orchestrator = orchestrator
        self.assistant = assistant
        self.instance_id = instance_id
        self.on_exit = on_exit
        self.output = output or default_output
        self.max_child_depth = max_child_depth
        self.cancel = cancel or threading.Event()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    def run(self, lines: Optional[Iterable[str]] = None) -> None:
        """Consume lines until EOF, `exit`, or cancellation."""
        stream = sys.stdin if lines is None else lines
        for raw in stream:
            if self.cancel.is_set():
                break
            try:
                keep_going = self.handle_line(raw.rstrip("\r\n"))
            except Exception:
                logger.exception("Error while handling command %r", raw.strip())
                continue
            if not keep_going:
                break
        logger.debug("Command loop finished")

    def start(self, lines: Optional[Iterable[str]] = None) -> threading.Thread:
        # Daemon: a blocked stdin read must not keep the process alive
        thread = threading.Thread(target=self.run, args=(lines,), name="command-router", daemon=True)
        thread.start()
        return thread

    def handle_line(self, line: str) -> bool:
        """Handle one input line. Returns False when the loop should end."""
        command = line.strip()
        if command == EXIT_COMMAND:
            logger.info("Exit requested")
            if self.on_exit is not None:
                self.on_exit()
            return False
        if command == DEPLOY_COMMAND:
            if self.orchestrator is not None:
                self.orchestrator.deploy_application()
            return True
        if command == UNDEPLOY_COMMAND:
            self.manager.undeploy(self.project_name, self.instance_id)
            return True
        if command == ADMIN_PREFIX or command.startswith(ADMIN_PREFIX + " "):
            self._run_admin(command[len(ADMIN_PREFIX):].strip())
            return True
        if command:
            self.ask(command)
        return True

    def _run_admin(self, admin_command: str) -> None:
        if not self.manager.is_local:
            logger.warning("asadmin commands are %s", REMOTE_UNAVAILABLE)
            return
        self.output(self.manager.run_admin_command(admin_command))

    # ------------------------------------------------------------------
    # Assistant dispatch
    # ------------------------------------------------------------------
    def ask(self, question: str) -> AssistantDirective:
        if self.assistant is None:
            raise ServerPilotError("Assistant not initialized.")

        directive = classify(self.assistant.query(question, self.project_name))
        logger.debug("Assistant directive: %s", directive.kind.value)

        if directive.kind == DirectiveKind.ADMIN_COMMAND:
            self._dispatch_admin(question, directive)
        elif directive.kind == DirectiveKind.REST_ENDPOINT:
            self._dispatch_endpoints(question, directive)
        elif directive.kind == DirectiveKind.JMX_QUERY:
            self._dispatch_mbeans(question, directive)
        elif directive.kind == DirectiveKind.SERVER_LOG_REQUEST:
            self._dispatch_file(question, "server log", lambda: self.manager.read_server_log())
        elif directive.kind == DirectiveKind.DOMAIN_CONFIG_REQUEST:
            self._dispatch_file(question, "domain configuration", lambda: self.manager.read_domain_config())
        else:
            self.output(directive.raw)
        return directive

    def _dispatch_admin(self, question: str, directive: AssistantDirective) -> None:
        self.output(directive.raw)
        if not directive.read_only:
            logger.info("Not running '%s': only read-only commands are executed", directive.command)
            return
        if not self.manager.is_local:
            logger.warning("asadmin commands are %s", REMOTE_UNAVAILABLE)
            return
        result = self.manager.run_admin_command(directive.command)
        self.output(self.assistant.process_admin_output(question, f"{directive.raw} \n{result}"))

    def _dispatch_endpoints(self, question: str, directive: AssistantDirective) -> None:
        if self.manager.is_local:
            self.manager.enable_monitoring()
        collected = self._collect_endpoints(directive.payload)
        reply = self.assistant.process_monitoring_data(question, collected)
        self.follow_child_resources(question, reply)

    def _collect_endpoints(self, endpoints: Iterable[str]) -> str:
        parts: List[str] = []
        for endpoint in endpoints:
            endpoint = str(endpoint).replace(APP_NAME_PLACEHOLDER, self.project_name)
            parts.append(endpoint + "\n")
            try:
                response = self.manager.run_endpoint(endpoint)
            except (NetworkError, ProtocolParseError) as e:
                logger.warning("Endpoint %s failed: %s", endpoint, e)
                continue
            parts.append(json.dumps(response.extra_properties) + RESULT_SEPARATOR)
        return "".join(parts)

    def follow_child_resources(self, question: str, reply: str, depth: int = 0) -> None:
        """
        Show the structured reply and fetch every child resource it asks
        for, once each, until the list is empty, the reply is not JSON, or
        max_child_depth rounds have run.
        """
        try:
            data = json.loads(strip_code_fence(reply))
        except ValueError:
            self.output(reply)
            return
        if not isinstance(data, dict):
            self.output(reply)
            return

        if "response" in data:
            self.output(str(data["response"]))

        children = data.get("childResource")
        if not isinstance(children, list) or not children:
            return
        if depth >= self.max_child_depth:
            logger.warning("Stopped following child resources after %d rounds", depth)
            return

        collected = self._collect_endpoints(children)
        next_reply = self.assistant.process_monitoring_data(question, collected)
        self.follow_child_resources(question, next_reply, depth + 1)

    def _dispatch_mbeans(self, question: str, directive: AssistantDirective) -> None:
        parts: List[str] = []
        for bean in directive.payload:
            parts.append(bean + "\n")
            try:
                parts.append(self.manager.query_mbean(bean) + RESULT_SEPARATOR)
            except (NetworkError, ProtocolParseError) as e:
                logger.warning("MBean %s unavailable: %s", bean, e)
        self.output(self.assistant.process_mbean_data(question, "".join(parts)))

    def _dispatch_file(self, question: str, label: str, reader: Callable[[], str]) -> None:
        if not self.manager.is_local:
            self.output(f"The {label} is {REMOTE_UNAVAILABLE}.")
            return
        self.output(self.assistant.process_file_data(question, reader()))
