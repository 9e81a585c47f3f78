# router/classifier.py
"""
Response classifier for assistant replies.

A reply is matched against an ordered list of (predicate, kind) pairs; the
first predicate that accepts it decides the directive. Order is
significant: a reply that contains both an admin command and an endpoint
is an admin command.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Tuple

ADMIN_PREFIX = "asadmin"

ADMIN_LINE_PATTERN = re.compile(r"^\s*`?(?:\$\s*)?asadmin\s+(?P<command>[^`\n]+?)`?\s*$", re.MULTILINE)
ENDPOINT_PATTERN = re.compile(r"(?<![A-Za-z_/])(?P<endpoint>/(?:management|monitoring)/domain(?:/[^\s`'\"<>),]*)?)")
MBEAN_PATTERN = re.compile(
    r"(?<![\w/])(?P<bean>[A-Za-z_][\w.\-]*:(?:[\w.\-]+=[^\s,`'\"]+)(?:,[\w.\-]+=[^\s,`'\"]+)*)"
)
SERVER_LOG_PATTERN = re.compile(r"\bserver\.log\b", re.IGNORECASE)
DOMAIN_XML_PATTERN = re.compile(r"\bdomain\.xml\b", re.IGNORECASE)

READ_ONLY_PREFIXES = (
    "list",
    "get",
    "show-",
    "version",
    "uptime",
    "location",
    "help",
    "describe-",
    "validate-",
    "ping-",
    "monitor",
)


class DirectiveKind(str, Enum):
    ADMIN_COMMAND = "admin_command"
    REST_ENDPOINT = "rest_endpoint"
    JMX_QUERY = "jmx_query"
    SERVER_LOG_REQUEST = "server_log_request"
    DOMAIN_CONFIG_REQUEST = "domain_config_request"
    PLAIN_TEXT = "plain_text"


@dataclass(frozen=True)
class AssistantDirective:
    kind: DirectiveKind
    raw: str
    payload: Tuple[str, ...] = ()

    @property
    def command(self) -> str:
        """The admin command without the `asadmin` prefix."""
        return self.payload[0] if self.kind == DirectiveKind.ADMIN_COMMAND and self.payload else ""

    @property
    def read_only(self) -> bool:
        return self.kind == DirectiveKind.ADMIN_COMMAND and is_read_only(self.command)


# ----------------------------------------------------------------------
# Extraction
# ----------------------------------------------------------------------
def admin_commands(text: str) -> List[str]:
    return [m.group("command").strip("`") for m in ADMIN_LINE_PATTERN.finditer(text or "")]


def rest_endpoints(text: str) -> List[str]:
    return _unique(m.group("endpoint").rstrip(".;:") for m in ENDPOINT_PATTERN.finditer(text or ""))


def mbean_names(text: str) -> List[str]:
    return _unique(m.group("bean").rstrip(".;") for m in MBEAN_PATTERN.finditer(text or ""))


def _unique(items) -> List[str]:
    seen = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen


def is_read_only(command: str) -> bool:
    """True for admin commands that only read state (list-*, get, show-*, version, ...)."""
    words = (command or "").strip().split()
    if not words:
        return False
    name = words[0].lower()
    if name == ADMIN_PREFIX and len(words) > 1:
        name = words[1].lower()
    return name.startswith(READ_ONLY_PREFIXES)


# ----------------------------------------------------------------------
# Ordered classification
# ----------------------------------------------------------------------
CLASSIFIERS: List[Tuple[Callable[[str], bool], DirectiveKind]] = [
    (lambda text: bool(admin_commands(text)), DirectiveKind.ADMIN_COMMAND),
    (lambda text: bool(rest_endpoints(text)), DirectiveKind.REST_ENDPOINT),
    (lambda text: bool(mbean_names(text)), DirectiveKind.JMX_QUERY),
    (lambda text: bool(SERVER_LOG_PATTERN.search(text)), DirectiveKind.SERVER_LOG_REQUEST),
    (lambda text: bool(DOMAIN_XML_PATTERN.search(text)), DirectiveKind.DOMAIN_CONFIG_REQUEST),
]

PAYLOAD_EXTRACTORS = {
    DirectiveKind.ADMIN_COMMAND: lambda text: admin_commands(text)[:1],
    DirectiveKind.REST_ENDPOINT: rest_endpoints,
    DirectiveKind.JMX_QUERY: mbean_names,
}


def classify(response: str) -> AssistantDirective:
    text = (response or "").strip()
    for predicate, kind in CLASSIFIERS:
        if predicate(text):
            extractor = PAYLOAD_EXTRACTORS.get(kind)
            payload = tuple(extractor(text)) if extractor else ()
            return AssistantDirective(kind=kind, raw=text, payload=payload)
    return AssistantDirective(kind=DirectiveKind.PLAIN_TEXT, raw=text)
