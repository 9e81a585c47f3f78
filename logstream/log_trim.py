# logstream/log_trim.py
"""
Log trimming for server console output.

Payara prints every record in a bracketed "uniform" layout:

    [2025-06-01T10:00:00.000+0000] [Payara 6.2025.6] [INFO] [] [javax.enterprise.web]
    [tid: _ThreadID=1 _ThreadName=main] [timeMillis: 1748772000000] [levelValue: 800] [[
      message text ]]

Trimming keeps only the level, the logger and the message. Records that
span several lines are handled line by line: the header line is collapsed,
continuation lines are stripped of the closing "]]".
"""

import re
from typing import Optional

# One complete record on a single line
RECORD_PATTERN = re.compile(
    r"^\[(?P<ts>[^\]]*)\]\s*"
    r"\[(?P<product>[^\]]*)\]\s*"
    r"\[(?P<level>[A-Z]+)\]\s*"
    r"\[(?P<msgid>[^\]]*)\]\s*"
    r"\[(?P<logger>[^\]]*)\]\s*"
    r"(?:\[[^\]]*\]\s*)*?"
    r"\[\[\s?(?P<message>.*?)\s*(?:\]\])?\s*$"
)

# Continuation of a multi-line record
RECORD_END_PATTERN = re.compile(r"\s*\]\]\s*$")

# Fields that carry no value on a developer console
NOISE_PATTERNS = [
    re.compile(r"\[tid: [^\]]*\]"),
    re.compile(r"\[timeMillis: \d+\]"),
    re.compile(r"\[levelValue: \d+\]"),
]


def trim_log(line: str) -> str:
    """
    Collapse a bracketed log record to "LEVEL logger: message".
    Lines not in the bracketed layout pass through unchanged.
    """
    if not line:
        return line

    match = RECORD_PATTERN.match(line)
    if match:
        message = match.group("message")
        prefix = f"{match.group('level')} {match.group('logger')}".rstrip()
        return f"{prefix}: {message}" if message else f"{prefix}:"

    if RECORD_END_PATTERN.search(line):
        return RECORD_END_PATTERN.sub("", line)

    return _strip_noise(line)


def _strip_noise(line: str) -> str:
    if not line.startswith("["):
        return line
    stripped = line
    for pattern in NOISE_PATTERNS:
        stripped = pattern.sub("", stripped)
    return stripped if stripped.strip() else line


def level_of(line: str) -> Optional[str]:
    """Level of a bracketed record, or None."""
    match = RECORD_PATTERN.match(line or "")
    return match.group("level") if match else None
