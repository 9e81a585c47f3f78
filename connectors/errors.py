# connectors/errors.py
"""
Error kinds shared by every serverpilot component.

Fatal kinds (ConfigurationError, LaunchError) propagate to the CLI.
Recoverable kinds (NetworkError, ProtocolParseError, AssistantError) are
caught at loop/callback boundaries and logged.
"""


class ServerPilotError(Exception):
    """Base class for all serverpilot errors."""


class ConfigurationError(ServerPilotError):
    """Configuration is missing or inconsistent (e.g. no server source)."""


class LaunchError(ServerPilotError):
    """The server process could not be started or exited abnormally."""

    def __init__(self, message: str, exit_code=None):
        super().__init__(message)
        self.exit_code = exit_code


class NetworkError(ServerPilotError):
    """Admin/monitoring endpoint unreachable, timed out, or refused auth."""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolParseError(ServerPilotError):
    """A response body could not be parsed as the expected structure."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class UnsupportedOperationError(ServerPilotError, NotImplementedError):
    """Capability not offered by this instance manager variant."""


class AssistantError(ServerPilotError):
    """The assistant service failed to answer."""
