"""
Server log streaming.

This package provides:
- LogStreamMultiplexer: per-source reader threads feeding one line pipeline
- PipeReader, FileTailer, RemoteLogPoller: the line sources
- trim_log: compact rendering of bracketed server log records
"""

from logstream.log_trim import trim_log
from logstream.multiplexer import LogStreamMultiplexer
from logstream.tailers import FileTailer, PipeReader, RemoteLogPoller

__all__ = ["LogStreamMultiplexer", "FileTailer", "PipeReader", "RemoteLogPoller", "trim_log"]
