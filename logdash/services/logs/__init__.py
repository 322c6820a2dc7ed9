"""
Log Streaming

Relays live container output to remote clients: sources open streams,
sinks deliver frames, and a bridge session pairs one of each.
"""

from .base import (
    LogSink,
    LogSource,
    LogStream
)
from .bridge import (
    BridgeSession,
    BridgeState,
    CloseReason,
    SessionRegistry,
    session_registry
)

__all__ = [
    'LogSink',
    'LogSource',
    'LogStream',
    'BridgeSession',
    'BridgeState',
    'CloseReason',
    'SessionRegistry',
    'session_registry'
]
