"""
Base classes and interfaces for log streaming.

A log session connects two endpoints: a LogStream produced by a LogSource,
and a LogSink that delivers bytes to one remote client. The session logic
only ever talks to these interfaces, so it can be driven by fakes in tests
and by Docker plus a WebSocket in production.
"""

from abc import ABC, abstractmethod
from typing import Optional


class LogStream(ABC):
    """
    An open, ordered, possibly endless byte stream for one resource.

    Implementations must not buffer ahead of the reader: one ``read()`` pulls
    at most one chunk from the underlying source.
    """

    @abstractmethod
    async def read(self) -> bytes:
        """
        Read the next chunk.

        Returns:
            The next non-empty chunk, or ``b""`` once the stream has ended

        Raises:
            SourceReadError: If the stream broke after it was opened
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Release the stream and everything it holds.

        Must be idempotent, and must unblock a ``read()`` in progress.
        """
        pass


class LogSource(ABC):
    """Opens log streams for named resources."""

    @abstractmethod
    async def open(self, resource_id: str) -> LogStream:
        """
        Subscribe to the live output of a resource.

        Args:
            resource_id: Name of the resource to follow

        Returns:
            An open LogStream owned by the caller

        Raises:
            ContainerNotFound: If the resource doesn't exist or isn't running
            RuntimeUnavailable: If the runtime cannot be reached
        """
        pass


class LogSink(ABC):
    """A message-framed connection to exactly one client."""

    @abstractmethod
    async def accept(self) -> None:
        """Complete the connection handshake."""
        pass

    @abstractmethod
    def selector(self) -> Optional[str]:
        """Name of the resource the client asked for, if any."""
        pass

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None:
        """
        Deliver one chunk of log data as one frame.

        Raises:
            SinkWriteError: If the client is gone
        """
        pass

    @abstractmethod
    async def send_text(self, message: str) -> None:
        """
        Deliver a human-readable notice as one frame.

        Raises:
            SinkWriteError: If the client is gone
        """
        pass

    @abstractmethod
    async def wait_closed(self) -> None:
        """Return once the client has disconnected."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection. Must be idempotent."""
        pass
