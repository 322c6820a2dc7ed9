"""
Log Bridge

Relays one LogStream to one LogSink for the lifetime of a client connection.

A BridgeSession is a long-lived task with an explicit state machine:

    INITIALIZING -> OPENING -> STREAMING -> CLOSING -> CLOSED
          \\            \\           \\          ^
           `------------`-----------`-> FAILING

The pump keeps at most one chunk in flight: the next read is only issued
after the previous write completed, so a slow client slows the reader down
instead of growing a buffer. Whatever happens, the session releases the
stream first and the sink second, each exactly once, and never raises out
of ``run()``.
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set

from logdash.core.exceptions import (
    AppException,
    ContainerNotFound,
    MissingSelector,
    RuntimeUnavailable,
    SinkWriteError,
    SourceReadError,
)
from logdash.core.logging import logger

from .base import LogSink, LogSource, LogStream


class BridgeState(Enum):
    """Bridge session states"""
    INITIALIZING = "initializing"
    OPENING = "opening"
    STREAMING = "streaming"
    FAILING = "failing"
    CLOSING = "closing"
    CLOSED = "closed"


class CloseReason(str, Enum):
    """Why a bridge session ended"""
    MISSING_SELECTOR = "MissingSelector"
    CONTAINER_NOT_FOUND = "ContainerNotFound"
    RUNTIME_UNAVAILABLE = "RuntimeUnavailable"
    SOURCE_READ_ERROR = "SourceReadError"
    SINK_WRITE_ERROR = "SinkWriteError"
    STREAM_ENDED = "StreamEnded"


VALID_TRANSITIONS = {
    BridgeState.INITIALIZING: [
        BridgeState.OPENING,
        BridgeState.FAILING,
        BridgeState.CLOSING
    ],
    BridgeState.OPENING: [
        BridgeState.STREAMING,
        BridgeState.FAILING,
        BridgeState.CLOSING
    ],
    BridgeState.STREAMING: [
        BridgeState.FAILING,
        BridgeState.CLOSING
    ],
    BridgeState.FAILING: [BridgeState.CLOSING],
    BridgeState.CLOSING: [BridgeState.CLOSED],
    BridgeState.CLOSED: []  # Terminal state
}

FAILURE_REASONS = {
    MissingSelector: CloseReason.MISSING_SELECTOR,
    ContainerNotFound: CloseReason.CONTAINER_NOT_FOUND,
    RuntimeUnavailable: CloseReason.RUNTIME_UNAVAILABLE,
    SourceReadError: CloseReason.SOURCE_READ_ERROR,
}


class SessionRegistry:
    """Tracks live sessions for health reporting. Event loop access only."""

    def __init__(self):
        self._sessions: Set["BridgeSession"] = set()

    def register(self, session: "BridgeSession") -> None:
        self._sessions.add(session)

    def unregister(self, session: "BridgeSession") -> None:
        self._sessions.discard(session)

    def count(self) -> int:
        return len(self._sessions)


# Global session registry instance
session_registry = SessionRegistry()


class BridgeSession:
    """
    Pairs one log stream with one client connection.

    The session owns both endpoints from the moment ``run()`` starts. Errors
    never escape: each one is mapped to a CloseReason, reported in-band to
    the client where that makes sense, and followed by the closing sequence.
    """

    def __init__(
        self,
        sink: LogSink,
        source: LogSource,
        registry: Optional[SessionRegistry] = None
    ):
        self.sink = sink
        self.source = source
        self.registry = registry if registry is not None else session_registry
        self.selector: Optional[str] = None
        self.reason: Optional[CloseReason] = None
        self._state = BridgeState.INITIALIZING
        self._stream: Optional[LogStream] = None
        self._stream_released = False
        self._sink_released = False
        self._metrics = {
            "bytes_sent": 0,
            "chunks_sent": 0,
            "started_at": datetime.now(timezone.utc)
        }

    @property
    def state(self) -> BridgeState:
        """Get current session state"""
        return self._state

    def set_state(self, new_state: BridgeState) -> None:
        """
        Set session state with validation

        Raises:
            ValueError: If the transition is not allowed
        """
        if new_state not in VALID_TRANSITIONS[self._state]:
            raise ValueError(
                f"Invalid state transition from {self._state.value} to {new_state.value}"
            )

        old_state = self._state
        self._state = new_state
        logger.debug(
            f"Bridge state transition: {old_state.value} -> {new_state.value} "
            f"for container {self.selector}"
        )

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self._metrics,
            "duration": (datetime.now(timezone.utc) - self._metrics["started_at"]).total_seconds(),
            "state": self._state.value,
            "container": self.selector,
        }

    async def run(self) -> CloseReason:
        """
        Drive the session to its terminal state.

        Returns:
            Why the session ended
        """
        if self._state is not BridgeState.INITIALIZING:
            raise RuntimeError("A bridge session can only be run once")

        self.registry.register(self)
        try:
            self.reason = await self._run_until_terminal()
        finally:
            await self._close()
            self.registry.unregister(self)

        return self.reason

    async def _run_until_terminal(self) -> CloseReason:
        try:
            await self.sink.accept()
            self.selector = self._read_selector()

            self.set_state(BridgeState.OPENING)
            self._stream = await self.source.open(self.selector)

            self.set_state(BridgeState.STREAMING)
            logger.info(f"Log session opened for container {self.selector}")
            reason = await self._stream_until_done()
            logger.info(
                f"Log stream for container {self.selector} ended after "
                f"{self._metrics['bytes_sent']} bytes"
            )
            return reason

        except SinkWriteError as e:
            # Normal when a browser tab goes away
            logger.info(f"Client for container {self.selector} went away: {e.message}")
            return CloseReason.SINK_WRITE_ERROR

        except AppException as e:
            reason = FAILURE_REASONS.get(type(e))
            if reason is None:
                reason = self._fallback_reason()
            await self._fail(reason, e.message)
            return reason

        except Exception as e:
            logger.exception(f"Unexpected error in log session for container {self.selector}")
            reason = self._fallback_reason()
            await self._fail(reason, str(e))
            return reason

    def _read_selector(self) -> str:
        selector = self.sink.selector()
        if selector is None or not selector.strip():
            raise MissingSelector()
        return selector.strip()

    def _fallback_reason(self) -> CloseReason:
        if self._state is BridgeState.STREAMING:
            return CloseReason.SOURCE_READ_ERROR
        return CloseReason.RUNTIME_UNAVAILABLE

    async def _stream_until_done(self) -> CloseReason:
        """
        Run the pump until the stream ends or the client disconnects.

        The disconnect watcher catches clients that leave while the stream is
        quiet, when no write would notice.
        """
        pump = asyncio.create_task(self._pump())
        watcher = asyncio.create_task(self.sink.wait_closed())

        try:
            done, _ = await asyncio.wait(
                {pump, watcher},
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (pump, watcher):
                if not task.done():
                    task.cancel()

        if pump in done:
            await asyncio.gather(watcher, return_exceptions=True)
            return pump.result()

        # Client is gone: stop reading before anything else
        self._release_stream()
        await asyncio.gather(pump, return_exceptions=True)
        raise SinkWriteError("client disconnected")

    async def _pump(self) -> CloseReason:
        while True:
            chunk = await self._stream.read()
            if not chunk:
                return CloseReason.STREAM_ENDED

            await self.sink.send_bytes(chunk)
            self._metrics["bytes_sent"] += len(chunk)
            self._metrics["chunks_sent"] += 1

    async def _fail(self, reason: CloseReason, message: str) -> None:
        self.set_state(BridgeState.FAILING)

        if reason in (CloseReason.MISSING_SELECTOR, CloseReason.CONTAINER_NOT_FOUND):
            logger.info(f"Rejecting log session for {self.selector!r}: {message}")
        else:
            logger.warning(f"Log session for container {self.selector} failed: {message}")

        try:
            await self.sink.send_text(f"{reason.value}: {message}")
        except Exception as e:
            logger.debug(f"Could not deliver diagnostic for container {self.selector}: {e}")

    def _release_stream(self) -> None:
        if self._stream is None or self._stream_released:
            return
        self._stream_released = True
        try:
            self._stream.close()
        except Exception as e:
            logger.warning(f"Error releasing log stream for container {self.selector}: {e}")

    async def _release_sink(self) -> None:
        if self._sink_released:
            return
        self._sink_released = True
        try:
            await self.sink.close()
        except Exception as e:
            logger.debug(f"Error closing client connection for container {self.selector}: {e}")

    async def _close(self) -> None:
        if self._state is not BridgeState.CLOSING:
            self.set_state(BridgeState.CLOSING)

        self._release_stream()
        await self._release_sink()

        self.set_state(BridgeState.CLOSED)
