"""
Container log source provider.

Implements the LogSource interface on top of docker-py. Each opened stream
holds its own Docker client, a following ``logs`` response and a single
reader thread; closing the stream tears down all three.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from docker.client import DockerClient
from docker.errors import NotFound
from docker.types.daemon import CancellableStream

from logdash.core.config import settings
from logdash.core.exceptions import ContainerNotFound, RuntimeUnavailable, SourceReadError
from logdash.core.logging import logger
from logdash.services.docker_client import RUNTIME_ERRORS, DockerClientFactory

from .base import LogSource, LogStream


# docker-py reads TTY output one byte at a time; chunked responses still
# yield as soon as each HTTP chunk arrives
TTY_CHUNK_SIZE = 4096

# How long a finished stream waits for its container to stop
END_CHECK_TIMEOUT = 2


def _reader_executor(container_name: str) -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"logs-{container_name}")


class ContainerLogStream(LogStream):
    """
    Live stdout/stderr output of one container.

    Wraps the stream returned by ``container.logs(stream=True, follow=True)``.
    Reads block on the daemon socket, so they run on a thread owned by this
    stream; a quiet container never holds up another session's reads.
    """

    def __init__(
        self,
        container_name: str,
        client: DockerClient,
        stream: Any,
        container: Optional[Any] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        self.container_name = container_name
        self._client = client
        self._stream = stream
        self._container = container
        self._executor = executor or _reader_executor(container_name)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self) -> bytes:
        if self._closed:
            return b""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._read_chunk)

    def _read_chunk(self) -> bytes:
        if self._closed:
            return b""

        try:
            chunk = next(self._stream, b"")
        except Exception as e:
            if self._closed:
                # close() from the event loop interrupted this read
                return b""
            raise SourceReadError(self.container_name, str(e))

        if not chunk:
            self._confirm_end()
            return b""

        if not isinstance(chunk, bytes):
            chunk = bytes(chunk)
        return chunk

    def _confirm_end(self) -> None:
        """
        Tell a finished container apart from a dropped daemon connection.

        docker-py ends iteration quietly when the socket breaks, so end of
        stream only counts once the container has stopped or is gone.
        """
        if self._container is None or self._closed:
            return

        try:
            self._container.wait(timeout=END_CHECK_TIMEOUT)
        except NotFound:
            return
        except RUNTIME_ERRORS as e:
            if self._closed:
                return
            raise SourceReadError(
                self.container_name,
                f"log stream ended but the container did not stop: {str(e)}"
            )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            # Shuts the socket down, which also wakes a blocked reader
            self._stream.close()
        except Exception as e:
            logger.warning(f"Error closing log stream for {self.container_name}: {e}")

        try:
            self._client.close()
        except Exception as e:
            logger.warning(f"Error closing Docker client for {self.container_name}: {e}")

        self._executor.shutdown(wait=False)


def _tail_option(tail: str):
    return "all" if tail == "all" else int(tail)


def _is_tty(container) -> bool:
    config = container.attrs.get("Config") or {}
    return config.get("Tty") is True


def _follow_tty_logs(client: DockerClient, container, tail) -> CancellableStream:
    """Same request as ``container.logs`` but read in blocks, not bytes"""
    api = client.api
    response = api._get(
        api._url("/containers/{0}/logs", container.id),
        params={
            "stdout": 1,
            "stderr": 1,
            "timestamps": 0,
            "follow": 1,
            "tail": tail
        },
        stream=True
    )
    api._raise_for_status(response)
    output = api._stream_raw_result(response, chunk_size=TTY_CHUNK_SIZE, decode=False)
    return CancellableStream(output, response)


def _subscribe(client: DockerClient, container_name: str):
    try:
        container = client.containers.get(container_name)
    except NotFound:
        raise ContainerNotFound(container_name)
    except RUNTIME_ERRORS as e:
        raise RuntimeUnavailable(f"Failed to look up container {container_name}: {str(e)}")

    if container.status != "running":
        raise ContainerNotFound(container_name, f"container is {container.status}")

    tail = _tail_option(settings.log_tail)
    try:
        if _is_tty(container):
            stream = _follow_tty_logs(client, container, tail)
        else:
            stream = container.logs(
                stdout=True,
                stderr=True,
                stream=True,
                follow=True,
                tail=tail
            )
    except NotFound:
        # Removed between the lookup and the subscription
        raise ContainerNotFound(container_name)
    except RUNTIME_ERRORS as e:
        raise RuntimeUnavailable(f"Failed to open logs of {container_name}: {str(e)}")

    return container, stream


def open_log_stream(
    container_name: str,
    executor: Optional[ThreadPoolExecutor] = None
) -> ContainerLogStream:
    """
    Open a following log stream for a running container.

    Blocks until the daemon has answered the subscription request; no log
    data is read here.

    Raises:
        ContainerNotFound: If the container doesn't exist or isn't running
        RuntimeUnavailable: If the Docker daemon cannot be reached
    """
    client = DockerClientFactory.create_client()
    try:
        container, stream = _subscribe(client, container_name)
    except BaseException:
        client.close()
        raise

    return ContainerLogStream(container_name, client, stream, container, executor)


class ContainerLogSource(LogSource):
    """Log source provider for Docker containers."""

    async def open(self, resource_id: str) -> LogStream:
        # The subscription runs on the thread that will later read the stream
        executor = _reader_executor(resource_id)
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(executor, open_log_stream, resource_id, executor)

        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            # Nobody will own the stream if the subscription still succeeds
            future.add_done_callback(functools.partial(_close_orphaned_stream, executor))
            raise
        except BaseException:
            executor.shutdown(wait=False)
            raise


def _close_orphaned_stream(executor: ThreadPoolExecutor, future: asyncio.Future) -> None:
    if future.cancelled() or future.exception() is not None:
        executor.shutdown(wait=False)
        return
    logger.debug("Closing log stream opened after its session was cancelled")
    future.result().close()
