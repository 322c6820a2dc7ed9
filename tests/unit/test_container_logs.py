"""
Unit tests for the container log source
"""

import asyncio
import os
import threading
import pytest
from unittest.mock import Mock, patch
from docker.errors import APIError, NotFound
from docker.types.daemon import CancellableStream
from requests.exceptions import ConnectionError, ReadTimeout

from logdash.api.endpoints.containers import get_containers
from logdash.core.exceptions import ContainerNotFound, RuntimeUnavailable, SourceReadError
from logdash.services.logs.container_logs import (
    TTY_CHUNK_SIZE,
    ContainerLogSource,
    ContainerLogStream,
    open_log_stream,
)


class FakeDockerLogStream:
    """Stands in for docker-py's CancellableStream"""

    def __init__(self, chunks, error=None):
        self._chunks = list(chunks)
        self._error = error
        self.close = Mock()
        self.threads = []

    def __iter__(self):
        return self

    def __next__(self):
        self.threads.append(threading.current_thread().name)
        if self._chunks:
            return self._chunks.pop(0)
        if self._error is not None:
            raise self._error
        raise StopIteration


class BlockingDockerLogStream:
    """Blocks in next() until closed, like a follow stream on a quiet container"""

    def __init__(self):
        self._closed = threading.Event()
        self.reading = threading.Event()

    def __iter__(self):
        return self

    def __next__(self):
        self.reading.set()
        self._closed.wait(timeout=10)
        raise StopIteration

    def close(self):
        self._closed.set()


def broken_connection(chunks, error):
    """docker-py stream whose socket fails after the given chunks"""
    def generate():
        yield from chunks
        raise error

    response = Mock()
    response.raw.closed = True
    return CancellableStream(generate(), response)


def iter_content(data):
    """Mimics response.iter_content over one burst of TTY output"""
    def _stream_raw_result(response, chunk_size=1, decode=True):
        for start in range(0, len(data), chunk_size):
            yield data[start:start + chunk_size]
    return _stream_raw_result


async def wait_until(condition, timeout=5):
    for _ in range(int(timeout / 0.01)):
        if condition():
            return True
        await asyncio.sleep(0.01)
    return condition()


@pytest.fixture
def running_container(mock_docker_client):
    container = Mock()
    container.id = "3f2a9c"
    container.status = "running"
    container.attrs = {"Config": {"Tty": False}}
    container.logs.return_value = FakeDockerLogStream([b"hello\n", b"world\n"])
    container.wait.return_value = {"StatusCode": 0}
    mock_docker_client.containers.get.return_value = container
    return container


class TestOpenLogStream:

    def test_requests_following_stdout_and_stderr(self, mock_docker_client, running_container):
        stream = open_log_stream("web")

        mock_docker_client.containers.get.assert_called_once_with("web")
        running_container.logs.assert_called_once_with(
            stdout=True,
            stderr=True,
            stream=True,
            follow=True,
            tail="all"
        )
        assert isinstance(stream, ContainerLogStream)
        # The stream owns the client until it is closed
        mock_docker_client.close.assert_not_called()
        stream.close()

    def test_numeric_tail(self, monkeypatch, mock_docker_client, running_container):
        from logdash.core.config import settings
        monkeypatch.setattr(settings, "log_tail", "100")

        open_log_stream("web").close()

        assert running_container.logs.call_args.kwargs["tail"] == 100

    def test_missing_container(self, mock_docker_client):
        mock_docker_client.containers.get.side_effect = NotFound("No such container: ghost")

        with pytest.raises(ContainerNotFound) as exc_info:
            open_log_stream("ghost")

        assert exc_info.value.details == {"container": "ghost"}
        mock_docker_client.close.assert_called_once()

    def test_stopped_container(self, mock_docker_client, running_container):
        running_container.status = "exited"

        with pytest.raises(ContainerNotFound, match="exited"):
            open_log_stream("web")

        running_container.logs.assert_not_called()
        mock_docker_client.close.assert_called_once()

    def test_container_removed_before_subscribing(self, mock_docker_client, running_container):
        running_container.logs.side_effect = NotFound("No such container: web")

        with pytest.raises(ContainerNotFound):
            open_log_stream("web")

        mock_docker_client.close.assert_called_once()

    @pytest.mark.parametrize("error", [
        ConnectionError("connection refused"),
        APIError("500 Server Error"),
    ])
    def test_daemon_failure(self, mock_docker_client, error):
        mock_docker_client.containers.get.side_effect = error

        with pytest.raises(RuntimeUnavailable):
            open_log_stream("web")

        mock_docker_client.close.assert_called_once()


class TestTtyContainers:

    @pytest.fixture
    def tty_container(self, running_container):
        running_container.attrs = {"Config": {"Tty": True}}
        return running_container

    @pytest.mark.asyncio
    async def test_output_is_read_in_blocks(self, mock_docker_client, tty_container):
        emission = b"\x1b[32mready\x1b[0m listening on 0.0.0.0:8080\r\n" * 20
        api = mock_docker_client.api
        api._get.return_value.raw.closed = True
        api._stream_raw_result.side_effect = iter_content(emission)

        stream = open_log_stream("web")
        frames = []
        while True:
            chunk = await stream.read()
            if not chunk:
                break
            frames.append(chunk)
        stream.close()

        assert b"".join(frames) == emission
        assert len(frames) == 1
        tty_container.logs.assert_not_called()
        assert api._stream_raw_result.call_args.kwargs["chunk_size"] == TTY_CHUNK_SIZE
        params = api._get.call_args.kwargs["params"]
        assert params["follow"] == 1
        assert params["stdout"] == 1
        assert params["stderr"] == 1
        assert params["tail"] == "all"

    def test_removed_before_subscribing(self, mock_docker_client, tty_container):
        mock_docker_client.api._raise_for_status.side_effect = NotFound("No such container: web")

        with pytest.raises(ContainerNotFound):
            open_log_stream("web")

        mock_docker_client.close.assert_called_once()

    def test_daemon_failure(self, mock_docker_client, tty_container):
        mock_docker_client.api._get.side_effect = ConnectionError("connection refused")

        with pytest.raises(RuntimeUnavailable):
            open_log_stream("web")

        mock_docker_client.close.assert_called_once()


class TestContainerLogStream:

    @pytest.mark.asyncio
    async def test_reads_chunks_then_eof(self):
        client = Mock()
        stream = ContainerLogStream("web", client, FakeDockerLogStream([b"a\n", b"b\n"]))

        assert await stream.read() == b"a\n"
        assert await stream.read() == b"b\n"
        assert await stream.read() == b""
        stream.close()

    @pytest.mark.asyncio
    async def test_read_error(self):
        raw = FakeDockerLogStream([b"a\n"], error=ValueError("invalid frame header"))
        stream = ContainerLogStream("web", Mock(), raw)

        assert await stream.read() == b"a\n"
        with pytest.raises(SourceReadError, match="invalid frame header"):
            await stream.read()
        stream.close()

    @pytest.mark.asyncio
    async def test_eof_after_container_stopped(self):
        container = Mock()
        container.wait.return_value = {"StatusCode": 0}
        raw = broken_connection([b"bye\n"], OSError("connection reset"))
        stream = ContainerLogStream("web", Mock(), raw, container)

        assert await stream.read() == b"bye\n"
        assert await stream.read() == b""
        container.wait.assert_called_once()
        stream.close()

    @pytest.mark.asyncio
    async def test_eof_after_container_removed(self):
        container = Mock()
        container.wait.side_effect = NotFound("No such container: web")
        stream = ContainerLogStream("web", Mock(), broken_connection([], OSError("reset")), container)

        assert await stream.read() == b""
        stream.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("wait_error", [
        ReadTimeout("read timed out"),
        ConnectionError("connection refused"),
    ])
    async def test_dropped_connection_is_a_read_error(self, wait_error):
        container = Mock()
        container.wait.side_effect = wait_error
        raw = broken_connection([b"a\n"], OSError("connection reset by peer"))
        stream = ContainerLogStream("web", Mock(), raw, container)

        assert await stream.read() == b"a\n"
        with pytest.raises(SourceReadError, match="did not stop"):
            await stream.read()
        stream.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = Mock()
        raw = FakeDockerLogStream([b"a\n"])
        stream = ContainerLogStream("web", client, raw)

        stream.close()
        stream.close()

        assert stream.closed
        raw.close.assert_called_once()
        client.close.assert_called_once()
        # Closed streams are never polled again
        assert await stream.read() == b""

    @pytest.mark.asyncio
    async def test_close_unblocks_pending_read(self):
        raw = BlockingDockerLogStream()
        container = Mock()
        stream = ContainerLogStream("web", Mock(), raw, container)

        pending = asyncio.create_task(stream.read())
        assert await wait_until(raw.reading.is_set)

        stream.close()

        assert await asyncio.wait_for(pending, timeout=5) == b""
        container.wait.assert_not_called()

    @pytest.mark.asyncio
    async def test_close_errors_are_contained(self):
        client = Mock()
        client.close.side_effect = RuntimeError("pool already closed")
        raw = FakeDockerLogStream([])
        raw.close.side_effect = OSError("bad file descriptor")

        stream = ContainerLogStream("web", client, raw)
        stream.close()

        raw.close.assert_called_once()
        client.close.assert_called_once()


class TestReaderThreads:

    @pytest.mark.asyncio
    async def test_quiet_streams_do_not_starve_other_sessions(self, mock_docker_client):
        mock_docker_client.api.containers.return_value = [{"Names": ["/web"]}]
        default_pool_size = min(32, (os.cpu_count() or 1) + 4)

        quiet = [BlockingDockerLogStream() for _ in range(default_pool_size + 1)]
        quiet_streams = [
            ContainerLogStream(f"quiet-{i}", Mock(), raw) for i, raw in enumerate(quiet)
        ]
        pending = [asyncio.create_task(stream.read()) for stream in quiet_streams]
        assert await wait_until(lambda: all(raw.reading.is_set() for raw in quiet))

        try:
            busy = ContainerLogStream("busy", Mock(), FakeDockerLogStream([b"hello\n"]))
            assert await asyncio.wait_for(busy.read(), timeout=2) == b"hello\n"
            busy.close()

            assert await asyncio.wait_for(get_containers(), timeout=2) == ["web"]
        finally:
            for stream in quiet_streams:
                stream.close()

        assert await asyncio.gather(*pending) == [b""] * len(quiet)

    @pytest.mark.asyncio
    async def test_subscription_and_reads_share_one_thread(self, mock_docker_client, running_container):
        raw = FakeDockerLogStream([b"hello\n"])
        subscribed_on = []

        def subscribe(**kwargs):
            subscribed_on.append(threading.current_thread().name)
            return raw

        running_container.logs.side_effect = subscribe

        stream = await ContainerLogSource().open("web")
        assert await stream.read() == b"hello\n"
        assert await stream.read() == b""
        stream.close()

        assert subscribed_on[0].startswith("logs-web")
        assert set(raw.threads) == {subscribed_on[0]}


class TestContainerLogSource:

    @pytest.mark.asyncio
    async def test_open_runs_off_the_event_loop(self, mock_docker_client, running_container):
        source = ContainerLogSource()

        stream = await source.open("web")

        assert await stream.read() == b"hello\n"
        stream.close()
        mock_docker_client.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_open_error_propagates(self, mock_docker_client):
        mock_docker_client.containers.get.side_effect = NotFound("No such container: ghost")

        with pytest.raises(ContainerNotFound):
            await ContainerLogSource().open("ghost")

    @pytest.mark.asyncio
    async def test_cancelled_open_closes_late_stream(self):
        opened = threading.Event()
        release = threading.Event()
        late_stream = Mock()

        def slow_open(name, executor):
            opened.set()
            release.wait(timeout=5)
            return late_stream

        with patch("logdash.services.logs.container_logs.open_log_stream", side_effect=slow_open):
            task = asyncio.create_task(ContainerLogSource().open("web"))
            assert await wait_until(opened.is_set)

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            release.set()
            assert await wait_until(lambda: late_stream.close.called)

        late_stream.close.assert_called_once()
