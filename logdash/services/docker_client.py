from contextlib import contextmanager
from typing import Iterator
import docker
from docker.client import DockerClient
from docker.errors import DockerException
from requests.exceptions import RequestException

from logdash.core.config import settings
from logdash.core.exceptions import RuntimeUnavailable


# Errors docker-py lets through when the daemon cannot be reached at all
RUNTIME_ERRORS = (DockerException, RequestException)


class DockerClientFactory:
    """Builds Docker clients from settings.

    Clients are never cached: every operation acquires its own handle and
    closes it when done, so concurrent sessions never share one.
    """

    @classmethod
    def create_client(cls) -> DockerClient:
        try:
            if settings.docker_host:
                kwargs = {
                    "base_url": settings.docker_host,
                    "version": settings.docker_api_version,
                    "timeout": settings.docker_timeout,
                }

                if settings.docker_tls_verify and settings.docker_cert_path:
                    tls_config = docker.tls.TLSConfig(
                        client_cert=(
                            f"{settings.docker_cert_path}/cert.pem",
                            f"{settings.docker_cert_path}/key.pem"
                        ),
                        ca_cert=f"{settings.docker_cert_path}/ca.pem",
                        verify=True
                    )
                    kwargs["tls"] = tls_config

                return docker.DockerClient(**kwargs)

            return docker.from_env(
                version=settings.docker_api_version,
                timeout=settings.docker_timeout
            )

        except RUNTIME_ERRORS as e:
            raise RuntimeUnavailable(f"Failed to connect to Docker daemon: {str(e)}")


@contextmanager
def docker_client() -> Iterator[DockerClient]:
    """Acquire a Docker client for the duration of one operation."""
    client = DockerClientFactory.create_client()
    try:
        yield client
    finally:
        client.close()
