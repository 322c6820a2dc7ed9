"""
Container directory.

Answers "what is running right now" with one query against the Docker daemon.
Nothing is cached, so every call costs one round-trip and reflects the
daemon's current view.
"""

from typing import Any, Dict, List, Optional

from logdash.core.exceptions import RuntimeUnavailable
from logdash.core.logging import logger
from logdash.services.docker_client import RUNTIME_ERRORS, docker_client


def container_display_name(container: Dict[str, Any]) -> Optional[str]:
    """
    Extract the human-readable name of a container.

    The daemon reports names as ``/name`` (the leading slash marks the
    top-level namespace); the slash is stripped so the result can be passed
    straight back as the ``container`` selector of a log session.

    Returns:
        The name, or None if the daemon reported none
    """
    names = container.get("Names") or []
    if not names:
        return None
    name = names[0]
    return name[1:] if name.startswith("/") else name


def list_containers() -> List[str]:
    """
    List the names of running containers, in the order the daemon reports them.

    Raises:
        RuntimeUnavailable: If the Docker daemon cannot be reached
    """
    with docker_client() as client:
        try:
            # Low-level call: one request, running containers only
            containers = client.api.containers()
        except RUNTIME_ERRORS as e:
            raise RuntimeUnavailable(f"Failed to list containers: {str(e)}")

    names = []
    for container in containers:
        name = container_display_name(container)
        if name is None:
            logger.debug(f"Skipping unnamed container {container.get('Id', '')[:12]}")
            continue
        names.append(name)

    return names
