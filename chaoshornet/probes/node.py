from os.path import join
from typing import List

import docker
from docker.errors import NotFound
from logzero import logger

from chaoshornet.common import *
from chaoshornet.execute.container import (DockerContainer,
                                           container_from_existing)
from chaoshornet.network import ip_addresses


def container_exists(client: docker.DockerClient, name: str,
                     include_stopped: bool = True) -> bool:
    try:
        container_from_existing(client, name, include_stopped=include_stopped)
    except ContainerNotFoundError:
        logger.debug("Container %s does not exist", name)
        return False
    return True


def container_is_running(container: DockerContainer) -> bool:
    """
    Is the container running according to the engine?

    A container that no longer exists is not running.

    :param container: The container handle. Required.
    :type container: DockerContainer
    :return: bool
    """
    try:
        state = container.inspect()["State"]
    except NotFound:
        logger.debug("Container %s is gone", container.name)
        return False
    logger.debug("Container %s status: %s", container.name,
                 state.get("Status"))
    return bool(state.get("Running"))


def node_exit_status(container: DockerContainer) -> int:
    exit_code = container.exit_status()
    logger.debug("Container %s exit code: %s", container.name, exit_code)
    return exit_code


def node_ips(containers: List[DockerContainer], network: str) -> List[str]:
    return ip_addresses(containers, network)


def dump_logs(container: DockerContainer, path: str = None) -> str:
    """
    Write everything the container logged so far to a file.

    :param container: The container handle. Required.
    :type container: DockerContainer
    :param path: Where to write the logs.
        Optional. (Default: <chaos temp dir>/<container name>.log)
    :type path: str
    :return: str the path written to
    """
    if path is None:
        path = join(get_chaos_temp_dir(), "{}.log".format(container.name))
    written = 0
    with container.logs(follow=False) as stream, open(path, "wb") as f:
        for chunk in stream:
            f.write(chunk)
            written += len(chunk)
    logger.debug("Wrote %i bytes of %s logs to %s", written, container.name,
                 path)
    return path
