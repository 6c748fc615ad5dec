import random
from typing import List, Union

import docker
from docker.errors import NotFound
from logzero import logger

from chaoshornet.common import *
from chaoshornet.execute.container import DockerContainer
from chaoshornet.helpers import run


def ip_addresses(containers: List[DockerContainer], network: str) -> List[str]:
    """
    Addresses of the given containers on a network, in the same order.

    Fails with NetworkNotFoundError on the first container that is not
    attached to the network.

    :param containers: The container handles. Required.
    :type containers: List[DockerContainer]
    :param network: The network name. Required.
    :type network: str
    :return: List[str]
    """
    ips = []
    for container in containers:
        ip = container.ip(network)
        logger.debug("container %s has IP %s in network %s", container.name,
                     ip, network)
        ips.append(ip)
    return ips


def create_network(client: docker.DockerClient, name: str,
                   driver: str = DEFAULT_CHAOS_NETWORK_DRIVER,
                   timeout: float = DEFAULT_CHAOS_CALL_TIMEOUT) -> str:
    """
    Create a virtual network and return its id.
    """
    resp = run(client.api.create_network, timeout, name, driver=driver)
    logger.info("Docker network %s created.", name)
    return resp["Id"]


def remove_network(client: docker.DockerClient, name: str,
                   best_effort: bool = False,
                   timeout: float = DEFAULT_CHAOS_CALL_TIMEOUT) -> bool:
    """
    Remove a virtual network.

    :param best_effort: Do NOT fail if the network does not exist.
        Optional. (Default: False)
    :type best_effort: bool
    :return: bool
    """
    try:
        run(client.api.remove_network, timeout, name)
    except NotFound:
        if not best_effort:
            raise
        logger.debug("Network %s does not exist. Nothing to remove.", name)
        return False
    logger.info("Docker network %s removed.", name)
    return True


def select_containers(containers: List[DockerContainer],
    count: Union[str, int],
    strategy: Union[int, SelectionStrategy] = SelectionStrategy.FORWARD) -> List[DockerContainer]:
    """
    Pick count containers using a selection strategy.

    :param containers: The candidates, in topology order. Required.
    :type containers: List[DockerContainer]
    :param count: How many to pick. Must not exceed len(containers).
        Required.
    :type count: Union[str, int]
    :param strategy: A SelectionStrategy or its integer value.
        Optional. (Default: SelectionStrategy.FORWARD)
    :type strategy: Union[int, SelectionStrategy]
    :return: List[DockerContainer]
    """
    count = int(count)
    if count < 0 or count > len(containers):
        raise ValueError("cannot select {} of {} " \
                         "containers".format(count, len(containers)))
    if not isinstance(strategy, SelectionStrategy):
        if not SelectionStrategy.has_value(strategy):
            raise ValueError("Invalid selection strategy " \
                             "'{}'".format(strategy))
        strategy = SelectionStrategy(strategy)

    if strategy is SelectionStrategy.FORWARD:
        return list(containers[:count])
    if strategy is SelectionStrategy.REVERSE:
        return list(reversed(containers))[:count]
    return random.sample(list(containers), count)
