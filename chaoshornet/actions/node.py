from datetime import timedelta
from typing import List, Union

import docker
from logzero import logger

from chaoshornet.common import *
from chaoshornet.execute.container import DockerContainer
from chaoshornet.roles import (EntryNodeConfig, NodeConfig, entry_node_spec,
                               peer_spec)


def create_entry_node(client: docker.DockerClient, config: EntryNodeConfig,
                      host_config: dict = None) -> DockerContainer:
    """
    Create (but do not start) an autopeering entry node container.

    :param client: The engine client. Required.
    :type client: docker.DockerClient
    :param config: The entry node description. Required.
    :type config: chaoshornet.roles.EntryNodeConfig
    :param host_config: Extra host bindings, see DockerContainer.create.
        Optional. (Default: None)
    :type host_config: dict
    :return: DockerContainer
    """
    logger.info("Creating entry node %s", config.name)
    container = DockerContainer(client)
    try:
        container.create(config.name, entry_node_spec(config),
                         host_config=host_config)
    except Exception as e:
        logger.error("Failed to create entry node %s", config.name)
        logger.exception(e)
        raise e
    return container


def create_peer(client: docker.DockerClient, config: NodeConfig,
                host_config: dict = None) -> DockerContainer:
    """
    Create (but do not start) a peer container, coordinator or not.

    :param client: The engine client. Required.
    :type client: docker.DockerClient
    :param config: The peer description. Required.
    :type config: chaoshornet.roles.NodeConfig
    :param host_config: Extra host bindings, see DockerContainer.create.
        Optional. (Default: None)
    :type host_config: dict
    :return: DockerContainer
    """
    role = "coordinator" if config.coordinator is not None else "peer"
    logger.info("Creating %s %s", role, config.name)
    container = DockerContainer(client)
    try:
        container.create(config.name, peer_spec(config),
                         host_config=host_config)
    except Exception as e:
        logger.error("Failed to create %s %s", role, config.name)
        logger.exception(e)
        raise e
    return container


def start_nodes(containers: List[DockerContainer]) -> None:
    for container in containers:
        logger.info("Starting %s", container.name)
        container.start()


def stop_nodes(containers: List[DockerContainer],
               timeout: Union[int, timedelta] = DEFAULT_CHAOS_STOP_TIMEOUT) -> None:
    """
    Gracefully stop every container, one after the other.

    :param containers: The containers to stop. Required.
    :type containers: List[DockerContainer]
    :param timeout: Per container grace period before the engine kills it.
        Optional. (Default: chaoshornet.common.DEFAULT_CHAOS_STOP_TIMEOUT)
    :type timeout: Union[int, timedelta]
    :return: None
    """
    for container in containers:
        logger.info("Stopping %s", container.name)
        container.stop(timeout)


def remove_nodes(containers: List[DockerContainer]) -> None:
    """
    Force remove every container.

    Removal is attempted on every container even if an earlier one fails, so
    a failed teardown leaves as little behind as possible. The first failure
    is raised once all containers have been tried.

    :param containers: The containers to remove. Required.
    :type containers: List[DockerContainer]
    :return: None
    """
    first_error = None
    for container in containers:
        if container.state is not ContainerState.CREATED:
            logger.debug("Skipping %r", container)
            continue
        logger.info("Removing %s", container.name)
        try:
            container.remove()
        except Exception as e:
            logger.error("Failed to remove %s", container.name)
            logger.exception(e)
            if first_error is None:
                first_error = e
    if first_error is not None:
        raise first_error


def bring_up_topology(client: docker.DockerClient, network: str,
                      entry_node: EntryNodeConfig,
                      peers: List[NodeConfig]) -> List[DockerContainer]:
    """
    Create, attach and start an entry node followed by its peers.

    Every container is attached to network before it is started. Peer
    configs must already carry the entry node's public key and host (the
    entry node's container name resolves on user defined networks).

    If anything fails, the containers created so far are removed before the
    error is raised.

    :param client: The engine client. Required.
    :type client: docker.DockerClient
    :param network: The network every node joins. Required.
    :type network: str
    :param entry_node: The entry node description. Required.
    :type entry_node: chaoshornet.roles.EntryNodeConfig
    :param peers: The peer descriptions, in start order. Required.
    :type peers: List[chaoshornet.roles.NodeConfig]
    :return: List[DockerContainer] entry node first, then the peers in order
    """
    containers = []
    try:
        container = create_entry_node(client, entry_node)
        containers.append(container)
        container.connect_to_network(network)
        container.start()

        for peer in peers:
            container = create_peer(client, peer)
            containers.append(container)
            container.connect_to_network(network)
            container.start()
    except Exception as e:
        logger.error("Failed to bring up topology on network %s. Removing " \
                     "%i container(s) created so far.", network,
                     len(containers))
        try:
            remove_nodes(containers)
        except Exception as cleanup_error:
            logger.exception(cleanup_error)
        raise e
    logger.info("Topology with %i node(s) is up on network %s",
                len(containers), network)
    return containers


def tear_down_topology(containers: List[DockerContainer]) -> None:
    logger.info("Tearing down %i container(s)", len(containers))
    remove_nodes(containers)
