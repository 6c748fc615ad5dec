import json
from os import remove
from os.path import exists, join
from typing import List, Union

import docker
from logzero import logger

from chaoshornet.common import *
from chaoshornet.execute.container import (DockerContainer,
                                           container_from_existing)
from chaoshornet.network import ip_addresses, select_containers
from chaoshornet.roles import ChaosConfig, chaos_spec

PARTITION_STATE_FILE = "partition_nodes"
PACKET_LOSS_STATE_FILE = "packet_loss"


def _read_state(name: str, default):
    path = join(get_chaos_temp_dir(), name)
    if not exists(path):
        return default
    with open(path, "r") as f:
        return json.load(f)


def _write_state(name: str, state) -> None:
    path = join(get_chaos_temp_dir(), name)
    if not state:
        if exists(path):
            remove(path)
        return
    with open(path, "w") as f:
        f.write(json.dumps(state))


def partition_nodes(containers: List[DockerContainer], network: str,
    count: Union[str, int] = 1,
    strategy: Union[int, SelectionStrategy] = SelectionStrategy.FORWARD) -> List[str]:
    """
    Cut count containers off a network.

    State file "partition_nodes" located in the chaos temp dir (see
    get_chaos_temp_dir for details) is shared with heal_partition. The
    typical workflow would be:

    1. Partition some nodes (partition_nodes)
    2. Check how the rest of the network copes
    3. Reconnect the nodes selected in step 1 (heal_partition)

    :param containers: Candidate containers, in topology order. Required.
    :type containers: List[DockerContainer]
    :param network: The network to cut them off from. Required.
    :type network: str
    :param count: How many containers to disconnect.
        Optional. (Default: 1)
    :type count: Union[str, int]
    :param strategy: How to select them.
        Optional. (Default: SelectionStrategy.FORWARD)
    :type strategy: Union[int, SelectionStrategy]
    :return: List[str] names of the disconnected containers
    """
    selected = select_containers(containers, count, strategy)
    partitioned = _read_state(PARTITION_STATE_FILE, {})
    names = partitioned.setdefault(network, [])
    try:
        for container in selected:
            logger.info("Partitioning %s from network %s", container.name,
                        network)
            container.disconnect_from_network(network)
            names.append(container.name)
    finally:
        # Record whatever was disconnected, even on failure, so it can be
        # healed later.
        _write_state(PARTITION_STATE_FILE, partitioned)
    return [container.name for container in selected]


def heal_partition(client: docker.DockerClient, network: str,
                   best_effort: bool = True) -> List[str]:
    """
    Reconnect the containers partition_nodes cut off from a network.

    :param client: The engine client. Required.
    :type client: docker.DockerClient
    :param network: The network to reconnect them to. Required.
    :type network: str
    :param best_effort: Do NOT fail if there is nothing recorded for the
        network.
        Optional. (Default: True)
    :type best_effort: bool
    :return: List[str] names of the reconnected containers
    """
    partitioned = _read_state(PARTITION_STATE_FILE, {})
    if network not in partitioned:
        if best_effort:
            logger.debug("No partition recorded for network %s", network)
            return []
        raise NetworkNotFoundError(network)

    names = partitioned[network]
    healed = []
    try:
        for name in list(names):
            container = container_from_existing(client, name,
                                                include_stopped=True)
            logger.info("Reconnecting %s to network %s", name, network)
            container.connect_to_network(network)
            names.remove(name)
            healed.append(name)
    finally:
        if not names:
            del partitioned[network]
        _write_state(PARTITION_STATE_FILE, partitioned)
    return healed


def inject_packet_loss(client: docker.DockerClient,
                       config: ChaosConfig) -> DockerContainer:
    """
    Start a chaos agent that drops traffic from a container to target IPs.

    The agent's name is recorded in state file "packet_loss" in the chaos
    temp dir so stop_packet_loss can find it again.

    :param client: The engine client. Required.
    :type client: docker.DockerClient
    :param config: The chaos agent description. Required.
    :type config: chaoshornet.roles.ChaosConfig
    :return: DockerContainer
    """
    logger.info("Injecting %s%% packet loss on %s towards %s for %s",
                config.loss_percent, config.container_name,
                list(config.target_ips), config.duration)
    agent = DockerContainer(client)
    try:
        agent.create(config.name, chaos_spec(config))
        agents = _read_state(PACKET_LOSS_STATE_FILE, [])
        agents.append(config.name)
        _write_state(PACKET_LOSS_STATE_FILE, agents)
        agent.start()
    except Exception as e:
        logger.error("Failed to inject packet loss with chaos agent %s",
                     config.name)
        logger.exception(e)
        raise e
    return agent


def isolate_node(client: docker.DockerClient, container: DockerContainer,
                 peers: List[DockerContainer], network: str,
                 name: str = None, **chaos_kwargs) -> DockerContainer:
    """
    Drop all traffic from container to its peers on a network.

    The peers' addresses are looked up on network and handed to a chaos
    agent scoped to container. Any remaining keyword arguments are ChaosConfig
    fields (duration, loss_percent, ...).

    :param name: The chaos agent's container name.
        Optional. (Default: "pumba-<container name>")
    :type name: str
    :return: DockerContainer the chaos agent
    """
    target_ips = ip_addresses(peers, network)
    config = ChaosConfig(name=name or "pumba-{}".format(container.name),
                         container_name=container.name,
                         target_ips=target_ips, **chaos_kwargs)
    return inject_packet_loss(client, config)


def stop_packet_loss(client: docker.DockerClient) -> List[str]:
    """
    Remove every chaos agent started by inject_packet_loss.

    Agents that no longer exist are skipped.

    :param client: The engine client. Required.
    :type client: docker.DockerClient
    :return: List[str] names of the removed agents
    """
    agents = _read_state(PACKET_LOSS_STATE_FILE, [])
    removed = []
    try:
        for name in list(agents):
            try:
                agent = container_from_existing(client, name,
                                                include_stopped=True)
            except ContainerNotFoundError:
                logger.debug("Chaos agent %s is already gone", name)
                agents.remove(name)
                continue
            logger.info("Removing chaos agent %s", name)
            agent.remove()
            agents.remove(name)
            removed.append(name)
    finally:
        _write_state(PACKET_LOSS_STATE_FILE, agents)
    return removed
