"""
Role configuration builders.

Each builder turns a typed description of one member of a test topology into
a ContainerSpec: the image to run plus the exact command line, environment,
exposed ports and volume bindings the container is created with. Builders are
pure. They never talk to the container engine and only read values carried
on the config they are given.
"""
from collections import namedtuple
from typing import List

from chaoshornet.common import *

ContainerSpec = namedtuple('ContainerSpec', ['role', 'image', 'command',
                                             'environment', 'ports', 'binds'])

EntryNodeConfig = namedtuple(
    'EntryNodeConfig',
    ['name', 'seed', 'image', 'disabled_plugins', 'log_level'],
    defaults=[DEFAULT_CHAOS_HORNET_IMAGE,
              DEFAULT_CHAOS_DISABLED_PLUGINS_ENTRY_NODE,
              DEFAULT_CHAOS_LOG_LEVEL])

# Every coordinator parameter is required. A peer only becomes a consensus
# authority when it is handed one of these.
CoordinatorConfig = namedtuple(
    'CoordinatorConfig',
    ['address', 'seed', 'security_level', 'merkle_tree_depth',
     'interval_seconds', 'mwm'])

NodeConfig = namedtuple(
    'NodeConfig',
    ['name', 'autopeering_seed', 'entry_node_public_key', 'entry_node_host',
     'coordinator', 'snapshot_file_path', 'disabled_plugins', 'image',
     'log_level', 'api_port', 'entry_node_port', 'assets_volume',
     'assets_path'],
    defaults=[None,
              DEFAULT_CHAOS_SNAPSHOT_FILE_PATH,
              DEFAULT_CHAOS_DISABLED_PLUGINS_PEER,
              DEFAULT_CHAOS_HORNET_IMAGE,
              DEFAULT_CHAOS_LOG_LEVEL,
              DEFAULT_CHAOS_API_PORT,
              DEFAULT_CHAOS_AUTOPEERING_PORT,
              DEFAULT_CHAOS_ASSETS_VOLUME,
              DEFAULT_CHAOS_ASSETS_PATH])

ChaosConfig = namedtuple(
    'ChaosConfig',
    ['name', 'container_name', 'target_ips', 'duration', 'loss_percent',
     'log_level', 'image', 'tc_image', 'docker_socket'],
    defaults=[DEFAULT_CHAOS_PUMBA_DURATION,
              DEFAULT_CHAOS_PUMBA_LOSS_PERCENT,
              DEFAULT_CHAOS_LOG_LEVEL,
              DEFAULT_CHAOS_PUMBA_IMAGE,
              DEFAULT_CHAOS_PUMBA_TC_IMAGE,
              DEFAULT_CHAOS_DOCKER_SOCKET])


def _require(value, what: str):
    if not value:
        raise ValueError("{} must not be empty".format(what))


def entry_node_spec(config: EntryNodeConfig) -> ContainerSpec:
    """
    Build the container spec of an autopeering entry node.

    The entry node runs with the entry node plugin set disabled and an empty
    entry node list so it never tries to bootstrap off the address it
    advertises itself.

    :param config: The entry node description. Required.
    :type config: EntryNodeConfig
    :return: ContainerSpec
    """
    _require(config.name, "entry node name")
    _require(config.seed, "entry node autopeering seed")
    command = (
        "--logger.level={}".format(config.log_level),
        "--node.disablePlugins={}".format(config.disabled_plugins),
        "--autopeering.entryNodes=",
        "--autopeering.seed=base58:{}".format(config.seed),
    )
    return ContainerSpec(role=Role.ENTRY_NODE, image=config.image,
                         command=command, environment=(), ports=(), binds=())


def coordinator_flags(coordinator: CoordinatorConfig) -> List[str]:
    """
    Command line flags that turn a peer into the network coordinator.
    """
    _require(coordinator.address, "coordinator address")
    return [
        "--coordinator.mwm={}".format(coordinator.mwm),
        "--coordinator.address={}".format(coordinator.address),
        "--coordinator.intervalSeconds={}".format(coordinator.interval_seconds),
        "--coordinator.securityLevel={}".format(coordinator.security_level),
        "--coordinator.merkleTreeDepth={}".format(coordinator.merkle_tree_depth),
    ]


def peer_spec(config: NodeConfig) -> ContainerSpec:
    """
    Build the container spec of a full ledger node.

    Coordinator flags (and the COO_SEED environment variable) are only added
    when config.coordinator is set. The autopeering entry node flag is always
    derived from the entry node's public key and host, so peers only ever
    discover each other through the entry node.

    :param config: The peer description. Required.
    :type config: NodeConfig
    :return: ContainerSpec
    """
    _require(config.name, "peer name")
    _require(config.autopeering_seed, "peer autopeering seed")
    _require(config.entry_node_public_key, "entry node public key")
    _require(config.entry_node_host, "entry node host")

    enabled_plugins = []
    environment = ()
    role = Role.PEER
    if config.coordinator is not None:
        enabled_plugins.append("Coordinator")
        environment = ("COO_SEED={}".format(config.coordinator.seed),)
        role = Role.COORDINATOR

    command = [
        "--logger.level={}".format(config.log_level),
        "--node.disablePlugins={}".format(config.disabled_plugins),
        "--node.enablePlugins={}".format(",".join(enabled_plugins)),
    ]
    if config.coordinator is not None:
        command.extend(coordinator_flags(config.coordinator))
    command.extend([
        "--snapshots.loadType=global",
        "--snapshots.global.path=snapshot.csv",
        "--snapshots.global.index=0",
        "--snapshots.local.path={}".format(config.snapshot_file_path),
        "--httpAPI.bindAddress={}".format(config.api_port),
        "--autopeering.seed=base58:{}".format(config.autopeering_seed),
        "--autopeering.entryNodes={}@{}:{}".format(config.entry_node_public_key,
                                                   config.entry_node_host,
                                                   config.entry_node_port),
    ])

    return ContainerSpec(
        role=role,
        image=config.image,
        command=tuple(command),
        environment=environment,
        ports=("{}/tcp".format(config.api_port),),
        binds=("{}:{}:rw".format(config.assets_volume, config.assets_path),))


def fault_injection_command(container_name: str, target_ips: List[str],
    duration: str = DEFAULT_CHAOS_PUMBA_DURATION,
    loss_percent: int = DEFAULT_CHAOS_PUMBA_LOSS_PERCENT,
    log_level: str = DEFAULT_CHAOS_LOG_LEVEL,
    tc_image: str = DEFAULT_CHAOS_PUMBA_TC_IMAGE) -> List[str]:
    """
    Compose a Pumba network emulation command dropping packets to targets.

    The base invocation (log level, netem, duration) is followed by one
    --target flag per IP in the order given and then by the packet loss
    profile scoped to container_name.

    :param container_name: The container whose egress traffic is shaped.
        Required.
    :type container_name: str
    :param target_ips: Destination IPs the loss applies to. Required.
    :type target_ips: List[str]
    :param duration: How long the fault lasts, in Pumba duration syntax.
        Optional. (Default: chaoshornet.common.DEFAULT_CHAOS_PUMBA_DURATION)
    :type duration: str
    :param loss_percent: Percentage of packets dropped, 0 to 100.
        Optional. (Default: chaoshornet.common.DEFAULT_CHAOS_PUMBA_LOSS_PERCENT)
    :type loss_percent: int
    :return: List[str]
    """
    _require(container_name, "chaos target container name")
    _require(target_ips, "chaos target IP list")
    if not 0 <= int(loss_percent) <= 100:
        raise ValueError("loss percent must be between 0 and 100, " \
                         "got {}".format(loss_percent))

    command = [
        "--log-level={}".format(log_level),
        "netem",
        "--duration={}".format(duration),
    ]
    for ip in target_ips:
        command.append("--target={}".format(ip))
    command.extend([
        "--tc-image={}".format(tc_image),
        "loss",
        "--percent={}".format(int(loss_percent)),
        container_name,
    ])
    return command


def chaos_spec(config: ChaosConfig) -> ContainerSpec:
    """
    Build the container spec of a Pumba chaos agent.

    The agent gets read-only access to the engine socket so it can reach the
    container it shapes traffic for.

    :param config: The chaos agent description. Required.
    :type config: ChaosConfig
    :return: ContainerSpec
    """
    _require(config.name, "chaos agent name")
    command = fault_injection_command(config.container_name,
                                      list(config.target_ips),
                                      duration=config.duration,
                                      loss_percent=config.loss_percent,
                                      log_level=config.log_level,
                                      tc_image=config.tc_image)
    return ContainerSpec(
        role=Role.CHAOS_AGENT,
        image=config.image,
        command=tuple(command),
        environment=(),
        ports=(),
        binds=("{0}:{0}:ro".format(config.docker_socket),))
