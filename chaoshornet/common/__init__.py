import tempfile
from enum import Enum
from logzero import logger
from os import makedirs
from psutil import Process, NoSuchProcess


def get_chaos_temp_dir() -> str:
    """
    Create a temporary directory unique to each test run.

    The temporary directory will take the form <tempdir>/chaoshornet.<pid>
    The <pid> will be the pid of the nearest ancestor process named in
    DEFAULT_CHAOS_RUNNER_PROCESSES (the 'chaos' or 'pytest' process) iff it
    exists. Otherwise, the current process's pid.

    State files shared between actions (e.g. partition_nodes and
    heal_partition) and dumped container logs are written here.

    :return: str
    """
    myp = Process()
    subprocess_pid = myp.pid
    runner_pid = None
    # Walk all the way up the process tree
    while(1):
        if myp.name() in DEFAULT_CHAOS_RUNNER_PROCESSES:
            logger.debug("Found '%s' process", myp.name())
            runner_pid = myp.pid
            break
        parent_pid = myp.ppid()
        if parent_pid == 0:
            runner_pid = subprocess_pid
            break
        try:
            myp = Process(parent_pid)
        except NoSuchProcess:
            logger.info("Did not find a runner process before traversing " \
                        "all the way to the top of the process tree! " \
                        "Defaulting to %s", subprocess_pid)
            runner_pid = subprocess_pid
            break

    tempdir_path = "{}/chaoshornet.{}".format(tempfile.gettempdir(),
                                              runner_pid)
    makedirs(tempdir_path, exist_ok=True)
    logger.debug("tempdir: %s", tempdir_path)
    return tempdir_path


class ContainerState(Enum):
    """
    Lifecycle of a container handle as seen by the harness.

    Running and stopped are engine-side states; the handle only knows whether
    it has been bound to a container and whether that container was removed.
    """
    UNSET = 1
    CREATED = 2
    REMOVED = 3


class Role(Enum):
    """
    Roles a container can play in a test topology.
    """
    ENTRY_NODE = 1
    PEER = 2
    COORDINATOR = 3
    CHAOS_AGENT = 4


# Actions may be written to select containers on which to act. Given an
# ordered set of containers ['peer-1', 'peer-2', 'peer-3'] and a request to
# partition two of them, FORWARD partitions peer-1 then peer-2, REVERSE
# partitions peer-3 then peer-2 and RANDOM picks without replacement.
class SelectionStrategy(Enum):
    """
    All supported selection strategies.
    """
    FORWARD = 1
    REVERSE = 2
    RANDOM = 3

    @classmethod
    def has_value(cls, value):
        return any(value == item.value for item in cls)


class ChaosHornetError(Exception):
    """Base class for every error raised by the harness itself."""


class EngineConnectionError(ChaosHornetError):
    """The container engine control channel is unreachable."""


class ContainerStateError(ChaosHornetError):
    """A handle was used in a lifecycle state that does not allow the call."""


class DeadlineExceeded(ChaosHornetError, TimeoutError):
    """A remote call did not complete before its deadline."""


class ContainerNotFoundError(ChaosHornetError, LookupError):
    def __init__(self, name: str):
        super().__init__("could not find container with name '{}'".format(name))
        self.name = name


class NetworkNotFoundError(ChaosHornetError, LookupError):
    def __init__(self, network: str, container: str = None):
        message = "IP address in {} could not be determined".format(network)
        if container:
            message = "{} for container '{}'".format(message, container)
        super().__init__(message)
        self.network = network
        self.container = container


# Chaos defaults
# Please keep defaults in lexically acending order by name
DEFAULT_CHAOS_API_PORT=14265
DEFAULT_CHAOS_ASSETS_PATH="/assets"
DEFAULT_CHAOS_ASSETS_VOLUME="hornet-testing-assets"
DEFAULT_CHAOS_AUTOPEERING_PORT=14626
DEFAULT_CHAOS_CALL_TIMEOUT=60
DEFAULT_CHAOS_DISABLED_PLUGINS_ENTRY_NODE="Dashboard,Profiling,Gossip," \
    "Snapshot,Metrics,Tangle,WarpSync,WebAPI,Spammer,ZMQ,MQTT,Prometheus"
DEFAULT_CHAOS_DISABLED_PLUGINS_PEER="Spammer,ZMQ,MQTT,Prometheus"
DEFAULT_CHAOS_DOCKER_SOCKET="/var/run/docker.sock"
DEFAULT_CHAOS_DOCKER_URL="unix://" + DEFAULT_CHAOS_DOCKER_SOCKET
DEFAULT_CHAOS_HORNET_IMAGE="hornet:dev"
DEFAULT_CHAOS_LOG_LEVEL="debug"
DEFAULT_CHAOS_NETWORK_DRIVER="bridge"
DEFAULT_CHAOS_PUMBA_DURATION="100m"
DEFAULT_CHAOS_PUMBA_IMAGE="gaiaadm/pumba:0.7.2"
DEFAULT_CHAOS_PUMBA_LOSS_PERCENT=100
DEFAULT_CHAOS_PUMBA_TC_IMAGE="gaiadocker/iproute2"
DEFAULT_CHAOS_RUNNER_PROCESSES=("chaos", "pytest", "py.test")
DEFAULT_CHAOS_SNAPSHOT_FILE_PATH=DEFAULT_CHAOS_ASSETS_PATH + "/snapshot.bin"
DEFAULT_CHAOS_STOP_TIMEOUT=3 * 60
