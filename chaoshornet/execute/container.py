import math
from collections import namedtuple
from contextlib import contextmanager
from datetime import timedelta
from typing import Dict, Union

import docker
import requests
from docker.errors import DockerException
from logzero import logger

from chaoshornet.common import *
from chaoshornet.helpers import run
from chaoshornet.roles import ContainerSpec

CreatedContainer = namedtuple('CreatedContainer', ['id', 'name'])


def new_docker_client(base_url: str = DEFAULT_CHAOS_DOCKER_URL,
                      timeout: int = DEFAULT_CHAOS_CALL_TIMEOUT) -> docker.DockerClient:
    """
    Connect to the local container engine.

    The connection is made over the engine's Unix socket with no TLS, no
    authentication and no API version pinning. The engine is pinged before
    the client is handed out; a harness that cannot reach its engine cannot
    do anything useful, so callers should treat EngineConnectionError as
    fatal.

    :param base_url: The engine control channel.
        Optional. (Default: chaoshornet.common.DEFAULT_CHAOS_DOCKER_URL)
    :type base_url: str
    :param timeout: Socket timeout in seconds for engine requests.
        Optional. (Default: chaoshornet.common.DEFAULT_CHAOS_CALL_TIMEOUT)
    :type timeout: int
    :return: docker.DockerClient
    """
    logger.debug("Connecting to container engine at %s", base_url)
    try:
        client = docker.DockerClient(base_url=base_url, timeout=timeout)
        client.ping()
    except (DockerException, requests.exceptions.RequestException) as e:
        logger.error("Unable to reach the container engine at %s", base_url)
        logger.exception(e)
        raise EngineConnectionError("container engine at {} is " \
                                    "unreachable: {}".format(base_url, e)) from e
    return client


def _seconds(timeout: Union[int, float, timedelta]) -> int:
    if isinstance(timeout, timedelta):
        timeout = timeout.total_seconds()
    return int(math.ceil(timeout))


def _exposed_port(port: str):
    number, _, protocol = port.partition("/")
    return (int(number), protocol or "tcp")


class DockerContainer(object):
    """
    A handle on one container managed by the engine.

    The handle borrows the client it is given; many handles may share one
    client. A handle starts out UNSET and is bound to exactly one container
    either by create() or by container_from_existing(). From then on every
    call targets that container. A handle must not be mutated from more than
    one thread at a time.

    Every engine call runs under a deadline. It defaults to call_timeout and
    can be overridden per call with the timeout keyword.
    """

    def __init__(self, client: docker.DockerClient,
                 call_timeout: float = DEFAULT_CHAOS_CALL_TIMEOUT,
                 created: CreatedContainer = None):
        self.client = client
        self.call_timeout = call_timeout
        self._created = created
        if created is None:
            self._state = ContainerState.UNSET
        else:
            self._state = ContainerState.CREATED

    def __repr__(self):
        return "DockerContainer(name={!r}, state={})".format(self.name,
                                                             self._state.name)

    @property
    def state(self) -> ContainerState:
        return self._state

    @property
    def created(self) -> CreatedContainer:
        return self._created

    @property
    def name(self) -> str:
        if self._created is None:
            return None
        return self._created.name

    @property
    def id(self) -> str:
        if self._state is ContainerState.UNSET:
            raise ContainerStateError("container has not been created yet")
        if self._state is ContainerState.REMOVED:
            raise ContainerStateError("container '{}' has been " \
                                      "removed".format(self.name))
        return self._created.id

    def _call(self, method, timeout, *args, **kwargs):
        if timeout is None:
            timeout = self.call_timeout
        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        return run(method, timeout, *args, **kwargs)

    def _discard(self, name: str, resp: Dict) -> None:
        # The engine finished creating after create() gave up. The handle is
        # still UNSET, so nothing else knows this container exists.
        logger.warning("Removing container %s (%s) created after its " \
                       "deadline", name, resp["Id"])
        self.client.api.remove_container(resp["Id"], v=True, force=True)

    def create(self, name: str, spec: ContainerSpec, host_config: Dict = None,
               timeout: float = None) -> CreatedContainer:
        """
        Create a container from a role spec and bind this handle to it.

        Creation errors from the engine (unknown image, name or port
        conflicts) are raised as is. Nothing is retried. If the engine only
        finishes creating after the deadline, the late container is removed
        and the handle stays UNSET.

        :param name: The container name. Required.
        :type name: str
        :param spec: What to run, as built by chaoshornet.roles. Required.
        :type spec: chaoshornet.roles.ContainerSpec
        :param host_config: Extra keyword arguments for
            docker.APIClient.create_host_config (port_bindings, network_mode,
            ...). Binds given here are appended to the spec's binds.
            Optional. (Default: None)
        :type host_config: Dict
        :param timeout: Deadline for the call in seconds.
            Optional. (Default: self.call_timeout)
        :type timeout: float
        :return: CreatedContainer
        """
        if self._state is not ContainerState.UNSET:
            raise ContainerStateError("handle is already bound to container " \
                                      "'{}'".format(self.name))
        api = self.client.api
        extra = dict(host_config or {})
        binds = list(spec.binds) + list(extra.pop("binds", None) or [])
        host = api.create_host_config(binds=binds or None, **extra)
        ports = [_exposed_port(p) for p in spec.ports]

        logger.debug("Creating %s container %s from image %s with command %s",
                     spec.role.name, name, spec.image, list(spec.command))
        resp = self._call(api.create_container, timeout, spec.image,
                          command=list(spec.command),
                          name=name,
                          environment=list(spec.environment) or None,
                          ports=ports or None,
                          host_config=host,
                          on_late_result=lambda late: self._discard(name, late))
        for warning in resp.get("Warnings") or []:
            logger.warning("Engine warning creating %s: %s", name, warning)

        self._created = CreatedContainer(resp["Id"], name)
        self._state = ContainerState.CREATED
        logger.debug("Created container %s with id %s", name, resp["Id"])
        return self._created

    def start(self, timeout: float = None) -> None:
        logger.debug("Starting container %s", self.name)
        self._call(self.client.api.start, timeout, self.id)

    def stop(self, timeout: Union[int, timedelta] = DEFAULT_CHAOS_STOP_TIMEOUT,
             call_timeout: float = None) -> None:
        """
        Stop the container, waiting for it to exit gracefully.

        The engine kills the container once timeout elapses. The call itself
        is allowed timeout plus call_timeout before DeadlineExceeded is
        raised. Passing None selects the default stop timeout; there is no
        way to wait forever. The engine takes whole seconds, so a fractional
        timeout is rounded up.

        :param timeout: Grace period before the engine kills the container.
            Optional. (Default: chaoshornet.common.DEFAULT_CHAOS_STOP_TIMEOUT)
        :type timeout: Union[int, timedelta]
        :param call_timeout: Slack on top of timeout for the call to return.
            Optional. (Default: self.call_timeout)
        :type call_timeout: float
        :return: None
        """
        if timeout is None:
            timeout = DEFAULT_CHAOS_STOP_TIMEOUT
        grace = _seconds(timeout)
        if call_timeout is None:
            call_timeout = self.call_timeout
        logger.debug("Stopping container %s (timeout %s seconds)", self.name,
                     grace)
        self._call(self.client.api.stop, grace + call_timeout, self.id,
                   timeout=grace)

    def remove(self, timeout: float = None) -> None:
        logger.debug("Removing container %s", self.name)
        self._call(self.client.api.remove_container, timeout, self.id,
                   v=True, force=True)
        self._state = ContainerState.REMOVED

    def inspect(self, timeout: float = None) -> Dict:
        return self._call(self.client.api.inspect_container, timeout, self.id)

    def exit_status(self, timeout: float = None) -> int:
        return self.inspect(timeout=timeout)["State"]["ExitCode"]

    def networks(self, timeout: float = None) -> Dict[str, str]:
        """
        Every network the container is attached to, mapped to its address.
        """
        settings = self.inspect(timeout=timeout).get("NetworkSettings") or {}
        networks = settings.get("Networks") or {}
        return {name: v.get("IPAddress") for name, v in networks.items()}

    def ip(self, network: str, timeout: float = None) -> str:
        """
        The container's address on the given network.

        Raises NetworkNotFoundError naming the network when the container is
        not attached to it. Engine errors from the inspection are raised as
        is.

        :param network: The network name. Required.
        :type network: str
        :return: str
        """
        networks = self.networks(timeout=timeout)
        if network not in networks:
            raise NetworkNotFoundError(network, self.name)
        return networks[network]

    def connect_to_network(self, network_id: str, timeout: float = None) -> None:
        logger.debug("Connecting container %s to network %s", self.name,
                     network_id)
        self._call(self.client.api.connect_container_to_network, timeout,
                   self.id, network_id)

    def disconnect_from_network(self, network_id: str,
                                timeout: float = None) -> None:
        logger.debug("Disconnecting container %s from network %s", self.name,
                     network_id)
        self._call(self.client.api.disconnect_container_from_network, timeout,
                   self.id, network_id, force=True)

    @contextmanager
    def logs(self, follow: bool = True, timeout: float = None):
        """
        Stream the container's combined stdout and stderr from its start.

        Used as a context manager. The yielded iterator produces byte chunks
        lazily. With follow set it keeps producing until the container exits
        or the caller leaves the with block. The underlying connection is
        closed on every way out of the block.

            with container.logs() as stream:
                for chunk in stream:
                    ...

        :param follow: Keep streaming new output.
            Optional. (Default: True)
        :type follow: bool
        :param timeout: Deadline for opening the stream in seconds.
            Optional. (Default: self.call_timeout)
        :type timeout: float
        """
        stream = self._call(self.client.api.logs, timeout, self.id,
                            stdout=True, stderr=True, stream=True,
                            follow=follow,
                            on_late_result=lambda late: late.close())
        try:
            yield stream
        finally:
            stream.close()


def container_from_existing(client: docker.DockerClient, name: str,
                            include_stopped: bool = False,
                            call_timeout: float = DEFAULT_CHAOS_CALL_TIMEOUT) -> DockerContainer:
    """
    Bind a new handle to an existing container found by name.

    The first container whose primary name equals name is used. The engine
    reports names with a leading '/', which is ignored on both sides.

    :param client: The engine client. Required.
    :type client: docker.DockerClient
    :param name: The container name to look for. Required.
    :type name: str
    :param include_stopped: Also consider containers that are not running.
        Optional. (Default: False)
    :type include_stopped: bool
    :return: DockerContainer
    """
    wanted = name.lstrip("/")
    containers = run(client.api.containers, call_timeout, all=include_stopped)
    for cont in containers:
        names = cont.get("Names") or []
        if names and names[0].lstrip("/") == wanted:
            logger.debug("Found container %s with id %s", wanted, cont["Id"])
            return DockerContainer(client, call_timeout=call_timeout,
                                   created=CreatedContainer(cont["Id"], wanted))
    raise ContainerNotFoundError(name)
