import threading
import time
from contextlib import contextmanager

from docker.errors import APIError, ImageNotFound, NotFound


@contextmanager
def patch(owner, attr, value):
    """Monkey patch context manager.

    with patch(os, 'open', myopen):
        ...
    """
    old = getattr(owner, attr)
    setattr(owner, attr, value)
    try:
        yield getattr(owner, attr)
    finally:
        setattr(owner, attr, old)


class FakeLogStream(object):
    def __init__(self, chunks):
        self._chunks = iter(chunks)
        self.closed = False

    def __iter__(self):
        return self

    def __next__(self):
        if self.closed:
            raise StopIteration
        return next(self._chunks)

    def close(self):
        self.closed = True


class FakeAPIClient(object):
    """In-memory stand-in for the docker.APIClient calls the harness makes."""

    def __init__(self, images=None):
        self.images = images
        self.containers_by_id = {}
        self.networks = {}
        self.calls = []
        self.log_streams = []
        self._next_id = 0
        # The daemon serializes requests from concurrent clients
        self._lock = threading.RLock()

    def _get(self, container):
        if container not in self.containers_by_id:
            raise NotFound("No such container: {}".format(container))
        return self.containers_by_id[container]

    def create_host_config(self, **kwargs):
        return dict(kwargs)

    def create_container(self, image, command=None, name=None,
                         environment=None, ports=None, host_config=None):
        with self._lock:
            return self._create_container(image, command, name, environment,
                                          ports, host_config)

    def _create_container(self, image, command, name, environment, ports,
                          host_config):
        self.calls.append(("create_container", name))
        if self.images is not None and image not in self.images:
            raise ImageNotFound("No such image: {}".format(image))
        for c in self.containers_by_id.values():
            if c["name"] == name:
                raise APIError("Conflict. The container name \"/{}\" is " \
                               "already in use".format(name))
        self._next_id += 1
        container_id = "{:064x}".format(self._next_id)
        self.containers_by_id[container_id] = {
            "name": name,
            "image": image,
            "command": command,
            "environment": environment,
            "ports": ports,
            "host_config": host_config,
            "running": False,
            "exit_code": 0,
            "networks": {},
            "logs": [b"starting\n", b"running\n"],
            "stop_timeouts": [],
        }
        return {"Id": container_id, "Warnings": None}

    def start(self, container):
        self.calls.append(("start", container))
        self._get(container)["running"] = True

    def stop(self, container, timeout=None):
        self.calls.append(("stop", container, timeout))
        c = self._get(container)
        c["stop_timeouts"].append(timeout)
        c["running"] = False

    def remove_container(self, container, v=False, force=False):
        with self._lock:
            self.calls.append(("remove_container", container, force))
            c = self._get(container)
            if c["running"] and not force:
                raise APIError("You cannot remove a running container")
            del self.containers_by_id[container]

    def inspect_container(self, container):
        c = self._get(container)
        return {
            "Id": container,
            "Name": "/" + c["name"],
            "State": {
                "Running": c["running"],
                "Status": "running" if c["running"] else "exited",
                "ExitCode": c["exit_code"],
            },
            "NetworkSettings": {
                "Networks": {name: {"IPAddress": ip}
                             for name, ip in c["networks"].items()},
            },
        }

    def containers(self, all=False):
        with self._lock:
            return [{"Id": cid, "Names": ["/" + c["name"]]}
                    for cid, c in self.containers_by_id.items()
                    if all or c["running"]]

    def connect_container_to_network(self, container, net_id):
        self.calls.append(("connect", container, net_id))
        c = self._get(container)
        assigned = self.networks.setdefault(net_id, [])
        assigned.append(container)
        c["networks"][net_id] = "172.18.0.{}".format(len(assigned) + 1)

    def disconnect_container_from_network(self, container, net_id,
                                          force=False):
        self.calls.append(("disconnect", container, net_id, force))
        c = self._get(container)
        if net_id not in c["networks"]:
            raise APIError("container is not connected to network " \
                           "{}".format(net_id))
        del c["networks"][net_id]

    def logs(self, container, stdout=False, stderr=False, stream=False,
             follow=False):
        c = self._get(container)
        log_stream = FakeLogStream(list(c["logs"]))
        self.log_streams.append(log_stream)
        return log_stream

    def create_network(self, name, driver=None):
        self.networks.setdefault(name, [])
        return {"Id": "net-" + name, "Warnings": ""}

    def remove_network(self, net_id):
        if net_id not in self.networks:
            raise NotFound("network {} not found".format(net_id))
        del self.networks[net_id]


class FakeDockerClient(object):
    def __init__(self, images=None):
        self.api = FakeAPIClient(images=images)


def wait_for(predicate, timeout=2, interval=0.01):
    """Poll predicate until it holds or timeout seconds pass."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            return False
        time.sleep(interval)
    return True
