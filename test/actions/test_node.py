import threading

import pytest
from docker.errors import APIError, ImageNotFound, NotFound

from chaoshornet import helpers
from chaoshornet.actions.node import *
from chaoshornet.common import *
from chaoshornet.execute import container as container_module
from chaoshornet.execute.container import container_from_existing
from chaoshornet.roles import CoordinatorConfig, EntryNodeConfig, NodeConfig
from test import FakeDockerClient, patch, wait_for


def peers(count, coordinator=None):
    configs = []
    for i in range(count):
        configs.append(NodeConfig(name="peer-{}".format(i + 1),
                                  autopeering_seed="SEED{}".format(i + 1),
                                  entry_node_public_key="ENTRYKEY",
                                  entry_node_host="entry_node",
                                  coordinator=coordinator if i == 0 else None))
    return configs


def test_create_entry_node_and_peer():
    client = FakeDockerClient()
    entry = create_entry_node(client, EntryNodeConfig(name="entry_node",
                                                      seed="SEED0"))
    coo = CoordinatorConfig(address="ADDR", seed="COO", security_level=1,
                            merkle_tree_depth=8, interval_seconds=10, mwm=1)
    peer = create_peer(client, peers(1, coordinator=coo)[0])

    assert entry.name == "entry_node"
    assert peer.name == "peer-1"
    stored = client.api.containers_by_id[peer.id]
    assert "--coordinator.address=ADDR" in stored["command"]
    assert stored["environment"] == ["COO_SEED=COO"]


def test_create_peer_propagates_engine_errors():
    client = FakeDockerClient(images=[])
    with pytest.raises(ImageNotFound):
        create_peer(client, peers(1)[0])


def test_bring_up_and_tear_down_topology():
    client = FakeDockerClient()
    containers = bring_up_topology(client, "testnet",
                                   EntryNodeConfig(name="entry_node",
                                                   seed="SEED0"),
                                   peers(2))

    assert [c.name for c in containers] == ["entry_node", "peer-1", "peer-2"]
    for container in containers:
        assert container.ip("testnet")
        assert client.api.containers_by_id[container.id]["running"]

    tear_down_topology(containers)

    assert client.api.containers_by_id == {}
    assert all(c.state is ContainerState.REMOVED for c in containers)
    with pytest.raises(ContainerNotFoundError):
        container_from_existing(client, "peer-1", include_stopped=True)


def test_bring_up_topology_cleans_up_on_failure():
    client = FakeDockerClient()
    # Two peers with the same name collide on creation
    configs = peers(1) + peers(1)

    with pytest.raises(APIError):
        bring_up_topology(client, "testnet",
                          EntryNodeConfig(name="entry_node", seed="SEED0"),
                          configs)
    assert client.api.containers_by_id == {}


def test_bring_up_topology_removes_peer_created_after_deadline():
    client = FakeDockerClient()
    release = threading.Event()
    create_container = client.api.create_container

    def slow_peer_create(image, name=None, **kwargs):
        if name == "peer-1":
            release.wait(5)
        return create_container(image, name=name, **kwargs)

    def short_run(callable, timeout, *args, **kwargs):
        return helpers.run(callable, 0.05, *args, **kwargs)

    client.api.create_container = slow_peer_create
    with patch(container_module, 'run', short_run):
        with pytest.raises(DeadlineExceeded):
            bring_up_topology(client, "testnet",
                              EntryNodeConfig(name="entry_node", seed="SEED0"),
                              peers(1))
        release.set()

        def both_removed():
            removals = [call for call in client.api.calls
                        if call[0] == "remove_container"]
            return len(removals) == 2 and client.api.containers_by_id == {}

        assert wait_for(both_removed)
    with pytest.raises(ContainerNotFoundError):
        container_from_existing(client, "peer-1", include_stopped=True)


def test_stop_nodes():
    client = FakeDockerClient()
    containers = [create_peer(client, config) for config in peers(2)]
    start_nodes(containers)

    stop_nodes(containers, timeout=5)

    for container in containers:
        stored = client.api.containers_by_id[container.id]
        assert stored["stop_timeouts"] == [5]
        assert not stored["running"]


def test_remove_nodes_tries_every_container():
    client = FakeDockerClient()
    containers = [create_peer(client, config) for config in peers(3)]
    vanished = containers[0].id
    del client.api.containers_by_id[vanished]

    with pytest.raises(NotFound):
        remove_nodes(containers)

    assert client.api.containers_by_id == {}
    assert containers[0].state is ContainerState.CREATED
    assert containers[1].state is ContainerState.REMOVED
    assert containers[2].state is ContainerState.REMOVED

    # Removed handles are skipped on a second pass
    del containers[0]
    remove_nodes(containers)
