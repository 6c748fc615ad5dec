import pytest
from docker.errors import NotFound

from chaoshornet.common import *
from chaoshornet.execute.container import DockerContainer
from chaoshornet.network import *
from chaoshornet.roles import EntryNodeConfig, entry_node_spec
from test import FakeDockerClient


def make_containers(client, count, network=None):
    containers = []
    for i in range(count):
        container = DockerContainer(client)
        name = "peer-{}".format(i + 1)
        container.create(name, entry_node_spec(EntryNodeConfig(name=name,
                                                               seed="S")))
        if network:
            container.connect_to_network(network)
        containers.append(container)
    return containers


def test_ip_addresses_in_order():
    client = FakeDockerClient()
    containers = make_containers(client, 3, network="testnet")

    assert ip_addresses(containers, "testnet") == [
        "172.18.0.2", "172.18.0.3", "172.18.0.4"]
    assert ip_addresses(list(reversed(containers)), "testnet") == [
        "172.18.0.4", "172.18.0.3", "172.18.0.2"]


def test_ip_addresses_unattached():
    client = FakeDockerClient()
    containers = make_containers(client, 2, network="testnet")
    with pytest.raises(NetworkNotFoundError):
        ip_addresses(containers, "othernet")


def test_create_and_remove_network():
    client = FakeDockerClient()
    assert create_network(client, "testnet") == "net-testnet"
    assert "testnet" in client.api.networks

    assert remove_network(client, "testnet")
    assert "testnet" not in client.api.networks
    assert not remove_network(client, "testnet", best_effort=True)
    with pytest.raises(NotFound):
        remove_network(client, "testnet")


def test_select_containers():
    client = FakeDockerClient()
    containers = make_containers(client, 3)

    assert select_containers(containers, 2) == containers[:2]
    assert select_containers(containers, 2, SelectionStrategy.REVERSE) == [
        containers[2], containers[1]]
    assert select_containers(containers, "1", 2) == [containers[2]]

    picked = select_containers(containers, 3, SelectionStrategy.RANDOM)
    assert sorted(c.name for c in picked) == ["peer-1", "peer-2", "peer-3"]
    assert select_containers(containers, 0) == []


def test_select_containers_validation():
    client = FakeDockerClient()
    containers = make_containers(client, 2)
    with pytest.raises(ValueError):
        select_containers(containers, 3)
    with pytest.raises(ValueError):
        select_containers(containers, 1, 9)
