"""
Test the driver-backed topology accessor and connection bootstrap with fake driver objects.
"""

import uuid
from types import SimpleNamespace

import pytest
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy

from src.cluster_analyzer import connection
from src.cluster_analyzer.connection import CassandraConnector
from src.cluster_analyzer.topology import CassandraTopologyAccessor, host_from_driver
from src.consistency_checker.config import CheckerSettings
from src.consistency_checker.evaluator import ConsistencyLevelEvaluator
from src.consistency_checker.exceptions import TopologyUnavailableError
from src.consistency_checker.models.consistency import ConsistencyLevel, TokenRange


class FakeToken:
    def __init__(self, value):
        self.value = value


class FakeTokenMap:
    def __init__(self, owners):
        self.ring = [FakeToken(value) for value in sorted(owners)]
        self.owners = owners
        self.calls = []

    def get_replicas(self, keyspace, token):
        self.calls.append((keyspace, token.value))
        return self.owners[token.value]


def driver_host(address, datacenter, is_up=True, host_id="generate"):
    return SimpleNamespace(
        endpoint=f"{address}:9042",
        host_id=uuid.uuid4() if host_id == "generate" else host_id,
        is_up=is_up,
        datacenter=datacenter,
    )


def fake_cluster(token_map, keyspaces=("orders",)):
    metadata = SimpleNamespace(
        keyspaces={name: object() for name in keyspaces},
        token_map=token_map,
        cluster_name="Test Cluster",
    )
    return SimpleNamespace(metadata=metadata)


@pytest.fixture
def hosts():
    return {
        "a": driver_host("10.0.0.1", "dc1"),
        "b": driver_host("10.0.0.2", "dc1"),
        "c": driver_host("10.0.0.3", "dc1", is_up=False),
    }


@pytest.fixture
def token_map(hosts):
    return FakeTokenMap({
        -100: [hosts["a"], hosts["b"]],
        0: [hosts["b"], hosts["c"]],
        100: [hosts["c"], hosts["a"]],
    })


def test_token_ranges_follow_the_ring(token_map):
    accessor = CassandraTopologyAccessor(fake_cluster(token_map))

    ranges = accessor.token_ranges("orders")

    assert ranges == [
        TokenRange(start="100", end="-100"),
        TokenRange(start="-100", end="0"),
        TokenRange(start="0", end="100"),
    ]


def test_replicas_use_the_closing_token(token_map):
    accessor = CassandraTopologyAccessor(fake_cluster(token_map))
    ranges = accessor.token_ranges("orders")

    replicas = accessor.replicas("orders", ranges[1])

    assert token_map.calls == [("orders", 0)]
    assert {h.address for h in replicas} == {"10.0.0.2:9042", "10.0.0.3:9042"}
    assert {h.address: h.is_up for h in replicas} == {"10.0.0.2:9042": True, "10.0.0.3:9042": False}


def test_host_conversion():
    host_id = uuid.uuid4()
    host = host_from_driver(driver_host("10.0.0.9", "dc2", host_id=host_id))
    assert host.id == str(host_id)
    assert host.datacenter == "dc2"
    assert host.is_up

    # Unknown state counts as down, missing host_id falls back to the endpoint
    host = host_from_driver(driver_host("10.0.0.9", None, is_up=None, host_id=None))
    assert host.id == "10.0.0.9:9042"
    assert host.datacenter == ""
    assert not host.is_up


def test_unknown_keyspace(token_map):
    accessor = CassandraTopologyAccessor(fake_cluster(token_map))

    with pytest.raises(TopologyUnavailableError):
        accessor.token_ranges("users")


def test_missing_token_metadata():
    accessor = CassandraTopologyAccessor(fake_cluster(None))

    with pytest.raises(TopologyUnavailableError):
        accessor.token_ranges("orders")


def test_range_outside_current_ring(token_map):
    accessor = CassandraTopologyAccessor(fake_cluster(token_map))
    accessor.token_ranges("orders")

    with pytest.raises(TopologyUnavailableError):
        accessor.replicas("orders", TokenRange(start="1", end="2"))


def test_driver_failure_is_wrapped(token_map):
    def explode(keyspace, token):
        raise KeyError(token.value)

    token_map.get_replicas = explode
    accessor = CassandraTopologyAccessor(fake_cluster(token_map))
    ranges = accessor.token_ranges("orders")

    with pytest.raises(TopologyUnavailableError):
        accessor.replicas("orders", ranges[0])


def test_evaluator_on_driver_metadata(token_map):
    accessor = CassandraTopologyAccessor(fake_cluster(token_map))

    quorum = ConsistencyLevelEvaluator(ConsistencyLevel.QUORUM, "orders", accessor).evaluate()
    one = ConsistencyLevelEvaluator(ConsistencyLevel.ONE, "orders", accessor).evaluate()

    # Every range has 2 replicas; the two touching node c only have 1 up
    assert not quorum.healthy
    assert quorum.failing_ranges == [
        TokenRange(start="-100", end="0"),
        TokenRange(start="0", end="100"),
    ]
    assert one.healthy


def test_cluster_kwargs_minimal():
    connector = CassandraConnector(CheckerSettings(contact_points=["cass1", "cass2"], port=9142))
    kwargs = connector._cluster_kwargs()

    assert kwargs["contact_points"] == ["cass1", "cass2"]
    assert kwargs["port"] == 9142
    assert "auth_provider" not in kwargs
    assert "execution_profiles" not in kwargs


def test_cluster_kwargs_with_auth_and_local_dc():
    settings = CheckerSettings(
        contact_points=["cass1"], local_dc="dc1", username="admin", password="secret", protocol_version=4
    )
    kwargs = CassandraConnector(settings)._cluster_kwargs()

    assert isinstance(kwargs["auth_provider"], PlainTextAuthProvider)
    assert kwargs["protocol_version"] == 4

    policy = kwargs["execution_profiles"][EXEC_PROFILE_DEFAULT].load_balancing_policy
    assert isinstance(policy, TokenAwarePolicy)
    assert isinstance(policy._child_policy, DCAwareRoundRobinPolicy)
    assert policy._child_policy.local_dc == "dc1"


class FakeDriverCluster:
    fail = False
    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.metadata = SimpleNamespace(cluster_name="Test Cluster", keyspaces={}, token_map=None)
        self.is_shutdown = False
        FakeDriverCluster.instances.append(self)

    def connect(self):
        if FakeDriverCluster.fail:
            raise RuntimeError("NoHostAvailable")
        return SimpleNamespace()

    def shutdown(self):
        self.is_shutdown = True


@pytest.fixture
def fake_driver(monkeypatch):
    FakeDriverCluster.fail = False
    FakeDriverCluster.instances = []
    monkeypatch.setattr(connection, "Cluster", FakeDriverCluster)
    return FakeDriverCluster


def test_connect_returns_accessor(fake_driver):
    connector = CassandraConnector(CheckerSettings())

    accessor = connector.connect()

    assert isinstance(accessor, CassandraTopologyAccessor)
    assert connector.is_cluster_available()
    # Reuses the open connection
    assert len(fake_driver.instances) == 1

    connector.shutdown()
    assert fake_driver.instances[0].is_shutdown


def test_connect_failure(fake_driver):
    fake_driver.fail = True
    connector = CassandraConnector(CheckerSettings())

    with pytest.raises(TopologyUnavailableError) as exc_info:
        connector.connect()

    assert "NoHostAvailable" in str(exc_info.value)
    assert fake_driver.instances[0].is_shutdown
    assert not connector.is_cluster_available()


def test_cluster_construction_failure(monkeypatch):
    def unresolvable(**kwargs):
        raise RuntimeError("UnresolvableContactPoints")

    monkeypatch.setattr(connection, "Cluster", unresolvable)
    connector = CassandraConnector(CheckerSettings(contact_points=["no-such-host.invalid"]))

    with pytest.raises(TopologyUnavailableError) as exc_info:
        connector.connect()

    assert "UnresolvableContactPoints" in str(exc_info.value)
    assert not connector.is_cluster_available()
