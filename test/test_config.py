"""
Test configuration parsing from environment variables.
"""

import pytest

from src.consistency_checker.config import CheckerSettings, parse_check_definitions
from src.consistency_checker.exceptions import ConfigurationError
from src.consistency_checker.models.consistency import ConsistencyLevel

ENV_VARS = [
    "CASSANDRA_CONTACT_POINTS",
    "CASSANDRA_PORT",
    "CASSANDRA_LOCAL_DC",
    "CASSANDRA_USERNAME",
    "CASSANDRA_PASSWORD",
    "CASSANDRA_PROTOCOL_VERSION",
    "CASSANDRA_CONNECT_TIMEOUT",
    "CONSISTENCY_CHECK_WORKERS",
    "CONSISTENCY_CHECKS",
    "TOPOLOGY_SNAPSHOT_FILE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_parse_check_definitions():
    checks = parse_check_definitions("orders:QUORUM, users:local_one@dc2,events:each_quorum")

    assert [c.keyspace for c in checks] == ["orders", "users", "events"]
    assert [c.consistency_level for c in checks] == [
        ConsistencyLevel.QUORUM,
        ConsistencyLevel.LOCAL_ONE,
        ConsistencyLevel.EACH_QUORUM,
    ]
    assert checks[1].local_dc == "dc2"
    assert checks[1].name == "users-local_one"


def test_parse_check_definitions_default_datacenter():
    checks = parse_check_definitions("orders:LOCAL_QUORUM,users:LOCAL_ONE@dc2", "dc1")

    assert checks[0].local_dc == "dc1"
    assert checks[1].local_dc == "dc2"


def test_parse_check_definitions_empty():
    assert parse_check_definitions("") == []
    assert parse_check_definitions(" , ") == []


@pytest.mark.parametrize("raw", ["orders", "orders:", ":QUORUM", "orders:SOMETIMES"])
def test_parse_check_definitions_rejects_malformed_entries(raw):
    with pytest.raises(ConfigurationError):
        parse_check_definitions(raw)


def test_parse_check_definitions_rejects_local_level_without_datacenter():
    with pytest.raises(ConfigurationError):
        parse_check_definitions("orders:LOCAL_QUORUM")


def test_defaults(clean_env):
    settings = CheckerSettings.from_env()

    assert settings.contact_points == ["127.0.0.1"]
    assert settings.port == 9042
    assert settings.local_dc is None
    assert settings.username is None
    assert settings.max_workers is None
    assert settings.snapshot_file is None
    assert settings.checks == []


def test_from_env(clean_env):
    clean_env.setenv("CASSANDRA_CONTACT_POINTS", "cass1, cass2,")
    clean_env.setenv("CASSANDRA_PORT", "9142")
    clean_env.setenv("CASSANDRA_LOCAL_DC", "dc1")
    clean_env.setenv("CASSANDRA_USERNAME", "admin")
    clean_env.setenv("CASSANDRA_PASSWORD", "secret")
    clean_env.setenv("CASSANDRA_PROTOCOL_VERSION", "4")
    clean_env.setenv("CASSANDRA_CONNECT_TIMEOUT", "2.5")
    clean_env.setenv("CONSISTENCY_CHECK_WORKERS", "8")
    clean_env.setenv("CONSISTENCY_CHECKS", "orders:LOCAL_QUORUM,users:QUORUM")

    settings = CheckerSettings.from_env()

    assert settings.contact_points == ["cass1", "cass2"]
    assert settings.port == 9142
    assert settings.local_dc == "dc1"
    assert settings.username == "admin"
    assert settings.password == "secret"
    assert settings.protocol_version == 4
    assert settings.connect_timeout == 2.5
    assert settings.max_workers == 8
    assert [c.name for c in settings.checks] == ["orders-local_quorum", "users-quorum"]
    assert settings.checks[0].local_dc == "dc1"


def test_from_env_invalid_port(clean_env):
    clean_env.setenv("CASSANDRA_PORT", "not-a-port")

    with pytest.raises(ConfigurationError):
        CheckerSettings.from_env()
