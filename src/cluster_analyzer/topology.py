"""
Topology Accessors - Read token ranges and replica placement from cluster metadata.
"""

from typing import Any, Dict, FrozenSet, List

from loguru import logger

from src.consistency_checker.evaluator import TopologySnapshotAccessor
from src.consistency_checker.exceptions import TopologyUnavailableError
from src.consistency_checker.models.consistency import Host, TokenRange


def host_from_driver(driver_host: Any) -> Host:
    """
    Convert a ``cassandra.pool.Host`` into a Host.

    Hosts whose state is not known yet (``is_up`` is None) count as down.
    """
    address = str(driver_host.endpoint)
    host_id = driver_host.host_id
    return Host(
        id=str(host_id) if host_id else address,
        is_up=bool(driver_host.is_up),
        datacenter=driver_host.datacenter or "",
        address=address,
    )


class CassandraTopologyAccessor:
    """Topology accessor backed by a connected ``cassandra.cluster.Cluster``."""

    def __init__(self, cluster: Any):
        self._cluster = cluster
        # keyspace -> range -> driver token closing the range
        self._range_tokens: Dict[str, Dict[TokenRange, Any]] = {}

    def _token_map(self, keyspace: str) -> Any:
        metadata = self._cluster.metadata

        if keyspace not in metadata.keyspaces:
            raise TopologyUnavailableError(
                f"Keyspace '{keyspace}' does not exist in cluster metadata", keyspace
            )

        token_map = metadata.token_map
        if token_map is None or not token_map.ring:
            raise TopologyUnavailableError(
                "Token metadata is not available (is token_metadata_enabled disabled?)", keyspace
            )

        return token_map

    def token_ranges(self, keyspace: str) -> List[TokenRange]:
        """
        List the token ranges of the ring.

        Each ring token closes the range opened by its predecessor; the first
        range wraps around from the last token.

        Raises:
            TopologyUnavailableError: Unknown keyspace or no token metadata
        """
        ring = list(self._token_map(keyspace).ring)

        range_tokens: Dict[TokenRange, Any] = {}
        for index, end_token in enumerate(ring):
            start_token = ring[index - 1]
            token_range = TokenRange(start=str(start_token.value), end=str(end_token.value))
            range_tokens[token_range] = end_token

        self._range_tokens[keyspace] = range_tokens
        logger.debug(f"Read {len(range_tokens)} token ranges for keyspace '{keyspace}'")
        return list(range_tokens)

    def replicas(self, keyspace: str, token_range: TokenRange) -> FrozenSet[Host]:
        """
        Replica hosts owning a token range.

        Raises:
            TopologyUnavailableError: If the range is not part of the last ring read
        """
        end_token = self._range_tokens.get(keyspace, {}).get(token_range)
        if end_token is None:
            raise TopologyUnavailableError(
                f"Token range {token_range} is not part of the current ring of '{keyspace}'",
                keyspace,
            )

        token_map = self._token_map(keyspace)
        try:
            driver_hosts = token_map.get_replicas(keyspace, end_token)
        except Exception as e:
            raise TopologyUnavailableError(
                f"Failed to read replicas of {token_range} for '{keyspace}': {e}", keyspace
            ) from e

        return frozenset(host_from_driver(driver_host) for driver_host in driver_hosts)


def describe_keyspace(accessor: TopologySnapshotAccessor, keyspace: str) -> Dict[str, Any]:
    """
    Summarize the replica hosts of a keyspace per datacenter.

    Args:
        accessor: Topology snapshot source
        keyspace: Keyspace to describe

    Returns:
        Dictionary with the token range count and, per datacenter, the hosts that
        hold replicas and how many of them are up

    Raises:
        TopologyUnavailableError: If the topology cannot be read
    """
    ranges = accessor.token_ranges(keyspace)

    hosts: Dict[str, Host] = {}
    empty_ranges = 0
    for token_range in ranges:
        replicas = accessor.replicas(keyspace, token_range)
        if not replicas:
            empty_ranges += 1
        for host in replicas:
            hosts[host.id] = host

    datacenters: Dict[str, Dict[str, Any]] = {}
    for host in sorted(hosts.values(), key=lambda h: h.id):
        dc_info = datacenters.setdefault(
            host.datacenter, {"hosts_up": 0, "hosts_down": 0, "hosts": []}
        )
        dc_info["hosts_up" if host.is_up else "hosts_down"] += 1
        dc_info["hosts"].append(host.model_dump())

    return {
        "keyspace": keyspace,
        "token_ranges": len(ranges),
        "ranges_without_replicas": empty_ranges,
        "replica_hosts": len(hosts),
        "datacenters": datacenters,
    }
