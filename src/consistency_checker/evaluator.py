"""
Consistency Level Evaluator - Decides whether a consistency level is achievable.

For every token range of a keyspace, the replica set is read from a topology
snapshot and checked against the rule of the expected consistency level. The
keyspace satisfies the level only when every range does.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Collection, Dict, List, Optional, Protocol, Sequence

from loguru import logger

from src.consistency_checker.exceptions import ConfigurationError
from src.consistency_checker.models.consistency import (
    AggregateResult,
    ConsistencyLevel,
    Host,
    TokenRange,
    Verdict,
)


class TopologySnapshotAccessor(Protocol):
    """Source of token ranges and replica sets for a keyspace."""

    def token_ranges(self, keyspace: str) -> Sequence[TokenRange]:
        ...

    def replicas(self, keyspace: str, token_range: TokenRange) -> Collection[Host]:
        ...


HostsByDatacenter = Dict[str, List[Host]]
Rule = Callable[[List[Host], HostsByDatacenter, Optional[str]], bool]


def quorum(replica_count: int) -> int:
    """
    Number of replicas needed for a quorum.

    Examples:
        >>> quorum(3)
        2
        >>> quorum(6)
        4
    """
    return replica_count // 2 + 1


def available_replicas(hosts: Collection[Host]) -> int:
    """Count hosts that are up."""
    return sum(1 for host in hosts if host.is_up)


def group_by_datacenter(hosts: Collection[Host]) -> HostsByDatacenter:
    grouped: HostsByDatacenter = {}
    for host in hosts:
        grouped.setdefault(host.datacenter, []).append(host)
    return grouped


def _has_quorum(hosts: List[Host]) -> bool:
    # An empty group has nobody to answer
    if not hosts:
        return False
    return available_replicas(hosts) >= quorum(len(hosts))


def _at_least(count: int) -> Rule:
    def rule(hosts: List[Host], hosts_by_dc: HostsByDatacenter, local_dc: Optional[str]) -> bool:
        return available_replicas(hosts) >= count

    return rule


def _all_replicas(hosts: List[Host], hosts_by_dc: HostsByDatacenter, local_dc: Optional[str]) -> bool:
    return available_replicas(hosts) == len(hosts)


def _quorum(hosts: List[Host], hosts_by_dc: HostsByDatacenter, local_dc: Optional[str]) -> bool:
    return _has_quorum(hosts)


def _local_one(hosts: List[Host], hosts_by_dc: HostsByDatacenter, local_dc: Optional[str]) -> bool:
    return available_replicas(hosts_by_dc.get(local_dc, [])) >= 1


def _local_quorum(hosts: List[Host], hosts_by_dc: HostsByDatacenter, local_dc: Optional[str]) -> bool:
    return _has_quorum(hosts_by_dc.get(local_dc, []))


def _each_quorum(hosts: List[Host], hosts_by_dc: HostsByDatacenter, local_dc: Optional[str]) -> bool:
    return all(_has_quorum(dc_hosts) for dc_hosts in hosts_by_dc.values())


RULES: Dict[ConsistencyLevel, Rule] = {
    ConsistencyLevel.ALL: _all_replicas,
    ConsistencyLevel.ONE: _at_least(1),
    ConsistencyLevel.TWO: _at_least(2),
    ConsistencyLevel.THREE: _at_least(3),
    ConsistencyLevel.QUORUM: _quorum,
    ConsistencyLevel.SERIAL: _quorum,
    ConsistencyLevel.LOCAL_ONE: _local_one,
    ConsistencyLevel.LOCAL_QUORUM: _local_quorum,
    ConsistencyLevel.LOCAL_SERIAL: _local_quorum,
    ConsistencyLevel.EACH_QUORUM: _each_quorum,
}


def is_satisfied(
    consistency_level: ConsistencyLevel,
    hosts: Collection[Host],
    local_dc: Optional[str] = None,
) -> bool:
    """
    Check a single replica set against a consistency level.

    Args:
        consistency_level: Level to check
        hosts: Replica hosts owning the range
        local_dc: Local datacenter, used by the LOCAL_* levels

    Returns:
        True if an operation at this level could currently succeed
    """
    hosts = list(hosts)
    return RULES[consistency_level](hosts, group_by_datacenter(hosts), local_dc)


class ConsistencyLevelEvaluator:
    """Evaluates one consistency level for one keyspace against a topology snapshot."""

    def __init__(
        self,
        expected_cl: ConsistencyLevel,
        keyspace: str,
        accessor: TopologySnapshotAccessor,
        local_dc: Optional[str] = None,
        max_workers: Optional[int] = None,
    ):
        """
        Initialize the evaluator.

        Args:
            expected_cl: Consistency level the keyspace should support
            keyspace: Keyspace to check
            accessor: Topology snapshot source
            local_dc: Local datacenter, mandatory for LOCAL_* levels
            max_workers: Thread pool size for range evaluation (None or 1 = inline)

        Raises:
            ConfigurationError: If a LOCAL_* level is requested without local_dc
        """
        if not isinstance(expected_cl, ConsistencyLevel):
            expected_cl = ConsistencyLevel.from_name(expected_cl)
        if expected_cl.is_dc_local and not local_dc:
            raise ConfigurationError(
                f"LOCAL ConsistencyLevel '{expected_cl.value}' expected but datacenter is not set"
            )
        if not keyspace:
            raise ConfigurationError("Keyspace name must not be empty")
        if max_workers is not None and max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {max_workers}")

        self.expected_cl = expected_cl
        self.keyspace = keyspace
        self.local_dc = local_dc
        self.max_workers = max_workers
        self._accessor = accessor

    def evaluate(self) -> AggregateResult:
        """
        Main entry point: evaluate every token range of the keyspace.

        Returns:
            AggregateResult, healthy only if every range satisfies the level

        Raises:
            TopologyUnavailableError: If the topology cannot be read
        """
        ranges = list(self._accessor.token_ranges(self.keyspace))
        logger.debug(
            f"Evaluating {self.expected_cl.value} on {len(ranges)} token ranges of '{self.keyspace}'"
        )

        if self.max_workers and self.max_workers > 1 and len(ranges) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                verdicts = list(executor.map(self.evaluate_range, ranges))
        else:
            verdicts = [self.evaluate_range(token_range) for token_range in ranges]

        failing = [verdict for verdict in verdicts if not verdict.satisfied]
        result = AggregateResult(
            healthy=not failing,
            keyspace=self.keyspace,
            expected_cl=self.expected_cl,
            local_dc=self.local_dc,
            total_ranges=len(verdicts),
            failing_ranges=[verdict.token_range for verdict in failing],
            failing_verdicts=failing,
        )

        logger.info(f"{result.message} ({len(failing)}/{len(verdicts)} token ranges failing)")
        return result

    def evaluate_range(self, token_range: TokenRange) -> Verdict:
        """
        Evaluate one token range.

        Args:
            token_range: Range to evaluate

        Returns:
            Verdict carrying the full replica set of the range
        """
        hosts = sorted(self._accessor.replicas(self.keyspace, token_range), key=lambda h: h.id)
        satisfied = is_satisfied(self.expected_cl, hosts, self.local_dc)
        return Verdict(token_range=token_range, replica_hosts=hosts, satisfied=satisfied)
