"""
Health Checks - Reports consistency level evaluation as healthy/unhealthy results.

Wraps the evaluator so that topology failures surface as "unknown" rather than
being mistaken for an unhealthy keyspace, and keeps named checks in a registry.
"""
import traceback
from enum import Enum
from typing import Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from src.consistency_checker.evaluator import (
    ConsistencyLevelEvaluator,
    TopologySnapshotAccessor,
    group_by_datacenter,
)
from src.consistency_checker.exceptions import ConfigurationError, TopologyUnavailableError
from src.consistency_checker.models.consistency import AggregateResult, ConsistencyLevel

# Failing ranges listed in a summary before the list is truncated
MAX_LISTED_RANGES = 10


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class HealthCheckResult(BaseModel):
    """Result of running one health check."""

    name: str
    status: HealthStatus
    message: str
    keyspace: Optional[str] = None
    consistency_level: Optional[ConsistencyLevel] = None
    local_dc: Optional[str] = None
    checked_ranges: int = 0
    failing_ranges: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY

    def to_dict(self) -> Dict:
        return self.model_dump(mode="json")

    def to_summary(self) -> str:
        """
        Generate a human-readable summary.

        Returns:
            Multi-line report for operators
        """
        lines = []

        if self.status == HealthStatus.HEALTHY:
            lines.append(f"✅ {self.message}")
        elif self.status == HealthStatus.UNHEALTHY:
            lines.append(f"❌ {self.message}")
        else:
            lines.append(f"❔ {self.message}")

        if self.checked_ranges:
            lines.append(
                f"\nToken ranges checked: {self.checked_ranges}, "
                f"failing: {len(self.failing_ranges)}"
            )

        if self.failing_ranges:
            lines.append("\nToken ranges that cannot reach the consistency level:")
            for token_range in self.failing_ranges[:MAX_LISTED_RANGES]:
                lines.append(f"  ✗ {token_range}")
            hidden = len(self.failing_ranges) - MAX_LISTED_RANGES
            if hidden > 0:
                lines.append(f"  ... and {hidden} more")

        if self.warnings:
            lines.append("\nWarnings:")
            for warning in self.warnings:
                lines.append(f"  ⚠ {warning}")

        if self.error:
            lines.append(f"\nError: {self.error}")

        return "\n".join(lines)


class ConsistencyLevelHealthCheck:
    """Health check verifying that a keyspace can currently serve a consistency level."""

    def __init__(
        self,
        consistency_level: ConsistencyLevel,
        keyspace: str,
        accessor: TopologySnapshotAccessor,
        local_dc: Optional[str] = None,
        max_workers: Optional[int] = None,
        name: Optional[str] = None,
    ):
        """
        Initialize the health check.

        Args:
            consistency_level: Expected consistency level
            keyspace: Keyspace to check
            accessor: Topology snapshot source
            local_dc: Local datacenter, mandatory for LOCAL_* levels
            max_workers: Thread pool size passed to the evaluator
            name: Check name, defaults to "<keyspace>-<level>"

        Raises:
            ConfigurationError: If the evaluator cannot be built
        """
        self.evaluator = ConsistencyLevelEvaluator(
            consistency_level, keyspace, accessor, local_dc=local_dc, max_workers=max_workers
        )
        self.name = name or f"{keyspace}-{self.evaluator.expected_cl.value.lower()}"

    @property
    def keyspace(self) -> str:
        return self.evaluator.keyspace

    @property
    def consistency_level(self) -> ConsistencyLevel:
        return self.evaluator.expected_cl

    @property
    def local_dc(self) -> Optional[str]:
        return self.evaluator.local_dc

    def check(self) -> HealthCheckResult:
        """
        Run the check.

        Returns:
            HealthCheckResult; topology failures produce an UNKNOWN status
        """
        try:
            result = self.evaluator.evaluate()
        except TopologyUnavailableError as e:
            logger.error(f"Health check '{self.name}' could not run: {e}")
            return HealthCheckResult(
                name=self.name,
                status=HealthStatus.UNKNOWN,
                message=(
                    f"Unable to determine whether ConsistencyLevel "
                    f"'{self.consistency_level.value}' is reached for Keyspace '{self.keyspace}'"
                ),
                keyspace=self.keyspace,
                consistency_level=self.consistency_level,
                local_dc=self.local_dc,
                error=str(e),
            )

        warnings = self._missing_local_dc_warnings(result)
        for warning in warnings:
            logger.warning(warning)

        return HealthCheckResult(
            name=self.name,
            status=HealthStatus.HEALTHY if result.healthy else HealthStatus.UNHEALTHY,
            message=result.message,
            keyspace=self.keyspace,
            consistency_level=self.consistency_level,
            local_dc=self.local_dc,
            checked_ranges=result.total_ranges,
            failing_ranges=[str(token_range) for token_range in result.failing_ranges],
            warnings=warnings,
        )

    def _missing_local_dc_warnings(self, result: AggregateResult) -> List[str]:
        """Report failing ranges that have no replica at all in the local datacenter."""
        if not self.consistency_level.is_dc_local:
            return []

        missing = [
            verdict
            for verdict in result.failing_verdicts
            if self.local_dc not in group_by_datacenter(verdict.replica_hosts)
        ]
        if not missing:
            return []

        return [
            f"Local datacenter '{self.local_dc}' holds no replica for {len(missing)} "
            f"token range(s) of keyspace '{self.keyspace}' (first: {missing[0].token_range})"
        ]


class HealthCheckRegistry:
    """Named collection of health checks."""

    def __init__(self):
        self._checks: Dict[str, ConsistencyLevelHealthCheck] = {}

    def register(self, name: str, check: ConsistencyLevelHealthCheck) -> None:
        if name in self._checks:
            raise ConfigurationError(f"A health check named '{name}' is already registered")
        self._checks[name] = check

    def unregister(self, name: str) -> None:
        self._checks.pop(name, None)

    def names(self) -> List[str]:
        return sorted(self._checks)

    def run_health_check(self, name: str) -> HealthCheckResult:
        """
        Run a single registered check.

        Raises:
            KeyError: If no check is registered under this name
        """
        if name not in self._checks:
            raise KeyError(f"No health check named '{name}'")
        return self._run(name, self._checks[name])

    def run_health_checks(self) -> Dict[str, HealthCheckResult]:
        """Run every registered check, in name order."""
        return {name: self._run(name, self._checks[name]) for name in self.names()}

    def _run(self, name: str, check: ConsistencyLevelHealthCheck) -> HealthCheckResult:
        try:
            result = check.check()
        except Exception as e:
            logger.error(f"Health check '{name}' failed unexpectedly: {e}")
            logger.debug(traceback.format_exc())
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"Health check '{name}' failed unexpectedly",
                error=f"Unexpected error: {str(e)}",
            )

        return result.model_copy(update={"name": name})
