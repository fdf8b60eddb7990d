"""
Data models for consistency level evaluation using Pydantic.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.consistency_checker.exceptions import ConfigurationError


class ConsistencyLevel(str, Enum):
    """Consistency levels that can be checked against a keyspace."""

    ALL = "ALL"
    ONE = "ONE"
    TWO = "TWO"
    THREE = "THREE"
    QUORUM = "QUORUM"
    SERIAL = "SERIAL"
    LOCAL_ONE = "LOCAL_ONE"
    LOCAL_QUORUM = "LOCAL_QUORUM"
    LOCAL_SERIAL = "LOCAL_SERIAL"
    EACH_QUORUM = "EACH_QUORUM"

    @property
    def is_dc_local(self) -> bool:
        """True for levels that only look at replicas in the local datacenter."""
        return self in (
            ConsistencyLevel.LOCAL_ONE,
            ConsistencyLevel.LOCAL_QUORUM,
            ConsistencyLevel.LOCAL_SERIAL,
        )

    @classmethod
    def from_name(cls, name: str) -> "ConsistencyLevel":
        """
        Parse a consistency level name.

        Args:
            name: Level name, case-insensitive (e.g., "local_quorum", "QUORUM")

        Returns:
            Matching ConsistencyLevel

        Raises:
            ConfigurationError: If the name is not a supported level
        """
        normalized = str(name).strip().upper().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            supported = ", ".join(level.value for level in cls)
            raise ConfigurationError(
                f"Unsupported consistency level '{name}' (expected one of: {supported})"
            ) from None

    @classmethod
    def from_driver(cls, value: int) -> "ConsistencyLevel":
        """
        Convert a DataStax driver consistency constant (e.g. ``ConsistencyLevel.QUORUM``).

        Args:
            value: Integer constant from ``cassandra.ConsistencyLevel``

        Returns:
            Matching ConsistencyLevel
        """
        from cassandra import ConsistencyLevel as DriverConsistencyLevel

        name = DriverConsistencyLevel.value_to_name.get(value)
        if name is None:
            raise ConfigurationError(f"Unknown driver consistency level: {value!r}")
        return cls.from_name(name)

    def __str__(self) -> str:
        return self.value


class Host(BaseModel):
    """Replica host as seen in a topology snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Host identifier (host_id or endpoint)")
    is_up: bool = Field(..., description="Liveness at snapshot time")
    datacenter: str = Field(..., description="Datacenter the host belongs to")
    address: Optional[str] = Field(None, description="Endpoint, for diagnostics only")

    def __str__(self) -> str:
        state = "UP" if self.is_up else "DOWN"
        return f"{self.address or self.id} ({self.datacenter}, {state})"


class TokenRange(BaseModel):
    """Token range ``(start, end]`` on the ring. Opaque to the evaluator."""

    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    def __str__(self) -> str:
        return f"({self.start}, {self.end}]"


class Verdict(BaseModel):
    """Outcome of evaluating one token range."""

    model_config = ConfigDict(frozen=True)

    token_range: TokenRange
    replica_hosts: List[Host] = Field(default_factory=list)
    satisfied: bool


class AggregateResult(BaseModel):
    """Result of evaluating every token range of a keyspace."""

    model_config = ConfigDict(frozen=True)

    healthy: bool
    keyspace: str
    expected_cl: ConsistencyLevel
    local_dc: Optional[str] = None
    total_ranges: int = 0
    failing_ranges: List[TokenRange] = Field(default_factory=list)
    failing_verdicts: List[Verdict] = Field(default_factory=list)

    @property
    def message(self) -> str:
        """Health check message for this result."""
        reached = "is" if self.healthy else "isn't"
        return (
            f"ConsistencyLevel '{self.expected_cl.value}' {reached} reached "
            f"for Keyspace '{self.keyspace}'"
        )
