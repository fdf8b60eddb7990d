"""
Configuration - Reads checker settings from the environment (and an optional .env file).
"""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from src.consistency_checker.exceptions import ConfigurationError
from src.consistency_checker.models.consistency import ConsistencyLevel

# Load environment variables
load_dotenv()

DEFAULT_CONTACT_POINTS = ["127.0.0.1"]
DEFAULT_PORT = 9042
DEFAULT_CONNECT_TIMEOUT = 10.0


class CheckDefinition(BaseModel):
    """One configured consistency check."""

    keyspace: str
    consistency_level: ConsistencyLevel
    local_dc: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.keyspace}-{self.consistency_level.value.lower()}"


class CheckerSettings(BaseModel):
    """Connection and check settings."""

    contact_points: List[str] = Field(default_factory=lambda: list(DEFAULT_CONTACT_POINTS))
    port: int = DEFAULT_PORT
    local_dc: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    protocol_version: Optional[int] = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    max_workers: Optional[int] = None
    snapshot_file: Optional[str] = None
    checks: List[CheckDefinition] = Field(default_factory=list)

    @classmethod
    def from_env(cls) -> "CheckerSettings":
        """
        Build settings from environment variables.

        Returns:
            CheckerSettings

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        local_dc = os.getenv("CASSANDRA_LOCAL_DC") or None
        contact_points = [
            point.strip()
            for point in os.getenv("CASSANDRA_CONTACT_POINTS", "").split(",")
            if point.strip()
        ]

        try:
            return cls(
                contact_points=contact_points or list(DEFAULT_CONTACT_POINTS),
                port=os.getenv("CASSANDRA_PORT") or DEFAULT_PORT,
                local_dc=local_dc,
                username=os.getenv("CASSANDRA_USERNAME") or None,
                password=os.getenv("CASSANDRA_PASSWORD") or None,
                protocol_version=os.getenv("CASSANDRA_PROTOCOL_VERSION") or None,
                connect_timeout=os.getenv("CASSANDRA_CONNECT_TIMEOUT") or DEFAULT_CONNECT_TIMEOUT,
                max_workers=os.getenv("CONSISTENCY_CHECK_WORKERS") or None,
                snapshot_file=os.getenv("TOPOLOGY_SNAPSHOT_FILE") or None,
                checks=parse_check_definitions(os.getenv("CONSISTENCY_CHECKS", ""), local_dc),
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid checker configuration: {e}") from e


def parse_check_definitions(raw: str, default_local_dc: Optional[str] = None) -> List[CheckDefinition]:
    """
    Parse check definitions.

    Args:
        raw: Comma separated ``keyspace:LEVEL[@datacenter]`` entries
        default_local_dc: Datacenter used by LOCAL_* entries that do not name one

    Returns:
        List of CheckDefinition

    Raises:
        ConfigurationError: On malformed entries or LOCAL_* levels without a datacenter

    Examples:
        >>> [c.name for c in parse_check_definitions("orders:QUORUM, users:LOCAL_ONE@dc1")]
        ['orders-quorum', 'users-local_one']
    """
    definitions = []

    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue

        keyspace, separator, level_part = entry.partition(":")
        if not separator or not keyspace.strip() or not level_part.strip():
            raise ConfigurationError(
                f"Invalid check definition '{entry}' (expected keyspace:LEVEL[@datacenter])"
            )

        level_name, _, datacenter = level_part.partition("@")
        level = ConsistencyLevel.from_name(level_name)
        local_dc = datacenter.strip() or default_local_dc

        if level.is_dc_local and not local_dc:
            raise ConfigurationError(
                f"Check '{entry}' uses {level.value} but no datacenter was given "
                f"(append @<datacenter> or set CASSANDRA_LOCAL_DC)"
            )

        definitions.append(
            CheckDefinition(keyspace=keyspace.strip(), consistency_level=level, local_dc=local_dc)
        )

    return definitions
