"""
Static Topology Snapshot - Topology accessor backed by a YAML/dict snapshot.

Lets checks run offline, e.g. against a snapshot captured during an incident:

    hosts:
      node1: {datacenter: dc1, up: true, address: 10.0.0.1}
      node2: {datacenter: dc2, up: false}
    keyspaces:
      orders:
        - start: "-9223372036854775808"
          end: "0"
          replicas: [node1, node2]
"""

from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Union

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from src.consistency_checker.exceptions import TopologyUnavailableError
from src.consistency_checker.models.consistency import Host, TokenRange


class SnapshotHost(BaseModel):
    """Host entry of a snapshot file."""

    datacenter: str
    up: bool = True
    address: Optional[str] = None


class SnapshotRange(BaseModel):
    """Token range entry of a snapshot file."""

    start: str
    end: str
    replicas: List[str] = Field(default_factory=list)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _token_to_str(cls, value: Any) -> Any:
        # Unquoted tokens come out of YAML as ints
        return str(value) if isinstance(value, int) else value

    @field_validator("replicas", mode="before")
    @classmethod
    def _ids_to_str(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        return value


class TopologySnapshot(BaseModel):
    """Parsed snapshot file."""

    hosts: Dict[str, SnapshotHost] = Field(default_factory=dict)
    keyspaces: Dict[str, List[SnapshotRange]] = Field(default_factory=dict)

    @field_validator("hosts", mode="before")
    @classmethod
    def _host_ids_to_str(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {str(key): item for key, item in value.items()}
        return value


class StaticTopologyAccessor:
    """Serves token ranges and replicas from an in-memory snapshot."""

    def __init__(self, ranges_by_keyspace: Dict[str, Dict[TokenRange, FrozenSet[Host]]]):
        """
        Initialize the accessor.

        Args:
            ranges_by_keyspace: keyspace -> token range -> replica hosts
        """
        self._ranges_by_keyspace = ranges_by_keyspace

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaticTopologyAccessor":
        """
        Build an accessor from a snapshot dictionary.

        Raises:
            TopologyUnavailableError: If the snapshot is malformed or references unknown hosts
        """
        try:
            snapshot = TopologySnapshot.model_validate(data or {})
        except ValidationError as e:
            raise TopologyUnavailableError(f"Invalid topology snapshot: {e}") from e

        hosts = {
            host_id: Host(id=host_id, is_up=entry.up, datacenter=entry.datacenter, address=entry.address)
            for host_id, entry in snapshot.hosts.items()
        }

        ranges_by_keyspace: Dict[str, Dict[TokenRange, FrozenSet[Host]]] = {}
        for keyspace, entries in snapshot.keyspaces.items():
            ranges: Dict[TokenRange, FrozenSet[Host]] = {}
            for entry in entries:
                unknown = [host_id for host_id in entry.replicas if host_id not in hosts]
                if unknown:
                    raise TopologyUnavailableError(
                        f"Token range ({entry.start}, {entry.end}] of '{keyspace}' "
                        f"references unknown hosts: {', '.join(unknown)}",
                        keyspace,
                    )
                token_range = TokenRange(start=entry.start, end=entry.end)
                ranges[token_range] = frozenset(hosts[host_id] for host_id in entry.replicas)
            ranges_by_keyspace[keyspace] = ranges

        return cls(ranges_by_keyspace)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "StaticTopologyAccessor":
        """
        Load an accessor from a YAML snapshot file.

        Raises:
            TopologyUnavailableError: If the file cannot be read or parsed
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise TopologyUnavailableError(f"Unable to load topology snapshot {path}: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise TopologyUnavailableError(f"Topology snapshot {path} must be a mapping")

        logger.info(f"Loaded topology snapshot from {path}")
        return cls.from_dict(data)

    def keyspaces(self) -> List[str]:
        return sorted(self._ranges_by_keyspace)

    def token_ranges(self, keyspace: str) -> List[TokenRange]:
        if keyspace not in self._ranges_by_keyspace:
            raise TopologyUnavailableError(f"Keyspace '{keyspace}' is not in the snapshot", keyspace)
        return list(self._ranges_by_keyspace[keyspace])

    def replicas(self, keyspace: str, token_range: TokenRange) -> FrozenSet[Host]:
        ranges = self._ranges_by_keyspace.get(keyspace)
        if ranges is None or token_range not in ranges:
            raise TopologyUnavailableError(
                f"Token range {token_range} is not in the snapshot of '{keyspace}'", keyspace
            )
        return ranges[token_range]
