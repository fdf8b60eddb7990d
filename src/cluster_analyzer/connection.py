"""
Cassandra Connection - Bootstraps a DataStax driver session for topology reads.

The checker never issues queries of its own; the session only exists so that the
driver populates cluster metadata (token ring, replica placement, host state).
"""

import os
import sys
from typing import Any, Dict, Optional

from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from loguru import logger

from src.cluster_analyzer.topology import CassandraTopologyAccessor
from src.consistency_checker.config import CheckerSettings
from src.consistency_checker.exceptions import TopologyUnavailableError

logger.remove()
logger.add(sys.stderr, level=os.getenv("LOG_LEVEL", "INFO"))


class CassandraConnector:
    """Opens and closes the driver connection used to read cluster metadata."""

    def __init__(self, settings: CheckerSettings):
        """
        Initialize the connector. No connection is made until connect() is called.

        Args:
            settings: Contact points, credentials and local datacenter
        """
        self.settings = settings
        self._cluster: Optional[Cluster] = None

    def _cluster_kwargs(self) -> Dict[str, Any]:
        """
        Build keyword arguments for ``cassandra.cluster.Cluster``.

        Returns:
            Dict of Cluster constructor arguments
        """
        kwargs: Dict[str, Any] = {
            "contact_points": list(self.settings.contact_points),
            "port": self.settings.port,
            "connect_timeout": self.settings.connect_timeout,
        }

        if self.settings.username:
            kwargs["auth_provider"] = PlainTextAuthProvider(
                username=self.settings.username, password=self.settings.password or ""
            )

        if self.settings.protocol_version:
            kwargs["protocol_version"] = self.settings.protocol_version

        if self.settings.local_dc:
            profile = ExecutionProfile(
                load_balancing_policy=TokenAwarePolicy(
                    DCAwareRoundRobinPolicy(local_dc=self.settings.local_dc)
                )
            )
            kwargs["execution_profiles"] = {EXEC_PROFILE_DEFAULT: profile}

        return kwargs

    def connect(self) -> CassandraTopologyAccessor:
        """
        Connect to the cluster.

        Returns:
            Topology accessor backed by the driver's cluster metadata

        Raises:
            TopologyUnavailableError: If no contact point can be reached
        """
        if self._cluster is not None:
            return CassandraTopologyAccessor(self._cluster)

        contact_points = ", ".join(self.settings.contact_points)
        logger.info(f"Connecting to Cassandra at {contact_points}:{self.settings.port}")

        cluster = None
        try:
            cluster = Cluster(**self._cluster_kwargs())
            cluster.connect()
        except Exception as e:
            if cluster is not None:
                cluster.shutdown()
            raise TopologyUnavailableError(
                f"Unable to connect to Cassandra at {contact_points}: {e}"
            ) from e

        self._cluster = cluster
        logger.info(f"Connected to cluster '{cluster.metadata.cluster_name}'")
        return CassandraTopologyAccessor(cluster)

    def is_cluster_available(self) -> bool:
        """
        Quick check if the cluster is reachable.

        Returns:
            True if a connection could be established
        """
        try:
            self.connect()
        except TopologyUnavailableError as e:
            logger.info(f"Cluster not available: {e}")
            return False
        return True

    def shutdown(self) -> None:
        """Close the driver connection, if open."""
        if self._cluster is not None:
            self._cluster.shutdown()
            self._cluster = None
