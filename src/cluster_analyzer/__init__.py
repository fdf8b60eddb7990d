"""
Cluster Analyzer - Reads token ranges, replica placement and host state from a cluster
"""

from src.cluster_analyzer.connection import CassandraConnector
from src.cluster_analyzer.snapshot import StaticTopologyAccessor
from src.cluster_analyzer.topology import CassandraTopologyAccessor, describe_keyspace

__all__ = [
    "CassandraConnector",
    "CassandraTopologyAccessor",
    "StaticTopologyAccessor",
    "describe_keyspace",
]
