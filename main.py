"""
Cassandra Consistency Level Checker - MCP Server

This MCP server checks whether a Cassandra keyspace can currently reach a given
consistency level, based on the cluster's token ring, replica placement and
host liveness. It never reads or writes data.
"""

import traceback
from typing import Any, Dict, Optional, Tuple

from mcp.server.fastmcp import FastMCP

from src.cluster_analyzer.connection import CassandraConnector
from src.cluster_analyzer.snapshot import StaticTopologyAccessor
from src.cluster_analyzer.topology import describe_keyspace
from src.consistency_checker.config import CheckerSettings
from src.consistency_checker.evaluator import TopologySnapshotAccessor
from src.consistency_checker.exceptions import ConfigurationError, TopologyUnavailableError
from src.consistency_checker.health_check import ConsistencyLevelHealthCheck, HealthCheckRegistry
from src.consistency_checker.models.consistency import ConsistencyLevel

# Initialize the MCP server
mcp = FastMCP("cassandra-consistency-checker")


def _open_accessor(settings: CheckerSettings) -> Tuple[TopologySnapshotAccessor, Optional[CassandraConnector]]:
    """
    Open the configured topology source.

    Returns:
        (accessor, connector) - connector is None when reading a snapshot file
    """
    if settings.snapshot_file:
        return StaticTopologyAccessor.from_yaml(settings.snapshot_file), None

    connector = CassandraConnector(settings)
    return connector.connect(), connector


def build_registry(settings: CheckerSettings, accessor: TopologySnapshotAccessor) -> HealthCheckRegistry:
    """Register one health check per configured check definition."""
    registry = HealthCheckRegistry()
    for definition in settings.checks:
        registry.register(
            definition.name,
            ConsistencyLevelHealthCheck(
                definition.consistency_level,
                definition.keyspace,
                accessor,
                local_dc=definition.local_dc,
                max_workers=settings.max_workers,
                name=definition.name,
            ),
        )
    return registry


@mcp.tool()
def check_consistency_level(
    keyspace: str, consistency_level: str, local_dc: Optional[str] = None
) -> Dict[str, Any]:
    """
    Check if a keyspace can currently reach a consistency level.

    USE THIS TOOL WHEN:
    - User asks "can keyspace X serve QUORUM reads/writes right now?"
    - User asks "is LOCAL_QUORUM reachable in dc1 for keyspace X?"
    - User asks "which token ranges would fail at consistency level Y?"

    Every token range of the keyspace is checked against its replicas'
    up/down state. The keyspace passes only if every range passes.

    Args:
        keyspace: Keyspace name (e.g., "orders")
        consistency_level: One of ALL, ONE, TWO, THREE, QUORUM, SERIAL,
                           LOCAL_ONE, LOCAL_QUORUM, LOCAL_SERIAL, EACH_QUORUM
        local_dc: Local datacenter, required for LOCAL_* levels
                  (defaults to CASSANDRA_LOCAL_DC)

    Returns:
        Dictionary containing:
        - success: False if the check could not be configured or run
        - result: status ("healthy", "unhealthy" or "unknown"), message,
                  checked_ranges, failing_ranges, warnings, error
        - summary: Human-readable report
        - error: Error message if the check could not be configured

    Example:
        >>> check_consistency_level("orders", "QUORUM")
        {
            "success": True,
            "result": {
                "status": "healthy",
                "message": "ConsistencyLevel 'QUORUM' is reached for Keyspace 'orders'",
                "checked_ranges": 768,
                "failing_ranges": [],
                ...
            },
            "summary": "✅ ConsistencyLevel 'QUORUM' is reached for Keyspace 'orders'..."
        }
    """
    connector = None
    try:
        settings = CheckerSettings.from_env()
        level = ConsistencyLevel.from_name(consistency_level)
        accessor, connector = _open_accessor(settings)

        health_check = ConsistencyLevelHealthCheck(
            level,
            keyspace,
            accessor,
            local_dc=local_dc or settings.local_dc,
            max_workers=settings.max_workers,
        )
        result = health_check.check()

        return {
            "success": result.error is None,
            "result": result.to_dict(),
            "summary": result.to_summary(),
        }

    except (ConfigurationError, TopologyUnavailableError) as e:
        return {"success": False, "error": str(e), "keyspace": keyspace}
    except Exception as e:
        return {
            "success": False,
            "error": f"Unexpected error: {str(e)}",
            "traceback": traceback.format_exc(),
            "keyspace": keyspace,
        }
    finally:
        if connector is not None:
            connector.shutdown()


@mcp.tool()
def run_health_checks() -> Dict[str, Any]:
    """
    Run every configured consistency level health check.

    Checks are configured with the CONSISTENCY_CHECKS environment variable,
    e.g. "orders:LOCAL_QUORUM@dc1,users:QUORUM".

    USE THIS TOOL WHEN:
    - User asks "are my Cassandra health checks passing?"
    - User asks for an overall consistency/availability report

    Returns:
        Dictionary containing:
        - success: False if the checks could not be configured
        - healthy: True only if every check is healthy
        - checks: Mapping of check name to its result
        - summary: Human-readable report of all checks
        - error: Error message if configuration or connection failed
    """
    connector = None
    try:
        settings = CheckerSettings.from_env()
        if not settings.checks:
            return {
                "success": False,
                "error": "No checks configured. Set CONSISTENCY_CHECKS (e.g. 'orders:QUORUM').",
            }

        accessor, connector = _open_accessor(settings)
        results = build_registry(settings, accessor).run_health_checks()

        return {
            "success": True,
            "healthy": all(result.is_healthy for result in results.values()),
            "checks": {name: result.to_dict() for name, result in results.items()},
            "summary": "\n\n".join(result.to_summary() for result in results.values()),
        }

    except (ConfigurationError, TopologyUnavailableError) as e:
        return {"success": False, "error": str(e)}
    except Exception as e:
        return {
            "success": False,
            "error": f"Unexpected error: {str(e)}",
            "traceback": traceback.format_exc(),
        }
    finally:
        if connector is not None:
            connector.shutdown()


@mcp.tool()
def describe_keyspace_topology(keyspace: str) -> Dict[str, Any]:
    """
    Describe where a keyspace's replicas live and which hosts are up.

    USE THIS TOOL WHEN:
    - User asks "which nodes hold keyspace X?"
    - User wants to understand WHY a consistency check failed

    DO NOT USE to decide whether a consistency level is reachable
    (use check_consistency_level instead).

    Args:
        keyspace: Keyspace name

    Returns:
        Dictionary containing:
        - success: Boolean indicating if the topology could be read
        - topology: token range count and, per datacenter, up/down host counts
                    and host details
        - error: Error message if the cluster is not reachable
    """
    connector = None
    try:
        settings = CheckerSettings.from_env()
        accessor, connector = _open_accessor(settings)
        return {"success": True, "topology": describe_keyspace(accessor, keyspace)}

    except (ConfigurationError, TopologyUnavailableError) as e:
        return {"success": False, "error": str(e), "keyspace": keyspace}
    except Exception as e:
        return {
            "success": False,
            "error": f"Unexpected error: {str(e)}",
            "traceback": traceback.format_exc(),
            "keyspace": keyspace,
        }
    finally:
        if connector is not None:
            connector.shutdown()


def main():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
