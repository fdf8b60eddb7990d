"""
Exception types raised by the consistency level checker.
"""
from typing import Optional


class ConsistencyCheckError(Exception):
    """Base class for consistency check failures."""


class ConfigurationError(ConsistencyCheckError, ValueError):
    """Raised when a check is configured in a way that can never be evaluated."""


class TopologyUnavailableError(ConsistencyCheckError):
    """Raised when the cluster topology for a keyspace cannot be read."""

    def __init__(self, message: str, keyspace: Optional[str] = None):
        super().__init__(message)
        self.keyspace = keyspace
