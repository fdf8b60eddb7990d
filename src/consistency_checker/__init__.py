"""
Consistency Checker - Determines if a keyspace can currently reach a consistency level
"""

from src.consistency_checker.evaluator import ConsistencyLevelEvaluator
from src.consistency_checker.health_check import ConsistencyLevelHealthCheck, HealthCheckRegistry

__all__ = ["ConsistencyLevelEvaluator", "ConsistencyLevelHealthCheck", "HealthCheckRegistry"]
