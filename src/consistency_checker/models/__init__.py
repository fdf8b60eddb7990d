"""
Value types shared by the evaluator, the health checks and the topology sources.
"""

from src.consistency_checker.models.consistency import (
    AggregateResult,
    ConsistencyLevel,
    Host,
    TokenRange,
    Verdict,
)

__all__ = ["AggregateResult", "ConsistencyLevel", "Host", "TokenRange", "Verdict"]
