"""
Storage adapters for legal-graphrag.

Provides the Neo4j knowledge graph store and the rate-limit stores.
"""

from legal_graphrag.storage.neo4j_adapter import GraphStore, GraphStoreUnavailable, get_graph_store
from legal_graphrag.storage.rate_limit import (
    RATE_LIMIT_POLICIES,
    MemoryRateLimiter,
    RateLimitExceeded,
    RateLimitResult,
    RedisRateLimiter,
    get_rate_limiter,
)

__all__ = [
    "GraphStore",
    "GraphStoreUnavailable",
    "get_graph_store",
    "RATE_LIMIT_POLICIES",
    "MemoryRateLimiter",
    "RateLimitExceeded",
    "RateLimitResult",
    "RedisRateLimiter",
    "get_rate_limiter",
]
