"""
Serving Module
"""
from .cache import InMemoryTagCache, RedisTagCache, close_redis, get_redis, init_redis

__all__ = [
    "init_redis",
    "close_redis",
    "get_redis",
    "RedisTagCache",
    "InMemoryTagCache",
]
