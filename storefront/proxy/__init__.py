"""Fetch-or-generate proxy building blocks."""
from .cache import CacheEntry, CacheStatus, SQLCacheStore
from .resolver import CachePolicy, FetchOrGenerate, ResolveOutcome, ResolveStatus

__all__ = [
    "CacheEntry",
    "CacheStatus",
    "SQLCacheStore",
    "CachePolicy",
    "FetchOrGenerate",
    "ResolveOutcome",
    "ResolveStatus",
]
