"""Fingerprint-keyed caching of negotiation results."""

from .fingerprint import config_fingerprint, directory_fingerprint, directory_key
from .models import CacheEntry, CacheStats, CacheValidity
from .namespaces import (
    PATTERNS_NAMESPACE,
    PROJECTS_NAMESPACE,
    SUGGESTIONS_NAMESPACE,
    CacheRegistry,
)
from .store import TieredCache

__all__ = [
    "CacheEntry",
    "CacheRegistry",
    "CacheStats",
    "CacheValidity",
    "PATTERNS_NAMESPACE",
    "PROJECTS_NAMESPACE",
    "SUGGESTIONS_NAMESPACE",
    "TieredCache",
    "config_fingerprint",
    "directory_fingerprint",
    "directory_key",
]
