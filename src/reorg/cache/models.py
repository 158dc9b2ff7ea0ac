"""Cache record and diagnostics models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CacheEntry(BaseModel):
    """A cached payload plus the fingerprints it was computed from.

    The persisted form uses camelCase keys: ``{data, directoryHash, timestamp,
    fileCount, configHash?}``; ``configHash`` is omitted when absent.

    Attributes:
        data: JSON-normalized payload.
        directory_hash: Fingerprint of the files the payload was computed for.
        timestamp: Creation time in epoch milliseconds.
        file_count: Number of files covered by the payload.
        config_hash: Optional fingerprint of the configuration in effect.
    """

    model_config = ConfigDict(populate_by_name=True)

    data: Any
    directory_hash: str = Field(alias="directoryHash")
    timestamp: int
    file_count: int = Field(alias="fileCount")
    config_hash: Optional[str] = Field(default=None, alias="configHash")

    def to_record(self) -> Dict[str, Any]:
        """Return the persisted JSON record."""
        record = self.model_dump(by_alias=True, mode="json")
        if self.config_hash is None:
            record.pop("configHash")
        return record


class CacheStats(BaseModel):
    """Summary of one cache namespace."""

    model_config = ConfigDict(populate_by_name=True)

    namespace: str
    memory_entries: int = Field(alias="memoryEntries")
    ttl_ms: int = Field(alias="ttlMs")
    persisted_location: str = Field(alias="persistedLocation")


@dataclass(frozen=True)
class CacheValidity:
    """Outcome of each validity condition, observable independently."""

    not_expired: bool
    directory_unchanged: bool
    config_unchanged: bool

    @property
    def valid(self) -> bool:
        return self.not_expired and self.directory_unchanged and self.config_unchanged

    def reasons(self) -> List[str]:
        """Return human-readable reasons the entry is invalid."""
        reasons: List[str] = []
        if not self.not_expired:
            reasons.append("expired")
        if not self.directory_unchanged:
            reasons.append("directory contents changed")
        if not self.config_unchanged:
            reasons.append("configuration changed")
        return reasons


__all__ = ["CacheEntry", "CacheStats", "CacheValidity"]
