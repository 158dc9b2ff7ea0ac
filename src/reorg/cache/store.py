"""Two-tier (memory plus JSON file) cache keyed by directory fingerprints."""

from __future__ import annotations

import json
import logging
import shutil
import time
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Sequence, TypeVar

from pydantic import TypeAdapter, ValidationError

from reorg.ingestion.models import FileDescriptor

from .fingerprint import directory_fingerprint, directory_key
from .models import CacheEntry, CacheStats, CacheValidity

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class TieredCache(Generic[T]):
    """Cache payloads per directory in memory with a persisted JSON tier.

    Memory is consulted first; a persisted entry is promoted into memory once it
    validates. Entries are valid while they are younger than the TTL, the directory
    fingerprint matches, and (when ``use_config_hash`` is set) the configuration
    fingerprint matches. Payloads are stored JSON-normalized, so every ``get``
    returns an independent object.
    """

    def __init__(
        self,
        namespace: str,
        *,
        root: Path,
        ttl_seconds: float,
        payload_type: Any,
        file_prefix: str = "",
        use_config_hash: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialise the cache namespace.

        Args:
            namespace: Sub-directory name and label used in logs.
            root: Root directory that holds every namespace.
            ttl_seconds: Lifetime of an entry.
            payload_type: Type used to serialize and validate payloads.
            file_prefix: Prefix applied to persisted file names.
            use_config_hash: Whether configuration fingerprints participate in validity.
            clock: Callable returning the current time in seconds.
        """
        self.namespace = namespace
        self.ttl_ms = int(ttl_seconds * 1000)
        self.file_prefix = file_prefix
        self.use_config_hash = use_config_hash
        self._directory = root.expanduser() / namespace
        self._adapter: TypeAdapter[T] = TypeAdapter(payload_type)
        self._clock = clock
        self._memory: Dict[str, CacheEntry] = {}

    @property
    def location(self) -> Path:
        """Return the directory holding persisted entries."""
        return self._directory

    def get(
        self,
        directory: str | Path,
        files: Iterable[FileDescriptor],
        config_fingerprint: Optional[str] = None,
    ) -> Optional[T]:
        """Return the cached payload for ``directory`` when it is still valid.

        Args:
            directory: Directory the payload was computed for.
            files: Current directory contents.
            config_fingerprint: Current configuration fingerprint, if relevant.

        Returns:
            Optional[T]: A fresh copy of the payload, or ``None`` on a miss.
        """
        key = directory_key(directory)
        fingerprint = directory_fingerprint(files)

        entry = self._memory.get(key)
        if entry is not None:
            if self._check(entry, fingerprint, config_fingerprint).valid:
                payload = self._decode(key, entry)
                if payload is not None:
                    LOGGER.info("Using cached %s from memory", self.namespace)
                    return payload
            self._memory.pop(key, None)

        entry = self._load(key)
        if entry is None:
            LOGGER.debug("No persisted %s entry for %s", self.namespace, directory)
            return None
        if not self._check(entry, fingerprint, config_fingerprint).valid:
            return None

        payload = self._decode(key, entry)
        if payload is None:
            return None
        self._memory[key] = entry
        LOGGER.info("Using cached %s from %s", self.namespace, self._directory)
        return payload

    def put(
        self,
        directory: str | Path,
        files: Sequence[FileDescriptor],
        value: T,
        config_fingerprint: Optional[str] = None,
    ) -> CacheEntry:
        """Store ``value`` for ``directory``.

        The memory tier is updated first; the persisted write is best-effort and
        failures are only logged.

        Args:
            directory: Directory the payload was computed for.
            files: Directory contents the payload covers.
            value: Payload to cache.
            config_fingerprint: Configuration fingerprint in effect.

        Returns:
            CacheEntry: The stored entry.
        """
        key = directory_key(directory)
        files = list(files)
        entry = CacheEntry(
            data=self._adapter.dump_python(value, mode="json"),
            directory_hash=directory_fingerprint(files),
            timestamp=self._now_ms(),
            file_count=len(files),
            config_hash=config_fingerprint,
        )
        self._memory[key] = entry
        LOGGER.info("Cached %s for %d files in memory", self.namespace, len(files))

        try:
            self._write(key, entry)
        except OSError as exc:
            LOGGER.warning("Failed to persist %s cache entry: %s", self.namespace, exc)
        return entry

    def invalidate(self, directory: str | Path | None = None) -> None:
        """Remove one directory's entries, or the whole namespace when omitted."""
        if directory is not None:
            key = directory_key(directory)
            self._memory.pop(key, None)
            self._path_for(key).unlink(missing_ok=True)
            LOGGER.info("Cleared %s cache for %s", self.namespace, directory)
            return

        self._memory.clear()
        if self._directory.exists():
            shutil.rmtree(self._directory)
        LOGGER.info("Cleared all %s caches", self.namespace)

    def sweep_expired(self) -> int:
        """Remove expired entries from both tiers.

        Persisted entries that cannot be parsed are treated as expired.

        Returns:
            int: Number of distinct keys removed.
        """
        now = self._now_ms()
        removed: set[str] = set()

        for key, entry in list(self._memory.items()):
            if now - entry.timestamp >= self.ttl_ms:
                del self._memory[key]
                removed.add(key)

        for path in self._persisted_files():
            key = self._key_from_path(path)
            entry = self._read_entry(path)
            if entry is None or now - entry.timestamp >= self.ttl_ms:
                path.unlink(missing_ok=True)
                self._memory.pop(key, None)
                removed.add(key)

        if removed:
            LOGGER.info("Removed %d expired %s entries", len(removed), self.namespace)
        return len(removed)

    def check(
        self,
        entry: CacheEntry,
        files: Iterable[FileDescriptor],
        config_fingerprint: Optional[str] = None,
    ) -> CacheValidity:
        """Evaluate each validity condition of ``entry`` against ``files``."""
        return self._check(entry, directory_fingerprint(files), config_fingerprint)

    def cached_keys(self) -> List[str]:
        """Return the keys persisted in this namespace."""
        return sorted(self._key_from_path(path) for path in self._persisted_files())

    def stats(self) -> CacheStats:
        """Return memory size, TTL, and the persisted location."""
        return CacheStats(
            namespace=self.namespace,
            memory_entries=len(self._memory),
            ttl_ms=self.ttl_ms,
            persisted_location=str(self._directory),
        )

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _check(
        self,
        entry: CacheEntry,
        fingerprint: str,
        config_fingerprint: Optional[str],
    ) -> CacheValidity:
        validity = CacheValidity(
            not_expired=(self._now_ms() - entry.timestamp) < self.ttl_ms,
            directory_unchanged=entry.directory_hash == fingerprint,
            config_unchanged=(
                entry.config_hash == config_fingerprint if self.use_config_hash else True
            ),
        )
        if not validity.valid:
            LOGGER.debug(
                "%s cache entry invalid: %s", self.namespace, ", ".join(validity.reasons())
            )
        return validity

    def _decode(self, key: str, entry: CacheEntry) -> Optional[T]:
        try:
            return self._adapter.validate_python(entry.data)
        except ValidationError as exc:
            LOGGER.warning("Discarding unreadable %s cache entry: %s", self.namespace, exc)
            self._memory.pop(key, None)
            self._path_for(key).unlink(missing_ok=True)
            return None

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{self.file_prefix}{key}.json"

    def _key_from_path(self, path: Path) -> str:
        return path.stem[len(self.file_prefix) :]

    def _persisted_files(self) -> List[Path]:
        if not self._directory.is_dir():
            return []
        return sorted(self._directory.glob(f"{self.file_prefix}*.json"))

    def _load(self, key: str) -> Optional[CacheEntry]:
        path = self._path_for(key)
        if not path.exists():
            return None
        entry = self._read_entry(path)
        if entry is None:
            path.unlink(missing_ok=True)
        return entry

    def _read_entry(self, path: Path) -> Optional[CacheEntry]:
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry.model_validate(record)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            LOGGER.warning("Corrupt %s cache file %s: %s", self.namespace, path.name, exc)
            return None

    def _write(self, key: str, entry: CacheEntry) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(key)
        staging = path.with_suffix(".json.tmp")
        staging.write_text(json.dumps(entry.to_record(), indent=2), encoding="utf-8")
        staging.replace(path)


__all__ = ["TieredCache"]
