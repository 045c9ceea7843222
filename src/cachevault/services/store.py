"""File-backed expiring key/value store.

:class:`CacheStore` keeps cached values and their expiration records in two
dictionaries that always hold the same keys. Expiration is lazy: an expired
entry is evicted when it is read, or when :meth:`CacheStore.purge_expired`
sweeps the store (which :meth:`CacheStore.flush` always does first).

Typical use::

    store = CacheStore("cache", ClassDeclarationSource(Defaults))
    store.load()
    store.cache_object("greeting", "hi", ttl=100)
    store.get("greeting")
    store.flush()
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cachevault.config.cache_config import CacheConfig
from cachevault.config.settings import CacheSettings, load_settings
from cachevault.core.expiration import NEVER_EXPIRE, TTL, Clock, ExpirationRecord, current_millis
from cachevault.core.statistics import CacheStatistics
from cachevault.services.codec import JsonCacheCodec, PersistedRecord
from cachevault.services.declarations import (
    DeclarationScanner,
    DeclarationSource,
)
from cachevault.shared.errors import (
    CacheVaultError,
    DeclarationAccessError,
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    create_validation_error,
)
from cachevault.shared.logging import (
    log_operation_error,
    log_operation_start,
    log_operation_success,
)

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Outcome of :meth:`CacheStore.load`."""

    path: Path
    loaded: int = 0
    expired_dropped: int = 0
    declared: int = 0
    preserved: int = 0
    skipped_declarations: list[DeclarationAccessError] = field(default_factory=list)
    error: CacheVaultError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FlushResult:
    """Outcome of :meth:`CacheStore.flush`."""

    path: Path
    written: int = 0
    purged: int = 0
    error: CacheVaultError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CacheStore:
    """In-process expiring cache persisted to a single JSON file.

    All operations are synchronous. A reentrant lock guards both internal
    maps, so readers on other threads never see a key in one map but not
    the other, and :meth:`get_or_insert` is atomic.

    Args:
        cache_dir: Directory for ``cache.json`` and ``cache_config.json``.
            Defaults to ``settings.directory``.
        declaration_source: Declarations (re-)registered on every load.
        settings: Cache settings. When omitted they are read from the
            ``CACHEVAULT_CACHE__*`` environment variables.
        codec: Persistence codec; built from the settings when omitted.
        clock: Returns the current time in epoch milliseconds.
        statistics: Collector for hit/miss counters.

    Raises:
        InfrastructureError: If the cache directory cannot be created.
        ApplicationError: If settings are read from an invalid environment.
    """

    def __init__(
        self,
        cache_dir: Path | str | None = None,
        declaration_source: DeclarationSource | None = None,
        *,
        settings: CacheSettings | None = None,
        codec: JsonCacheCodec | None = None,
        clock: Clock | None = None,
        statistics: CacheStatistics | None = None,
    ) -> None:
        self.settings = settings if settings is not None else load_settings().cache
        self.cache_dir = Path(cache_dir) if cache_dir is not None else self.settings.directory
        self.declaration_source = declaration_source
        self.statistics = statistics or CacheStatistics()

        self._codec = codec or JsonCacheCodec(
            atomic_writes=self.settings.atomic_writes,
            pretty=self.settings.pretty_json,
        )
        self._clock: Clock = clock or current_millis
        self._lock = threading.RLock()
        self._values: dict[str, Any] = {}
        self._records: dict[str, ExpirationRecord] = {}

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            error = InfrastructureError(
                code=ErrorCode.DIRECTORY_CREATION_FAILED,
                message=f"Failed to create cache directory: {self.cache_dir}",
                context=ErrorContext(file_path=str(self.cache_dir), operation="initialize_cache"),
                original_error=e,
            )
            log_operation_error(logger=logger, error=error)
            raise error from e

        self.cache_file = self.cache_dir / self.settings.cache_file_name
        self.config = CacheConfig(self.cache_dir / self.settings.config_file_name)

        logger.debug("Initialized CacheStore at %s", self.cache_file)

    # ------------------------------------------------------------------ #
    # Entry operations
    # ------------------------------------------------------------------ #
    def cache_object(
        self,
        key: str,
        value: Any,
        ttl: TTL = None,
        *,
        record: ExpirationRecord | None = None,
    ) -> None:
        """Store ``value`` under ``key``, replacing any existing entry.

        Args:
            key: Non-empty cache key.
            value: JSON-representable value.
            ttl: Milliseconds (or timedelta) until expiry. ``None`` uses the
                configured default, which is "never" unless changed.
            record: Expiration record to store verbatim, keeping its
                original insertion time. Mutually exclusive with ``ttl``.

        Raises:
            DomainError: If the key is empty, the ttl is negative, or both
                ``ttl`` and ``record`` are given.
        """
        self._check_key(key)
        if record is not None and ttl is not None:
            raise create_validation_error(
                "Pass either ttl or record, not both",
                field="ttl",
                operation="cache_object",
            )
        if record is None:
            record = ExpirationRecord.now(
                self.settings.default_ttl_ms if ttl is None else ttl,
                self._clock,
            )

        with self._lock:
            self._values[key] = value
            self._records[key] = record
            self.statistics.record_write(key)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key``, or ``default``.

        An expired entry is evicted by this call.
        """
        with self._lock:
            found, value = self._lookup(key)
            if found:
                self.statistics.record_hit(key)
                return value
            self.statistics.record_miss(key)
            return default

    def contains(self, key: str) -> bool:
        """Return True if ``key`` holds a live value.

        Expiration is honoured exactly as in :meth:`get`: an expired entry
        is evicted and reported as absent.
        """
        found, _ = self._lookup(key)
        return found

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.contains(key)

    def get_or_insert(self, key: str, default_value: Any, ttl: TTL = None) -> Any:
        """Return the live value for ``key``, storing ``default_value`` if absent."""
        with self._lock:
            found, value = self._lookup(key)
            if found:
                self.statistics.record_hit(key)
                return value
            self.statistics.record_miss(key)
            self.cache_object(key, default_value, ttl)
            return default_value

    def remove(self, key: str) -> bool:
        """Remove ``key`` from the store. Returns True if it was present."""
        with self._lock:
            removed = self._evict(key)
            if removed:
                self.statistics.record_removal(key)
        return removed

    def clear(self) -> int:
        """Remove every entry. Returns the number of entries removed."""
        with self._lock:
            count = len(self._values)
            self._values.clear()
            self._records.clear()
        logger.debug("Cleared %d cache entries", count)
        return count

    def purge_expired(self) -> int:
        """Evict every expired entry.

        A key without an expiration record is treated as expired.

        Returns:
            Number of entries evicted.
        """
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key in set(self._values) | set(self._records)
                if key not in self._records or self._records[key].is_expired(now)
            ]
            for key in expired:
                self._evict(key)
                self.statistics.record_expired(key)

        if expired:
            logger.info("Purged %d expired cache entries", len(expired))
        return len(expired)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #
    def record_for(self, key: str) -> ExpirationRecord | None:
        """Return the stored expiration record for ``key`` without evicting."""
        with self._lock:
            return self._records.get(key)

    def remaining_ttl(self, key: str) -> int | None:
        """Milliseconds until ``key`` expires.

        Returns:
            ``NEVER_EXPIRE`` for a never-expiring entry, or None if the key
            is absent or expired (an expired entry is evicted).
        """
        with self._lock:
            found, _ = self._lookup(key)
            if not found:
                return None
            remaining = self._records[key].remaining(self._clock())
        return NEVER_EXPIRE if remaining is None else remaining

    def keys(self) -> list[str]:
        """Return the keys of all live entries."""
        now = self._clock()
        with self._lock:
            return [key for key, record in self._records.items() if not record.is_expired(now)]

    def snapshot(self) -> dict[str, Any]:
        """Return a copy of all live key/value pairs."""
        now = self._clock()
        with self._lock:
            return {
                key: self._values[key]
                for key, record in self._records.items()
                if not record.is_expired(now)
            }

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet evicted."""
        with self._lock:
            return len(self._values)

    def get_from_config(self, name: str, default: int | None = None) -> int:
        """Shortcut for ``self.config.get_long(name, default)``."""
        return self.config.get_long(name, default)

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #
    def load(self) -> LoadResult:
        """Load persisted entries, then apply declarations.

        Expired persisted entries are dropped. Persisted entries keep their
        original insertion time. Declarations run afterwards and, under the
        default policy, replace persisted values with the same key.

        Returns:
            LoadResult. Read failures are reported in ``error`` (and raised
            when ``settings.strict`` is set); the store then starts empty of
            persisted data.
        """
        started = time.perf_counter()
        log_operation_start(logger, "cache_load", {"file_path": str(self.cache_file)})
        result = LoadResult(path=self.cache_file)

        with self._lock:
            try:
                self._codec.ensure_exists(self.cache_file)
                records = self._codec.read(self.cache_file)
            except CacheVaultError as e:
                records = []
                result.error = e
                self._handle_failure(e, "cache_load")

            now = self._clock()
            for persisted in records:
                expiration = persisted.expiration
                if expiration.is_expired(now):
                    result.expired_dropped += 1
                    continue
                self.cache_object(persisted.key, persisted.value, record=expiration)
                result.loaded += 1

            if self.declaration_source is not None:
                scanner = DeclarationScanner(self.settings.declaration_policy)
                scan = scanner.scan(self.declaration_source, self)
                result.declared = len(scan.declared)
                result.preserved = len(scan.preserved)
                result.skipped_declarations = scan.errors

            self.statistics.record_load()

        log_operation_success(
            logger=logger,
            operation="cache_load",
            duration_ms=(time.perf_counter() - started) * 1000,
            result_info={
                "loaded": result.loaded,
                "expired_dropped": result.expired_dropped,
                "declared": result.declared,
                "skipped_declarations": len(result.skipped_declarations),
            },
            context={"file_path": str(self.cache_file)},
        )
        return result

    def flush(self) -> FlushResult:
        """Purge expired entries and write the live set to the cache file.

        Returns:
            FlushResult. Write failures are reported in ``error`` (and
            raised when ``settings.strict`` is set); in-memory state is
            never changed by a failed write.
        """
        started = time.perf_counter()
        log_operation_start(logger, "cache_flush", {"file_path": str(self.cache_file)})
        result = FlushResult(path=self.cache_file)

        with self._lock:
            result.purged = self.purge_expired()
            records = [
                PersistedRecord.from_entry(key, value, self._records[key])
                for key, value in self._values.items()
            ]
            try:
                result.written = self._codec.write(self.cache_file, records)
            except CacheVaultError as e:
                result.error = e
                self._handle_failure(e, "cache_flush")

            self.statistics.record_flush()

        log_operation_success(
            logger=logger,
            operation="cache_flush",
            duration_ms=(time.perf_counter() - started) * 1000,
            result_info={"written": result.written, "purged": result.purged},
            context={"file_path": str(self.cache_file)},
        )
        return result

    def __enter__(self) -> CacheStore:
        self.load()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.flush()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    def _lookup(self, key: str) -> tuple[bool, Any]:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return False, None
            if record.is_expired(self._clock()):
                self._evict(key)
                self.statistics.record_expired(key)
                return False, None
            return True, self._values[key]

    def _evict(self, key: str) -> bool:
        present = key in self._values or key in self._records
        self._values.pop(key, None)
        self._records.pop(key, None)
        return present

    def _handle_failure(self, error: CacheVaultError, operation: str) -> None:
        log_operation_error(logger=logger, error=error, operation=operation)
        if self.settings.strict:
            raise error

    @staticmethod
    def _check_key(key: str) -> None:
        if not isinstance(key, str) or not key:
            raise create_validation_error(
                f"Cache key must be a non-empty string, got {key!r}",
                field="key",
                operation="cache_object",
            )
