"""JSON persistence for cache stores.

The whole live cache set is stored in one file as a JSON array of records::

    [{"key": "greeting", "value": "hi", "insertAt": 1700000000000, "exp": 100}]

``exp`` is the ttl in milliseconds, ``-1`` meaning "never expires". Files are
read and written whole; a file that fails to parse yields no records at all.
orjson is used for both directions.
"""

from __future__ import annotations

import logging
import math
import os
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from cachevault.core.expiration import NEVER_EXPIRE, ExpirationRecord
from cachevault.shared.constants import Cache, PersistedFields
from cachevault.shared.errors import (
    DomainError,
    ErrorCode,
    ErrorContext,
    create_cache_read_error,
    create_cache_write_error,
)
from cachevault.shared.logging import log_operation_success

logger = logging.getLogger(__name__)


class PersistedRecord(BaseModel):
    """One cache entry as stored on disk.

    Attributes:
        key: Cache key.
        value: Any JSON-representable value.
        inserted_at: Epoch milliseconds of insertion (``insertAt`` on disk;
            older files used ``insert``).
        ttl: Lifetime in milliseconds (``exp`` on disk), ``-1`` for never.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "key": "greeting",
                "value": "hi",
                "insertAt": 1700000000000,
                "exp": 100,
            },
        },
    )

    key: str = Field(..., min_length=1, description="Cache key")
    value: Any = Field(default=None, description="Cached value")
    inserted_at: int = Field(
        ...,
        validation_alias=AliasChoices(
            PersistedFields.INSERTED_AT,
            PersistedFields.LEGACY_INSERTED_AT,
            "inserted_at",
        ),
        serialization_alias=PersistedFields.INSERTED_AT,
        description="Insertion time in epoch milliseconds",
    )
    ttl: int = Field(
        default=NEVER_EXPIRE,
        validation_alias=AliasChoices(PersistedFields.TTL, "ttl"),
        serialization_alias=PersistedFields.TTL,
        description="Time-to-live in milliseconds, -1 for never",
    )

    @field_validator("ttl")
    @classmethod
    def _check_ttl(cls, value: int) -> int:
        if value < 0 and value != NEVER_EXPIRE:
            msg = f"ttl must be non-negative or {NEVER_EXPIRE}, got {value}"
            raise ValueError(msg)
        return value

    @classmethod
    def from_entry(cls, key: str, value: Any, record: ExpirationRecord) -> PersistedRecord:
        return cls(key=key, value=value, inserted_at=record.inserted_at, ttl=record.ttl)

    @property
    def expiration(self) -> ExpirationRecord:
        return ExpirationRecord(inserted_at=self.inserted_at, ttl=self.ttl)

    def to_json_dict(self) -> dict[str, Any]:
        return {
            PersistedFields.KEY: self.key,
            PersistedFields.VALUE: self.value,
            PersistedFields.INSERTED_AT: self.inserted_at,
            PersistedFields.TTL: self.ttl,
        }


class JsonCacheCodec:
    """Reads and writes persisted records to a single JSON file.

    Args:
        atomic_writes: Write to a temporary file in the same directory and
            move it over the target, so readers never see a partial file.
        pretty: Indent the JSON output.
    """

    def __init__(self, *, atomic_writes: bool = True, pretty: bool = False) -> None:
        self.atomic_writes = atomic_writes
        self.pretty = pretty

    def ensure_exists(self, path: Path) -> bool:
        """Create ``path`` holding an empty array if it does not exist.

        Returns:
            True if the file was created.

        Raises:
            InfrastructureError: If the file cannot be created.
        """
        if path.exists():
            return False
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(Cache.EMPTY_FILE_CONTENT)
        except OSError as e:
            raise create_cache_write_error(
                str(path),
                operation="ensure_cache_file",
                original_error=e,
            ) from e
        logger.debug("Created empty cache file %s", path)
        return True

    def read(self, path: Path) -> list[PersistedRecord]:
        """Read all records from ``path``.

        Returns:
            Records in file order; empty if the file is missing or empty.

        Raises:
            InfrastructureError: If the file exists but cannot be read.
            DomainError: If the content is not a valid record array. The
                corrupted file is moved aside first.
        """
        if not path.exists():
            return []

        try:
            raw = path.read_bytes()
        except OSError as e:
            raise create_cache_read_error(
                str(path),
                operation="cache_read",
                original_error=e,
            ) from e

        if not raw.strip():
            return []

        try:
            data = orjson.loads(raw)
            if not isinstance(data, list):
                msg = f"expected a JSON array, got {type(data).__name__}"
                raise TypeError(msg)
            records = [PersistedRecord.model_validate(item) for item in data]
        except (orjson.JSONDecodeError, ValidationError, TypeError) as e:
            raise self._handle_corrupted_file(path, e) from e

        log_operation_success(
            logger=logger,
            operation="cache_read",
            duration_ms=0,
            result_info={"records": len(records)},
            context={"file_path": str(path)},
        )
        return records

    def write(self, path: Path, records: Iterable[PersistedRecord]) -> int:
        """Replace the contents of ``path`` with ``records``.

        Returns:
            Number of records written.

        Raises:
            DomainError: If a value cannot be represented as JSON, including
                NaN and infinite floats.
            InfrastructureError: If the file cannot be written.
        """
        payload = [record.to_json_dict() for record in records]
        option = orjson.OPT_INDENT_2 if self.pretty else 0

        bad_key = next((item["key"] for item in payload if _has_non_finite(item["value"])), None)
        if bad_key is not None:
            raise DomainError(
                code=ErrorCode.CACHE_SERIALIZATION_ERROR,
                message=f"Value for key '{bad_key}' contains NaN or Infinity",
                context=ErrorContext(
                    file_path=str(path),
                    operation="cache_write",
                    additional_data={"key": bad_key},
                ),
            )

        try:
            data = orjson.dumps(payload, option=option)
        except orjson.JSONEncodeError as e:
            raise DomainError(
                code=ErrorCode.CACHE_SERIALIZATION_ERROR,
                message=f"Failed to serialize cache records: {e!s}",
                context=ErrorContext(
                    file_path=str(path),
                    operation="cache_write",
                    additional_data={"records": len(payload), "json_error": str(e)},
                ),
                original_error=e,
            ) from e

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if self.atomic_writes:
                self._write_atomic(path, data)
            else:
                with open(path, "wb") as f:
                    f.write(data)
        except OSError as e:
            raise create_cache_write_error(
                str(path),
                operation="cache_write",
                original_error=e,
            ) from e

        log_operation_success(
            logger=logger,
            operation="cache_write",
            duration_ms=0,
            result_info={"records": len(payload), "bytes": len(data)},
            context={"file_path": str(path)},
        )
        return len(payload)

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        mode = _target_mode(path)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=Cache.TEMP_PREFIX, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _handle_corrupted_file(self, path: Path, parse_error: Exception) -> DomainError:
        """Move a corrupted cache file aside and build the matching error."""
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        backup_path = path.with_suffix(f".{Cache.CORRUPTED_SUFFIX}.{timestamp}.json")
        backup: str | None = None

        try:
            path.rename(backup_path)
            backup = str(backup_path)
            logger.warning(
                "Cache file %s is corrupted, backed up to %s: %s",
                path,
                backup_path,
                parse_error,
            )
        except OSError:
            logger.exception("Failed to back up corrupted cache file %s", path)

        return DomainError(
            code=ErrorCode.CACHE_CORRUPTED,
            message=f"Cache file {path} is corrupted: {parse_error!s}",
            context=ErrorContext(
                file_path=str(path),
                operation="cache_read",
                additional_data={
                    "backup_path": backup or "",
                    "parse_error": type(parse_error).__name__,
                },
            ),
            original_error=parse_error,
        )


def _has_non_finite(value: Any) -> bool:
    """Return True if ``value`` holds a NaN or infinite float at any depth."""
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, dict):
        return any(_has_non_finite(item) for item in value.values())
    if isinstance(value, (list, tuple)):
        return any(_has_non_finite(item) for item in value)
    return False


def _target_mode(path: Path) -> int:
    """Permission bits for a replacement of ``path``.

    An existing file keeps its mode; a new one gets the mode a plain
    ``open(path, "w")`` would give it under the current umask.
    """
    try:
        return path.stat().st_mode & 0o777
    except FileNotFoundError:
        pass
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask
