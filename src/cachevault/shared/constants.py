"""Cache-related constants."""

from __future__ import annotations


class Cache:
    """Cache configuration constants."""

    NEVER_EXPIRE = -1  # ttl sentinel, milliseconds

    FILE_NAME = "cache.json"
    CONFIG_FILE_NAME = "cache_config.json"
    DEFAULT_DIRECTORY = "cache"

    EMPTY_FILE_CONTENT = b"[]"
    CORRUPTED_SUFFIX = "corrupted"
    TEMP_PREFIX = ".cache-"


class PersistedFields:
    """Field names of a persisted cache record."""

    KEY = "key"
    VALUE = "value"
    INSERTED_AT = "insertAt"
    TTL = "exp"

    # Older cache files wrote the insertion timestamp under this name
    LEGACY_INSERTED_AT = "insert"


class Logging:
    """Logging configuration constants."""

    LOGGER_NAME = "cachevault"
    DEFAULT_LEVEL = "INFO"
    TIME_FORMAT = "[%H:%M:%S]"


class Encoding:
    """Text encoding constants."""

    DEFAULT = "utf-8"


__all__ = ["Cache", "Encoding", "Logging", "PersistedFields"]
