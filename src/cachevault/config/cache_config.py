"""Read-only cache config file.

``cache_config.json`` sits next to the cache file and holds a flat JSON
object of host-defined numbers (typically ttls). It is loaded once and
never written by CacheVault.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import orjson

from cachevault.shared.errors import ErrorCode, create_config_error

logger = logging.getLogger(__name__)


class CacheConfig:
    """Lookup helper over a JSON object file.

    Args:
        path: Location of the config file. A missing, unreadable or
            malformed file is treated as an empty map.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._values = self._read(self.path)

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            data = orjson.loads(path.read_bytes() or b"{}")
        except OSError as e:
            logger.warning("Could not read cache config %s: %s", path, e)
            return {}
        except orjson.JSONDecodeError as e:
            logger.warning("Malformed cache config %s: %s", path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning(
                "Cache config %s must hold a JSON object, got %s",
                path,
                type(data).__name__,
            )
            return {}
        return data

    def reload(self) -> None:
        """Re-read the config file from disk."""
        self._values = self._read(self.path)

    def as_dict(self) -> dict[str, Any]:
        """Return a copy of the whole config map."""
        return dict(self._values)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def get_long(self, name: str, default: int | None = None) -> int:
        """Return an integer config value.

        Args:
            name: Config key
            default: Returned when the key is missing

        Returns:
            The value as int

        Raises:
            ApplicationError: If the key is missing and no default is given
                (CONFIG_MISSING), or the value is not an integer (CONFIG_INVALID)
        """
        if name not in self._values:
            if default is not None:
                return default
            raise create_config_error(
                f"Config value '{name}' not found in {self.path}",
                config_key=name,
                code=ErrorCode.CONFIG_MISSING,
                operation="get_long",
            )

        value = self._values[name]
        if isinstance(value, bool):
            raise create_config_error(
                f"Config value '{name}' is a boolean, expected an integer",
                config_key=name,
                code=ErrorCode.CONFIG_INVALID,
                operation="get_long",
            )
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError as e:
                raise create_config_error(
                    f"Config value '{name}' is not an integer: {value!r}",
                    config_key=name,
                    code=ErrorCode.CONFIG_INVALID,
                    operation="get_long",
                    original_error=e,
                ) from e
        raise create_config_error(
            f"Config value '{name}' is not an integer: {value!r}",
            config_key=name,
            code=ErrorCode.CONFIG_INVALID,
            operation="get_long",
        )
