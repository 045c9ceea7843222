"""Cacheable declarations and the scanner that seeds a store with them.

Hosts declare values that should always be present in the cache, either as
class (or module) attributes wrapped in :class:`Cacheable`::

    class Defaults:
        retry_limit = Cacheable(10, key="retry_limit", expiration=100_000)
        banner = Cacheable("hello world")
        feed = Cacheable(factory=load_feed, expiration=timedelta(minutes=5))

or through an explicit :class:`DeclarationRegistry`. On every ``load()`` the
store runs a :class:`DeclarationScanner` over its declaration source.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Protocol

from cachevault.config.settings import DeclarationPolicy
from cachevault.core.expiration import NEVER_EXPIRE, TTL, to_millis
from cachevault.shared.errors import (
    DeclarationAccessError,
    ErrorContext,
    create_validation_error,
)
from cachevault.shared.logging import log_operation_error

if TYPE_CHECKING:
    from cachevault.services.store import CacheStore

logger = logging.getLogger(__name__)

_MISSING: Any = object()


@dataclass(frozen=True)
class Cacheable:
    """Marks an attribute value as cacheable.

    Attributes:
        value: The value to cache (ignored when ``factory`` is set).
        key: Cache key; the attribute name is used when empty.
        expiration: ttl in milliseconds or timedelta, never by default.
        factory: Zero-argument callable producing the value at scan time.
    """

    value: Any = None
    key: str = ""
    expiration: TTL = NEVER_EXPIRE
    factory: Callable[[], Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "expiration", to_millis(self.expiration))

    def read(self) -> Any:
        if self.factory is not None:
            return self.factory()
        return self.value


@dataclass(frozen=True)
class Declaration:
    """A named value to register in the cache at load time."""

    name: str
    reader: Callable[[], Any]
    key: str = ""
    expiration: TTL = NEVER_EXPIRE

    def __post_init__(self) -> None:
        if not self.name:
            raise create_validation_error(
                "Declaration name must be non-empty",
                field="name",
                operation="create_declaration",
            )
        object.__setattr__(self, "expiration", to_millis(self.expiration))

    @property
    def cache_key(self) -> str:
        """The explicit key, falling back to the declaration name."""
        return self.key or self.name

    def read(self) -> Any:
        """Return the current value of the declaration.

        Raises:
            DeclarationAccessError: If the value cannot be read.
        """
        try:
            return self.reader()
        except Exception as e:
            # Boundary: host code may raise anything while producing a value
            raise DeclarationAccessError(
                f"Failed to read declaration '{self.name}': {e!s}",
                declaration_name=self.name,
                context=ErrorContext(
                    operation="read_declaration",
                    additional_data={"name": self.name, "key": self.cache_key},
                ),
                original_error=e,
            ) from e


class DeclarationSource(Protocol):
    """Anything that can enumerate cacheable declarations."""

    def declarations(self) -> Iterable[Declaration]:
        """Return the declarations to register, in registration order."""


class ClassDeclarationSource:
    """Declarations taken from :class:`Cacheable` attributes of an owner.

    For a class, public attributes along the MRO are scanned with subclass
    attributes overriding base ones. For any other object (a module, an
    instance) its ``vars()`` are scanned.
    """

    def __init__(self, owner: Any) -> None:
        self.owner = owner

    def _attributes(self) -> dict[str, Any]:
        if inspect.isclass(self.owner):
            attributes: dict[str, Any] = {}
            for klass in reversed(self.owner.__mro__):
                attributes.update(vars(klass))
            return attributes
        return dict(vars(self.owner))

    def _reader(self, name: str) -> Callable[[], Any]:
        def read() -> Any:
            marker = inspect.getattr_static(self.owner, name)
            if not isinstance(marker, Cacheable):
                msg = f"attribute '{name}' is no longer cacheable"
                raise TypeError(msg)
            return marker.read()

        return read

    def declarations(self) -> Iterator[Declaration]:
        for name, attribute in self._attributes().items():
            if name.startswith("_") or not isinstance(attribute, Cacheable):
                continue
            yield Declaration(
                name=name,
                reader=self._reader(name),
                key=attribute.key,
                expiration=attribute.expiration,
            )


class DeclarationRegistry:
    """Explicit registration table of cacheable declarations."""

    def __init__(self) -> None:
        self._declarations: dict[str, Declaration] = {}

    def register(
        self,
        name: str,
        value: Any = _MISSING,
        *,
        factory: Callable[[], Any] | None = None,
        key: str = "",
        expiration: TTL = NEVER_EXPIRE,
    ) -> Declaration:
        """Register a declaration by value or by factory.

        Raises:
            DomainError: If the name is already registered, or neither or
                both of ``value`` and ``factory`` are given.
        """
        if name in self._declarations:
            raise create_validation_error(
                f"Declaration '{name}' is already registered",
                field="name",
                operation="register_declaration",
            )
        if (value is _MISSING) == (factory is None):
            raise create_validation_error(
                f"Declaration '{name}' needs exactly one of value or factory",
                field="value",
                operation="register_declaration",
            )

        if factory is None:
            captured = value
            factory = lambda: captured  # noqa: E731

        declaration = Declaration(name=name, reader=factory, key=key, expiration=expiration)
        self._declarations[name] = declaration
        return declaration

    def cacheable(
        self,
        key: str = "",
        expiration: TTL = NEVER_EXPIRE,
    ) -> Callable[[Callable[[], Any]], Callable[[], Any]]:
        """Decorator registering a zero-argument function as a factory.

        Example:
            >>> registry = DeclarationRegistry()
            >>> @registry.cacheable(key="motd", expiration=60_000)
            ... def message_of_the_day():
            ...     return "hello"
        """

        def decorator(func: Callable[[], Any]) -> Callable[[], Any]:
            self.register(func.__name__, factory=func, key=key, expiration=expiration)
            return func

        return decorator

    def unregister(self, name: str) -> bool:
        return self._declarations.pop(name, None) is not None

    def __len__(self) -> int:
        return len(self._declarations)

    def __contains__(self, name: object) -> bool:
        return name in self._declarations

    def declarations(self) -> list[Declaration]:
        return list(self._declarations.values())


@dataclass
class ScanResult:
    """Outcome of one declaration scan."""

    declared: list[str] = field(default_factory=list)
    preserved: list[str] = field(default_factory=list)
    errors: list[DeclarationAccessError] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.errors)


class DeclarationScanner:
    """Registers every declaration of a source into a cache store.

    Args:
        policy: ``OVERWRITE`` replaces any existing entry under a declared
            key; ``PRESERVE`` leaves a live existing entry untouched.
    """

    def __init__(self, policy: DeclarationPolicy = DeclarationPolicy.OVERWRITE) -> None:
        self.policy = policy

    def scan(self, source: DeclarationSource, store: CacheStore) -> ScanResult:
        result = ScanResult()

        for declaration in source.declarations():
            key = declaration.cache_key

            if self.policy is DeclarationPolicy.PRESERVE and store.contains(key):
                logger.debug("Keeping persisted value for declared key '%s'", key)
                result.preserved.append(key)
                continue

            try:
                value = declaration.read()
            except DeclarationAccessError as e:
                log_operation_error(logger=logger, error=e, operation="scan_declarations")
                result.errors.append(e)
                continue

            store.cache_object(key, value, declaration.expiration)
            result.declared.append(key)

        logger.debug(
            "Declaration scan finished: %d declared, %d preserved, %d skipped",
            len(result.declared),
            len(result.preserved),
            result.skipped,
        )
        return result
