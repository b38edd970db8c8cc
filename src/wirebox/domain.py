"""Domain models used throughout the registry."""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable

__all__ = [
    "CapabilityKey",
    "Lifecycle",
    "DuplicatePolicy",
    "Dependency",
    "Entry",
    "key_name",
]


CapabilityKey = Hashable
"""Type alias for keys identifying a capability in a registry.

A key is usually the abstract class (or protocol) consumers depend on, but any
hashable value other than None is accepted.

Example:
    >>> registry.resolve(Logger)       # Lookup by interface
    >>> registry.resolve("clock")      # Lookup by token
"""


class Lifecycle(Enum):
    """How an entry produces the object handed out by ``resolve``."""

    INSTANCE = "instance"
    """A pre-built object, returned as-is."""

    LAZY = "lazy"
    """A factory invoked on first resolution; the result is cached."""

    TRANSIENT = "transient"
    """A factory invoked on every resolution."""


class DuplicatePolicy(Enum):
    """What ``register`` does when the key already has an entry."""

    OVERWRITE = "overwrite"
    FAIL = "fail"


@dataclass(frozen=True)
class Dependency:
    """Represents a factory parameter filled from the registry.

    Attributes:
        parameter_name: The parameter name in the factory's signature.
        key: The key resolved to supply the parameter.
        has_default: Whether the parameter may fall back to its default when
            the key has no entry.
    """

    parameter_name: str
    key: CapabilityKey
    has_default: bool = False


@dataclass(frozen=True)
class Entry:
    """
    Represents a registration held by a registry.

    Attributes:
        key: The key the entry is registered under.
        lifecycle: How the provider is turned into a resolved object.
        provider: The instance itself for ``Lifecycle.INSTANCE``, otherwise the factory.
        dependencies: Parameters the registry supplies when invoking the factory.
        name: Display name of the key, used in logs and error messages.
    """

    key: CapabilityKey
    lifecycle: Lifecycle
    provider: Any
    dependencies: tuple[Dependency, ...] = field(default_factory=tuple)
    name: str = ""

    @property
    def is_factory(self) -> bool:
        return self.lifecycle is not Lifecycle.INSTANCE


def key_name(key: Any) -> str:
    """Derive a display name for a key.

    Args:
        key: The key to name.

    Returns:
        ``module.QualName`` for classes, the string itself for strings, and
        ``repr`` of anything else.

    Example:
        >>> key_name(Logger)      # Returns "app.logging.Logger"
        >>> key_name("clock")     # Returns "clock"
    """
    if inspect.isclass(key):
        if key.__module__ == "builtins":
            return key.__qualname__
        return f"{key.__module__}.{key.__qualname__}"
    if isinstance(key, str):
        return key
    return repr(key)
