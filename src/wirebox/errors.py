from typing import Any, Hashable, Sequence

from wirebox.domain import key_name

__all__ = [
    "RegistryError",
    "NotRegistered",
    "DuplicateRegistration",
    "InvalidKey",
    "CircularDependency",
    "ResolutionTypeError",
    "VerificationError",
]


class RegistryError(Exception):
    """Base class for misconfiguration detected by a registry."""

    pass


class NotRegistered(RegistryError, LookupError):
    """Raised when a key is resolved or removed but has no entry."""

    def __init__(self, key: Hashable):
        self.key = key
        super().__init__(f"No entry registered for {key_name(key)}")


class DuplicateRegistration(RegistryError):
    """Raised when a key that already has an entry is registered again under a fail-fast policy."""

    def __init__(self, key: Hashable):
        self.key = key
        super().__init__(f"An entry is already registered for {key_name(key)}")


class InvalidKey(RegistryError, TypeError):
    """Raised when a key is None or cannot be hashed."""

    pass


class CircularDependency(RegistryError):
    """Raised when resolving a key requires resolving that same key again."""

    def __init__(self, chain: Sequence[Hashable]):
        self.chain = list(chain)
        super().__init__(
            "Circular dependency: " + " -> ".join(key_name(k) for k in self.chain)
        )


class ResolutionTypeError(RegistryError, TypeError):
    """Raised when a registered or resolved object is not an instance of the class it is keyed by."""

    def __init__(self, key: type, instance: Any):
        self.key = key
        self.instance = instance
        super().__init__(
            f"Entry for {key_name(key)} resolved to {type(instance).__name__}, "
            f"which is not an instance of it"
        )


class VerificationError(RegistryError):
    """Raised by a verification pass, reporting every missing key at once."""

    def __init__(self, missing: Sequence[Hashable]):
        self.missing = list(missing)
        super().__init__(
            f"Missing registrations: {', '.join(key_name(k) for k in self.missing)}"
        )
