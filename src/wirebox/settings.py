"""Registry configuration, optionally loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from wirebox.domain import DuplicatePolicy

__all__ = ["RegistrySettings"]

_TRUTHY = ("1", "true", "yes")


@dataclass(frozen=True)
class RegistrySettings:
    """Behaviour switches for a registry.

    Attributes:
        on_duplicate: What ``register`` does when the key already has an entry.
        check_types: Whether ``resolve`` checks that objects keyed by a class are
            instances of that class.
    """

    on_duplicate: DuplicatePolicy = DuplicatePolicy.OVERWRITE
    check_types: bool = True

    @classmethod
    def from_env(cls) -> RegistrySettings:
        """Load settings from environment variables.

        ``WIREBOX_ON_DUPLICATE`` selects the duplicate policy (``overwrite`` or
        ``fail``) and ``WIREBOX_CHECK_TYPES`` toggles type checking.

        Returns:
            RegistrySettings instance

        Raises:
            ValueError: If ``WIREBOX_ON_DUPLICATE`` names an unknown policy.
        """
        on_duplicate = cls.on_duplicate
        if policy := os.environ.get("WIREBOX_ON_DUPLICATE"):
            on_duplicate = DuplicatePolicy(policy.strip().lower())

        check_types = cls.check_types
        if flag := os.environ.get("WIREBOX_CHECK_TYPES"):
            check_types = flag.strip().lower() in _TRUTHY

        return cls(on_duplicate=on_duplicate, check_types=check_types)
