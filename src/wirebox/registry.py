"""Registration and resolution of shared objects keyed by capability."""

import inspect
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar, overload

from wirebox.domain import (
    CapabilityKey,
    DuplicatePolicy,
    Entry,
    Lifecycle,
    key_name,
)
from wirebox.errors import (
    CircularDependency,
    DuplicateRegistration,
    InvalidKey,
    NotRegistered,
    RegistryError,
    ResolutionTypeError,
    VerificationError,
)
from wirebox.logging import get_logger
from wirebox.providers import make_provider_entry
from wirebox.settings import RegistrySettings

__all__ = [
    "Registry",
    "default_registry",
    "reset_default_registry",
]

T = TypeVar("T")

_log = get_logger(__name__)


class Registry:
    """Thread-safe store mapping capability keys to instances or factories.

    A registry knows nothing about the objects it holds: keys and values are
    opaque, so every module can import it without becoming coupled to the
    others. The composition root registers implementations once at startup and
    feature code resolves only the keys it needs.

    Registries may be layered: a child created with :meth:`scope` resolves
    from its parent when it has no entry of its own, while the parent never
    sees the child's entries.

    Example:
        >>> registry = Registry()
        >>> registry.register_instance(Logger, ConsoleLogger())
        >>>
        >>> @registry.provides()
        >>> def make_service(logger: Logger) -> Service:
        ...     return Service(logger)
        >>>
        >>> registry.verify()
        >>> service = registry.resolve(Service)
    """

    def __init__(
        self,
        settings: Optional[RegistrySettings] = None,
        parent: Optional["Registry"] = None,
    ):
        self.settings = settings or RegistrySettings()
        self._parent = parent
        self._entries: dict[CapabilityKey, Entry] = {}
        self._instances: dict[CapabilityKey, tuple[Entry, Any]] = {}
        self._lock = threading.RLock()
        self._local = threading.local()

    @property
    def parent(self) -> Optional["Registry"]:
        return self._parent

    def register(
        self, key: CapabilityKey, entry: Any, lifecycle: Lifecycle = Lifecycle.INSTANCE
    ) -> None:
        """Register an instance or a zero-argument factory under a key.

        Args:
            key: The capability key, usually the interface class.
            entry: The instance for ``Lifecycle.INSTANCE``, otherwise a factory.
            lifecycle: How ``entry`` is turned into the resolved object.

        Raises:
            InvalidKey: If the key is None or unhashable.
            DuplicateRegistration: If the key is taken and the registry's policy
                is ``DuplicatePolicy.FAIL``.
            RegistryError: If a factory is not callable.
        """
        self._store(_make_entry(key, entry, lifecycle), once=False)

    def register_once(
        self, key: CapabilityKey, entry: Any, lifecycle: Lifecycle = Lifecycle.INSTANCE
    ) -> None:
        """Register like :meth:`register`, but always fail if the key is taken.

        Raises:
            DuplicateRegistration: If the key already has an entry in this registry.
        """
        self._store(_make_entry(key, entry, lifecycle), once=True)

    def register_instance(self, key: CapabilityKey, instance: Any) -> None:
        self.register(key, instance, Lifecycle.INSTANCE)

    def register_factory(
        self,
        key: CapabilityKey,
        factory: Callable[[], Any],
        lifecycle: Lifecycle = Lifecycle.LAZY,
    ) -> None:
        if lifecycle is Lifecycle.INSTANCE:
            raise RegistryError("Factories must be registered as lazy or transient")
        self.register(key, factory, lifecycle)

    def provides(
        self, key: Optional[CapabilityKey] = None, lifecycle: Lifecycle = Lifecycle.LAZY
    ) -> Callable:
        """Decorator to register a function or class as a factory.

        Factory parameters are resolved from this registry when the factory is
        invoked, by their annotation or by the key given in
        ``Annotated[T, key]``.

        Args:
            key: Optional key; defaults to the class itself, or to the function's
                return annotation.
            lifecycle: ``Lifecycle.LAZY`` (default) or ``Lifecycle.TRANSIENT``.

        Returns:
            A decorator that registers its target and returns it unchanged.

        Example:
            @registry.provides(lifecycle=Lifecycle.TRANSIENT)
            def make_session(engine: Engine) -> Session:
                return Session(engine)
        """

        def decorator(obj):
            self._store(make_provider_entry(obj, key, lifecycle), once=False)
            return obj

        return decorator

    @overload
    def resolve(self, key: type[T]) -> T: ...

    @overload
    def resolve(self, key: CapabilityKey) -> Any: ...

    def resolve(self, key):
        """Return the object registered for a key.

        Lookup falls back to the parent chain. Lazy factories are invoked at most
        once per key, even when several threads resolve the key concurrently.

        Args:
            key: The capability key.

        Returns:
            The registered instance, the cached result of a lazy factory, or a
            fresh result of a transient factory.

        Raises:
            NotRegistered: If neither this registry nor any parent has an entry.
            CircularDependency: If building the object requires the key itself.
            ResolutionTypeError: If type checking is enabled and the object is
                not an instance of the class used as key.
        """
        _validate_key(key)
        owner, entry = self._find(key)
        if entry is None:
            raise NotRegistered(key)
        instance = owner._produce(entry)
        if self.settings.check_types:
            _check_type(key, instance)
        return instance

    def unregister(self, key: CapabilityKey) -> None:
        """Remove the entry for a key from this registry.

        Raises:
            NotRegistered: If this registry has no entry for the key.
        """
        _validate_key(key)
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                raise NotRegistered(key)
            self._instances.pop(key, None)
        _log.info("unregistered", key=entry.name)

    def reset(self) -> None:
        """Remove every entry and cached instance from this registry."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._instances.clear()
        _log.info("reset", entries=count)

    def is_registered(self, key: CapabilityKey) -> bool:
        _validate_key(key)
        return self._find(key)[1] is not None

    def __contains__(self, key: CapabilityKey) -> bool:
        return self.is_registered(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> list[CapabilityKey]:
        """Keys registered in this registry, in registration order."""
        with self._lock:
            return list(self._entries)

    def verify(self, *keys: CapabilityKey) -> None:
        """Resolve keys up front and report every missing registration together.

        Intended to run once at startup, after the composition root has
        registered everything, so misconfiguration surfaces before any feature
        code runs.

        Factory dependencies are checked first without invoking any factory, so
        every absent key is reported. Only when none is absent are the keys
        resolved, which surfaces keys a factory looks up by itself.

        Args:
            *keys: Keys to check. If none are given, every key registered in this
                registry is resolved, which also checks factory dependencies.

        Raises:
            VerificationError: Listing every key that has no entry, including
                missing dependencies of factories.
        """
        if not keys:
            keys = tuple(self.keys())

        missing: list[CapabilityKey] = []
        seen: set[tuple[int, CapabilityKey]] = set()
        for key in keys:
            self._collect_missing(key, missing, seen)

        if not missing:
            for key in keys:
                try:
                    self.resolve(key)
                except NotRegistered as e:
                    if e.key not in missing:
                        missing.append(e.key)

        if missing:
            _log.error("verification_failed", missing=[key_name(k) for k in missing])
            raise VerificationError(missing)

    @contextmanager
    def override(self, key: CapabilityKey, instance: Any) -> Iterator[Any]:
        """Temporarily register an instance, restoring the previous state on exit.

        The duplicate policy does not apply: overriding is always a replacement.

        Example:
            >>> with registry.override(Clock, FrozenClock(0)):
            ...     assert registry.resolve(Clock).now() == 0
        """
        replacement = _make_entry(key, instance, Lifecycle.INSTANCE)
        if self.settings.check_types:
            _check_type(key, instance)
        with self._lock:
            previous_entry = self._entries.get(key)
            previous_instance = self._instances.pop(key, None)
            self._entries[key] = replacement
        try:
            yield instance
        finally:
            with self._lock:
                self._instances.pop(key, None)
                if previous_entry is None:
                    self._entries.pop(key, None)
                else:
                    self._entries[key] = previous_entry
                    if previous_instance is not None:
                        self._instances[key] = previous_instance

    def scope(self) -> "Registry":
        """Create a child registry that falls back to this one for lookups."""
        return Registry(self.settings, parent=self)

    def _store(self, entry: Entry, once: bool) -> None:
        if self.settings.check_types and not entry.is_factory:
            _check_type(entry.key, entry.provider)

        with self._lock:
            replaced = entry.key in self._entries
            if replaced and (once or self.settings.on_duplicate is DuplicatePolicy.FAIL):
                raise DuplicateRegistration(entry.key)
            self._entries[entry.key] = entry
            self._instances.pop(entry.key, None)

        if replaced:
            _log.info("replaced", key=entry.name, lifecycle=entry.lifecycle.value)
        else:
            _log.debug("registered", key=entry.name, lifecycle=entry.lifecycle.value)

    def _find(self, key: CapabilityKey) -> tuple[Optional["Registry"], Optional[Entry]]:
        registry = self
        while registry is not None:
            with registry._lock:
                entry = registry._entries.get(key)
            if entry is not None:
                return registry, entry
            registry = registry._parent
        return None, None

    def _collect_missing(
        self,
        key: CapabilityKey,
        missing: list[CapabilityKey],
        seen: set[tuple[int, CapabilityKey]],
    ) -> None:
        """Walk factory dependencies without invoking anything, recording absent keys."""
        _validate_key(key)
        if (id(self), key) in seen:
            return
        seen.add((id(self), key))

        owner, entry = self._find(key)
        if entry is None:
            if key not in missing:
                missing.append(key)
            return
        for dependency in entry.dependencies:
            if dependency.has_default and owner._find(dependency.key)[1] is None:
                continue
            owner._collect_missing(dependency.key, missing, seen)

    def _produce(self, entry: Entry) -> Any:
        if entry.lifecycle is Lifecycle.INSTANCE:
            return entry.provider
        if entry.lifecycle is Lifecycle.TRANSIENT:
            return self._build(entry)

        cached = self._instances.get(entry.key)
        if cached is not None and cached[0] is entry:
            return cached[1]

        with self._lock:
            current = self._entries.get(entry.key)
            if current is None:
                raise NotRegistered(entry.key)
            if current is not entry:
                # replaced while waiting for the lock
                return self._produce(current)
            cached = self._instances.get(entry.key)
            if cached is None:
                instance = self._build(entry)
                if self.settings.check_types:
                    _check_type(entry.key, instance)
                cached = (entry, instance)
                self._instances[entry.key] = cached
            return cached[1]

    def _build(self, entry: Entry) -> Any:
        resolving = self._resolving()
        if entry.key in resolving:
            raise CircularDependency(resolving[resolving.index(entry.key):] + [entry.key])

        resolving.append(entry.key)
        try:
            arguments = {}
            for dependency in entry.dependencies:
                if dependency.has_default and not self.is_registered(dependency.key):
                    continue
                arguments[dependency.parameter_name] = self.resolve(dependency.key)

            _log.debug("factory_invoked", key=entry.name, lifecycle=entry.lifecycle.value)
            return entry.provider(**arguments)
        finally:
            resolving.pop()

    def _resolving(self) -> list[CapabilityKey]:
        """Keys currently being built by the calling thread, outermost first."""
        if not hasattr(self._local, "stack"):
            self._local.stack = []
        return self._local.stack


def _make_entry(key: CapabilityKey, provider: Any, lifecycle: Lifecycle) -> Entry:
    _validate_key(key)
    if lifecycle is not Lifecycle.INSTANCE and not callable(provider):
        raise RegistryError(f"Factory for {key_name(key)} is not callable")
    return Entry(key, lifecycle, provider, (), key_name(key))


def _validate_key(key: Any) -> None:
    if key is None:
        raise InvalidKey("Registry keys must not be None")
    try:
        hash(key)
    except TypeError as e:
        raise InvalidKey(f"Registry key {key!r} is not hashable") from e


def _check_type(key: CapabilityKey, instance: Any) -> None:
    if not inspect.isclass(key):
        return
    try:
        matches = isinstance(instance, key)
    except TypeError:
        # protocols without @runtime_checkable and parameterised generics
        return
    if not matches:
        raise ResolutionTypeError(key, instance)


_default: Optional[Registry] = None
_default_lock = threading.Lock()


def default_registry() -> Registry:
    """Get the process-wide registry, creating it on first use.

    Returns:
        The global Registry, configured from the environment.
    """
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = Registry(RegistrySettings.from_env())
    return _default


def reset_default_registry() -> None:
    """Discard the process-wide registry (for testing)."""
    global _default
    with _default_lock:
        _default = None
