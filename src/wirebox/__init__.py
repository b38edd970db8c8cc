"""Wirebox type-keyed object registry.

Wirebox is a small dependency container. Independent modules register shared
objects under the key of the capability they implement (normally an abstract
class) and resolve them at the point of use, without importing each other's
concrete implementations. The registry itself is generic over opaque keys and
values, so it couples nothing to anything.

Key Features:
    - Instance, lazy singleton and transient factory lifecycles
    - Overwrite or fail-fast handling of duplicate registrations
    - Factory parameters resolved from the registry using standard type hints
    - A verification pass reporting every missing registration at once
    - Thread-safe resolution with at-most-once lazy construction
    - Child scopes and temporary overrides for test isolation

Basic Usage:
    >>> from wirebox.registry import Registry
    >>>
    >>> registry = Registry()
    >>> registry.register_instance(Logger, ConsoleLogger())
    >>>
    >>> @registry.provides()
    >>> def make_repository(logger: Logger) -> Repository:
    ...     return SqlRepository(logger)
    >>>
    >>> registry.verify()
    >>> repository = registry.resolve(Repository)

The package consists of several modules:
    - registry: The Registry and the process-wide default registry
    - providers: Introspection of factory functions and classes
    - domain: Core domain models (Entry, Dependency, Lifecycle)
    - settings: Registry configuration loaded from the environment
    - logging: Structured logging helpers
    - errors: Registry-specific exceptions
"""
