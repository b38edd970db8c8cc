"""Introspection of factory functions and classes into registry entries."""

import inspect
import types
from typing import (
    Annotated,
    Any,
    Callable,
    Optional,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from wirebox.domain import CapabilityKey, Dependency, Entry, Lifecycle, key_name
from wirebox.errors import RegistryError

__all__ = ["make_provider_entry"]

_UNION_ORIGINS = (Union, getattr(types, "UnionType", Union))


def make_provider_entry(
    target: Any, key: Optional[CapabilityKey] = None, lifecycle: Lifecycle = Lifecycle.LAZY
) -> Entry:
    """Create an Entry for a factory function or class.

    Classes are keyed by themselves unless a key is given. Functions are keyed by
    their return annotation unless a key is given. Every parameter of the factory
    becomes a Dependency resolved from the registry when the factory is invoked.

    Args:
        target: The function or class to register.
        key: Optional explicit key.
        lifecycle: ``Lifecycle.LAZY`` or ``Lifecycle.TRANSIENT``.

    Returns:
        Entry describing how to invoke the factory.

    Raises:
        RegistryError: If the target is not a class or function, if no key can be
            derived, or if a parameter cannot be resolved.

    Example:
        >>> def make_service(db: Database, cache: Annotated[Cache, "redis"]) -> Service:
        ...     return Service(db, cache)
        >>> make_provider_entry(make_service).dependencies
        (Dependency("db", Database), Dependency("cache", "redis"))
    """
    if lifecycle is Lifecycle.INSTANCE:
        raise RegistryError("Factories must be registered as lazy or transient")

    if inspect.isclass(target):
        provided_key = target if key is None else key
        init = target.__init__
        hints = get_type_hints(init, include_extras=True) if inspect.isfunction(init) else {}
    elif inspect.isfunction(target):
        provided_key = _key_from_return_type(target) if key is None else key
        hints = get_type_hints(target, include_extras=True)
    else:
        raise RegistryError(f"{target} is not a class or function")

    return Entry(
        provided_key,
        lifecycle,
        target,
        _get_dependencies(target, hints),
        key_name(provided_key),
    )


def _get_dependencies(target: Callable, hints: dict[str, Any]) -> tuple[Dependency, ...]:
    """Extract dependency information from a factory's signature.

    Variadic parameters are ignored. Unannotated parameters with a default keep
    the default and are not resolved.

    Raises:
        RegistryError: If a parameter is positional-only or unannotated without a default.
    """
    dependencies = []
    for name, parameter in inspect.signature(target).parameters.items():
        if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
            continue
        if parameter.kind is parameter.POSITIONAL_ONLY:
            raise RegistryError(
                f"Dependency '{name}' of {target.__qualname__} is positional-only"
            )
        dependency = _make_dependency(target, parameter, hints.get(name))
        if dependency is not None:
            dependencies.append(dependency)
    return tuple(dependencies)


def _make_dependency(
    target: Callable, parameter: inspect.Parameter, annotation: Any
) -> Optional[Dependency]:
    has_default = parameter.default is not parameter.empty
    if annotation is None:
        if has_default:
            return None
        raise RegistryError(
            f"Dependency '{parameter.name}' of {target.__qualname__} is not annotated"
        )

    annotation = _unwrap_optional(annotation)
    if get_origin(annotation) is Annotated:
        base_type, *metadata = get_args(annotation)
        return Dependency(
            parameter.name, next(iter(metadata), _unwrap_optional(base_type)), has_default
        )
    return Dependency(parameter.name, annotation, has_default)


def _unwrap_optional(annotation: Any) -> Any:
    """Key ``Optional[X]`` and ``X | None`` dependencies by ``X``."""
    if get_origin(annotation) not in _UNION_ORIGINS:
        return annotation
    members = [arg for arg in get_args(annotation) if arg is not type(None)]
    return members[0] if len(members) == 1 else annotation


def _key_from_return_type(func: Callable) -> CapabilityKey:
    return_type = get_type_hints(func).get("return", None)
    if return_type is not None:
        return return_type
    raise RegistryError(
        f"Function {func.__name__} is registered without an explicit key "
        "but does not have an annotated return type"
    )
