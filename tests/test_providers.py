from dataclasses import dataclass
from typing import Annotated, Callable, Optional

import pytest

from wirebox.domain import Dependency, Lifecycle
from wirebox.errors import CircularDependency, NotRegistered, RegistryError
from wirebox.providers import make_provider_entry

Greeter = Callable[[str], str]


class Database:
    def __init__(self, url: str = "sqlite://"):
        self.url = url


@dataclass(frozen=True)
class Service:
    db: Database
    greeter: Annotated[Greeter, "greeter"]

    def welcome(self, name: str) -> str:
        return f"{self.greeter(name)} from {self.db.url}"


@pytest.fixture
def greeter(registry):
    @registry.provides("greeter")
    def make_greeter() -> Greeter:
        def greeter(name: str) -> str:
            return "Hello %s" % name

        return greeter

    return make_greeter


def test_function_is_keyed_by_return_type(registry):
    @registry.provides()
    def make_database() -> Database:
        return Database("postgres://")

    assert registry.resolve(Database).url == "postgres://"


def test_decorator_returns_target_unchanged(registry):
    def make_database() -> Database:
        return Database()

    assert registry.provides()(make_database) is make_database


def test_class_is_keyed_by_itself_and_wired_from_its_init(registry, greeter):
    registry.provides()(Database)
    registry.provides()(Service)

    service = registry.resolve(Service)

    assert service.welcome("Dominic") == "Hello Dominic from sqlite://"
    assert service.db is registry.resolve(Database)


def test_dependencies_can_be_identified_by_annotated_key():
    def make_upper(greeter: Annotated[Greeter, "greeter"]) -> str:
        pass

    entry = make_provider_entry(make_upper)

    assert entry.dependencies == (Dependency("greeter", "greeter", False),)


def test_dependencies_can_be_identified_by_type():
    def make_service(db: Database) -> str:
        pass

    assert make_provider_entry(make_service).dependencies[0].key is Database


def test_entry_describes_provider():
    def make_database() -> Database:
        return Database()

    entry = make_provider_entry(make_database, lifecycle=Lifecycle.TRANSIENT)

    assert entry.key is Database
    assert entry.lifecycle is Lifecycle.TRANSIENT
    assert entry.provider is make_database
    assert entry.name.endswith("Database")


def test_unannotated_parameter_with_default_is_left_alone():
    def make_database(url="sqlite://") -> Database:
        return Database(url)

    assert make_provider_entry(make_database).dependencies == ()


def test_annotated_parameter_with_default_falls_back_when_absent(registry):
    @registry.provides()
    def make_database(url: Annotated[str, "db_url"] = "memory://") -> Database:
        return Database(url)

    assert registry.resolve(Database).url == "memory://"


def test_annotated_parameter_with_default_uses_registered_value(registry):
    registry.register("db_url", "postgres://")

    @registry.provides()
    def make_database(url: Annotated[str, "db_url"] = "memory://") -> Database:
        return Database(url)

    assert registry.resolve(Database).url == "postgres://"


def test_keyword_only_dependency(registry):
    registry.register("foo", "foo")

    @registry.provides("bar")
    def make_bar(*, foo: Annotated[str, "foo"]) -> str:
        return f"bar-{foo}"

    assert registry.resolve("bar") == "bar-foo"


def test_transient_provider_is_rebuilt(registry):
    @registry.provides(lifecycle=Lifecycle.TRANSIENT)
    def make_database() -> Database:
        return Database()

    assert registry.resolve(Database) is not registry.resolve(Database)


def test_missing_dependency_raises_not_registered(registry):
    registry.provides()(Service)

    with pytest.raises(NotRegistered) as raised:
        registry.resolve(Service)
    assert raised.value.key is Database


def test_dependency_cycle_detected(registry):
    @registry.provides("a")
    def make_a(b: Annotated[int, "b"]) -> int:
        return b + 1

    @registry.provides("b")
    def make_b(a: Annotated[int, "a"]) -> int:
        return a + 1

    with pytest.raises(CircularDependency, match="a -> b -> a") as raised:
        registry.resolve("a")
    assert raised.value.chain == ["a", "b", "a"]

    # nothing is left half-built
    registry.register("b", 1)
    assert registry.resolve("a") == 2


def test_throws_registry_error_on_unannotated_provider_param(registry):
    with pytest.raises(RegistryError, match="Dependency.*is not annotated"):

        @registry.provides()
        def make_foo(_ignored) -> Database:
            pass


def test_throws_registry_error_on_missing_return_type(registry):
    with pytest.raises(RegistryError, match="does not have an annotated return type"):

        @registry.provides()
        def make_foo():
            pass


def test_throws_registry_error_on_positional_only_param(registry):
    with pytest.raises(RegistryError, match="is positional-only"):

        @registry.provides()
        def make_foo(db: Database, /) -> str:
            pass


def test_rejects_targets_that_are_not_classes_or_functions(registry):
    with pytest.raises(RegistryError, match="is not a class or function"):
        registry.provides("thing")(42)


def test_rejects_instance_lifecycle_for_providers():
    with pytest.raises(RegistryError, match="lazy or transient"):
        make_provider_entry(Database, lifecycle=Lifecycle.INSTANCE)


def test_optional_dependency_is_keyed_by_wrapped_type():
    def make_service(db: Optional[Database] = None) -> str:
        pass

    assert make_provider_entry(make_service).dependencies == (
        Dependency("db", Database, True),
    )


def test_optional_dependency_resolves_when_registered(registry):
    database = Database("postgres://")

    @registry.provides("url")
    def make_url(db: Optional[Database] = None) -> str:
        return db.url if db else "none"

    assert registry.resolve("url") == "none"

    registry.register(Database, database)
    registry.provides("url")(make_url)

    assert registry.resolve("url") == "postgres://"
