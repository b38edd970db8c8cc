import pytest

from wirebox.registry import Registry, reset_default_registry


@pytest.fixture
def registry() -> Registry:
    return Registry()


@pytest.fixture(autouse=True)
def isolated_default_registry():
    reset_default_registry()
    yield
    reset_default_registry()
