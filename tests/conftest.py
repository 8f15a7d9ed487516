"""
Shared test fixtures.
"""

import pytest

from docrepo import config as config_module
from docrepo import registry as registry_module

from .models import ADAPTER


@pytest.fixture(autouse=True)
def clean_adapter():
    """Empty the shared memory adapter around every test."""
    ADAPTER.reset()
    yield
    ADAPTER.reset()


@pytest.fixture
def isolated_config():
    """Run a test against a fresh configuration, restoring the shared one after."""
    saved = config_module._config
    config_module.reset_config()
    yield
    config_module._config = saved


@pytest.fixture
def isolated_registry():
    """Run a test against a fresh entity registry, restoring the shared one after."""
    saved = registry_module._global_registry
    registry_module.reset_registry()
    yield registry_module.get_registry()
    registry_module._global_registry = saved
