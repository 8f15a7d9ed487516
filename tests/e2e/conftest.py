"""
E2E test fixtures for docrepo.

These tests require a running RethinkDB server (DOCREPO_HOST/DOCREPO_PORT,
default localhost:28015).
"""

import os
import socket
import time
import uuid

import pytest

from docrepo.adapter.rethink import RethinkDbAdapter
from docrepo.config import ConnectionSettings

# Skip E2E tests if not in E2E mode
E2E_ENABLED = os.environ.get("DOCREPO_E2E_TESTS", "0") == "1"


def wait_for_service(host: str, port: int, timeout: int = 30) -> bool:
    """Wait for a service to become available."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1):
                return True
        except OSError:
            time.sleep(1)
    return False


@pytest.fixture(scope="session")
def settings():
    """Connection settings from the environment."""
    settings = ConnectionSettings()
    if E2E_ENABLED and not wait_for_service(settings.host, settings.port):
        pytest.fail(f"RethinkDB not reachable at {settings.address}")
    return settings


@pytest.fixture
def rethink(settings):
    """Adapter bound to a throwaway database, dropped afterwards."""
    database = f"docrepo_e2e_{uuid.uuid4().hex[:8]}"
    adapter = RethinkDbAdapter(database=database, settings=settings)
    adapter.r.db_create(database).run(adapter.connection)
    yield adapter
    adapter.r.db_drop(database).run(adapter.connection)
    adapter.close()
