"""
Shared fixtures.

The database URL is pinned to a throwaway SQLite file before the app is
imported, since settings and the engine are built at import time.
"""
import os
import tempfile

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="scheme-engine-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SCHEME_OVERRIDE_REQUIRE_REASON"] = "true"
os.environ.pop("DEFAULT_ACTING_USER_ID", None)


@pytest.fixture(scope="session")
def client():
    from fastapi.testclient import TestClient
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client
