# tests/conftest.py
# Shared fixtures: a temp-file database with a deterministic clock, two users, and the app with
# its database and authentication dependencies overridden.
#
# Imports
import os
import tempfile
from pathlib import Path
#
# The settings module reads the environment at import time, so this must run before any app import.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="pkm_tests_"))
os.environ["APP_MODE"] = "multi"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-only-jwt-secret"
os.environ["DATABASE_PATH"] = str(_TEST_ROOT / "pkm.sqlite")
os.environ["UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["PKM_CONFIG_FILE"] = str(_TEST_ROOT / "no-config.txt")
os.environ["LOG_LEVEL"] = "WARNING"
#
# Third-Party Imports
import pytest
from fastapi.testclient import TestClient
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db
from pkm_Server_API.app.core.AuthNZ.User_DB_Handling import get_request_user, User
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase
from pkm_Server_API.app.core.DB_Management.Users_DB import create_user
from pkm_Server_API.app.core.Sync.clock import SyncClock
from pkm_Server_API.app.main import app
#
########################################################################################################################
#
# Fixtures:

START_MS = 1_700_000_000_000


class FakeTime:
    """Wall clock frozen at `now`; tests move it with advance()."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def clock(fake_time):
    return SyncClock(time_source=fake_time)


@pytest.fixture
def db(tmp_path, clock):
    database = PKMDatabase(tmp_path / "pkm_test.sqlite", clock=clock)
    yield database
    database.close_all_connections()


@pytest.fixture
def user_a(db):
    return create_user(db, "alice", "not-a-real-hash", email="alice@example.com")


@pytest.fixture
def user_b(db):
    return create_user(db, "bob", "not-a-real-hash")


@pytest.fixture
def client_for(db):
    """Returns a factory giving a TestClient authenticated as the given user row."""

    async def override_get_pkm_db():
        return db

    def make_client(user_row) -> TestClient:
        current = User(id=user_row["id"], username=user_row["username"], email=user_row.get("email"))

        async def override_get_request_user():
            return current

        app.dependency_overrides[get_pkm_db] = override_get_pkm_db
        app.dependency_overrides[get_request_user] = override_get_request_user
        return TestClient(app)

    yield make_client
    app.dependency_overrides.clear()


@pytest.fixture
def client(client_for, user_a):
    return client_for(user_a)


@pytest.fixture
def anonymous_client(db):
    """Real authentication, test database."""

    async def override_get_pkm_db():
        return db

    app.dependency_overrides[get_pkm_db] = override_get_pkm_db
    yield TestClient(app)
    app.dependency_overrides.clear()

#
# End of conftest.py
########################################################################################################################
