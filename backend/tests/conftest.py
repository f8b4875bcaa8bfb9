"""
Shared test fixtures and configuration.
"""

import os
import tempfile

import pytest

# Set test environment variables before importing app modules
_DB_PATH = os.path.join(tempfile.gettempdir(), "streamchat_test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing"
os.environ["LLM_API_KEY"] = ""
os.environ["LOG_FILE_ENABLED"] = "false"
os.environ["TITLE_POLL_INTERVAL"] = "0.05"
os.environ["TITLE_STREAM_TIMEOUT"] = "1.0"

from fastapi.testclient import TestClient  # noqa: E402

from streamchat.api.chat import get_completion_gateway  # noqa: E402
from streamchat.main import app  # noqa: E402
from streamchat.storage import (  # noqa: E402
    Base, ChatRecord, MessageRecord, SessionLocal, UserStorage, engine,
)
from streamchat.utils.auth import create_access_token, get_password_hash  # noqa: E402


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


def make_user(username: str) -> str:
    with SessionLocal() as db:
        user = UserStorage(db).create_user(
            username=username,
            hashed_password=get_password_hash("testpass123"),
        )
        return user.id


def headers_for(user_id: str, username: str) -> dict:
    token = create_access_token(data={"sub": user_id, "username": username})
    return {"Authorization": f"Bearer {token}"}


def count_rows(model, **filters) -> int:
    with SessionLocal() as db:
        return db.query(model).filter_by(**filters).count()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user_id():
    return make_user("alice")


@pytest.fixture
def auth_headers(user_id):
    return headers_for(user_id, "alice")


@pytest.fixture
def other_headers():
    return headers_for(make_user("mallory"), "mallory")


@pytest.fixture
def use_gateway():
    """Swap the completion gateway used by the API."""
    def _use(gateway):
        app.dependency_overrides[get_completion_gateway] = lambda: gateway
        return gateway
    return _use


@pytest.fixture
def chat_count():
    return lambda **filters: count_rows(ChatRecord, **filters)


@pytest.fixture
def message_count():
    return lambda **filters: count_rows(MessageRecord, **filters)
