"""Shared pytest fixtures for all tests."""
import pytest
from cartpilot.config import get_settings
from cartpilot.schemas.session import LoginResult
from cartpilot.services.session_store import SessionStore
from cartpilot.worker.models import WorkerContext, WorkerOutcome
from tests.factories.cart_factory import make_report_data


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """
    Reset the cached Settings before and after each test.

    Tests that change environment variables get a fresh instance.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def worker_context():
    """Provide a worker context for a test session."""
    return WorkerContext(session_id="test-session")


@pytest.fixture
def session_store(tmp_path):
    """Provide a session store writing to a temporary directory."""
    return SessionStore(tmp_path / "sessions")


@pytest.fixture
def login_ok():
    """Login collaborator that always succeeds."""

    async def authenticate(context, username):
        return LoginResult(logged_in=True, user_name="Test Shopper")

    return authenticate


@pytest.fixture
def cart_builder_ok():
    """Cart builder that returns a two-item report."""

    async def cart_builder(context):
        return WorkerOutcome(success=True, data=make_report_data(session_id=context.session_id))

    return cart_builder
