"""
Pytest configuration and shared fixtures.
"""

import pytest

from packages.ingestion.models import UserContext
from tests.fakes import FakeDocumentStore, FakeEmbedder, make_user_lookup

# Enable async testing
pytest_plugins = ["pytest_asyncio"]


@pytest.fixture(autouse=True)
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("DEEPSEEK_API_KEY", "test-deepseek-key")
    monkeypatch.setenv("GROQ_API_KEY", "test-groq-key")
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "test-service-key")
    monkeypatch.setenv("AI_TEST_MODE", "true")


@pytest.fixture
def sample_embedding():
    """Small test embedding vector."""
    return [0.1, 0.2, 0.3]


@pytest.fixture
def long_text():
    """Twenty distinct sentences, roughly 1400 characters."""
    return " ".join(
        f"Sentence number {i} talks about contact management and follow-up tasks."
        for i in range(20)
    )


@pytest.fixture
def fake_store():
    return FakeDocumentStore()


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def active_user():
    return UserContext(user_id="user-1", department="sales", is_active=True)


@pytest.fixture
def user_lookup(active_user):
    return make_user_lookup(active_user)
