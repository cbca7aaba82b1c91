"""Pytest configuration and fixtures."""

import os
import sys
import tempfile
import pytest
from typing import Generator

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)


@pytest.fixture
def temp_data_dir() -> Generator[str, None, None]:
    """Create a temporary data directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def mock_env(monkeypatch, temp_data_dir):
    """Set up mock environment variables."""
    monkeypatch.setenv("MOCK_LLM", "1")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
    monkeypatch.setenv("BRANCH_CHAT_DB_PATH", os.path.join(temp_data_dir, "branches.db"))
    return monkeypatch


@pytest.fixture
async def store(temp_data_dir):
    """Create a SQLite conversation store in a temporary directory."""
    from services.conversation_store import ConversationStore

    conversation_store = ConversationStore(db_path=os.path.join(temp_data_dir, "branches.db"))
    await conversation_store.initialize()
    return conversation_store


@pytest.fixture
def generator():
    """Create a deterministic generation client."""
    from services.mock_generation import MockGenerationClient

    return MockGenerationClient()


@pytest.fixture
def coordinator(store, generator):
    """Create a send coordinator over the store and mock generator."""
    from services.send_coordinator import SendCoordinator

    return SendCoordinator(store, generator)


@pytest.fixture
def manager(store, coordinator):
    """Create a session manager."""
    from services.session_manager import SessionManager

    return SessionManager(store, coordinator)


@pytest.fixture
def ctx():
    """Create an empty session context."""
    from services.session_context import SessionContext

    return SessionContext()
