"""Dependency injection providers for the API layer.

This module provides a single source of truth for shared services like
the conversation store, the generation client and the session manager.
The active SessionContext is not kept here: it lives on app.state and is
handed to each route through get_session_context.
"""

import os
from typing import Optional

from fastapi import Request

from config import DATABASE_PATH
from services.anthropic_client import AnthropicClient
from services.conversation_store import ConversationStore
from services.mock_generation import MockGenerationClient, is_mock_mode
from services.send_coordinator import SendCoordinator
from services.session_context import SessionContext
from services.session_manager import SessionManager

# Singleton instances
_store: Optional[ConversationStore] = None
_generator = None
_session_manager: Optional[SessionManager] = None
_initialized: bool = False


async def initialize_all():
    """Initialize all stores and services. Called once at app startup."""
    global _store, _generator, _session_manager, _initialized

    if _initialized:
        return

    # Initialize conversation store
    _store = ConversationStore(os.getenv("BRANCH_CHAT_DB_PATH", DATABASE_PATH))
    await _store.initialize()

    # Initialize generation client
    if is_mock_mode():
        _generator = MockGenerationClient()
        print("[DEPS] MOCK_LLM enabled, using mock generation")
    else:
        _generator = AnthropicClient()

    # Initialize session manager
    _session_manager = SessionManager(_store, SendCoordinator(_store, _generator))

    _initialized = True
    print("[DEPS] All services initialized")


def shutdown_all():
    """Drop all services so the next startup builds fresh ones."""
    global _store, _generator, _session_manager, _initialized
    _store = None
    _generator = None
    _session_manager = None
    _initialized = False


def get_session_manager() -> SessionManager:
    """Get the singleton SessionManager instance."""
    if not _initialized or _session_manager is None:
        raise RuntimeError("Dependencies not initialized. Call initialize_all() first.")
    return _session_manager


def get_session_context(request: Request) -> SessionContext:
    """Get the active SessionContext owned by the app."""
    ctx = getattr(request.app.state, "session_context", None)
    if ctx is None:
        raise RuntimeError("Session context not initialized.")
    return ctx

