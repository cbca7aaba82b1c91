"""Services module for Branch Chat."""

from .anthropic_client import AnthropicClient
from .conversation_store import ConversationStore
from .send_coordinator import SendCoordinator
from .session_context import SessionContext
from .session_manager import SessionManager

__all__ = ["AnthropicClient", "ConversationStore", "SendCoordinator", "SessionContext", "SessionManager"]
