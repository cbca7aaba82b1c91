"""Configuration constants and model definitions for Branch Chat."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class ModelConfig:
    """Configuration for a Claude model."""
    id: str
    name: str
    max_tokens: int
    description: str


# Available Claude models
MODELS = {
    "claude-sonnet-4-5-20250929": ModelConfig(
        id="claude-sonnet-4-5-20250929",
        name="Claude Sonnet 4.5",
        max_tokens=64000,  # API limit for output tokens
        description="Balanced performance and speed"
    ),
    "claude-haiku-4-5-20251001": ModelConfig(
        id="claude-haiku-4-5-20251001",
        name="Claude Haiku 4.5",
        max_tokens=64000,
        description="Fastest model, used for titles"
    ),
}

# Default models
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
TITLE_MODEL = "claude-haiku-4-5-20251001"

# Default generation parameters
DEFAULT_TEMPERATURE = 0.8
DEFAULT_TOP_K = 40
DEFAULT_MAX_TOKENS = 4096
TITLE_TEMPERATURE = 0.7
TITLE_MAX_TOKENS = 32
TITLE_TIMEOUT_SECONDS = 15

# Conversation / node titles
DEFAULT_CONVERSATION_TITLE = "New Discussion"
PENDING_NODE_TITLE = "..."  # Node created but not yet titled
UNTITLED_SESSION_TITLE = "Untitled Session"
MAX_TITLE_LENGTH = 60
TITLE_ECHO_PREFIX_LENGTH = 5  # Titles containing this much of the prompt count as echoes

# Optimistic placeholder ids
TEMP_NODE_PREFIX = "temp_"

# Fallback rotations (used when generation or titling fails)
FALLBACK_RESPONSE_PREFIX = "[SIMULATED] "
FALLBACK_RESPONSES = [
    "Branch stabilized. Logic flow is optimal.",
    "Timeline analysis complete. Significant data fork detected.",
    "Exploring the recursive implications of this thread...",
    "Synthesizing response from localized data buffers.",
    "Interesting pivot. The topological entropy is increasing.",
    "Protocol adjusted. Ready for further branching.",
]
FALLBACK_TITLES = [
    "Logic Analysis",
    "Data Protocol",
    "Timeline Fork",
    "Neural Segment",
    "System Inquiry",
    "Branch Path",
]

# Storage paths
DATABASE_PATH = os.getenv("BRANCH_CHAT_DB_PATH", "data/branches.db")
