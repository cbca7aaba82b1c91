"""Mock generation service for deterministic testing.

When MOCK_LLM=1 environment variable is set, the app uses this client in
place of the Anthropic API. Replies and titles cycle through fixed lists,
so the same sequence of sends always yields the same conversation.
"""

import asyncio
import os
from typing import List

from services.models import Message


def is_mock_mode() -> bool:
    """Check if mock mode is enabled via environment variable."""
    return os.getenv("MOCK_LLM", "").lower() in ("1", "true", "yes")


# ============================================================================
# Mock Data Constants
# ============================================================================

MOCK_RESPONSES = [
    "Here is one way to look at it.",
    "That opens up a different line of thought.",
    "Let's follow this thread a little further.",
    "Consider the alternative for a moment.",
]

MOCK_TITLES = [
    "Opening Move",
    "Quiet Divergence",
    "Parallel Thread",
    "Second Thoughts",
]


class MockGenerationClient:
    """Deterministic stand-in for AnthropicClient."""

    def __init__(self, delay_ms: int = 0):
        self.delay_ms = delay_ms
        self._response_index = 0
        self._title_index = 0

    async def _pause(self):
        if self.delay_ms:
            await asyncio.sleep(self.delay_ms / 1000)

    async def generate_response(self, prompt: str, context_messages: List[Message]) -> str:
        await self._pause()
        text = MOCK_RESPONSES[self._response_index % len(MOCK_RESPONSES)]
        self._response_index += 1
        return f"{text} (turn {len(context_messages) // 2 + 1})"

    async def generate_title(self, prompt: str, response_text: str) -> str:
        await self._pause()
        title = MOCK_TITLES[self._title_index % len(MOCK_TITLES)]
        self._title_index += 1
        return title
