"""Anthropic API client for response and title generation."""

import os
from typing import Any, Dict, List, Optional

import anthropic
from dotenv import load_dotenv

from config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_K,
    MODELS,
    TITLE_MAX_TOKENS,
    TITLE_MODEL,
    TITLE_TEMPERATURE,
)
from services.errors import GenerationError, TitleGenerationError
from services.models import Message

load_dotenv()

TITLE_PROMPT = """Task: Create a chat segment title based on the following user prompt and AI response. Describe it as best as you can in 5-6 words.
Rules:
1. Do NOT repeat the user's prompt.
2. Do NOT use the word 'Chat' or 'Discussion'.
3. Be abstract and elegant.

User: "{prompt}"
AI: "{response}..."
Name:"""


def to_api_messages(context: List[Message], prompt: str) -> List[Dict[str, Any]]:
    """Convert path context plus the new prompt into Messages API format."""
    api_messages = [{"role": m.role.value, "content": m.content} for m in context]
    api_messages.append({"role": "user", "content": prompt})
    return api_messages


def _response_text(response: Any) -> str:
    """Join the text blocks of a Messages API response."""
    parts = []
    for block in getattr(response, "content", None) or []:
        if getattr(block, "type", None) == "text":
            parts.append(block.text)
    return "".join(parts).strip()


class AnthropicClient:
    """Wrapper for the Anthropic API implementing the generation service."""

    def __init__(self, api_key: Optional[str] = None, model: str = DEFAULT_MODEL):
        api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")
        if model not in MODELS:
            raise ValueError(f"Unknown model: {model}")
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model

    async def generate_response(self, prompt: str, context_messages: List[Message]) -> str:
        """Generate the assistant reply to prompt, given the path context.

        Raises:
            GenerationError: On API failure or an empty reply
        """
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=min(DEFAULT_MAX_TOKENS, MODELS[self.model].max_tokens),
                messages=to_api_messages(context_messages, prompt),
                temperature=DEFAULT_TEMPERATURE,
                top_k=DEFAULT_TOP_K,
            )
        except anthropic.APIError as e:
            raise GenerationError(f"API Error: {e}") from e

        text = _response_text(response)
        if not text:
            raise GenerationError("No response generated")
        return text

    async def generate_title(self, prompt: str, response_text: str) -> str:
        """Summarize a (prompt, response) pair into a short title.

        The result is not validated here; see fallbacks.validate_title.

        Raises:
            TitleGenerationError: On API failure
        """
        try:
            response = await self.client.messages.create(
                model=TITLE_MODEL,
                max_tokens=TITLE_MAX_TOKENS,
                messages=[{
                    "role": "user",
                    "content": TITLE_PROMPT.format(prompt=prompt, response=response_text[:100]),
                }],
                temperature=TITLE_TEMPERATURE,
            )
        except anthropic.APIError as e:
            raise TitleGenerationError(f"API Error: {e}") from e

        return _response_text(response)
