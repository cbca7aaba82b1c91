"""Test doubles for the persistence and generation services."""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from services.errors import PersistenceError
from services.models import Message


class FlakyPersistence:
    """Wraps a real store and fails one operation on its nth call."""

    def __init__(self, inner, fail_on: str, fail_at_call: int = 1):
        self._inner = inner
        self.fail_on = fail_on
        self.fail_at_call = fail_at_call
        self.calls: Dict[str, int] = {}

    def __getattr__(self, name: str):
        attr = getattr(self._inner, name)
        if not callable(attr):
            return attr

        async def call(*args, **kwargs):
            self.calls[name] = self.calls.get(name, 0) + 1
            if name == self.fail_on and self.calls[name] == self.fail_at_call:
                raise PersistenceError("simulated outage", operation=name)
            return await attr(*args, **kwargs)

        return call


class GatedPersistence:
    """Wraps a real store and holds one operation until released."""

    def __init__(self, inner, gate_on: str):
        self._inner = inner
        self.gate_on = gate_on
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    def __getattr__(self, name: str):
        attr = getattr(self._inner, name)
        if name != self.gate_on:
            return attr

        async def call(*args, **kwargs):
            self.entered.set()
            await self.release.wait()
            return await attr(*args, **kwargs)

        return call


class SlowAckPersistence:
    """Wraps a real store; one operation commits, then its reply never arrives."""

    def __init__(self, inner, slow_on: str):
        self._inner = inner
        self.slow_on = slow_on
        self.committed = asyncio.Event()

    def __getattr__(self, name: str):
        attr = getattr(self._inner, name)
        if name != self.slow_on:
            return attr

        async def call(*args, **kwargs):
            result = await attr(*args, **kwargs)
            self.committed.set()
            await asyncio.Event().wait()
            return result

        return call


class ScriptedGenerator:
    """Generation client with canned or failing behaviour."""

    def __init__(
        self,
        response: Optional[str] = "Scripted reply",
        title: Optional[str] = "Scripted Title",
        response_error: Optional[Exception] = None,
        title_error: Optional[Exception] = None,
        on_response: Optional[Callable[[], Any]] = None,
    ):
        self.response = response
        self.title = title
        self.response_error = response_error
        self.title_error = title_error
        self.on_response = on_response
        self.contexts: List[List[Message]] = []
        self.prompts: List[str] = []

    async def generate_response(self, prompt: str, context_messages: List[Message]) -> str:
        self.prompts.append(prompt)
        self.contexts.append(list(context_messages))
        if self.on_response is not None:
            await self.on_response()
        if self.response_error is not None:
            raise self.response_error
        return self.response

    async def generate_title(self, prompt: str, response_text: str) -> str:
        if self.title_error is not None:
            raise self.title_error
        return self.title
