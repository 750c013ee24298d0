"""
Shared fixtures for the plakait test-suite.

The LLM endpoint is always simulated: `ScriptedLLMClient` plays back a
list of outcomes (content strings, exceptions, or callables computing the
content from the wire messages) one per `complete` call.
"""

import asyncio
import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

# Settings are read at import time; never talk to a real endpoint.
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("PLAKAIT_ENVIRONMENT", "dev")

import pytest
from openai.types.chat import ChatCompletion

from core.completion.resilient_completion import ResilientCompletion
from runtime.agents.conversation_agent import ConversationAgent
from runtime.store.session_store import SessionStore


Outcome = Union[str, None, BaseException, Callable[[List[Dict[str, str]]], str]]


def make_completion(content: Optional[str]) -> ChatCompletion:
    """Build a provider envelope whose first choice carries `content`."""
    return ChatCompletion.model_validate(
        {
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "created": 0,
            "model": "gpt-4o",
            "choices": [
                {
                    "index": 0,
                    "finish_reason": "stop",
                    "message": {"role": "assistant", "content": content},
                }
            ],
        }
    )


def reply_json(
    dialogue: Optional[str] = "Hello there!",
    name: str = "Nick",
    expression: Optional[str] = ":)",
    end_message: Optional[str] = None,
) -> str:
    return json.dumps(
        {
            "name": name,
            "expression": expression,
            "dialogue": dialogue,
            "endMessage": end_message,
        }
    )


class ScriptedLLMClient:
    """Stand-in for LLMClient that plays back scripted outcomes.

    Once the script runs out, `default` is used for every further call.
    """

    def __init__(
        self,
        outcomes: Optional[List[Outcome]] = None,
        default: Outcome = None,
        delay: float = 0.0,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.default = default if default is not None else reply_json()
        self.delay = delay
        self.calls: List[List[Dict[str, str]]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.started = asyncio.Event()
        self.gate: Optional[asyncio.Event] = None

    async def complete(self, wire_messages: List[Dict[str, str]]) -> Any:
        self.calls.append([dict(m) for m in wire_messages])
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.started.set()
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.outcomes.pop(0) if self.outcomes else self.default
            if isinstance(outcome, BaseException):
                raise outcome
            if callable(outcome):
                outcome = outcome(wire_messages)
            return make_completion(outcome)
        finally:
            self.in_flight -= 1


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> SessionStore:
    return SessionStore(clock=clock)


@pytest.fixture
def llm() -> ScriptedLLMClient:
    return ScriptedLLMClient()


@pytest.fixture
def completion(llm) -> ResilientCompletion:
    return ResilientCompletion(llm, max_attempts=8, backoff_base=0, max_elapsed=60)


@pytest.fixture
def agent(store, completion) -> ConversationAgent:
    return ConversationAgent(session_store=store, completion=completion)
