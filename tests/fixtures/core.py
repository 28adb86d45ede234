"""
Core test fixtures: fakes for the model gateway and memory store.

The gateway is the only external/expensive dependency, so it is faked with
scripted responses. Stores are the real in-memory store or thin wrappers that
fail on chosen calls.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import Mock

import pytest

from config.config import AppConfig, DEFAULT_PROMPTS_DIR
from evaluators.models import ActionResult, ConversationTurn, RecentMessage, SessionState
from evaluators.persistence import InMemoryMemoryStore, MemoryStoreError

ROOM_ID = "room-1"
USER_ID = "user-1"
AGENT_ID = "agent-1"
PROMPTS_DIR = DEFAULT_PROMPTS_DIR


class FakeGateway:
    """Model gateway returning scripted responses and recording every prompt."""

    def __init__(self, responses: Sequence[Any] = ("[]",)):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def complete(self, prompt: str, temperature: float) -> str:
        self.calls.append({"prompt": prompt, "temperature": temperature})
        response = self.responses[min(len(self.calls), len(self.responses)) - 1]
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def call_count(self) -> int:
        return len(self.calls)


class FlakyMemoryStore(InMemoryMemoryStore):
    """In-memory store that fails (raise or None) for chosen contents."""

    def __init__(self, raise_for: Sequence[str] = (), none_for: Sequence[str] = ()):
        super().__init__()
        self.raise_for = set(raise_for)
        self.none_for = set(none_for)
        self.store_calls = 0

    def store(self, content, metadata, room_id, entity_id):
        self.store_calls += 1
        if content in self.raise_for:
            raise MemoryStoreError(f"simulated failure for {content!r}")
        if content in self.none_for:
            return None
        return super().store(content, metadata, room_id, entity_id)


def model_output(*records: Dict[str, Any]) -> str:
    return json.dumps(list(records))


def user_turn(text: Optional[str], room_id: str = ROOM_ID) -> ConversationTurn:
    return ConversationTurn(text=text, room_id=room_id, entity_id=USER_ID, agent_id=AGENT_ID)


def agent_turn(text: str, room_id: str = ROOM_ID, source: Optional[str] = "telegram") -> ConversationTurn:
    return ConversationTurn(text=text, room_id=room_id, entity_id=AGENT_ID, agent_id=AGENT_ID, source=source)


def session(messages: Sequence[tuple] = (), action_data: Sequence[Any] = ()) -> SessionState:
    return SessionState(
        recent_messages=tuple(RecentMessage(role=role, text=text) for role, text in messages),
        action_results=tuple(ActionResult(data=data) for data in action_data),
    )


@pytest.fixture
def mock_logger():
    """Logger double so tests can count leveled calls."""
    return Mock(spec=logging.Logger)


@pytest.fixture
def memory_store():
    return InMemoryMemoryStore()


@pytest.fixture
def app_config():
    """Defaults only; never reads the process environment."""
    return AppConfig()
