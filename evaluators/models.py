"""
Data model for turn evaluators.

Host-owned inputs (turn, session snapshot) are frozen dataclasses so the
evaluators can only read them. Model-derived records are pydantic models,
built only after the record filter has checked every field.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class ConversationTurn:
    """One inbound message delivered by the host runtime."""
    text: Optional[str]
    room_id: str
    entity_id: str
    agent_id: Optional[str] = None
    source: Optional[str] = None

    @property
    def content(self) -> str:
        """Turn text with missing text read as empty."""
        return self.text or ""

    @property
    def is_from_agent(self) -> bool:
        return self.agent_id is not None and self.entity_id == self.agent_id

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ConversationTurn":
        return cls(
            text=data.get("text"),
            room_id=str(data.get("room_id", "")),
            entity_id=str(data.get("entity_id", "")),
            agent_id=data.get("agent_id"),
            source=data.get("source"),
        )


@dataclass(frozen=True)
class RecentMessage:
    role: str
    text: str


@dataclass(frozen=True)
class ActionResult:
    """Result of an earlier action in the session; data is whatever the host attached."""
    data: Any = None


@dataclass(frozen=True)
class SessionState:
    """
    Read-only snapshot of host session state.

    recent_messages is ordered most-recent-last.
    """
    recent_messages: Tuple[RecentMessage, ...] = ()
    action_results: Tuple[ActionResult, ...] = ()

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "SessionState":
        """
        Build a snapshot from host-shaped dicts.

        Malformed entries are skipped rather than rejected; an absent or
        non-list field becomes an empty tuple.
        """
        if not isinstance(data, Mapping):
            return cls()

        messages = []
        raw_messages = data.get("recent_messages")
        if isinstance(raw_messages, list):
            for item in raw_messages:
                if not isinstance(item, Mapping):
                    continue
                text = item.get("text", item.get("content"))
                if not isinstance(text, str):
                    continue
                messages.append(RecentMessage(role=str(item.get("role", "")), text=text))

        results = []
        raw_results = data.get("action_results")
        if isinstance(raw_results, list):
            for item in raw_results:
                if isinstance(item, Mapping):
                    results.append(ActionResult(data=item.get("data")))

        return cls(recent_messages=tuple(messages), action_results=tuple(results))


class CandidateRecord(BaseModel):
    """A model-proposed record that passed admission filtering."""
    model_config = ConfigDict(frozen=True)

    text: str
    category: Optional[str] = None
    confidence: Optional[float] = None
    outcome: str = "partial"
    project: str = "general"
    task_id: Optional[str] = None


class MemoryEntry(BaseModel):
    """A persisted memory entry as returned by a memory store."""
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    room_id: str
    entity_id: str
    created_at: str


@dataclass(frozen=True)
class ParseResult:
    """
    Tagged result of parsing raw model output.

    Exactly one of records/error is set.
    """
    records: Optional[List[Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.records is not None

    @classmethod
    def success(cls, records: List[Any]) -> "ParseResult":
        return cls(records=records)

    @classmethod
    def failure(cls, error: str) -> "ParseResult":
        return cls(error=error)


class PipelineStage(str, Enum):
    IDLE = "idle"
    TRIGGER_CHECK = "trigger_check"
    SKIPPED = "skipped"
    PROMPTING = "prompting"
    MODEL_CALL = "model_call"
    FAILED_PARSE = "failed_parse"
    FILTERING = "filtering"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """
    What a single evaluator invocation returns to the host.

    records holds only the candidates that were actually stored, in
    candidate order.
    """
    records: List[CandidateRecord] = field(default_factory=list)
    stage: PipelineStage = PipelineStage.IDLE
    candidates_seen: int = 0
    accepted: int = 0

    @property
    def stored_count(self) -> int:
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [record.model_dump() for record in self.records],
            "stage": self.stage.value,
            "candidates_seen": self.candidates_seen,
            "accepted": self.accepted,
        }
