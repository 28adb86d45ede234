"""
Trigger heuristics deciding whether an extraction pass is worth a model call.

All predicates are pure and cheap: no I/O, no model calls, no mutation of
their inputs, and absent data reads as "no signal" rather than an error.
CadenceGate is the one stateful gate and is owned by its evaluator instance.
"""
import re
import threading
from collections.abc import Mapping
from typing import Iterable, Optional

from evaluators.models import ConversationTurn, SessionState

TASK_CORRELATION_KEYS = ("task_id", "taskId")

FEEDBACK_WORDS = (
    "good", "bad", "wrong", "right", "better", "worse",
    "mistake", "perfect", "great", "terrible", "nice", "failed",
)
FEEDBACK_PATTERN = re.compile(r"\b(?:" + "|".join(FEEDBACK_WORDS) + r")\b")

COMPLETION_KEYWORDS = ("completed", "failed", "timeout")


def has_task_result(state: Optional[SessionState]) -> bool:
    """True if any prior action result carries a task-correlation key in its data mapping."""
    if state is None:
        return False
    for result in state.action_results:
        data = getattr(result, "data", None)
        if isinstance(data, Mapping) and any(key in data for key in TASK_CORRELATION_KEYS):
            return True
    return False


def has_feedback(text: Optional[str]) -> bool:
    """True if the text contains an evaluative word, matched as a whole word."""
    return FEEDBACK_PATTERN.search((text or "").lower()) is not None


def has_completion_keyword(text: Optional[str]) -> bool:
    """True if the text mentions a task completing, failing or timing out."""
    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in COMPLETION_KEYWORDS)


def should_extract_lessons(text: Optional[str], state: Optional[SessionState]) -> bool:
    """Any of the three lesson signals is enough."""
    return has_task_result(state) or has_feedback(text) or has_completion_keyword(text)


def is_substantive_agent_response(
    turn: ConversationTurn,
    min_length: int,
    allowed_sources: Iterable[str] = ()
) -> bool:
    """
    Gate for fact extraction: only the agent's own, non-trivial responses.

    Args:
        turn: Incoming turn
        min_length: Minimum response length in characters
        allowed_sources: Sources to accept; empty accepts every source
    """
    sources = set(allowed_sources)
    if sources and turn.source not in sources:
        return False
    if not turn.is_from_agent:
        return False
    return len(turn.content) >= min_length


class CadenceGate:
    """
    Opens once every `interval` ticks.

    Counts eligible turns per evaluator instance; thread-safe so a host
    delivering turns from several threads still gets one open per interval.
    """

    def __init__(self, interval: int):
        if interval < 1:
            raise ValueError(f"interval must be >= 1, got {interval}")
        self.interval = interval
        self._count = 0
        self._lock = threading.Lock()

    def tick(self) -> bool:
        """Count one eligible turn; True when the interval is reached (and reset)."""
        with self._lock:
            self._count += 1
            if self._count < self.interval:
                return False
            self._count = 0
            return True

    @property
    def pending(self) -> int:
        return self._count
