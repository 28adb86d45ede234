"""
Record filter - semantic admission rules for parsed model records.

Rejected records are dropped silently; callers only see what was accepted.
Category and outcome values are taken as the model wrote them: there is no
vocabulary check beyond defaulting an absent outcome.
"""
import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from rapidfuzz import fuzz

from evaluators.models import CandidateRecord

logger = logging.getLogger(__name__)

DEFAULT_OUTCOME = "partial"
DEFAULT_PROJECT = "general"


def is_real_number(value: Any) -> bool:
    """True for int/float values; booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RecordFilter:
    """
    Convert raw parsed records into CandidateRecords, or reject them.

    Rejection reasons, checked in order:
    1. record is not a mapping
    2. text field missing, falsy, or not a string
    3. text shorter than min_text_length
    4. category missing or falsy (when require_category)
    5. confidence absent or not a number (when min_confidence is set)
    6. confidence below min_confidence
    """

    def __init__(
        self,
        min_confidence: Optional[float] = 0.5,
        require_category: bool = True,
        text_field: str = "text",
        min_text_length: int = 1,
        default_category: Optional[str] = None
    ):
        self.min_confidence = min_confidence
        self.require_category = require_category
        self.text_field = text_field
        self.min_text_length = min_text_length
        self.default_category = default_category

    def accept(self, raw: Any) -> Optional[CandidateRecord]:
        """
        Apply admission rules to one raw record.

        Returns:
            CandidateRecord if admitted, None if rejected
        """
        if not isinstance(raw, Mapping):
            return None

        text = raw.get(self.text_field)
        if not text or not isinstance(text, str):
            return None
        if len(text) < self.min_text_length:
            return None

        category = raw.get("category")
        if self.require_category and not category:
            return None

        confidence = raw.get("confidence")
        if self.min_confidence is not None:
            if not is_real_number(confidence):
                return None
            if not confidence >= self.min_confidence:
                return None
        elif not is_real_number(confidence):
            confidence = None

        outcome = raw.get("outcome")
        project = raw.get("project")
        task_id = raw.get("task_id", raw.get("taskId"))

        return CandidateRecord(
            text=text,
            category=str(category) if category else self.default_category,
            confidence=float(confidence) if confidence is not None else None,
            outcome=str(outcome) if outcome else DEFAULT_OUTCOME,
            project=str(project) if project else DEFAULT_PROJECT,
            task_id=str(task_id) if task_id else None,
        )

    def filter(self, raw_records: Iterable[Any]) -> List[CandidateRecord]:
        """Admit what passes, in order; report only the aggregate count."""
        raw_records = list(raw_records)
        accepted = [record for record in map(self.accept, raw_records) if record is not None]
        logger.debug(f"Accepted {len(accepted)} of {len(raw_records)} candidate records")
        return accepted


class DuplicateDetector:
    """
    Fuzzy duplicate check against already-stored contents.

    Uses rapidfuzz ratio (0-100, scaled to 0-1); strictly above threshold the
    candidate is treated as something already known.
    """

    def __init__(self, threshold: float):
        self.threshold = threshold

    def similarity(self, a: str, b: str) -> float:
        return fuzz.ratio(a.strip(), b.strip()) / 100.0

    def find_duplicate(self, text: str, existing: Iterable[str]) -> Optional[str]:
        """
        Return the first existing text that duplicates `text`, or None.
        """
        for existing_text in existing:
            if not existing_text:
                continue
            if self.similarity(existing_text, text) > self.threshold:
                return existing_text
        return None
