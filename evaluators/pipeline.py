"""
Extraction pipeline - the evaluator contract the host runtime calls.

Per turn the host calls validate() and then handle(). handle() runs:

    TRIGGER_CHECK -> (SKIPPED | PROMPTING) -> MODEL_CALL
        -> (FAILED_PARSE | FILTERING) -> PERSISTING -> DONE

Subclasses decide WHEN to run, WHAT to ask and WHICH records to keep; the
staging, failure isolation and logging live here once. handle() never raises:
every failure degrades to an empty result.
"""
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Protocol

from evaluators.models import (
    CandidateRecord,
    ConversationTurn,
    PipelineResult,
    PipelineStage,
    SessionState,
)
from evaluators.persistence import MemoryStore, build_metadata
from evaluators.processing.output_parser import OutputParser
from evaluators.processing.record_filter import DuplicateDetector, RecordFilter


class ModelGateway(Protocol):
    """Text completion capability; any failure is raised."""

    def complete(self, prompt: str, temperature: float) -> str:
        ...


class ExtractionEvaluator(ABC):
    """
    Base class for evaluators that extract durable records from a turn.

    Concrete evaluators provide:
    - should_run(): pure trigger check
    - build_prompt(): prompt text, or None to skip
    - name / memory_type / temperature and a RecordFilter
    - optionally a DuplicateDetector
    """

    name: str = "EXTRACTOR"
    description: str = ""

    def __init__(
        self,
        gateway: ModelGateway,
        memory_store: MemoryStore,
        record_filter: RecordFilter,
        memory_type: str,
        temperature: float,
        output_parser: Optional[OutputParser] = None,
        duplicate_detector: Optional[DuplicateDetector] = None,
        dedup_lookup_limit: int = 50,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize evaluator.

        Args:
            gateway: Model gateway used for the single extraction call
            memory_store: Destination for accepted records
            record_filter: Admission rules for parsed records
            memory_type: Metadata type tag written with every entry
            temperature: Sampling temperature for the model call
            output_parser: Parser for raw model output
            duplicate_detector: Optional fuzzy de-duplication against stored entries
            dedup_lookup_limit: Stored entries compared during de-duplication
            logger: Logger for pipeline events (defaults to the module logger)
        """
        self.gateway = gateway
        self.memory_store = memory_store
        self.record_filter = record_filter
        self.memory_type = memory_type
        self.temperature = temperature
        self.output_parser = output_parser or OutputParser()
        self.duplicate_detector = duplicate_detector
        self.dedup_lookup_limit = dedup_lookup_limit
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def should_run(self, turn: ConversationTurn, state: Optional[SessionState]) -> bool:
        """Pure trigger check: no I/O, no model calls, no state changes."""

    @abstractmethod
    def build_prompt(self, turn: ConversationTurn, state: Optional[SessionState]) -> Optional[str]:
        """Prompt for this turn, or None if there is nothing to ask."""

    @property
    def source(self) -> str:
        return self.name.lower()

    def validate(self, turn: ConversationTurn, state: Optional[SessionState] = None) -> bool:
        """Host entry point: should handle() be called for this turn."""
        try:
            return self.should_run(turn, state)
        except Exception as e:
            self.logger.error(f"{self.name}: trigger check failed: {e}", exc_info=True)
            return False

    def handle(self, turn: ConversationTurn, state: Optional[SessionState] = None) -> PipelineResult:
        """
        Host entry point: run the pipeline for one turn.

        Returns:
            PipelineResult whose records are exactly those that were stored
        """
        result = PipelineResult()
        try:
            return self._run(turn, state, result)
        except Exception as e:
            self.logger.error(f"{self.name} error: {e}", exc_info=True)
            return PipelineResult(
                stage=PipelineStage.FAILED,
                candidates_seen=result.candidates_seen,
                accepted=result.accepted,
            )

    def _run(
        self,
        turn: ConversationTurn,
        state: Optional[SessionState],
        result: PipelineResult
    ) -> PipelineResult:
        result.stage = PipelineStage.TRIGGER_CHECK
        if not self.should_run(turn, state):
            result.stage = PipelineStage.SKIPPED
            return result

        result.stage = PipelineStage.PROMPTING
        prompt = self.build_prompt(turn, state)
        if prompt is None:
            self.logger.debug(f"{self.name}: not enough context to build a prompt, skipping")
            result.stage = PipelineStage.SKIPPED
            return result

        result.stage = PipelineStage.MODEL_CALL
        raw = self.gateway.complete(prompt, temperature=self.temperature)

        parsed = self.output_parser.parse(raw)
        if not parsed.ok:
            self.logger.warning(f"{self.name}: unparseable LLM output ({parsed.error})")
            result.stage = PipelineStage.FAILED_PARSE
            return result

        result.stage = PipelineStage.FILTERING
        result.candidates_seen = len(parsed.records)
        candidates = self.record_filter.filter(parsed.records)
        result.accepted = len(candidates)

        result.stage = PipelineStage.PERSISTING
        result.records = self._persist(candidates, turn)

        if result.records:
            self.logger.info(
                f"{self.name}: stored {len(result.records)} {self.memory_type} record(s) "
                f"from {result.candidates_seen} extracted"
            )

        result.stage = PipelineStage.DONE
        return result

    def _persist(self, candidates: List[CandidateRecord], turn: ConversationTurn) -> List[CandidateRecord]:
        """
        Store each candidate independently; one failure never stops the rest.
        """
        if not candidates:
            return []

        known = self._load_known_contents()
        stored: List[CandidateRecord] = []

        for candidate in candidates:
            if known is not None:
                duplicate = self.duplicate_detector.find_duplicate(candidate.text, known)
                if duplicate is not None:
                    self.logger.debug(f"{self.name}: skipping duplicate of existing entry: {duplicate[:60]!r}")
                    continue

            try:
                entry = self.memory_store.store(
                    content=candidate.text,
                    metadata=build_metadata(candidate, self.memory_type, self.source),
                    room_id=turn.room_id,
                    entity_id=turn.entity_id,
                )
            except Exception as e:
                self.logger.error(f"{self.name}: failed to store {self.memory_type}: {e}")
                continue

            if entry is None:
                self.logger.error(f"{self.name}: failed to store {self.memory_type}: store returned no entry")
                continue

            stored.append(candidate)
            if known is not None:
                known.append(candidate.text)

        return stored

    def _load_known_contents(self) -> Optional[List[str]]:
        """
        Contents to de-duplicate against, or None when de-duplication is off.

        A failed lookup disables de-duplication for this batch rather than
        blocking storage.
        """
        if self.duplicate_detector is None:
            return None
        try:
            return list(self.memory_store.list_contents(
                self.memory_type,
                room_id=None,
                limit=self.dedup_lookup_limit,
            ))
        except Exception as e:
            self.logger.warning(f"{self.name}: duplicate lookup failed, storing without de-duplication: {e}")
            return None
