"""
Fact extractor - reusable personal and project facts from agent responses.

Listens to the agent's own substantive responses, asks for standalone facts
and skips any that fuzzily match a fact already on file.
"""
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from config.config import FactExtractionConfig
from evaluators.models import ConversationTurn, SessionState
from evaluators.persistence import MemoryStore
from evaluators.pipeline import ExtractionEvaluator, ModelGateway
from evaluators.processing.prompt_builder import PromptBuilder
from evaluators.processing.record_filter import DuplicateDetector, RecordFilter
from evaluators.triggers import is_substantive_agent_response


class FactExtractor(ExtractionEvaluator):
    """Extract personal facts, preferences, and project details from conversations."""

    name = "FACT_EXTRACTOR"
    description = "Extract personal facts, preferences, and project details from conversations"

    def __init__(
        self,
        gateway: ModelGateway,
        memory_store: MemoryStore,
        prompt_builder: PromptBuilder,
        min_response_length: int = 30,
        min_fact_length: int = 5,
        allowed_sources: Iterable[str] = ("telegram",),
        dedup_similarity_threshold: float = 0.92,
        dedup_lookup_limit: int = 50,
        temperature: float = 0.1,
        memory_type: str = "fact",
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(
            gateway=gateway,
            memory_store=memory_store,
            record_filter=RecordFilter(
                min_confidence=None,
                require_category=False,
                text_field="fact",
                min_text_length=min_fact_length,
                default_category=memory_type,
            ),
            memory_type=memory_type,
            temperature=temperature,
            duplicate_detector=DuplicateDetector(dedup_similarity_threshold),
            dedup_lookup_limit=dedup_lookup_limit,
            logger=logger,
        )
        self.prompt_builder = prompt_builder
        self.min_response_length = min_response_length
        self.allowed_sources = tuple(allowed_sources)

    @classmethod
    def from_config(
        cls,
        config: FactExtractionConfig,
        prompts_dir: Union[str, Path],
        gateway: ModelGateway,
        memory_store: MemoryStore,
        dedup_lookup_limit: int = 50,
        logger: Optional[logging.Logger] = None
    ) -> "FactExtractor":
        return cls(
            gateway=gateway,
            memory_store=memory_store,
            prompt_builder=PromptBuilder.from_file(prompts_dir, config.prompt_file, config.context_messages),
            min_response_length=config.min_response_length,
            min_fact_length=config.min_fact_length,
            allowed_sources=config.allowed_sources,
            dedup_similarity_threshold=config.dedup_similarity_threshold,
            dedup_lookup_limit=dedup_lookup_limit,
            temperature=config.temperature,
            memory_type=config.memory_type,
            logger=logger,
        )

    def should_run(self, turn: ConversationTurn, state: Optional[SessionState]) -> bool:
        return is_substantive_agent_response(turn, self.min_response_length, self.allowed_sources)

    def build_prompt(self, turn: ConversationTurn, state: Optional[SessionState]) -> Optional[str]:
        return self.prompt_builder.build(turn, state)
