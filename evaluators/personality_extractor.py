"""
Personality extractor - communication traits from the user's own messages.

Pattern detection needs several messages, so this evaluator only fires once
every `interval` eligible turns and only when enough user messages are in the
session window.
"""
import logging
from pathlib import Path
from typing import Optional, Union

from config.config import PersonalityExtractionConfig
from evaluators.models import ConversationTurn, SessionState
from evaluators.persistence import MemoryStore
from evaluators.pipeline import ExtractionEvaluator, ModelGateway
from evaluators.processing.prompt_builder import UserMessagePromptBuilder
from evaluators.processing.record_filter import DuplicateDetector, RecordFilter
from evaluators.triggers import CadenceGate


class PersonalityExtractor(ExtractionEvaluator):
    """Extract personality traits from user communication patterns."""

    name = "PERSONALITY_EXTRACTOR"
    description = "Extract personality traits from user communication patterns"

    def __init__(
        self,
        gateway: ModelGateway,
        memory_store: MemoryStore,
        prompt_builder: UserMessagePromptBuilder,
        interval: int = 10,
        min_message_length: int = 10,
        min_trait_length: int = 10,
        min_confidence: float = 0.6,
        dedup_similarity_threshold: float = 0.9,
        dedup_lookup_limit: int = 50,
        temperature: float = 0.3,
        memory_type: str = "personality_trait",
        logger: Optional[logging.Logger] = None
    ):
        super().__init__(
            gateway=gateway,
            memory_store=memory_store,
            record_filter=RecordFilter(
                min_confidence=min_confidence,
                require_category=True,
                min_text_length=min_trait_length,
            ),
            memory_type=memory_type,
            temperature=temperature,
            duplicate_detector=DuplicateDetector(dedup_similarity_threshold),
            dedup_lookup_limit=dedup_lookup_limit,
            logger=logger,
        )
        self.prompt_builder = prompt_builder
        self.min_message_length = min_message_length
        self.cadence = CadenceGate(interval)

    @classmethod
    def from_config(
        cls,
        config: PersonalityExtractionConfig,
        prompts_dir: Union[str, Path],
        gateway: ModelGateway,
        memory_store: MemoryStore,
        dedup_lookup_limit: int = 50,
        logger: Optional[logging.Logger] = None
    ) -> "PersonalityExtractor":
        return cls(
            gateway=gateway,
            memory_store=memory_store,
            prompt_builder=UserMessagePromptBuilder.from_file(
                prompts_dir,
                config.prompt_file,
                window=config.user_message_window,
                prompt_messages=config.prompt_messages,
                min_messages=config.min_user_messages,
            ),
            interval=config.interval,
            min_message_length=config.min_message_length,
            min_trait_length=config.min_trait_length,
            min_confidence=config.min_confidence,
            dedup_similarity_threshold=config.dedup_similarity_threshold,
            dedup_lookup_limit=dedup_lookup_limit,
            temperature=config.temperature,
            memory_type=config.memory_type,
            logger=logger,
        )

    def should_run(self, turn: ConversationTurn, state: Optional[SessionState]) -> bool:
        return len(turn.content) >= self.min_message_length

    def validate(self, turn: ConversationTurn, state: Optional[SessionState] = None) -> bool:
        # Cadence counts only here so a validate()+handle() pair ticks once.
        if not super().validate(turn, state):
            return False
        return self.cadence.tick()

    def build_prompt(self, turn: ConversationTurn, state: Optional[SessionState]) -> Optional[str]:
        return self.prompt_builder.build(turn, state)
